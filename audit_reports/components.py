"""HTML formatters for the data-driven report sections."""

from __future__ import annotations

from html import escape
from typing import List

from .charts import CRITERIA_KEYS
from .models import Attachment, EyequantView, Finding, JourneyPhase
from .processor import DataProcessor, partition_findings

NO_EYEQUANT_SCREENSHOT = "No Eyequant screenshot provided"
NO_COMMENTS = "<p>No comments provided</p>"

FINDING_LABELS = {
    "needs-work": ("What needs work", "Issue Identified:", "Recommended Experiment:"),
    "doing-well": ("What you're doing well", "What's working:", "Potential Enhancement:"),
}


def _image(screenshot: Attachment, css_class: str) -> str:
    return (
        f'<img src="{escape(screenshot.url)}" alt="{escape(screenshot.filename)}" '
        f'class="{css_class}" loading="lazy">'
    )


def summary_html(processor: DataProcessor) -> str:
    stats = processor.summary_stats()
    highest_name, highest_score = stats.highest_category
    lowest_name, lowest_score = stats.lowest_category
    return f"""
    <div class="summary-grid">
      <div class="summary-card">
        <h3>Overall Score</h3>
        <div class="value">{stats.overall_average}</div>
        <div class="label">out / 5</div>
      </div>
      <div class="summary-card">
        <h3>Highest Performing</h3>
        <div class="value">{highest_score}</div>
        <div class="label">{escape(highest_name)}</div>
      </div>
      <div class="summary-card">
        <h3>Needs Attention</h3>
        <div class="value">{lowest_score}</div>
        <div class="label">{escape(lowest_name)}</div>
      </div>
    </div>
    """


def criteria_html(processor: DataProcessor) -> str:
    averages = processor.average_scores()
    items = []
    for category in processor.categories:
        key = CRITERIA_KEYS.get(category, "")
        items.append(
            f'<li class="criteria-item" id="criteria-{key}">'
            f'<span class="criteria-name">{escape(category)}</span>'
            f'<span class="criteria-score">{averages[category]}/5</span></li>'
        )
    return f'<ul class="criteria-list">{"".join(items)}</ul>'


def _phase_block(phase: JourneyPhase) -> str:
    screenshots = "".join(_image(s, "screenshot") for s in phase.screenshots)
    return f"""
    <div class="journey-phase" id="{phase.anchor}">
      <div class="row">
        <div class="phase-screenshots fade-in-left">
          <div class="screenshot-container">{screenshots}</div>
        </div>
        <div class="phase-content fade-in-right">
          <div class="phase-comments">
            <h3 class="phase-title">{escape(phase.name)}</h3>
            <span class="phase-label">Analysis:</span>
            <div class="phase-text">{phase.comments or NO_COMMENTS}</div>
          </div>
        </div>
      </div>
    </div>
    """


def phase_html(processor: DataProcessor, phase_name: str) -> str:
    """Blocks for a single named phase (e.g. ``"Discovery phase"``) across all audits."""
    return "".join(
        _phase_block(phase)
        for audit in processor.user_journey_data()
        for phase in audit.phases
        if phase.name == phase_name
    )


def _findings_section(findings: List[Finding], css_class: str) -> str:
    if not findings:
        return ""
    title, issue_label, experiment_label = FINDING_LABELS[css_class]
    rows = []
    for finding in findings:
        score_class = f"score-{finding.score}"
        rows.append(
            f"""
        <div class="category-findings {css_class}-item {score_class}">
          <div class="category-header">
            <div class="category-name">
              <span class="score-indicator {score_class}"></span>
              {escape(finding.category)}
            </div>
            <div class="category-score">{finding.score}/5</div>
          </div>
          <div class="finding-item">
            <div class="finding-label">{escape(issue_label)}</div>
            <div class="finding-text">{finding.issue}</div>
          </div>
          <div class="finding-item">
            <div class="finding-label">{escape(experiment_label)}</div>
            <div class="finding-text">{finding.experiment}</div>
          </div>
        </div>"""
        )
    return f"""
      <div class="findings-subsection">
        <h4 class="subsection-title {css_class}"><span>{escape(title)}</span></h4>
        {"".join(rows)}
      </div>"""


def findings_html(processor: DataProcessor) -> str:
    blocks = []
    for audit in processor.detailed_findings():
        needs_work, doing_well = partition_findings(audit.findings)
        blocks.append(
            f"""
    <div class="client-findings">
      {_findings_section(needs_work, "needs-work")}
      {_findings_section(doing_well, "doing-well")}
    </div>"""
        )
    return "".join(blocks)


def _eyequant_block(view: EyequantView) -> str:
    multiple = len(view.screenshots) > 1
    if view.screenshots:
        screenshots = "".join(
            f'<div class="eyequant-screenshot">{_image(s, "eyequant-image")}</div>'
            for s in view.screenshots
        )
    else:
        screenshots = (
            '<div class="eyequant-screenshot">'
            f'<div class="eyequant-placeholder">{NO_EYEQUANT_SCREENSHOT}</div>'
            "</div>"
        )
    container_class = "eyequant-container eyequant-container--multiple" if multiple else "eyequant-container"
    screenshots_class = "eyequant-screenshots eyequant-screenshots--multiple" if multiple else "eyequant-screenshots"
    return f"""
    <div class="{container_class}">
      <div class="feedback-box top fade-in-right">
        <div class="feedback-title top">Top Feedback</div>
        <div class="feedback-text">{view.top_feedback}</div>
      </div>
      <div class="{screenshots_class} fade-in-left">{screenshots}</div>
      <div class="feedback-box bottom fade-in-right">
        <div class="feedback-text">{view.bottom_feedback}</div>
        <div class="feedback-title bottom">Bottom Feedback</div>
      </div>
    </div>
    """


def eyequant_html(processor: DataProcessor) -> str:
    return "".join(_eyequant_block(view) for view in processor.eyequant_data())
