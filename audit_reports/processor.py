"""Transforms normalised audit records into template-ready view models."""

from __future__ import annotations

import math
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .images import parse_attachments
from .markup import render_rich_text
from .models import (
    AuditFindings,
    AuditJourney,
    EyequantView,
    Finding,
    JourneyPhase,
    Record,
    ReportDetails,
    ScoreEntry,
    SummaryStats,
)

CATEGORIES = (
    "Clarity & Purpose",
    "Trust & Credibility",
    "Mobile Experience",
    "Information Hierarchy",
    "Friction Points",
    "Visual Design",
    "Speed & Performance",
    "User Flow Logic",
)

MAX_SCORE = 5
NEEDS_WORK_THRESHOLD = 3

JOURNEY_PHASES = (
    ("Discovery phase", "Discovery Phase Screenshots", "Discovery Phase Comments"),
    ("Decision phase", "Decision Phase Screenshots", "Decision Phase Comments"),
    ("Conversion phase", "Conversion Phase Screenshots", "Conversion Phase Comments"),
)

EYEQUANT_FIELDS = ("Eyequant Screenshot", "Eyequant Competitor Screenshot")
MAX_EYEQUANT_SCREENSHOTS = 2

NO_ISSUES = "No issues recorded"
NO_EXPERIMENTS = "No experiments suggested"
NO_TOP_FEEDBACK = "No feedback provided for top section"
NO_BOTTOM_FEEDBACK = "No feedback provided for bottom section"

# Brand palette, cycled for chart datasets.
CHART_COLORS = (
    (43, 5, 115),
    (99, 37, 244),
    (230, 8, 52),
    (0, 163, 184),
    (232, 228, 255),
    (207, 236, 255),
    (253, 228, 225),
    (218, 242, 238),
)


def parse_score(value: Any) -> int:
    """Leading integer of a score field clamped to 0-5; 0 when absent or unparseable."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return 0
        score = int(value)
    else:
        text = str(value).strip()
        digits = ""
        for index, char in enumerate(text):
            if char.isdigit() or (index == 0 and char in "+-"):
                digits += char
            else:
                break
        try:
            score = int(digits)
        except ValueError:
            return 0
    return max(0, min(MAX_SCORE, score))


def round_half_up(value: float) -> float:
    """Round to one decimal place with ties going up (2.25 -> 2.3)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(str(item) for item in value if item is not None)
    return str(value)


def partition_findings(findings: Iterable[Finding]) -> Tuple[List[Finding], List[Finding]]:
    """Split into (needs work, doing well), lowest-first and highest-first respectively."""
    items = list(findings)
    needs_work = sorted(
        (f for f in items if f.score <= NEEDS_WORK_THRESHOLD), key=lambda f: f.score
    )
    doing_well = sorted(
        (f for f in items if f.score > NEEDS_WORK_THRESHOLD), key=lambda f: f.score, reverse=True
    )
    return needs_work, doing_well


def format_report_date(value: date) -> str:
    return f"{value.day} {value.strftime('%B %Y')}"


class DataProcessor:
    """Stateless view-model builders over a fixed list of records."""

    def __init__(self, records: List[Record]) -> None:
        self.records = list(records)
        self.categories = CATEGORIES

    def for_client(self, client: str) -> "DataProcessor":
        return DataProcessor([record for record in self.records if record.client == client])

    def clients(self) -> List[str]:
        return list(dict.fromkeys(record.client for record in self.records))

    def score_data(self) -> List[ScoreEntry]:
        return [
            ScoreEntry(
                client=record.client,
                audit_id=record.audit_id,
                scores={c: parse_score(record.get(f"{c} Score")) for c in self.categories},
            )
            for record in self.records
        ]

    def average_scores(self) -> Dict[str, float]:
        score_data = self.score_data()
        averages: Dict[str, float] = {}
        for category in self.categories:
            if not score_data:
                averages[category] = 0.0
                continue
            total = sum(entry.scores[category] for entry in score_data)
            averages[category] = round_half_up(total / len(score_data))
        return averages

    def summary_stats(self) -> SummaryStats:
        averages = self.average_scores()
        ordered = [(category, averages[category]) for category in self.categories]
        highest = ordered[0]
        lowest = ordered[0]
        for item in ordered[1:]:
            if item[1] > highest[1]:
                highest = item
            if item[1] < lowest[1]:
                lowest = item
        overall = round_half_up(sum(score for _, score in ordered) / len(ordered))
        return SummaryStats(
            clients=self.clients(),
            overall_average=overall,
            highest_category=highest,
            lowest_category=lowest,
            total_audits=len(self.records),
        )

    def detailed_findings(self) -> List[AuditFindings]:
        results: List[AuditFindings] = []
        for record in self.records:
            findings = []
            for category in self.categories:
                issue = _text(record.get(f"{category} Issue")) or _text(
                    record.get(f"{category} Issues")
                )
                experiment = _text(record.get(f"{category} Experiments"))
                findings.append(
                    Finding(
                        category=category,
                        score=parse_score(record.get(f"{category} Score")),
                        issue=render_rich_text(issue) if issue.strip() else NO_ISSUES,
                        experiment=render_rich_text(experiment)
                        if experiment.strip()
                        else NO_EXPERIMENTS,
                    )
                )
            results.append(AuditFindings(record.client, record.audit_id, findings))
        return results

    def user_journey_data(self) -> List[AuditJourney]:
        results: List[AuditJourney] = []
        for record in self.records:
            phases = []
            for name, screenshots_field, comments_field in JOURNEY_PHASES:
                phase = JourneyPhase(
                    name=name,
                    screenshots=parse_attachments(record.get(screenshots_field)),
                    comments=render_rich_text(_text(record.get(comments_field))),
                )
                if not phase.is_empty():
                    phases.append(phase)
            results.append(AuditJourney(record.client, record.audit_id, phases))
        return results

    def eyequant_data(self) -> List[EyequantView]:
        results: List[EyequantView] = []
        for record in self.records:
            screenshots = []
            for field_name in EYEQUANT_FIELDS:
                attachments = parse_attachments(record.get(field_name))
                if attachments:
                    screenshots.append(attachments[0])
            top = _text(record.get("Top Feedback"))
            bottom = _text(record.get("Bottom Feedback"))
            results.append(
                EyequantView(
                    client=record.client,
                    audit_id=record.audit_id,
                    screenshots=screenshots[:MAX_EYEQUANT_SCREENSHOTS],
                    top_feedback=render_rich_text(top) if top.strip() else NO_TOP_FEEDBACK,
                    bottom_feedback=render_rich_text(bottom)
                    if bottom.strip()
                    else NO_BOTTOM_FEEDBACK,
                )
            )
        return results

    def report_details(self, report_date: Optional[str] = None) -> ReportDetails:
        """Auditor and site for the header, taken from the first record that has them."""

        def first(name: str, default: str) -> str:
            for record in self.records:
                value = _text(record.get(name)).strip()
                if value:
                    return value
            return default

        return ReportDetails(
            user=first("User", "Journey Further"),
            user_id=_css_token(first("User ID", "team")),
            site=first("Site", "your website"),
            report_date=report_date or format_report_date(date.today()),
        )

    @staticmethod
    def chart_color(index: int, alpha: float = 1) -> str:
        red, green, blue = CHART_COLORS[index % len(CHART_COLORS)]
        return f"rgba({red}, {green}, {blue}, {alpha})"

    def radar_chart_data(self) -> Dict[str, Any]:
        entries = self.score_data()
        datasets = []
        for index, entry in enumerate(entries):
            color = self.chart_color(index)
            datasets.append(
                {
                    "label": f"{entry.client} (ID: {entry.audit_id})",
                    "data": [entry.scores[c] for c in self.categories],
                    "borderColor": color,
                    "backgroundColor": self.chart_color(index, 0.2),
                    "pointBackgroundColor": color,
                    "pointBorderColor": "#fff",
                    "pointHoverBackgroundColor": "#fff",
                    "pointHoverBorderColor": color,
                }
            )
        return {"labels": list(self.categories), "datasets": datasets}

    def radar_chart_options(self) -> Dict[str, Any]:
        scale = {"beginAtZero": True, "max": MAX_SCORE, "ticks": {"stepSize": 1}}
        return {
            "responsive": True,
            "plugins": {
                "legend": {"position": "top"},
                "title": {
                    "display": True,
                    "text": "UX Audit Scores by Category",
                    "font": {"size": 16, "weight": "bold"},
                },
            },
            "scales": {"r": dict(scale, pointLabels={"font": {"size": 13}})},
        }


def _css_token(value: str) -> str:
    """Reduce an auditor id to characters usable in a CSS class name."""
    return "".join(char if char.isalnum() or char in "-_" else "-" for char in value.lower())
