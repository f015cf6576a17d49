import json
import re

from audit_reports.charts import (
    CRITERIA_KEYS,
    chart_scripts,
    radar_options,
    radar_payload,
    to_script_json,
    wrap_label,
)
from audit_reports.components import (
    NO_COMMENTS,
    NO_EYEQUANT_SCREENSHOT,
    criteria_html,
    eyequant_html,
    findings_html,
    phase_html,
    summary_html,
)
from audit_reports.processor import CATEGORIES, DataProcessor

from conftest import make_record


def test_summary_cards_show_overall_and_extremes():
    html = summary_html(DataProcessor([make_record(scores=[3, 4, 5, 2, 1, 4, 3, 5])]))
    assert '<div class="value">3.4</div>' in html
    assert "Mobile Experience" in html
    assert "Friction Points" in html


def test_criteria_list_has_anchor_per_category():
    html = criteria_html(DataProcessor([make_record()]))
    for key in CRITERIA_KEYS.values():
        assert f'id="criteria-{key}"' in html
    assert "Clarity &amp; Purpose" in html
    assert "3.0/5" in html


def test_findings_split_into_needs_work_and_doing_well():
    html = findings_html(DataProcessor([make_record(scores=[3, 4, 5, 2, 1, 4, 3, 5])]))
    assert html.count("needs-work-item") == 4
    assert html.count("doing-well-item") == 4
    assert html.index("What needs work") < html.index("What you&#x27;re doing well")
    # lowest needs-work score comes first
    first = re.search(r"needs-work-item score-(\d)", html)
    assert first.group(1) == "1"


def test_findings_omit_empty_subsection():
    html = findings_html(DataProcessor([make_record(scores=[5] * 8)]))
    assert "What needs work" not in html
    assert html.count("doing-well-item") == 8


def test_journey_phase_without_comments_shows_default():
    record = make_record(**{"Discovery Phase Screenshots": "assets/img/acme-co-discovery.png"})
    processor = DataProcessor([record])
    html = phase_html(processor, "Discovery phase")
    assert 'id="discovery"' in html
    assert NO_COMMENTS in html
    assert 'src="assets/img/acme-co-discovery.png"' in html
    assert phase_html(processor, "Decision phase") == ""


def test_eyequant_placeholder_without_screenshot():
    html = eyequant_html(DataProcessor([make_record()]))
    assert NO_EYEQUANT_SCREENSHOT in html
    assert "eyequant-placeholder" in html
    assert "--multiple" not in html


def test_eyequant_two_screenshots_use_multiple_layout():
    record = make_record(
        **{
            "Eyequant Screenshot": "assets/img/acme-co-eyequant.jpg",
            "Eyequant Competitor Screenshot": "assets/img/acme-co-competitor.jpg",
        }
    )
    html = eyequant_html(DataProcessor([record]))
    assert "eyequant-container--multiple" in html
    assert html.count('class="eyequant-image"') == 2
    assert NO_EYEQUANT_SCREENSHOT not in html


def test_wrap_label():
    assert wrap_label("Friction") == "Friction"
    assert wrap_label("Information Hierarchy") == ["Information", "Hierarchy"]


def test_to_script_json_is_safe_inside_script_tags():
    text = to_script_json({"label": "</script><b>&"})
    assert "</script>" not in text
    assert "<" not in text and "&" not in text
    assert json.loads(text) == {"label": "</script><b>&"}


def test_radar_payload_wraps_labels_and_keeps_data():
    payload = radar_payload(DataProcessor([make_record()]))
    assert len(payload["labels"]) == len(CATEGORIES)
    assert payload["labels"][3] == ["Information", "Hierarchy"]
    assert payload["datasets"][0]["data"] == [3, 4, 5, 2, 1, 4, 3, 5]


def test_radar_options_hide_legend():
    options = radar_options(DataProcessor([make_record()]))
    assert options["plugins"]["legend"] == {"display": False}
    assert options["scales"]["r"]["pointLabels"]["font"] == {"size": 13, "weight": "normal"}


def test_chart_scripts_embed_payload():
    script = chart_scripts(DataProcessor([make_record()]))
    assert script.startswith("<script>")
    assert "getElementById('radarChart')" in script
    assert "% (2 * Math.PI)" in script
    assert "Acme Co (ID: rec1)" in script
