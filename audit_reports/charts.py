"""Chart.js payload generation for the score radar chart."""

from __future__ import annotations

import json
import textwrap
from typing import Any, Dict

from .processor import DataProcessor

LABEL_WIDTH = 12
LABEL_COLOR = "#2b0573"
SCRIPT_ESCAPES = {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"}

CRITERIA_KEYS = {
    "Clarity & Purpose": "clarity",
    "Trust & Credibility": "trust",
    "Mobile Experience": "mobile",
    "Information Hierarchy": "hierarchy",
    "Friction Points": "friction",
    "Visual Design": "visual",
    "Speed & Performance": "performance",
    "User Flow Logic": "flow",
}

CHART_SCRIPT = """<script>
  (function () {
    var radarData = %(radar_data)s;
    var radarOptions = %(radar_options)s;
    var criteriaKeys = %(criteria_keys)s;
    var radarChart = null;
    var resizeTimeout = null;

    function buildChart() {
      var canvas = document.getElementById('radarChart');
      if (!canvas || typeof Chart === 'undefined') {
        return;
      }
      if (radarChart) {
        radarChart.destroy();
      }
      radarChart = new Chart(canvas.getContext('2d'), {
        type: 'radar',
        data: radarData,
        options: radarOptions
      });
      canvas.addEventListener('click', function (event) {
        var points = radarChart.scales.r;
        if (!points) {
          return;
        }
        var rect = canvas.getBoundingClientRect();
        var x = event.clientX - rect.left - points.xCenter;
        var y = event.clientY - rect.top - points.yCenter;
        if (Math.sqrt(x * x + y * y) < points.drawingArea * 0.7) {
          return;
        }
        var angle = (Math.atan2(y, x) + Math.PI / 2 + 2 * Math.PI) %% (2 * Math.PI);
        var index = Math.round(angle / (2 * Math.PI) * radarData.labels.length) %% radarData.labels.length;
        var label = radarData.labels[index];
        var key = criteriaKeys[Array.isArray(label) ? label.join(' ') : label];
        var target = key && document.getElementById('criteria-' + key);
        if (target) {
          target.scrollIntoView({ behavior: 'smooth', block: 'start' });
        }
      });
    }

    function onResize() {
      clearTimeout(resizeTimeout);
      resizeTimeout = setTimeout(buildChart, 100);
    }

    if (document.readyState === 'loading') {
      document.addEventListener('DOMContentLoaded', buildChart);
    } else {
      buildChart();
    }
    window.addEventListener('resize', onResize);
  })();
</script>"""


def wrap_label(label: str, width: int = LABEL_WIDTH) -> Any:
    """Split a category name into lines of at most ``width`` characters.

    Returns the label unchanged when it already fits, otherwise a list of lines
    (Chart.js renders array labels on multiple lines).
    """
    lines = textwrap.wrap(label, width=width, break_long_words=False)
    if len(lines) <= 1:
        return label
    return lines


def to_script_json(value: Any) -> str:
    """Serialise for embedding inside a ``<script>`` element."""
    text = json.dumps(value, sort_keys=True)
    for char, escaped in SCRIPT_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def radar_payload(processor: DataProcessor) -> Dict[str, Any]:
    data = processor.radar_chart_data()
    data["labels"] = [wrap_label(label) for label in data["labels"]]
    return data


def radar_options(processor: DataProcessor) -> Dict[str, Any]:
    options = processor.radar_chart_options()
    options["plugins"]["legend"] = {"display": False}
    point_labels: Dict[str, Any] = options["scales"]["r"].setdefault("pointLabels", {})
    point_labels.update({"padding": 15, "color": LABEL_COLOR})
    point_labels.setdefault("font", {})["weight"] = "normal"
    return options


def chart_scripts(processor: DataProcessor) -> str:
    return CHART_SCRIPT % {
        "radar_data": to_script_json(radar_payload(processor)),
        "radar_options": to_script_json(radar_options(processor)),
        "criteria_keys": to_script_json(CRITERIA_KEYS),
    }
