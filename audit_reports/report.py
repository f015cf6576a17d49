"""Writes one rendered report document to disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .processor import DataProcessor
from .templates import TemplateRenderer

logger = logging.getLogger("audit_reports")

REPORT_FILENAME = "index.html"


def generate_report(
    processor: DataProcessor,
    output_path: Path,
    renderer: TemplateRenderer,
    report_date: Optional[str] = None,
    asset_version: Optional[str] = None,
) -> Path:
    """Render the processor's records and save them as ``output_path``."""
    html = renderer.render(processor, report_date=report_date, asset_version=asset_version)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html, encoding="utf-8")
    logger.info("Saved report to %s", output_path)
    return output_path
