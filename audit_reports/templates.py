"""Placeholder substitution over the static HTML template fragments."""

from __future__ import annotations

import logging
import re
import time
from html import escape
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set
from urllib.parse import quote

from .charts import chart_scripts
from .components import (
    criteria_html,
    eyequant_html,
    findings_html,
    phase_html,
    summary_html,
)
from .processor import DataProcessor

logger = logging.getLogger("audit_reports")

TOKEN_PATTERN = re.compile(r"\{\{([A-Z0-9_]+)\}\}")
SECTION_PATTERN = re.compile(r"\{\{SECTION_([A-Z0-9_]+)\}\}")
BASE_TEMPLATE = "base.html"
SECTIONS_DIR = "sections"

PLACEHOLDERS = frozenset(
    {
        "CLIENT_NAME",
        "CLIENT_NAME_URL",
        "REPORT_DATE",
        "USER",
        "USER_ID",
        "SITE",
        "OVERALL_AVERAGE",
        "HIGHEST_CATEGORY_NAME",
        "HIGHEST_CATEGORY_SCORE",
        "LOWEST_CATEGORY_NAME",
        "LOWEST_CATEGORY_SCORE",
        "TOTAL_AUDITS",
        "ASSET_VERSION",
        "SUMMARY_CARDS",
        "CRITERIA_LIST",
        "DISCOVERY_PHASE",
        "DECISION_PHASE",
        "CONVERSION_PHASE",
        "EYEQUANT_CONTENT",
        "DETAILED_FINDINGS",
        "CHART_SCRIPTS",
    }
)


class TemplateError(RuntimeError):
    """Raised by strict substitution when placeholders are left without a value."""


def find_placeholders(template: str) -> Set[str]:
    return set(TOKEN_PATTERN.findall(template))


def substitute(template: str, values: Mapping[str, object], strict: bool = False) -> str:
    """Replace every ``{{NAME}}`` token in one pass.

    Tokens with no value are left in place and reported with a warning, or
    raise ``TemplateError`` when ``strict`` is set.
    """
    missing: List[str] = []

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            return str(values[name])
        missing.append(name)
        return match.group(0)

    rendered = TOKEN_PATTERN.sub(_replace, template)
    if missing:
        names = ", ".join(sorted(set(missing)))
        if strict:
            raise TemplateError(f"No value supplied for placeholder(s): {names}")
        logger.warning("Leaving unmatched placeholder(s) in output: %s", names)
    return rendered


def section_placeholder(name: str) -> str:
    return f"<!-- Missing template section: {name} -->"


class TemplateRenderer:
    """Builds a complete report document from ``base.html`` and its section fragments."""

    def __init__(self, templates_dir: Path) -> None:
        self.templates_dir = Path(templates_dir)
        self.skeleton = self._assemble()
        unknown = find_placeholders(self.skeleton) - PLACEHOLDERS
        if unknown:
            logger.warning(
                "Templates reference unknown placeholder(s): %s", ", ".join(sorted(unknown))
            )

    def _read_section(self, name: str) -> str:
        path = self.templates_dir / SECTIONS_DIR / f"{name}.html"
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Template section %s unavailable: %s", name, exc)
            return section_placeholder(name)

    def _assemble(self) -> str:
        base = (self.templates_dir / BASE_TEMPLATE).read_text(encoding="utf-8")
        return SECTION_PATTERN.sub(lambda m: self._read_section(m.group(1).lower()), base)

    def build_values(
        self,
        processor: DataProcessor,
        report_date: Optional[str] = None,
        asset_version: Optional[str] = None,
    ) -> Dict[str, object]:
        stats = processor.summary_stats()
        client_name = ", ".join(stats.clients)
        details = processor.report_details(report_date)
        return {
            "CLIENT_NAME": escape(client_name),
            "CLIENT_NAME_URL": quote(client_name, safe=""),
            "REPORT_DATE": details.report_date,
            "USER": escape(details.user),
            "USER_ID": details.user_id,
            "SITE": escape(details.site),
            "OVERALL_AVERAGE": stats.overall_average,
            "HIGHEST_CATEGORY_NAME": escape(stats.highest_category[0]),
            "HIGHEST_CATEGORY_SCORE": stats.highest_category[1],
            "LOWEST_CATEGORY_NAME": escape(stats.lowest_category[0]),
            "LOWEST_CATEGORY_SCORE": stats.lowest_category[1],
            "TOTAL_AUDITS": stats.total_audits,
            "ASSET_VERSION": asset_version or str(int(time.time() * 1000)),
            "SUMMARY_CARDS": summary_html(processor),
            "CRITERIA_LIST": criteria_html(processor),
            "DISCOVERY_PHASE": phase_html(processor, "Discovery phase"),
            "DECISION_PHASE": phase_html(processor, "Decision phase"),
            "CONVERSION_PHASE": phase_html(processor, "Conversion phase"),
            "EYEQUANT_CONTENT": eyequant_html(processor),
            "DETAILED_FINDINGS": findings_html(processor),
            "CHART_SCRIPTS": chart_scripts(processor),
        }

    def render(
        self,
        processor: DataProcessor,
        report_date: Optional[str] = None,
        asset_version: Optional[str] = None,
        strict: bool = False,
    ) -> str:
        values = self.build_values(processor, report_date, asset_version)
        return substitute(self.skeleton, values, strict=strict)
