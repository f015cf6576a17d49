"""Data models used throughout the report pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

UNKNOWN_CLIENT = "Unknown Client"


@dataclass
class Record:
    """One audit entry, normalised once at ingestion.

    Accepts both the raw API shape ``{"id": ..., "fields": {...}}`` and the
    flat shape ``{"id": ..., "Client": ..., ...}`` so the rest of the
    pipeline only ever reads ``record.fields``.
    """

    id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def client(self) -> str:
        value = self.fields.get("Client")
        if isinstance(value, list):
            value = value[0] if value else None
        text = str(value).strip() if value is not None else ""
        return text or UNKNOWN_CLIENT

    @property
    def audit_id(self) -> str:
        value = self.fields.get("ID")
        return str(value) if value not in (None, "") else self.id

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        nested = data.get("fields")
        if isinstance(nested, Mapping):
            fields = dict(nested)
        else:
            fields = {key: value for key, value in data.items() if key != "id"}
        return cls(id=str(data.get("id") or ""), fields=fields)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.fields}


@dataclass
class Attachment:
    """Remote or local file reference embedded in a record field."""

    url: str
    filename: str


@dataclass
class DownloadedImage:
    """Image fetched, optimised and stored inside a client folder."""

    original_url: str
    local_path: str
    filename: str
    field_name: str
    client: str
    index: int
    record_id: str
    original_bytes: int = 0
    written_bytes: int = 0


@dataclass
class ScoreEntry:
    """Category scores for one audit."""

    client: str
    audit_id: str
    scores: Dict[str, int]


@dataclass
class Finding:
    """One category's score with its issue text and suggested experiment."""

    category: str
    score: int
    issue: str
    experiment: str


@dataclass
class AuditFindings:
    client: str
    audit_id: str
    findings: List[Finding]


@dataclass
class SummaryStats:
    """Headline figures for a set of audits."""

    clients: List[str]
    overall_average: float
    highest_category: Tuple[str, float]
    lowest_category: Tuple[str, float]
    total_audits: int


@dataclass
class JourneyPhase:
    name: str
    screenshots: List[Attachment]
    comments: str

    @property
    def anchor(self) -> str:
        return self.name.split(" ")[0].lower()

    def is_empty(self) -> bool:
        return not self.screenshots and not self.comments.strip()


@dataclass
class AuditJourney:
    client: str
    audit_id: str
    phases: List[JourneyPhase]


@dataclass
class EyequantView:
    """Visual attention analysis for one audit."""

    client: str
    audit_id: str
    screenshots: List[Attachment]
    top_feedback: str
    bottom_feedback: str

    @property
    def screenshot(self) -> Optional[Attachment]:
        return self.screenshots[0] if self.screenshots else None


@dataclass
class ReportDetails:
    """Who ran the audit, on which site, and when."""

    user: str
    user_id: str
    site: str
    report_date: str
