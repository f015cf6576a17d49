from __future__ import annotations

import io
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
import requests
from PIL import Image

from audit_reports.models import Record
from audit_reports.processor import CATEGORIES


# -----------------------------
# Test doubles
# -----------------------------
class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        content: bytes = b"",
        reason: str = "OK",
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.reason = reason

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if not 200 <= self.status_code < 300:
            raise requests.HTTPError(f"{self.status_code} {self.reason}")


Handler = Union[FakeResponse, Exception, Callable[[str, Dict[str, Any]], FakeResponse]]


class FakeSession:
    """Replays queued responses and records every call."""

    def __init__(self, responses: Optional[Dict[str, List[Handler]]] = None) -> None:
        self.headers: Dict[str, str] = {}
        self.calls: List[Dict[str, Any]] = []
        self._responses = {key: list(value) for key, value in (responses or {}).items()}

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Any = None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        queue = self._responses.get(url)
        if not queue:
            raise AssertionError(f"unexpected request to {url}")
        handler = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(handler, Exception):
            raise handler
        if callable(handler) and not isinstance(handler, FakeResponse):
            return handler(url, dict(params or {}))
        return handler


# -----------------------------
# Helpers
# -----------------------------
def image_bytes(size=(1600, 1200), fmt: str = "PNG", mode: str = "RGB", color=(99, 37, 244)) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color if mode == "RGB" else color + (128,)).save(buffer, format=fmt)
    return buffer.getvalue()


def make_record(record_id: str = "rec1", client: str = "Acme Co", scores=None, **fields) -> Record:
    data: Dict[str, Any] = {"Client": client}
    for category, score in zip(CATEGORIES, scores or [3, 4, 5, 2, 1, 4, 3, 5]):
        data[f"{category} Score"] = score
    data.update({key.replace("_", " "): value for key, value in fields.items()})
    return Record(id=record_id, fields=data)


@pytest.fixture
def record_factory():
    return make_record
