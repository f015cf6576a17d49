"""Thin client for the Airtable REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from .config import AirtableSettings
from .models import Record

logger = logging.getLogger("audit_reports")

API_ROOT = "https://api.airtable.com/v0"
DEFAULT_PARAMS = {"timeZone": "UTC", "userLocale": "en"}
NOT_FOUND_STATUSES = {404, 422}


class ApiError(RuntimeError):
    """Non-2xx or malformed response from the Airtable API."""

    def __init__(self, status: Optional[int], message: str) -> None:
        super().__init__(f"Airtable API error: {status} {message}".strip())
        self.status = status


class AirtableClient:
    """Paginated reads of one Airtable table."""

    def __init__(
        self,
        settings: AirtableSettings,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.settings = settings
        self.base_url = f"{API_ROOT}/{settings.base_id}/{quote(settings.table_name, safe='')}"
        self.session = session or requests.Session()
        self.timeout = timeout
        self.session.headers.update(
            {
                "Authorization": f"Bearer {settings.api_key}",
                "Content-Type": "application/json",
            }
        )

    def _get(self, path: str = "", params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        query = dict(DEFAULT_PARAMS)
        if params:
            query.update(params)
        try:
            resp = self.session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ApiError(None, f"request to {url} failed: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            raise ApiError(resp.status_code, resp.reason or "")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ApiError(resp.status_code, "response body is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise ApiError(resp.status_code, "unexpected response shape")
        return payload

    def _paginate(self, params: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        offset: Optional[str] = None
        while True:
            query = dict(params or {})
            if offset:
                query["offset"] = offset
            payload = self._get(params=query)
            page = payload.get("records") or []
            records.extend(page)
            logger.debug("Fetched %d records. Total: %d", len(page), len(records))
            offset = payload.get("offset")
            if not offset:
                break
        return records

    def list_all(self) -> List[Dict[str, Any]]:
        """Fetch every record in the table, following the offset cursor."""
        records = self._paginate()
        logger.info("Fetched %d records from Airtable", len(records))
        return records

    def list_filtered(self, formula: str) -> List[Dict[str, Any]]:
        """Fetch the records matching an Airtable ``filterByFormula`` expression."""
        records = self._paginate({"filterByFormula": formula})
        logger.info("Fetched %d filtered records from Airtable", len(records))
        return records

    def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Return one raw record, or ``None`` when Airtable reports it absent."""
        try:
            record = self._get(f"/{quote(record_id, safe='')}")
        except ApiError as exc:
            if exc.status in NOT_FOUND_STATUSES:
                logger.debug("Record %s not found (status %s)", record_id, exc.status)
                return None
            raise
        logger.info("Fetched record %s from Airtable", record_id)
        return record

    @staticmethod
    def extract_fields(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Project raw records to ``{"id": ..., **fields}``."""
        return [{"id": record.get("id"), **(record.get("fields") or {})} for record in records]

    @classmethod
    def normalize_records(cls, records: List[Dict[str, Any]]) -> List[Record]:
        return [Record.from_dict(item) for item in cls.extract_fields(records)]
