"""High-level orchestration: fetch records, localise images, render reports."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .airtable import AirtableClient
from .assets import copy_assets
from .config import ReportConfig
from .images import ImageDownloader, update_records_with_local_images
from .models import Record
from .processor import DataProcessor
from .report import REPORT_FILENAME, generate_report
from .templates import TemplateRenderer
from .utils import client_folders

logger = logging.getLogger("audit_reports")


class RecordNotFoundError(LookupError):
    """The requested record does not exist or carries no data."""


@dataclass
class ReportResult:
    """Where one client's report was written."""

    client: str
    folder: str
    output_path: Path


def load_cached_records(cache_path: Path, record_id: str) -> Optional[List[Record]]:
    """Records cached for ``record_id`` by an earlier development run, if any."""
    try:
        payload = json.loads(Path(cache_path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable cache %s: %s", cache_path, exc)
        return None
    if not isinstance(payload, dict) or payload.get("record_id") != record_id:
        return None
    return [Record.from_dict(item) for item in payload.get("records") or []]


def save_cached_records(cache_path: Path, record_id: str, records: List[Record]) -> None:
    cache_path = Path(cache_path)
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    payload: Dict[str, Any] = {
        "record_id": record_id,
        "records": [record.to_dict() for record in records],
    }
    cache_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Cached record %s at %s", record_id, cache_path)


def fetch_records(
    client: AirtableClient,
    downloader: ImageDownloader,
    record_id: Optional[str] = None,
) -> List[Record]:
    """Fetch one record (or all of them) and rewrite image fields to local files."""
    if record_id:
        raw = client.get_by_id(record_id)
        if raw is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        if not raw.get("fields"):
            raise RecordNotFoundError(f"Record {record_id} has no data")
        raw_records = [raw]
    else:
        raw_records = client.list_all()

    records = client.normalize_records(raw_records)
    downloaded = downloader.download_all_images(records)
    return update_records_with_local_images(records, downloaded)


def load_records(
    config: ReportConfig,
    client: AirtableClient,
    record_id: Optional[str] = None,
) -> List[Record]:
    """Fetch records, consulting the development cache for single-record runs."""
    downloader = ImageDownloader(config.output_root, timeout=config.download_timeout)
    use_cache = config.dev_mode and bool(record_id)
    if use_cache:
        cached = load_cached_records(config.cache_path, record_id)
        if cached:
            logger.info("Using cached data for record %s", record_id)
            return cached
        logger.info("No cached data for record %s, fetching from Airtable", record_id)

    records = fetch_records(client, downloader, record_id)
    if use_cache:
        save_cached_records(config.cache_path, record_id, records)
    return records


def generate_reports(
    records: List[Record],
    config: ReportConfig,
    renderer: Optional[TemplateRenderer] = None,
    report_date: Optional[str] = None,
    asset_version: Optional[str] = None,
) -> List[ReportResult]:
    """Write one report per distinct client, each from that client's records only."""
    renderer = renderer or TemplateRenderer(config.templates_dir)
    processor = DataProcessor(records)
    clients = processor.clients()
    logger.info("Found audits for %d client(s): %s", len(clients), ", ".join(clients))

    folders = client_folders(clients)
    results: List[ReportResult] = []
    for name in clients:
        folder = folders[name]
        output_path = config.output_root / folder / REPORT_FILENAME
        generate_report(
            processor.for_client(name),
            output_path,
            renderer,
            report_date=report_date,
            asset_version=asset_version,
        )
        results.append(ReportResult(client=name, folder=folder, output_path=output_path))
    return results


def build_site(
    records: List[Record],
    config: ReportConfig,
    report_date: Optional[str] = None,
) -> List[ReportResult]:
    """Render reports and copy assets using one shared cache-busting version."""
    version = str(int(time.time() * 1000))
    results = generate_reports(records, config, report_date=report_date, asset_version=version)
    copy_assets(
        config.output_root,
        config.assets_dir,
        [result.folder for result in results],
        version=version,
        keep=config.css_versions_kept,
    )
    return results


def run_pipeline(
    config: ReportConfig,
    client: AirtableClient,
    record_id: Optional[str] = None,
) -> List[ReportResult]:
    """Fetch, render and write every report for one invocation."""
    records = load_records(config, client, record_id)
    if not records:
        logger.warning("No records returned, nothing to render")
        return []
    return build_site(records, config)
