import json
import re

import pytest
import requests

from audit_reports.airtable import AirtableClient
from audit_reports.config import ReportConfig
from audit_reports.images import ImageDownloader
from audit_reports.pipeline import (
    RecordNotFoundError,
    build_site,
    fetch_records,
    generate_reports,
    load_cached_records,
    load_records,
    run_pipeline,
    save_cached_records,
)

from conftest import FakeResponse, FakeSession, image_bytes, make_record


# -----------------------------
# Test doubles
# -----------------------------
class FakeAirtableClient:
    """Serves raw records from memory and counts requests."""

    def __init__(self, records=None):
        self.records = list(records or [])
        self.calls = []

    def get_by_id(self, record_id):
        self.calls.append(("get_by_id", record_id))
        for record in self.records:
            if record["id"] == record_id:
                return record
        return None

    def list_all(self):
        self.calls.append(("list_all", None))
        return list(self.records)

    normalize_records = staticmethod(AirtableClient.normalize_records)


# -----------------------------
# Helpers
# -----------------------------
def _raw(record_id, client, **fields):
    record = make_record(record_id, client=client, **fields)
    return {"id": record.id, "fields": record.fields}


def _config(tmp_path, **overrides):
    return ReportConfig(output_root=tmp_path / "output", **overrides)


def test_generate_reports_one_folder_per_client(tmp_path):
    records = [
        make_record("rec1", client="Acme Co", scores=[1] * 8, **{"Discovery Phase Comments": "Acme hero copy"}),
        make_record("rec2", client="Beta Ltd", scores=[5] * 8, **{"Discovery Phase Comments": "Beta pricing page"}),
        make_record("rec3", client="Acme Co", scores=[3] * 8),
    ]
    config = _config(tmp_path)

    results = generate_reports(records, config, report_date="1 May 2026", asset_version="1")

    assert [(r.client, r.folder) for r in results] == [("Acme Co", "acme-co"), ("Beta Ltd", "beta-ltd")]
    acme = (config.output_root / "acme-co" / "index.html").read_text(encoding="utf-8")
    beta = (config.output_root / "beta-ltd" / "index.html").read_text(encoding="utf-8")
    assert "Beta Ltd" not in acme
    assert "Acme Co" not in beta
    assert "Acme hero copy" in acme and "Acme hero copy" not in beta
    assert "Beta pricing page" in beta and "Beta pricing page" not in acme
    assert "We reviewed 2 audit(s) for Acme Co" in acme
    assert "We reviewed 1 audit(s) for Beta Ltd" in beta
    assert results[0].output_path == config.output_root / "acme-co" / "index.html"


def test_build_site_shares_asset_version(tmp_path):
    config = _config(tmp_path)
    build_site([make_record()], config, report_date="1 May 2026")

    html = (config.output_root / "acme-co" / "index.html").read_text(encoding="utf-8")
    version = re.search(r"report\.css\?v=(\d+)", html).group(1)
    styles = config.output_root / "acme-co" / "assets" / "styles"
    assert (styles / "report.css").is_file()
    assert (styles / f"report.{version}.css").is_file()
    assert (config.output_root / "static" / "logo.svg").is_file()


def test_missing_record_writes_nothing(tmp_path):
    config = _config(tmp_path)
    client = FakeAirtableClient([_raw("rec1", "Acme Co")])

    with pytest.raises(RecordNotFoundError, match="Record recMissing not found"):
        run_pipeline(config, client, "recMissing")
    assert not config.output_root.exists() or not any(config.output_root.iterdir())


def test_record_without_fields_is_rejected(tmp_path):
    client = FakeAirtableClient([{"id": "recEmpty", "fields": {}}])
    with pytest.raises(RecordNotFoundError, match="has no data"):
        load_records(_config(tmp_path), client, "recEmpty")


def test_run_pipeline_all_records(tmp_path):
    config = _config(tmp_path)
    client = FakeAirtableClient([_raw("rec1", "Acme Co"), _raw("rec2", "Beta Ltd")])

    results = run_pipeline(config, client)

    assert [r.folder for r in results] == ["acme-co", "beta-ltd"]
    assert client.calls == [("list_all", None)]
    assert (config.output_root / "beta-ltd" / "index.html").is_file()


def test_run_pipeline_without_records_returns_empty(tmp_path):
    assert run_pipeline(_config(tmp_path), FakeAirtableClient([])) == []


def test_dev_mode_caches_single_record(tmp_path):
    config = _config(tmp_path, dev_mode=True)
    client = FakeAirtableClient([_raw("rec1", "Acme Co", Site="acme.example")])

    first = load_records(config, client, "rec1")
    second = load_records(config, client, "rec1")

    assert client.calls == [("get_by_id", "rec1")]
    assert [r.fields for r in second] == [r.fields for r in first]
    payload = json.loads(config.cache_path.read_text(encoding="utf-8"))
    assert payload["record_id"] == "rec1"
    assert payload["records"][0]["Site"] == "acme.example"


def test_cache_is_ignored_outside_dev_mode(tmp_path):
    config = _config(tmp_path)
    client = FakeAirtableClient([_raw("rec1", "Acme Co")])
    load_records(config, client, "rec1")
    load_records(config, client, "rec1")
    assert len(client.calls) == 2
    assert not config.cache_path.exists()


def test_load_cached_records_for_other_record(tmp_path):
    cache = tmp_path / "dev-cache.json"
    save_cached_records(cache, "rec1", [make_record("rec1")])
    assert load_cached_records(cache, "rec2") is None
    cached = load_cached_records(cache, "rec1")
    assert cached[0].id == "rec1"
    assert cached[0].client == "Acme Co"


@pytest.mark.parametrize("content", ["not json", "[]"])
def test_load_cached_records_tolerates_bad_files(tmp_path, content):
    cache = tmp_path / "dev-cache.json"
    cache.write_text(content, encoding="utf-8")
    assert load_cached_records(cache, "rec1") is None
    assert load_cached_records(tmp_path / "absent.json", "rec1") is None


def test_timed_out_image_is_skipped_and_report_still_generated(tmp_path):
    config = _config(tmp_path)
    png = image_bytes((40, 40))
    session = FakeSession(
        {
            "https://cdn.example/ok.png": [FakeResponse(content=png)],
            "https://cdn.example/slow.png": [requests.Timeout("read timed out")],
        }
    )
    client = FakeAirtableClient(
        [
            _raw(
                "rec1",
                "Acme Co",
                **{
                    "Discovery Phase Screenshots": [
                        {"url": "https://cdn.example/slow.png", "filename": "slow.png"},
                        {"url": "https://cdn.example/ok.png", "filename": "ok.png"},
                    ]
                },
            )
        ]
    )

    records = fetch_records(client, ImageDownloader(config.output_root, session=session), "rec1")
    generate_reports(records, config, report_date="1 May 2026", asset_version="1")

    assert records[0].get("Discovery Phase Screenshots") == "assets/img/acme-co-discovery-2.png"
    html = (config.output_root / "acme-co" / "index.html").read_text(encoding="utf-8")
    assert 'src="assets/img/acme-co-discovery-2.png"' in html
    assert "slow.png" not in html
    assert (config.output_root / "acme-co" / "assets" / "img" / "acme-co-discovery-2.png").is_file()


def test_colliding_client_slugs_get_separate_folders(tmp_path):
    config = _config(tmp_path)
    session = FakeSession(
        {
            "https://cdn.example/a.png": [FakeResponse(content=image_bytes((30, 30), color=(255, 0, 0)))],
            "https://cdn.example/b.png": [FakeResponse(content=image_bytes((30, 30), color=(0, 0, 255)))],
        }
    )
    client = FakeAirtableClient(
        [
            _raw("rec1", "Acme Co", **{"Discovery Phase Screenshots": [{"url": "https://cdn.example/a.png"}]}),
            _raw("rec2", "Acme-Co", **{"Discovery Phase Screenshots": [{"url": "https://cdn.example/b.png"}]}),
        ]
    )

    records = fetch_records(client, ImageDownloader(config.output_root, session=session))
    results = generate_reports(records, config, report_date="1 May 2026", asset_version="1")

    assert [(r.client, r.folder) for r in results] == [("Acme Co", "acme-co"), ("Acme-Co", "acme-co-2")]
    first = (config.output_root / "acme-co" / "index.html").read_text(encoding="utf-8")
    second = (config.output_root / "acme-co-2" / "index.html").read_text(encoding="utf-8")
    assert "Acme Co (ID: rec1)" in first and "rec2" not in first
    assert "Acme-Co (ID: rec2)" in second and "rec1" not in second
    for folder in ("acme-co", "acme-co-2"):
        assert (config.output_root / folder / "assets" / "img" / "acme-co-discovery.png").is_file()
