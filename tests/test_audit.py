import json
import logging
from datetime import datetime, timezone

from coursecatalog.jobs import import_job
from coursecatalog.schemas.results import ImportResult
from coursecatalog.services.audit import (
    ImportLog,
    audit_file_name,
    list_audit_logs,
    read_audit_log,
    write_audit_log,
)


def test_log_levels_feed_errors_and_warnings(caplog):
    log = ImportLog()
    with caplog.at_level(logging.INFO, logger="coursecatalog.services.audit"):
        log.info("LOAD", "loaded")
        log.warn("VALIDATION", "odd field")
        log.error("TRANSACTION", "rolled back", {"cause": "boom"})
        log.success("COMPLETE", "done")

    assert [e.level for e in log.entries] == ["INFO", "WARN", "ERROR", "SUCCESS"]
    assert log.warnings == ["odd field"]
    assert log.errors == ["rolled back"]
    assert log.entries[2].details == {"cause": "boom"}
    assert "[TRANSACTION] rolled back" in caplog.text


def test_audit_file_name_replaces_colons_and_dots():
    start = datetime(2024, 3, 5, 14, 30, 1, 250000, tzinfo=timezone.utc)
    assert audit_file_name(start) == "import-2024-03-05T14-30-01-250Z.json"


def test_write_and_read_back(tmp_path):
    result = ImportResult(success=True, snapshot_version="1.0.0", snapshot_checksum="abcd" * 4)
    result.finish()

    path = write_audit_log(result, tmp_path / "logs")

    body = json.loads(path.read_text(encoding="utf-8"))
    assert body["snapshotChecksum"] == "abcdabcdabcdabcd"
    assert body["auditLogPath"] == str(path)
    assert read_audit_log(tmp_path / "logs", path.name) == body
    assert list_audit_logs(tmp_path / "logs")[0]["name"] == path.name


def test_read_refuses_paths_outside_log_dir(tmp_path):
    (tmp_path / "secret.json").write_text("{}", encoding="utf-8")
    assert read_audit_log(tmp_path / "logs", "../secret.json") is None
    assert read_audit_log(tmp_path / "logs", "import-missing.json") is None


def test_list_skips_unreadable_files(tmp_path):
    (tmp_path / "import-broken.json").write_text("{", encoding="utf-8")
    assert list_audit_logs(tmp_path) == []
    assert list_audit_logs(tmp_path / "does-not-exist") == []


def test_import_job_returns_serialised_result(monkeypatch):
    async def fake_run(dry_run=False):
        return ImportResult(success=True, dry_run=dry_run)

    monkeypatch.setattr(import_job, "run_catalog_import", fake_run)

    body = import_job.catalog_import_job(dry_run=True)

    assert body["success"] is True
    assert body["dryRun"] is True
