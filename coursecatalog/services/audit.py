"""
Run log threaded through every import phase, and the audit files it ends up in.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging

from coursecatalog.schemas.results import AuditEntry, ImportResult

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "INFO": logging.INFO,
    "SUCCESS": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


class ImportLog:
    """Accumulates audit entries plus the error and warning messages of one run."""

    def __init__(self):
        self.entries: List[AuditEntry] = []
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def log(self, level: str, stage: str, message: str, details: Optional[Dict[str, Any]] = None) -> AuditEntry:
        entry = AuditEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            stage=stage,
            message=message,
            details=details,
        )
        self.entries.append(entry)
        if level == "ERROR":
            self.errors.append(message)
        elif level == "WARN":
            self.warnings.append(message)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), f"[{stage}] {message}")
        return entry

    def info(self, stage: str, message: str, details: Optional[Dict[str, Any]] = None) -> AuditEntry:
        return self.log("INFO", stage, message, details)

    def success(self, stage: str, message: str, details: Optional[Dict[str, Any]] = None) -> AuditEntry:
        return self.log("SUCCESS", stage, message, details)

    def warn(self, stage: str, message: str, details: Optional[Dict[str, Any]] = None) -> AuditEntry:
        return self.log("WARN", stage, message, details)

    def error(self, stage: str, message: str, details: Optional[Dict[str, Any]] = None) -> AuditEntry:
        return self.log("ERROR", stage, message, details)


def audit_file_name(start_time: datetime) -> str:
    stamp = start_time.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"import-{stamp.replace(':', '-').replace('.', '-')}.json"


def audit_log_path(log_dir: Path, start_time: datetime) -> Path:
    return Path(log_dir) / audit_file_name(start_time)


def write_audit_log(result: ImportResult, log_dir: Path) -> Path:
    path = audit_log_path(log_dir, result.start_time)
    path.parent.mkdir(parents=True, exist_ok=True)
    result.audit_log_path = str(path)
    path.write_text(json.dumps(result.to_json_dict(), indent=2), encoding="utf-8")
    return path


def list_audit_logs(log_dir: Path, limit: int = 20) -> List[Dict[str, Any]]:
    """Newest first: name, success flag and start time of each stored run."""
    log_dir = Path(log_dir)
    if not log_dir.is_dir():
        return []
    runs = []
    for path in sorted(log_dir.glob("import-*.json"), reverse=True)[:limit]:
        try:
            body = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping unreadable audit log {path}: {e}")
            continue
        runs.append({
            "name": path.name,
            "success": bool(body.get("success")),
            "dryRun": bool(body.get("dryRun")),
            "startTime": body.get("startTime"),
            "errors": len(body.get("errors") or []),
            "warnings": len(body.get("warnings") or []),
        })
    return runs


def read_audit_log(log_dir: Path, name: str) -> Optional[Dict[str, Any]]:
    # Names come from callers; refuse anything that is not a bare audit file name.
    if Path(name).name != name or not name.startswith("import-") or not name.endswith(".json"):
        return None
    path = Path(log_dir) / name
    if not path.is_file():
        return None
    return json.loads(path.read_text(encoding="utf-8"))
