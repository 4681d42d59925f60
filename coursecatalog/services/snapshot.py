"""
Snapshot loader: locate the catalog snapshot file, checksum it and normalise
its timestamp fields.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any, Dict, Sequence
import json
import logging

from coursecatalog.core.errors import SnapshotFormatError, SnapshotNotFoundError
from coursecatalog.schemas.snapshot import SNAPSHOT_ARRAYS

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ("createdAt", "updatedAt", "startedAt", "completedAt", "answeredAt")


@dataclass
class LoadedSnapshot:
    path: Path
    data: Dict[str, Any]
    checksum: str

    @property
    def version(self) -> str:
        return str(self.data.get("version") or "")


def checksum(raw: str) -> str:
    """First 16 hex digits of the SHA-256 of the snapshot text."""
    return sha256(raw.encode("utf-8")).hexdigest()[:16]


def parse_timestamp(value: Any) -> Any:
    """ISO-8601 strings (``Z`` allowed) and epoch milliseconds become aware datetimes.

    Anything unparseable is returned untouched for the validator to report.
    """
    if value is None or isinstance(value, datetime):
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


def parse_timestamps(record: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(record)
    for key in TIMESTAMP_FIELDS:
        if key in out:
            out[key] = parse_timestamp(out[key])
    return out


def load_snapshot(paths: Sequence[Path]) -> LoadedSnapshot:
    """Read the first snapshot file that exists among ``paths``."""
    for candidate in paths:
        path = Path(candidate)
        if not path.is_file():
            continue
        raw = path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotFormatError(f"Snapshot {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SnapshotFormatError(f"Snapshot {path} must contain a JSON object, got {type(data).__name__}")

        for array in SNAPSHOT_ARRAYS:
            rows = data.get(array)
            if isinstance(rows, list):
                data[array] = [parse_timestamps(r) if isinstance(r, dict) else r for r in rows]

        digest = checksum(raw)
        logger.info(f"Loaded catalog snapshot {path} (checksum {digest})")
        return LoadedSnapshot(path=path, data=data, checksum=digest)

    raise SnapshotNotFoundError(paths)
