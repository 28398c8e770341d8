from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any

from vidtube.config import get_settings
from vidtube.utils.log import redact

_lock = Lock()

# Never written to the audit trail, even when a caller passes them in.
_AUDIT_SECRET_KEYS = {
    "password",
    "oldpassword",
    "newpassword",
    "password_hash",
    "accesstoken",
    "refreshtoken",
    "access_token",
    "refresh_token",
    "token",
}
_AUDIT_PATH_KEYS = {"path", "file", "filename", "localpath", "local_path"}
_MAX_META_STR = 200


def _audit_path() -> Path:
    return Path(get_settings().log_dir) / "audit.jsonl"


def _scrub_value(key: str, value: Any) -> Any:
    name = key.strip().lower()
    if name in _AUDIT_SECRET_KEYS or name in _AUDIT_PATH_KEYS:
        return {"redacted": True}
    if isinstance(value, str):
        return redact(value) if len(value) <= _MAX_META_STR else {"redacted": True, "len": len(value)}
    # Nested structures are summarized, never copied.
    if isinstance(value, dict):
        return {"keys": len(value)}
    if isinstance(value, (list, tuple)):
        return {"count": len(value)}
    return value


def _scrub_meta(meta: dict[str, Any]) -> dict[str, Any]:
    return {str(k): _scrub_value(str(k), v) for k, v in meta.items()}


def _write_record(rec: dict[str, Any]) -> None:
    path = _audit_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with _lock, path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(rec, ensure_ascii=False, separators=(",", ":")) + "\n")


def emit(
    event_type: str,
    *,
    request_id: str | None = None,
    user_id: str | None = None,
    target_id: str | None = None,
    outcome: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    """
    Append one audit record (newline-delimited JSON).

    Records are coarse: identifiers and outcomes only, never credentials or tokens.
    """
    ids = {"request_id": request_id, "user_id": user_id, "target_id": target_id}
    rec: dict[str, Any] = {
        "ts": datetime.now(tz=timezone.utc).isoformat(),
        "event": event_type,
        "outcome": outcome or "unknown",
        **{k: v for k, v in ids.items() if v},
    }
    if meta:
        rec["meta"] = _scrub_meta(meta)
    _write_record(rec)


def read_events(*, limit: int = 200) -> list[dict[str, Any]]:
    """Most recent audit records, oldest first."""
    path = _audit_path()
    try:
        with _lock:
            lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []
    events: list[dict[str, Any]] = []
    for raw in lines[-max(1, int(limit)) :]:
        if not raw.strip():
            continue
        try:
            rec = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if isinstance(rec, dict):
            events.append(rec)
    return events
