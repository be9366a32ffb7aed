# core/logs.py
import json
from datetime import datetime, timezone
from typing import Any


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def json_log(level: str, **fields: Any) -> None:
    """One JSON object per line on stdout. Non-serialisable values fall back to str()."""
    print(json.dumps({"ts": now_iso(), "level": level, **fields}, default=str), flush=True)


def summarize_exc(e: Exception) -> str:
    cls = e.__class__.__name__
    status_code = getattr(e, "code", None) or getattr(e, "status", None) or getattr(e, "status_code", None)
    extra = getattr(e, "message", None) or getattr(e, "detail", None) or ""
    return f"{cls} status={status_code} msg={str(e)} extra={extra}".strip()
