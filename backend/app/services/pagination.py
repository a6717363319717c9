import base64
import json
from dataclasses import dataclass


@dataclass(frozen=True)
class PageCursor:
    """Keyset position: sort value in epoch microseconds plus the storage key."""

    t: int
    id: str


def encode_cursor(cursor: PageCursor) -> str:
    raw = json.dumps({"t": cursor.t, "id": cursor.id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("utf-8").rstrip("=")


def decode_cursor(value: str | None) -> PageCursor | None:
    raw = (value or "").strip()
    if not raw:
        return None
    padded = raw + "=" * (-len(raw) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("utf-8")).decode("utf-8")
        data = json.loads(decoded)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    t, record_id = data.get("t"), data.get("id")
    if isinstance(t, bool) or not isinstance(t, int) or not isinstance(record_id, str):
        return None
    return PageCursor(t=t, id=record_id)
