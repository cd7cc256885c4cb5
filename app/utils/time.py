import re
import time
from datetime import date, datetime, timezone
from typing import Optional

_DMY = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")
_YMD = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_iso(ts) -> str:
    """
    Normalize a timestamp to an ISO-8601 UTC string.
    Accepts:
    - datetime: naive values are taken as UTC
    - int/float: epoch ms (or seconds if suspiciously small)
    - ISO-8601 string (supports trailing 'Z')
    Fallback: current time.
    """
    try:
        if ts is None:
            return utc_now_iso()
        if isinstance(ts, datetime):
            dt = ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
            return dt.astimezone(timezone.utc).isoformat()
        if isinstance(ts, (int, float)):
            v = int(ts)
            # Heuristic: if looks like seconds (< 10^12), convert to ms.
            ms = v * 1000 if 0 < v < 10**12 else v
            return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()
        if isinstance(ts, str):
            s = ts.strip()
            if not s:
                return utc_now_iso()
            if s.endswith("Z"):
                s = s[:-1] + "+00:00"
            dt = datetime.fromisoformat(s)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt.astimezone(timezone.utc).isoformat()
    except (ValueError, OverflowError, OSError):
        pass
    return utc_now_iso()


def normalize_date(value) -> Optional[str]:
    """
    Canonical form for calendar dates: ISO 'YYYY-MM-DD'.

    Accepts DD/MM/YYYY (also '-' or '.' separators), YYYY-MM-DD, and ISO
    datetimes (the date part is kept). Returns None when the value is not a
    real calendar date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    try:
        m = _DMY.match(s)
        if m:
            d, mo, y = (int(x) for x in m.groups())
            return date(y, mo, d).isoformat()
        m = _YMD.match(s)
        if m:
            y, mo, d = (int(x) for x in m.groups())
            return date(y, mo, d).isoformat()
        if "T" in s:
            if s.endswith("Z"):
                s = s[:-1] + "+00:00"
            return datetime.fromisoformat(s).date().isoformat()
    except ValueError:
        return None
    return None
