# src/utils/misc_utils.py
import math
import re
import hashlib
from typing import Any, Optional


def generate_canonical_id(*args: Any) -> str:
    """Generates a consistent, URL-safe ID from one or more values."""
    combined = "_".join(str(arg).lower() for arg in args if arg is not None and arg != "")
    safe_string = re.sub(r"[^\w]+", "", combined.replace(" ", "_"))
    if len(safe_string) > 100:
        return hashlib.sha1(safe_string.encode()).hexdigest()[:16]
    return safe_string


def safe_int(value: Any, default: int = 0) -> int:
    """Lenient int conversion for API values like "16", 16.0 or "N/A"."""
    number = safe_float(value)
    if number is None:
        return default
    return int(number)


def safe_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(str(value).strip().rstrip("%"))
    except ValueError:
        return default
    if not math.isfinite(number):
        return default
    return number


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
