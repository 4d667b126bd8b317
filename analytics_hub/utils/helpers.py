"""
Helper utilities
"""
from datetime import datetime, timezone
from typing import Any
import re


def safe_number(value: Any, default: float = 0.0) -> float:
    """Parse a metric value (the reporting API sends strings); junk becomes ``default``"""
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return number


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def resource_id(resource_name: str) -> str:
    """Last path segment of a resource name: 'accounts/123' -> '123'"""
    return (resource_name or "").rstrip("/").split("/")[-1]


def iso_utc(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a 'Z' suffix"""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def file_timestamp(moment: datetime) -> str:
    """ISO timestamp safe for file names (':' and '.' become '-')"""
    return re.sub(r"[:.]", "-", iso_utc(moment))
