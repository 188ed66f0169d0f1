"""Relative-time filter operands.

saved reports want filters like "last 7 days" that stay relative, so a
filter value may be a now() expression instead of a literal:

    {now('D', -7, 'yyyy-MM-dd')}      -> 2024-03-13
    now(h, 1, timestamp)              -> epoch millis, an hour from now

units are D (days), W (weeks), M (months), Y (years), h (hours) and
m (minutes); anything else counts as days. the format is a java style date
pattern (it's what the request files already use for bucket formats) or
"timestamp". both compilers expand operands before rendering, so a request
filters the same way on every backend.
"""

import re
from datetime import datetime

import structlog
from dateutil.relativedelta import relativedelta

from aggforge.models.config import DimensionConfig

logger = structlog.get_logger(__name__)

NOW_RE = re.compile(
    r"""^\s*\{?\s*now\(\s*['"]?(?P<unit>\w+)['"]?\s*,"""
    r"""\s*(?P<interval>[+-]?\d+)\s*,"""
    r"""\s*['"]?(?P<format>[^'"]+?)['"]?\s*\)\s*\}?\s*$"""
)

TIMESTAMP_FORMAT = "timestamp"

UNITS = {
    "D": "days",
    "W": "weeks",
    "M": "months",
    "Y": "years",
    "h": "hours",
    "m": "minutes",
}

JAVA_DATE_TOKENS = {
    "yyyy": "%Y",
    "yy": "%y",
    "MM": "%m",
    "dd": "%d",
    "HH": "%H",
    "hh": "%I",
    "mm": "%M",
    "ss": "%S",
    "a": "%p",
}
_TOKEN_RE = re.compile(r"([A-Za-z])\1*")


def _now() -> datetime:
    # local wall clock, naive
    return datetime.now()


def java_to_strftime(pattern: str) -> str:
    """Translate a java date pattern like "yyyy-MM-dd HH:mm" to strftime.

    Raises:
        ValueError: for pattern letters without a strftime counterpart.
    """

    def token(match: re.Match[str]) -> str:
        text = match.group(0)
        if text not in JAVA_DATE_TOKENS:
            raise ValueError(f"Unsupported date pattern token: {text}")
        return JAVA_DATE_TOKENS[text]

    return _TOKEN_RE.sub(token, pattern.replace("%", "%%"))


def expand_operand(value: str, now: datetime | None = None) -> str:
    """Expand a now() expression, anything else comes back unchanged.

    an expression we can't format is logged and left as-is - the backend
    gets the raw text and rejects it, same as any other bad operand.
    """
    match = NOW_RE.match(value)
    if match is None:
        return value

    unit = UNITS.get(match["unit"], "days")
    moment = (now or _now()) + relativedelta(**{unit: int(match["interval"])})

    fmt = match["format"].strip()
    if fmt == TIMESTAMP_FORMAT:
        return str(int(moment.timestamp() * 1000))
    try:
        return moment.strftime(java_to_strftime(fmt))
    except ValueError:
        logger.warning("unsupported_now_format", value=value, format=fmt)
        return value


def expand_filter_values(config: DimensionConfig, now: datetime | None = None) -> DimensionConfig:
    """Copy of a filter with every now() operand expanded.

    all operands of one filter see the same instant. returns the config
    itself when nothing needed expanding.
    """
    if not any(NOW_RE.match(v) for v in config.values):
        return config
    moment = now or _now()
    return config.model_copy(update={"values": [expand_operand(v, moment) for v in config.values]})
