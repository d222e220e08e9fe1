"""
Date patterns in the ``yyyy-MM-dd hh:mm:ss`` style.

Patterns are translated to ``strftime``/``strptime`` formats. Supported
letters are y, M, d, H, h, m, s, S, a and E; text in single quotes is copied
verbatim (``''`` is a single quote). ``h`` maps to the 24-hour clock unless
the pattern has an ``a`` (AM/PM) marker; then it is the 12-hour clock.
``S`` stands for milliseconds and is always rendered with three digits. A
pattern that contains ``%`` is taken as a strftime format as is.
"""

import re
from datetime import date, datetime
from functools import lru_cache

DEFAULT_DATE_FORMAT = "yyyy-MM-dd hh:mm:ss"

_TOKEN_RE = re.compile(r"'(?:[^']|'')*'|([A-Za-z])\1*|[^A-Za-z']+|'")


def _translate_letters(letters: str, twelve_hour: bool) -> str:
    letter, width = letters[0], len(letters)
    if letter == "y":
        return "%y" if width == 2 else "%Y"  # noqa: PLR2004
    if letter == "M":
        if width >= 4:  # noqa: PLR2004
            return "%B"
        return "%b" if width == 3 else "%m"  # noqa: PLR2004
    if letter == "E":
        return "%A" if width >= 4 else "%a"  # noqa: PLR2004
    if letter == "h":
        return "%I" if twelve_hour else "%H"
    simple = {
        "d": "%d",
        "H": "%H",
        "m": "%M",
        "s": "%S",
        "S": "%f",
        "a": "%p",
    }
    if letter in simple:
        return simple[letter]
    msg = f"Unsupported letter '{letter}' in date pattern"
    raise ValueError(msg)


@lru_cache(maxsize=32)
def to_strftime(pattern: str) -> str:
    """Translate a date pattern to a strftime format."""
    if "%" in pattern:
        return pattern
    tokens = list(_TOKEN_RE.finditer(pattern))
    twelve_hour = any(match.group(1) == "a" for match in tokens)
    parts = []
    for match in tokens:
        token = match.group(0)
        if token == "'":
            msg = f"Unterminated quote in date pattern '{pattern}'"
            raise ValueError(msg)
        if token.startswith("'"):
            parts.append(token[1:-1].replace("''", "'").replace("%", "%%") or "'")
        elif match.group(1):
            parts.append(_translate_letters(token, twelve_hour))
        else:
            parts.append(token.replace("%", "%%"))
    return "".join(parts)


def format_date(value: date, pattern: str = DEFAULT_DATE_FORMAT) -> str:
    """Render a date or datetime with a date pattern."""
    fmt = to_strftime(pattern)
    if "%" not in pattern and "%f" in fmt:
        millis = f"{getattr(value, 'microsecond', 0) // 1000:03d}"
        fmt = fmt.replace("%f", millis)
    return value.strftime(fmt)


def parse_date(text: str, pattern: str = DEFAULT_DATE_FORMAT) -> datetime:
    """Parse text with a date pattern.

    Raises:
        ValueError: If the text does not match the pattern.
    """
    return datetime.strptime(text.strip(), to_strftime(pattern))
