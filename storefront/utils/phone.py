import re
from typing import Optional

_SEPARATORS = re.compile(r"[\s\-()]")
_PREFIX = re.compile(r"^(?:\+?91|0)(?=\d{10}$)")


def normalize_indian_mobile(value: str) -> Optional[str]:
    """
    Strip spaces, dashes, brackets and a +91 / 91 / 0 prefix.
    Returns the 10-digit number, or None when it is not a valid Indian mobile.
    """
    if not value:
        return None
    num = _PREFIX.sub("", _SEPARATORS.sub("", value))
    if not re.fullmatch(r"[6-9]\d{9}", num):
        return None
    return num
