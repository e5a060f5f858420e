"""
Redaction of sensitive substrings in log text.

Pure text transform applied by the worker before persistence: every
non-overlapping ``ddd-dddd`` fragment is replaced by a fixed marker.
"""

import re
from typing import Tuple

SENSITIVE_PATTERN = re.compile(r"\d{3}-\d{4}")
REDACTION_MARKER = "[REDACTED]"


def redact(text: str, marker: str = REDACTION_MARKER) -> str:
    """
    Replace sensitive fragments in ``text`` with ``marker``.

    Never fails; text without matches is returned unchanged. The marker
    contains no digits, so applying redaction twice changes nothing.
    """
    return SENSITIVE_PATTERN.sub(marker, text)


def redact_with_count(text: str, marker: str = REDACTION_MARKER) -> Tuple[str, int]:
    """Redact ``text`` and also return how many fragments were replaced."""
    return SENSITIVE_PATTERN.subn(marker, text)
