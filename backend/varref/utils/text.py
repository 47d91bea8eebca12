"""Text utilities shared by the resolution pipeline.

This module provides:
- UTF-8 safe truncation for log previews of editor content
- Lookup-key normalization used by fuzzy source/field matching
"""

import re
import unicodedata


def safe_truncate(text: str, max_chars: int = 80, suffix: str = "...") -> str:
    """Safely truncate text for log output.

    Python string slicing already operates on Unicode code points, so CJK
    source names are never split mid-character. The function additionally
    tries to break at a separator so previews stay readable.

    Args:
        text: Text to truncate
        max_chars: Maximum characters (excluding suffix)
        suffix: Suffix to append if truncated (default "...")

    Returns:
        Truncated text with suffix if needed
    """
    if not text or len(text) <= max_chars:
        return text

    truncated = text[:max_chars]

    # Look back up to 20 characters for a good break point
    break_chars = {' ', '\n', '\t', ',', '.', ';', ':', '。', '，', '、'}
    for i in range(min(20, max_chars - 1), 0, -1):
        if truncated[-i] in break_chars:
            truncated = truncated[:-(i - 1)].rstrip() if i > 1 else truncated.rstrip()
            break

    return truncated + suffix


def normalize_key(text: str) -> str:
    """Normalize a source name or field for fuzzy comparison.

    Applies NFKC (folds full-width letters and digits), trims, collapses
    internal whitespace and lowercases.
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text.casefold()
