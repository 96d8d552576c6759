"""Text utilities for report labels and free-text record fields."""
import re
from datetime import datetime
from typing import Optional, Sequence


def sanitize_text(text: Optional[str]) -> str:
    """Clean free text (session notes, names) for safe JSON output.

    Removes control characters except newlines and tabs, collapses runs of
    spaces and trims every line.

    Examples:
        >>> sanitize_text("  Fractions\\x07 review  ")
        'Fractions review'
        >>> sanitize_text(None)
        ''
    """
    if text is None:
        return ""

    text = str(text)
    text = re.sub(r'[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F-\x9F]', '', text)
    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    return '\n'.join(line.strip() for line in text.split('\n')).strip()


def humanize_key(key: str) -> str:
    """``"problem_solving"`` -> ``"Problem solving"``."""
    words = key.replace("_", " ").strip()
    return words[:1].upper() + words[1:]


def join_words(words: Sequence[str]) -> str:
    """Join with commas and a final "and": ``a, b and c``."""
    words = [w for w in words if w]
    if len(words) <= 1:
        return "".join(words)
    return ", ".join(words[:-1]) + " and " + words[-1]


def format_duration(start: Optional[datetime], end: Optional[datetime]) -> str:
    """``"1h 30m"`` or ``"45m"``; empty when either bound is missing."""
    if start is None or end is None:
        return ""
    minutes = max(0, int((end - start).total_seconds() // 60))
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
