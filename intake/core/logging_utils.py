"""
Log-safe text helpers.

Questions and prompts come from end users and can be long or contain
personal data, so only a bounded prefix ever reaches the logs.
"""

from intake.core.config import LOG_TEXT_MAX_CHARS


def truncate_text(text: str | None, max_chars: int = LOG_TEXT_MAX_CHARS) -> str:
    """
    Shorten free text for logs.

    Rules:
    - None / empty → "<empty>"
    - Newlines collapsed to spaces
    - Longer than ``max_chars`` → prefix plus "...(N chars)"
    """
    if not text:
        return "<empty>"

    flat = " ".join(text.split())
    if len(flat) <= max_chars:
        return flat

    return f"{flat[:max_chars]}...({len(flat)} chars)"
