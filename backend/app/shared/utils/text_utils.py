"""
Text Utility Functions
Cleaning scraped post text and normalizing LinkedIn profile URLs.
"""
import re
from typing import Optional
from urllib.parse import urlparse, urlunparse

_EMOJI_PATTERN = re.compile(
    "[\U0001F300-\U0001F5FF\U0001F600-\U0001F64F\U0001F680-\U0001F6FF☀-⛿✀-➿]"
)
_CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_URL_PATTERN = re.compile(r"https?://\S+")
_WWW_PATTERN = re.compile(r"www\.\S+")
_EMPHASIS_PATTERN = re.compile(r"[_*~`]+")
_WHITESPACE_PATTERN = re.compile(r"\s+")

# Latin, Latin extended and Cyrillic letters
_LETTER_PATTERN = re.compile(r"[A-Za-zÀ-ɏЀ-ӿ]")


def clean_text(text: Optional[str]) -> str:
    """
    Clean scraped text for storage and embedding.

    Removes emojis, control characters, URLs and markdown emphasis
    characters, then collapses whitespace.

    Examples:
        >>> clean_text("🚀 We're *hiring*!  https://x.co/abc")
        "We're hiring !"
    """
    if not text:
        return ""

    s = _EMOJI_PATTERN.sub("", text)
    s = _CONTROL_PATTERN.sub("", s)
    s = _URL_PATTERN.sub("", s)
    s = _WWW_PATTERN.sub("", s)
    s = _EMPHASIS_PATTERN.sub(" ", s)
    return _WHITESPACE_PATTERN.sub(" ", s).strip()


def has_letters(value: Optional[str]) -> bool:
    """True if the value contains at least one Latin or Cyrillic letter."""
    return bool(value and _LETTER_PATTERN.search(value))


def normalize_linkedin_url(url: Optional[str]) -> str:
    """
    Normalize a LinkedIn URL to scheme://host/path without query,
    fragment or trailing slashes. Used as the profile lookup key.

    Example:
        Input:  https://www.linkedin.com/in/jane-doe/?miniProfileUrn=...
        Output: https://www.linkedin.com/in/jane-doe
    """
    if not url:
        return ""

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    if not parsed.scheme or not parsed.netloc:
        return url

    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path.rstrip("/"),
        "",
        "",
        ""
    ))
