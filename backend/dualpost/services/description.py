"""Per-platform text policy: titles and hashtag suffixes."""
from __future__ import annotations

from ..config import settings

DEFAULT_TITLE = "Untitled Video"


def derive_title(base_text: str, max_length: int | None = None) -> str:
    limit = max_length if max_length is not None else settings.youtube_title_max_length
    text = (base_text or "").strip()
    if not text:
        return DEFAULT_TITLE
    return text[:limit].rstrip()


def derive_description(
    platform: str,
    base_text: str,
    hashtags: list[str] | None = None,
) -> str:
    """
    Append the platform's hashtags that the text does not already contain.

    ``hashtags`` overrides the configured suffix for ``platform``.
    """
    tags = hashtags if hashtags is not None else settings.hashtags_for(platform)
    text = (base_text or "").strip()
    missing: list[str] = []
    for tag in tags:
        if tag and tag not in text and tag not in missing:
            missing.append(tag)
    if not missing:
        return text
    return f"{text} {' '.join(missing)}".strip()
