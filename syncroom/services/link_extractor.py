# syncroom/services/link_extractor.py
"""Pull track and image links out of a chat message body."""
from __future__ import annotations

import re
from typing import FrozenSet, NamedTuple, Optional
from urllib.parse import parse_qs, urlsplit

URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)

TRACK_HOSTS: FrozenSet[str] = frozenset(
    {"soundcloud.com", "on.soundcloud.com", "www.soundcloud.com", "m.soundcloud.com"}
)
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")
IMAGE_QUERY_PARAMS: FrozenSet[str] = frozenset({"image", "img", "photo"})


class Links(NamedTuple):
    track_url: Optional[str]
    image_url: Optional[str]


def _split(url: str):
    try:
        return urlsplit(url)
    except ValueError:
        # e.g. an unbalanced "[" in the host part
        return None


def is_track_url(url: str) -> bool:
    parts = _split(url)
    if parts is None:
        return False
    # the host must be followed by a path, even a bare "/"
    return (parts.hostname or "").lower() in TRACK_HOSTS and parts.path.startswith("/")


def is_image_url(url: str) -> bool:
    parts = _split(url)
    if parts is None:
        return False
    if parts.path.lower().endswith(IMAGE_EXTENSIONS):
        return True
    params = parse_qs(parts.query, keep_blank_values=True)
    return any(name.lower() in IMAGE_QUERY_PARAMS for name in params)


def extract_links(text: str) -> Links:
    """
    Scan ``text`` for URLs and keep the first track link and the first image link.

    The two are picked independently, so one URL may be both.
    """
    track_url: Optional[str] = None
    image_url: Optional[str] = None

    for match in URL_PATTERN.finditer(text):
        url = match.group(0)
        if track_url is None and is_track_url(url):
            track_url = url
        if image_url is None and is_image_url(url):
            image_url = url
        if track_url and image_url:
            break

    return Links(track_url, image_url)
