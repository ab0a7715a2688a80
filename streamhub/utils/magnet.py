import re
from typing import Optional
from urllib.parse import parse_qs

MAGNET_PREFIX = "magnet:?xt=urn:btih:"

# 40 hex chars after btih:, wherever it sits in the query string
INFO_HASH_RE = re.compile(r"btih:([a-f0-9]{40})", re.IGNORECASE)


def is_magnet_link(link: str) -> bool:
    if not isinstance(link, str):
        return False
    return link.strip().lower().startswith(MAGNET_PREFIX)


def extract_info_hash(link: str) -> Optional[str]:
    """Lowercase hex info hash of a magnet link, or None."""
    if not isinstance(link, str):
        return None
    match = INFO_HASH_RE.search(link)
    return match.group(1).lower() if match else None


def extract_display_name(link: str) -> Optional[str]:
    if not is_magnet_link(link):
        return None
    query = link.strip().split("?", 1)[1]
    names = parse_qs(query).get("dn")
    return names[0] if names else None


def build_magnet(info_hash: str) -> str:
    return f"{MAGNET_PREFIX}{info_hash}"
