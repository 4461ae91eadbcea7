from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

GOOGLE_OWNED_SUFFIXES = (
    "google.com",
    "googleusercontent.com",
    "gstatic.com",
)


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
    except ValueError:
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


def is_google_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if host.startswith("google."):
        return True
    return any(host == suffix or host.endswith("." + suffix) for suffix in GOOGLE_OWNED_SUFFIXES)


def unwrap_result_url(href: str) -> str:
    """Resolve Google's ``/url?q=`` redirect links to their target."""
    if href.startswith("/url?"):
        params = parse_qs(urlparse(href).query)
        targets = params.get("q") or params.get("url") or []
        href = targets[0] if targets else ""
    return href if is_valid_url(href) else ""


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."
