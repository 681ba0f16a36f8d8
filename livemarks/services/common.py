from urllib.parse import urlsplit


ALLOWED_URL_SCHEMES = {"http", "https"}


def url_error(url: str) -> str | None:
    """Return why ``url`` is not an absolute http(s) URL, or None when it is."""
    if not url:
        return "URL is required"
    try:
        parsed = urlsplit(url)
        parsed.port  # raises on a malformed port
    except ValueError:
        return "Invalid URL"
    if not parsed.scheme:
        return "Invalid URL"
    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES:
        return "URL must start with http(s)"
    if not parsed.hostname or any(ch.isspace() for ch in url):
        return "Invalid URL"
    return None


def safe_next_path(raw_next: str | None, fallback: str) -> str:
    candidate = (raw_next or "").strip()
    if not candidate.startswith("/") or candidate.startswith("//"):
        return fallback
    if "\\" in candidate or any(ord(ch) < 32 or ord(ch) == 127 for ch in candidate):
        return fallback
    parsed = urlsplit(candidate)
    if parsed.scheme or parsed.netloc:
        return fallback
    return candidate
