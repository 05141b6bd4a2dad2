# core/urls.py
import re
from typing import Callable, List, Optional, Tuple
from urllib.parse import parse_qs, quote, unquote, urlparse, urlsplit, urlunsplit

from .models import ListUrl, RetailerKind

TARGET_CANONICAL = "https://www.target.com/gift-registry/gift-giver?registryId={}"

_TARGET_GIFT_PATH = re.compile(r"/gift-registry/gift/([^/?#]+)", re.IGNORECASE)


def target_registry_id(url: str) -> Optional[str]:
    """Pull the registry identifier out of either Target registry URL shape."""
    parsed = urlparse(url)
    path = parsed.path.lower()
    if "/gift-registry/gift-giver" in path:
        for key, values in parse_qs(parsed.query).items():
            if key.lower() == "registryid" and values and values[0]:
                return values[0]
        return None
    m = _TARGET_GIFT_PATH.search(parsed.path)
    if m:
        return unquote(m.group(1))
    return None


def _canonical_target(url: str) -> Optional[str]:
    registry_id = target_registry_id(url)
    if not registry_id:
        return None
    return TARGET_CANONICAL.format(quote(registry_id, safe=""))


# (host fragment, path fragments, kind); first match wins, empty path list matches any path.
_RULES: List[Tuple[str, Tuple[str, ...], RetailerKind]] = [
    ("amazon.", ("/hz/wishlist/", "/gp/registry/wishlist/", "/gp/registry/list/"), RetailerKind.AMAZON_WISHLIST),
    ("amazon.", ("/registries/", "/wedding/registry/", "/baby-reg/", "/gp/registry/", "/registry/"),
     RetailerKind.AMAZON_REGISTRY),
    ("amazon.", (), RetailerKind.AMAZON_WISHLIST),
    ("target.com", ("/gift-registry/gift/", "/gift-registry/gift-giver"), RetailerKind.TARGET_REGISTRY),
    ("walmart.com", ("/registry/wr/",), RetailerKind.WALMART_REGISTRY),
    ("walmart.com", ("/lists/",), RetailerKind.WALMART_WISHLIST),
]

# Kinds whose equivalent URL shapes collapse to one canonical form.
_CANONICALIZERS: dict[RetailerKind, Callable[[str], Optional[str]]] = {
    RetailerKind.TARGET_REGISTRY: _canonical_target,
}


def normalize_input(url) -> str:
    """Trim and make sure there is a scheme, the way users paste links."""
    text = "" if url is None else str(url).strip()
    if text and not re.match(r"^[a-z][a-z0-9+.-]*://", text, re.IGNORECASE):
        text = "https://" + text.lstrip("/")
    return text


def classify(url) -> ListUrl:
    """Map any input string to a retailer kind and its canonical URL. Never raises."""
    raw = "" if url is None else str(url)
    normalized = normalize_input(raw)
    unsupported = ListUrl(raw=raw, canonical=normalized, kind=RetailerKind.UNSUPPORTED)
    try:
        parsed = urlparse(normalized)
        host = (parsed.hostname or "").lower()
    except ValueError:
        return unsupported
    if parsed.scheme.lower() not in ("http", "https") or not host:
        return unsupported

    location = (parsed.path + ("?" + parsed.query if parsed.query else "")).lower()
    for host_part, path_parts, kind in _RULES:
        if host_part not in host:
            continue
        if path_parts and not any(p in location for p in path_parts):
            continue
        canonicalizer = _CANONICALIZERS.get(kind)
        if canonicalizer is None:
            return ListUrl(raw=raw, canonical=normalized, kind=kind)
        try:
            canonical = canonicalizer(normalized)
        except ValueError:
            canonical = None
        if canonical:
            return ListUrl(raw=raw, canonical=canonical, kind=kind)
        # Right host and path shape but no identifier: nothing we can fetch.
        return unsupported
    return unsupported


def canonicalize(url) -> str:
    return classify(url).canonical


def ensure_absolute_url(url: str, base_url: str) -> str:
    if url.startswith("//"):
        return "https:" + url
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return url
    # treat as path on base_url
    if not url.startswith("/"):
        url = "/" + url
    return f"{base_url}{url}"


def strip_query(url: str) -> str:
    """Drop query string and fragment so links stay stable across visits."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
