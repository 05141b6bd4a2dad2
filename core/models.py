# core/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RetailerKind(str, Enum):
    AMAZON_WISHLIST = "AmazonWishlist"
    AMAZON_REGISTRY = "AmazonRegistry"
    TARGET_REGISTRY = "TargetRegistry"
    WALMART_WISHLIST = "WalmartWishlist"
    WALMART_REGISTRY = "WalmartRegistry"
    UNSUPPORTED = "Unsupported"


DISPLAY_NAMES = {
    RetailerKind.AMAZON_WISHLIST: "Amazon",
    RetailerKind.AMAZON_REGISTRY: "Amazon Registry",
    RetailerKind.TARGET_REGISTRY: "Target",
    RetailerKind.WALMART_WISHLIST: "Walmart",
    RetailerKind.WALMART_REGISTRY: "Walmart Registry",
}


class ProviderId(str, Enum):
    DIRECT = "direct"
    RENDERING_PROXY = "rendering_proxy"
    UNLOCKER = "unlocker"
    REGISTRY_API = "registry_api"


class ResponseVerdict(str, Enum):
    USABLE = "Usable"
    BLOCKED_OR_CAPTCHA = "BlockedOrCaptcha"
    LOGIN_REQUIRED = "LoginRequired"
    RESTRICTED = "Restricted"
    TOO_SMALL = "TooSmall"


class ErrorKind(str, Enum):
    UNSUPPORTED_RETAILER = "UnsupportedRetailer"
    ALL_PROVIDERS_EXHAUSTED = "AllProvidersExhausted"
    ZERO_ITEMS_EXTRACTED = "ZeroItemsExtracted"
    NETWORK_FAILURE = "NetworkFailure"
    PARSE_FAILURE = "ParseFailure"


class EmptyReason(str, Enum):
    SHELL_PAGE = "ShellPage"
    NO_MATCHES = "NoMatches"


@dataclass(frozen=True)
class ListUrl:
    raw: str
    canonical: str
    kind: RetailerKind

    @property
    def supported(self) -> bool:
        return self.kind is not RetailerKind.UNSUPPORTED


@dataclass(frozen=True)
class FetchAttempt:
    """One try against one provider. ``error`` is set when the transport failed."""
    provider: ProviderId
    http_status: int
    body_length: int
    classification: ResponseVerdict
    elapsed_ms: int
    error: Optional[ErrorKind] = None


@dataclass
class FetchResult:
    success: bool
    body: str = ""
    provider_used: Optional[ProviderId] = None
    attempts: List[FetchAttempt] = field(default_factory=list)
    terminal_error: Optional[ErrorKind] = None


@dataclass(frozen=True)
class NormalizedItem:
    """
    Normalized representation of a list item across all retailers.
    Prices stay in display form ("$12.99"); they are never parsed to currency.
    """
    name: str
    price: Optional[str] = None
    link: Optional[str] = None
    image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        for key in ("price", "link", "image"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizedItem":
        """Build an item from a request payload; raises ValueError when unusable."""
        if not isinstance(data, dict):
            raise ValueError("item must be an object")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("item name is required")

        def _opt(key: str) -> Optional[str]:
            value = data.get(key)
            if value is None:
                return None
            if not isinstance(value, (str, int, float)):
                raise ValueError(f"item {key} must be a string")
            text = str(value).strip()
            return text or None

        return cls(name=name.strip(), price=_opt("price"), link=_opt("link"), image=_opt("image"))


def item_key(item: NormalizedItem) -> str:
    """Identity used for diffing: the link when present, otherwise the name."""
    if item.link and item.link.strip():
        return item.link.strip().lower()
    return item.name.strip().lower()


@dataclass
class ExtractionResult:
    items: List[NormalizedItem] = field(default_factory=list)
    empty_reason: Optional[EmptyReason] = None
    strategy: Optional[str] = None


@dataclass
class ComparisonResult:
    unchanged: List[NormalizedItem] = field(default_factory=list)
    added: List[NormalizedItem] = field(default_factory=list)
    changed: List[Tuple[NormalizedItem, NormalizedItem]] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "unchanged_count": len(self.unchanged),
            "added_count": len(self.added),
            "changed_count": len(self.changed),
        }
