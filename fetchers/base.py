# fetchers/base.py
from typing import Callable, NamedTuple

import requests

from core.config import Settings
from core.errors import FetchError
from core.logger import get_logger
from core.models import ListUrl, ProviderId

logger = get_logger(__name__)


class ProviderResponse(NamedTuple):
    status: int
    body: str


class Provider(NamedTuple):
    provider_id: ProviderId
    fetch: Callable[[requests.Session, ListUrl, Settings, float], ProviderResponse]
    is_configured: Callable[[Settings], bool]


def always_configured(settings: Settings) -> bool:
    return True


def send(session: requests.Session, method: str, url: str, label: str, **kwargs) -> ProviderResponse:
    """Issue one request; transport errors surface as FetchError, HTTP errors do not."""
    try:
        resp = session.request(method, url, **kwargs)
    except requests.RequestException as exc:
        logger.warning("%s request failed: %s", label, exc)
        raise FetchError(f"{label}: {exc}") from exc
    text = resp.text or ""
    logger.debug("%s responded %s with %d chars", label, resp.status_code, len(text))
    return ProviderResponse(status=resp.status_code, body=text)
