# core/verdict.py
"""
Heuristic judgement of fetched bodies.

Marker phrases are matched case-insensitively against live-site copy, so the
tables drift as retailers reword their pages: a new block page can slip through
as Usable, and a legitimate page quoting a marker can be rejected. Both are
accepted limitations; extend the tables rather than guessing intent.
"""
import json
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .config import MIN_BODY_BYTES
from .models import ResponseVerdict, RetailerKind


@dataclass(frozen=True)
class MarkerTable:
    blocked: Tuple[str, ...] = ()
    login: Tuple[str, ...] = ()
    restricted: Tuple[str, ...] = ()
    # Structural signals that a short body is still a real list payload.
    anchors: Tuple[str, ...] = ()


COMMON = MarkerTable(
    blocked=(
        "please verify you are a human",
        "px-captcha",
        "cf-browser-verification",
        "challenge-platform",
        "<title>access denied</title>",
        "403 forbidden",
    ),
    anchors=("__next_data__", "application/ld+json"),
)

_AMAZON = MarkerTable(
    blocked=(
        "robot check",
        "type the characters you see in this image",
        "enter the characters you see below",
        "/errors/validatecaptcha",
        "to discuss automated access to amazon data",
        "api-services-support@amazon.com",
        "sorry, we just need to make sure you're not a robot",
    ),
    login=(
        'id="ap_email"',
        'name="ap_password"',
        "to continue, please sign in",
        "ap_signin",
    ),
    restricted=(
        "this list is private",
        "this list is no longer available",
        "registry not found",
        "we couldn't find that registry",
        "looking for something?",
    ),
    anchors=("data-itemid", "g-item-sortable", "data-asin", '"asin"', "registryitemlist"),
)

MARKERS: Dict[RetailerKind, MarkerTable] = {
    RetailerKind.AMAZON_WISHLIST: _AMAZON,
    RetailerKind.AMAZON_REGISTRY: _AMAZON,
    RetailerKind.TARGET_REGISTRY: MarkerTable(
        blocked=("access denied", "unusual activity"),
        login=("sign into your target account", "sign in to your target account"),
        restricted=(
            "registry not found",
            "this registry is private",
            "we can't find this registry",
            "registry_not_found",
        ),
        anchors=("registry_items", "target_items", "tcin"),
    ),
    RetailerKind.WALMART_WISHLIST: MarkerTable(
        blocked=(
            "<title>robot or human?</title>",
            "/blocked?url=",
            "activate and hold the button to confirm that you're human",
        ),
        login=("sign in to your walmart account", "sign in or create an account to continue"),
        restricted=("this list is private", "list not found", "this list is no longer available"),
        anchors=("usitemid", "/ip/"),
    ),
    RetailerKind.WALMART_REGISTRY: MarkerTable(
        blocked=(
            "<title>robot or human?</title>",
            "/blocked?url=",
            "activate and hold the button to confirm that you're human",
        ),
        login=("sign in to your walmart account",),
        restricted=("registry not found", "this registry is private", "registry is no longer available"),
        anchors=("usitemid", "/ip/"),
    ),
}


def _as_text(body) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body if isinstance(body, str) else str(body)


def _is_json_document(text: str) -> bool:
    stripped = text.lstrip()
    if not stripped.startswith(("{", "[")):
        return False
    try:
        json.loads(stripped)
    except (ValueError, RecursionError):
        return False
    return True


def judge(body, kind: RetailerKind, min_bytes: Optional[int] = None) -> ResponseVerdict:
    """Decide whether a fetched body is worth handing to extraction. Total."""
    try:
        text = _as_text(body)
        lower = text.lower()
        table = MARKERS.get(kind, MarkerTable())

        if any(m in lower for m in COMMON.blocked + table.blocked):
            return ResponseVerdict.BLOCKED_OR_CAPTCHA
        if any(m in lower for m in table.login):
            return ResponseVerdict.LOGIN_REQUIRED
        if any(m in lower for m in table.restricted):
            return ResponseVerdict.RESTRICTED

        floor = MIN_BODY_BYTES.get(kind, 0) if min_bytes is None else min_bytes
        if len(text) < floor:
            anchored = _is_json_document(text) or any(a in lower for a in COMMON.anchors + table.anchors)
            if not anchored:
                return ResponseVerdict.TOO_SMALL
        if not text.strip():
            return ResponseVerdict.TOO_SMALL
        return ResponseVerdict.USABLE
    except Exception:  # pragma: no cover - judge must never raise
        return ResponseVerdict.TOO_SMALL


def judge_response(status: int, body, kind: RetailerKind, min_bytes: Optional[int] = None) -> ResponseVerdict:
    """Fold the HTTP status into the body verdict."""
    verdict = judge(body, kind, min_bytes)
    if verdict is not ResponseVerdict.USABLE:
        return verdict
    if status == 401:
        return ResponseVerdict.LOGIN_REQUIRED
    if status in (404, 410):
        return ResponseVerdict.RESTRICTED
    if status in (403, 429) or status >= 500:
        return ResponseVerdict.BLOCKED_OR_CAPTCHA
    if 400 <= status < 500:
        return ResponseVerdict.RESTRICTED
    return verdict
