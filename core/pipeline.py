# core/pipeline.py
"""
The two request/response units of work: import a list from a URL, and compare
fresh items with a stored list. Both return plain dicts shaped for the JSON API
and never raise for domain failures.
"""
from typing import Any, Dict, Optional

from extractors import extract
from fetchers.orchestrator import FetchOrchestrator

from . import storage
from .config import DEBUG_DIR, DEBUG_SCRAPE_HTML, Settings
from .diff import compare
from .logger import dump_debug_html, get_logger, html_title
from .models import DISPLAY_NAMES, EmptyReason, ErrorKind, NormalizedItem
from .urls import classify

logger = get_logger(__name__)


def _failure(message: str, error: Optional[ErrorKind] = None, manual: bool = False, retailer: Optional[str] = None):
    out: Dict[str, Any] = {"success": False, "message": message}
    if retailer:
        out["retailer"] = retailer
    if error is not None:
        out["errorCode"] = error.value
    out["requiresManualUpload"] = manual
    return out


def import_list(url: str, settings: Settings, orchestrator: Optional[FetchOrchestrator] = None) -> Dict[str, Any]:
    """Classify, fetch and extract one list URL."""
    list_url = classify(url)
    if not list_url.supported:
        logger.info("Unsupported list URL: %s", url)
        return _failure(
            "This retailer isn't supported for automatic import. Please use Manual Upload.",
            ErrorKind.UNSUPPORTED_RETAILER,
            manual=True,
        )

    retailer = DISPLAY_NAMES[list_url.kind]
    orchestrator = orchestrator or FetchOrchestrator(settings)
    deadline = None
    if settings.pipeline_timeout and settings.pipeline_timeout > 0:
        deadline = orchestrator.clock() + settings.pipeline_timeout

    logger.info("Importing %s list from %s", retailer, list_url.canonical)
    fetched = orchestrator.fetch(list_url, deadline=deadline)
    if not fetched.success:
        if fetched.terminal_error is ErrorKind.NETWORK_FAILURE:
            return _failure(
                f"Couldn't reach {retailer} right now. Please check the link and try again.",
                ErrorKind.NETWORK_FAILURE,
                retailer=retailer,
            )
        return _failure(
            f"{retailer} is blocking automated access to this list right now. "
            "Please try again later or use Manual Upload.",
            fetched.terminal_error or ErrorKind.ALL_PROVIDERS_EXHAUSTED,
            manual=True,
            retailer=retailer,
        )

    result = extract(fetched.body, list_url, settings)
    if not result.items:
        label = f"{list_url.kind.value}_{fetched.provider_used.value if fetched.provider_used else 'unknown'}"
        dump_debug_html(label, fetched.body, DEBUG_DIR, force=DEBUG_SCRAPE_HTML)
        logger.warning(
            "Zero items extracted from %s (%s, title=%r)",
            list_url.canonical,
            result.empty_reason.value if result.empty_reason else "unknown",
            html_title(fetched.body),
        )
        if result.empty_reason is EmptyReason.SHELL_PAGE:
            return _failure(
                f"The {retailer} page loaded without any list data. The list may be private or empty; "
                "please use Manual Upload.",
                ErrorKind.ZERO_ITEMS_EXTRACTED,
                manual=True,
                retailer=retailer,
            )
        return _failure(
            f"We couldn't find any items on this {retailer} list. Please make sure the list is public and try again.",
            ErrorKind.ZERO_ITEMS_EXTRACTED,
            retailer=retailer,
        )

    logger.info("Imported %d items from %s via %s", len(result.items), list_url.canonical, result.strategy)
    return {
        "success": True,
        "retailer": retailer,
        "items": [it.to_dict() for it in result.items],
        "message": f"Found {len(result.items)} items",
    }


def scrape_request(payload: Any, settings: Settings, orchestrator: Optional[FetchOrchestrator] = None):
    if not isinstance(payload, dict):
        return _failure("Request body must be a JSON object with a 'url' field.")
    url = payload.get("url")
    if not isinstance(url, str) or not url.strip():
        return _failure("A list URL is required.")
    return import_list(url, settings, orchestrator)


def compare_request(payload: Any, settings: Settings) -> Dict[str, Any]:
    """Compare ``freshItems`` with the stored contents of ``listId``."""
    if not isinstance(payload, dict):
        return {"success": False, "message": "Request body must be a JSON object."}
    list_id = payload.get("listId")
    if isinstance(list_id, bool) or not isinstance(list_id, (str, int)) or not str(list_id).strip():
        return {"success": False, "message": "listId is required."}
    raw_items = payload.get("freshItems")
    if not isinstance(raw_items, list):
        return {"success": False, "message": "freshItems must be a list."}
    try:
        fresh = [NormalizedItem.from_dict(it) for it in raw_items]
    except ValueError as exc:
        return {"success": False, "message": f"Invalid freshItems: {exc}"}

    existing = storage.get_list_items(str(list_id).strip(), settings.db_path)
    result = compare(existing, fresh)
    summary = result.summary
    logger.info(
        "Compared list %s: %d unchanged, %d new, %d updated",
        list_id, summary["unchanged_count"], summary["added_count"], summary["changed_count"],
    )
    return {
        "success": True,
        "existingItems": [it.to_dict() for it in result.unchanged],
        "newItems": [it.to_dict() for it in result.added],
        "updatedItems": [{"existing": old.to_dict(), "fresh": new.to_dict()} for old, new in result.changed],
        "summary": {
            "existingCount": summary["unchanged_count"],
            "newCount": summary["added_count"],
            "updatedCount": summary["changed_count"],
        },
    }
