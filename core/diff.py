# core/diff.py
from typing import Dict, Iterable, List, Tuple

from .models import ComparisonResult, NormalizedItem, item_key


def _sort_tuple(item: NormalizedItem) -> Tuple[str, str, str, str]:
    return (item.name, item.price or "", item.link or "", item.image or "")


def _index(items: Iterable[NormalizedItem]) -> Dict[str, NormalizedItem]:
    """Map item key -> item. Repeated keys keep the smallest record so input order never matters."""
    out: Dict[str, NormalizedItem] = {}
    for it in items:
        key = item_key(it)
        held = out.get(key)
        if held is None or _sort_tuple(it) < _sort_tuple(held):
            out[key] = it
    return out


def compare(existing: Iterable[NormalizedItem], fresh: Iterable[NormalizedItem]) -> ComparisonResult:
    """
    Partition a stored list against a freshly extracted one.

    - existing only: unchanged (still on the list, not reconfirmed)
    - both, equal: unchanged (existing record kept)
    - both, different: changed as (existing, fresh)
    - fresh only: added
    Every bucket is sorted by item key.
    """
    old_map = _index(existing)
    new_map = _index(fresh)

    unchanged: List[NormalizedItem] = []
    changed: List[Tuple[NormalizedItem, NormalizedItem]] = []
    added: List[NormalizedItem] = []

    for key in sorted(old_map.keys() | new_map.keys()):
        old_item = old_map.get(key)
        new_item = new_map.get(key)
        if new_item is None:
            unchanged.append(old_item)
        elif old_item is None:
            added.append(new_item)
        elif old_item == new_item:
            unchanged.append(old_item)
        else:
            changed.append((old_item, new_item))

    return ComparisonResult(unchanged=unchanged, added=added, changed=changed)
