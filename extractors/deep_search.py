# extractors/deep_search.py
from typing import Any, Callable, List, Optional

from core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 9
# Upper bound on containers visited per blob; hydration blobs can be several MB.
DEFAULT_MAX_NODES = 50_000


def find_product_array(
    root: Any,
    looks_like: Callable[[Any], bool],
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_nodes: int = DEFAULT_MAX_NODES,
) -> Optional[List[Any]]:
    """
    Depth-first search for the first list whose first element looks like a product.

    Walks dicts and lists with an explicit worklist (no recursion), visiting
    children in document order. Containers deeper than ``max_depth`` are not
    inspected, each container is visited at most once, and the walk gives up
    after ``max_nodes`` containers.
    """
    stack = [(root, 0)]
    seen = set()
    visited = 0
    while stack:
        node, depth = stack.pop()
        if depth > max_depth or not isinstance(node, (dict, list)):
            continue
        if id(node) in seen:
            continue
        seen.add(id(node))
        visited += 1
        if visited > max_nodes:
            logger.warning("Deep search gave up after %d nodes", max_nodes)
            return None

        if isinstance(node, list):
            if node and looks_like(node[0]):
                logger.debug("Deep search found a %d-element product array at depth %d", len(node), depth)
                return node
            children = node
        else:
            children = list(node.values())
        for child in reversed(children):
            if isinstance(child, (dict, list)):
                stack.append((child, depth + 1))
    return None
