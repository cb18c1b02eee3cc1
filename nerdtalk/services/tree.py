from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List

from nerdtalk.core.errors import CorruptTreeError
from nerdtalk.metrics import record_corrupt_tree
from nerdtalk.services.posts import list_direct_children

logger = logging.getLogger(__name__)


def collect_descendants(root_id: str) -> List[Dict[str, Any]]:
    """
    Every transitive reply under root_id, root excluded.

    Depth-first pre-order: a child is emitted, then its whole subtree, then
    its next sibling. Uses an explicit stack of sibling iterators so thread
    depth is not bounded by the interpreter's recursion limit. Meeting the
    same post twice means the stored tree is corrupt.
    """
    out: List[Dict[str, Any]] = []
    visited = {root_id}
    stack: List[Iterator[Dict[str, Any]]] = [iter(list_direct_children(root_id))]

    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        child_id = child["post_id"]
        if child_id in visited:
            record_corrupt_tree()
            logger.error("corrupt reply tree under %s: %s reached twice", root_id, child_id)
            raise CorruptTreeError(root_id, child_id)
        visited.add(child_id)
        out.append(child)
        stack.append(iter(list_direct_children(child_id)))

    return out
