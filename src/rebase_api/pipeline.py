from __future__ import annotations
import logging
from typing import Iterable

from .crypto import Hasher, sha256
from .errors import PreconditionError
from .merkle import TreeHandle, merge_roots, rebase

"""Merge pipeline: root merge followed by proof/chunk rebase.

Guardrails:
- Rebase runs before the merged tree is handed to anything that submits it.
- Each step returns a new tree; nothing is threaded through shared state.
"""

log = logging.getLogger(__name__)


def merge_trees(left: TreeHandle, right: TreeHandle, hasher: Hasher = sha256) -> TreeHandle:
    """Merge two trees into one fully populated tree."""
    header = merge_roots(left, right, hasher)
    merged = rebase(header, left, right, hasher)
    log.info(
        "merged %d + %d leaves into tree of size %d",
        len(left.chunks),
        len(right.chunks),
        merged.data_size,
    )
    return merged


def fold_trees(trees: Iterable[TreeHandle], hasher: Hasher = sha256) -> TreeHandle:
    """Left fold of merge_trees: ((t0 + t1) + t2) + ..."""
    it = iter(trees)
    try:
        acc = next(it)
    except StopIteration:
        raise PreconditionError("need at least two trees to merge") from None
    count = 1
    for tree in it:
        acc = merge_trees(acc, tree, hasher)
        count += 1
    if count < 2:
        raise PreconditionError("need at least two trees to merge")
    return acc
