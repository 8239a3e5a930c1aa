from typing import Optional, Tuple

from rebase_api.crypto import HASH_SIZE, note_to_int
from rebase_api.merkle import REBASE_MARK, RebaseMarker, TreeHandle


def split_rebase_marker(proof: bytes) -> Tuple[Optional[RebaseMarker], bytes]:
    """Split a leading rebase marker off a proof.

    Returns ``(marker, rest)`` where ``rest`` is the proof as it was before
    rebasing, or ``(None, proof)`` when the proof does not start with a marker.
    This only reads the layout; it does not check any hashes.
    """
    if len(proof) < RebaseMarker.SIZE or proof[:HASH_SIZE] != REBASE_MARK:
        return None, proof
    left = proof[HASH_SIZE : 2 * HASH_SIZE]
    right = proof[2 * HASH_SIZE : 3 * HASH_SIZE]
    boundary = note_to_int(proof[3 * HASH_SIZE : RebaseMarker.SIZE])
    return RebaseMarker(left, right, boundary), proof[RebaseMarker.SIZE :]


def marker_chain(proof: bytes) -> Tuple[list, bytes]:
    """Peel off every nested marker, outermost first."""
    markers = []
    marker, rest = split_rebase_marker(proof)
    while marker is not None:
        markers.append(marker)
        marker, rest = split_rebase_marker(rest)
    return markers, rest


def chunk_data(tree: TreeHandle, index: int) -> bytes:
    c = tree.chunks[index]
    return tree.data[c.min_byte_range : c.max_byte_range]
