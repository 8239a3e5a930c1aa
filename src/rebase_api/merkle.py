from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import ClassVar, List

from .crypto import HASH_SIZE, NOTE_SIZE, Hasher, digest, int_to_note, sha256
from .errors import PreconditionError

"""Rebased Merkle trees.

Two already-built chunked trees are joined under a new root without touching
their leaves. Every leaf proof gets a rebase marker spliced in front of it so a
verifier can step from the new root into the original subtree.

Two offset spaces are in play:
- proof space is padded: the left subtree always occupies a whole number of
  CHUNK_SIZE chunks, so right-hand proof offsets shift by the padded boundary.
- data space is exact: the merged data buffer is a plain concatenation, so
  right-hand chunk ranges shift by the real length of the left data.

REBASE_MARK is 32 zero bytes. It could in principle collide with a real
interior hash; that is accepted as cryptographically negligible for SHA-256.
"""

log = logging.getLogger(__name__)

CHUNK_SIZE = 256 * 1024
REBASE_MARK = bytes(HASH_SIZE)


@dataclass(frozen=True)
class Chunk:
    """Exact byte range of one leaf inside its tree's data buffer."""

    min_byte_range: int
    max_byte_range: int

    def shifted(self, shift: int) -> "Chunk":
        return Chunk(self.min_byte_range + shift, self.max_byte_range + shift)


@dataclass(frozen=True)
class Proof:
    proof: bytes
    offset: int  # padded proof-space offset


@dataclass(frozen=True)
class RebaseMarker:
    left_root: bytes
    right_root: bytes
    boundary: int

    SIZE: ClassVar[int] = 3 * HASH_SIZE + NOTE_SIZE

    def to_bytes(self) -> bytes:
        return b"".join(
            [REBASE_MARK, self.left_root, self.right_root, int_to_note(self.boundary)]
        )


@dataclass
class TreeHandle:
    data_root: bytes
    data_size: int
    chunks: List[Chunk] = field(default_factory=list)
    proofs: List[Proof] = field(default_factory=list)
    data: bytes = b""

    @property
    def is_populated(self) -> bool:
        return bool(self.chunks or self.proofs or self.data)

    def check_header(self) -> None:
        if not isinstance(self.data_root, (bytes, bytearray)) or len(self.data_root) != HASH_SIZE:
            raise PreconditionError(f"data_root must be {HASH_SIZE} bytes")
        if self.data_size < 0:
            raise PreconditionError(f"negative data_size {self.data_size}")

    def validate(self) -> None:
        """Check leaf/proof pairing and that chunk ranges tile the data buffer."""
        self.check_header()
        if len(self.chunks) != len(self.proofs):
            raise PreconditionError(
                f"{len(self.chunks)} chunks but {len(self.proofs)} proofs"
            )
        cursor = 0
        for i, c in enumerate(self.chunks):
            if c.min_byte_range != cursor or c.max_byte_range < c.min_byte_range:
                raise PreconditionError(
                    f"chunk {i} range [{c.min_byte_range}, {c.max_byte_range}) "
                    f"does not continue at {cursor}"
                )
            cursor = c.max_byte_range
        if cursor != len(self.data):
            raise PreconditionError(
                f"chunks cover {cursor} bytes but data holds {len(self.data)}"
            )
        # merged trees declare the padded size, so only a lower bound holds here
        if self.data_size < len(self.data):
            raise PreconditionError(
                f"data_size {self.data_size} smaller than data length {len(self.data)}"
            )
        for i, p in enumerate(self.proofs):
            if p.offset < 0:
                raise PreconditionError(f"proof {i} has negative offset {p.offset}")


def compute_boundary(left_size: int) -> int:
    """Round a left-subtree size up to the next multiple of CHUNK_SIZE."""
    if left_size < 0:
        raise PreconditionError(f"negative size {left_size}")
    return -(-left_size // CHUNK_SIZE) * CHUNK_SIZE


def merged_root(
    left_root: bytes, right_root: bytes, boundary: int, hasher: Hasher = sha256
) -> bytes:
    return digest(
        hasher,
        digest(hasher, left_root)
        + digest(hasher, right_root)
        + digest(hasher, int_to_note(boundary)),
    )


def merge_roots(left: TreeHandle, right: TreeHandle, hasher: Hasher = sha256) -> TreeHandle:
    """Build the header of the merged tree from the two subtree roots.

    Subtree internals are trusted; only the header fields are checked. The
    result has no chunks, proofs or data until it is passed to :func:`rebase`.
    """
    left.check_header()
    right.check_header()
    boundary = compute_boundary(left.data_size)
    root = merged_root(left.data_root, right.data_root, boundary, hasher)
    log.debug(
        "merged root: left_size=%d boundary=%d right_size=%d",
        left.data_size,
        boundary,
        right.data_size,
    )
    return TreeHandle(data_root=root, data_size=boundary + right.data_size)


def _rebase_proofs(marker: bytes, proofs: List[Proof], shift: int) -> List[Proof]:
    return [Proof(proof=marker + p.proof, offset=shift + p.offset) for p in proofs]


def rebase(
    merged: TreeHandle, left: TreeHandle, right: TreeHandle, hasher: Hasher = sha256
) -> TreeHandle:
    """Return `merged` populated with the rebased chunks, proofs and data.

    `merged` must be the untouched output of ``merge_roots(left, right)``. All
    checks run before anything is built and the input handles are not mutated.
    """
    left.validate()
    right.validate()
    merged.check_header()
    if merged.is_populated:
        raise PreconditionError("merged tree is already populated")

    boundary = compute_boundary(left.data_size)
    if merged.data_size != boundary + right.data_size:
        raise PreconditionError(
            f"merged data_size {merged.data_size} does not match "
            f"boundary {boundary} + right size {right.data_size}"
        )
    if merged.data_root != merged_root(left.data_root, right.data_root, boundary, hasher):
        raise PreconditionError("merged data_root was not built from these subtrees")

    marker = RebaseMarker(left.data_root, right.data_root, boundary).to_bytes()
    # the data buffer is not padded, so right chunks move by the real left length
    data_shift = len(left.data)
    chunks = list(left.chunks) + [c.shifted(data_shift) for c in right.chunks]
    proofs = _rebase_proofs(marker, left.proofs, 0) + _rebase_proofs(
        marker, right.proofs, boundary
    )
    log.debug(
        "rebased %d left and %d right leaves (data_shift=%d, proof_shift=%d)",
        len(left.chunks),
        len(right.chunks),
        data_shift,
        boundary,
    )
    return TreeHandle(
        data_root=merged.data_root,
        data_size=merged.data_size,
        chunks=chunks,
        proofs=proofs,
        data=left.data + right.data,
    )
