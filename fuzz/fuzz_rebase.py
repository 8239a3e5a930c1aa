"""Fuzz harness for tree merging: fold arbitrary small trees and check offsets."""
from __future__ import annotations
import atheris
import sys
import hashlib

with atheris.instrument_imports():
    from rebase_api.merkle import CHUNK_SIZE, Chunk, Proof, TreeHandle, compute_boundary
    from rebase_api.pipeline import fold_trees
    from rebase_sdk.markers import split_rebase_marker


def _tree(data: bytes, leaf_size: int) -> TreeHandle:
    chunks, proofs = [], []
    for start in range(0, len(data), leaf_size):
        end = min(start + leaf_size, len(data))
        chunks.append(Chunk(start, end))
        proofs.append(Proof(hashlib.sha256(data[start:end]).digest(), end - 1))
    root = hashlib.sha256(b"".join(p.proof for p in proofs)).digest()
    return TreeHandle(root, len(data), chunks, proofs, data)


def TestOneInput(data: bytes):  # noqa: N802
    if len(data) < 3:
        return
    # Split the input into 2..4 trees with tiny leaves
    n = 2 + data[0] % 3
    leaf_size = 1 + data[1] % 16
    body = data[2:]
    step = max(1, len(body) // n)
    parts = [body[i * step : (i + 1) * step] for i in range(n - 1)] + [body[(n - 1) * step :]]
    trees = [_tree(p, leaf_size) for p in parts]
    merged = fold_trees(trees)

    if merged.data != b"".join(parts):
        raise RuntimeError("merged data is not the concatenation of inputs")
    if len(merged.chunks) != sum(len(t.chunks) for t in trees):
        raise RuntimeError("leaf count changed")
    cursor = 0
    for c in merged.chunks:
        if c.min_byte_range != cursor:
            raise RuntimeError("chunk ranges not contiguous")
        cursor = c.max_byte_range
    last = trees[-1]
    boundary = compute_boundary(merged.data_size - last.data_size)
    if boundary % CHUNK_SIZE:
        raise RuntimeError("boundary not chunk aligned")
    k = len(merged.proofs) - len(last.proofs)
    for rebased, orig in zip(merged.proofs[k:], last.proofs):
        marker, rest = split_rebase_marker(rebased.proof)
        if marker is None or rest != orig.proof or marker.boundary != boundary:
            raise RuntimeError("rightmost marker malformed")
        if rebased.offset != boundary + orig.offset:
            raise RuntimeError("proof offset not shifted by boundary")


def main():
    atheris.Setup(sys.argv, TestOneInput, enable_python_coverage=True)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
