import hashlib

import pytest

from rebase_api.crypto import int_to_note
from rebase_api.errors import HashComputationError, PreconditionError
from rebase_api.merkle import (
    CHUNK_SIZE,
    REBASE_MARK,
    Proof,
    RebaseMarker,
    TreeHandle,
    compute_boundary,
    merge_roots,
    rebase,
)
from tests._helpers import build_tree, lorem


def _h(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


@pytest.mark.parametrize(
    "size,expected",
    [(0, 0), (262144, 262144), (474000, 524288), (120000, 262144), (1, 262144)],
)
def test_boundary_examples(size, expected):
    assert compute_boundary(size) == expected


def test_boundary_rounding_properties():
    for n in list(range(0, 20)) + [CHUNK_SIZE - 1, CHUNK_SIZE, CHUNK_SIZE + 1, 10**12 + 7]:
        b = compute_boundary(n)
        assert b % CHUNK_SIZE == 0
        assert n <= b < n + CHUNK_SIZE


def test_boundary_rejects_negative():
    with pytest.raises(PreconditionError):
        compute_boundary(-1)


def test_merge_roots_header(tree_a, tree_b):
    merged = merge_roots(tree_a, tree_b)
    assert merged.data_size == 524288 + 120000 == 644288
    assert merged.chunks == [] and merged.proofs == [] and merged.data == b""
    expected = _h(
        _h(tree_a.data_root)
        + _h(tree_b.data_root)
        + _h((524288).to_bytes(32, "big"))
    )
    assert merged.data_root == expected


def test_merge_roots_deterministic(tree_a, tree_b):
    r1 = merge_roots(tree_a, tree_b).data_root
    r2 = merge_roots(tree_a, tree_b).data_root
    assert r1 == r2
    # only the header matters: a tree with the same root/size gives the same root
    stub = TreeHandle(data_root=tree_a.data_root, data_size=tree_a.data_size)
    assert merge_roots(stub, tree_b).data_root == r1
    assert merge_roots(tree_b, tree_a).data_root != r1


def test_merge_roots_rejects_bad_header(tree_b):
    with pytest.raises(PreconditionError):
        merge_roots(TreeHandle(data_root=b"\x01" * 31, data_size=10), tree_b)
    with pytest.raises(PreconditionError):
        merge_roots(TreeHandle(data_root=b"\x01" * 32, data_size=-5), tree_b)


def test_rebase_leaf_counts(tree_a, tree_b):
    merged = rebase(merge_roots(tree_a, tree_b), tree_a, tree_b)
    assert len(merged.chunks) == len(tree_a.chunks) + len(tree_b.chunks) == 3
    assert len(merged.proofs) == len(merged.chunks)


def test_rebase_chunk_ranges(tree_a, tree_b):
    merged = rebase(merge_roots(tree_a, tree_b), tree_a, tree_b)
    assert merged.data == tree_a.data + tree_b.data
    cursor = 0
    for c in merged.chunks:
        assert c.min_byte_range == cursor
        cursor = c.max_byte_range
    # data space is exact, proof space is padded: the two sizes differ on purpose
    assert merged.chunks[-1].max_byte_range == len(merged.data) == 594000
    assert merged.data_size == 644288
    assert merged.chunks[-1].max_byte_range != merged.data_size
    # right chunks shift by the unpadded left length
    right0 = merged.chunks[len(tree_a.chunks)]
    assert right0.min_byte_range == 474000
    assert merged.data[right0.min_byte_range : right0.max_byte_range] == tree_b.data


def test_rebase_proof_offsets(tree_a, tree_b):
    merged = rebase(merge_roots(tree_a, tree_b), tree_a, tree_b)
    n = len(tree_a.proofs)
    for i, p in enumerate(tree_a.proofs):
        assert merged.proofs[i].offset == p.offset
    for j, p in enumerate(tree_b.proofs):
        assert merged.proofs[n + j].offset == 524288 + p.offset


def test_rebase_marker_layout(tree_a, tree_b):
    merged = rebase(merge_roots(tree_a, tree_b), tree_a, tree_b)
    originals = tree_a.proofs + tree_b.proofs
    for rebased, orig in zip(merged.proofs, originals):
        b = rebased.proof
        assert b[:32] == bytes(32) == REBASE_MARK
        assert b[32:64] == tree_a.data_root
        assert b[64:96] == tree_b.data_root
        assert b[96:128] == (524288).to_bytes(32, "big")
        assert b[128:] == orig.proof
    marker = RebaseMarker(tree_a.data_root, tree_b.data_root, 524288)
    assert merged.proofs[0].proof.startswith(marker.to_bytes())
    assert RebaseMarker.SIZE == 128


def test_rebase_leaves_inputs_untouched(tree_a, tree_b):
    header = merge_roots(tree_a, tree_b)
    a_proofs = list(tree_a.proofs)
    merged = rebase(header, tree_a, tree_b)
    assert header.chunks == [] and header.data == b""
    assert tree_a.proofs == a_proofs
    assert merged.data_root == header.data_root
    assert merged is not header


def test_rebase_rejects_mismatched_boundary(tree_a, tree_b):
    header = merge_roots(tree_a, tree_b)
    other_left = build_tree(lorem(100))
    with pytest.raises(PreconditionError):
        rebase(header, other_left, tree_b)


def test_rebase_rejects_foreign_root(tree_a, tree_b):
    header = merge_roots(tree_a, tree_b)
    same_size = build_tree(lorem(474000, seed=b"z"))
    assert same_size.data_root != tree_a.data_root
    with pytest.raises(PreconditionError):
        rebase(header, same_size, tree_b)


def test_rebase_rejects_populated_tree(tree_a, tree_b):
    merged = rebase(merge_roots(tree_a, tree_b), tree_a, tree_b)
    with pytest.raises(PreconditionError):
        rebase(merged, tree_a, tree_b)


def test_rebase_rejects_leaf_proof_mismatch(tree_a, tree_b):
    header = merge_roots(tree_a, tree_b)
    broken = TreeHandle(
        data_root=tree_b.data_root,
        data_size=tree_b.data_size,
        chunks=list(tree_b.chunks),
        proofs=list(tree_b.proofs) + [Proof(b"extra", 0)],
        data=tree_b.data,
    )
    with pytest.raises(PreconditionError):
        rebase(header, tree_a, broken)


def test_validate_rejects_gapped_chunks(tree_a):
    from rebase_api.merkle import Chunk

    gapped = TreeHandle(
        data_root=tree_a.data_root,
        data_size=tree_a.data_size,
        chunks=[Chunk(0, 10), Chunk(11, len(tree_a.data))],
        proofs=tree_a.proofs,
        data=tree_a.data,
    )
    with pytest.raises(PreconditionError):
        gapped.validate()


def test_empty_left_tree(tree_b):
    empty = TreeHandle(data_root=_h(b""), data_size=0)
    merged = rebase(merge_roots(empty, tree_b), empty, tree_b)
    assert merged.data_size == tree_b.data_size
    assert merged.chunks == tree_b.chunks
    assert [p.offset for p in merged.proofs] == [p.offset for p in tree_b.proofs]


def test_hash_provider_failure(tree_a, tree_b):
    def broken(_data):
        raise OSError("hsm unavailable")

    with pytest.raises(HashComputationError):
        merge_roots(tree_a, tree_b, hasher=broken)
    with pytest.raises(HashComputationError):
        merge_roots(tree_a, tree_b, hasher=lambda d: b"short")


def test_custom_hasher_is_used_throughout(tree_a, tree_b):
    def blake(d):
        return hashlib.blake2b(d, digest_size=32).digest()

    header = merge_roots(tree_a, tree_b, hasher=blake)
    assert header.data_root != merge_roots(tree_a, tree_b).data_root
    merged = rebase(header, tree_a, tree_b, hasher=blake)
    assert len(merged.proofs) == 3
    with pytest.raises(PreconditionError):
        rebase(header, tree_a, tree_b)


def test_note_width():
    assert int_to_note(1) == b"\x00" * 31 + b"\x01"
    with pytest.raises(PreconditionError):
        int_to_note(1 << 256)
