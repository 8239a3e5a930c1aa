from __future__ import annotations
import re
from typing import Annotated, List

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)

from .crypto import B64U, B64UD, HASH_SIZE, jcs_dumps
from .merkle import Chunk, Proof, TreeHandle

_DECIMAL = re.compile(r"[0-9]+")


def _parse_size(v):
    """Accept an int or a decimal string (node wire format), never negative."""
    if isinstance(v, bool):
        raise ValueError("expected an integer, got bool")
    if isinstance(v, str):
        if not _DECIMAL.fullmatch(v):
            raise ValueError("expected a non-negative decimal string")
        return int(v)
    if isinstance(v, int):
        if v < 0:
            raise ValueError("must be non-negative")
        return v
    raise ValueError("expected an integer or decimal string")


def _parse_b64u(v):
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    if not isinstance(v, str):
        raise ValueError("expected a base64url string")
    return B64UD(v)


Size = Annotated[int, BeforeValidator(_parse_size)]
# sizes and offsets go back out as strings, as nodes expect them
WireSize = Annotated[
    int, BeforeValidator(_parse_size), PlainSerializer(str, return_type=str, when_used="json")
]
B64Bytes = Annotated[
    bytes, BeforeValidator(_parse_b64u), PlainSerializer(B64U, return_type=str, when_used="json")
]


class ChunkModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min_byte_range: Size
    max_byte_range: Size

    @model_validator(mode="after")
    def _ordered(self):
        if self.max_byte_range < self.min_byte_range:
            raise ValueError("max_byte_range precedes min_byte_range")
        return self


class ProofModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    proof: B64Bytes
    offset: WireSize


class TreeDocument(BaseModel):
    """Serialized tree as exchanged with tree builders, the CLI and the API.

    Parsing happens once, here; the core only ever sees ints and bytes.
    """

    model_config = ConfigDict(extra="forbid")

    data_root: B64Bytes
    data_size: WireSize
    chunks: List[ChunkModel] = Field(default_factory=list)
    proofs: List[ProofModel] = Field(default_factory=list)
    data: B64Bytes = b""

    @field_validator("data_root")
    @classmethod
    def _root_size(cls, v: bytes) -> bytes:
        if len(v) != HASH_SIZE:
            raise ValueError(f"data_root must decode to {HASH_SIZE} bytes")
        return v

    def to_handle(self) -> TreeHandle:
        tree = TreeHandle(
            data_root=self.data_root,
            data_size=self.data_size,
            chunks=[Chunk(c.min_byte_range, c.max_byte_range) for c in self.chunks],
            proofs=[Proof(p.proof, p.offset) for p in self.proofs],
            data=self.data,
        )
        tree.validate()
        return tree

    @classmethod
    def from_handle(cls, tree: TreeHandle) -> "TreeDocument":
        return cls(
            data_root=tree.data_root,
            data_size=tree.data_size,
            chunks=[
                ChunkModel(min_byte_range=c.min_byte_range, max_byte_range=c.max_byte_range)
                for c in tree.chunks
            ],
            proofs=[ProofModel(proof=p.proof, offset=p.offset) for p in tree.proofs],
            data=tree.data,
        )

    def dumps(self) -> bytes:
        """Canonical (RFC 8785) JSON so repeated merges write identical files."""
        return jcs_dumps(self.model_dump(mode="json"))


class MergeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    trees: List[TreeDocument] = Field(min_length=2)


class BoundaryRequest(BaseModel):
    left_size: Size
