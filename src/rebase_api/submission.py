from __future__ import annotations
import logging
from typing import Iterator, List, NamedTuple, Optional

import requests

from .crypto import B64U
from .errors import PreconditionError, SubmissionError
from .merkle import TreeHandle

log = logging.getLogger(__name__)


class ChunkSubmission(NamedTuple):
    data_root: bytes
    data_size: int
    data_path: bytes
    offset: int
    chunk: bytes

    def to_payload(self) -> dict:
        """JSON body for a node's POST /chunk."""
        return {
            "data_root": B64U(self.data_root),
            "data_size": str(self.data_size),
            "data_path": B64U(self.data_path),
            "offset": str(self.offset),
            "chunk": B64U(self.chunk),
        }


def iter_chunk_submissions(tree: TreeHandle) -> Iterator[ChunkSubmission]:
    """Walk chunks, proofs and data in lockstep, one submission per leaf."""
    tree.validate()
    if not tree.chunks and tree.data_size:
        raise PreconditionError("tree has no chunks; was it rebased?")
    for chunk, proof in zip(tree.chunks, tree.proofs):
        yield ChunkSubmission(
            data_root=tree.data_root,
            data_size=tree.data_size,
            data_path=proof.proof,
            offset=proof.offset,
            chunk=tree.data[chunk.min_byte_range : chunk.max_byte_range],
        )


class NodeTransport:
    """Posts chunks to a single node. No retries; callers own that policy."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "NodeTransport":
        return cls(settings.node_url, settings.submit_timeout, session)

    def post_chunk(self, sub: ChunkSubmission) -> int:
        url = f"{self.base_url}/chunk"
        try:
            resp = self.session.post(url, json=sub.to_payload(), timeout=self.timeout)
        except requests.RequestException as e:
            raise SubmissionError(f"POST {url} failed: {e}") from e
        if not 200 <= resp.status_code < 300:
            raise SubmissionError(
                f"POST {url} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp.status_code

    def post_chunks(self, tree: TreeHandle) -> List[int]:
        statuses = []
        for i, sub in enumerate(iter_chunk_submissions(tree)):
            status = self.post_chunk(sub)
            log.info("POST chunk %d: %d", i, status)
            statuses.append(status)
        return statuses
