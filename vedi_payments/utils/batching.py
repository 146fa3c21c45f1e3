"""Chunking helpers for store queries with a bounded batch size"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most ``size`` items"""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


@dataclass
class ChunkReport:
    """Outcome of one chunk; chunks commit independently of each other"""

    index: int
    ids: List[str]
    succeeded: bool
    affected: int = 0
    error: Optional[str] = None


@dataclass
class BatchReport:
    """Per-chunk outcomes of a bulk operation"""

    chunks: List[ChunkReport] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(len(c.ids) for c in self.chunks)

    @property
    def failed_chunks(self) -> List[ChunkReport]:
        return [c for c in self.chunks if not c.succeeded]

    @property
    def complete(self) -> bool:
        return not self.failed_chunks
