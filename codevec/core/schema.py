"""
Domain records for code blocks and the projects that store them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from codevec.vector.types import VectorPoint


@dataclass(frozen=True)
class CodeBlock:
    """A unit of source code produced by the code indexer."""

    node_key: str
    block_type: str  # function|class|statement
    content: str
    class_name: Optional[str] = None
    function_name: Optional[str] = None
    outgoing_calls: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "outgoing_calls", tuple(self.outgoing_calls))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_key": self.node_key,
            "block_type": self.block_type,
            "content": self.content,
            "class_name": self.class_name,
            "function_name": self.function_name,
            "outgoing_calls": list(self.outgoing_calls),
        }


@dataclass(frozen=True)
class StoredBlockRecord:
    """A code block together with the embedding of its content."""

    block: CodeBlock
    vector: VectorPoint


@dataclass(frozen=True)
class ProjectInfo:
    name: str
    total_blocks: int


@dataclass(frozen=True)
class SimilarityResult:
    """Outcome of a similarity search: the nearest text and the k nearest, closest first."""

    nearest: str
    k_nearest: List[str]
    distances: List[float]
