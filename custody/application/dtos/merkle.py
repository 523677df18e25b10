"""Merkle proof DTOs.

Kept in the application layer so services never import API models.
API routes convert these to Pydantic response models.
"""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class MerkleProofEntryDTO:
    """Single sibling hash in a Merkle proof path.

    Attributes:
        level: Tree level (0 = leaf level).
        position: Whether the sibling sits left or right of the path node.
        sibling_hash: Hash of the sibling node.
    """

    level: int
    position: Literal["left", "right"]
    sibling_hash: str


@dataclass(frozen=True)
class MerkleProofDTO:
    """Inclusion proof for one leaf against a root."""

    leaf_index: int
    leaf_hash: str
    root: str
    path: tuple[MerkleProofEntryDTO, ...]
