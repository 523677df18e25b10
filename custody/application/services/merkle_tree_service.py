"""Merkle tree builder and verifier service.

Builds the daily Merkle root over an organization's ledger entry hashes
and produces inclusion proofs so an auditor can check one entry against
a published root without the rest of the day's entries.

Leaves and interior nodes are hashed with distinct one-byte prefixes, and
an unpaired node is carried up unchanged. A list of hashes and the same
list with its last hash repeated have different roots.

Usage:
    service = MerkleTreeService()
    root, levels = service.build_tree(leaf_hashes)
    proof = service.get_proof(entry_index, levels)
    is_valid = service.verify_proof(leaf_hash, proof, expected_root)
"""

import hashlib

from custody.application.dtos.merkle import MerkleProofEntryDTO

LEAF_PREFIX = b"\x00"
NODE_PREFIX = b"\x01"


def hash_leaf(leaf: str) -> str:
    """Hash an entry hash into its leaf node."""
    return hashlib.sha256(LEAF_PREFIX + leaf.encode("utf-8")).hexdigest()


def hash_pair(left: str, right: str) -> str:
    """Compute a parent hash from two child hashes.

    Ordered concatenation: hash_pair(a, b) != hash_pair(b, a), so swapping
    two entries changes the root.

    Args:
        left: Left child hash (64-char hex).
        right: Right child hash (64-char hex).

    Returns:
        Parent hash (64-char lowercase hex).
    """
    return hashlib.sha256(NODE_PREFIX + (left + right).encode("utf-8")).hexdigest()


class MerkleTreeService:
    """Service for building and verifying Merkle trees.

    Tree Structure:
    - Leaves are sha256(0x00 || entry hash), in ledger_seq order
    - Parent hash is sha256(0x01 || left || right)
    - The last node of an odd level has no sibling and moves up as is

    Example:
        For 3 entry hashes [A, B, C], with a = leaf(A) and so on:

                    Root
                   /    \\
               H(a,b)    c
               /  \\
              a    b    c

        Proof for C: [(H(a,b), left)]
    """

    def build_tree(self, leaf_hashes: list[str]) -> tuple[str, list[list[str]]]:
        """Build a Merkle tree from leaf hashes.

        Args:
            leaf_hashes: Entry hashes in ledger_seq order.

        Returns:
            Tuple of (root_hash, tree_levels).
            tree_levels[0] = leaf nodes, tree_levels[-1] = [root].

        Raises:
            ValueError: If leaf_hashes is empty.
        """
        if not leaf_hashes:
            raise ValueError("Cannot build tree from empty list")

        current = [hash_leaf(h) for h in leaf_hashes]
        levels: list[list[str]] = [current]

        while len(current) > 1:
            next_level = [
                hash_pair(current[i], current[i + 1])
                for i in range(0, len(current) - 1, 2)
            ]
            if len(current) % 2:
                next_level.append(current[-1])
            levels.append(next_level)
            current = next_level

        return current[0], levels

    def compute_root(self, leaf_hashes: list[str]) -> str:
        root, _ = self.build_tree(leaf_hashes)
        return root

    def get_proof(
        self,
        leaf_index: int,
        tree_levels: list[list[str]],
    ) -> list[MerkleProofEntryDTO]:
        """Generate the proof path for a leaf, from leaf to root.

        Levels where the node has no sibling contribute no step.
        """
        path = []
        idx = leaf_index

        for level in range(len(tree_levels) - 1):
            is_right = idx % 2 == 1
            sibling_idx = idx - 1 if is_right else idx + 1
            if sibling_idx < len(tree_levels[level]):
                path.append(
                    MerkleProofEntryDTO(
                        level=level,
                        position="left" if is_right else "right",
                        sibling_hash=tree_levels[level][sibling_idx],
                    )
                )
            idx //= 2

        return path

    def verify_proof(
        self,
        leaf_hash: str,
        proof: list[MerkleProofEntryDTO],
        expected_root: str,
    ) -> bool:
        current = hash_leaf(leaf_hash)

        for entry in proof:
            if entry.position == "left":
                current = hash_pair(entry.sibling_hash, current)
            else:
                current = hash_pair(current, entry.sibling_hash)

        return current == expected_root

    def generate_proof(
        self,
        leaves: list[str],
        index: int,
    ) -> list[MerkleProofEntryDTO]:
        """Build the tree and return the proof for `leaves[index]`.

        Raises:
            ValueError: If leaves is empty or index is out of range.
        """
        if not leaves:
            raise ValueError("Cannot generate proof from empty list")
        if index < 0 or index >= len(leaves):
            raise ValueError(f"Index {index} out of range for {len(leaves)} leaves")

        _, tree_levels = self.build_tree(leaves)
        return self.get_proof(index, tree_levels)
