"""
Merkle commitment over a sanctioned-identity set.

The registry only ever stores the root. This module is the list-curator side:
it builds the tree from the full denylist, produces inclusion proofs, and
exposes the pure verification primitive the registry runs against its
stored root.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from .exceptions import NotFound
from .hashing import hash_pair, leaf_hash, to_address, to_bytes32


@dataclass
class MerkleNode:
    """Node in a Merkle tree."""
    hash: bytes
    left: Optional[MerkleNode] = None
    right: Optional[MerkleNode] = None
    identity: Optional[str] = None  # Only leaf nodes carry an identity

    def is_leaf(self) -> bool:
        """Check if this is a leaf node."""
        return self.left is None and self.right is None


def compute_root(leaf: bytes, proof: Sequence[Any]) -> bytes:
    """
    Fold a proof into a candidate root, starting from a leaf.

    Args:
        leaf: 32-byte leaf hash
        proof: Sibling hashes, bottom level first

    Returns:
        The recomputed root

    Raises:
        MalformedInput: If any proof element is not 32 bytes wide
    """
    current = to_bytes32(leaf, field="leaf")
    for index, sibling in enumerate(proof):
        current = hash_pair(current, to_bytes32(sibling, field=f"proof[{index}]"))
    return current


def verify_proof(leaf: bytes, proof: Sequence[Any], root: bytes) -> bool:
    """
    Verify a Merkle inclusion proof.

    An empty proof asserts that the leaf itself is the root, which is how a
    single-identity commitment is checked.

    Returns:
        True if the proof leads from leaf to root, False otherwise
    """
    return compute_root(leaf, proof) == to_bytes32(root, field="root")


class SanctionsMerkleTree:
    """
    Merkle tree over a set of sanctioned addresses.

    Features:
    - Build tree from an iterable of addresses (order and duplicates ignored)
    - Generate inclusion proofs by address
    - Verify inclusion proofs

    Leaves are sorted before pairing so the same set always produces the same
    root. On odd-sized levels the last node is paired with itself.
    """

    def __init__(self) -> None:
        self._root: Optional[MerkleNode] = None
        self._leaves: list[MerkleNode] = []
        self._index: dict[bytes, int] = {}

    def build(self, identities: Iterable[Any]) -> MerkleNode:
        """
        Build the tree.

        Args:
            identities: Addresses to commit

        Returns:
            Root node of the tree

        Raises:
            ValueError: If no identities were given
            MalformedInput: If any identity is not a valid address
        """
        by_leaf: dict[bytes, str] = {}
        for identity in identities:
            address = to_address(identity)
            by_leaf[leaf_hash(address)] = address

        if not by_leaf:
            raise ValueError("Cannot build Merkle tree from empty identity set")

        self._leaves = [
            MerkleNode(hash=leaf, identity=by_leaf[leaf])
            for leaf in sorted(by_leaf)
        ]
        self._index = {node.hash: i for i, node in enumerate(self._leaves)}

        current_level = self._leaves[:]
        while len(current_level) > 1:
            next_level = []
            for i in range(0, len(current_level), 2):
                left = current_level[i]
                right = current_level[i + 1] if i + 1 < len(current_level) else left
                next_level.append(
                    MerkleNode(hash=hash_pair(left.hash, right.hash), left=left, right=right)
                )
            current_level = next_level

        self._root = current_level[0]
        return self._root

    @property
    def root(self) -> bytes:
        """
        Root hash of the tree.

        Raises:
            ValueError: If tree hasn't been built yet
        """
        if self._root is None:
            raise ValueError("Tree not built yet - call build() first")
        return self._root.hash

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def contains(self, identity: Any) -> bool:
        return leaf_hash(identity) in self._index

    def get_proof(self, identity: Any) -> list[bytes]:
        """
        Inclusion proof for an address.

        Returns:
            Sibling hashes from the leaf level up to (not including) the root

        Raises:
            ValueError: If tree not built
            NotFound: If the address is not in the tree
        """
        if self._root is None:
            raise ValueError("Tree not built yet - call build() first")
        leaf = leaf_hash(identity)
        if leaf not in self._index:
            raise NotFound("Sanctioned identity", to_address(identity))

        proof: list[bytes] = []
        current_level = [node.hash for node in self._leaves]
        current_index = self._index[leaf]

        while len(current_level) > 1:
            sibling_index = current_index ^ 1
            if sibling_index >= len(current_level):
                # Odd node, paired with itself
                sibling_index = current_index
            proof.append(current_level[sibling_index])

            next_level = []
            for i in range(0, len(current_level), 2):
                left = current_level[i]
                right = current_level[i + 1] if i + 1 < len(current_level) else left
                next_level.append(hash_pair(left, right))
            current_level = next_level
            current_index //= 2

        return proof

    def verify(self, identity: Any, proof: Sequence[Any]) -> bool:
        """Verify a proof for an address against this tree's root."""
        return verify_proof(leaf_hash(identity), proof, self.root)


__all__ = [
    "MerkleNode",
    "SanctionsMerkleTree",
    "compute_root",
    "verify_proof",
]
