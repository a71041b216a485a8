"""
Merkle accumulators over note commitments.

MerkleAccumulator is the pool-side structure. It stores only the append
frontier (one cached subtree hash per level) and a bounded history of recent
roots, so each insertion costs O(height) hashes:

    level h   root ......................... pushed onto the root history
    level i   filled_subtrees[i]  (last left-hand node completed at level i)
    level 0   leaves, always inserted two at a time

MerkleTree is the client-side structure. It keeps every layer so it can
produce authentication paths for the prover. Fed the same ordered leaves,
both produce identical roots.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable

from shielded_pool.errors import AccumulatorFull
from shielded_pool.crypto.field import ZERO_VALUE, hash_left_right, require_field_element

logger = logging.getLogger("shielded_pool.merkle")

DEFAULT_TREE_HEIGHT = 5
DEFAULT_ROOT_HISTORY_SIZE = 100
MAX_TREE_HEIGHT = 32


def compute_zeros(height: int) -> list[int]:
    """
    Roots of empty subtrees: zeros[0] is the empty leaf, zeros[height] the empty tree root.
    """
    zeros = [ZERO_VALUE]
    for _ in range(height):
        zeros.append(hash_left_right(zeros[-1], zeros[-1]))
    return zeros


def _check_height(height: int) -> None:
    if not 1 <= height <= MAX_TREE_HEIGHT:
        raise ValueError(f"height must be in [1, {MAX_TREE_HEIGHT}], got {height}")


# ==============================================================================
# MerkleAccumulator — incremental tree with root history
# ==============================================================================


class MerkleAccumulator:
    """
    Append-only, fixed-height commitment accumulator with a root history ring.

    Args:
        height: Tree height; capacity is 2**height leaves. Fixed for the deployment.
        root_history_size: Number of recent roots accepted by `is_known_root`.
    """

    def __init__(
        self,
        height: int = DEFAULT_TREE_HEIGHT,
        root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE,
    ) -> None:
        _check_height(height)
        if root_history_size < 1:
            raise ValueError(f"root_history_size must be positive, got {root_history_size}")

        self.height = height
        self.root_history_size = root_history_size
        self.zeros = compute_zeros(height)
        self.filled_subtrees: list[int] = self.zeros[:height]
        self.next_index = 0
        self._root_history: deque[int] = deque(maxlen=root_history_size)

    @property
    def capacity(self) -> int:
        return 2**self.height

    @property
    def remaining_capacity(self) -> int:
        return self.capacity - self.next_index

    @property
    def root(self) -> int:
        """The current root. Before any insertion this is the empty-tree root."""
        return self._root_history[-1] if self._root_history else self.zeros[self.height]

    def insert_pair(self, left: int, right: int) -> tuple[int, int]:
        """
        Append two leaves and record the new root.

        Args:
            left: Commitment placed at the next free (even) index.
            right: Commitment placed right after it.

        Returns:
            The (left_index, right_index) leaf positions.

        Raises:
            AccumulatorFull: If fewer than two free leaves remain.
            ValueError: If a leaf is outside the scalar field.
        """
        if self.next_index + 2 > self.capacity:
            logger.error(f"Accumulator exhausted at {self.next_index}/{self.capacity} leaves")
            raise AccumulatorFull(
                f"Merkle tree is full: {self.next_index}/{self.capacity} leaves used. "
                f"No more leaves can be added."
            )
        require_field_element(left, "left leaf")
        require_field_element(right, "right leaf")

        left_index = self.next_index
        current_index = left_index // 2
        current = hash_left_right(left, right)

        for level in range(1, self.height):
            if current_index % 2 == 0:
                self.filled_subtrees[level] = current
                current = hash_left_right(current, self.zeros[level])
            else:
                current = hash_left_right(self.filled_subtrees[level], current)
            current_index //= 2

        self._root_history.append(current)
        self.next_index += 2
        logger.debug(f"Inserted leaves {left_index},{left_index + 1}; root=0x{current:064x}")
        return left_index, left_index + 1

    def is_known_root(self, root: int) -> bool:
        """
        True iff `root` is the current root or still inside the history window.

        Zero is never a known root.
        """
        if root == 0:
            return False
        if root == self.root:
            return True
        return root in self._root_history

    def recent_roots(self) -> list[int]:
        """Roots in the history window, oldest first."""
        return list(self._root_history)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_state(self) -> dict[str, Any]:
        return {
            "height": self.height,
            "root_history_size": self.root_history_size,
            "next_index": self.next_index,
            "filled_subtrees": list(self.filled_subtrees),
            "root_history": list(self._root_history),
        }

    @classmethod
    def from_state(cls, state: dict[str, Any]) -> MerkleAccumulator:
        acc = cls(height=state["height"], root_history_size=state["root_history_size"])
        if len(state["filled_subtrees"]) != acc.height:
            raise ValueError("filled_subtrees length does not match the tree height")
        next_index = state["next_index"]
        if not 0 <= next_index <= acc.capacity or next_index % 2:
            raise ValueError(f"next_index {next_index} is not an even leaf count within capacity {acc.capacity}")
        if len(state["root_history"]) != min(next_index // 2, acc.root_history_size):
            raise ValueError(
                f"root_history holds {len(state['root_history'])} roots; expected "
                f"{min(next_index // 2, acc.root_history_size)} for {next_index} leaves"
            )
        acc.next_index = next_index
        acc.filled_subtrees = list(state["filled_subtrees"])
        acc._root_history.extend(state["root_history"])
        return acc


# ==============================================================================
# MerkleTree — full client-side tree
# ==============================================================================


@dataclass(frozen=True)
class MerklePath:
    """
    Authentication path for one leaf.

    Attributes:
        leaf_index: Position of the leaf.
        path_elements: Sibling hashes from the leaf level upward.
        path_indices: 0 if the node is a left child at that level, 1 if right.
        root: Root the path authenticates against.
    """
    leaf_index: int
    path_elements: list[int]
    path_indices: list[int]
    root: int


def compute_root_from_path(leaf: int, leaf_index: int, path_elements: list[int]) -> int:
    """Fold a leaf up its authentication path."""
    current = leaf
    index = leaf_index
    for sibling in path_elements:
        if index % 2 == 0:
            current = hash_left_right(current, sibling)
        else:
            current = hash_left_right(sibling, current)
        index //= 2
    return current


class MerkleTree:
    """
    Full fixed-height Merkle tree holding every layer.

    Usage:
        tree = MerkleTree(5, pool.commitments())
        path = tree.path(note.index)
        assert tree.root == pool.current_root()
    """

    def __init__(self, height: int = DEFAULT_TREE_HEIGHT, leaves: Iterable[int] = ()) -> None:
        _check_height(height)
        self.height = height
        self.zeros = compute_zeros(height)
        self._layers: list[list[int]] = [[] for _ in range(height + 1)]
        self._positions: dict[int, int] = {}
        self.bulk_insert(leaves)

    @property
    def capacity(self) -> int:
        return 2**self.height

    @property
    def leaves(self) -> list[int]:
        return list(self._layers[0])

    @property
    def root(self) -> int:
        top = self._layers[self.height]
        return top[0] if top else self.zeros[self.height]

    def __len__(self) -> int:
        return len(self._layers[0])

    def insert(self, leaf: int) -> int:
        """Append one leaf and return its index."""
        return self.bulk_insert([leaf])

    def bulk_insert(self, leaves: Iterable[int]) -> int:
        """
        Append leaves in order.

        Returns:
            Index of the first appended leaf.

        Raises:
            AccumulatorFull: If the leaves do not fit.
        """
        new_leaves = [require_field_element(leaf, "leaf") for leaf in leaves]
        start = len(self._layers[0])
        if not new_leaves:
            return start
        if start + len(new_leaves) > self.capacity:
            raise AccumulatorFull(
                f"Merkle tree is full: cannot add {len(new_leaves)} leaves to {start}/{self.capacity}"
            )
        for offset, leaf in enumerate(new_leaves):
            self._positions.setdefault(leaf, start + offset)
        self._layers[0].extend(new_leaves)
        self._rebuild_from(start)
        return start

    def _rebuild_from(self, start: int) -> None:
        index = start
        for level in range(1, self.height + 1):
            index //= 2
            below = self._layers[level - 1]
            layer = self._layers[level]
            del layer[index:]
            for i in range(index, (len(below) + 1) // 2):
                left = below[2 * i]
                right = below[2 * i + 1] if 2 * i + 1 < len(below) else self.zeros[level - 1]
                layer.append(hash_left_right(left, right))

    def index_of(self, leaf: int) -> int | None:
        """Index of the first occurrence of `leaf`, or None."""
        return self._positions.get(leaf)

    def path(self, leaf_index: int) -> MerklePath:
        """
        Authentication path for the leaf at `leaf_index`.

        Raises:
            ValueError: If the index is not occupied.
        """
        if not 0 <= leaf_index < len(self._layers[0]):
            raise ValueError(f"Leaf index {leaf_index} is out of bounds (size {len(self)})")

        elements: list[int] = []
        indices: list[int] = []
        index = leaf_index
        for level in range(self.height):
            layer = self._layers[level]
            sibling = index ^ 1
            elements.append(layer[sibling] if sibling < len(layer) else self.zeros[level])
            indices.append(index % 2)
            index //= 2
        return MerklePath(
            leaf_index=leaf_index,
            path_elements=elements,
            path_indices=indices,
            root=self.root,
        )

    @staticmethod
    def verify_path(leaf: int, path: MerklePath) -> bool:
        """Check that `leaf` at `path.leaf_index` authenticates to `path.root`."""
        return compute_root_from_path(leaf, path.leaf_index, path.path_elements) == path.root
