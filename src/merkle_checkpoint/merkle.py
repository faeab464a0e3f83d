"""Merkle tree construction over an ordered sequence of leaf signatures.

Leaves are paired left-to-right at every level and each pair is combined into
a parent signature. When a level has an odd count, the last node is promoted:
it is wrapped in a single-child internal parent that carries its signature
upward unchanged. Combining is order-sensitive, so any reordering of the
leaves that changes a pairing changes the root signature.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from .combiners import Combiner, get_combiner


class MerkleError(Exception):
    """Base class for Merkle checkpoint errors."""


class InvalidInputError(MerkleError, ValueError):
    """Leaf signatures cannot form a tree."""


class FormatError(MerkleError, ValueError):
    """Serialized tree bytes are malformed or truncated."""


class NodeKind(IntEnum):
    """Node kind; values are the KIND byte of the wire format."""

    LEAF = 0
    INTERNAL = 1


@dataclass(frozen=True)
class MerkleNode:
    """A node in the Merkle tree: a leaf signature or a derived internal one."""

    kind: NodeKind
    signature: bytes
    left: MerkleNode | None = field(default=None, repr=False)
    right: MerkleNode | None = field(default=None, repr=False)

    @property
    def is_leaf(self) -> bool:
        return self.kind == NodeKind.LEAF

    @property
    def is_promoted(self) -> bool:
        """Internal node carrying its only child's signature."""
        return self.kind == NodeKind.INTERNAL and self.right is None

    def children(self) -> list[MerkleNode]:
        return [child for child in (self.left, self.right) if child is not None]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON display."""
        result: dict[str, Any] = {
            "kind": self.kind.name.lower(),
            "signature": self.signature.hex(),
        }
        if self.left is not None:
            result["left"] = self.left.to_dict()
        if self.right is not None:
            result["right"] = self.right.to_dict()
        return result


@dataclass(frozen=True)
class MerkleTree:
    """Immutable Merkle tree with a single root and derived metadata."""

    root: MerkleNode
    node_count: int
    height: int
    leaf_signatures: tuple[bytes, ...] = field(repr=False)

    @classmethod
    def build(
        cls,
        leaf_signatures: Sequence[bytes | str],
        combiner: Combiner | None = None,
    ) -> MerkleTree:
        """
        Build a Merkle tree bottom-up from ordered leaf signatures.

        Args:
            leaf_signatures: Ordered leaf signatures; ``str`` values are UTF-8 encoded
            combiner: Combining function for paired nodes (defaults to adler32)

        Returns:
            A MerkleTree whose root summarises the sequence and its order

        Raises:
            InvalidInputError: If fewer than 2 signatures are given, or one is
                neither bytes nor str
        """
        if combiner is None:
            combiner = get_combiner()

        signatures = tuple(_to_signature(sig) for sig in leaf_signatures)
        if len(signatures) < 2:
            raise InvalidInputError(
                f"At least 2 leaf signatures are required to build a Merkle tree, "
                f"got {len(signatures)}"
            )

        level = [MerkleNode(NodeKind.LEAF, sig) for sig in signatures]
        node_count = len(level)
        height = 0

        while len(level) > 1:
            level = _next_level(level, combiner)
            node_count += len(level)
            height += 1

        return cls(
            root=level[0],
            node_count=node_count,
            height=height,
            leaf_signatures=signatures,
        )

    @property
    def root_signature(self) -> bytes:
        return self.root.signature

    @property
    def leaf_count(self) -> int:
        return len(self.leaf_signatures)

    def matches(self, other: MerkleTree) -> bool:
        """Check whether both trees summarise the same ordered sequence."""
        return self.root_signature == other.root_signature

    def iter_breadth_first(self) -> Iterator[MerkleNode]:
        """Yield nodes level by level, left to right, starting at the root."""
        queue: deque[MerkleNode] = deque([self.root])
        while queue:
            node = queue.popleft()
            yield node
            queue.extend(node.children())

    def levels(self) -> list[list[MerkleNode]]:
        """Group nodes by depth, root level first."""
        result: list[list[MerkleNode]] = []
        level = [self.root]
        while level:
            result.append(level)
            level = [child for node in level for child in node.children()]
        return result

    def verify(self, combiner: Combiner | None = None) -> list[int]:
        """
        Recompute every internal signature from its children.

        Args:
            combiner: The combining function the tree was built with

        Returns:
            Breadth-first positions of internal nodes whose signature does not
            match their children; empty when the tree is consistent
        """
        if combiner is None:
            combiner = get_combiner()

        mismatches = []
        for position, node in enumerate(self.iter_breadth_first()):
            if node.is_leaf:
                continue
            if node.right is None:
                expected = node.left.signature
            else:
                expected = combiner.combine(node.left.signature, node.right.signature)
            if node.signature != expected:
                mismatches.append(position)
        return mismatches

    def to_dict(self) -> dict[str, Any]:
        """Serialize tree to dictionary for JSON display."""
        return {
            "node_count": self.node_count,
            "height": self.height,
            "leaf_count": self.leaf_count,
            "root": self.root.to_dict(),
        }


def level_widths(leaf_count: int) -> list[int]:
    """Return the number of nodes on each level, root level first."""
    widths = [leaf_count]
    while widths[-1] > 1:
        widths.append((widths[-1] + 1) // 2)
    widths.reverse()
    return widths


def expected_node_count(leaf_count: int) -> int:
    """Total number of nodes in a tree built from ``leaf_count`` leaves."""
    return sum(level_widths(leaf_count))


def leaf_count_for(node_count: int) -> int | None:
    """
    Recover the leaf count of a tree from its total node count.

    The node count grows strictly with the leaf count, so at most one leaf
    count matches. Returns None when no tree has exactly ``node_count`` nodes.
    """
    if node_count < 3:
        return None

    # A tree always has fewer leaves than nodes
    low, high = 2, node_count
    while low <= high:
        mid = (low + high) // 2
        total = expected_node_count(mid)
        if total == node_count:
            return mid
        if total < node_count:
            low = mid + 1
        else:
            high = mid - 1
    return None


def _to_signature(value: bytes | str) -> bytes:
    """Normalise a leaf signature to bytes."""
    if isinstance(value, str):
        try:
            return value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise InvalidInputError(f"Leaf signature {value!r} is not encodable as UTF-8") from e
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise InvalidInputError(
        f"Leaf signatures must be bytes or str, got {type(value).__name__}"
    )


def _next_level(children: list[MerkleNode], combiner: Combiner) -> list[MerkleNode]:
    """Pair adjacent nodes into parents, promoting a trailing odd node."""
    parents = []
    for i in range(0, len(children) - 1, 2):
        left, right = children[i], children[i + 1]
        parents.append(
            MerkleNode(
                NodeKind.INTERNAL,
                combiner.combine(left.signature, right.signature),
                left=left,
                right=right,
            )
        )

    if len(children) % 2:
        last = children[-1]
        parents.append(MerkleNode(NodeKind.INTERNAL, last.signature, left=last))

    return parents
