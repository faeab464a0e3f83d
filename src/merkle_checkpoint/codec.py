"""Binary serialization of Merkle trees.

Layout (big-endian, no padding)::

    MAGIC        u32   0xCDAACE99
    NODE_COUNT   u32
    NODE_COUNT records in breadth-first order, root first:
      KIND       u8    (0 = leaf, 1 = internal)
      SIG_LEN    u32
      SIGNATURE  SIG_LEN bytes

Signature lengths are per record: promoted nodes carry leaf-length signatures
while combined nodes carry the combiner's digest length.
"""

from __future__ import annotations

import struct
from collections import deque

from .merkle import (
    FormatError,
    MerkleNode,
    MerkleTree,
    NodeKind,
    leaf_count_for,
    level_widths,
)

MAGIC = 0xCDAACE99

_HEADER = struct.Struct(">II")
_RECORD = struct.Struct(">BI")

# (kind, signature) as read from the stream
Record = tuple[NodeKind, bytes]


def encode(tree: MerkleTree) -> bytes:
    """Serialize a tree to bytes in breadth-first order."""
    parts = [_HEADER.pack(MAGIC, tree.node_count)]
    for node in tree.iter_breadth_first():
        parts.append(_RECORD.pack(node.kind, len(node.signature)))
        parts.append(node.signature)
    return b"".join(parts)


def decode(data: bytes | bytearray | memoryview) -> MerkleTree:
    """
    Reconstruct a tree from bytes produced by ``encode``.

    The tree shape is fully determined by the node count: it fixes the leaf
    count, hence the width of every level and which internal nodes are
    promoted. Records are checked against that shape before any node is built.

    Args:
        data: Serialized tree

    Returns:
        A MerkleTree structurally equal to the encoded one

    Raises:
        FormatError: If the header is short or has the wrong magic, a record
            runs past the end of the buffer, bytes trail the last record, or
            the records do not form a tree of the declared size
    """
    data = bytes(data)

    if len(data) < _HEADER.size:
        raise FormatError(
            f"Buffer of {len(data)} bytes is shorter than the {_HEADER.size}-byte header"
        )

    magic, node_count = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise FormatError(f"Bad magic number 0x{magic:08x}, expected 0x{MAGIC:08x}")

    leaf_count = leaf_count_for(node_count)
    if leaf_count is None:
        raise FormatError(f"No Merkle tree has exactly {node_count} nodes")

    records = _read_records(data, node_count)
    widths = level_widths(leaf_count)
    links = _link_records(records, widths)

    nodes: list[MerkleNode | None] = [None] * node_count
    # Children always follow their parent in breadth-first order
    for index in reversed(range(node_count)):
        kind, signature = records[index]
        left_index, right_index = links[index]
        left = nodes[left_index] if left_index is not None else None
        right = nodes[right_index] if right_index is not None else None

        if kind == NodeKind.INTERNAL and right is None and signature != left.signature:
            raise FormatError(
                f"Promoted node at position {index} does not carry its child's signature"
            )
        nodes[index] = MerkleNode(kind, signature, left=left, right=right)

    return MerkleTree(
        root=nodes[0],
        node_count=node_count,
        height=len(widths) - 1,
        leaf_signatures=tuple(sig for kind, sig in records if kind == NodeKind.LEAF),
    )


def _read_records(data: bytes, node_count: int) -> list[Record]:
    """Read ``node_count`` records following the header."""
    # Reject impossible counts before reading anything
    if node_count * _RECORD.size > len(data) - _HEADER.size:
        raise FormatError(
            f"Declared node count {node_count} does not fit in {len(data)} bytes"
        )

    records: list[Record] = []
    offset = _HEADER.size
    for index in range(node_count):
        if offset + _RECORD.size > len(data):
            raise FormatError(f"Record {index} header runs past end of buffer")
        kind_byte, sig_len = _RECORD.unpack_from(data, offset)
        offset += _RECORD.size

        if offset + sig_len > len(data):
            raise FormatError(
                f"Record {index} signature of {sig_len} bytes runs past end of buffer"
            )
        try:
            kind = NodeKind(kind_byte)
        except ValueError:
            raise FormatError(f"Record {index} has unknown kind {kind_byte}") from None

        records.append((kind, data[offset : offset + sig_len]))
        offset += sig_len

    if offset != len(data):
        raise FormatError(f"{len(data) - offset} trailing bytes after last record")

    return records


def _link_records(
    records: list[Record], widths: list[int]
) -> list[tuple[int | None, int | None]]:
    """
    Assign each record to its parent using a worklist of nodes awaiting children.

    Returns the (left, right) child record indices of every record.
    """
    height = len(widths) - 1
    links: list[tuple[int | None, int | None]] = [(None, None)] * len(records)

    _expect_kind(records, 0, level=0, height=height)

    # (record index, level, position within level)
    queue: deque[tuple[int, int, int]] = deque([(0, 0, 0)])
    next_index = 1

    while queue:
        index, level, position = queue.popleft()
        slots = 2 if 2 * position + 1 < widths[level + 1] else 1

        children = []
        for slot in range(slots):
            child = next_index
            next_index += 1
            if _expect_kind(records, child, level=level + 1, height=height) == NodeKind.INTERNAL:
                queue.append((child, level + 1, 2 * position + slot))
            children.append(child)

        links[index] = (children[0], children[1] if slots == 2 else None)

    return links


def _expect_kind(records: list[Record], index: int, level: int, height: int) -> NodeKind:
    """Check a record's kind against its level; leaves only sit on the bottom level."""
    expected = NodeKind.LEAF if level == height else NodeKind.INTERNAL
    kind = records[index][0]
    if kind != expected:
        raise FormatError(
            f"Record {index} is {kind.name.lower()} but level {level} "
            f"holds {expected.name.lower()} nodes"
        )
    return kind
