"""Bounding volume hierarchy construction.

The hierarchy is built on the host with NumPy and flattened into a pre-order
arena that Taichi kernels walk without a stack:

- Entry ``i`` is either a NODE (an interior box) or a LEAF (one primitive).
- A node's children follow it directly: its left subtree starts at ``i + 1``
  and its right subtree starts where the left one ends.
- ``skips[i]`` is the index just past the subtree rooted at ``i``. For a leaf
  that is simply ``i + 1``.

During traversal a node whose box is hit continues to ``i + 1``; a node whose
box is missed jumps to ``skips[i]``, pruning its whole subtree. Because left
subtrees are laid out before right ones, keeping the later of two equally
near hits reproduces "right child wins ties".

Construction follows the classic median split: at each subtree a random axis
is picked, the objects are stably sorted by the minimum corner of their boxes
on that axis and the list is halved. One object yields a node whose two
children are the same leaf; two objects yield one leaf each.

Example:
    >>> from weekend_raytracer.geometry.bvh import build_bvh
    >>> from weekend_raytracer.scene.manager import SphereInfo
    >>> spheres = [SphereInfo((0, 0, 0), 1.0), SphereInfo((3, 0, 0), 1.0)]
    >>> bvh = build_bvh(spheres, 0.0, 1.0, rng=7)
    >>> bvh.bounding_box().maximum
    array([4., 1., 1.])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np
import numpy.typing as npt

from weekend_raytracer.geometry.aabb import BoundingBox, surrounding_box

logger = logging.getLogger(__name__)

# Arena entry kinds
NODE = 0
LEAF = 1


class Bounded(Protocol):
    """Anything that can report a bounding box over a time interval."""

    def bounding_box(self, t0: float, t1: float) -> BoundingBox | None:
        """Return the box enclosing the object over [t0, t1], or None if unbounded."""
        ...


@dataclass(frozen=True, eq=False)
class BVH:
    """Flattened, immutable bounding volume hierarchy.

    Attributes:
        entry_kinds: NODE or LEAF per entry, shape (N,).
        primitive_ids: Primitive index for leaves, -1 for nodes, shape (N,).
        box_min: Minimum corner per entry, shape (N, 3). For leaves this is
            the primitive's own box.
        box_max: Maximum corner per entry, shape (N, 3).
        skips: Index just past each entry's subtree, shape (N,).
        time0: Start of the interval the boxes were computed for.
        time1: End of that interval.
    """

    entry_kinds: npt.NDArray[np.int32]
    primitive_ids: npt.NDArray[np.int32]
    box_min: npt.NDArray[np.float64]
    box_max: npt.NDArray[np.float64]
    skips: npt.NDArray[np.int32]
    time0: float
    time1: float

    def __len__(self) -> int:
        return int(self.entry_kinds.shape[0])

    @property
    def node_count(self) -> int:
        """Number of interior nodes."""
        return int(np.count_nonzero(self.entry_kinds == NODE))

    @property
    def leaf_count(self) -> int:
        """Number of leaf entries (a primitive may appear in two leaves)."""
        return int(np.count_nonzero(self.entry_kinds == LEAF))

    def bounding_box(self) -> BoundingBox:
        """Box of the root node, enclosing every primitive."""
        return BoundingBox(self.box_min[0], self.box_max[0])


def build_bvh(
    primitives: Sequence[Bounded],
    time0: float,
    time1: float,
    rng: np.random.Generator | int | None = None,
) -> BVH:
    """Build a BVH over ``primitives``.

    Leaves refer to primitives by their position in ``primitives``, so the
    sequence must be in the same order as the primitives stored for
    rendering.

    Args:
        primitives: Objects exposing ``bounding_box(t0, t1)``.
        time0: Start of the shutter interval the boxes must cover.
        time1: End of the shutter interval.
        rng: Random generator or seed for the split axes. The same seed and
            input give the same tree.

    Returns:
        The flattened hierarchy.

    Raises:
        ValueError: If ``primitives`` is empty or any primitive has no
            bounding box.
    """
    if len(primitives) == 0:
        raise ValueError("Cannot build a BVH over an empty list of primitives")

    boxes: list[BoundingBox] = []
    for index, primitive in enumerate(primitives):
        box = primitive.bounding_box(time0, time1)
        if box is None:
            raise ValueError(
                f"Primitive {index} ({primitive!r}) has no bounding box; "
                "unbounded objects cannot be placed in a BVH"
            )
        boxes.append(box)

    generator = np.random.default_rng(rng)

    kinds: list[int] = []
    prim_ids: list[int] = []
    mins: list[npt.NDArray[np.float64]] = []
    maxs: list[npt.NDArray[np.float64]] = []
    skips: list[int] = []

    def emit_leaf(prim: int) -> BoundingBox:
        kinds.append(LEAF)
        prim_ids.append(prim)
        mins.append(boxes[prim].minimum)
        maxs.append(boxes[prim].maximum)
        skips.append(len(kinds))
        return boxes[prim]

    def emit_node(ids: list[int]) -> BoundingBox:
        axis = int(generator.integers(0, 3))
        ordered = sorted(ids, key=lambda i: boxes[i].axis_minimum(axis))

        index = len(kinds)
        kinds.append(NODE)
        prim_ids.append(-1)
        mins.append(np.zeros(3))
        maxs.append(np.zeros(3))
        skips.append(-1)

        if len(ordered) == 1:
            left_box = emit_leaf(ordered[0])
            right_box = emit_leaf(ordered[0])
        elif len(ordered) == 2:
            left_box = emit_leaf(ordered[0])
            right_box = emit_leaf(ordered[1])
        else:
            half = len(ordered) // 2
            left_box = emit_node(ordered[:half])
            right_box = emit_node(ordered[half:])

        box = surrounding_box(left_box, right_box)
        mins[index] = box.minimum
        maxs[index] = box.maximum
        skips[index] = len(kinds)
        return box

    emit_node(list(range(len(primitives))))

    bvh = BVH(
        entry_kinds=np.asarray(kinds, dtype=np.int32),
        primitive_ids=np.asarray(prim_ids, dtype=np.int32),
        box_min=np.vstack(mins).astype(np.float64),
        box_max=np.vstack(maxs).astype(np.float64),
        skips=np.asarray(skips, dtype=np.int32),
        time0=float(time0),
        time1=float(time1),
    )
    logger.debug(
        "Built BVH over %d primitives: %d nodes, %d leaves",
        len(primitives),
        bvh.node_count,
        bvh.leaf_count,
    )
    return bvh
