"""Neighborhood sampling pattern and out-of-grid boundary policies."""

from enum import Enum
from typing import List, Optional, Tuple

from .constants import DEFAULT_CONSTANTS, NCAConstants


class BoundaryPolicy(str, Enum):
    """What a cell sees when a neighbor position falls outside the grid."""

    ZERO = "zero"  # out-of-grid neighbors contribute a zero vector
    WRAP = "wrap"  # toroidal
    CLAMP = "clamp"  # nearest edge cell

    @property
    def pad_mode(self) -> str:
        """Matching ``torch.nn.functional.pad`` mode."""
        return {
            BoundaryPolicy.ZERO: "constant",
            BoundaryPolicy.WRAP: "circular",
            BoundaryPolicy.CLAMP: "replicate",
        }[self]


class NeighborhoodTopology:
    """Fixed, ordered set of relative ``(dx, dy)`` offsets around a cell."""

    def __init__(
        self,
        constants: NCAConstants = DEFAULT_CONSTANTS,
        boundary: BoundaryPolicy = BoundaryPolicy.ZERO,
    ):
        """Initialize topology.

        Args:
            constants: Sizing shared with the rest of the kernel
            boundary: Policy for neighbor positions outside the grid
        """
        self.constants = constants
        self.boundary = BoundaryPolicy(boundary)
        self.offsets: Tuple[Tuple[int, int], ...] = tuple(constants.nhbd)

    def __len__(self) -> int:
        return len(self.offsets)

    def __iter__(self):
        return iter(self.offsets)

    @property
    def center(self) -> int:
        return self.constants.nhbd_center

    @property
    def radius(self) -> int:
        return max(max(abs(dx), abs(dy)) for dx, dy in self.offsets)

    def positions(self, x: int, y: int) -> List[Tuple[int, int]]:
        """Absolute sample positions for the cell at ``(x, y)``, unresolved."""
        return [(x + dx, y + dy) for dx, dy in self.offsets]

    def resolve(self, x: int, y: int, width: int, height: int) -> Optional[Tuple[int, int]]:
        """Map a possibly out-of-grid position onto the grid.

        Args:
            x: Column of the sampled position
            y: Row of the sampled position
            width: Grid width in cells
            height: Grid height in cells

        Returns:
            In-grid ``(x, y)``, or None when the neighbor reads as zeros
        """
        if 0 <= x < width and 0 <= y < height:
            return x, y

        if self.boundary is BoundaryPolicy.WRAP:
            return x % width, y % height
        if self.boundary is BoundaryPolicy.CLAMP:
            return min(max(x, 0), width - 1), min(max(y, 0), height - 1)
        return None

    def sample(self, x: int, y: int, width: int, height: int) -> List[Optional[Tuple[int, int]]]:
        """Resolved neighbor positions for ``(x, y)`` in neighborhood order."""
        return [self.resolve(nx, ny, width, height) for nx, ny in self.positions(x, y)]
