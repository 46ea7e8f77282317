"""Per-invocation grid size ceiling."""

import logging

from .constants import DEFAULT_CONSTANTS, NCAConstants
from .errors import BoundsError

logger = logging.getLogger(__name__)


class GridBounds:
    """Rejects grids that cannot be scheduled in one kernel invocation.

    The ceiling mirrors the number of cells one GPU work-group updates in
    parallel. Larger grids have to be partitioned by the caller.
    """

    def __init__(self, constants: NCAConstants = DEFAULT_CONSTANTS):
        self.max_cells = constants.max_grid_size

    def fits(self, height: int, width: int) -> bool:
        return height > 0 and width > 0 and height * width <= self.max_cells

    def check(self, height: int, width: int) -> None:
        """Raise BoundsError unless a ``height x width`` grid fits."""
        if height <= 0 or width <= 0:
            raise BoundsError(f"Grid dimensions must be positive, got {height}x{width}")

        n_cells = height * width
        if n_cells > self.max_cells:
            logger.debug("Rejected %dx%d grid (%d cells)", height, width, n_cells)
            raise BoundsError(
                f"Grid {height}x{width} has {n_cells} cells; "
                f"at most {self.max_cells} fit in one invocation"
            )
