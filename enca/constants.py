"""Fixed channel, neighborhood and buffer-size constants for the NCA kernel."""

from dataclasses import dataclass
from typing import Tuple

# Von Neumann neighborhood, radius 1: north, west, center, east, south
VON_NEUMANN: Tuple[Tuple[int, int], ...] = (
    (0, -1),
    (-1, 0), (0, 0), (1, 0),
    (0, 1),
)


@dataclass(frozen=True)
class NCAConstants:
    """Immutable sizing of one NCA configuration.

    Built once at process start and handed to every component that needs
    to agree on buffer shapes (layout, parameter buffer, kernel, executor).
    All derived sizes are computed from the visible/hidden channel counts
    and the neighborhood, so they can never drift apart.
    """

    vis_chs: int = 4
    hid_chs: int = 2
    nhbd: Tuple[Tuple[int, int], ...] = VON_NEUMANN
    max_grid_size: int = 30 * 30

    def __post_init__(self):
        assert self.vis_chs >= 0, f"vis_chs must be non-negative, got {self.vis_chs}"
        assert self.hid_chs >= 0, f"hid_chs must be non-negative, got {self.hid_chs}"
        assert len(self.nhbd) > 0, "neighborhood must contain at least one offset"
        assert self.max_grid_size > 0, f"max_grid_size must be positive, got {self.max_grid_size}"

    @property
    def nhbd_len(self) -> int:
        return len(self.nhbd)

    @property
    def nhbd_center(self) -> int:
        return self.nhbd.index((0, 0))

    @property
    def inp_chs(self) -> int:
        # RO mirror + RW copy of the visible channels, then hidden
        return 2 * self.vis_chs + self.hid_chs

    @property
    def out_chs(self) -> int:
        return self.vis_chs + self.hid_chs

    @property
    def inp_dim(self) -> int:
        return self.nhbd_len * self.inp_chs

    @property
    def n_weights(self) -> int:
        return self.out_chs * self.inp_dim

    @property
    def n_biases(self) -> int:
        return self.out_chs

    @property
    def n_params(self) -> int:
        return self.n_weights + self.n_biases


DEFAULT_CONSTANTS = NCAConstants()

NHBD = DEFAULT_CONSTANTS.nhbd
NHBD_LEN = DEFAULT_CONSTANTS.nhbd_len
NHBD_CENTER = DEFAULT_CONSTANTS.nhbd_center

VIS_CHS = DEFAULT_CONSTANTS.vis_chs
HID_CHS = DEFAULT_CONSTANTS.hid_chs
INP_CHS = DEFAULT_CONSTANTS.inp_chs
OUT_CHS = DEFAULT_CONSTANTS.out_chs
INP_DIM = DEFAULT_CONSTANTS.inp_dim

N_WEIGHTS = DEFAULT_CONSTANTS.n_weights
N_BIASES = DEFAULT_CONSTANTS.n_biases
N_PARAMS = DEFAULT_CONSTANTS.n_params

WEIGHTS_START = 0
WEIGHTS_END = N_WEIGHTS
BIASES_START = N_WEIGHTS
BIASES_END = N_WEIGHTS + N_BIASES

MAX_GRID_SIZE = DEFAULT_CONSTANTS.max_grid_size
