"""Per-cell affine update kernel.

Every cell concatenates the full channel vectors of its neighborhood (in
neighborhood order, ``RO | RW | HID`` per neighbor) into one input vector
and maps it through ``out = b + W @ inp``. Two backends compute the same
thing:

* ``step_reference`` walks the grid cell by cell in float64 with numpy.
  It is the sequential reference every other backend is checked against.
* ``step`` gathers all neighborhoods at once with torch and runs a single
  batched matmul, on whatever device the state lives on.

No activation is applied here; clamping or residual updates belong to the
calling pipeline.
"""

import logging
from typing import Optional

import numpy as np
import torch
import torch.nn.functional as F

from .bounds import GridBounds
from .constants import NCAConstants
from .errors import ConfigurationError, NumericDivergence
from .layout import ChannelLayout
from .neighborhood import BoundaryPolicy, NeighborhoodTopology
from .params import ParameterBuffer

logger = logging.getLogger(__name__)


class UpdateKernel:
    """Computes next-step cell outputs from the previous step's snapshot."""

    def __init__(
        self,
        params: ParameterBuffer,
        boundary: BoundaryPolicy = BoundaryPolicy.ZERO,
        constants: Optional[NCAConstants] = None,
    ):
        """Initialize kernel.

        Args:
            params: Read-only weights and biases
            boundary: Out-of-grid sampling policy
            constants: Sizing expected by the caller (defaults to the buffer's)

        Raises:
            ConfigurationError: If ``params`` was built for different sizing
        """
        if constants is not None:
            params.check_constants(constants)

        self.params = params
        self.constants = params.constants
        self.layout = ChannelLayout(self.constants)
        self.topology = NeighborhoodTopology(self.constants, boundary)
        self.bounds = GridBounds(self.constants)

        # float64 host copy for the sequential backend
        self._reference_buffer = params.to_numpy().astype(np.float64)

    @property
    def boundary(self) -> BoundaryPolicy:
        return self.topology.boundary

    def _check_state(self, state: torch.Tensor) -> None:
        if state.dim() < 3:
            raise ConfigurationError(
                f"State must be [..., height, width, channels], got shape {tuple(state.shape)}"
            )
        if state.shape[-1] != self.constants.inp_chs:
            raise ConfigurationError(
                f"State has {state.shape[-1]} channels; expected {self.constants.inp_chs}"
            )
        # Reject oversized grids before any dispatch
        self.bounds.check(state.shape[-3], state.shape[-2])

    def gather(self, state: torch.Tensor) -> torch.Tensor:
        """Concatenate each cell's neighborhood into one input vector.

        Args:
            state: Cell states [..., height, width, inp_chs]

        Returns:
            Neighborhood inputs [..., height, width, inp_dim], ordered
            ``[n0_ch0 .. n0_chC, n1_ch0 .. ]`` following the topology
        """
        *lead, height, width, channels = state.shape
        r = self.topology.radius

        # [N, C, H, W] so pad acts on the spatial dims
        flat = state.reshape(-1, height, width, channels).permute(0, 3, 1, 2)
        padded = F.pad(flat, (r, r, r, r), mode=self.boundary.pad_mode)

        views = [
            padded[:, :, r + dy: r + dy + height, r + dx: r + dx + width]
            for dx, dy in self.topology
        ]
        inputs = torch.cat(views, dim=1)  # [N, nhbd_len * C, H, W]

        return inputs.permute(0, 2, 3, 1).reshape(*lead, height, width, self.constants.inp_dim)

    def step(self, state: torch.Tensor) -> torch.Tensor:
        """Vectorized update of every cell.

        Args:
            state: Snapshot of cell states [..., height, width, inp_chs]

        Returns:
            Cell outputs [..., height, width, out_chs]
        """
        self._check_state(state)

        weights = self.params.weights_matrix().to(device=state.device, dtype=state.dtype)
        biases = self.params.biases().to(device=state.device, dtype=state.dtype)

        return F.linear(self.gather(state), weights, biases)

    def step_population(
        self,
        states: torch.Tensor,
        weights: torch.Tensor,
        biases: torch.Tensor,
    ) -> torch.Tensor:
        """Vectorized update for a population of parameter sets.

        Args:
            states: Cell states [pop, ..., height, width, inp_chs]
            weights: Per-individual weights [pop, out_chs, inp_dim]
            biases: Per-individual biases [pop, out_chs]

        Returns:
            Cell outputs [pop, ..., height, width, out_chs]
        """
        self._check_state(states)
        c = self.constants
        pop = states.shape[0]

        if weights.shape != (pop, c.out_chs, c.inp_dim):
            raise ConfigurationError(
                f"Population weights must be {(pop, c.out_chs, c.inp_dim)}, got {tuple(weights.shape)}"
            )
        if biases.shape != (pop, c.out_chs):
            raise ConfigurationError(
                f"Population biases must be {(pop, c.out_chs)}, got {tuple(biases.shape)}"
            )

        inputs = self.gather(states)
        lead = inputs.shape[1:-1]
        flat = inputs.reshape(pop, -1, c.inp_dim)

        out = torch.bmm(flat, weights.to(flat).transpose(1, 2)) + biases.to(flat).unsqueeze(1)
        return out.reshape(pop, *lead, c.out_chs)

    def cell_input(self, state: np.ndarray, x: int, y: int) -> np.ndarray:
        """Neighborhood input vector of one cell, zeros for dropped neighbors."""
        height, width, channels = state.shape
        inp = np.zeros(self.constants.inp_dim, dtype=np.float64)

        for ni, pos in enumerate(self.topology.sample(x, y, width, height)):
            if pos is None:
                continue
            nx, ny = pos
            inp[ni * channels: (ni + 1) * channels] = state[ny, nx, :]

        return inp

    def cell_output(self, state: np.ndarray, x: int, y: int) -> np.ndarray:
        """Sequential affine update of the cell at ``(x, y)``.

        Args:
            state: Snapshot of one grid [height, width, inp_chs]
            x: Column of the cell
            y: Row of the cell

        Returns:
            Output vector [out_chs] in float64
        """
        c = self.constants
        buffer = self._reference_buffer
        inp = self.cell_input(state, x, y)
        out = np.zeros(c.out_chs, dtype=np.float64)

        for o in range(c.out_chs):
            acc = buffer[c.n_weights + o]
            for i in range(c.inp_dim):
                acc += buffer[o * c.inp_dim + i] * inp[i]
            out[o] = acc

        return out

    def step_reference(self, state: torch.Tensor) -> torch.Tensor:
        """Sequential cell-by-cell update of a single grid.

        Args:
            state: Snapshot of cell states [height, width, inp_chs]

        Returns:
            Cell outputs [height, width, out_chs], same dtype/device as state
        """
        if state.dim() != 3:
            raise ConfigurationError(
                f"Reference backend takes one grid [height, width, channels], got {tuple(state.shape)}"
            )
        self._check_state(state)

        snapshot = state.detach().cpu().numpy().astype(np.float64)
        height, width, _ = snapshot.shape
        out = np.zeros((height, width, self.constants.out_chs), dtype=np.float64)

        for y in range(height):
            for x in range(width):
                out[y, x] = self.cell_output(snapshot, x, y)

        return torch.from_numpy(out).to(device=state.device, dtype=state.dtype)

    def assert_matches_reference(self, state: torch.Tensor, atol: float = 1e-5) -> float:
        """Compare the vectorized backend with the sequential reference.

        Returns:
            Largest absolute difference observed

        Raises:
            NumericDivergence: If any output differs by more than ``atol``
        """
        fast = self.step(state).double().cpu()
        slow = self.step_reference(state.double()).cpu()
        max_err = (fast - slow).abs().max().item()

        if max_err > atol:
            raise NumericDivergence(
                f"Vectorized output differs from reference by {max_err:.3e} (atol={atol:.1e})"
            )

        logger.debug("Vectorized backend within %.3e of reference", max_err)
        return max_err
