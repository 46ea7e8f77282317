"""Host-side step loops around the update kernel."""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import torch

from .errors import ConfigurationError
from .kernel import UpdateKernel
from .neighborhood import BoundaryPolicy
from .params import ParameterBuffer
from .substrate import Substrate, commit_data

logger = logging.getLogger(__name__)

BACKENDS = ("vectorized", "reference")
ACTIVATIONS = ("none", "clamp")


class TerminationReason(str, Enum):
    MAX_STEPS = "max_steps"
    CONVERGENCE = "convergence"


def apply_activation(out: torch.Tensor, activation: str) -> torch.Tensor:
    """Post-update policy applied by the pipeline, never by the kernel."""
    if activation == "none":
        return out
    if activation == "clamp":
        return out.clamp(0.0, 1.0)
    raise ConfigurationError(f"Unknown activation {activation!r}; expected one of {ACTIVATIONS}")


class NCAExecutor:
    """Runs one parameter buffer over one grid until termination.

    Every step reads the committed substrate, computes all cell outputs
    into a fresh buffer and only then swaps it in, so a step either
    happens for the whole grid or not at all.
    """

    def __init__(
        self,
        params: ParameterBuffer,
        substrate: Substrate,
        max_steps: int = 40,
        convergence_threshold: float = 0.25,
        boundary: BoundaryPolicy = BoundaryPolicy.ZERO,
        activation: str = "none",
        backend: str = "vectorized",
    ):
        """Initialize executor.

        Args:
            params: Weights and biases, read-only for the executor's lifetime
            substrate: Initial grid state
            max_steps: Number of steps before MAX_STEPS termination
            convergence_threshold: Stop once max |next - prev| is below this
            boundary: Out-of-grid sampling policy
            activation: Post-update policy ("none" or "clamp")
            backend: "vectorized" (torch) or "reference" (sequential)

        Raises:
            ConfigurationError: On unknown backend/activation or mismatched sizing
            BoundsError: If the grid exceeds the per-invocation ceiling
        """
        assert max_steps >= 0, f"max_steps must be non-negative, got {max_steps}"

        if backend not in BACKENDS:
            raise ConfigurationError(f"Unknown backend {backend!r}; expected one of {BACKENDS}")
        if activation not in ACTIVATIONS:
            raise ConfigurationError(f"Unknown activation {activation!r}; expected one of {ACTIVATIONS}")

        self.kernel = UpdateKernel(params, boundary=boundary, constants=substrate.constants)
        self.kernel.bounds.check(substrate.height, substrate.width)

        self.params = params
        self.substrate = substrate
        self.prev_substrate = substrate
        self.max_steps = max_steps
        self.convergence_threshold = convergence_threshold
        self.activation = activation
        self.backend = backend

        self.steps = 0
        self.reason: Optional[TerminationReason] = None

    def _compute(self, state: torch.Tensor) -> torch.Tensor:
        if self.backend == "reference":
            return self.kernel.step_reference(state)
        return self.kernel.step(state)

    def step(self) -> Optional[TerminationReason]:
        """Execute one full-grid step.

        Returns:
            Termination reason once max steps or convergence is reached, else None
        """
        if self.steps >= self.max_steps:
            self.reason = TerminationReason.MAX_STEPS
            return self.reason

        self.prev_substrate = self.substrate

        with torch.no_grad():
            out = self._compute(self.prev_substrate.data)
            out = apply_activation(out, self.activation)
            self.substrate = self.prev_substrate.commit(out)

        self.steps += 1

        delta = (self.substrate.data - self.prev_substrate.data).abs().max().item()
        logger.debug("Step %d: max delta=%.4f", self.steps, delta)

        if delta < self.convergence_threshold:
            self.reason = TerminationReason.CONVERGENCE
            return self.reason

        return None

    def run(self) -> TerminationReason:
        """Step until termination."""
        while True:
            reason = self.step()
            if reason is not None:
                logger.info("Terminated after %d steps: %s", self.steps, reason.value)
                return reason


class EnsembleExecutor:
    """Several parameter buffers applied one after another to the same grid.

    When the active buffer terminates, the next one continues from its
    substrate with the hidden channels cleared.
    """

    def __init__(self, params_list: Sequence[ParameterBuffer], substrate: Substrate, **executor_kwargs):
        """Initialize ensemble.

        Args:
            params_list: Buffers in execution order
            substrate: Initial grid state
            **executor_kwargs: Forwarded to every NCAExecutor
        """
        if len(params_list) == 0:
            raise ConfigurationError("Ensemble needs at least one parameter buffer")

        self.params_list = list(params_list)
        self.executor_kwargs = executor_kwargs
        self.curr_exec_idx = 0
        self.executors: List[NCAExecutor] = [
            NCAExecutor(self.params_list[0], substrate, **executor_kwargs)
        ]

    @property
    def current(self) -> NCAExecutor:
        return self.executors[self.curr_exec_idx]

    @property
    def substrate(self) -> Substrate:
        return self.current.substrate

    @property
    def prev_substrate(self) -> Substrate:
        return self.current.prev_substrate

    @property
    def steps(self) -> int:
        return sum(executor.steps for executor in self.executors)

    def step(self) -> Optional[TerminationReason]:
        reason = self.current.step()
        if reason is None:
            return None

        if self.curr_exec_idx < len(self.params_list) - 1:
            substrate = self.current.substrate.clear_hidden()
            self.curr_exec_idx += 1
            self.executors.append(
                NCAExecutor(self.params_list[self.curr_exec_idx], substrate, **self.executor_kwargs)
            )
            logger.debug("Handing off to ensemble member %d", self.curr_exec_idx)
            return None

        return reason

    def run(self) -> TerminationReason:
        while True:
            reason = self.step()
            if reason is not None:
                return reason


class PopulationExecutor:
    """Every parameter buffer of a population run on every grid of a batch.

    Grids are grouped by shape so each group keeps its own boundaries; one
    batched kernel pass per group advances the whole population. All groups
    run a fixed ``max_steps`` in lockstep (no early exit).
    """

    def __init__(
        self,
        params_list: Sequence[ParameterBuffer],
        substrates: Sequence[Substrate],
        max_steps: int = 40,
        boundary: BoundaryPolicy = BoundaryPolicy.ZERO,
        activation: str = "none",
    ):
        """Initialize population executor.

        Args:
            params_list: One buffer per individual
            substrates: Grids every individual is run on, any mix of shapes
            max_steps: Steps to run
            boundary: Out-of-grid sampling policy
            activation: Post-update policy ("none" or "clamp")

        Raises:
            ConfigurationError: On empty inputs, unknown activation or mismatched sizing
            BoundsError: If any grid exceeds the per-invocation ceiling
        """
        assert max_steps >= 0, f"max_steps must be non-negative, got {max_steps}"

        if len(params_list) == 0 or len(substrates) == 0:
            raise ConfigurationError("Population needs at least one parameter buffer and one grid")
        if activation not in ACTIVATIONS:
            raise ConfigurationError(f"Unknown activation {activation!r}; expected one of {ACTIVATIONS}")

        constants = substrates[0].constants
        for params in params_list:
            params.check_constants(constants)

        self.kernel = UpdateKernel(params_list[0], boundary=boundary, constants=constants)
        for substrate in substrates:
            self.kernel.bounds.check(substrate.height, substrate.width)

        self.constants = constants
        self.n_grids = len(substrates)
        self.max_steps = max_steps
        self.activation = activation
        self.steps = 0

        device = substrates[0].data.device
        self.weights = torch.stack([p.weights_matrix() for p in params_list]).to(device)
        self.biases = torch.stack([p.biases() for p in params_list]).to(device)

        # (height, width) -> input positions of the grids with that shape
        self.groups: Dict[Tuple[int, int], List[int]] = {}
        for idx, substrate in enumerate(substrates):
            self.groups.setdefault((substrate.height, substrate.width), []).append(idx)

        # (height, width) -> [P, G_shape, H, W, C]
        self.states: Dict[Tuple[int, int], torch.Tensor] = {}
        for shape, indices in self.groups.items():
            grids = torch.stack([substrates[i].data.to(device) for i in indices])
            self.states[shape] = grids.unsqueeze(0).repeat(len(params_list), 1, 1, 1, 1)

        logger.debug("Population of %d over %d grids in %d shape groups",
                     len(params_list), self.n_grids, len(self.groups))

    def run(self) -> List[List[Substrate]]:
        """Run all individuals for ``max_steps`` steps.

        Returns:
            Final grids per individual, in the order the grids were given
        """
        with torch.no_grad():
            while self.steps < self.max_steps:
                for shape, states in self.states.items():
                    out = self.kernel.step_population(states, self.weights, self.biases)
                    out = apply_activation(out, self.activation)
                    self.states[shape] = commit_data(states, out, self.kernel.layout)
                self.steps += 1

        return [self.substrates(i) for i in range(self.weights.shape[0])]

    def substrates(self, individual: int) -> List[Substrate]:
        """Current grids of one individual, in input order."""
        grids: List[Optional[Substrate]] = [None] * self.n_grids
        for shape, indices in self.groups.items():
            for pos, idx in enumerate(indices):
                grids[idx] = Substrate(self.states[shape][individual, pos].clone(), self.constants)
        return grids
