"""Flat weight + bias buffer consumed by the update kernel."""

import logging
from typing import Optional, Sequence, Union

import numpy as np
import torch

from .constants import DEFAULT_CONSTANTS, NCAConstants
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ArrayLike = Union[torch.Tensor, np.ndarray, Sequence[float]]


def _as_flat_tensor(values: ArrayLike, dtype: torch.dtype) -> torch.Tensor:
    if isinstance(values, torch.Tensor):
        tensor = values.detach().to(dtype=dtype).clone()
    else:
        tensor = torch.as_tensor(np.asarray(values), dtype=dtype).clone()
    return tensor.reshape(-1)


class ParameterBuffer:
    """Weights followed by biases in one flat buffer.

    Layout for ``O = out_chs`` and ``I = inp_dim``::

        [ w(0,0) .. w(0,I-1), w(1,0) .. w(O-1,I-1) | b(0) .. b(O-1) ]

    so ``weight(o, i) = buffer[o * I + i]`` and
    ``bias(o) = buffer[O * I + o]``. The buffer is read-only once built;
    every kernel pass shares it without locking.
    """

    def __init__(
        self,
        buffer: ArrayLike,
        constants: NCAConstants = DEFAULT_CONSTANTS,
        dtype: torch.dtype = torch.float32,
    ):
        """Load a flat parameter buffer.

        Args:
            buffer: Flat sequence of ``constants.n_params`` scalars
            constants: Sizing the buffer must agree with
            dtype: Storage dtype

        Raises:
            ConfigurationError: If the buffer length is not ``n_params``
        """
        self.constants = constants
        data = _as_flat_tensor(buffer, dtype)

        if data.numel() != constants.n_params:
            raise ConfigurationError(
                f"Expected {constants.n_params} parameters; found {data.numel()}"
            )

        self._data = data

    @classmethod
    def zeros(cls, constants: NCAConstants = DEFAULT_CONSTANTS) -> "ParameterBuffer":
        return cls(torch.zeros(constants.n_params), constants)

    @classmethod
    def from_vec(
        cls,
        weights: ArrayLike,
        biases: ArrayLike,
        constants: NCAConstants = DEFAULT_CONSTANTS,
    ) -> "ParameterBuffer":
        """Build a buffer from separate weight and bias sequences.

        Args:
            weights: ``out_chs * inp_dim`` weights, row-major by output channel
            biases: ``out_chs`` biases

        Raises:
            ConfigurationError: If either part has the wrong length
        """
        weights = _as_flat_tensor(weights, torch.float32)
        biases = _as_flat_tensor(biases, torch.float32)

        if weights.numel() != constants.n_weights:
            raise ConfigurationError(
                f"Expected {constants.n_weights} weights; found {weights.numel()}"
            )
        if biases.numel() != constants.n_biases:
            raise ConfigurationError(
                f"Expected {constants.n_biases} biases; found {biases.numel()}"
            )

        return cls(torch.cat([weights, biases]), constants)

    @classmethod
    def random(
        cls,
        generator: Optional[torch.Generator] = None,
        std: float = 0.2,
        constants: NCAConstants = DEFAULT_CONSTANTS,
    ) -> "ParameterBuffer":
        """Draw every weight and bias from ``Normal(0, std)``."""
        assert std >= 0, f"std must be non-negative, got {std}"
        values = torch.randn(constants.n_params, generator=generator) * std
        logger.debug("Initialized %d parameters with std=%.3f", constants.n_params, std)
        return cls(values, constants)

    def __len__(self) -> int:
        return self._data.numel()

    @property
    def dtype(self) -> torch.dtype:
        return self._data.dtype

    @property
    def device(self) -> torch.device:
        return self._data.device

    def weight(self, out_idx: int, in_idx: int) -> float:
        c = self.constants
        if not 0 <= out_idx < c.out_chs:
            raise IndexError(f"output index {out_idx} outside [0, {c.out_chs})")
        if not 0 <= in_idx < c.inp_dim:
            raise IndexError(f"input index {in_idx} outside [0, {c.inp_dim})")
        return self._data[out_idx * c.inp_dim + in_idx].item()

    def bias(self, out_idx: int) -> float:
        c = self.constants
        if not 0 <= out_idx < c.out_chs:
            raise IndexError(f"output index {out_idx} outside [0, {c.out_chs})")
        return self._data[c.n_weights + out_idx].item()

    def weights_matrix(self) -> torch.Tensor:
        """Weights as a ``[out_chs, inp_dim]`` view. Do not write to it."""
        c = self.constants
        return self._data[: c.n_weights].view(c.out_chs, c.inp_dim)

    def biases(self) -> torch.Tensor:
        """Biases as an ``[out_chs]`` view. Do not write to it."""
        return self._data[self.constants.n_weights:]

    def to_vec(self) -> torch.Tensor:
        """Copy of the flat buffer."""
        return self._data.clone()

    def to_numpy(self) -> np.ndarray:
        return self._data.detach().cpu().numpy().copy()

    def to(self, device: Union[str, torch.device]) -> "ParameterBuffer":
        """Copy of this buffer on another device."""
        moved = ParameterBuffer.__new__(ParameterBuffer)
        moved.constants = self.constants
        moved._data = self._data.to(device).clone()
        return moved

    def check_constants(self, constants: NCAConstants) -> None:
        """Raise ConfigurationError if this buffer was built for other sizing."""
        if constants != self.constants:
            raise ConfigurationError(
                f"Parameter buffer built for {self.constants}, consumer expects {constants}"
            )

    def __repr__(self) -> str:
        return f"ParameterBuffer(n_params={len(self)}, dtype={self.dtype}, device={self.device})"
