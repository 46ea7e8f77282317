"""Grid state buffer the kernel reads from and the executor commits into."""

from typing import Optional, Union

import numpy as np
import torch

from .color import ENCODING, GridLike, decode_color, encode_colors
from .constants import DEFAULT_CONSTANTS, NCAConstants
from .errors import ConfigurationError
from .layout import ChannelLayout


def commit_data(data: torch.Tensor, out: torch.Tensor, layout: ChannelLayout) -> torch.Tensor:
    """Write kernel outputs into a copy of ``data`` and promote RW to RO.

    Works on any leading batch dims: ``data`` is [..., inp_chs] and
    ``out`` is [..., out_chs].
    """
    nxt = data.clone()
    nxt[..., layout.rw] = out[..., layout.out_vis]
    nxt[..., layout.hid] = out[..., layout.out_hid]
    # Step barrier: neighbors read the freshly written visible state next step
    nxt[..., layout.ro] = nxt[..., layout.rw]
    return nxt


class Substrate:
    """Per-cell channel vectors of one grid, shaped [height, width, inp_chs].

    A substrate is treated as an immutable snapshot during a step: the
    kernel reads it and ``commit`` returns a new substrate, so neighbors
    always observe the previous step's committed state.
    """

    def __init__(self, data: torch.Tensor, constants: NCAConstants = DEFAULT_CONSTANTS):
        if data.dim() != 3 or data.shape[-1] != constants.inp_chs:
            raise ConfigurationError(
                f"Substrate must be [height, width, {constants.inp_chs}], got {tuple(data.shape)}"
            )

        self.data = data
        self.constants = constants
        self.layout = ChannelLayout(constants)

    @classmethod
    def zeros(
        cls,
        height: int,
        width: int,
        constants: NCAConstants = DEFAULT_CONSTANTS,
        device: Union[str, torch.device] = "cpu",
        dtype: torch.dtype = torch.float32,
    ) -> "Substrate":
        data = torch.zeros(height, width, constants.inp_chs, device=device, dtype=dtype)
        return cls(data, constants)

    @classmethod
    def from_visible(
        cls,
        visible: Union[torch.Tensor, np.ndarray],
        constants: NCAConstants = DEFAULT_CONSTANTS,
        device: Optional[Union[str, torch.device]] = None,
    ) -> "Substrate":
        """Seed a grid from its visible channels.

        The values go into the RO slice; RW and hidden channels start at zero.

        Args:
            visible: Visible state [height, width, vis_chs]
        """
        visible = torch.as_tensor(visible, dtype=torch.float32)
        if visible.dim() != 3 or visible.shape[-1] != constants.vis_chs:
            raise ConfigurationError(
                f"Visible state must be [height, width, {constants.vis_chs}], got {tuple(visible.shape)}"
            )

        height, width, _ = visible.shape
        substrate = cls.zeros(height, width, constants, device=device or visible.device)
        substrate.data[:, :, substrate.layout.ro] = visible.to(substrate.data.device)
        return substrate

    @classmethod
    def from_grid(
        cls,
        grid: GridLike,
        constants: NCAConstants = DEFAULT_CONSTANTS,
        device: Optional[Union[str, torch.device]] = None,
    ) -> "Substrate":
        """Seed a grid from ARC colors: each color's encoding goes into RO.

        Args:
            grid: Color indices [height, width], values 0..9

        Raises:
            ConfigurationError: If the sizing has no 4-channel visible state
                or a color is out of range
        """
        if constants.vis_chs != ENCODING.shape[1]:
            raise ConfigurationError(
                f"Color codec needs {ENCODING.shape[1]} visible channels; sizing has {constants.vis_chs}"
            )
        return cls.from_visible(encode_colors(grid), constants, device=device)

    @classmethod
    def from_flat(
        cls,
        buffer: Union[torch.Tensor, np.ndarray],
        height: int,
        width: int,
        constants: NCAConstants = DEFAULT_CONSTANTS,
    ) -> "Substrate":
        """Read the external flat grid format (row-major cells, inp_chs each)."""
        flat = torch.as_tensor(buffer, dtype=torch.float32).reshape(-1)
        expected = height * width * constants.inp_chs

        if flat.numel() != expected:
            raise ConfigurationError(
                f"Grid buffer for {height}x{width} needs {expected} scalars; found {flat.numel()}"
            )

        return cls(flat.reshape(height, width, constants.inp_chs).clone(), constants)

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def shape(self):
        return self.data.shape

    def to_flat(self) -> torch.Tensor:
        return self.data.reshape(-1).clone()

    def visible(self) -> torch.Tensor:
        """Visible channels as last written (the RW slice)."""
        return self.data[:, :, self.layout.rw]

    def hidden(self) -> torch.Tensor:
        return self.data[:, :, self.layout.hid]

    def to_grid(self) -> torch.Tensor:
        """Decode the RW channels back to ARC colors [height, width]."""
        if self.constants.vis_chs != ENCODING.shape[1]:
            raise ConfigurationError(
                f"Color codec needs {ENCODING.shape[1]} visible channels; sizing has {self.constants.vis_chs}"
            )
        return decode_color(self.visible())

    def commit(self, out: torch.Tensor) -> "Substrate":
        """Build the next substrate from kernel outputs.

        Output visible channels are written into RW and output hidden into
        HID, then RW is promoted to RO for the next step's neighbors.

        Args:
            out: Kernel outputs [height, width, out_chs]

        Returns:
            New substrate; ``self`` is left untouched
        """
        if out.shape != (self.height, self.width, self.constants.out_chs):
            raise ConfigurationError(
                f"Output must be {(self.height, self.width, self.constants.out_chs)}, "
                f"got {tuple(out.shape)}"
            )

        return Substrate(commit_data(self.data, out, self.layout), self.constants)

    def clear_hidden(self) -> "Substrate":
        """Copy with every hidden channel reset to zero."""
        data = self.data.clone()
        data[:, :, self.layout.hid] = 0.0
        return Substrate(data, self.constants)

    def __repr__(self) -> str:
        return f"Substrate(height={self.height}, width={self.width}, device={self.data.device})"
