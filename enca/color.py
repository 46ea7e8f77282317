"""Codec between ARC color grids (values 0..9) and visible channels."""

from typing import Sequence, Union

import numpy as np
import torch

from .errors import ConfigurationError

N_COLORS = 10

# One 4-channel prototype per color
ENCODING = torch.tensor([
    [0., 0., 0., 0.],
    [1., 0., 0., 0.],
    [0., 1., 0., 0.],
    [0., 0., 1., 0.],
    [0., 0., 0., 1.],
    [1., 0., 1., 0.],
    [1., 0., 0., 1.],
    [0., 1., 1., 0.],
    [0., 1., 0., 1.],
    [0., 0., 1., 1.],
])

GridLike = Union[torch.Tensor, np.ndarray, Sequence[Sequence[int]]]


def encode_colors(grid: GridLike) -> torch.Tensor:
    """Map a color grid [height, width] to visible channels [height, width, 4].

    Raises:
        ConfigurationError: If the grid is not 2D or holds a value outside 0..9
    """
    colors = torch.as_tensor(np.asarray(grid), dtype=torch.long)
    if colors.dim() != 2:
        raise ConfigurationError(f"Color grid must be [height, width], got {tuple(colors.shape)}")
    if colors.numel() and (colors.min() < 0 or colors.max() >= N_COLORS):
        raise ConfigurationError(f"Colors must lie in [0, {N_COLORS}), got {colors.min()}..{colors.max()}")

    return ENCODING[colors]


def decode_color(encoded: torch.Tensor) -> torch.Tensor:
    """Nearest color for visible channel vectors [..., 4].

    Channels are binarized at 0.5, then the prototype with the largest dot
    product wins; ties go to the lowest color index.

    Returns:
        Color indices [...] as int64
    """
    binary = (encoded > 0.5).to(torch.float32)
    scores = binary @ ENCODING.to(binary.device).T  # [..., N_COLORS]
    return scores.argmax(dim=-1)
