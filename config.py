"""Configuration for the ENCA executor."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ExecutorConfig:
    """Configuration for running an NCA over a grid.

    Channel counts, the neighborhood and the grid ceiling are fixed
    constants (see ``enca.constants``); everything here is a policy of the
    surrounding executor and may change between runs.
    """

    # Grid settings
    grid_height: int = 10  # Rows of the grid
    grid_width: int = 10  # Columns of the grid (height * width <= 900)
    grid_path: Optional[str] = None  # Color grid .npy (values 0..9); sets the size when given

    # Execution settings
    max_steps: int = 40  # Steps before MAX_STEPS termination
    convergence_threshold: float = 0.25  # Stop when max |next - prev| falls below this
    boundary: str = "zero"  # Out-of-grid policy: zero, wrap or clamp
    activation: str = "none"  # Post-update policy: none or clamp (to [0, 1])

    # Backend settings
    backend: str = "vectorized"  # vectorized (torch) or reference (sequential)
    device: str = "cuda"
    seed: Optional[int] = 42

    # Parameter initialization
    init_std: float = 0.2  # Std of the Normal draw for random parameters

    # Logging settings
    log_dir: str = "logs"
    log_interval: int = 1  # Steps between tensorboard scalars (must be positive)


def get_default_config() -> ExecutorConfig:
    """Get default configuration."""
    return ExecutorConfig()
