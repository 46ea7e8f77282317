"""Run an NCA parameter buffer over a color grid or a random grid."""

import argparse
import os
from typing import List, Optional

import numpy as np
import torch
from torch.utils.tensorboard import SummaryWriter
from tqdm import tqdm

from config import ExecutorConfig, get_default_config
from enca import (
    BoundaryPolicy, ConfigurationError, EnsembleExecutor, NCAExecutor, ParameterBuffer,
    Substrate, VIS_CHS,
)


class EncaRunner:
    """Builds parameters, a grid and an executor from an ExecutorConfig."""

    def __init__(self, config: ExecutorConfig, params_paths: Optional[List[str]] = None):
        """Initialize runner.

        Args:
            config: Run configuration
            params_paths: Flat ``.npy`` parameter buffers; one per ensemble
                member. Random parameters are drawn when omitted.

        Raises:
            ConfigurationError: If ``config.log_interval`` is not positive
        """
        if config.log_interval <= 0:
            raise ConfigurationError(f"log_interval must be positive, got {config.log_interval}")

        self.config = config

        # Set random seed
        self.generator = torch.Generator()
        if config.seed is not None:
            torch.manual_seed(config.seed)
            np.random.seed(config.seed)
            self.generator.manual_seed(config.seed)

        # Set device
        self.device = torch.device(config.device if torch.cuda.is_available() else "cpu")
        print(f"Using device: {self.device}")

        if params_paths:
            self.params_list = [ParameterBuffer(np.load(path)) for path in params_paths]
        else:
            self.params_list = [ParameterBuffer.random(self.generator, std=config.init_std)]

        if config.grid_path is not None:
            # Color grid dictates the size
            substrate = Substrate.from_grid(np.load(config.grid_path), device=self.device)
            config.grid_height, config.grid_width = substrate.height, substrate.width
        else:
            visible = torch.rand(config.grid_height, config.grid_width, VIS_CHS, generator=self.generator)
            substrate = Substrate.from_visible(visible, device=self.device)

        executor_kwargs = dict(
            max_steps=config.max_steps,
            convergence_threshold=config.convergence_threshold,
            boundary=BoundaryPolicy(config.boundary),
            activation=config.activation,
            backend=config.backend,
        )
        if len(self.params_list) == 1:
            self.executor = NCAExecutor(self.params_list[0], substrate, **executor_kwargs)
        else:
            self.executor = EnsembleExecutor(self.params_list, substrate, **executor_kwargs)

        os.makedirs(config.log_dir, exist_ok=True)
        self.writer = SummaryWriter(log_dir=config.log_dir)

    def compute_stats(self) -> dict:
        """Summary statistics of the current grid."""
        substrate = self.executor.substrate
        delta = substrate.data - self.executor.prev_substrate.data

        return {
            'visible_mean': substrate.visible().mean().item(),
            'hidden_mean': substrate.hidden().mean().item(),
            'max_delta': delta.abs().max().item(),
        }

    def run(self):
        """Main execution loop."""
        print(f"\nRunning ENCA")
        print(f"Grid size: {self.config.grid_height}x{self.config.grid_width}")
        print(f"Ensemble size: {len(self.params_list)}")
        print(f"Backend: {self.config.backend}, boundary: {self.config.boundary}\n")

        total = self.config.max_steps * len(self.params_list)
        reason = None
        with tqdm(total=total, desc="Steps") as progress:
            while reason is None:
                before = self.executor.steps
                reason = self.executor.step()

                step = self.executor.steps
                if step == before:
                    # Termination report only, nothing was computed
                    continue
                progress.update(step - before)

                if step % self.config.log_interval == 0:
                    for key, value in self.compute_stats().items():
                        self.writer.add_scalar(f'stats/{key}', value, step)

            self.progress_count = progress.n

        tqdm.write(f"Terminated after {self.executor.steps} steps: {reason.value}")
        if self.config.grid_path is not None:
            tqdm.write(f"Final grid:\n{self.result_grid()}")
        self.writer.close()
        return reason

    def result_grid(self) -> np.ndarray:
        """Current grid decoded back to colors."""
        return self.executor.substrate.to_grid().cpu().numpy()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run an ENCA update kernel")

    # Grid arguments
    parser.add_argument("--grid-height", type=int, default=10, help="Grid rows")
    parser.add_argument("--grid-width", type=int, default=10, help="Grid columns")
    parser.add_argument("--grid", type=str, default=None,
                        help="Color grid .npy (values 0..9); overrides height/width")

    # Execution arguments
    parser.add_argument("--max-steps", type=int, default=40, help="Maximum steps")
    parser.add_argument("--convergence-threshold", type=float, default=0.25, help="Convergence threshold")
    parser.add_argument("--boundary", type=str, default="zero", choices=["zero", "wrap", "clamp"],
                        help="Out-of-grid policy")
    parser.add_argument("--activation", type=str, default="none", choices=["none", "clamp"],
                        help="Post-update activation")
    parser.add_argument("--backend", type=str, default="vectorized", choices=["vectorized", "reference"],
                        help="Kernel backend")
    parser.add_argument("--params", type=str, nargs="*", default=None,
                        help="Flat .npy parameter buffers (one per ensemble member)")

    # Device arguments
    parser.add_argument("--device", type=str, default="cuda", help="Device (cuda/cpu)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--init-std", type=float, default=0.2, help="Std of random parameters")

    # Logging arguments
    parser.add_argument("--log-dir", type=str, default="logs", help="Log directory")
    parser.add_argument("--log-interval", type=int, default=1, help="Steps between logged scalars")

    args = parser.parse_args()

    # Create config
    config = get_default_config()

    # Update config from args
    config.grid_height = args.grid_height
    config.grid_width = args.grid_width
    config.grid_path = args.grid
    config.max_steps = args.max_steps
    config.convergence_threshold = args.convergence_threshold
    config.boundary = args.boundary
    config.activation = args.activation
    config.backend = args.backend
    config.device = args.device
    config.seed = args.seed
    config.init_std = args.init_std
    config.log_dir = args.log_dir
    config.log_interval = args.log_interval

    runner = EncaRunner(config, params_paths=args.params)
    runner.run()


if __name__ == "__main__":
    main()
