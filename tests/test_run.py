import numpy as np
import pytest

from config import get_default_config
from enca import ConfigurationError, N_PARAMS, TerminationReason
from run import EncaRunner


def test_runner_with_random_parameters(tmp_path) -> None:
    config = get_default_config()
    config.grid_height = 4
    config.grid_width = 4
    config.max_steps = 3
    config.convergence_threshold = -1.0
    config.device = "cpu"
    config.log_dir = str(tmp_path / "logs")

    runner = EncaRunner(config)

    assert runner.run() is TerminationReason.MAX_STEPS
    assert runner.executor.steps == 3


def test_runner_loads_ensemble_from_npy(tmp_path) -> None:
    paths = []
    for i in range(2):
        path = tmp_path / f"params_{i}.npy"
        np.save(path, np.zeros(N_PARAMS, dtype=np.float32))
        paths.append(str(path))

    config = get_default_config()
    config.grid_height = 3
    config.grid_width = 3
    config.device = "cpu"
    config.log_dir = str(tmp_path / "logs")

    runner = EncaRunner(config, params_paths=paths)

    assert runner.run() is TerminationReason.CONVERGENCE
    assert len(runner.params_list) == 2


def test_runner_rejects_non_positive_log_interval(tmp_path) -> None:
    config = get_default_config()
    config.device = "cpu"
    config.log_interval = 0
    config.log_dir = str(tmp_path / "logs")

    with pytest.raises(ConfigurationError):
        EncaRunner(config)


def test_progress_counts_only_computed_steps(tmp_path) -> None:
    paths = []
    for i in range(2):
        path = tmp_path / f"params_{i}.npy"
        np.save(path, np.zeros(N_PARAMS, dtype=np.float32))
        paths.append(str(path))

    config = get_default_config()
    config.grid_height = 2
    config.grid_width = 2
    config.max_steps = 2
    config.convergence_threshold = -1.0
    config.device = "cpu"
    config.log_interval = 3
    config.log_dir = str(tmp_path / "logs")

    runner = EncaRunner(config, params_paths=paths)

    assert runner.run() is TerminationReason.MAX_STEPS
    assert runner.executor.steps == 4
    assert runner.progress_count == 4


def test_runner_decodes_color_grid(tmp_path) -> None:
    grid = np.array([[1, 2, 3], [4, 5, 6]])
    grid_path = tmp_path / "grid.npy"
    np.save(grid_path, grid)

    params_path = tmp_path / "identity.npy"
    buffer = np.zeros(N_PARAMS, dtype=np.float32)
    for ch in range(4):
        buffer[ch * 50 + 20 + ch] = 1.0  # center RO channel ch -> visible output ch
    np.save(params_path, buffer)

    config = get_default_config()
    config.grid_path = str(grid_path)
    config.device = "cpu"
    config.log_dir = str(tmp_path / "logs")

    runner = EncaRunner(config, params_paths=[str(params_path)])

    assert (config.grid_height, config.grid_width) == (2, 3)
    assert runner.run() is TerminationReason.CONVERGENCE
    assert np.array_equal(runner.result_grid(), grid)
