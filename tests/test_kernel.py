import pytest
import torch

from enca import (
    BoundaryPolicy, BoundsError, ConfigurationError, INP_CHS, N_PARAMS, NCAConstants,
    NumericDivergence, ParameterBuffer, Substrate, UpdateKernel,
)

CENTER_RO0 = 2 * INP_CHS  # center neighbor, RO channel 0
NORTH_RO0 = 0


def _single_weight(in_idx: int, out_idx: int = 0) -> ParameterBuffer:
    buffer = torch.zeros(N_PARAMS)
    buffer[out_idx * 50 + in_idx] = 1.0
    return ParameterBuffer(buffer)


def _random_state(height: int, width: int, seed: int = 0, channels: int = INP_CHS) -> torch.Tensor:
    generator = torch.Generator().manual_seed(seed)
    return torch.rand(height, width, channels, generator=generator)


def test_zero_weights_output_bias() -> None:
    biases = torch.tensor([0.1, -0.2, 0.3, 0.4, -0.5, 0.6])
    params = ParameterBuffer.from_vec(torch.zeros(300), biases)
    kernel = UpdateKernel(params)
    state = _random_state(4, 5) * 10

    out = kernel.step(state)

    assert out.shape == (4, 5, 6)
    assert torch.equal(out, biases.expand(4, 5, 6))
    assert torch.allclose(kernel.step_reference(state), out)


def test_center_ro_pass_through() -> None:
    kernel = UpdateKernel(_single_weight(CENTER_RO0))
    state = _random_state(3, 4)

    out = kernel.step(state)

    assert torch.allclose(out[:, :, 0], state[:, :, 0])
    assert torch.all(out[:, :, 1:] == 0)
    assert kernel.cell_output(state.double().numpy(), 2, 1)[0] == pytest.approx(state[1, 2, 0].item())


def test_input_vector_concatenates_neighbors_in_order() -> None:
    kernel = UpdateKernel(ParameterBuffer.zeros())
    state = torch.arange(3 * 3 * INP_CHS, dtype=torch.float32).reshape(3, 3, INP_CHS)

    inputs = kernel.gather(state)
    cell = inputs[1, 1].reshape(5, INP_CHS)

    assert torch.equal(cell[0], state[0, 1])  # north
    assert torch.equal(cell[1], state[1, 0])  # west
    assert torch.equal(cell[2], state[1, 1])  # center
    assert torch.equal(cell[3], state[1, 2])  # east
    assert torch.equal(cell[4], state[2, 1])  # south
    assert torch.equal(inputs[1, 1].double(), torch.from_numpy(kernel.cell_input(state.double().numpy(), 1, 1)))


@pytest.mark.parametrize(
    "policy,expected",
    [
        (BoundaryPolicy.ZERO, 0.0),
        (BoundaryPolicy.WRAP, 7.0),  # wraps to the bottom row
        (BoundaryPolicy.CLAMP, 1.0),  # repeats the cell itself
    ],
)
def test_boundary_policy_at_top_edge(policy: BoundaryPolicy, expected: float) -> None:
    kernel = UpdateKernel(_single_weight(NORTH_RO0), boundary=policy)
    state = torch.zeros(3, 3, INP_CHS)
    state[0, 0, 0] = 1.0
    state[2, 0, 0] = 7.0

    assert kernel.step(state)[0, 0, 0].item() == expected
    assert kernel.step_reference(state)[0, 0, 0].item() == expected


@pytest.mark.parametrize("policy", list(BoundaryPolicy))
def test_vectorized_matches_reference(policy: BoundaryPolicy) -> None:
    params = ParameterBuffer.random(torch.Generator().manual_seed(1))
    kernel = UpdateKernel(params, boundary=policy)

    for height, width in [(1, 1), (1, 6), (5, 4), (7, 7)]:
        max_err = kernel.assert_matches_reference(_random_state(height, width, seed=height), atol=1e-5)
        assert max_err <= 1e-5


def test_other_channel_counts_match_reference() -> None:
    constants = NCAConstants(vis_chs=2, hid_chs=1)
    params = ParameterBuffer.random(torch.Generator().manual_seed(2), constants=constants)
    kernel = UpdateKernel(params, boundary=BoundaryPolicy.WRAP)

    kernel.assert_matches_reference(_random_state(4, 3, channels=constants.inp_chs))


def test_divergence_is_reported(monkeypatch) -> None:
    kernel = UpdateKernel(ParameterBuffer.random(torch.Generator().manual_seed(3)))
    state = _random_state(3, 3)
    original = kernel.step
    monkeypatch.setattr(kernel, "step", lambda s: original(s) + 1e-2)

    with pytest.raises(NumericDivergence):
        kernel.assert_matches_reference(state)


def test_step_does_not_modify_snapshot() -> None:
    kernel = UpdateKernel(ParameterBuffer.random(torch.Generator().manual_seed(4)))
    state = _random_state(4, 4)
    before = state.clone()

    kernel.step(state)
    kernel.step_reference(state)

    assert torch.equal(state, before)


def test_oversized_grid_rejected_before_dispatch() -> None:
    kernel = UpdateKernel(ParameterBuffer.zeros())

    assert kernel.step(torch.zeros(30, 30, INP_CHS)).shape == (30, 30, 6)
    with pytest.raises(BoundsError):
        kernel.step(torch.zeros(1, 901, INP_CHS))


def test_wrong_channel_count_rejected() -> None:
    kernel = UpdateKernel(ParameterBuffer.zeros())
    with pytest.raises(ConfigurationError):
        kernel.step(torch.zeros(3, 3, INP_CHS + 1))


def test_mismatched_constants_rejected() -> None:
    params = ParameterBuffer.zeros(NCAConstants(vis_chs=3, hid_chs=2))
    with pytest.raises(ConfigurationError):
        UpdateKernel(params, constants=NCAConstants())


def test_population_step_matches_individual_steps() -> None:
    generator = torch.Generator().manual_seed(5)
    population = [ParameterBuffer.random(generator) for _ in range(3)]
    kernel = UpdateKernel(population[0], boundary=BoundaryPolicy.CLAMP)

    grids = _random_state(4, 6).unsqueeze(0).repeat(3, 1, 1, 1)
    weights = torch.stack([p.weights_matrix() for p in population])
    biases = torch.stack([p.biases() for p in population])

    out = kernel.step_population(grids, weights, biases)

    assert out.shape == (3, 4, 6, 6)
    for i, params in enumerate(population):
        expected = UpdateKernel(params, boundary=BoundaryPolicy.CLAMP).step(grids[i])
        assert torch.allclose(out[i], expected, atol=1e-5)


def test_three_by_three_scenario() -> None:
    visible = torch.tensor([1.0, 0.0, 0.0, 0.0]).expand(3, 3, 4)
    substrate = Substrate.from_visible(visible)
    kernel = UpdateKernel(_single_weight(CENTER_RO0))

    nxt = substrate.commit(kernel.step(substrate.data))

    assert torch.all(nxt.visible()[:, :, 0] == 1.0)
    assert torch.all(nxt.visible()[:, :, 1:] == 0.0)
    assert torch.all(nxt.hidden() == 0.0)
    assert torch.equal(nxt.data[:, :, 0:4], nxt.data[:, :, 4:8])


@pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")
def test_cuda_backend_matches_reference() -> None:
    params = ParameterBuffer.random(torch.Generator().manual_seed(6))
    kernel = UpdateKernel(params, boundary=BoundaryPolicy.WRAP)
    state = _random_state(30, 30).to("cuda")

    out = kernel.step(state)

    assert out.device.type == "cuda"
    kernel.assert_matches_reference(state, atol=1e-4)
