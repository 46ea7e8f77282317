import pytest

from enca import BoundaryPolicy, NeighborhoodTopology


def test_offsets_in_fixed_order() -> None:
    topo = NeighborhoodTopology()
    assert list(topo) == [(0, -1), (-1, 0), (0, 0), (1, 0), (0, 1)]
    assert topo.center == 2
    assert topo.radius == 1


@pytest.mark.parametrize("x,y", [(0, 0), (3, 7), (12, 4)])
def test_positions_round_trip_to_offsets(x: int, y: int) -> None:
    topo = NeighborhoodTopology()
    recovered = [(px - x, py - y) for px, py in topo.positions(x, y)]
    assert recovered == list(topo.offsets)


def test_zero_policy_drops_out_of_grid_neighbors() -> None:
    topo = NeighborhoodTopology(boundary=BoundaryPolicy.ZERO)
    assert topo.sample(0, 0, 3, 3) == [None, None, (0, 0), (1, 0), (0, 1)]


def test_wrap_policy_is_toroidal() -> None:
    topo = NeighborhoodTopology(boundary=BoundaryPolicy.WRAP)
    assert topo.sample(0, 0, 3, 4) == [(0, 3), (2, 0), (0, 0), (1, 0), (0, 1)]


def test_clamp_policy_repeats_edge() -> None:
    topo = NeighborhoodTopology(boundary="clamp")
    assert topo.boundary is BoundaryPolicy.CLAMP
    assert topo.sample(2, 2, 3, 3) == [(2, 1), (1, 2), (2, 2), (2, 2), (2, 2)]


@pytest.mark.parametrize("policy", list(BoundaryPolicy))
def test_every_policy_is_total(policy: BoundaryPolicy) -> None:
    topo = NeighborhoodTopology(boundary=policy)
    width, height = 4, 2

    for y in range(height):
        for x in range(width):
            for pos in topo.sample(x, y, width, height):
                if pos is None:
                    assert policy is BoundaryPolicy.ZERO
                    continue
                assert 0 <= pos[0] < width
                assert 0 <= pos[1] < height
