import pytest

from enca import BoundsError, GridBounds


def test_full_grid_is_accepted() -> None:
    bounds = GridBounds()
    bounds.check(30, 30)
    assert bounds.fits(30, 30)


@pytest.mark.parametrize("height,width", [(1, 901), (901, 1), (31, 30)])
def test_oversized_grid_is_rejected(height: int, width: int) -> None:
    bounds = GridBounds()
    assert not bounds.fits(height, width)
    with pytest.raises(BoundsError):
        bounds.check(height, width)


@pytest.mark.parametrize("height,width", [(0, 5), (5, 0), (-1, 3)])
def test_empty_grid_is_rejected(height: int, width: int) -> None:
    with pytest.raises(BoundsError):
        GridBounds().check(height, width)
