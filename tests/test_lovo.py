import numpy as np
import pytest

from raff.lovo import complement, lovo_value, select_trusted


def test_selects_smallest_squared_residuals():
    r = np.array([3.0, -0.5, 0.1, -2.0, 1.0])
    active = select_trusted(r, 3)

    assert active.tolist() == [2, 1, 4]


def test_ties_at_boundary_prefer_lower_index():
    r = np.array([1.0, -1.0, 0.0, 1.0, -1.0])

    assert select_trusted(r, 2).tolist() == [2, 0]
    assert select_trusted(r, 3).tolist() == [2, 0, 1]
    # Repeated calls give the same set.
    for _ in range(5):
        assert select_trusted(r, 4).tolist() == [2, 0, 1, 3]


def test_all_equal_residuals_take_leading_rows():
    r = np.full(7, 0.25)
    assert select_trusted(r, 4).tolist() == [0, 1, 2, 3]


def test_p_zero_and_p_m():
    r = np.array([0.3, -0.1, 0.2])

    assert select_trusted(r, 0).size == 0
    assert sorted(select_trusted(r, 3).tolist()) == [0, 1, 2]


@pytest.mark.parametrize("p", [-1, 4])
def test_invalid_p_raises(p):
    with pytest.raises(ValueError):
        select_trusted(np.zeros(3), p)


def test_nonfinite_residuals_are_trusted_last():
    r = np.array([np.nan, 2.0, np.inf, 1.0])
    assert select_trusted(r, 2).tolist() == [3, 1]


def test_lovo_value_sums_active_squares():
    r = np.array([3.0, -0.5, 0.1, -2.0, 1.0])
    active, f = lovo_value(r, 3)

    assert active.tolist() == [2, 1, 4]
    assert f == pytest.approx(0.01 + 0.25 + 1.0)

    active, f = lovo_value(r, 0)
    assert active.size == 0
    assert f == 0.0


def test_complement_is_sorted():
    assert complement(np.array([4, 0, 2]), 6).tolist() == [1, 3, 5]


def test_matches_full_sort_on_random_residuals():
    rng = np.random.default_rng(0)
    r = rng.normal(size=200)
    for p in (1, 17, 100, 199, 200):
        active = select_trusted(r, p)
        expected = np.argsort(r**2, kind="stable")[:p]
        assert active.tolist() == expected.tolist()
