import math

import pytest

from balancer.scoring import score


def test_score_matches_closed_form():
    for u in (0.0, 0.25, 0.5, 0.75, 0.8, 1.0):
        closed = -0.67466 + 42.385 / ((-2.5 * u + 5.96) * (-2.5 * u + 2.96) ** 2)
        assert score(u) == pytest.approx(closed)


def test_score_of_idle_host():
    assert score(0.0) == pytest.approx(0.137, abs=1e-3)


def test_score_rewards_band_over_idle():
    assert score(0.8) > score(0.5) > score(0.1)
    assert math.isfinite(score(1.0))


@pytest.mark.parametrize("u", [-0.1, 1.01])
def test_score_rejects_out_of_range(u):
    with pytest.raises(ValueError):
        score(u)
