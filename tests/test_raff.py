import numpy as np
import pytest

from raff import Model, Observations, RAFFOutput, lmlovo, raff, trusted_range
from raff.model import as_model
from raff.multistart import _Task, _run_task, perturbed_guess
from conftest import ANSWER, EXP_OUTLIERS, exp_gradient, exp_model, line_model


def test_raff_finds_majority_fit(exp_data):
    rout = raff(exp_model, exp_data, 2)

    assert rout.f == pytest.approx(0.0, abs=1e-5)
    assert np.allclose(rout.solution, ANSWER, atol=1e-5)
    assert rout.p == 18
    assert rout.outliers.tolist() == EXP_OUTLIERS


def test_raff_with_gradient(exp_data):
    rout = raff(exp_model, exp_data, 2, gradient=exp_gradient)

    assert rout.f == pytest.approx(0.0, abs=1e-5)
    assert np.allclose(rout.solution, ANSWER, atol=1e-5)
    assert rout.p == 18


def test_raff_straight_line(line_data):
    rout = raff(line_model, line_data, 2)

    assert rout.p == 18
    assert rout.f == pytest.approx(0.0, abs=1e-5)
    assert np.allclose(rout.solution, [2.0, -0.5], atol=1e-5)
    assert rout.outliers.tolist() == [2, 10, 16]


def test_noutliers_zero_trusts_everything(exp_data):
    model = Model.from_function(exp_model, exp_gradient)
    rout = raff(model, exp_data, 2, noutliers=0)

    assert rout.p == 21
    assert rout.noutliers == 0


def test_noutliers_ftrusted_and_lmlovo_agree(exp_data):
    m = exp_data.shape[0]
    by_count = raff(exp_model, exp_data, 2, noutliers=3)
    by_fraction = raff(exp_model, exp_data, 2, ftrusted=(m - 3) / m)
    by_range = raff(exp_model, exp_data, 2, ftrusted=(18 / 21, 18 / 21))
    direct = lmlovo(exp_model, np.zeros(2), exp_data, 2, m - 3, eps=1e-6)

    for rout in (by_count, by_fraction, by_range):
        assert rout.p == 18
        assert rout.f == pytest.approx(0.0, abs=1e-5)
        assert np.allclose(rout.solution, ANSWER, atol=1e-5)
        assert rout == direct


def test_ftrusted_range_sweeps(exp_data):
    rout = raff(exp_model, exp_data, 2, ftrusted=(0.7, 18 / 21))

    assert rout.p == 18
    assert np.allclose(rout.solution, ANSWER, atol=1e-5)


@pytest.mark.parametrize(
    "ftrusted",
    [(0.5, 1.1), -0.1, 0.0, 1.5, (0.9, 0.5), (-0.2, 0.5)],
)
def test_invalid_ftrusted_gives_null_output(exp_data, ftrusted):
    assert raff(exp_model, exp_data, 2, ftrusted=ftrusted) == RAFFOutput()


@pytest.mark.parametrize("noutliers", [-1, 22])
def test_invalid_noutliers_gives_null_output(exp_data, noutliers):
    assert raff(exp_model, exp_data, 2, noutliers=noutliers) == RAFFOutput()


def test_both_noutliers_and_ftrusted_raise(exp_data):
    with pytest.raises(ValueError):
        raff(exp_model, exp_data, 2, noutliers=3, ftrusted=0.8)


def test_bad_arguments_raise(exp_data):
    with pytest.raises(ValueError):
        raff(exp_model, exp_data, 2, maxms=0)
    with pytest.raises(ValueError):
        raff(exp_model, exp_data, 2, initguess=[0.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        raff(exp_model, exp_data, 0)


def test_trusted_range_rules():
    assert trusted_range(21) == (10, 21)
    assert trusted_range(20) == (10, 20)
    assert trusted_range(21, noutliers=5) == (16, 16)
    assert trusted_range(21, ftrusted=16 / 21) == (16, 16)
    assert trusted_range(21, ftrusted=1.0) == (21, 21)
    assert trusted_range(21, ftrusted=(0.0, 1.0)) == (0, 21)
    assert trusted_range(21, ftrusted=(0.5, 0.5)) == (10, 10)
    assert trusted_range(21, ftrusted=(0.5, 1.1)) is None
    assert trusted_range(21, ftrusted=-0.1) is None
    assert trusted_range(21, noutliers=22) is None
    with pytest.raises(TypeError):
        trusted_range(21, ftrusted="half")


def test_multistart_is_reproducible_and_order_independent(exp_data):
    kwargs = dict(maxms=3, initguess=[1.0, 0.0], seedms=7, ftrusted=(0.75, 1.0))
    serial = raff(exp_model, exp_data, 2, **kwargs)
    again = raff(exp_model, exp_data, 2, **kwargs)
    threaded = raff(exp_model, exp_data, 2, n_workers=4, **kwargs)

    assert serial == again
    assert serial == threaded
    assert serial.p == 18
    assert np.allclose(serial.solution, ANSWER, atol=1e-5)


def test_custom_sampler_is_used(exp_data):
    calls = []

    def sampler(rng, initguess):
        calls.append(1)
        return initguess + rng.uniform(-0.1, 0.1, size=initguess.shape)

    rout = raff(exp_model, exp_data, 2, maxms=2, noutliers=3, sampler=sampler)

    assert len(calls) == 1
    assert rout.p == 18


def test_failing_runs_are_skipped(exp_data):
    def picky(x, theta):
        if theta[1] > 50.0:
            raise RuntimeError("outside the model's domain")
        return exp_model(x, theta)

    # Start j=1 is placed in the failing region; start j=0 still succeeds.
    def sampler(rng, initguess):
        return np.array([0.0, 100.0])

    rout = raff(picky, exp_data, 2, maxms=2, noutliers=3, sampler=sampler)

    assert rout.p == 18
    assert np.allclose(rout.solution, ANSWER, atol=1e-5)


def test_everything_failing_gives_null_output(exp_data):
    def broken(x, theta):
        raise RuntimeError("boom")

    assert raff(broken, exp_data, 2, noutliers=3) == RAFFOutput()


def test_lmlovo_options_are_forwarded(exp_data):
    rout = raff(exp_model, exp_data, 2, noutliers=3, lmlovo_options={"maxiter": 1})

    # The only candidate failed; it is still reported as the best attempt.
    assert rout.status == 0
    assert rout.iter == 1
    assert rout.p == 18


def test_failed_run_keeps_outlier_count(exp_data):
    def broken(x, theta):
        raise RuntimeError("boom")

    obs = Observations.from_table(exp_data)
    task = _Task(index=0, p=18, start=0, seed=np.random.SeedSequence(0))
    rout = _run_task(
        task,
        model=as_model(broken),
        observations=obs,
        n=2,
        initguess=np.zeros(2),
        sampler=perturbed_guess,
        options={},
    )

    assert rout.status == 0
    assert rout.f == np.inf
    assert rout.outliers.tolist() == [18, 19, 20]
    assert rout.noutliers == obs.m - 18
