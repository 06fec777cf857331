import warnings
import numpy as np
import pytest
from spline_regression.b_spline import InvalidInput
from spline_regression.main import SplineConfig, fit_spline, fit_fixed, fit_random_walk, first_difference
from spline_regression.main import validated_fit, select_smoothing

KNOTS = np.arange(-5, 6, dtype=np.float64)

def build(seed: int = 1):
    rng = np.random.default_rng(seed)
    x = np.linspace(-5, 5, 200)
    y = np.sin(x) + 0.1 * rng.standard_normal(200)
    return x, y

def test_first_difference():
    D = first_difference(4)
    assert D.shape == (3, 4)
    assert np.allclose(D @ np.array([1.0, 3.0, 6.0, 10.0]), [2, 3, 4])
    assert np.allclose(D @ np.ones(4), 0)

def test_config():
    config = SplineConfig.uniform(-5, 5, 11)
    assert np.allclose(config.knots, KNOTS)
    assert config.order == 4
    assert config.num_basis == 13
    assert config.smoothing is None

def test_fixed_fit():
    x, y = build()
    fit = fit_fixed(x, y, KNOTS)
    assert fit.coef.shape == (13,)
    assert fit.bse.shape == (13,)
    assert fit.coef[0] == 0 and fit.bse[0] == 0
    assert np.all(np.isfinite(fit.bse)) and np.all(fit.bse[1:] > 0)
    assert 0.07 < fit.sigma < 0.13
    grid = np.linspace(-5, 5, 101)
    assert np.sqrt(np.mean((fit.predict(grid) - np.sin(grid)) ** 2)) < 0.06
    assert abs(fit.predict([5.0])[0] - np.sin(5.0)) < 0.25
    se = fit.predict_se(grid)
    assert se.shape == (101,)
    assert np.all(se > 0) and np.all(se < 0.1)

def test_random_walk_fit():
    x, y = build()
    fit = fit_random_walk(x, y, KNOTS, smoothing=1.0)
    grid = np.linspace(-5, 5, 101)
    assert np.sqrt(np.mean((fit.predict(grid) - np.sin(grid)) ** 2)) < 0.08

def test_vanishing_smoothing_matches_fixed():
    x, y = build()
    fixed = fit_spline(x, y, SplineConfig(KNOTS))
    tiny = fit_spline(x, y, SplineConfig(KNOTS, smoothing=1e-8))
    assert np.allclose(fixed.predict(x), tiny.predict(x), atol=1e-6)

def test_smoothing_flattens_coefficients():
    x, y = build()
    rough = fit_random_walk(x, y, KNOTS, smoothing=0.01)
    smooth = fit_random_walk(x, y, KNOTS, smoothing=100.0)
    assert np.abs(np.diff(smooth.coef)).sum() < np.abs(np.diff(rough.coef)).sum()
    flat = fit_random_walk(x, y, KNOTS, smoothing=1e4)
    assert np.ptp(flat.predict(x)) < 0.05

def test_invalid_fit_input():
    x, y = build()
    with pytest.raises(InvalidInput):
        fit_fixed(x, y[:-1], KNOTS)
    with pytest.raises(InvalidInput):
        fit_random_walk(x, y, KNOTS, smoothing=-1.0)
    with pytest.raises(InvalidInput):
        validated_fit(x, y, SplineConfig(KNOTS), folds=1)

def test_validated_fit():
    x, y = build()
    y_hat = validated_fit(x, y, SplineConfig(KNOTS, smoothing=0.1), folds=5, rng=np.random.default_rng(2))
    assert y_hat.shape == (200,)
    assert np.corrcoef(y_hat, y)[0, 1] > 0.9

def test_select_smoothing():
    x, y = build()
    best = select_smoothing(x, y, KNOTS, candidates=(0.1, 1.0, 100.0), rng=np.random.default_rng(3))
    assert best in (0.1, 1.0)

@pytest.mark.parametrize("smoothing", [None, 1.0])
def test_shift_moves_only_intercept(smoothing):
    x, y = build()
    fit = fit_spline(x, y, SplineConfig(KNOTS, smoothing=smoothing))
    shifted = fit_spline(x, y + 10, SplineConfig(KNOTS, smoothing=smoothing))
    assert shifted.intercept - fit.intercept == pytest.approx(10, abs=1e-8)
    assert np.allclose(shifted.coef, fit.coef, atol=1e-8)
    assert np.allclose(shifted.bse, fit.bse)

@pytest.mark.parametrize("smoothing", [None, 1.0])
def test_fit_full_rank(smoothing):
    x, y = build()
    with warnings.catch_warnings(record=True) as record:
        warnings.simplefilter("always")
        fit = fit_spline(x, y, SplineConfig(KNOTS, smoothing=smoothing))
    assert not [w for w in record if "Singular" in type(w.message).__name__]
    assert np.linalg.matrix_rank(fit.results.model.exog) == fit.results.model.exog.shape[1]

def test_select_smoothing_no_candidates():
    x, y = build()
    with pytest.raises(InvalidInput):
        select_smoothing(x, y, KNOTS, candidates=())
