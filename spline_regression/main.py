"""
Fit spline regressions on a B-spline design matrix, with fixed or random-walk smoothed coefficients.
"""
import logging
from typing import Optional, Sequence
from dataclasses import dataclass, field
import numpy as np
from scipy import sparse
from statsmodels import api as sm
from statsmodels.genmod.generalized_linear_model import GLMResults
from .b_spline import InvalidInput, ArrayLike, design_matrix, num_basis, as_points
from .utils import split_folds

__all__ = ['SplineConfig', 'SplineFit', 'first_difference', 'fit_spline', 'fit_fixed', 'fit_random_walk',
           'validated_fit', 'select_smoothing']

GLM_FAMILY = sm.families.Gaussian(sm.families.links.Identity())
logger = logging.getLogger(__name__)

@dataclass
class SplineConfig:
    """
    Args:
        knots: raw knots, non-decreasing
        order: spline order, 4 for cubic
        smoothing: None for fixed coefficients, otherwise ratio of noise scale to random-walk step scale
    """
    knots: np.ndarray
    order: int = 4
    smoothing: Optional[float] = None

    @classmethod
    def uniform(cls, lower: float, upper: float, num_knots: int, order: int = 4,
                smoothing: Optional[float] = None) -> "SplineConfig":
        return cls(np.linspace(lower, upper, num_knots), order, smoothing)

    @property
    def num_basis(self) -> int:
        return num_basis(self.knots, self.order)

@dataclass
class SplineFit:
    """
    Args:
        intercept: level of the curve, the first basis coefficient is held at 0 so the level is identified
        coef: num_basis coefficients, coef[0] == 0
        bse: standard errors of coef, bse[0] == 0
        sigma: noise scale
    """
    config: SplineConfig
    intercept: float
    coef: np.ndarray
    bse: np.ndarray
    sigma: float
    results: GLMResults = field(repr=False)

    @property
    def params(self) -> np.ndarray:
        return np.hstack([self.intercept, self.coef])

    def predict(self, x: ArrayLike) -> np.ndarray:
        return _exog(as_points(x), self.config) @ self.params

    def predict_se(self, x: ArrayLike) -> np.ndarray:
        """Standard error of the fitted curve at x, from the coefficient covariance."""
        exog = _free(_exog(as_points(x), self.config))
        return np.sqrt(np.einsum('ij,jk,ik->i', exog, np.asarray(self.results.cov_params()), exog))

def _exog(x: np.ndarray, config: SplineConfig) -> np.ndarray:
    """Observations * (1 + num_basis) predictors, the last basis is 1 at every point on the upper knot."""
    basis = design_matrix(x, config.knots, config.order, patch_boundary=False)
    basis[-1, x == np.asarray(config.knots)[-1]] = 1.0
    return sm.add_constant(basis.T, has_constant='add')

def _free(exog: np.ndarray) -> np.ndarray:
    """Drop the first basis column, the basis sums to 1 and would repeat the intercept."""
    return np.delete(exog, 1, axis=1)

def first_difference(n: int) -> np.ndarray:
    """(n - 1) * n operator of steps a[i] - a[i - 1] of a random walk."""
    return sparse.diags([-1.0, 1.0], [0, 1], shape=(n - 1, n)).toarray()

def _check_data(x: ArrayLike, y: ArrayLike):
    x, y = as_points(x), as_points(y)
    if x.shape != y.shape:
        raise InvalidInput(f"x and y differ in length: {x.shape[0]} vs {y.shape[0]}")
    return x, y

def fit_spline(x: ArrayLike, y: ArrayLike, config: SplineConfig) -> SplineFit:
    """Gaussian GLM of y on intercept + the B-spline basis of x.
    The basis sums to 1, so a[1] is held at 0 and the intercept takes its place as the free start of the curve.
    With config.smoothing = λ > 0 the rows λ * D, D the first difference of the coefficients, are appended
    with zero response, which gives the posterior mode under a[i] = a[i - 1] + τ * z, τ = σ / λ.
    Args:
        x: 1D array of n observation points inside the knot range
        y: 1D array of n responses
        config: knots, order and smoothing
    Returns:
        the fit, coef has the size of config.num_basis
    """
    x, y = _check_data(x, y)
    smoothing = config.smoothing
    if smoothing is not None and smoothing < 0:
        raise InvalidInput(f"smoothing must be >= 0, got {smoothing}")
    exog = _free(_exog(x, config))
    endog = y
    if smoothing:
        penalty = smoothing * first_difference(config.num_basis)[:, 1:]
        exog = np.vstack([exog, np.hstack([np.zeros((penalty.shape[0], 1)), penalty])])
        endog = np.hstack([y, np.zeros(penalty.shape[0])])
    logger.info("fitting %d observations on %d basis functions, smoothing %s", y.shape[0], config.num_basis,
                smoothing)
    results = sm.GLM(endog, exog, family=GLM_FAMILY).fit()
    return SplineFit(config, float(results.params[0]), np.hstack([0.0, results.params[1:]]),
                     np.hstack([0.0, results.bse[1:]]), float(np.sqrt(results.scale)), results)

def fit_fixed(x: ArrayLike, y: ArrayLike, knots: ArrayLike, order: int = 4) -> SplineFit:
    return fit_spline(x, y, SplineConfig(np.asarray(knots, dtype=np.float64), order))

def fit_random_walk(x: ArrayLike, y: ArrayLike, knots: ArrayLike, order: int = 4,
                    smoothing: float = 1.0) -> SplineFit:
    return fit_spline(x, y, SplineConfig(np.asarray(knots, dtype=np.float64), order, smoothing))

def validated_fit(x: ArrayLike, y: ArrayLike, config: SplineConfig, folds: int = 5,
                  rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Args:
        x: observation points, 1D array of t size
        y: real value, 1D array of t size
        config: spline to fit on each training fold
        folds: how many folds to validate
    Returns:
        y_hat combined after {folds}-folds break down, the first t // folds * folds observations.
    """
    x, y = _check_data(x, y)
    if folds < 2:
        raise InvalidInput(f"folds must be >= 2, got {folds}")
    y_hat = np.zeros(y.shape[0] // folds * folds, dtype=y.dtype)
    for idx_tr, idx_te in split_folds(y.shape[0], folds, rng):
        model = fit_spline(x[idx_tr], y[idx_tr], config)
        y_hat[idx_te] = model.predict(x[idx_te])
    return y_hat

def _corr(x: np.ndarray, y: np.ndarray) -> float:
    ex = x - x.mean()
    ey = y - y.mean()
    return (ex * ey).sum() / np.sqrt((ex * ex).sum() * (ey * ey).sum())

def select_smoothing(x: ArrayLike, y: ArrayLike, knots: ArrayLike, order: int = 4,
                     candidates: Sequence[float] = (0.0, 0.1, 1.0, 10.0, 100.0), folds: int = 5,
                     rng: Optional[np.random.Generator] = None) -> float:
    """Find the random-walk smoothing among {candidates} that gives the best cross-validated correlation."""
    if len(candidates) == 0:
        raise InvalidInput("candidates must not be empty")
    x, y = _check_data(x, y)
    knots = np.asarray(knots, dtype=np.float64)
    rng = np.random.default_rng() if rng is None else rng
    size = y.shape[0] // folds * folds
    r = [_corr(validated_fit(x, y, SplineConfig(knots, order, smoothing), folds, rng), y[:size])
         for smoothing in candidates]
    best = candidates[int(np.argmax(r))]
    logger.info("selected smoothing %s, cross-validated r %.4f", best, max(r))
    return best
