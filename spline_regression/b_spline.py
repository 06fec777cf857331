import logging
from typing import Optional, Sequence, Tuple, Union
import numpy as np

__all__ = ['InvalidInput', 'IndexOutOfRange', 'as_points', 'extend_knots', 'num_basis', 'basis', 'basis_table',
           'design_matrix', 'bspline', 'bspline_set']

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]

class InvalidInput(ValueError):
    """Knots not non-decreasing, too short for the order, or otherwise unusable input."""

class IndexOutOfRange(IndexError):
    """Basis index and order address knots beyond the extended knot sequence."""

def as_points(x: ArrayLike) -> np.ndarray:
    """Flatten x into a 1D float array."""
    return np.asarray(x, dtype=np.float64).ravel()

def _check_knots(knots: ArrayLike) -> np.ndarray:
    t = np.asarray(knots, dtype=np.float64)
    if t.ndim != 1 or t.shape[0] < 2:
        raise InvalidInput(f"knots must be a 1D sequence of at least 2 values, got shape {t.shape}")
    if not np.all(np.isfinite(t)):
        raise InvalidInput("knots must be finite")
    if np.any(np.diff(t) < 0):
        raise InvalidInput("knots must be non-decreasing")
    return t

def _ends_at_upper_knot(x: np.ndarray, knots: ArrayLike) -> bool:
    return x.shape[0] > 0 and x[-1] == np.asarray(knots, dtype=np.float64)[-1]

def extend_knots(knots: ArrayLike, order: int) -> np.ndarray:
    """Pad the knots by repeating the first and last knot (order - 1) times at each end.
    Args:
        knots: q non-decreasing knots, q >= 2
        order: spline order k (degree + 1), k >= 1
    Returns:
        1D array of q + 2 * (k - 1) knots
    """
    t = _check_knots(knots)
    if order < 1:
        raise InvalidInput(f"order must be >= 1, got {order}")
    return np.hstack([[t[0]] * (order - 1), t, [t[-1]] * (order - 1)])

def num_basis(knots: ArrayLike, order: int) -> int:
    """Number of basis functions of order k over q raw knots, q + k - 2."""
    return len(knots) + order - 2

def _indicator(x: np.ndarray, left, right) -> np.ndarray:
    """Half-open [left, right) indicator, NaN where x is not finite."""
    result = ((left <= x) & (x < right)).astype(np.float64)
    result[..., ~np.isfinite(x)] = np.nan
    return result

def _basis(x: np.ndarray, t: np.ndarray, i: int, k: int) -> np.ndarray:
    assert 0 <= i and i + k < t.shape[0], (i, k, t.shape[0])
    if k == 1:
        return _indicator(x, t[i], t[i + 1])
    if t[i + k - 1] == t[i]:
        α0 = 0.0
    else:
        α0 = (x - t[i]) / (t[i + k - 1] - t[i])
    if t[i + k] == t[i + 1]:
        α1 = 0.0
    else:
        α1 = 1 - (x - t[i + 1]) / (t[i + k] - t[i + 1])
    return α0 * _basis(x, t, i, k - 1) + α1 * _basis(x, t, i + 1, k - 1)

def basis(x: ArrayLike, ext_knots: ArrayLike, index: int, order: int) -> np.ndarray:
    """Cox-de Boor recursion for a single basis function B_{index, order}.
    Args:
        x: 1D array of n points
        ext_knots: extended knots, see extend_knots
        index: basis index i
        order: spline order k
    Returns:
        1D array of n basis values
    """
    t = np.asarray(ext_knots, dtype=np.float64)
    if order < 1 or index < 0 or index + order > t.shape[0] - 1:
        raise IndexOutOfRange(f"basis index {index} of order {order} out of range for {t.shape[0]} knots")
    return _basis(as_points(x), t, index, order)

def _ramp(x: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """(x - lo) / (hi - lo) for each knot pair, rows with lo == hi are all zero."""
    degenerate = lo == hi
    span = np.where(degenerate, 1.0, hi - lo)
    ramp = (x - lo[:, None]) / span[:, None]
    ramp[degenerate] = 0.0
    return ramp, degenerate

def basis_table(x: ArrayLike, ext_knots: ArrayLike, order: int) -> np.ndarray:
    """Evaluate every basis function of {order} at once, bottom-up from order 1.
    Level m of the table is built from the two neighbouring rows of level m - 1, so each
    lower order basis is computed once.
    Args:
        x: 1D array of n points
        ext_knots: extended knots
        order: spline order k
    Returns:
        2D array (len(ext_knots) - k) * n, row i is B_{i, k}
    """
    x, t = as_points(x), np.asarray(ext_knots, dtype=np.float64)
    if order < 1 or order > t.shape[0] - 1:
        raise IndexOutOfRange(f"order {order} out of range for {t.shape[0]} knots")
    table = _indicator(x, t[:-1, None], t[1:, None])
    for m in range(2, order + 1):
        size = t.shape[0] - m
        α0, _ = _ramp(x, t[:size], t[m - 1: m - 1 + size])
        ramp, degenerate = _ramp(x, t[1: 1 + size], t[m: m + size])
        α1 = 1 - ramp
        α1[degenerate] = 0.0
        table = α0 * table[:-1] + α1 * table[1:]
    return table

def design_matrix(x: ArrayLike, knots: ArrayLike, order: int, patch_boundary: bool = True) -> np.ndarray:
    """Design matrix of all B-splines of {order} over the raw {knots}.
    The half-open base case makes every basis vanish at the upper knot, so the last basis at
    the last point is set to 1.
    Args:
        x: 1D array of n points, normally sorted and ending at the upper knot
        knots: q raw knots, non-decreasing
        order: spline order k
        patch_boundary: set the value of the last basis at the last point to 1
    Returns:
        2D array (q + k - 2) * n
    """
    x = as_points(x)
    ext_knots = extend_knots(knots, order)
    result = basis_table(x, ext_knots, order)
    if patch_boundary and x.shape[0] > 0:
        if x[-1] != ext_knots[-1]:
            logger.debug("boundary patch at x=%s, upper knot is %s", x[-1], ext_knots[-1])
        result[-1, -1] = 1.0
    logger.debug("design matrix %s for order %d", result.shape, order)
    return result

def bspline(x: ArrayLike, knots: ArrayLike, coef: ArrayLike, order: int) -> np.ndarray:
    """Spline curve sum_i coef_i * B_{i, order}(x)."""
    x, coef = as_points(x), np.asarray(coef, dtype=np.float64)
    n = num_basis(knots, order)
    if coef.shape != (n,):
        raise InvalidInput(f"expected {n} coefficients, got shape {coef.shape}")
    return coef @ design_matrix(x, knots, order, patch_boundary=_ends_at_upper_knot(x, knots))

def bspline_set(x: ArrayLike, order: int = 4, num_knots: Optional[int] = None) -> np.ndarray:
    """Generate the full set over equally spaced knots spanning x
    Args:
        x: 1D array of x points
        order: spline order
        num_knots: number of raw knots, defaults to order + 2
    Returns:
        2D array with each row a basis
    """
    x = as_points(x)
    knots = np.linspace(x.min(), x.max(), order + 2 if num_knots is None else num_knots)
    return design_matrix(x, knots, order, patch_boundary=_ends_at_upper_knot(x, knots))
