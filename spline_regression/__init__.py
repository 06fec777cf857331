from .b_spline import InvalidInput, IndexOutOfRange, extend_knots, num_basis, basis, basis_table, design_matrix
from .b_spline import bspline, bspline_set
from .main import SplineConfig, SplineFit, fit_spline, fit_fixed, fit_random_walk, select_smoothing

__all__ = ["InvalidInput", "IndexOutOfRange", "extend_knots", "num_basis", "basis", "basis_table", "design_matrix",
           "bspline", "bspline_set", "SplineConfig", "SplineFit", "fit_spline", "fit_fixed", "fit_random_walk",
           "select_smoothing"]
