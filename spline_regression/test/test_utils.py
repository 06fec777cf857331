import numpy as np
from spline_regression.utils import split_folds

def test_split_folds():
    folds = list(split_folds(23, 5, np.random.default_rng(0)))
    assert len(folds) == 5
    tested = np.hstack([idx_te for _, idx_te in folds])
    assert np.array_equal(np.sort(tested), np.arange(20))
    for idx_tr, idx_te in folds:
        assert idx_te.shape == (4,)
        assert np.array_equal(np.sort(np.hstack([idx_tr, idx_te])), np.arange(23))
