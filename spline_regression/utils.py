from typing import Generator, Optional, Tuple
import numpy as np

__all__ = ['split_folds']

def split_folds(size: int, folds: int,
                rng: Optional[np.random.Generator] = None) -> Generator[Tuple[np.ndarray, np.ndarray], None, None]:
    """assumes repeats (observations) are on axis 0, the size % folds remainder is never tested"""
    rng = np.random.default_rng() if rng is None else rng
    test_size = size // folds
    full_index = np.arange(size)
    indices = rng.permutation(test_size * folds).reshape(folds, test_size)
    for idx_te in indices:
        idx_tr = np.setdiff1d(full_index, idx_te)
        yield idx_tr, idx_te
