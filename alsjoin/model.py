"""Records flowing through the factorization."""
from typing import Any, Dict, Hashable, NamedTuple

import numpy as np


class Rating(NamedTuple):
    user: Hashable
    item: Hashable
    rating: float


class FactorVector(NamedTuple):
    id: Hashable
    values: np.ndarray


class Factorization(NamedTuple):
    user_factors: Any  # Dataset[FactorVector]
    item_factors: Any  # Dataset[FactorVector]


class IterationState(NamedTuple):
    """Factor generations after ``iteration`` full alternations.

    ``user_factors`` and ``item_factors`` are keyed Datasets of
    ``(id, np.ndarray)``; iteration 0 holds only the random item factors.
    """
    iteration: int
    user_factors: Any
    item_factors: Any


def as_factor_vectors(matrix):
    """Turn a keyed ``(id, array)`` Dataset into a Dataset of FactorVector."""
    return matrix.map(lambda kv: FactorVector(kv[0], kv[1]))


def factors_to_dict(factors) -> Dict[Hashable, np.ndarray]:
    """Collect a Dataset of FactorVector (or ``(id, array)`` pairs) to the driver."""
    return {fid: np.asarray(values) for fid, values in factors.collect()}
