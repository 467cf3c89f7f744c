"""Per-entity ridge regression solved inside each ALS group."""
import numpy as np

from alsjoin.common.errors import NumericSolveError

# beyond this the solve only amplifies rounding error
MAX_CONDITION = 1e12


def solve_factor(pairs, factors: int, lam: float) -> np.ndarray:
    """Solve ``(sum v v^T + n*lam*I) x = sum rating*v`` for one entity.

    Args:
        pairs: iterable of ``(rating, opposite_vector)`` for every rating the
            entity owns. Order does not matter.
        factors: rank ``k``; every vector must have exactly ``k`` components.
        lam: regularization weight. The ridge term grows with the number of
            ratings ``n``, so heavily rated entities are shrunk more.

    Raises:
        ValueError: a vector is not ``k`` long.
        NumericSolveError: the system is singular or near-singular (only
            possible with ``lam`` at or near 0) or the solution is not finite.
    """
    matrix = np.zeros((factors, factors))
    vector = np.zeros(factors)
    n = 0

    for rating, values in pairs:
        v = np.asarray(values, dtype=np.float64)
        if v.shape != (factors,):
            raise ValueError(f"expected a factor vector of length {factors}, got shape {v.shape}")
        vector += rating * v
        matrix += np.outer(v, v)
        n += 1

    matrix[np.diag_indices(factors)] += n * lam

    # LU only flags exactly-zero pivots; a rank-deficient sum of outer products
    # usually rounds to a tiny nonzero one
    condition = np.linalg.cond(matrix)
    if not condition < MAX_CONDITION:
        raise NumericSolveError(
            f"ill-conditioned normal equations (cond={condition:.3g}) for {n} rating(s) with lambda={lam}")
    try:
        x = np.linalg.solve(matrix, vector)
    except np.linalg.LinAlgError as e:
        raise NumericSolveError(
            f"singular normal equations for {n} rating(s) with lambda={lam}") from e
    if not np.all(np.isfinite(x)):
        raise NumericSolveError(f"non-finite solution for {n} rating(s) with lambda={lam}")
    return x
