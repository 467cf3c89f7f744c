"""Alternating least squares over join / group / reduce passes.

Each half-iteration joins the ratings (keyed by the side held fixed) with
that side's current factors, re-keys the result by the side being solved
for, groups, and solves one small ridge regression per group::

    (item, (user, r)) join (item, v)  ->  (user, (r, v))  ->  group  ->  (user, x)

Nothing here depends on the execution engine; ``ratings`` can be any
``alsjoin.dataset.Dataset`` of ``Rating`` records.
"""
import logging
import math
import operator
from functools import reduce

import numpy as np

from alsjoin.common.config import ALSConfig
from alsjoin.common.errors import NumericSolveError
from alsjoin.initializer import random_factors
from alsjoin.model import Factorization, IterationState, as_factor_vectors
from alsjoin.solver import solve_factor

logger = logging.getLogger(__name__)


class ALSJoin:
    """Explicit-feedback ALS with weighted-lambda regularization.

    Args:
        factors: rank ``k`` of every factor vector.
        lam: regularization weight, scaled per entity by its rating count.
        iterations: number of (users, items) alternations.
        seed: seed for the random starting item factors.
        checkpoint_interval: checkpoint both factor generations every this
            many iterations; 0 disables. The Spark backend needs a
            checkpoint directory for this.
    """

    def __init__(self, factors: int, lam: float, iterations: int, seed: int,
                 checkpoint_interval: int = 0):
        ALSConfig(factors=factors, lam=lam, iterations=iterations, seed=seed,
                  checkpoint_interval=checkpoint_interval).validate()
        self.factors = factors
        self.lam = lam
        self.iterations = iterations
        self.seed = seed
        self.checkpoint_interval = checkpoint_interval

    @classmethod
    def from_config(cls, config: ALSConfig) -> "ALSJoin":
        config.validate()
        return cls(config.factors, config.lam, config.iterations, config.seed,
                   checkpoint_interval=config.checkpoint_interval)

    # ------------------------------------------------------------------
    # Update step
    # ------------------------------------------------------------------

    def update_matrix(self, ratings, matrix):
        """Recompute one side's factors from the other side's.

        Args:
            ratings: ``(opposite_id, (target_id, rating))`` records.
            matrix: ``(opposite_id, vector)`` records for the fixed side.

        Returns:
            ``(target_id, vector)`` for every target that owns at least one
            rating whose opposite id has a vector. Other ids are absent.
        """
        factors, lam = self.factors, self.lam
        return (
            ratings.join(matrix)
            .map(lambda kv: (kv[1][0][0], (kv[1][0][1], kv[1][1])))
            .group_by_key()
            .map_values(lambda pairs: solve_factor(pairs, factors, lam))
        )

    # ------------------------------------------------------------------
    # Iteration controller
    # ------------------------------------------------------------------

    def factorize(self, ratings, callback=None) -> Factorization:
        """Run the full alternation and return user and item factors.

        Args:
            ratings: Dataset of ``Rating``. Left untouched.
            callback: optional ``f(IterationState)`` called after every
                iteration, e.g. to track the reconstruction error.
        """
        by_item = ratings.map(lambda r: (r.item, (r.user, r.rating))).persist()
        by_user = ratings.map(lambda r: (r.user, (r.item, r.rating))).persist()
        adjacencies = ratings.map(lambda r: (r.user, r.item)).persist()

        try:
            item_ids = adjacencies.values().distinct()
            n_items = item_ids.count()
            n_users = adjacencies.keys().distinct().count()
            logger.info(f"ALS: {n_users:,} users × {n_items:,} items, "
                        f"k={self.factors} lambda={self.lam} iterations={self.iterations}")

            items = self._materialize(random_factors(item_ids, self.factors, self.seed))
            initial = IterationState(0, None, items)

            def step(state, iteration):
                checkpoint = bool(self.checkpoint_interval) and iteration % self.checkpoint_interval == 0
                users = self._materialize(self.update_matrix(by_item, state.item_factors), checkpoint)
                items = self._materialize(self.update_matrix(by_user, users), checkpoint)
                self._release(state.user_factors, state.item_factors)
                new_state = IterationState(iteration, users, items)
                logger.debug(f"ALS iteration {iteration}/{self.iterations} done")
                if callback is not None:
                    callback(new_state)
                return new_state

            final = reduce(step, range(1, self.iterations + 1), initial)

            users = self._materialize(self.update_matrix(by_item, final.item_factors))
            self._release(final.user_factors)
        finally:
            for derived in (by_item, by_user, adjacencies):
                derived.unpersist()

        return Factorization(as_factor_vectors(users), as_factor_vectors(final.item_factors))

    @staticmethod
    def _materialize(matrix, checkpoint=False):
        matrix.persist()
        if checkpoint:
            # must be marked before the first action on it
            matrix.checkpoint()
        try:
            matrix.count()
        except NumericSolveError:
            raise
        except Exception as e:
            # Spark ships worker failures back wrapped in py4j / PythonException
            if NumericSolveError.__name__ in str(e):
                raise NumericSolveError(f"update step failed on a worker: {e}") from e
            raise
        return matrix

    @staticmethod
    def _release(*matrices):
        for matrix in matrices:
            if matrix is not None:
                matrix.unpersist()


# ----------------------------------------------------------------------
# Reconstruction error
# ----------------------------------------------------------------------

def _residuals(ratings, user_factors, item_factors):
    # factor datasets may hold FactorVector records or plain (id, vector) pairs
    users = user_factors.map(tuple)
    items = item_factors.map(tuple)
    return (
        ratings.map(lambda r: (r.user, (r.item, r.rating)))
        .join(users)
        .map(lambda kv: (kv[1][0][0], (kv[1][0][1], kv[1][1])))
        .join(items)
        .map(lambda kv: kv[1][0][0] - float(np.dot(kv[1][0][1], kv[1][1])))
    )


def squared_error(ratings, user_factors, item_factors) -> float:
    """Sum of ``(r - u.v)^2`` over ratings whose user and item both have factors."""
    return float(_residuals(ratings, user_factors, item_factors)
                 .map(lambda e: e * e)
                 .fold(0.0, operator.add))


def rmse(ratings, user_factors, item_factors) -> float:
    residuals = _residuals(ratings, user_factors, item_factors)
    total, n = residuals.map(lambda e: (e * e, 1)).fold(
        (0.0, 0), lambda a, b: (a[0] + b[0], a[1] + b[1]))
    return math.sqrt(total / n) if n else 0.0
