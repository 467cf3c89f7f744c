import numpy as np
import pytest

from alsjoin.als import ALSJoin, rmse, squared_error
from alsjoin.common.config import ALSConfig
from alsjoin.common.errors import ConfigurationError, NumericSolveError
from alsjoin.dataset import LocalDataset
from alsjoin.io import TOY_RATINGS, local_ratings, spark_ratings
from alsjoin.model import FactorVector, factors_to_dict


def _assert_same_factors(a, b, **tol):
    assert set(a) == set(b)
    for key in a:
        np.testing.assert_allclose(a[key], b[key], **tol)


def test_toy_factorization(toy):
    als = ALSJoin(factors=2, lam=0.1, iterations=5, seed=42)
    result = als.factorize(toy)

    users = factors_to_dict(result.user_factors)
    items = factors_to_dict(result.item_factors)

    assert set(users) == {"u1", "u2", "u3"}
    assert set(items) == {"i1", "i2"}
    for values in list(users.values()) + list(items.values()):
        assert values.shape == (2,)
        assert np.all(np.isfinite(values))
    assert squared_error(toy, result.user_factors, result.item_factors) < 1.0


def test_results_are_factor_vectors(toy):
    result = ALSJoin(2, 0.1, 1, 0).factorize(toy)
    record = result.user_factors.collect()[0]
    assert isinstance(record, FactorVector)
    assert record.values.shape == (2,)


def test_same_seed_is_deterministic(toy):
    als = ALSJoin(factors=3, lam=0.1, iterations=4, seed=7)
    first = als.factorize(toy)
    second = als.factorize(toy)
    _assert_same_factors(factors_to_dict(first.user_factors),
                         factors_to_dict(second.user_factors), rtol=0, atol=0)
    _assert_same_factors(factors_to_dict(first.item_factors),
                         factors_to_dict(second.item_factors), rtol=0, atol=0)


def test_partitioning_does_not_change_the_result(two_factor):
    records = two_factor()
    als = ALSJoin(factors=2, lam=0.1, iterations=6, seed=3)

    one = als.factorize(local_ratings(records, num_partitions=1))
    many = als.factorize(local_ratings(records, num_partitions=5))

    _assert_same_factors(factors_to_dict(one.user_factors),
                         factors_to_dict(many.user_factors), rtol=1e-9, atol=1e-12)
    _assert_same_factors(factors_to_dict(one.item_factors),
                         factors_to_dict(many.item_factors), rtol=1e-9, atol=1e-12)


def test_each_rated_entity_appears_once(two_factor):
    ratings = local_ratings(two_factor(n_users=4, n_items=3), num_partitions=3)
    result = ALSJoin(2, 0.1, 2, 1).factorize(ratings)

    user_ids = [fv.id for fv in result.user_factors.collect()]
    item_ids = [fv.id for fv in result.item_factors.collect()]
    assert sorted(user_ids) == ["u0", "u1", "u2", "u3"]
    assert sorted(item_ids) == ["i0", "i1", "i2"]


def test_error_decreases_on_noise_free_low_rank_data(two_factor):
    ratings = local_ratings(two_factor(), num_partitions=2)
    errors = []

    def track(state):
        errors.append(squared_error(ratings, state.user_factors, state.item_factors))

    ALSJoin(factors=2, lam=1e-9, iterations=8, seed=5).factorize(ratings, callback=track)

    assert len(errors) == 8
    for before, after in zip(errors, errors[1:]):
        assert after <= before + 1e-8
    assert errors[-1] < 1e-6


def test_extra_alternation_after_convergence_is_a_no_op(two_factor):
    ratings = local_ratings(two_factor(), num_partitions=2)

    converged = ALSJoin(2, 0.1, 200, seed=9).factorize(ratings)
    one_more = ALSJoin(2, 0.1, 201, seed=9).factorize(ratings)

    _assert_same_factors(factors_to_dict(converged.user_factors),
                         factors_to_dict(one_more.user_factors), atol=1e-4)
    _assert_same_factors(factors_to_dict(converged.item_factors),
                         factors_to_dict(one_more.item_factors), atol=1e-4)


def test_callback_sees_every_iteration(toy):
    seen = []
    ALSJoin(2, 0.1, 3, 0).factorize(toy, callback=lambda state: seen.append(state.iteration))
    assert seen == [1, 2, 3]


def test_ratings_are_left_untouched(toy):
    before = sorted(toy.collect())
    ALSJoin(2, 0.1, 2, 0).factorize(toy)
    assert sorted(toy.collect()) == before


def test_update_matrix_skips_entities_without_ratings():
    als = ALSJoin(factors=2, lam=0.1, iterations=1, seed=0)
    by_item = LocalDataset.from_records([
        ("i1", ("u1", 5.0)),
        ("i2", ("u2", 3.0)),
        ("i9", ("u3", 1.0)),  # no factors for i9
    ], 2)
    items = LocalDataset.from_records([
        ("i1", np.array([1.0, 0.0])),
        ("i2", np.array([0.0, 1.0])),
        ("i3", np.array([1.0, 1.0])),
    ], 2)

    users = factors_to_dict(als.update_matrix(by_item, items))

    assert set(users) == {"u1", "u2"}
    np.testing.assert_allclose(users["u1"], [5.0 / 1.1, 0.0])
    np.testing.assert_allclose(users["u2"], [0.0, 3.0 / 1.1])


def test_larger_lambda_shrinks_updated_factors():
    by_item = LocalDataset.from_records([("i1", ("u1", 4.0)), ("i2", ("u1", 2.0))])
    items = LocalDataset.from_records([("i1", np.array([0.9, 0.3])), ("i2", np.array([0.2, 0.7]))])

    norms = []
    for lam in (0.01, 0.1, 1.0):
        users = factors_to_dict(ALSJoin(2, lam, 1, 0).update_matrix(by_item, items))
        norms.append(np.linalg.norm(users["u1"]))
    assert norms[0] > norms[1] > norms[2]


def test_rmse_matches_squared_error(toy):
    result = ALSJoin(2, 0.1, 3, 42).factorize(toy)
    sq = squared_error(toy, result.user_factors, result.item_factors)
    assert rmse(toy, result.user_factors, result.item_factors) == pytest.approx(np.sqrt(sq / 4))


def test_rmse_of_disjoint_factors_is_zero(toy):
    empty = LocalDataset.from_records([])
    assert rmse(toy, empty, empty) == 0.0


@pytest.mark.parametrize("kwargs", [
    dict(factors=0, lam=0.1, iterations=1, seed=0),
    dict(factors=2, lam=-0.1, iterations=1, seed=0),
    dict(factors=2, lam=0.1, iterations=0, seed=0),
    dict(factors=2, lam=0.1, iterations=1, seed=0, checkpoint_interval=-1),
    dict(factors=2, lam=float("nan"), iterations=1, seed=0),
    dict(factors=True, lam=0.1, iterations=1, seed=0),
])
def test_invalid_parameters_are_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        ALSJoin(**kwargs)


def test_from_config():
    als = ALSJoin.from_config(ALSConfig(factors=3, lam=0.2, iterations=4, seed=1))
    assert (als.factors, als.lam, als.iterations, als.seed) == (3, 0.2, 4, 1)


def test_spark_backend_matches_local(spark):
    als = ALSJoin(factors=2, lam=0.1, iterations=5, seed=42)

    local = als.factorize(local_ratings(TOY_RATINGS, num_partitions=2))
    remote = als.factorize(spark_ratings(spark.sparkContext, TOY_RATINGS, num_partitions=3))

    _assert_same_factors(factors_to_dict(local.user_factors),
                         factors_to_dict(remote.user_factors), rtol=1e-9, atol=1e-12)
    _assert_same_factors(factors_to_dict(local.item_factors),
                         factors_to_dict(remote.item_factors), rtol=1e-9, atol=1e-12)


def test_spark_checkpointing(spark, tmp_path):
    spark.sparkContext.setCheckpointDir(str(tmp_path / "checkpoints"))
    ratings = spark_ratings(spark.sparkContext, TOY_RATINGS, num_partitions=2)

    result = ALSJoin(2, 0.1, 4, 42, checkpoint_interval=2).factorize(ratings)

    assert result.user_factors.count() == 3
    assert result.item_factors.count() == 2


def test_singular_update_aborts_the_whole_run():
    # u2 and u3 own a single rating each: rank-1 systems for k=2 without a ridge term
    seen = []
    with pytest.raises(NumericSolveError):
        ALSJoin(2, 0.0, 3, 0).factorize(local_ratings(TOY_RATINGS), callback=seen.append)
    assert seen == []


def test_singular_update_aborts_the_whole_run_on_spark(spark):
    ratings = spark_ratings(spark.sparkContext, TOY_RATINGS, num_partitions=2)
    with pytest.raises(NumericSolveError):
        ALSJoin(2, 0.0, 3, 0).factorize(ratings)
