import numpy as np
import pytest

from alsjoin.io import TOY_RATINGS, local_ratings


@pytest.fixture(scope="session")
def spark():
    pytest.importorskip("pyspark")
    from alsjoin.common.spark_utils import get_spark

    try:
        session = get_spark("alsjoin-tests", master="local[2]",
                            spark_conf={"shuffle_partitions": 2, "driver_memory": "1g"})
    except Exception as e:  # no JVM on this machine
        pytest.skip(f"Spark unavailable: {e}")
    yield session
    session.stop()


@pytest.fixture
def toy():
    return local_ratings(TOY_RATINGS, num_partitions=2)


def two_factor_ratings(n_users=6, n_items=5, strengths=(6.0, 3.0), seed=11):
    """Fully observed, noise-free ratings ``A diag(strengths) B^T`` with orthonormal A, B."""
    rng = np.random.default_rng(seed)
    a, _ = np.linalg.qr(rng.normal(size=(n_users, len(strengths))))
    b, _ = np.linalg.qr(rng.normal(size=(n_items, len(strengths))))
    full = a @ np.diag(strengths) @ b.T
    return [(f"u{u}", f"i{i}", float(full[u, i]))
            for u in range(n_users) for i in range(n_items)]


@pytest.fixture
def two_factor():
    return two_factor_ratings
