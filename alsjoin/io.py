"""Ratings source and factorization sink."""
import logging
import os

from pyspark.sql import functions as F
from pyspark.sql import types as T

from alsjoin.common.errors import InputSchemaError
from alsjoin.dataset import LocalDataset, SparkDataset
from alsjoin.model import Rating

logger = logging.getLogger(__name__)

# (user column, item column, rating column); first match wins
RATING_SCHEMAS = [
    ("user_id", "item_id", "rating"),
    ("userId", "movieId", "rating"),
    ("user_id", "business_id", "stars"),
    ("user", "item", "rating"),
]

TOY_RATINGS = [
    ("u1", "i1", 5.0),
    ("u1", "i2", 3.0),
    ("u2", "i1", 4.0),
    ("u3", "i2", 2.0),
]

FACTOR_SCHEMA = T.StructType([
    T.StructField("id", T.StringType(), nullable=False),
    T.StructField("features", T.ArrayType(T.DoubleType(), containsNull=False), nullable=False),
])


def toy_ratings():
    return [Rating(*r) for r in TOY_RATINGS]


def local_ratings(records, num_partitions: int = 1) -> LocalDataset:
    """Wrap ``(user, item, rating)`` tuples as an in-memory Dataset of Rating."""
    return LocalDataset.from_records(
        (Rating(u, i, float(r)) for u, i, r in records), num_partitions)


def spark_ratings(sc, records, num_partitions=None) -> SparkDataset:
    return SparkDataset.from_records(
        sc, [Rating(u, i, float(r)) for u, i, r in records], num_partitions)


def _read_frame(spark, path: str):
    if not os.path.exists(path):
        raise FileNotFoundError(f"Ratings input not found: {path}")
    if path.lower().endswith(".csv"):
        return spark.read.option("header", True).option("inferSchema", True).csv(path)
    return spark.read.parquet(path)


def ratings_frame(df):
    """Normalize a ratings DataFrame to ``user, item, rating`` columns."""
    cols = set(df.columns)
    for user_col, item_col, rating_col in RATING_SCHEMAS:
        if {user_col, item_col, rating_col}.issubset(cols):
            return (df.select(F.col(user_col).alias("user"),
                              F.col(item_col).alias("item"),
                              F.col(rating_col).cast("double").alias("rating"))
                      .dropna())
    raise InputSchemaError(f"Input schema mismatch. Found columns: {df.columns}")


def read_ratings(spark, path: str, num_partitions=None) -> SparkDataset:
    """Load a parquet or CSV ratings file as a Dataset of Rating."""
    df = ratings_frame(_read_frame(spark, path))
    rdd = df.rdd.map(lambda row: Rating(row["user"], row["item"], row["rating"]))
    if num_partitions:
        rdd = rdd.repartition(num_partitions)
    logger.info(f"Reading ratings from {path} ({rdd.getNumPartitions()} partitions)")
    return SparkDataset(rdd)


def _factor_rows(factors):
    return factors.map(lambda fv: (str(fv[0]), [float(x) for x in fv[1]]))


def write_factorization(spark, factorization, out_dir: str):
    """Write ``userFactors`` and ``itemFactors`` parquet folders under ``out_dir``."""
    paths = {}
    for name, factors in (("userFactors", factorization.user_factors),
                          ("itemFactors", factorization.item_factors)):
        if isinstance(factors, SparkDataset):
            rows = _factor_rows(factors).rdd
        else:
            rows = _factor_rows(factors).collect()
        path = os.path.join(out_dir, name)
        spark.createDataFrame(rows, schema=FACTOR_SCHEMA).write.mode("overwrite").parquet(path)
        logger.info(f"Wrote {name} -> {path}")
        paths[name] = path
    return paths
