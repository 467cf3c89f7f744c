"""
ALS-Join
========

Matrix factorization of explicit ratings with Alternating Least Squares,
run as join / group / reduce passes over partitioned datasets (Spark RDDs
or in-memory partitions).
"""

from alsjoin.als import ALSJoin, rmse, squared_error
from alsjoin.dataset import Dataset, LocalDataset, SparkDataset
from alsjoin.model import Factorization, FactorVector, IterationState, Rating

__all__ = [
    "ALSJoin",
    "rmse",
    "squared_error",
    "Dataset",
    "LocalDataset",
    "SparkDataset",
    "Factorization",
    "FactorVector",
    "IterationState",
    "Rating",
]
