"""Partitioned collections the ALS engine runs on.

The engine only needs a handful of operations (map, join by key, group by
key, fold, persist), so it talks to the ``Dataset`` interface below instead
of pyspark directly. ``SparkDataset`` wraps an RDD for real runs;
``LocalDataset`` keeps hash-partitioned lists in memory and is used by the
tests and for small toy runs.

Keyed datasets hold ``(key, value)`` tuples, like pair RDDs.
"""
import abc
from functools import reduce

from pyspark import StorageLevel


class Dataset(abc.ABC):

    @abc.abstractmethod
    def map(self, f):
        """Apply ``f`` to every record."""

    def map_values(self, f):
        return self.map(lambda kv: (kv[0], f(kv[1])))

    def keys(self):
        return self.map(lambda kv: kv[0])

    def values(self):
        return self.map(lambda kv: kv[1])

    @abc.abstractmethod
    def distinct(self):
        pass

    @abc.abstractmethod
    def join(self, other):
        """Inner join on key: ``(k, v)`` x ``(k, w)`` -> ``(k, (v, w))``."""

    @abc.abstractmethod
    def group_by_key(self):
        """``(k, v)`` records -> one ``(k, [v, ...])`` record per key."""

    @abc.abstractmethod
    def fold(self, zero, op):
        pass

    @abc.abstractmethod
    def count(self) -> int:
        pass

    @abc.abstractmethod
    def collect(self) -> list:
        pass

    @abc.abstractmethod
    def persist(self, storage_level=None):
        """Keep the computed form resident across downstream uses. Returns self."""

    @abc.abstractmethod
    def unpersist(self):
        pass

    @abc.abstractmethod
    def checkpoint(self):
        """Truncate lineage; the data is saved on its next materialization."""

    @property
    @abc.abstractmethod
    def is_cached(self) -> bool:
        pass

    @property
    @abc.abstractmethod
    def num_partitions(self) -> int:
        pass

    def _require_same_backend(self, other):
        if type(other) is not type(self):
            raise TypeError(
                f"cannot combine {type(self).__name__} with {type(other).__name__}")


class LocalDataset(Dataset):
    """Eager in-memory dataset split into hash partitions."""

    def __init__(self, partitions):
        self._partitions = [list(p) for p in partitions] or [[]]
        self._cached = False

    @classmethod
    def from_records(cls, records, num_partitions: int = 1):
        records = list(records)
        n = max(1, int(num_partitions))
        return cls([records[i::n] for i in range(n)])

    def repartition(self, num_partitions: int):
        return LocalDataset.from_records(self.collect(), num_partitions)

    def _shuffle(self, key_fn, num_partitions=None):
        n = num_partitions or self.num_partitions
        buckets = [[] for _ in range(n)]
        for part in self._partitions:
            for record in part:
                buckets[hash(key_fn(record)) % n].append(record)
        return buckets

    def map(self, f):
        return LocalDataset([[f(x) for x in part] for part in self._partitions])

    def distinct(self):
        buckets = self._shuffle(lambda x: x)
        return LocalDataset([list(dict.fromkeys(b)) for b in buckets])

    def join(self, other):
        self._require_same_backend(other)
        n = self.num_partitions
        left = self._shuffle(lambda kv: kv[0], n)
        right = other._shuffle(lambda kv: kv[0], n)
        out = []
        for lpart, rpart in zip(left, right):
            index = {}
            for k, w in rpart:
                index.setdefault(k, []).append(w)
            out.append([(k, (v, w)) for k, v in lpart for w in index.get(k, ())])
        return LocalDataset(out)

    def group_by_key(self):
        out = []
        for bucket in self._shuffle(lambda kv: kv[0]):
            groups = {}
            for k, v in bucket:
                groups.setdefault(k, []).append(v)
            out.append(list(groups.items()))
        return LocalDataset(out)

    def fold(self, zero, op):
        return reduce(op, (reduce(op, part, zero) for part in self._partitions), zero)

    def count(self) -> int:
        return sum(len(part) for part in self._partitions)

    def collect(self) -> list:
        return [x for part in self._partitions for x in part]

    def persist(self, storage_level=None):
        # already materialized; only the flag changes
        self._cached = True
        return self

    def unpersist(self):
        self._cached = False
        return self

    def checkpoint(self):
        pass

    @property
    def is_cached(self) -> bool:
        return self._cached

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    def __repr__(self):
        return f"LocalDataset(partitions={self.num_partitions}, count={self.count()})"


class SparkDataset(Dataset):
    """Dataset backed by a pyspark RDD; every operation stays lazy until an action."""

    def __init__(self, rdd):
        self.rdd = rdd

    @classmethod
    def from_records(cls, sc, records, num_partitions=None):
        return cls(sc.parallelize(list(records), num_partitions))

    def map(self, f):
        return SparkDataset(self.rdd.map(f))

    def map_values(self, f):
        return SparkDataset(self.rdd.mapValues(f))

    def keys(self):
        return SparkDataset(self.rdd.keys())

    def values(self):
        return SparkDataset(self.rdd.values())

    def distinct(self):
        return SparkDataset(self.rdd.distinct())

    def join(self, other):
        self._require_same_backend(other)
        return SparkDataset(self.rdd.join(other.rdd))

    def group_by_key(self):
        return SparkDataset(self.rdd.groupByKey().mapValues(list))

    def fold(self, zero, op):
        return self.rdd.fold(zero, op)

    def count(self) -> int:
        return self.rdd.count()

    def collect(self) -> list:
        return self.rdd.collect()

    def persist(self, storage_level=None):
        if not self.rdd.is_cached:
            self.rdd.persist(storage_level or StorageLevel.MEMORY_AND_DISK)
        return self

    def unpersist(self):
        if self.rdd.is_cached:
            self.rdd.unpersist(blocking=False)
        return self

    def checkpoint(self):
        self.rdd.checkpoint()

    @property
    def is_cached(self) -> bool:
        return self.rdd.is_cached

    @property
    def num_partitions(self) -> int:
        return self.rdd.getNumPartitions()

    def __repr__(self):
        return f"SparkDataset({self.rdd!r})"
