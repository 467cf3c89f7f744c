"""Random starting factors."""
import hashlib

import numpy as np

_SEED_MASK = (1 << 64) - 1


def _id_digest(entity_id) -> int:
    # str() so int and numpy integer ids land on the same stream
    digest = hashlib.blake2b(str(entity_id).encode("utf-8"), digest_size=16).digest()
    return int.from_bytes(digest, "little")


def random_vector(entity_id, factors: int, seed: int) -> np.ndarray:
    """Uniform[0, 1) vector for one id, fixed by ``(seed, id)`` alone."""
    rng = np.random.default_rng([seed & _SEED_MASK, _id_digest(entity_id)])
    return rng.random(factors)


def random_factors(ids, factors: int, seed: int):
    """Map a Dataset of distinct ids to a keyed Dataset of ``(id, vector)``.

    The vectors do not depend on how ``ids`` is ordered or partitioned.
    """
    return ids.map(lambda entity_id: (entity_id, random_vector(entity_id, factors, seed)))
