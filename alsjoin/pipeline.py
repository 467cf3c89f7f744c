"""End-to-end training run: ratings in, factors and metrics out."""
import json
import logging
import os
import time

from alsjoin.als import ALSJoin, rmse, squared_error
from alsjoin.common.config import ALSConfig
from alsjoin.common.errors import ConfigurationError
from alsjoin.io import read_ratings, spark_ratings, toy_ratings, write_factorization

logger = logging.getLogger(__name__)


def error_logger(ratings):
    """Callback for ``ALSJoin.factorize`` that logs the squared error per iteration."""
    history = []

    def _log(state):
        err = squared_error(ratings, state.user_factors, state.item_factors)
        history.append(err)
        logger.info(f"iteration {state.iteration}: squared error {err:.6f}")

    _log.history = history
    return _log


def run_training(spark, config: ALSConfig, out_dir: str, in_path=None, toy=False,
                 track_error=False, metrics_out=None):
    """Factorize ratings from ``in_path`` (or the toy set) and write the result.

    Returns the metrics summary that is also written to ``metrics.json``.
    """
    config.validate()
    if config.checkpoint_interval and spark.sparkContext.getCheckpointDir() is None:
        raise ConfigurationError(
            f"checkpoint_interval={config.checkpoint_interval} needs a checkpoint directory "
            "(spark.checkpoint_dir in the config, or 0 to disable checkpointing)")
    if toy:
        ratings = spark_ratings(spark.sparkContext, toy_ratings(), config.num_partitions)
        source = "toy"
    elif in_path:
        ratings = read_ratings(spark, in_path, config.num_partitions)
        source = os.path.abspath(in_path)
    else:
        raise ValueError("either in_path or toy=True is required")

    ratings.persist()
    try:
        als = ALSJoin.from_config(config)
        callback = error_logger(ratings) if track_error else None

        t0 = time.time()
        factorization = als.factorize(ratings, callback=callback)
        final_rmse = rmse(ratings, factorization.user_factors, factorization.item_factors)
        elapsed = time.time() - t0
        logger.info(f"factorized in {elapsed:.1f}s, RMSE {final_rmse:.6f}")

        paths = write_factorization(spark, factorization, out_dir)

        summary = {
            "ts": int(time.time()),
            "in_path": source,
            "out_dir": os.path.abspath(out_dir),
            "artifacts": paths,
            "als_hparams": {
                "factors": config.factors,
                "lambda": config.lam,
                "iterations": config.iterations,
                "seed": config.seed,
                "checkpoint_interval": config.checkpoint_interval,
            },
            "metrics": {
                "rmse": final_rmse,
                "train_seconds": round(elapsed, 3),
                "squared_error_history": callback.history if callback else None,
            },
            "counts": {
                "n_ratings": ratings.count(),
                "n_users": factorization.user_factors.count(),
                "n_items": factorization.item_factors.count(),
            },
        }
    finally:
        ratings.unpersist()

    metrics_path = metrics_out or os.path.join(out_dir, "metrics.json")
    os.makedirs(os.path.dirname(os.path.abspath(metrics_path)), exist_ok=True)
    with open(metrics_path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2)
    logger.info(f"wrote metrics -> {metrics_path}")
    return summary
