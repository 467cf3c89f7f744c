#jobs/train_als_join.py
import argparse
import logging

from alsjoin.common.config import DEFAULT_CONFIG_PATH, als_config, load_config
from alsjoin.common.log import configure_logging
from alsjoin.common.spark_utils import get_spark
from alsjoin.pipeline import run_training

logger = logging.getLogger("train_als_join")


def main(args):
    conf = load_config(args.config)
    spark_conf = conf.get("spark") or {}
    configure_logging(args.log_level or "INFO")

    #flags override conf/config.yaml; validated before Spark starts
    config = als_config(
        conf,
        factors=args.factors,
        lam=args.lam,
        iterations=args.iterations,
        seed=args.seed,
        num_partitions=args.num_partitions,
    )
    logger.info(f"ALS params: {config}")

    spark = get_spark("ALS-Join", master=args.master, spark_conf=spark_conf)
    try:
        run_training(
            spark,
            config,
            out_dir=args.out_path,
            in_path=args.in_path,
            toy=args.toy,
            track_error=args.track_error,
            metrics_out=args.metrics_out,
        )
    except Exception:
        logger.exception("ALS run failed; no factorization written")
        raise
    finally:
        spark.stop()


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--in", dest="in_path", help="ratings parquet or CSV")
    src.add_argument("--toy", action="store_true", help="run on the built-in toy ratings")
    p.add_argument("--out", dest="out_path", required=True,
                   help="output folder for userFactors/ itemFactors/ and metrics.json")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    p.add_argument("--factors", type=int, help="rank k of the factor vectors")
    p.add_argument("--lambda", dest="lam", type=float, help="regularization weight")
    p.add_argument("--iterations", type=int)
    p.add_argument("--seed", type=int)
    p.add_argument("--num-partitions", type=int,
                   help="repartition the ratings before factorizing")
    p.add_argument("--master", help="Spark master, e.g. local[4]")
    p.add_argument("--track-error", action="store_true",
                   help="log the squared error after every iteration (one extra job each)")
    p.add_argument("--metrics-out", help="Write run metrics JSON to this local path")
    p.add_argument("--log-level", help="Python log level (default INFO)")
    main(p.parse_args())
