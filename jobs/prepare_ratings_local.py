#jobs/prepare_ratings_local.py
import argparse
import logging

from pyspark.sql.functions import col, count

from alsjoin.common.log import configure_logging
from alsjoin.common.spark_utils import get_spark
from alsjoin.io import ratings_frame

logger = logging.getLogger("prepare_ratings_local")


def main(args):
    configure_logging()
    spark = get_spark("ALS-Prepare", master=args.master)
    try:
        raw = (spark.read.option("header", True).option("inferSchema", True).csv(args.in_path)
               if args.in_path.lower().endswith(".csv") else spark.read.parquet(args.in_path))
        df = ratings_frame(raw).where(col("rating") > 0)

        #filtering users with few ratings to reduce cold start problems
        if args.min_user_ratings > 1:
            users_ok = (df.groupBy("user").agg(count("*").alias("n"))
                          .where(col("n") >= args.min_user_ratings)
                          .select("user"))
            df = df.join(users_ok, "user")

        out = df.select(col("user").cast("string").alias("user_id"),
                        col("item").cast("string").alias("item_id"),
                        col("rating"))
        logger.info(f"rows (prepared): {out.count():,}")
        out.write.mode("overwrite").parquet(args.out_path)
        logger.info(f"wrote prepared ratings: {args.out_path}")
    finally:
        spark.stop()


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    p.add_argument("--in", dest="in_path", required=True, help="raw ratings CSV or parquet")
    p.add_argument("--out", dest="out_path", required=True)
    p.add_argument("--min-user-ratings", type=int, default=1)
    p.add_argument("--master")
    main(p.parse_args())
