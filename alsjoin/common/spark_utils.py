from typing import Any, Dict, Optional

from pyspark.sql import SparkSession


def get_spark(app_name: str = "ALS-Join", master: Optional[str] = None,
              spark_conf: Optional[Dict[str, Any]] = None):
    """Build (or reuse) a SparkSession from the ``spark`` section of the config."""
    spark_conf = spark_conf or {}
    master = master or spark_conf.get("master")

    builder = SparkSession.builder.appName(spark_conf.get("app_name", app_name))
    if master:
        builder = builder.master(master)

    spark = (
        builder
        # Local/dev settings
        .config("spark.driver.memory", spark_conf.get("driver_memory", "4g"))
        .config("spark.sql.shuffle.partitions", str(spark_conf.get("shuffle_partitions", 8)))
        .config("spark.sql.execution.arrow.pyspark.enabled", "false")
        .config("spark.ui.showConsoleProgress", "false")
        .config("spark.python.worker.reuse", "true")
        .getOrCreate()
    )

    spark.sparkContext.setLogLevel(spark_conf.get("log_level", "ERROR"))  #quieter logs

    # needed once checkpoint_interval > 0
    checkpoint_dir = spark_conf.get("checkpoint_dir")
    if checkpoint_dir:
        spark.sparkContext.setCheckpointDir(checkpoint_dir)
    return spark
