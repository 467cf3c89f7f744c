from alsjoin.serving.offline_recs import load_factorization, predict, recommend

__all__ = ["load_factorization", "predict", "recommend"]
