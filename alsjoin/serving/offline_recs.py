"""Score a written factorization without Spark (pandas + numpy only)."""
import glob
import os

import numpy as np
import pandas as pd


def _read_all_parquet_parts(dir_path, expected_cols=None):
    local = dir_path.replace("file:///", "").replace("file://", "")
    parts = sorted(glob.glob(os.path.join(local, "*.parquet")))
    if not parts:
        raise FileNotFoundError(f"No parquet files in {local}")
    dfs = [pd.read_parquet(p, engine="pyarrow") for p in parts]
    df = pd.concat(dfs, ignore_index=True)
    if expected_cols:
        missing = [c for c in expected_cols if c not in df.columns]
        if missing:
            raise KeyError(f"Missing columns {missing}; got {list(df.columns)}")
    return df


def _factor_matrix(df):
    ids = df["id"].astype(str).to_numpy()
    mat = np.vstack([np.asarray(f, dtype=np.float64) for f in df["features"]]) if len(df) else np.empty((0, 0))
    return ids, mat


def load_factorization(factors_dir):
    """Load ``userFactors``/``itemFactors`` written by ``alsjoin.io.write_factorization``."""
    user_f = _read_all_parquet_parts(os.path.join(factors_dir, "userFactors"),
                                     expected_cols=["id", "features"])
    item_f = _read_all_parquet_parts(os.path.join(factors_dir, "itemFactors"),
                                     expected_cols=["id", "features"])

    user_ids, user_mat = _factor_matrix(user_f)
    item_ids, item_mat = _factor_matrix(item_f)

    return {
        "user_mat": user_mat,
        "item_mat": item_mat,
        "item_ids": item_ids,
        # Fast lookups
        "user_row": {uid: r for r, uid in enumerate(user_ids)},
        "item_row": {iid: r for r, iid in enumerate(item_ids)},
    }


def predict(bundle, user_id, item_id):
    """Predicted rating ``u.v``, or None when either id has no factors."""
    ur = bundle["user_row"].get(str(user_id))
    ir = bundle["item_row"].get(str(item_id))
    if ur is None or ir is None:
        return None
    return float(bundle["user_mat"][ur].dot(bundle["item_mat"][ir]))


def recommend(bundle, user_id, k=10, exclude=None):
    ur = bundle["user_row"].get(str(user_id))
    if ur is None or k <= 0:
        return {"user_id": user_id, "items": []}
    scores = bundle["item_mat"].dot(bundle["user_mat"][ur])
    exclude_set = {str(i) for i in (exclude or ())}

    top = []
    for ci in np.argsort(-scores, kind="stable"):
        item_id = bundle["item_ids"][ci]
        if item_id in exclude_set:
            continue
        top.append({"item_id": str(item_id), "score": float(scores[ci])})
        if len(top) == k:
            break
    return {"user_id": user_id, "items": top}
