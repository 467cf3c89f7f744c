import argparse
import json
import os
import sys

from alsjoin.serving.offline_recs import load_factorization, predict, recommend


def build_parser():
    ap = argparse.ArgumentParser(description="Score users against a written ALS factorization")
    ap.add_argument("--factors-dir", required=True, dest="factors_dir",
                    help="Folder holding userFactors/ and itemFactors/")
    ap.add_argument("--user-id", required=True, dest="user_id")
    ap.add_argument("--item-id", dest="item_id",
                    help="Print the predicted rating for this item instead of top-K")
    ap.add_argument("--k", type=int, default=10)
    ap.add_argument("--exclude", default="",
                    help="Comma-list of item ids to leave out of the top-K")
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)
    if not os.path.isdir(args.factors_dir):
        sys.exit(f"[serve] missing factors dir: {args.factors_dir}")

    bundle = load_factorization(args.factors_dir)

    if args.item_id:
        score = predict(bundle, args.user_id, args.item_id)
        if score is None:
            print(json.dumps({"msg": f"unknown user_id {args.user_id} or item_id {args.item_id}"}))
            return 1
        print(json.dumps({"user_id": args.user_id, "item_id": args.item_id, "score": score}))
        return 0

    if str(args.user_id) not in bundle["user_row"]:
        print(json.dumps({"msg": f"unknown user_id {args.user_id}"}))
        return 1

    exclude = [e.strip() for e in args.exclude.split(",") if e.strip()]
    print(json.dumps(recommend(bundle, args.user_id, k=args.k, exclude=exclude), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
