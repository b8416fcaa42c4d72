"""
Recompute requirement fulfillments for one plan or for every plan.

Each plan runs in its own store transaction; a failure is reported and the
run moves on to the next plan.

Usage:
    python scripts/reassign_fulfillments.py --plan 1
    python scripts/reassign_fulfillments.py --all
    python scripts/reassign_fulfillments.py --all --write
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

import config  # noqa: E402
from allocator import auto_assign_fulfillments  # noqa: E402
from data_loader import load_data  # noqa: E402
from errors import AppError  # noqa: E402
from workbook_io import backup_sibling  # noqa: E402


def reassign_plans(store, plan_ids) -> dict:
    """Run the assigner per plan. Returns {"succeeded": [...], "failed": [(plan_id, message)]}."""
    succeeded = []
    failed = []
    for plan_id in plan_ids:
        try:
            result = auto_assign_fulfillments(store, plan_id)
        except AppError as exc:
            print(f"[ERROR] Plan {plan_id}: {exc.error_code}: {exc.message}", file=sys.stderr)
            failed.append((plan_id, exc.message))
            continue
        except Exception as exc:
            print(f"[ERROR] Plan {plan_id}: {type(exc).__name__}: {exc}", file=sys.stderr)
            failed.append((plan_id, str(exc)))
            continue
        for note in result["notes"]:
            print(f"  [NOTE] {note}")
        succeeded.append(plan_id)
    return {"succeeded": succeeded, "failed": failed}


def write_fulfillments(store, plans_path: str) -> None:
    """Persist the store's fulfillment table back into plans.json (with a .bak copy)."""
    with open(plans_path, encoding="utf-8") as f:
        plans_data = json.load(f)
    backup_sibling(plans_path)
    plans_data["fulfillments"] = [dict(f) for f in store.fulfillments]
    with open(plans_path, "w", encoding="utf-8") as f:
        json.dump(plans_data, f, indent=2)
        f.write("\n")
    print(f"[OK] Wrote {len(store.fulfillments)} fulfillment(s) to {plans_path}")


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Recompute requirement fulfillments for plans.")
    parser.add_argument("--plan", type=int, help="Plan ID to reassign.")
    parser.add_argument("--all", action="store_true", help="Reassign every plan.")
    parser.add_argument("--path", type=str, default=config.DATA_PATH, help="Data directory.")
    parser.add_argument("--write", action="store_true", help="Save fulfillments back to plans.json.")
    opts = parser.parse_args(args)

    if opts.plan is None and not opts.all:
        parser.error("Provide --plan PLAN_ID or --all.")

    try:
        store = load_data(opts.path)
    except (OSError, ValueError) as exc:
        print(f"[FATAL] Could not load data from {opts.path}: {exc}", file=sys.stderr)
        return 1

    plan_ids = [p["id"] for p in store.list_plans()] if opts.all else [opts.plan]
    if not plan_ids:
        print("[INFO] No plans found.")
        return 0

    outcome = reassign_plans(store, plan_ids)
    print(f"[INFO] Reassigned {len(outcome['succeeded'])} plan(s), {len(outcome['failed'])} failed")

    if opts.write and outcome["succeeded"]:
        data_dir = opts.path if os.path.isdir(opts.path) else os.path.dirname(opts.path)
        write_fulfillments(store, os.path.join(data_dir, "plans.json"))

    return 0 if not outcome["failed"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
