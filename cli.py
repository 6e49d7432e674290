from __future__ import annotations

import argparse
import json
import sys

import requests

from mdbr.kinds import ObjectKey


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="MongoDB reconciler CLI")
    p.add_argument("--api", default="http://localhost:8000", help="Manager API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_ev = sub.add_parser("events", help="Show recent controller events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--key", type=ObjectKey.parse, help="Only events for <namespace>/<name>")

    s_keys = sub.add_parser("keys", help="Show per-resource reconcile results")
    s_keys.add_argument("key", nargs="?", type=ObjectKey.parse, help="A single <namespace>/<name>")

    s_rec = sub.add_parser("reconcile", help="Queue a reconcile pass for a MongoDB")
    s_rec.add_argument("key", type=ObjectKey.parse, help="<namespace>/<name>")

    sub.add_parser("resync", help="Queue every MongoDB in the watched namespace(s)")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "events":
        params: dict[str, object] = {"limit": args.limit}
        if args.key:
            params["namespace"], params["name"] = args.key.namespace, args.key.name
        _print(requests.get(f"{base}/events", params=params, timeout=10).json())
        return 0

    if args.cmd == "keys":
        url = f"{base}/keys/{args.key.namespace}/{args.key.name}" if args.key else f"{base}/keys"
        r = requests.get(url, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "reconcile":
        r = requests.post(f"{base}/reconcile/{args.key.namespace}/{args.key.name}", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "resync":
        r = requests.post(f"{base}/resync", timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
