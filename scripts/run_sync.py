"""
Run one full ledger sync over a JSON snapshot of the store.

Usage:
    python scripts/run_sync.py snapshot.json
    python scripts/run_sync.py snapshot.json --parallel --repair --write out.json

The snapshot is a JSON object keyed by store key (sales_invoices,
cash_flow_transactions, ...). The pass runs in memory: sync_all, then
an integrity audit (and optional repair), then an alert scan. The
report goes to stdout as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.bootstrap import build_services  # noqa: E402
from core.config import SyncConfig  # noqa: E402
from core.store import InMemoryKeyValueStore  # noqa: E402


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run ledger sync over a store snapshot.")
    parser.add_argument("snapshot", type=Path, help="JSON file keyed by store key")
    parser.add_argument("--parallel", action="store_true", help="post kinds on a thread pool")
    parser.add_argument("--workers", type=int, default=4)
    parser.add_argument("--repair", action="store_true", help="remove dangling and duplicate postings")
    parser.add_argument("--write", type=Path, default=None, help="write the resulting store here")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    snapshot = json.loads(args.snapshot.read_text(encoding="utf-8"))
    if not isinstance(snapshot, dict):
        print("Snapshot must be a JSON object keyed by store key.", file=sys.stderr)
        return 2

    store = InMemoryKeyValueStore(snapshot)
    config = SyncConfig(parallel_sync=args.parallel, max_workers=args.workers)
    services = build_services(store=store, config=config)

    report = services.sync_all()
    output = {"sync": report.to_dict()}
    if args.repair:
        output["repair"] = services.auditor.repair().to_dict()
    output["audit"] = services.auditor.audit().to_dict()
    output["alerts"] = [alert.to_dict() for alert in services.scan()]

    if args.write is not None:
        args.write.write_text(
            json.dumps(store.snapshot(), ensure_ascii=False, indent=2), encoding="utf-8",
        )
    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0 if report.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
