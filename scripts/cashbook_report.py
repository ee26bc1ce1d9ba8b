#!/usr/bin/env python3
"""
Cashbook maintenance and reporting from the command line.

Opens the store named by the configuration (``--config`` or the
CASHBOOK_CONFIG environment variable) and runs one command:

    sweep      reconcile every supplier and party against the live ledger,
               removing payments whose ledger entry no longer exists
    balances   per-counterparty obligations, payments and undistributed
               ledger money
    timeline   day-by-day cash timeline with opening and closing balances

Usage:
    python3 scripts/cashbook_report.py sweep
    python3 scripts/cashbook_report.py balances --side expense
    python3 scripts/cashbook_report.py timeline --days 7 --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from decimal import Decimal

from cashbook_config import get_settings
from cashbook_kernel.domain.records import PaymentSide
from cashbook_kernel.exceptions import CashbookError
from cashbook_kernel.logging_config import configure_logging
from cashbook_services.orchestrator import CashbookOrchestrator, build_orchestrator
from cashbook_services.results import ReconciliationResult

W = 80


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _json_default(value: object) -> object:
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


# =============================================================================
# Commands
# =============================================================================


def run_sweep(cashbook: CashbookOrchestrator, as_json: bool) -> int:
    live_ids = cashbook.ledger.entry_ids()
    total = ReconciliationResult()
    for side in PaymentSide:
        names = sorted({o.counterparty(side) for o in cashbook.orders.get_all_orders()})
        for name in names:
            if name:
                total = total.merge(cashbook.reconciliation.reconcile(side, name, live_ids))

    if as_json:
        print(json.dumps(asdict(total), default=_json_default, indent=2))
    else:
        banner("RECONCILIATION SWEEP")
        print(f"  Live ledger entries : {len(live_ids)}")
        print(f"  Orders scanned      : {total.orders_scanned}")
        print(f"  Orders changed      : {total.orders_changed}")
        print(f"  Payments removed    : {total.payments_removed}")
        for failure in total.failures:
            print(f"  FAILED {failure.order_id}: [{failure.code}] {failure.message}")
    return 0 if total.ok else 1


def run_balances(cashbook: CashbookOrchestrator, sides: list[PaymentSide], as_json: bool) -> int:
    report = {side.value: cashbook.balances.balances(side) for side in sides}
    if as_json:
        print(
            json.dumps(
                {
                    side: [asdict(b) | {"undistributed": b.undistributed} for b in rows]
                    for side, rows in report.items()
                },
                default=_json_default,
                indent=2,
            )
        )
        return 0

    for side in sides:
        banner("SUPPLIER BALANCES" if side is PaymentSide.EXPENSE else "PARTY BALANCES")
        print(
            f"  {'Name':<24}{'Orders':>7}{'Open':>6}"
            f"{'Obligation':>14}{'Paid':>14}{'Outstanding':>14}"
        )
        print("  " + "-" * (W - 2))
        for b in report[side.value]:
            print(
                f"  {b.name[:23]:<24}{b.order_count:>7}{b.partial_count + b.unpaid_count:>6}"
                f"{money(b.obligation_total):>14}{money(b.paid_total):>14}"
                f"{money(b.outstanding):>14}"
            )
            if b.undistributed:
                print(f"  {'':<24}undistributed ledger money: {money(b.undistributed)}")
    return 0


def run_timeline(cashbook: CashbookOrchestrator, days: int | None, as_json: bool) -> int:
    timeline = cashbook.timeline.build()
    shown = timeline.days if days is None else timeline.days[:days]
    if as_json:
        print(
            json.dumps(
                {"final_balance": timeline.final_balance, "days": [asdict(d) for d in shown]},
                default=_json_default,
                indent=2,
            )
        )
        return 0

    banner(f"CASH TIMELINE  (balance {money(timeline.final_balance)})")
    for day in shown:
        print()
        print(
            f"  {day.day.isoformat()}   open {money(day.opening_balance)}"
            f"   in {money(day.total_income)}   out {money(day.total_expense)}"
            f"   close {money(day.closing_balance)}"
        )
        for entry in day.entries:
            item = entry.item
            sign = "+" if item.signed_amount >= 0 else "-"
            label = item.label or ""
            print(
                f"      {sign}{money(item.amount):>14}  {money(entry.balance_after):>14}"
                f"  {label[:18]:<18} {item.note or ''}"
            )
    return 0


# =============================================================================
# Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Cashbook reconciliation sweep and reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python3 scripts/cashbook_report.py sweep\n"
            "  python3 scripts/cashbook_report.py balances --side revenue\n"
            "  python3 scripts/cashbook_report.py timeline --days 3\n"
        ),
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Override YAML file (default: CASHBOOK_CONFIG or packaged defaults)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print JSON instead of formatted text",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Emit structured JSON logs to stderr",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("sweep", help="Remove payments of deleted ledger entries")
    balances = commands.add_parser("balances", help="Per-counterparty balances")
    balances.add_argument(
        "--side", choices=[s.value for s in PaymentSide], default=None,
        help="Only suppliers (expense) or only parties (revenue)",
    )
    timeline = commands.add_parser("timeline", help="Day-grouped cash timeline")
    timeline.add_argument(
        "--days", type=int, default=None,
        help="Show only the most recent N days",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        configure_logging(level=logging.DEBUG, stream=sys.stderr)
    else:
        logging.disable(logging.CRITICAL)

    try:
        settings = get_settings(args.config)
    except (OSError, ValueError) as exc:
        print(f"  ERROR: Could not load configuration: {exc}", file=sys.stderr)
        return 2

    cashbook = build_orchestrator(settings)
    try:
        if args.command == "sweep":
            return run_sweep(cashbook, args.json)
        if args.command == "balances":
            sides = [PaymentSide(args.side)] if args.side else list(PaymentSide)
            return run_balances(cashbook, sides, args.json)
        return run_timeline(cashbook, args.days, args.json)
    except CashbookError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        cashbook.close()


if __name__ == "__main__":
    sys.exit(main())
