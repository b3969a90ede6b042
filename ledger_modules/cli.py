"""
View financial reports from persisted ledger data.

Usage:
    ledger-reports --entity-id <uuid> all --start 2024-03-01 --end 2024-03-31
    ledger-reports --entity-id <uuid> balance-sheet --as-of 2024-03-31 --json
    ledger-reports --entity-id <uuid> seed --ownership llc --inventory-system periodic

The database URL comes from --database-url or LEDGER_DATABASE_URL; one of
them is required.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from ledger_kernel.db.engine import (
    DATABASE_URL_ENV,
    create_tables,
    database_url_from_env,
    get_session,
    init_engine_from_url,
)
from ledger_kernel.domain.clock import SystemClock
from ledger_kernel.exceptions import LedgerKernelError
from ledger_kernel.logging_config import configure_logging
from ledger_modules.coa.loader import OWNERSHIP_FORMS
from ledger_modules.coa.seeding import INVENTORY_SYSTEMS, InventorySystem, seed
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.service import ReportingService

W = 72  # total line width
AMT_W = 16  # amount column width

CURRENCY_SYMBOLS = {"USD": "$", "AUD": "A$", "CAD": "C$", "EUR": "€", "GBP": "£", "JPY": "¥"}


# ===================================================================
# Formatting helpers
# ===================================================================


def _hdr(title: str, subtitle: str = "") -> str:
    lines = ["", "=" * W, title.center(W)]
    if subtitle:
        lines.append(subtitle.center(W))
    lines.append("=" * W)
    return "\n".join(lines)


def _symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, f"{currency} ")


def _fmt(v, currency: str = "USD") -> str:
    """Format a Decimal as $1,234.56 (symbol per currency), negatives in parentheses."""
    if v is None:
        return ""
    d = Decimal(str(v))
    formatted = f"{_symbol(currency)}{abs(d):,.2f}"
    return f"({formatted})" if d < 0 else f" {formatted} "


def _row(label: str, amount, currency: str, indent: int = 0) -> str:
    name = f"{'  ' * indent}{label}"
    return f"  {name:<{W - AMT_W - 2}}{_fmt(amount, currency):>{AMT_W}}"


def _bold_row(label: str, amount, currency: str) -> str:
    return f"  {label.upper():<{W - AMT_W - 2}}{_fmt(amount, currency):>{AMT_W}}"


def _sep() -> str:
    return f"  {'':>{W - AMT_W - 2}}{'-' * AMT_W:>{AMT_W}}"


def _status(label: str, ok: bool) -> str:
    return f"  [{'OK' if ok else 'FAIL'}] {label}"


def _print_warnings(report) -> None:
    for warning in report.warnings:
        print(f"  ! {warning.code.value}: {warning.message}")


def _print_lines(lines, currency: str) -> None:
    for line in lines:
        label = f"{line.account_code}  {line.account_name}" if line.account_code else line.account_name
        print(_row(label, line.amount, currency, indent=1))


# ===================================================================
# Report printers
# ===================================================================


def print_trial_balance(tb) -> None:
    cur = tb.metadata.currency
    print(_hdr("TRIAL BALANCE", f"As of {tb.metadata.as_of_date}  -  {tb.metadata.entity_name}"))
    print()
    for line in tb.lines:
        print(f"  {line.account_code:<8}{line.account_name:<32}"
              f"{_fmt(line.debit_balance, cur):>{AMT_W}}{_fmt(line.credit_balance, cur):>{AMT_W}}")
    print(f"  {'':<40}{_fmt(tb.total_debits, cur):>{AMT_W}}{_fmt(tb.total_credits, cur):>{AMT_W}}")
    print(_status("Debits = Credits", tb.is_balanced))
    print()


def print_balance_sheet(bs) -> None:
    cur = bs.metadata.currency
    print(_hdr("BALANCE SHEET", f"As of {bs.metadata.as_of_date}  -  {bs.metadata.entity_name}"))
    print()
    print("  ASSETS")
    for section in (bs.non_current_assets, bs.current_assets, bs.other_assets):
        if section.lines:
            print(f"  {section.label}")
            _print_lines(section.lines, cur)
    print(_bold_row("Total Assets", bs.total_assets, cur))
    print()
    print("  LIABILITIES")
    for section in (bs.non_current_liabilities, bs.current_liabilities, bs.other_liabilities):
        if section.lines:
            print(f"  {section.label}")
            _print_lines(section.lines, cur)
    print(_bold_row("Total Liabilities", bs.total_liabilities, cur))
    print()
    print("  EQUITY")
    _print_lines(bs.equity.lines, cur)
    print(_bold_row("Total Equity", bs.total_equity, cur))
    print()
    print(_bold_row("Total Liabilities & Equity", bs.total_liabilities_and_equity, cur))
    print(_status("Assets = Liabilities + Equity", bs.is_balanced))
    _print_warnings(bs)
    print()


def print_income_statement(is_rpt) -> None:
    md = is_rpt.metadata
    cur = md.currency
    print(_hdr("INCOME STATEMENT",
               f"Period {md.period_start} to {md.period_end}  -  {md.entity_name}"))
    print()
    _print_lines(is_rpt.lines, cur)
    print(_sep())
    print(_row("Revenue", is_rpt.revenue, cur))
    print(_row("Cost of Sales", is_rpt.cost_of_sales, cur))
    print(_bold_row("Gross Profit", is_rpt.gross_profit, cur))
    print(_row("Other Income", is_rpt.other_income, cur))
    print(_row("Expenses", is_rpt.expenses, cur))
    for category, amount in sorted(is_rpt.expenses_by_category.items()):
        print(_row(category, amount, cur, indent=1))
    print(_bold_row("Operating Profit", is_rpt.operating_profit, cur))
    print(_row("Tax Expenses", is_rpt.tax_expenses, cur))
    print(_bold_row("Net Profit", is_rpt.net_profit, cur))
    _print_warnings(is_rpt)
    print()


def print_cash_flow(cf) -> None:
    md = cf.metadata
    cur = md.currency
    print(_hdr("STATEMENT OF CASH FLOWS (Indirect)",
               f"Period {md.period_start} to {md.period_end}  -  {md.entity_name}"))
    print()
    print(_row("Net Profit", cf.net_profit, cur))
    for section in (cf.operating_adjustments, cf.working_capital_changes):
        print(f"  {section.label}")
        for line in section.lines:
            print(_row(line.description, line.amount, cur, indent=1))
    print(_sep())
    print(_bold_row("Net Cash from Operations", cf.net_cash_from_operations, cur))
    print()
    print(f"  {cf.investing_activities.label}")
    for line in cf.investing_activities.lines:
        print(_row(line.description, line.amount, cur, indent=1))
    print(_bold_row("Net Cash from Investing", cf.net_cash_from_investing, cur))
    print()
    print(f"  {cf.financing_activities.label}")
    for line in cf.financing_activities.lines:
        print(_row(line.description, line.amount, cur, indent=1))
    print(_bold_row("Net Cash from Financing", cf.net_cash_from_financing, cur))
    print()
    print(_bold_row("Net Change in Cash", cf.net_change_in_cash, cur))
    print(_row("Opening Cash", cf.opening_cash, cur))
    print(_bold_row("Closing Cash", cf.closing_cash, cur))
    print(_status("Cash Reconciles", cf.cash_change_reconciles))
    _print_warnings(cf)
    print()


# ===================================================================
# Entry point
# ===================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print financial statements derived from the ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--database-url", default=None, help=f"SQLAlchemy URL (default: ${DATABASE_URL_ENV})")
    parser.add_argument("--entity-id", type=UUID, required=True, help="Reporting entity id")
    parser.add_argument("--entity-name", default=None, help="Name shown on reports")
    parser.add_argument("--config", default=None, help="Reporting config YAML file")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    parser.add_argument("--verbose", action="store_true", help="Structured logs to stderr")

    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("trial-balance", "balance-sheet"):
        p = sub.add_parser(name)
        p.add_argument("--as-of", type=date.fromisoformat, required=True)

    for name in ("income-statement", "cash-flow", "all"):
        p = sub.add_parser(name)
        p.add_argument("--start", type=date.fromisoformat, required=True)
        p.add_argument("--end", type=date.fromisoformat, required=True)

    p = sub.add_parser("seed", help="Create tables and seed a chart of accounts")
    p.add_argument("--ownership", choices=OWNERSHIP_FORMS, required=True)
    p.add_argument(
        "--inventory-system",
        choices=INVENTORY_SYSTEMS,
        default=InventorySystem.PERPETUAL.value,
        help="periodic adds a Purchases account (default: perpetual)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        configure_logging(level=logging.DEBUG)
    else:
        configure_logging(level=logging.WARNING)

    database_url = args.database_url or database_url_from_env()
    if not database_url:
        parser.error(f"--database-url or {DATABASE_URL_ENV} is required")

    try:
        init_engine_from_url(database_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: Could not connect: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    try:
        if args.command == "seed":
            create_tables()
            result = seed(
                session, args.entity_id, args.ownership,
                inventory_system=args.inventory_system,
            )
            session.commit()
            print(f"  Seeded {len(result.created)} accounts "
                  f"({len(result.skipped)} already present)")
            return 0

        config = (
            ReportingConfig.from_yaml(args.config) if args.config
            else ReportingConfig.with_defaults()
        )
        if args.entity_name:
            config.entity_name = args.entity_name
        svc = ReportingService(session=session, clock=SystemClock(), config=config)

        reports = []
        if args.command == "trial-balance":
            reports.append(("trial_balance", svc.trial_balance(args.entity_id, args.as_of)))
        elif args.command == "balance-sheet":
            reports.append(("balance_sheet", svc.balance_sheet(args.entity_id, args.as_of)))
        elif args.command == "income-statement":
            reports.append((
                "income_statement",
                svc.income_statement(args.entity_id, args.start, args.end),
            ))
        elif args.command == "cash-flow":
            reports.append((
                "cash_flow",
                svc.cash_flow_statement(args.entity_id, args.start, args.end),
            ))
        else:
            reports.extend([
                ("trial_balance", svc.trial_balance(args.entity_id, args.end)),
                ("balance_sheet", svc.balance_sheet(args.entity_id, args.end)),
                ("income_statement", svc.income_statement(args.entity_id, args.start, args.end)),
                ("cash_flow", svc.cash_flow_statement(args.entity_id, args.start, args.end)),
            ])
    except LedgerKernelError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    except SQLAlchemyError as exc:
        session.rollback()
        print(f"  ERROR [DATABASE]: {exc.__class__.__name__}: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()

    if args.json:
        print(json.dumps({name: svc.to_dict(r) for name, r in reports}, indent=2))
        return 0

    printers = {
        "trial_balance": print_trial_balance,
        "balance_sheet": print_balance_sheet,
        "income_statement": print_income_statement,
        "cash_flow": print_cash_flow,
    }
    for name, report in reports:
        printers[name](report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
