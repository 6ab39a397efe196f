"""Command-line interface for Multi-Currency Ledger."""

import argparse
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from multicurrency_ledger import __version__
from multicurrency_ledger.config import get_settings
from multicurrency_ledger.container import Container
from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.value_objects import format_money, to_decimal
from multicurrency_ledger.exceptions import MultiCurrencyLedgerError
from multicurrency_ledger.repositories.sqlite import SQLiteDatabase, seed_rates
from multicurrency_ledger.services.rate_provider import HttpRateProvider
from multicurrency_ledger.services.rate_refresh import verify_trigger_secret


def get_default_db_path() -> Path:
    return Path(get_settings().sqlite_path)


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.database) if args.database else get_default_db_path()


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _open_container(args: argparse.Namespace) -> Container | None:
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        print("Run 'mcl init' to create a new database")
        return None
    db = SQLiteDatabase(str(db_path))
    db.initialize()
    return Container(database=db)


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database, optionally loading seed rates."""
    db_path = _db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = SQLiteDatabase(str(db_path))
    db.initialize()
    print(f"Initialized database at {db_path}")

    if args.seed:
        container = Container(database=db)
        written = seed_rates(
            container.exchange_rate_repository,
            _parse_date(args.seed_date) or date.today(),
            AccessContext.for_service(actor="cli-seed"),
            anchor_currency=container.settings.anchor_currency,
        )
        print(f"Loaded {written} seed exchange rates")
    db.close()
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    print(f"mcl {__version__}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "multicurrency_ledger.api.app:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
    )
    return 0


def cmd_rates_add(args: argparse.Namespace) -> int:
    """Store a manual exchange rate override."""
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        try:
            rate = container.currency_service.set_manual_rate(
                args.from_currency,
                args.to_currency,
                to_decimal(args.rate),
                date.fromisoformat(args.date),
                AccessContext.for_service(actor="cli"),
            )
        except (MultiCurrencyLedgerError, ValueError) as e:
            print(f"Error: {e}")
            return 1

    print(f"Added rate: {rate.pair} = {rate.rate} (valid {rate.valid_date})")
    return 0


def cmd_rates_list(args: argparse.Namespace) -> int:
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        try:
            rates = container.currency_service.list_rates(
                args.from_currency,
                args.to_currency,
                start_date=_parse_date(args.start_date),
                end_date=_parse_date(args.end_date),
            )
        except (MultiCurrencyLedgerError, ValueError) as e:
            print(f"Error: {e}")
            return 1

    pair = f"{args.from_currency.upper()}/{args.to_currency.upper()}"
    if not rates:
        print(f"No rates found for {pair}")
        return 0

    print(f"Exchange rates for {pair}:")
    print("-" * 50)
    for rate in rates:
        print(f"  {rate.valid_date}: {rate.rate} (source: {rate.source.value})")
    return 0


def cmd_rates_latest(args: argparse.Namespace) -> int:
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        try:
            rate = container.currency_service.get_latest_rate(
                args.from_currency, args.to_currency
            )
        except MultiCurrencyLedgerError as e:
            print(f"Error: {e}")
            return 1

    if rate is None:
        print(
            f"No rate found for {args.from_currency.upper()}/{args.to_currency.upper()}"
        )
        return 1
    print(f"{rate.pair} = {rate.rate} (as of {rate.effective_date})")
    return 0


def cmd_rates_resolve(args: argparse.Namespace) -> int:
    """Show how a rate resolves, including method and staleness."""
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        try:
            rate = container.currency_service.resolve_rate(
                args.from_currency,
                args.to_currency,
                _parse_date(args.date) or date.today(),
            )
        except (MultiCurrencyLedgerError, ValueError) as e:
            print(f"Error: {e}")
            return 1

    stale = " [stale]" if rate.stale else ""
    source = f", source: {rate.source.value}" if rate.source else ""
    print(
        f"{rate.pair} = {rate.rate} "
        f"(method: {rate.method.value}, effective {rate.effective_date}{source}){stale}"
    )
    return 0


def cmd_rates_refresh(args: argparse.Namespace) -> int:
    """Fetch current rates for every currency on an active instrument."""
    container = _open_container(args)
    if container is None:
        return 1

    settings = container.settings
    provider = HttpRateProvider(
        base_url=args.provider_url or settings.fx_provider_url,
        timeout=settings.fx_provider_timeout_seconds,
    )
    with container:
        try:
            verify_trigger_secret(args.secret, settings.refresh_secret)
            job = container.rate_refresh_job(
                AccessContext.for_service(actor="cli-refresh"), provider=provider
            )
            result = job.refresh_all(_parse_date(args.date))
        except (MultiCurrencyLedgerError, ValueError) as e:
            print(f"Error: {e}")
            return 1
        finally:
            provider.close()

    print(f"Refreshed rates for {result.valid_date}")
    print(f"  Succeeded: {result.succeeded}")
    if result.refreshed:
        print(f"  Refreshed: {', '.join(result.refreshed)}")
    if result.failed:
        print(f"  Failed:    {', '.join(result.failed)}")
    return 0 if result.is_success else 1


def cmd_convert(args: argparse.Namespace) -> int:
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        try:
            result = container.currency_service.convert(
                to_decimal(args.amount),
                args.from_currency,
                args.to_currency,
                _parse_date(args.date) or date.today(),
            )
        except (MultiCurrencyLedgerError, ValueError) as e:
            print(f"Error: {e}")
            return 1

    stale = " [stale rate]" if result.stale else ""
    print(f"{result.original} = {result.converted}")
    print(f"  Rate: {result.rate.rate} ({result.rate.method.value}){stale}")
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    """Show an owner's balances in the reporting currency."""
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        try:
            summary = container.balance_service.total_balance(
                UUID(args.owner),
                args.currency or container.settings.default_reporting_currency,
                _parse_date(args.as_of),
            )
        except (MultiCurrencyLedgerError, ValueError) as e:
            print(f"Error: {e}")
            return 1

    currency = summary.reporting_currency
    print(f"Balance as of {summary.as_of} ({currency})")
    print("-" * 60)
    for item in summary.instruments:
        native = format_money(item.native_balance, item.currency)
        if item.conversion_unavailable:
            print(f"  {item.name:<24} {native:>16}  (no rate available)")
            continue
        converted = format_money(item.reporting_amount or Decimal("0"), currency)
        flag = "  [stale rate]" if item.stale else ""
        print(f"  {item.name:<24} {native:>16}  = {converted}{flag}")
    if summary.legacy_balance:
        print(
            f"  {'Legacy transactions':<24} "
            f"{format_money(summary.legacy_balance, currency):>16}"
        )
    print("-" * 60)
    print(f"  {'Total':<24} {format_money(summary.total, currency):>16}")
    if summary.unavailable_currencies:
        print(
            "  Excluded (no rate): " + ", ".join(summary.unavailable_currencies)
        )
    return 0


def cmd_budget_breakdown(args: argparse.Namespace) -> int:
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        try:
            result = container.budget_service.breakdown(UUID(args.id))
        except (MultiCurrencyLedgerError, ValueError) as e:
            print(f"Error: {e}")
            return 1

    budget = result.budget
    print(f"Budget {budget.name or budget.id} for {budget.period:%Y-%m}")
    print(
        f"Spent {format_money(result.total_spent, budget.currency)} of "
        f"{format_money(budget.limit_amount.amount, budget.currency)} "
        f"({result.total_percentage}%)"
    )
    print("-" * 60)
    for item in result.items:
        print(
            f"  {item.name:<28} {format_money(item.amount_spent, budget.currency):>16}"
            f"  {item.percentage:>6}%  ({item.transaction_count} txns)"
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mcl",
        description="Multi-Currency Ledger - exchange rates, balances and budgets",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.add_argument(
        "--seed", action="store_true", help="Load seed exchange rates"
    )
    init_parser.add_argument(
        "--seed-date", help="Valid date for seed rates (YYYY-MM-DD, default today)"
    )
    init_parser.set_defaults(func=cmd_init)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default from settings)")
    serve_parser.add_argument("--port", type=int, help="Port (default from settings)")
    serve_parser.add_argument(
        "--reload", action="store_true", help="Reload on code changes"
    )
    serve_parser.set_defaults(func=cmd_serve)

    # rates command group
    rates_parser = subparsers.add_parser("rates", help="Exchange rate management")
    rates_subparsers = rates_parser.add_subparsers(
        dest="rates_command", help="Rate subcommands"
    )

    rates_add_parser = rates_subparsers.add_parser(
        "add", help="Add a manual exchange rate override"
    )
    rates_add_parser.add_argument(
        "--from", dest="from_currency", required=True, help="Source currency (e.g., USD)"
    )
    rates_add_parser.add_argument(
        "--to", dest="to_currency", required=True, help="Target currency (e.g., EUR)"
    )
    rates_add_parser.add_argument("--rate", required=True, help="Exchange rate")
    rates_add_parser.add_argument("--date", required=True, help="Valid date (YYYY-MM-DD)")
    rates_add_parser.set_defaults(func=cmd_rates_add)

    rates_list_parser = rates_subparsers.add_parser("list", help="List exchange rates")
    rates_list_parser.add_argument(
        "--from", dest="from_currency", required=True, help="Source currency"
    )
    rates_list_parser.add_argument(
        "--to", dest="to_currency", required=True, help="Target currency"
    )
    rates_list_parser.add_argument("--start-date", help="Start date filter (YYYY-MM-DD)")
    rates_list_parser.add_argument("--end-date", help="End date filter (YYYY-MM-DD)")
    rates_list_parser.set_defaults(func=cmd_rates_list)

    rates_latest_parser = rates_subparsers.add_parser(
        "latest", help="Get latest exchange rate"
    )
    rates_latest_parser.add_argument(
        "--from", dest="from_currency", required=True, help="Source currency"
    )
    rates_latest_parser.add_argument(
        "--to", dest="to_currency", required=True, help="Target currency"
    )
    rates_latest_parser.set_defaults(func=cmd_rates_latest)

    rates_resolve_parser = rates_subparsers.add_parser(
        "resolve", help="Resolve a rate for a date"
    )
    rates_resolve_parser.add_argument(
        "--from", dest="from_currency", required=True, help="Source currency"
    )
    rates_resolve_parser.add_argument(
        "--to", dest="to_currency", required=True, help="Target currency"
    )
    rates_resolve_parser.add_argument("--date", help="Date (YYYY-MM-DD, default today)")
    rates_resolve_parser.set_defaults(func=cmd_rates_resolve)

    rates_refresh_parser = rates_subparsers.add_parser(
        "refresh", help="Fetch current rates from the provider"
    )
    rates_refresh_parser.add_argument(
        "--secret", required=True, help="Refresh trigger secret"
    )
    rates_refresh_parser.add_argument("--date", help="Valid date (YYYY-MM-DD)")
    rates_refresh_parser.add_argument("--provider-url", help="Override provider URL")
    rates_refresh_parser.set_defaults(func=cmd_rates_refresh)

    # convert command
    convert_parser = subparsers.add_parser(
        "convert", help="Convert an amount between currencies"
    )
    convert_parser.add_argument("--amount", required=True, help="Amount to convert")
    convert_parser.add_argument(
        "--from", dest="from_currency", required=True, help="Source currency"
    )
    convert_parser.add_argument(
        "--to", dest="to_currency", required=True, help="Target currency"
    )
    convert_parser.add_argument("--date", help="Conversion date (YYYY-MM-DD)")
    convert_parser.set_defaults(func=cmd_convert)

    # balance command
    balance_parser = subparsers.add_parser("balance", help="Show an owner's balance")
    balance_parser.add_argument("--owner", required=True, help="Owner ID")
    balance_parser.add_argument("--currency", help="Reporting currency")
    balance_parser.add_argument("--as-of", help="Balance date (YYYY-MM-DD)")
    balance_parser.set_defaults(func=cmd_balance)

    # budget command group
    budget_parser = subparsers.add_parser("budget", help="Budget reports")
    budget_subparsers = budget_parser.add_subparsers(
        dest="budget_command", help="Budget subcommands"
    )
    breakdown_parser = budget_subparsers.add_parser(
        "breakdown", help="Spending by payment instrument"
    )
    breakdown_parser.add_argument("--id", required=True, help="Budget ID")
    breakdown_parser.set_defaults(func=cmd_budget_breakdown)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "rates" and getattr(args, "rates_command", None) is None:
        rates_parser.print_help()
        return 0

    if args.command == "budget" and getattr(args, "budget_command", None) is None:
        budget_parser.print_help()
        return 0

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
