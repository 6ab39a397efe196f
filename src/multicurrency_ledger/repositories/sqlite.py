"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import contextlib
import sqlite3
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.budgets import Budget
from multicurrency_ledger.domain.exchange_rates import ExchangeRate, ExchangeRateSource
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import CurrencyConversion, Transaction
from multicurrency_ledger.domain.value_objects import (
    Money,
    PaymentInstrumentType,
    TransactionType,
)
from multicurrency_ledger.exceptions import PermissionDeniedError
from multicurrency_ledger.logging_config import get_logger
from multicurrency_ledger.repositories.interfaces import (
    BudgetRepository,
    ExchangeRateRepository,
    PaymentInstrumentRepository,
    TransactionRepository,
)

logger = get_logger(__name__)

# Units of each currency per 1 USD, loaded with source=seed by ``seed_rates``.
DEFAULT_SEED_RATES: dict[str, Decimal] = {
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "JPY": Decimal("149.50"),
    "CAD": Decimal("1.36"),
    "AUD": Decimal("1.52"),
    "CHF": Decimal("0.88"),
}


class SQLiteDatabase:
    """SQLite database connection manager."""

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = True
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path, check_same_thread=self._check_same_thread
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
            """
            -- Exchange rates: one row per pair per calendar date
            CREATE TABLE IF NOT EXISTS exchange_rates (
                id TEXT PRIMARY KEY,
                from_currency TEXT NOT NULL,
                to_currency TEXT NOT NULL,
                rate TEXT NOT NULL,
                valid_date TEXT NOT NULL,
                source TEXT NOT NULL,
                provider TEXT,
                recorded_at TEXT NOT NULL,
                UNIQUE(from_currency, to_currency, valid_date),
                CHECK (from_currency <> to_currency)
            );
            CREATE INDEX IF NOT EXISTS idx_exchange_rates_pair_date
                ON exchange_rates(from_currency, to_currency, valid_date);

            -- Payment instruments
            CREATE TABLE IF NOT EXISTS payment_instruments (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL,
                currency TEXT NOT NULL,
                instrument_type TEXT NOT NULL,
                color TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                is_default INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_payment_instruments_owner
                ON payment_instruments(owner_id);
            CREATE UNIQUE INDEX IF NOT EXISTS idx_payment_instruments_one_default
                ON payment_instruments(owner_id) WHERE is_default = 1;

            -- Transactions; the three conversion columns are all set or all null
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                transaction_type TEXT NOT NULL,
                amount TEXT NOT NULL,
                transaction_date TEXT NOT NULL,
                payment_instrument_id TEXT,
                native_amount TEXT,
                exchange_rate_used TEXT,
                reporting_currency_at_time TEXT,
                category_id TEXT,
                description TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                linked_transaction_id TEXT,
                FOREIGN KEY (payment_instrument_id) REFERENCES payment_instruments(id),
                CHECK (
                    (native_amount IS NULL AND exchange_rate_used IS NULL
                        AND reporting_currency_at_time IS NULL)
                    OR (native_amount IS NOT NULL AND exchange_rate_used IS NOT NULL
                        AND reporting_currency_at_time IS NOT NULL)
                )
            );
            CREATE INDEX IF NOT EXISTS idx_transactions_owner_date
                ON transactions(owner_id, transaction_date);
            CREATE INDEX IF NOT EXISTS idx_transactions_instrument
                ON transactions(payment_instrument_id);

            CREATE TABLE IF NOT EXISTS transaction_tags (
                transaction_id TEXT NOT NULL,
                tag_id TEXT NOT NULL,
                PRIMARY KEY (transaction_id, tag_id),
                FOREIGN KEY (transaction_id) REFERENCES transactions(id)
            );
            CREATE INDEX IF NOT EXISTS idx_transaction_tags_tag
                ON transaction_tags(tag_id);

            -- Budgets: exactly one of category_id / tag_id
            CREATE TABLE IF NOT EXISTS budgets (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                period TEXT NOT NULL,
                limit_amount TEXT NOT NULL,
                limit_currency TEXT NOT NULL,
                category_id TEXT,
                tag_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                CHECK ((category_id IS NULL) <> (tag_id IS NULL))
            );
            CREATE INDEX IF NOT EXISTS idx_budgets_owner_period
                ON budgets(owner_id, period);
            """
        )
        self._add_migration_columns(conn)
        conn.commit()

    def _add_migration_columns(self, conn: sqlite3.Connection) -> None:
        # Databases created before fetched rates carried their provider name.
        with contextlib.suppress(sqlite3.OperationalError):
            conn.execute("ALTER TABLE exchange_rates ADD COLUMN provider TEXT")
        # Databases created before transfers were recorded as linked pairs.
        with contextlib.suppress(sqlite3.OperationalError):
            conn.execute(
                "ALTER TABLE transactions ADD COLUMN linked_transaction_id TEXT"
            )

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


def _optional_uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


class SQLiteExchangeRateRepository(ExchangeRateRepository):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    def upsert(self, rate: ExchangeRate, context: AccessContext) -> int:
        if not context.is_service:
            logger.warning(
                "exchange_rate_write_denied",
                pair=rate.pair,
                scope=context.scope.value,
                actor=context.actor,
            )
            raise PermissionDeniedError("write", "exchange_rates")
        conn = self._db.get_connection()
        # id and recorded_at belong to the first insert and are never rewritten
        cursor = conn.execute(
            """
            INSERT INTO exchange_rates (id, from_currency, to_currency, rate,
                                        valid_date, source, provider, recorded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(from_currency, to_currency, valid_date) DO UPDATE SET
                rate = excluded.rate,
                source = excluded.source,
                provider = excluded.provider
            """,
            (
                str(rate.id),
                rate.from_currency,
                rate.to_currency,
                str(rate.rate),
                rate.valid_date.isoformat(),
                rate.source.value,
                rate.provider,
                rate.recorded_at.isoformat(),
            ),
        )
        conn.commit()
        return cursor.rowcount

    def get(self, rate_id: UUID) -> ExchangeRate | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM exchange_rates WHERE id = ?", (str(rate_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_exchange_rate(row)

    def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        valid_date: date,
    ) -> ExchangeRate | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT * FROM exchange_rates
            WHERE from_currency = ? AND to_currency = ? AND valid_date = ?
            """,
            (from_currency, to_currency, valid_date.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_exchange_rate(row)

    def get_rate_as_of(
        self,
        from_currency: str,
        to_currency: str,
        as_of: date,
    ) -> ExchangeRate | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT * FROM exchange_rates
            WHERE from_currency = ? AND to_currency = ? AND valid_date <= ?
            ORDER BY valid_date DESC
            LIMIT 1
            """,
            (from_currency, to_currency, as_of.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_exchange_rate(row)

    def get_latest_rate(
        self,
        from_currency: str,
        to_currency: str,
    ) -> ExchangeRate | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT * FROM exchange_rates
            WHERE from_currency = ? AND to_currency = ?
            ORDER BY valid_date DESC
            LIMIT 1
            """,
            (from_currency, to_currency),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_exchange_rate(row)

    def list_by_currency_pair(
        self,
        from_currency: str,
        to_currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[ExchangeRate]:
        conn = self._db.get_connection()
        query = """
            SELECT * FROM exchange_rates
            WHERE from_currency = ? AND to_currency = ?
        """
        params: list[str] = [from_currency, to_currency]

        if start_date is not None:
            query += " AND valid_date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            query += " AND valid_date <= ?"
            params.append(end_date.isoformat())

        query += " ORDER BY valid_date"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_exchange_rate(row) for row in rows]

    def list_by_date(self, valid_date: date) -> Iterable[ExchangeRate]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT * FROM exchange_rates WHERE valid_date = ?
            ORDER BY from_currency, to_currency
            """,
            (valid_date.isoformat(),),
        ).fetchall()
        return [self._row_to_exchange_rate(row) for row in rows]

    def _row_to_exchange_rate(self, row: sqlite3.Row) -> ExchangeRate:
        return ExchangeRate(
            from_currency=row["from_currency"],
            to_currency=row["to_currency"],
            rate=Decimal(row["rate"]),
            valid_date=date.fromisoformat(row["valid_date"]),
            id=UUID(row["id"]),
            source=ExchangeRateSource(row["source"]),
            provider=row["provider"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )


def seed_rates(
    repository: ExchangeRateRepository,
    valid_date: date,
    context: AccessContext,
    rates: Mapping[str, Decimal] | None = None,
    anchor_currency: str = "USD",
) -> int:
    """Load ``anchor -> currency`` rates and their inverses with source=seed.

    Returns the number of rows written.
    """
    written = 0
    for currency, value in (rates or DEFAULT_SEED_RATES).items():
        rate = ExchangeRate(
            from_currency=anchor_currency,
            to_currency=currency,
            rate=value,
            valid_date=valid_date,
            source=ExchangeRateSource.SEED,
        )
        written += repository.upsert(rate, context)
        written += repository.upsert(rate.inverse, context)
    logger.info(
        "exchange_rates_seeded",
        valid_date=valid_date.isoformat(),
        rows=written,
    )
    return written


class SQLitePaymentInstrumentRepository(PaymentInstrumentRepository):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    def add(self, instrument: PaymentInstrument) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO payment_instruments (id, owner_id, name, currency,
                                             instrument_type, color, is_active,
                                             is_default, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(instrument.id),
                str(instrument.owner_id),
                instrument.name,
                instrument.currency,
                instrument.instrument_type.value,
                instrument.color,
                1 if instrument.is_active else 0,
                1 if instrument.is_default else 0,
                instrument.created_at.isoformat(),
                instrument.updated_at.isoformat(),
            ),
        )
        conn.commit()

    def get(self, instrument_id: UUID) -> PaymentInstrument | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM payment_instruments WHERE id = ?", (str(instrument_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_instrument(row)

    def list_by_owner(
        self, owner_id: UUID, include_inactive: bool = False
    ) -> Iterable[PaymentInstrument]:
        conn = self._db.get_connection()
        query = "SELECT * FROM payment_instruments WHERE owner_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY created_at, rowid"
        rows = conn.execute(query, (str(owner_id),)).fetchall()
        return [self._row_to_instrument(row) for row in rows]

    def list_active_currencies(self) -> list[str]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT DISTINCT currency FROM payment_instruments
            WHERE is_active = 1
            ORDER BY currency
            """
        ).fetchall()
        return [row["currency"] for row in rows]

    def update(self, instrument: PaymentInstrument) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE payment_instruments SET
                name = ?,
                instrument_type = ?,
                color = ?,
                is_active = ?,
                is_default = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                instrument.name,
                instrument.instrument_type.value,
                instrument.color,
                1 if instrument.is_active else 0,
                1 if instrument.is_default else 0,
                instrument.updated_at.isoformat(),
                str(instrument.id),
            ),
        )
        conn.commit()

    def set_default(self, owner_id: UUID, instrument_id: UUID) -> None:
        conn = self._db.get_connection()
        with conn:
            conn.execute(
                "UPDATE payment_instruments SET is_default = 0 WHERE owner_id = ?",
                (str(owner_id),),
            )
            conn.execute(
                """
                UPDATE payment_instruments SET is_default = 1
                WHERE id = ? AND owner_id = ?
                """,
                (str(instrument_id), str(owner_id)),
            )

    def _row_to_instrument(self, row: sqlite3.Row) -> PaymentInstrument:
        return PaymentInstrument(
            owner_id=UUID(row["owner_id"]),
            name=row["name"],
            currency=row["currency"],
            id=UUID(row["id"]),
            instrument_type=PaymentInstrumentType(row["instrument_type"]),
            color=row["color"],
            is_active=bool(row["is_active"]),
            is_default=bool(row["is_default"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteTransactionRepository(TransactionRepository):
    """SQLite implementation of TransactionRepository."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    def add(self, txn: Transaction) -> None:
        conn = self._db.get_connection()
        with conn:
            self._insert(conn, txn)

    def add_transfer(self, withdrawal: Transaction, deposit: Transaction) -> None:
        conn = self._db.get_connection()
        with conn:
            self._insert(conn, withdrawal)
            self._insert(conn, deposit)

    def _insert(self, conn: sqlite3.Connection, txn: Transaction) -> None:
        conversion = txn.conversion
        conn.execute(
            """
            INSERT INTO transactions (id, owner_id, transaction_type, amount,
                                      transaction_date, payment_instrument_id,
                                      native_amount, exchange_rate_used,
                                      reporting_currency_at_time, category_id,
                                      description, created_at,
                                      linked_transaction_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(txn.id),
                str(txn.owner_id),
                txn.transaction_type.value,
                str(txn.amount),
                txn.transaction_date.isoformat(),
                str(txn.payment_instrument_id) if txn.payment_instrument_id else None,
                str(conversion.native_amount) if conversion else None,
                str(conversion.exchange_rate_used) if conversion else None,
                conversion.reporting_currency_at_time if conversion else None,
                str(txn.category_id) if txn.category_id else None,
                txn.description,
                txn.created_at.isoformat(),
                str(txn.linked_transaction_id) if txn.linked_transaction_id else None,
            ),
        )
        conn.executemany(
            "INSERT INTO transaction_tags (transaction_id, tag_id) VALUES (?, ?)",
            [(str(txn.id), str(tag_id)) for tag_id in dict.fromkeys(txn.tag_ids)],
        )

    def get(self, txn_id: UUID) -> Transaction | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (str(txn_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_transaction(row)

    def list_by_owner(
        self,
        owner_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[Transaction]:
        query = "SELECT * FROM transactions WHERE owner_id = ?"
        params: list[str] = [str(owner_id)]
        if start_date is not None:
            query += " AND transaction_date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            query += " AND transaction_date <= ?"
            params.append(end_date.isoformat())
        return self._select(query, params)

    def list_by_payment_instrument(
        self, instrument_id: UUID, end_date: date | None = None
    ) -> Iterable[Transaction]:
        query = "SELECT * FROM transactions WHERE payment_instrument_id = ?"
        params: list[str] = [str(instrument_id)]
        if end_date is not None:
            query += " AND transaction_date <= ?"
            params.append(end_date.isoformat())
        return self._select(query, params)

    def list_legacy_by_owner(
        self, owner_id: UUID, end_date: date | None = None
    ) -> Iterable[Transaction]:
        query = (
            "SELECT * FROM transactions "
            "WHERE owner_id = ? AND payment_instrument_id IS NULL"
        )
        params: list[str] = [str(owner_id)]
        if end_date is not None:
            query += " AND transaction_date <= ?"
            params.append(end_date.isoformat())
        return self._select(query, params)

    def list_for_budget(self, budget: Budget) -> Iterable[Transaction]:
        query = """
            SELECT t.* FROM transactions t
            WHERE t.owner_id = ?
              AND t.transaction_type = ?
              AND t.transaction_date >= ?
              AND t.transaction_date <= ?
        """
        params: list[str] = [
            str(budget.owner_id),
            TransactionType.EXPENSE.value,
            budget.start_date.isoformat(),
            budget.end_date.isoformat(),
        ]
        if budget.tag_id is not None:
            query += """
              AND EXISTS (
                  SELECT 1 FROM transaction_tags tt
                  WHERE tt.transaction_id = t.id AND tt.tag_id = ?
              )
            """
            params.append(str(budget.tag_id))
        else:
            query += " AND t.category_id = ?"
            params.append(str(budget.category_id))
        return self._select(query, params, alias="t.")

    def _select(
        self, query: str, params: list[str], alias: str = ""
    ) -> list[Transaction]:
        conn = self._db.get_connection()
        query += f" ORDER BY {alias}transaction_date, {alias}created_at"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def _tag_ids(self, txn_id: str) -> list[UUID]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT tag_id FROM transaction_tags WHERE transaction_id = ? "
            "ORDER BY rowid",
            (txn_id,),
        ).fetchall()
        return [UUID(row["tag_id"]) for row in rows]

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        conversion = None
        if row["native_amount"] is not None:
            conversion = CurrencyConversion(
                native_amount=Decimal(row["native_amount"]),
                exchange_rate_used=Decimal(row["exchange_rate_used"]),
                reporting_currency_at_time=row["reporting_currency_at_time"],
            )
        return Transaction(
            owner_id=UUID(row["owner_id"]),
            transaction_type=TransactionType(row["transaction_type"]),
            amount=Decimal(row["amount"]),
            transaction_date=date.fromisoformat(row["transaction_date"]),
            id=UUID(row["id"]),
            payment_instrument_id=_optional_uuid(row["payment_instrument_id"]),
            conversion=conversion,
            category_id=_optional_uuid(row["category_id"]),
            tag_ids=self._tag_ids(row["id"]),
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
            linked_transaction_id=_optional_uuid(row["linked_transaction_id"]),
        )


class SQLiteBudgetRepository(BudgetRepository):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    def add(self, budget: Budget) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO budgets (id, owner_id, name, period, limit_amount,
                                 limit_currency, category_id, tag_id,
                                 created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(budget.id),
                str(budget.owner_id),
                budget.name,
                budget.period.isoformat(),
                str(budget.limit_amount.amount),
                budget.limit_amount.currency,
                str(budget.category_id) if budget.category_id else None,
                str(budget.tag_id) if budget.tag_id else None,
                budget.created_at.isoformat(),
                budget.updated_at.isoformat(),
            ),
        )
        conn.commit()

    def get(self, budget_id: UUID) -> Budget | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM budgets WHERE id = ?", (str(budget_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_budget(row)

    def list_by_owner(
        self, owner_id: UUID, period: date | None = None
    ) -> Iterable[Budget]:
        conn = self._db.get_connection()
        query = "SELECT * FROM budgets WHERE owner_id = ?"
        params: list[str] = [str(owner_id)]
        if period is not None:
            query += " AND period = ?"
            params.append(period.replace(day=1).isoformat())
        query += " ORDER BY period, created_at"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_budget(row) for row in rows]

    def delete(self, budget_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM budgets WHERE id = ?", (str(budget_id),))
        conn.commit()

    def _row_to_budget(self, row: sqlite3.Row) -> Budget:
        return Budget(
            owner_id=UUID(row["owner_id"]),
            period=date.fromisoformat(row["period"]),
            limit_amount=Money(Decimal(row["limit_amount"]), row["limit_currency"]),
            id=UUID(row["id"]),
            category_id=_optional_uuid(row["category_id"]),
            tag_id=_optional_uuid(row["tag_id"]),
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
