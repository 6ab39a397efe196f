"""Tests for the SQLite repositories."""

import sqlite3
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from multicurrency_ledger.domain.budgets import Budget
from multicurrency_ledger.domain.exchange_rates import ExchangeRate, ExchangeRateSource
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import CurrencyConversion, Transaction
from multicurrency_ledger.domain.value_objects import Money, TransactionType
from multicurrency_ledger.exceptions import PermissionDeniedError
from multicurrency_ledger.repositories.sqlite import seed_rates

from conftest import FIXED_NOW, TODAY


class TestExchangeRateRepository:
    def test_upsert_returns_row_count(self, rate_repo, service_context):
        rate = ExchangeRate("USD", "EUR", Decimal("0.92"), TODAY)
        assert rate_repo.upsert(rate, service_context) == 1

    def test_upsert_replaces_same_day_rate(self, rate_repo, service_context):
        original = ExchangeRate(
            "USD", "EUR", Decimal("0.92"), TODAY, recorded_at=FIXED_NOW
        )
        rate_repo.upsert(original, service_context)
        written = rate_repo.upsert(
            ExchangeRate(
                "USD",
                "EUR",
                Decimal("0.95"),
                TODAY,
                source=ExchangeRateSource.FETCHED,
                provider="frankfurter",
                recorded_at=FIXED_NOW + timedelta(hours=3),
            ),
            service_context,
        )

        rates = list(rate_repo.list_by_currency_pair("USD", "EUR"))
        assert written == 1
        assert len(rates) == 1
        assert rates[0].rate == Decimal("0.95")
        assert rates[0].source == ExchangeRateSource.FETCHED
        assert rates[0].provider == "frankfurter"
        assert rates[0].id == original.id
        assert rates[0].recorded_at == FIXED_NOW

    def test_user_context_cannot_write(self, rate_repo, user_context):
        rate = ExchangeRate("USD", "EUR", Decimal("0.92"), TODAY)
        with pytest.raises(PermissionDeniedError):
            rate_repo.upsert(rate, user_context)
        assert rate_repo.get_latest_rate("USD", "EUR") is None

    def test_round_trips_fields(self, rate_repo, service_context):
        rate = ExchangeRate(
            "GBP",
            "JPY",
            Decimal("190.123456"),
            TODAY,
            source=ExchangeRateSource.SEED,
            recorded_at=FIXED_NOW,
        )
        rate_repo.upsert(rate, service_context)

        stored = rate_repo.get(rate.id)
        assert stored == rate

    def test_get_rate_as_of_picks_most_recent_not_after(self, store_rate, rate_repo):
        store_rate("USD", "EUR", "0.90", valid_date=TODAY - timedelta(days=10))
        store_rate("USD", "EUR", "0.91", valid_date=TODAY - timedelta(days=3))
        store_rate("USD", "EUR", "0.99", valid_date=TODAY + timedelta(days=1))

        found = rate_repo.get_rate_as_of("USD", "EUR", TODAY)

        assert found is not None
        assert found.rate == Decimal("0.91")
        assert rate_repo.get_rate("USD", "EUR", TODAY) is None
        assert rate_repo.get_latest_rate("USD", "EUR").rate == Decimal("0.99")

    def test_list_by_date(self, store_rate, rate_repo):
        store_rate("USD", "EUR", "0.92")
        store_rate("USD", "GBP", "0.79")
        store_rate("USD", "JPY", "150", valid_date=TODAY - timedelta(days=1))

        assert [r.pair for r in rate_repo.list_by_date(TODAY)] == ["USD/EUR", "USD/GBP"]

    def test_seed_rates_writes_both_directions(self, rate_repo, service_context):
        written = seed_rates(
            rate_repo, TODAY, service_context, rates={"EUR": Decimal("0.8")}
        )

        assert written == 2
        inverse = rate_repo.get_rate("EUR", "USD", TODAY)
        assert inverse.rate == Decimal("1.250000")
        assert inverse.source == ExchangeRateSource.SEED


class TestPaymentInstrumentRepository:
    def test_add_and_get(self, instrument_repo, owner_id):
        instrument = PaymentInstrument(
            owner_id=owner_id, name="Travel Card", currency="EUR", color="#112233"
        )
        instrument_repo.add(instrument)

        stored = instrument_repo.get(instrument.id)
        assert stored.name == "Travel Card"
        assert stored.currency == "EUR"
        assert stored.color == "#112233"

    def test_set_default_is_exclusive(self, instrument_repo, owner_id):
        first = PaymentInstrument(owner_id=owner_id, name="A", currency="USD")
        second = PaymentInstrument(owner_id=owner_id, name="B", currency="EUR")
        instrument_repo.add(first)
        instrument_repo.add(second)

        instrument_repo.set_default(owner_id, first.id)
        instrument_repo.set_default(owner_id, second.id)

        assert not instrument_repo.get(first.id).is_default
        assert instrument_repo.get(second.id).is_default

    def test_active_currencies_ignore_inactive(self, instrument_repo):
        active = PaymentInstrument(owner_id=uuid4(), name="A", currency="EUR")
        inactive = PaymentInstrument(owner_id=uuid4(), name="B", currency="GBP")
        duplicate = PaymentInstrument(owner_id=uuid4(), name="C", currency="EUR")
        for instrument in (active, inactive, duplicate):
            instrument_repo.add(instrument)
        inactive.deactivate()
        instrument_repo.update(inactive)

        assert instrument_repo.list_active_currencies() == ["EUR"]
        assert len(list(instrument_repo.list_by_owner(inactive.owner_id))) == 0
        assert (
            len(list(instrument_repo.list_by_owner(inactive.owner_id, include_inactive=True)))
            == 1
        )


class TestTransactionRepository:
    def test_round_trips_converted_transaction(
        self, instrument_repo, transaction_repo, owner_id
    ):
        instrument = PaymentInstrument(owner_id=owner_id, name="Card", currency="EUR")
        instrument_repo.add(instrument)
        tag = uuid4()
        txn = Transaction(
            owner_id=owner_id,
            transaction_type=TransactionType.EXPENSE,
            amount=Decimal("108.75"),
            transaction_date=TODAY,
            payment_instrument_id=instrument.id,
            conversion=CurrencyConversion(
                Decimal("100.00"), Decimal("1.0875"), "USD"
            ),
            tag_ids=[tag],
        )
        transaction_repo.add(txn)

        stored = transaction_repo.get(txn.id)
        assert stored.conversion == txn.conversion
        assert stored.tag_ids == [tag]
        assert stored.amount == Decimal("108.75")

    def test_transfer_legs_are_written_together(
        self, instrument_repo, transaction_repo, owner_id
    ):
        source = PaymentInstrument(owner_id=owner_id, name="Checking", currency="USD")
        destination = PaymentInstrument(owner_id=owner_id, name="Savings", currency="USD")
        instrument_repo.add(source)
        instrument_repo.add(destination)
        existing = Transaction(
            owner_id=owner_id,
            transaction_type=TransactionType.INCOME,
            amount=Decimal("10.00"),
            transaction_date=TODAY,
        )
        transaction_repo.add(existing)

        def leg(instrument, native, txn_id, linked_id):
            return Transaction(
                owner_id=owner_id,
                transaction_type=TransactionType.TRANSFER,
                amount=native,
                transaction_date=TODAY,
                id=txn_id,
                payment_instrument_id=instrument.id,
                conversion=CurrencyConversion(native, Decimal("1"), "USD"),
                linked_transaction_id=linked_id,
            )

        withdrawal_id, deposit_id = uuid4(), uuid4()
        transaction_repo.add_transfer(
            leg(source, Decimal("-25.00"), withdrawal_id, deposit_id),
            leg(destination, Decimal("25.00"), deposit_id, withdrawal_id),
        )
        assert transaction_repo.get(withdrawal_id).linked_transaction_id == deposit_id
        assert transaction_repo.get(deposit_id).linked_transaction_id == withdrawal_id

        orphan_id = uuid4()
        with pytest.raises(sqlite3.IntegrityError):
            transaction_repo.add_transfer(
                leg(source, Decimal("-5.00"), orphan_id, existing.id),
                leg(destination, Decimal("5.00"), existing.id, orphan_id),
            )
        assert transaction_repo.get(orphan_id) is None
        assert len(list(transaction_repo.list_by_owner(owner_id))) == 3

    def test_legacy_listing(self, transaction_repo, owner_id):
        legacy = Transaction(
            owner_id=owner_id,
            transaction_type=TransactionType.INCOME,
            amount=Decimal("10.00"),
            transaction_date=TODAY,
        )
        transaction_repo.add(legacy)

        assert [t.id for t in transaction_repo.list_legacy_by_owner(owner_id)] == [
            legacy.id
        ]
        assert list(transaction_repo.list_legacy_by_owner(owner_id, TODAY - timedelta(days=1))) == []

    def test_list_for_budget_filters_type_period_and_tag(
        self, transaction_repo, owner_id
    ):
        tag = uuid4()
        budget = Budget(
            owner_id=owner_id,
            period=TODAY,
            limit_amount=Money(Decimal("500"), "USD"),
            tag_id=tag,
        )

        def add(amount: str, txn_date: date, txn_type=TransactionType.EXPENSE, tags=(tag,)):
            txn = Transaction(
                owner_id=owner_id,
                transaction_type=txn_type,
                amount=Decimal(amount),
                transaction_date=txn_date,
                tag_ids=list(tags),
            )
            transaction_repo.add(txn)
            return txn

        matching = add("10.00", TODAY)
        add("20.00", TODAY, txn_type=TransactionType.INCOME)
        add("30.00", TODAY, tags=())
        add("40.00", budget.start_date - timedelta(days=1))

        assert [t.id for t in transaction_repo.list_for_budget(budget)] == [matching.id]


class TestBudgetRepository:
    def test_add_get_and_list(self, budget_repo, owner_id):
        budget = Budget(
            owner_id=owner_id,
            period=date(2026, 1, 20),
            limit_amount=Money(Decimal("500.00"), "USD"),
            category_id=uuid4(),
            name="Groceries",
        )
        budget_repo.add(budget)

        stored = budget_repo.get(budget.id)
        assert stored.limit_amount == Money(Decimal("500.00"), "USD")
        assert stored.period == date(2026, 1, 1)
        assert [b.id for b in budget_repo.list_by_owner(owner_id, date(2026, 1, 9))] == [
            budget.id
        ]

        budget_repo.delete(budget.id)
        assert budget_repo.get(budget.id) is None
