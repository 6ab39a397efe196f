from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from multicurrency_ledger.domain.budgets import (
    LEGACY_BUCKET_NAME,
    Budget,
    BudgetBreakdown,
    BudgetBreakdownItem,
    BudgetProgress,
    percentage_of,
)
from multicurrency_ledger.domain.value_objects import Money, round_amount
from multicurrency_ledger.exceptions import BudgetNotFoundError
from multicurrency_ledger.logging_config import get_logger
from multicurrency_ledger.repositories.interfaces import (
    BudgetRepository,
    PaymentInstrumentRepository,
    TransactionRepository,
)
from multicurrency_ledger.services.interfaces import BudgetAlert, BudgetService

logger = get_logger(__name__)


class BudgetServiceImpl(BudgetService):
    def __init__(
        self,
        budget_repo: BudgetRepository,
        transaction_repo: TransactionRepository,
        instrument_repo: PaymentInstrumentRepository,
    ) -> None:
        self._budget_repo = budget_repo
        self._transactions = transaction_repo
        self._instruments = instrument_repo

    def create_budget(
        self,
        owner_id: UUID,
        period: date,
        limit_amount: Money,
        category_id: UUID | None = None,
        tag_id: UUID | None = None,
        name: str = "",
    ) -> Budget:
        budget = Budget(
            owner_id=owner_id,
            period=period,
            limit_amount=limit_amount,
            category_id=category_id,
            tag_id=tag_id,
            name=name,
        )
        self._budget_repo.add(budget)
        logger.info(
            "budget_created",
            budget_id=str(budget.id),
            owner_id=str(owner_id),
            period=budget.period.isoformat(),
            scope="tag" if budget.is_tag_scoped else "category",
        )
        return budget

    def get_budget(self, budget_id: UUID) -> Budget:
        budget = self._budget_repo.get(budget_id)
        if budget is None:
            raise BudgetNotFoundError(budget_id)
        return budget

    def breakdown(self, budget_id: UUID) -> BudgetBreakdown:
        """Spending in the budget's month grouped by payment instrument.

        Amounts are the reporting-currency values stored on each transaction;
        nothing is converted here. Transactions without an instrument are
        pooled into a single legacy bucket.
        """
        budget = self.get_budget(budget_id)
        instruments = {
            instrument.id: instrument
            for instrument in self._instruments.list_by_owner(
                budget.owner_id, include_inactive=True
            )
        }
        creation_order = {
            instrument_id: index for index, instrument_id in enumerate(instruments)
        }

        totals: dict[UUID | None, Decimal] = {}
        counts: dict[UUID | None, int] = {}
        for txn in self._transactions.list_for_budget(budget):
            key = txn.payment_instrument_id
            totals[key] = totals.get(key, Decimal("0")) + txn.amount
            counts[key] = counts.get(key, 0) + 1

        items: list[BudgetBreakdownItem] = []
        for key, spent in totals.items():
            instrument_currency = None
            if key is None:
                name = LEGACY_BUCKET_NAME
            elif key in instruments:
                name = instruments[key].name
                instrument_currency = instruments[key].currency
            else:
                name = str(key)
            spent = round_amount(spent)
            items.append(
                BudgetBreakdownItem(
                    payment_instrument_id=key,
                    name=name,
                    currency=budget.currency,
                    amount_spent=spent,
                    transaction_count=counts[key],
                    percentage=percentage_of(spent, budget.limit_amount.amount),
                    instrument_currency=instrument_currency,
                )
            )

        last = len(creation_order)
        items.sort(
            key=lambda item: (
                -item.amount_spent,
                last + 1
                if item.is_legacy
                else creation_order.get(item.payment_instrument_id, last),
            )
        )
        total = round_amount(sum((item.amount_spent for item in items), Decimal("0")))
        return BudgetBreakdown(budget=budget, total_spent=total, items=items)

    def progress(self, budget_id: UUID) -> BudgetProgress:
        result = self.breakdown(budget_id)
        return BudgetProgress(budget=result.budget, spent=result.total_spent)

    def check_alerts(
        self,
        owner_id: UUID,
        period: date,
        thresholds: Sequence[int] = (80, 90, 100),
    ) -> list[BudgetAlert]:
        alerts: list[BudgetAlert] = []
        for budget in self._budget_repo.list_by_owner(owner_id, period):
            progress = self.progress(budget.id)
            for threshold in sorted(thresholds, reverse=True):
                if progress.percent_used >= threshold:
                    alerts.append(
                        BudgetAlert(
                            budget=budget,
                            threshold=threshold,
                            percent_used=progress.percent_used,
                        )
                    )
                    logger.info(
                        "budget_alert_triggered",
                        budget_id=str(budget.id),
                        threshold=threshold,
                        percent_used=str(progress.percent_used),
                    )
                    break
        return alerts
