"""
Global monthly budget guard.

A soft circuit breaker shared by every subject: each generation is charged a
fixed cost estimate, and generation stops once the month's accumulated
estimate reaches the cap. It is not a billing source of truth.
"""

from typing import Optional

from ai_message_gateway.core.periods import Clock, Month, utc_now
from ai_message_gateway.log import get_logger
from ai_message_gateway.storage.models import BudgetLedger
from ai_message_gateway.storage.repository import SQLiteStore

logger = get_logger(__name__)


class BudgetGuard:
    """Cross-subject spend accumulator with a hard monthly cap."""

    def __init__(
        self,
        store: SQLiteStore,
        monthly_cap: float,
        cost_per_request: float,
        clock: Clock = utc_now,
    ):
        if monthly_cap <= 0:
            raise ValueError("monthly_cap must be > 0")
        if cost_per_request <= 0:
            raise ValueError("cost_per_request must be > 0")
        self.store = store
        self.monthly_cap = monthly_cap
        self.cost_per_request = cost_per_request
        self.clock = clock

    def snapshot(self) -> BudgetLedger:
        """Current month's ledger; an absent ledger reads as zero."""
        month = Month.of(self.clock())
        ledger = self.store.get_budget_ledger(month)
        return ledger if ledger is not None else BudgetLedger(month=month)

    def is_open(self) -> bool:
        """True while this month's estimated spend is below the cap."""
        ledger = self.snapshot()
        is_open = ledger.estimated_cost < self.monthly_cap
        if not is_open:
            logger.warning(
                "Budget for %s exhausted: $%.5f of $%.2f",
                ledger.month,
                ledger.estimated_cost,
                self.monthly_cap,
            )
        return is_open

    def record(self, cost: Optional[float] = None) -> BudgetLedger:
        """Charge one request to this month's ledger.

        Not idempotent: every call adds one request and its cost.
        """
        now = self.clock()
        charge = self.cost_per_request if cost is None else cost
        ledger = self.store.increment_budget(Month.of(now), charge, now)
        logger.debug(
            "Budget for %s: %d requests, $%.5f",
            ledger.month,
            ledger.requests,
            ledger.estimated_cost,
        )
        return ledger
