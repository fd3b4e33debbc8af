"""Monthly spending caps per merchant or category"""

import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from moneylens_guard.domain.ledger import TransactionLedger
from moneylens_guard.domain.models import CapStatus, SpendingCap
from moneylens_guard.utils.date_utils import start_of_month

NEAR_CAP_PERCENT = 80


def evaluate_cap(cap: Optional[SpendingCap], current_spend: float) -> CapStatus:
    """
    Position of month-to-date spend against a cap.

    near_cap: 80% <= spend < 100% of the cap
    over_cap: spend >= cap
    """
    if cap is None or cap.amount <= 0:
        return CapStatus("none", 0.0, current_spend, 0.0, False, False)

    percentage = current_spend / cap.amount * 100
    return CapStatus(
        cap_kind=cap.kind,
        cap_amount=cap.amount,
        current_spend=current_spend,
        percentage=round(percentage, 2),
        near_cap=NEAR_CAP_PERCENT <= percentage < 100,
        over_cap=percentage >= 100,
    )


class CapRegistry:
    """Active caps plus per-merchant override flags; a merchant cap wins over its category cap"""

    def __init__(
        self,
        ledger: TransactionLedger,
        caps: Iterable[SpendingCap] = (),
        on_change: Callable[[List[SpendingCap]], None] = lambda caps: None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.ledger = ledger
        self._caps: Dict[str, SpendingCap] = {c.id: c for c in caps}
        self._on_change = on_change
        self._clock = clock
        self._overrides: Dict[str, bool] = {}

    @property
    def caps(self) -> List[SpendingCap]:
        return list(self._caps.values())

    def create(self, kind: str, target: str, amount: float, active: bool = True) -> SpendingCap:
        if kind not in ("merchant", "category"):
            raise ValueError(f"Unknown cap kind: {kind}")
        cap = SpendingCap(id=str(uuid.uuid4()), kind=kind, target=target, amount=float(amount), active=active)
        self._caps[cap.id] = cap
        self._on_change(self.caps)
        return cap

    def delete(self, cap_id: str) -> None:
        if self._caps.pop(cap_id, None) is not None:
            self._on_change(self.caps)

    def _active(self, kind: str, target: str) -> Optional[SpendingCap]:
        for cap in self._caps.values():
            if cap.active and cap.kind == kind and cap.target == target:
                return cap
        return None

    def status(self, merchant: str, category: str) -> CapStatus:
        since = start_of_month(self._clock())

        cap = self._active("merchant", merchant)
        if cap is not None:
            return evaluate_cap(cap, self.ledger.spent_since(since, merchant=merchant))

        cap = self._active("category", category)
        if cap is not None:
            return evaluate_cap(cap, self.ledger.spent_since(since, category=category))

        return evaluate_cap(None, self.ledger.spent_since(since, merchant=merchant))

    def set_override(self, merchant: str, enabled: bool) -> None:
        if enabled:
            self._overrides[merchant] = True
        else:
            self._overrides.pop(merchant, None)

    def has_override(self, merchant: str) -> bool:
        return self._overrides.get(merchant, False)
