# Overview: Payment allocation engine; pure split of a tender across current bill, old dues and advance.

"""
Payment Allocation Engine

WHY: A wholesale customer hands over one amount of cash. That cash (plus any
advance the operator chooses to draw) has to be split, deterministically,
between the bill being rung up now, the customer's older unpaid invoices,
and a new advance balance. The operator sees this split as a preview before
committing, and checkout persists exactly the same numbers.

ORDER OF SETTLEMENT:
1. Current bill first
2. Then older dues (the settlement service walks them oldest-first)
3. Whatever is left becomes new advance credit

Advance is never drawn beyond what is owed (bill + prior due), so it can't
round-trip into a same-transaction refund.

PURE: no database access, no clock, no side effects. Amounts are integer
minor units.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..money import (
    add,
    is_zero,
    min_amount,
    payment_status_for,
    require_amount,
    subtract,
)
from ..validation import ValidationError


@dataclass(frozen=True)
class AllocationResult:
    """
    Typed payment split passed from preview to checkout.

    Input fields are carried along so checkout can verify the preview was
    computed against the cart and balances it is about to persist.
    """
    # Inputs
    bill_total: int
    prior_due: int
    advance_balance: int
    use_advance: bool

    # Split
    paid_toward_current_bill: int
    current_bill_due: int
    payment_status: str
    advance_used: int
    paid_toward_old_dues: int
    new_advance_credit: int
    cash_received: int

    @property
    def total_available(self) -> int:
        return self.cash_received + self.advance_used

    @property
    def remaining_after_current_bill(self) -> int:
        return self.total_available - self.paid_toward_current_bill

    @property
    def remaining_after_old_dues(self) -> int:
        return self.remaining_after_current_bill - self.paid_toward_old_dues

    @property
    def net_payable(self) -> int:
        """Current bill plus prior outstanding (the receipt's 'Net Payable')."""
        return add(self.bill_total, self.prior_due)

    @property
    def outstanding_after(self) -> int:
        """Total the customer still owes across all invoices once this is applied."""
        return add(self.current_bill_due, subtract(self.prior_due, self.paid_toward_old_dues))

    def to_dict(self) -> dict:
        data = {f"{k}_cents" if k not in ("use_advance", "payment_status") else k: v
                for k, v in asdict(self).items()}
        data.update({
            "total_available_cents": self.total_available,
            "remaining_after_current_bill_cents": self.remaining_after_current_bill,
            "remaining_after_old_dues_cents": self.remaining_after_old_dues,
            "net_payable_cents": self.net_payable,
            "outstanding_after_cents": self.outstanding_after,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AllocationResult":
        """
        Parse an allocation preview echoed back by the client.

        Only the fields of the typed contract are read; derived *_cents values
        in the payload are ignored (they are recomputed).
        """
        if not isinstance(data, dict):
            raise ValidationError("allocation must be an object")

        use_advance = data.get("use_advance", False)
        if not isinstance(use_advance, bool):
            raise ValidationError("use_advance must be a boolean")

        payment_status = data.get("payment_status")
        if payment_status not in ("paid", "partial"):
            raise ValidationError("payment_status must be 'paid' or 'partial'")

        amounts = {}
        for name in (
            "bill_total", "prior_due", "advance_balance",
            "paid_toward_current_bill", "current_bill_due", "advance_used",
            "paid_toward_old_dues", "new_advance_credit", "cash_received",
        ):
            amounts[name] = require_amount(f"{name}_cents", data.get(f"{name}_cents"))

        return cls(use_advance=use_advance, payment_status=payment_status, **amounts)

    def is_consistent(self) -> bool:
        """True when this record is exactly what allocate_payment() yields for its inputs."""
        return self == allocate_payment(
            bill_total=self.bill_total,
            prior_due=self.prior_due,
            advance_balance=self.advance_balance,
            use_advance=self.use_advance,
            tendered=self.cash_received,
        )


def allocate_payment(
    *,
    bill_total: int,
    prior_due: int,
    advance_balance: int,
    use_advance: bool,
    tendered: int | None,
) -> AllocationResult:
    """
    Split a tender across the current bill, old dues and new advance.

    Args:
        bill_total: Current cart total (>= 0)
        prior_due: Customer's outstanding due on older invoices (0 for walk-in)
        advance_balance: Customer's prepaid credit (0 for walk-in)
        use_advance: Operator's choice to draw on the advance
        tendered: Cash/instrument amount handed over (>= 0, required)

    Raises:
        ValidationError: negative, non-integer or missing amounts
    """
    bill_total = require_amount("bill_total_cents", bill_total)
    prior_due = require_amount("prior_due_cents", prior_due)
    advance_balance = require_amount("advance_balance_cents", advance_balance)
    tendered = require_amount("tendered_cents", tendered)
    if not isinstance(use_advance, bool):
        raise ValidationError("use_advance must be a boolean")

    owed = add(bill_total, prior_due)
    advance_used = min_amount(advance_balance, owed) if use_advance else 0

    total_available = add(tendered, advance_used)

    paid_toward_current_bill = min_amount(total_available, bill_total)
    current_bill_due = subtract(bill_total, paid_toward_current_bill)
    remaining_after_current_bill = total_available - paid_toward_current_bill

    paid_toward_old_dues = min_amount(remaining_after_current_bill, prior_due)
    remaining_after_old_dues = remaining_after_current_bill - paid_toward_old_dues

    return AllocationResult(
        bill_total=bill_total,
        prior_due=prior_due,
        advance_balance=advance_balance,
        use_advance=use_advance,
        paid_toward_current_bill=paid_toward_current_bill,
        current_bill_due=current_bill_due,
        payment_status=payment_status_for(current_bill_due),
        advance_used=advance_used,
        paid_toward_old_dues=paid_toward_old_dues,
        new_advance_credit=remaining_after_old_dues,
        cash_received=tendered,
    )


def is_fully_settled(allocation: AllocationResult) -> bool:
    """Nothing left owing on the current bill (within the 0.01 tolerance)."""
    return is_zero(allocation.current_bill_due)
