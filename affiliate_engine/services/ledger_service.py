"""
Ledger service.

Manual balance adjustments and ledger replay verification.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import LedgerEntryType
from affiliate_engine.models.ledger import AffiliateLedger
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.ledger_repository import (
    AffiliateLedgerRepository,
)
from affiliate_engine.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from affiliate_engine.utils.decimal_math import ZERO, add, is_zero, lt, to_decimal
from affiliate_engine.utils.exceptions import (
    AffiliateNotFoundError,
    InsufficientBalanceError,
)


@dataclass
class LedgerVerification:
    """
    Ledger replay report.

    Attributes:
        affiliate_id: Affiliate checked
        is_consistent: Replay matches the balance and every snapshot pair
        expected_balance: initial balance + sum of entry amounts
        actual_balance: Balance stored on the account
        entries: Number of entries replayed
        broken_entries: IDs of entries whose snapshot pair is inconsistent
    """

    affiliate_id: int
    is_consistent: bool
    expected_balance: Decimal
    actual_balance: Decimal
    entries: int
    broken_entries: list[int] = field(default_factory=list)


class LedgerService(BaseService):
    """Balance adjustments and ledger checks."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.ledger_repo = AffiliateLedgerRepository(session)

    @transaction
    async def create_adjustment(
        self,
        affiliate_id: int,
        amount: Decimal,
        note: str,
        actor: str | None = None,
    ) -> AffiliateLedger:
        """
        Apply a signed manual adjustment.

        Positive adjustments also count toward lifetime earnings.

        Args:
            affiliate_id: Affiliate ID
            amount: Signed amount (non-zero)
            note: Reason shown in the ledger
            actor: Who made the adjustment

        Returns:
            Created ledger entry

        Raises:
            ValueError: If amount is zero
            AffiliateNotFoundError: If the affiliate is missing or deleted
            InsufficientBalanceError: If the balance would go negative
        """
        amount = to_decimal(amount)
        if is_zero(amount):
            raise ValueError("Adjustment amount must be non-zero")

        affiliate = await self.affiliate_repo.lock_for_balance(affiliate_id)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)

        if lt(add(affiliate.balance, amount), ZERO):
            raise InsufficientBalanceError(
                f"Adjustment of {amount} exceeds balance {affiliate.balance} "
                f"of affiliate {affiliate_id}"
            )

        balance_before, balance_after = await self.affiliate_repo.apply_balance_change(
            affiliate, amount, count_as_earnings=amount > ZERO
        )
        description = f"Manual adjustment: {note}"
        if actor:
            description = f"{description} (by {actor})"

        entry = await self.ledger_repo.create(
            affiliate_id=affiliate_id,
            type=LedgerEntryType.ADJUSTMENT.value,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            description=description,
            reference_id=f"ADJ-{affiliate_id}",
        )

        self.logger.info(
            f"Balance adjusted for affiliate {affiliate_id}",
            extra={
                "affiliate_id": affiliate_id,
                "amount": str(amount),
                "balance_after": str(balance_after),
                "actor": actor,
            },
        )
        return entry

    @log_operation
    async def verify_balance(
        self, affiliate_id: int, initial_balance: Decimal = ZERO
    ) -> LedgerVerification:
        """
        Replay an affiliate's ledger and compare with the stored balance.

        Args:
            affiliate_id: Affiliate ID
            initial_balance: Balance before the first entry

        Returns:
            Verification report

        Raises:
            AffiliateNotFoundError: If the affiliate does not exist
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)

        entries = await self.ledger_repo.get_history(affiliate_id)
        expected = to_decimal(initial_balance)
        broken: list[int] = []

        for entry in entries:
            before = to_decimal(entry.balance_before)
            after = to_decimal(entry.balance_after)
            if before + to_decimal(entry.amount) != after or before != expected:
                broken.append(entry.id)
            expected = add(expected, entry.amount)

        actual = to_decimal(affiliate.balance)
        is_consistent = expected == actual and not broken
        if not is_consistent:
            self.logger.warning(
                f"Ledger mismatch for affiliate {affiliate_id}",
                extra={
                    "expected": str(expected),
                    "actual": str(actual),
                    "broken_entries": broken,
                },
            )

        return LedgerVerification(
            affiliate_id=affiliate_id,
            is_consistent=is_consistent,
            expected_balance=expected,
            actual_balance=actual,
            entries=len(entries),
            broken_entries=broken,
        )
