"""Atomic crystal debits and refunds with a pending-charge journal."""

import logging
import sqlite3
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..errors import InsufficientBalance
from ..logging import JSONLLogger
from ..store.database import Database

logger = logging.getLogger(__name__)


class ChargeStatus(Enum):
    """Lifecycle of a debit."""

    PENDING = "PENDING"
    SETTLED = "SETTLED"
    REFUNDED = "REFUNDED"


@dataclass(frozen=True)
class Charge:
    """A debit awaiting its outcome.

    Attributes:
        id: Journal row id.
        user_id: User that was charged.
        amount: Crystals taken; a refund returns exactly this.
        operation: Tag naming what was paid for (e.g. 'chat:<model>').
        balance_before: Balance immediately before the debit.
    """

    id: int
    user_id: str
    amount: int
    operation: str
    balance_before: int


class CreditLedger:
    """Debits and refunds crystals.

    Every debit is journaled as a PENDING charge and ends SETTLED (content
    delivered) or REFUNDED (the attempt failed). The balance change and the
    journal write commit in one transaction. The debit is one conditional
    UPDATE, so concurrent requests for the same user can never both pass
    the balance check.
    """

    def __init__(
        self,
        db: Database,
        event_log: JSONLLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.event_log = event_log
        self._clock = clock

    def balance(self, user_id: str) -> int:
        """Current balance.

        Raises:
            LookupError: If the user does not exist.
        """
        row = self.db.connection.execute(
            "SELECT crystals FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None:
            raise LookupError(f"User {user_id} not found")
        return row["crystals"]

    def debit(self, user_id: str, amount: int, operation: str) -> Charge:
        """Take ``amount`` crystals from a user.

        Args:
            user_id: User to charge.
            amount: Non-negative number of crystals.
            operation: Tag for the journal and logs.

        Returns:
            The pending charge, including the pre-debit balance.

        Raises:
            InsufficientBalance: If the balance is lower than ``amount``.
            LookupError: If the user does not exist.
        """
        if amount < 0:
            raise ValueError("amount must be non-negative")

        conn = self.db.connection
        with conn:
            row = conn.execute(
                """
                UPDATE users SET crystals = crystals - ?
                WHERE id = ? AND crystals >= ?
                RETURNING crystals
                """,
                (amount, user_id, amount),
            ).fetchone()
            if row is None:
                available = self.balance(user_id)
                raise InsufficientBalance(user_id, amount, available)

            cursor = conn.execute(
                """
                INSERT INTO charges (user_id, amount, balance_before, operation, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    amount,
                    row["crystals"] + amount,
                    operation,
                    ChargeStatus.PENDING.value,
                    self._clock(),
                ),
            )
            charge = Charge(
                id=cursor.lastrowid,
                user_id=user_id,
                amount=amount,
                operation=operation,
                balance_before=row["crystals"] + amount,
            )

        logger.debug("Charged %s crystals to %s for %s", amount, user_id, operation)
        if self.event_log:
            self.event_log.log_charge(
                user_id, amount, operation, charge.id, charge.balance_before
            )
        return charge

    def settle(self, charge: Charge) -> bool:
        """Mark a charge as delivered. Returns False if it was already resolved."""
        return self._resolve(charge.id, ChargeStatus.SETTLED) is not None

    def refund(self, charge: Charge) -> bool:
        """Return a charge's crystals to its user.

        Only a PENDING charge is refunded, so calling this twice for the same
        charge credits the user once.

        Returns:
            True if crystals were returned.
        """
        conn = self.db.connection
        with conn:
            resolved = self._resolve(charge.id, ChargeStatus.REFUNDED, commit=False)
            if resolved is None:
                logger.warning("Charge %s already resolved, refund skipped", charge.id)
                return False
            self._increment(conn, resolved["user_id"], resolved["amount"])

        logger.info(
            "Refunded %s crystals to %s for %s",
            resolved["amount"],
            resolved["user_id"],
            resolved["operation"],
        )
        if self.event_log:
            self.event_log.log_refund(
                resolved["user_id"], resolved["amount"], resolved["operation"], charge.id
            )
        return True

    def credit(self, user_id: str, amount: int, operation: str) -> None:
        """Unconditionally add crystals to a user."""
        if amount < 0:
            raise ValueError("amount must be non-negative")

        conn = self.db.connection
        with conn:
            self._increment(conn, user_id, amount)
        if self.event_log:
            self.event_log.log("credit", user_id=user_id, amount=amount, operation=operation)

    def get_charge(self, charge_id: int) -> tuple[Charge, ChargeStatus] | None:
        row = self.db.connection.execute(
            "SELECT * FROM charges WHERE id = ?", (charge_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_charge(row), ChargeStatus(row["status"])

    def pending_charges(self, older_than: float | None = None) -> list[Charge]:
        """Charges still waiting for an outcome.

        Args:
            older_than: Only include charges at least this many seconds old.
        """
        if older_than is None:
            cursor = self.db.connection.execute(
                "SELECT * FROM charges WHERE status = ? ORDER BY id",
                (ChargeStatus.PENDING.value,),
            )
        else:
            cursor = self.db.connection.execute(
                "SELECT * FROM charges WHERE status = ? AND created_at <= ? ORDER BY id",
                (ChargeStatus.PENDING.value, self._clock() - older_than),
            )
        return [self._row_to_charge(row) for row in cursor.fetchall()]

    def reconcile(self, max_age_seconds: float) -> int:
        """Refund charges left pending longer than ``max_age_seconds``.

        A pending charge this old belongs to a request that died mid-flight.

        Returns:
            Number of charges refunded.
        """
        refunded = 0
        for charge in self.pending_charges(older_than=max_age_seconds):
            if self.refund(charge):
                refunded += 1
        if refunded:
            logger.warning("Reconciled %d stale pending charges", refunded)
        return refunded

    def _resolve(
        self, charge_id: int, status: ChargeStatus, commit: bool = True
    ) -> sqlite3.Row | None:
        conn = self.db.connection
        row = conn.execute(
            """
            UPDATE charges SET status = ?, resolved_at = ?
            WHERE id = ? AND status = ?
            RETURNING user_id, amount, operation
            """,
            (status.value, self._clock(), charge_id, ChargeStatus.PENDING.value),
        ).fetchone()
        if commit:
            conn.commit()
        return row

    def _increment(self, conn: sqlite3.Connection, user_id: str, amount: int) -> None:
        cursor = conn.execute(
            "UPDATE users SET crystals = crystals + ? WHERE id = ?",
            (amount, user_id),
        )
        if cursor.rowcount == 0:
            raise LookupError(f"User {user_id} not found")

    def _row_to_charge(self, row: sqlite3.Row) -> Charge:
        return Charge(
            id=row["id"],
            user_id=row["user_id"],
            amount=row["amount"],
            operation=row["operation"],
            balance_before=row["balance_before"],
        )
