"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing sequence numbers for
    invoice numbering and archive chain positions.  Uses a dedicated
    counter table with row-level locking (``SELECT ... FOR UPDATE``) to
    guarantee uniqueness and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by InvoiceNumberService (gap-free invoice numbers per tenant
    and invoice type) and GoBDArchiveService (per-tenant chain position).

Invariants enforced:
    - Sequence monotonicity: the locked counter row is the sole source of
      truth for the next value.  The SQL aggregate-max-plus-one
      anti-pattern is FORBIDDEN.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the values.
    - Holding the counter row lock serializes every writer of the same
      sequence until the caller's transaction ends.  The archive relies
      on this to serialize chain appends per tenant.

Failure modes:
    - IntegrityError: Concurrent counter creation race (handled via
      savepoint rollback and retry).
    - SequenceAllocationError: non-positive batch size.

Audit relevance:
    Allocation is logged at DEBUG level with sequence_name and value.
    Gap-free invoice numbering is a GoBD requirement.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from windpark_kernel.db.base import Base
from windpark_kernel.exceptions import SequenceAllocationError
from windpark_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "invoice_number:<tenant>:CREDIT_NOTE")
    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        unique=True,
    )

    # Current sequence value
    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value (or a contiguous batch of them).  The increment is
        transactional -- it is only committed when the caller's
        transaction commits.

    Guarantees:
        - Strictly monotonic sequences via locked counter row.
        - Concurrency safety: ``SELECT ... FOR UPDATE`` serializes
          concurrent allocations for the same sequence.
        - Gap-free: a batch of N values is contiguous.  On rollback the
          whole batch is returned.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        numbers = sequence_service.next_values("invoice_number:t1:INVOICE", 3)
        # If the transaction rolls back, the numbers are not consumed
    """

    def __init__(self, session: Session):
        """
        Initialize the sequence service.

        Args:
            session: SQLAlchemy session (should be in a transaction).
        """
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()  # Row-level lock
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_or_create_counter(self, sequence_name: str) -> SequenceCounter:
        counter = self._lock_counter(sequence_name)
        if counter is not None:
            return counter

        # First use of this sequence.  Another transaction might create it
        # simultaneously; use a savepoint so we don't roll back other work.
        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)
            self._session.flush()
            savepoint.commit()
            return counter
        except IntegrityError:
            logger.debug(
                "sequence_counter_race_retry",
                extra={"sequence_name": sequence_name},
            )
            savepoint.rollback()
            self._session.expire_all()
            counter = self._lock_counter(sequence_name)
            assert counter is not None
            return counter

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - ``sequence_name`` is a non-empty string.
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              previously returned value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        return self.next_values(sequence_name, 1)[0]

    def next_values(self, sequence_name: str, count: int) -> list[int]:
        """
        Allocate ``count`` contiguous values in one locked round-trip.

        Args:
            sequence_name: Name of the sequence.
            count: Number of values to allocate (>= 1).

        Returns:
            Ascending list of ``count`` values.

        Raises:
            SequenceAllocationError: If count < 1.
        """
        if count < 1:
            raise SequenceAllocationError(sequence_name, count)

        counter = self._lock_or_create_counter(sequence_name)
        first = counter.current_value + 1
        counter.current_value += count
        self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={
                "sequence_name": sequence_name,
                "first_value": first,
                "count": count,
            },
        )
        return list(range(first, first + count))

    def current_value(self, sequence_name: str) -> int | None:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if sequence doesn't exist.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None
