"""
Module: windpark_engines.allocation
Responsibility:
    Split a cent-rounded target amount into cent-rounded shares whose sum
    equals the target exactly.  Shared by every invoice generator so that
    the sum of line net amounts always equals the amount stored on the
    settlement item or allocation item.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import windpark_kernel.db.types and windpark_kernel.exceptions.

Invariants enforced:
    - sum(result.amounts) == target, always.
    - The rounding difference is assigned to exactly one designated share
      (``adjust_index``), so penny totals are reproducible on replay.
    - Proportional shares round half-up to cents.

Failure modes:
    - DistributionError when asked to distribute a non-zero target over
      no shares, or when ``adjust_index`` is out of range.

Audit relevance:
    Historical credit notes put the rounding difference on the LAST line
    for advances and on the FIRST line for final settlements.  Keeping the
    designated index explicit preserves those amounts to the cent.

Usage:
    from windpark_engines.allocation import allocate_proportionally, distribute_with_remainder

    shares = allocate_proportionally(Decimal("100.00"), [Decimal("1"), Decimal("2")])
    lines = distribute_with_remainder(Decimal("100.00"), shares, adjust_index=-1)
    # lines.amounts == (Decimal("33.33"), Decimal("66.67"))
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from windpark_kernel.db.types import ZERO, round_money
from windpark_kernel.exceptions import DistributionError
from windpark_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class Distribution:
    """
    Result of a distribution.

    Contract:
        Frozen dataclass, one amount per input share in input order.
    Guarantees:
        - ``sum(amounts) == target``.
        - ``rounding_adjustment`` is the amount added to the designated share.
    """

    target: Decimal
    amounts: tuple[Decimal, ...]
    adjust_index: int
    rounding_adjustment: Decimal

    @property
    def total(self) -> Decimal:
        return sum(self.amounts, ZERO)


def allocate_proportionally(target: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    """
    Cent-rounded share of ``target`` for each weight, without correction.

    share_i = round2(weight_i / sum(weights) * target).  A zero weight total
    yields all-zero shares.  The result may be off from ``target`` by a few
    cents; pass it through ``distribute_with_remainder`` to fix that.
    """
    total_weight = sum(weights, ZERO)
    if total_weight == ZERO:
        return [ZERO for _ in weights]
    return [round_money(weight / total_weight * target) for weight in weights]


def distribute_with_remainder(
    target: Decimal,
    shares: Sequence[Decimal],
    adjust_index: int = -1,
) -> Distribution:
    """
    Push the rounding difference between ``target`` and ``sum(shares)``
    onto the share at ``adjust_index``.

    Args:
        target: Cent-rounded amount the shares must add up to.
        shares: Cent-rounded shares (already computed by the caller).
        adjust_index: Index of the share that absorbs the difference.
            Negative indexes count from the end.

    Returns:
        Distribution whose amounts sum to ``target`` exactly.

    Raises:
        DistributionError: If ``shares`` is empty while ``target`` is not
            zero, or ``adjust_index`` is out of range.
    """
    amounts = [round_money(share) for share in shares]

    if not amounts:
        if target != ZERO:
            raise DistributionError(f"Cannot distribute {target} over zero shares")
        return Distribution(target=target, amounts=(), adjust_index=adjust_index, rounding_adjustment=ZERO)

    if not -len(amounts) <= adjust_index < len(amounts):
        raise DistributionError(
            f"Adjust index {adjust_index} out of range for {len(amounts)} shares"
        )

    difference = round_money(target - sum(amounts, ZERO))
    if difference != ZERO:
        amounts[adjust_index] = round_money(amounts[adjust_index] + difference)
        logger.debug(
            "distribution_rounding_adjusted",
            extra={
                "target": str(target),
                "adjust_index": adjust_index,
                "rounding_adjustment": str(difference),
            },
        )

    return Distribution(
        target=target,
        amounts=tuple(amounts),
        adjust_index=adjust_index,
        rounding_adjustment=difference,
    )
