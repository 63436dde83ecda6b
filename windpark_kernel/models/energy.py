"""
Module: windpark_kernel.models.energy
Responsibility: ORM persistence for energy revenue settlements (grid
    operator / direct-marketer statements per park and period) and
    per-turbine monthly production records.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Only EnergySettlements with status CALCULATED, INVOICED or CLOSED
      count toward park revenue (enforced by the settlement loader).
    - month NULL means a yearly statement.

Audit relevance:
    Net operator revenue is the base of the revenue-share fee.  The
    EEG / direct-marketing split feeds the revenue table on the
    landowner credit note annex.
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from windpark_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from windpark_kernel.models.park import Turbine


class EnergySettlementStatus(str, Enum):
    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    INVOICED = "INVOICED"
    CLOSED = "CLOSED"


# Statuses whose revenue counts toward the lease settlement
COUNTED_ENERGY_STATUSES = (
    EnergySettlementStatus.CALCULATED.value,
    EnergySettlementStatus.INVOICED.value,
    EnergySettlementStatus.CLOSED.value,
)


class EnergySettlement(Base):
    """Revenue statement for a park and a year (optionally a month)."""

    __tablename__ = "energy_settlements"

    __table_args__ = (
        Index("idx_energy_settlement_park_year", "park_id", "year"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    park_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parks.id"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EnergySettlementStatus.DRAFT.value,
    )
    net_operator_revenue_eur: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_production_kwh: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    eeg_production_kwh: Mapped[Decimal | None] = mapped_column(nullable=True)
    eeg_revenue_eur: Mapped[Decimal | None] = mapped_column(nullable=True)
    dv_production_kwh: Mapped[Decimal | None] = mapped_column(nullable=True)
    dv_revenue_eur: Mapped[Decimal | None] = mapped_column(nullable=True)


class TurbineProduction(Base):
    """Monthly production of one turbine."""

    __tablename__ = "turbine_productions"

    __table_args__ = (
        Index("idx_turbine_production_turbine_year", "turbine_id", "year"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    turbine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("turbines.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    production_kwh: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    operating_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    availability_pct: Mapped[Decimal | None] = mapped_column(nullable=True)

    turbine: Mapped["Turbine"] = relationship("Turbine", lazy="joined")
