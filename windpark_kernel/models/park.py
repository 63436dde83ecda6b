"""
Module: windpark_kernel.models.park
Responsibility: ORM persistence for wind parks, their revenue-phase
    schedule, turbines and the turbine operator history.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, domain/, or outer layers.

Invariants enforced:
    - One RevenuePhase per (park, phase_number) (uq_revenue_phase_number).
    - Revenue phases are keyed by years in operation (1-based), not by
      calendar year.  end_year NULL means open-ended.
    - Only turbines with status ACTIVE count toward the WEA total used by
      the minimum guarantee (enforced by the settlement loader).

Failure modes:
    - IntegrityError on duplicate phase numbers.
    - Missing commissioning_date, minimum_rent_per_turbine,
      wea_share_percentage or pool_share_percentage is legal at the ORM
      level; the settlement loader rejects such parks.

Audit relevance:
    Park terms (minimum rent, share percentages, surcharge rates) are the
    contractual basis of every landowner credit note.  They are copied
    into the settlement's calculation_details snapshot at calculation time.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from windpark_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from windpark_kernel.models.land import Plot
    from windpark_kernel.models.party import Fund


class DistributionMode(str, Enum):
    """
    How lease costs are distributed among operator funds.

    SMOOTHED and TOLERATED split by tolerated (DULDUNG) turbines,
    PROPORTIONAL by the operator's share of all turbines.
    """

    PROPORTIONAL = "PROPORTIONAL"
    SMOOTHED = "SMOOTHED"
    TOLERATED = "TOLERATED"


class TurbineStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class OperatorStatus(str, Enum):
    ACTIVE = "ACTIVE"
    HISTORICAL = "HISTORICAL"


class Park(TrackedBase):
    """
    A wind installation site.

    Contract:
        Carries the lease terms that drive the settlement calculation.
        All percentage fields are 0-100 (not fractions).

    Guarantees:
        - revenue_phases is ordered by phase_number.
        - billing_entity_fund_id names the fund that issues landowner
          credit notes unless a lease overrides it.
    """

    __tablename__ = "parks"

    __table_args__ = (
        Index("idx_park_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    short_name: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # =========================================================================
    # Lease terms
    # =========================================================================

    commissioning_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    minimum_rent_per_turbine: Mapped[Decimal | None] = mapped_column(nullable=True)
    wea_share_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    pool_share_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Road rate per sqm, also the default sealed-area rate
    weg_compensation_per_sqm: Mapped[Decimal | None] = mapped_column(nullable=True)
    kabel_compensation_per_m: Mapped[Decimal | None] = mapped_column(nullable=True)

    default_distribution_mode: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DistributionMode.PROPORTIONAL.value,
    )

    billing_entity_fund_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id"),
        nullable=True,
    )
    billing_entity_fund: Mapped["Fund | None"] = relationship(
        "Fund",
        foreign_keys=[billing_entity_fund_id],
        lazy="selectin",
    )

    # =========================================================================
    # Children
    # =========================================================================

    revenue_phases: Mapped[list["RevenuePhase"]] = relationship(
        "RevenuePhase",
        back_populates="park",
        cascade="all, delete-orphan",
        order_by="RevenuePhase.phase_number",
    )
    turbines: Mapped[list["Turbine"]] = relationship(
        "Turbine",
        back_populates="park",
        cascade="all, delete-orphan",
    )
    plots: Mapped[list["Plot"]] = relationship(
        "Plot",
        back_populates="park",
        cascade="all, delete-orphan",
    )


class RevenuePhase(Base):
    """
    Revenue share applicable for a range of operating years.

    start_year and end_year count years in operation, starting at 1 in the
    commissioning year.
    """

    __tablename__ = "park_revenue_phases"

    __table_args__ = (
        UniqueConstraint("park_id", "phase_number", name="uq_revenue_phase_number"),
    )

    park_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
    )
    phase_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_year: Mapped[int] = mapped_column(Integer, nullable=False)
    end_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    revenue_share_percentage: Mapped[Decimal] = mapped_column(nullable=False)

    park: Mapped["Park"] = relationship("Park", back_populates="revenue_phases")


class Turbine(Base):
    """A wind turbine (WEA) of a park."""

    __tablename__ = "turbines"

    __table_args__ = (
        Index("idx_turbine_park", "park_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    park_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
    )
    designation: Mapped[str] = mapped_column(String(100), nullable=False)
    rated_power_kw: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TurbineStatus.ACTIVE.value,
    )

    park: Mapped["Park"] = relationship("Park", back_populates="turbines")
    operator_history: Mapped[list["TurbineOperator"]] = relationship(
        "TurbineOperator",
        back_populates="turbine",
        cascade="all, delete-orphan",
        order_by="TurbineOperator.valid_from.desc()",
    )


class TurbineOperator(Base):
    """
    Operator fund of a turbine over a validity window.

    valid_to NULL means the assignment is still current.
    """

    __tablename__ = "turbine_operators"

    __table_args__ = (
        Index("idx_turbine_operator_turbine", "turbine_id"),
        Index("idx_turbine_operator_fund", "operator_fund_id"),
    )

    turbine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("turbines.id", ondelete="CASCADE"),
        nullable=False,
    )
    operator_fund_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OperatorStatus.ACTIVE.value,
    )
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    turbine: Mapped["Turbine"] = relationship("Turbine", back_populates="operator_history")
    operator_fund: Mapped["Fund"] = relationship("Fund", lazy="joined")
