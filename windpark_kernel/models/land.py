"""
Module: windpark_kernel.models.land
Responsibility: ORM persistence for land parcels (plots), their typed
    area entries, lease contracts and the plot-to-lease join.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - PlotArea.area_type is one of POOL, WEA_STANDORT, WEG, AUSGLEICH, KABEL.
    - AUSGLEICH (compensation) areas count toward the pool area when
      distributing the pool share.  This is contractual, not a bug.
    - KABEL areas are measured by length_m; area_sqm is the fallback when
      no length was captured.
    - One LeasePlot per (lease, plot) (uq_lease_plot).

Failure modes:
    - IntegrityError on duplicate lease/plot links.

Audit relevance:
    Plot composition is snapshotted into each settlement item
    (plot_summary) at calculation time, so later edits here never change
    historical settlements.
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from windpark_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from windpark_kernel.models.park import Park
    from windpark_kernel.models.party import Fund, Person


class PlotStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AreaType(str, Enum):
    """Usage type of a plot area entry."""

    POOL = "POOL"                  # Pool area, shares the pool percentage
    WEA_STANDORT = "WEA_STANDORT"  # Turbine site, one entry per turbine
    WEG = "WEG"                    # Access road, paid per sqm
    AUSGLEICH = "AUSGLEICH"        # Compensation area, counts as pool
    KABEL = "KABEL"                # Cable route, paid per metre


class LeaseStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class Plot(TrackedBase):
    """A cadastral land parcel (Flurstueck) within a park."""

    __tablename__ = "plots"

    __table_args__ = (
        Index("idx_plot_park", "park_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    park_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PlotStatus.ACTIVE.value)
    plot_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cadastral_district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    field_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    area_sqm: Mapped[Decimal | None] = mapped_column(nullable=True)

    park: Mapped["Park"] = relationship("Park", back_populates="plots")
    plot_areas: Mapped[list["PlotArea"]] = relationship(
        "PlotArea",
        back_populates="plot",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    lease_plots: Mapped[list["LeasePlot"]] = relationship(
        "LeasePlot",
        back_populates="plot",
        cascade="all, delete-orphan",
    )


class PlotArea(Base):
    """A typed area (or length) on a plot."""

    __tablename__ = "plot_areas"

    plot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("plots.id", ondelete="CASCADE"),
        nullable=False,
    )
    area_type: Mapped[str] = mapped_column(String(20), nullable=False)
    area_sqm: Mapped[Decimal | None] = mapped_column(nullable=True)
    length_m: Mapped[Decimal | None] = mapped_column(nullable=True)

    plot: Mapped["Plot"] = relationship("Plot", back_populates="plot_areas")


class Lease(TrackedBase):
    """
    Lease contract with one lessor.

    Contract:
        Only ACTIVE leases participate in a settlement.
        ``direct_billing_fund_id`` redirects payment from the park's default
        billing entity to another fund.
        ``sealed_area_sqm`` and ``sealed_area_rate`` carry the sealed-area
        surcharge; the rate falls back to the park road rate when unset.
    """

    __tablename__ = "leases"

    __table_args__ = (
        Index("idx_lease_tenant", "tenant_id"),
        Index("idx_lease_lessor", "lessor_id"),
        Index("idx_lease_status", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    lessor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("persons.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=LeaseStatus.ACTIVE.value)
    direct_billing_fund_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("funds.id"),
        nullable=True,
    )
    sealed_area_sqm: Mapped[Decimal | None] = mapped_column(nullable=True)
    sealed_area_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    lessor: Mapped["Person"] = relationship("Person", lazy="joined")
    direct_billing_fund: Mapped["Fund | None"] = relationship("Fund")
    lease_plots: Mapped[list["LeasePlot"]] = relationship(
        "LeasePlot",
        back_populates="lease",
        cascade="all, delete-orphan",
    )


class LeasePlot(Base):
    """Join between a lease and a plot."""

    __tablename__ = "lease_plots"

    __table_args__ = (
        UniqueConstraint("lease_id", "plot_id", name="uq_lease_plot"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("leases.id", ondelete="CASCADE"),
        nullable=False,
    )
    plot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("plots.id", ondelete="CASCADE"),
        nullable=False,
    )

    lease: Mapped["Lease"] = relationship("Lease", back_populates="lease_plots")
    plot: Mapped["Plot"] = relationship("Plot", back_populates="lease_plots")
