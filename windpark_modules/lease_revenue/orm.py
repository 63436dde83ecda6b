"""
Module: windpark_modules.lease_revenue.orm
Responsibility:
    SQLAlchemy ORM persistence models for lease revenue settlements and
    park cost allocations.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase`` (headers)
    and ``Base`` (items, owned by their header).  References kernel
    tables: parks, leases, persons, funds, energy_settlements, invoices.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9) via the type map).
    - Status fields are String columns holding the enum ``.value``.
    - One item per (settlement, lease) and per (allocation, operator fund).
    - ``advance_invoice_id`` / ``settlement_invoice_id`` on settlement items
      and ``vat_invoice_id`` / ``exempt_invoice_id`` on allocation items
      are set once; generators skip rows where they are already set.

Failure modes:
    - IntegrityError on duplicate (settlement, lease) items.
    - ForeignKey violation on invalid parent references.

Audit relevance:
    - ``calculation_details`` freezes the inputs of a calculation run.
    - ``plot_summary`` freezes the plots and areas a lease was paid for.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from windpark_kernel.db.base import Base, TrackedBase, UUIDString
from windpark_kernel.db.types import ZERO
from windpark_modules.lease_revenue.models import AllocationStatus, SettlementStatus

if TYPE_CHECKING:
    from windpark_kernel.models.land import Lease
    from windpark_kernel.models.park import Park
    from windpark_kernel.models.party import Fund, Person


# =============================================================================
# Settlement
# =============================================================================


class LeaseRevenueSettlementModel(TrackedBase):
    """
    Settlement of lease fees for one park and period.

    Contract:
        ``period_type`` is ADVANCE or FINAL.  ADVANCE settlements carry an
        ``advance_interval`` and, for QUARTERLY / MONTHLY, a ``month``
        (1-12) that selects the period.

    Guarantees:
        - ``items`` are replaced as a whole on every (re)calculation.
        - ``status`` follows LEASE_REVENUE_SETTLEMENT_WORKFLOW.
    """

    __tablename__ = "lease_revenue_settlements"

    __table_args__ = (
        Index("idx_lr_settlement_lookup", "tenant_id", "park_id", "year", "period_type"),
        Index("idx_lr_settlement_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    park_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("parks.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[str] = mapped_column(String(20), nullable=False)
    advance_interval: Mapped[str | None] = mapped_column(String(20), nullable=True)
    month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=SettlementStatus.OPEN.value,
    )

    linked_energy_settlement_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("energy_settlements.id"), nullable=True,
    )
    advance_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    settlement_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # =========================================================================
    # Header totals
    # =========================================================================

    total_park_revenue_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    revenue_share_percent: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    calculated_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    minimum_guarantee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    actual_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    used_minimum: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    wea_standort_total_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    pool_area_total_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_wea_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_pool_area_sqm: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    calculation_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # =========================================================================
    # Lifecycle timestamps
    # =========================================================================

    advance_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    settlement_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_for_review_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    park: Mapped["Park"] = relationship("Park", lazy="joined")
    items: Mapped[list["LeaseRevenueSettlementItemModel"]] = relationship(
        "LeaseRevenueSettlementItemModel",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="LeaseRevenueSettlementItemModel.position",
    )

    def __repr__(self) -> str:
        return (
            f"<LeaseRevenueSettlementModel {self.year} {self.period_type} "
            f"{self.status}>"
        )


class LeaseRevenueSettlementItemModel(Base):
    """
    Fee components of one lease within a settlement.

    Guarantees:
        - ``subtotal_eur == taxable_amount_eur + exempt_amount_eur``.
        - ``remainder_eur`` is never negative.
    """

    __tablename__ = "lease_revenue_settlement_items"

    __table_args__ = (
        UniqueConstraint("settlement_id", "lease_id", name="uq_lr_item_settlement_lease"),
        Index("idx_lr_item_settlement", "settlement_id"),
    )

    settlement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("lease_revenue_settlements.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    lease_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("leases.id"), nullable=False)
    lessor_person_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("persons.id"), nullable=False,
    )
    direct_billing_fund_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("funds.id"), nullable=True,
    )

    pool_area_sqm: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    pool_area_share_percent: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    pool_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    turbine_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    standort_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    sealed_area_sqm: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    sealed_area_rate: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    sealed_area_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    road_usage_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    cable_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    subtotal_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    taxable_amount_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    exempt_amount_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    advance_paid_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    remainder_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    plot_summary: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    advance_invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True,
    )
    settlement_invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True,
    )

    settlement: Mapped["LeaseRevenueSettlementModel"] = relationship(
        "LeaseRevenueSettlementModel", back_populates="items",
    )
    lease: Mapped["Lease"] = relationship("Lease")
    lessor_person: Mapped["Person"] = relationship("Person", lazy="joined")
    direct_billing_fund: Mapped["Fund | None"] = relationship("Fund")


# =============================================================================
# Cost allocation
# =============================================================================


class ParkCostAllocationModel(TrackedBase):
    """
    Split of a settlement's lease fees among the park's operator funds.

    Guarantees:
        - ``status`` follows COST_ALLOCATION_WORKFLOW.
    """

    __tablename__ = "park_cost_allocations"

    __table_args__ = (
        Index("idx_cost_allocation_settlement", "lease_revenue_settlement_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    lease_revenue_settlement_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lease_revenue_settlements.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AllocationStatus.DRAFT.value,
    )
    total_usage_fee_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_taxable_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_exempt_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    period_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    settlement: Mapped["LeaseRevenueSettlementModel"] = relationship(
        "LeaseRevenueSettlementModel", lazy="joined",
    )
    items: Mapped[list["ParkCostAllocationItemModel"]] = relationship(
        "ParkCostAllocationItemModel",
        back_populates="allocation",
        cascade="all, delete-orphan",
        order_by="ParkCostAllocationItemModel.position",
    )

    def __repr__(self) -> str:
        return f"<ParkCostAllocationModel {self.period_label} {self.status}>"


class ParkCostAllocationItemModel(Base):
    """Amounts owed by one operator fund."""

    __tablename__ = "park_cost_allocation_items"

    __table_args__ = (
        UniqueConstraint("allocation_id", "operator_fund_id", name="uq_cost_allocation_item_fund"),
    )

    allocation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("park_cost_allocations.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    operator_fund_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("funds.id"), nullable=False,
    )
    allocation_basis: Mapped[str] = mapped_column(String(200), nullable=False)
    allocation_share_percent: Mapped[Decimal] = mapped_column(nullable=False)
    total_allocated_eur: Mapped[Decimal] = mapped_column(nullable=False)
    direct_settlement_eur: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    taxable_amount_eur: Mapped[Decimal] = mapped_column(nullable=False)
    taxable_vat_eur: Mapped[Decimal] = mapped_column(nullable=False)
    exempt_amount_eur: Mapped[Decimal] = mapped_column(nullable=False)
    net_payable_eur: Mapped[Decimal] = mapped_column(nullable=False)

    vat_invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True,
    )
    exempt_invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True,
    )

    allocation: Mapped["ParkCostAllocationModel"] = relationship(
        "ParkCostAllocationModel", back_populates="items",
    )
    operator_fund: Mapped["Fund"] = relationship("Fund", lazy="joined")
