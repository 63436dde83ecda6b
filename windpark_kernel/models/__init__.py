"""Domain models for the wind-park kernel."""

from windpark_kernel.models.contract import Contract, ContractStatus, ContractType
from windpark_kernel.models.energy import (
    COUNTED_ENERGY_STATUSES,
    EnergySettlement,
    EnergySettlementStatus,
    TurbineProduction,
)
from windpark_kernel.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    InvoiceType,
    RecipientType,
)
from windpark_kernel.models.land import (
    AreaType,
    Lease,
    LeasePlot,
    LeaseStatus,
    Plot,
    PlotArea,
    PlotStatus,
)
from windpark_kernel.models.park import (
    DistributionMode,
    OperatorStatus,
    Park,
    RevenuePhase,
    Turbine,
    TurbineOperator,
    TurbineStatus,
)
from windpark_kernel.models.party import Fund, Person
from windpark_kernel.services.sequence_service import SequenceCounter

__all__ = [
    "Park",
    "RevenuePhase",
    "Turbine",
    "TurbineOperator",
    "DistributionMode",
    "TurbineStatus",
    "OperatorStatus",
    "Fund",
    "Person",
    "Plot",
    "PlotArea",
    "Lease",
    "LeasePlot",
    "PlotStatus",
    "AreaType",
    "LeaseStatus",
    "EnergySettlement",
    "EnergySettlementStatus",
    "COUNTED_ENERGY_STATUSES",
    "TurbineProduction",
    "Invoice",
    "InvoiceItem",
    "InvoiceType",
    "InvoiceStatus",
    "RecipientType",
    "Contract",
    "ContractType",
    "ContractStatus",
    "SequenceCounter",
]
