"""Quantity ledger and cost roll-ups derived from report entries.

Reports are the single source of truth: every figure here is recomputed from
the report entries on demand and nothing is persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sitedpr.classification.item_types import OTHER
from sitedpr.models import DEFAULT_UNIT, DailyReport, DPRItem, SubContractor

UNCLASSIFIED = "Unclassified"


@dataclass(frozen=True)
class LedgerRow:
    """One report entry with its report date attached."""

    date: str
    report_id: str
    item: DPRItem


@dataclass
class EstimateGroup:
    item_type: str
    unit: str  # first unit encountered
    rate: float
    rows: list[LedgerRow] = field(default_factory=list)
    total_quantity: float = 0.0

    @property
    def total_amount(self) -> float:
        return self.total_quantity * self.rate


@dataclass
class FinancialEstimate:
    groups: dict[str, EstimateGroup]
    record_count: int
    computed_at: datetime

    @property
    def grand_total(self) -> float:
        return sum(g.total_amount for g in self.groups.values())


@dataclass
class BillLine:
    item_type: str
    quantity: float
    unit: str
    rate: float

    @property
    def amount(self) -> float:
        return self.quantity * self.rate


@dataclass
class SubContractorBill:
    subcontractor: SubContractor
    from_date: str
    to_date: str
    lines: list[BillLine]
    rows: list[LedgerRow]

    @property
    def total(self) -> float:
        return sum(line.amount for line in self.lines)


def quantity_ledger(reports: Iterable[DailyReport]) -> list[LedgerRow]:
    """Entries that carry a quantity or a classification, newest date first."""
    rows = [
        LedgerRow(date=report.date, report_id=report.id, item=entry)
        for report in reports
        for entry in report.entries
        if (entry.quantity or 0) > 0 or entry.item_type != OTHER
    ]
    rows.sort(key=lambda r: r.date, reverse=True)
    return rows


def financial_estimate(
    reports: Iterable[DailyReport],
    rates: Mapping[str, float],
    location: Optional[str] = None,
    component: Optional[str] = None,
    item_type: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> FinancialEstimate:
    """Group the ledger by item type and price each group at its unit rate.

    Filters are exact matches; ``None`` means "all". ``start``/``end`` bound the
    report date inclusively.
    """
    rows = [
        row
        for row in quantity_ledger(reports)
        if (location is None or row.item.location == location)
        and (component is None or row.item.component == component)
        and (item_type is None or row.item.item_type == item_type)
        and (start is None or row.date >= start)
        and (end is None or row.date <= end)
    ]

    groups: dict[str, EstimateGroup] = {}
    for row in rows:
        key = row.item.item_type or UNCLASSIFIED
        if key not in groups:
            groups[key] = EstimateGroup(
                item_type=key,
                unit=row.item.unit or DEFAULT_UNIT,
                rate=float(rates.get(key, 0) or 0),
            )
        groups[key].rows.append(row)
        groups[key].total_quantity += row.item.quantity or 0

    return FinancialEstimate(
        groups=groups,
        record_count=len(rows),
        computed_at=datetime.now(timezone.utc),
    )


def assigned_to(item: DPRItem, subcontractor: SubContractor) -> bool:
    """Assignments name either a whole location or ``"location - component"``."""
    assigned = subcontractor.assigned_components
    return f"{item.location} - {item.component}" in assigned or item.location in assigned


def subcontractor_bill(
    reports: Iterable[DailyReport],
    subcontractor: SubContractor,
    from_date: str,
    to_date: str,
) -> SubContractorBill:
    rows: list[LedgerRow] = []
    if subcontractor.assigned_components:
        rows = [
            LedgerRow(date=report.date, report_id=report.id, item=entry)
            for report in reports
            if from_date <= report.date <= to_date
            for entry in report.entries
            if assigned_to(entry, subcontractor)
        ]

    totals: dict[str, list] = {}
    for row in rows:
        key = row.item.item_type or UNCLASSIFIED
        quantity, unit = totals.get(key, [0.0, ""])
        totals[key] = [quantity + (row.item.quantity or 0), unit or row.item.unit]

    lines = [
        BillLine(
            item_type=key,
            quantity=quantity,
            unit=unit or "-",
            rate=float(subcontractor.rates.get(key, 0) or 0),
        )
        for key, (quantity, unit) in totals.items()
        if quantity > 0
    ]
    return SubContractorBill(
        subcontractor=subcontractor,
        from_date=from_date,
        to_date=to_date,
        lines=lines,
        rows=rows,
    )
