"""
Pydantic models for site energy readings and the persisted daily aggregate.

Defines the meter-kind and unit enumerations shared by both monitoring API
endpoints, the five-field EnergyReadings value object (daily and lifetime
variants), and AggregatedEnergyRecord, the one-per-day document stored in
MongoDB. Stored documents keep the collection's camelCase field names
(``dailyPurchased``, ``lifeTimeExport``, ...) via pydantic aliases.

CHANGELOG:
- 2026-10-19: Add ReconcileOutcome (STORY-006)
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SiteId = int | str
"""Opaque site identifier exactly as returned by ``/sites/list``."""


class MeterKind(StrEnum):
    """Energy flow categories reported by the monitoring API."""

    PURCHASED = "Purchased"
    FEED_IN = "FeedIn"
    PRODUCTION = "Production"
    CONSUMPTION = "Consumption"
    SELF_CONSUMPTION = "SelfConsumption"


class EnergyUnit(StrEnum):
    """Unit declared by an energy response; applies to every meter in it."""

    WH = "Wh"
    KWH = "kWh"


class ReconcileOutcome(StrEnum):
    """What the reconciler did with a freshly computed aggregate."""

    INSERTED = "inserted"
    UNCHANGED = "unchanged"
    UPDATED = "updated"


class MeterReading(BaseModel):
    """A single (kind, value) pair extracted from one meter entry.

    Attributes:
        kind: The recognized meter kind.
        value: The first reported value, in the response's declared unit.
    """

    model_config = ConfigDict(frozen=True)

    kind: MeterKind
    value: float


class EnergyReadings(BaseModel):
    """Five energy quantities for one site and one date, in kWh.

    Every field defaults to 0.0 so that a meter kind missing from the
    response still contributes to sums.

    Attributes:
        purchased: Energy imported from the grid.
        export: Energy fed into the grid (``FeedIn`` meter).
        consumption: Total site consumption.
        production: PV production.
        self_consumption: Produced energy consumed on site.
    """

    model_config = ConfigDict(frozen=True)

    purchased: float = 0.0
    export: float = 0.0
    consumption: float = 0.0
    production: float = 0.0
    self_consumption: float = 0.0

    def __add__(self, other: EnergyReadings) -> EnergyReadings:
        """Field-wise sum, keeping the left operand's type."""
        return type(self)(
            **{
                name: getattr(self, name) + getattr(other, name)
                for name in ENERGY_FIELDS
            }
        )


ENERGY_FIELDS: tuple[str, ...] = tuple(EnergyReadings.model_fields)
"""Field names of EnergyReadings, in declaration order."""


class DailyEnergy(EnergyReadings):
    """Energy flows for exactly one calendar day (``energyDetails``)."""


class LifetimeEnergy(EnergyReadings):
    """Cumulative energy flows up to the queried date (``meters``)."""


class AggregatedEnergyRecord(BaseModel):
    """Daily totals summed across every site of one account.

    ``date`` is the natural key of the collection. Serialize with
    :meth:`to_document` to get the stored camelCase field names.

    Attributes:
        date: Calendar day formatted ``YYYY-MM-DD``.
        daily_*: Sum of each site's daily readings for ``date``.
        lifetime_*: Sum of each site's lifetime readings for ``date``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: str
    daily_purchased: float = Field(default=0.0, alias="dailyPurchased")
    daily_export: float = Field(default=0.0, alias="dailyExport")
    daily_consumption: float = Field(default=0.0, alias="dailyConsumption")
    daily_production: float = Field(default=0.0, alias="dailyProduction")
    daily_self_consumption: float = Field(
        default=0.0, alias="dailySelfConsumption"
    )
    lifetime_purchased: float = Field(default=0.0, alias="lifeTimePurchased")
    lifetime_export: float = Field(default=0.0, alias="lifeTimeExport")
    lifetime_consumption: float = Field(default=0.0, alias="lifeTimeConsumption")
    lifetime_production: float = Field(default=0.0, alias="lifeTimeProduction")
    lifetime_self_consumption: float = Field(
        default=0.0, alias="lifeTimeSelfConsumption"
    )

    @classmethod
    def from_readings(
        cls,
        date: str,
        daily: EnergyReadings,
        lifetime: EnergyReadings,
    ) -> AggregatedEnergyRecord:
        """Build a record from summed daily and lifetime readings."""
        fields: dict[str, Any] = {"date": date}
        for name in ENERGY_FIELDS:
            fields[f"daily_{name}"] = getattr(daily, name)
            fields[f"lifetime_{name}"] = getattr(lifetime, name)
        return cls(**fields)

    def to_document(self) -> dict[str, Any]:
        """Return a fresh MongoDB document using the stored field names."""
        return self.model_dump(by_alias=True)
