"""
Pure extraction of energy readings from monitoring API payloads.

Both energy endpoints return the same shape under a different root key and
name the meter kind differently (``type`` for energyDetails, ``meterType``
for meters). A single extraction function handles both, parameterized by
the kind field name, and converts watt-hours to kilowatt-hours.

Extraction rules:

- Only the first entry of a meter's ``values`` list is consulted (queries
  use identical start and end times, so at most one DAY bucket comes back).
- A kind that is absent, has an empty value list, or a null value
  contributes 0.0.
- Unrecognized kinds are ignored.
- A missing ``meters`` list, a value entry that is not an object, a
  non-numeric value, or an unknown unit raise UpstreamError.

This module performs no I/O.

CHANGELOG:
- 2026-10-19: Reject value entries that are not objects
- 2026-10-19: Treat null meter values as zero
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from collector.src.errors import UpstreamError
from collector.src.models import EnergyReadings, EnergyUnit, MeterKind, MeterReading

logger = logging.getLogger(__name__)

WH_PER_KWH: float = 1000.0

# ---------------------------------------------------------------------------
# Mapping from meter kind to EnergyReadings field name.
# ---------------------------------------------------------------------------

_KIND_FIELDS: dict[MeterKind, str] = {
    MeterKind.PURCHASED: "purchased",
    MeterKind.FEED_IN: "export",
    MeterKind.PRODUCTION: "production",
    MeterKind.CONSUMPTION: "consumption",
    MeterKind.SELF_CONSUMPTION: "self_consumption",
}


def to_kwh(value: float, unit: EnergyUnit) -> float:
    """Convert *value* expressed in *unit* to kilowatt-hours."""
    if unit is EnergyUnit.WH:
        return value / WH_PER_KWH
    return value


def parse_unit(raw: Any) -> EnergyUnit:
    """Parse the ``unit`` field of an energy response.

    Raises:
        UpstreamError: If the unit is missing or not Wh/kWh.
    """
    try:
        return EnergyUnit(raw)
    except ValueError as exc:
        raise UpstreamError(f"Unsupported energy unit {raw!r}") from exc


def iter_meter_readings(
    meters: list[Any],
    *,
    kind_field: str,
) -> list[MeterReading]:
    """Return one reading per recognized meter entry.

    Args:
        meters: The ``meters`` list of an energy response.
        kind_field: Key holding the meter kind (``type`` or ``meterType``).

    Returns:
        Readings in payload order. Entries with an unrecognized kind or an
        empty value list are skipped.
    """
    readings: list[MeterReading] = []
    for meter in meters:
        if not isinstance(meter, Mapping):
            raise UpstreamError(f"Meter entry is not an object: {meter!r}")

        raw_kind = meter.get(kind_field)
        try:
            kind = MeterKind(raw_kind)
        except ValueError:
            logger.debug("Ignoring unrecognized meter kind %r", raw_kind)
            continue

        values = meter.get("values") or []
        if not values:
            continue

        first = values[0]
        if not isinstance(first, Mapping):
            raise UpstreamError(
                f"Meter '{kind}' value entry is not an object: {first!r}"
            )
        raw_value = first.get("value")
        if raw_value is None:
            value = 0.0
        else:
            try:
                value = float(raw_value)
            except (TypeError, ValueError) as exc:
                raise UpstreamError(
                    f"Meter '{kind}' has non-numeric value {raw_value!r}"
                ) from exc

        readings.append(MeterReading(kind=kind, value=value))
    return readings


def extract_readings(
    details: Mapping[str, Any],
    *,
    kind_field: str,
) -> EnergyReadings:
    """Extract the five energy quantities (kWh) from an energy response body.

    Args:
        details: The object under ``energyDetails`` or
            ``meterEnergyDetails``.
        kind_field: Key holding the meter kind (``type`` or ``meterType``).

    Returns:
        An EnergyReadings with every field populated; missing kinds are 0.0.

    Raises:
        UpstreamError: If the payload does not have the expected shape.
    """
    if not isinstance(details, Mapping):
        raise UpstreamError("Energy details payload is not an object")

    meters = details.get("meters")
    if not isinstance(meters, list):
        raise UpstreamError("Energy details payload has no 'meters' list")

    unit = parse_unit(details.get("unit"))

    fields: dict[str, float] = {}
    for reading in iter_meter_readings(meters, kind_field=kind_field):
        fields[_KIND_FIELDS[reading.kind]] = to_kwh(reading.value, unit)

    return EnergyReadings(**fields)
