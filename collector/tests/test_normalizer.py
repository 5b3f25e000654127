"""
Tests for the energy payload normalizer.

Verifies that the five meter kinds are extracted from both payload shapes
(``type`` and ``meterType``), that missing kinds become 0.0, that Wh values
are converted to kWh, and that malformed payloads raise UpstreamError.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import pytest
from api_payloads import daily_payload, lifetime_payload
from collector.src.errors import UpstreamError
from collector.src.models import EnergyReadings, EnergyUnit
from collector.src.normalizer import extract_readings, parse_unit, to_kwh

_ALL_KINDS = {
    "Purchased": 10.0,
    "FeedIn": 2.0,
    "Consumption": 8.0,
    "Production": 12.0,
    "SelfConsumption": 6.0,
}


def _daily_details(unit: str = "kWh", **values: float | None) -> dict:
    return daily_payload(unit, **values)["energyDetails"]


def _lifetime_details(unit: str = "kWh", **values: float | None) -> dict:
    return lifetime_payload(unit, **values)["meterEnergyDetails"]


# ===========================================================================
# Unit conversion
# ===========================================================================


class TestToKwh:
    """Wh values are divided by 1000, kWh values pass through."""

    def test_wh_divided_by_1000(self) -> None:
        assert to_kwh(12345.0, EnergyUnit.WH) == pytest.approx(12.345)

    def test_kwh_unchanged(self) -> None:
        assert to_kwh(12.345, EnergyUnit.KWH) == 12.345

    def test_parse_known_units(self) -> None:
        assert parse_unit("Wh") is EnergyUnit.WH
        assert parse_unit("kWh") is EnergyUnit.KWH

    @pytest.mark.parametrize("raw", [None, "", "MWh", "wh"])
    def test_parse_unknown_unit_raises(self, raw: object) -> None:
        with pytest.raises(UpstreamError, match="unit"):
            parse_unit(raw)


# ===========================================================================
# Extraction from energyDetails (``type``)
# ===========================================================================


class TestExtractDaily:
    """Daily payloads use the ``type`` field for the meter kind."""

    def test_all_kinds_kwh(self) -> None:
        readings = extract_readings(_daily_details(**_ALL_KINDS), kind_field="type")

        assert readings == EnergyReadings(
            purchased=10.0,
            export=2.0,
            consumption=8.0,
            production=12.0,
            self_consumption=6.0,
        )

    def test_all_kinds_wh_converted(self) -> None:
        raw = {kind: value * 1000 for kind, value in _ALL_KINDS.items()}
        readings = extract_readings(_daily_details("Wh", **raw), kind_field="type")

        assert readings.purchased == pytest.approx(10.0)
        assert readings.export == pytest.approx(2.0)
        assert readings.consumption == pytest.approx(8.0)
        assert readings.production == pytest.approx(12.0)
        assert readings.self_consumption == pytest.approx(6.0)

    def test_missing_kinds_are_zero(self) -> None:
        readings = extract_readings(
            _daily_details(Production=5.5), kind_field="type"
        )

        assert readings.production == 5.5
        assert readings.purchased == 0.0
        assert readings.export == 0.0
        assert readings.consumption == 0.0
        assert readings.self_consumption == 0.0

    def test_no_meters_is_all_zero(self) -> None:
        readings = extract_readings(_daily_details(), kind_field="type")
        assert readings == EnergyReadings()

    def test_empty_values_list_is_zero(self) -> None:
        details = {
            "unit": "Wh",
            "meters": [
                {"type": "Purchased", "values": []},
                {"type": "Production", "values": [{"value": 3000}]},
            ],
        }
        readings = extract_readings(details, kind_field="type")

        assert readings.purchased == 0.0
        assert readings.production == pytest.approx(3.0)

    def test_null_value_is_zero(self) -> None:
        readings = extract_readings(
            _daily_details(Consumption=None), kind_field="type"
        )
        assert readings.consumption == 0.0

    def test_only_first_value_used(self) -> None:
        details = {
            "unit": "kWh",
            "meters": [
                {"type": "FeedIn", "values": [{"value": 4.0}, {"value": 99.0}]},
            ],
        }
        readings = extract_readings(details, kind_field="type")
        assert readings.export == 4.0

    def test_unrecognized_kind_ignored(self) -> None:
        readings = extract_readings(
            _daily_details(Purchased=1.0, Battery=50.0), kind_field="type"
        )
        assert readings == EnergyReadings(purchased=1.0)

    def test_wrong_kind_field_ignores_everything(self) -> None:
        """A ``meterType`` payload read with ``type`` matches no meters."""
        readings = extract_readings(
            _lifetime_details(**_ALL_KINDS), kind_field="type"
        )
        assert readings == EnergyReadings()


# ===========================================================================
# Extraction from meterEnergyDetails (``meterType``)
# ===========================================================================


class TestExtractLifetime:
    """Lifetime payloads use ``meterType`` but map onto the same kinds."""

    def test_all_kinds_wh_converted(self) -> None:
        raw = {kind: value * 1000 for kind, value in _ALL_KINDS.items()}
        readings = extract_readings(
            _lifetime_details("Wh", **raw), kind_field="meterType"
        )

        assert readings.purchased == pytest.approx(10.0)
        assert readings.export == pytest.approx(2.0)
        assert readings.consumption == pytest.approx(8.0)
        assert readings.production == pytest.approx(12.0)
        assert readings.self_consumption == pytest.approx(6.0)

    def test_same_values_as_daily_shape(self) -> None:
        daily = extract_readings(_daily_details(**_ALL_KINDS), kind_field="type")
        lifetime = extract_readings(
            _lifetime_details(**_ALL_KINDS), kind_field="meterType"
        )
        assert daily == lifetime


# ===========================================================================
# Malformed payloads
# ===========================================================================


class TestMalformedPayloads:
    """Shape mismatches raise UpstreamError."""

    def test_missing_meters_raises(self) -> None:
        with pytest.raises(UpstreamError, match="meters"):
            extract_readings({"unit": "Wh"}, kind_field="type")

    def test_details_not_an_object_raises(self) -> None:
        with pytest.raises(UpstreamError):
            extract_readings(["not", "a", "dict"], kind_field="type")  # type: ignore[arg-type]

    def test_meter_not_an_object_raises(self) -> None:
        with pytest.raises(UpstreamError):
            extract_readings({"unit": "Wh", "meters": ["x"]}, kind_field="type")

    def test_non_numeric_value_raises(self) -> None:
        with pytest.raises(UpstreamError, match="non-numeric"):
            extract_readings(
                {"unit": "kWh", "meters": [{"type": "Purchased", "values": [{"value": "abc"}]}]},
                kind_field="type",
            )

    def test_unknown_unit_raises(self) -> None:
        with pytest.raises(UpstreamError, match="unit"):
            extract_readings(_daily_details("MWh", Purchased=1.0), kind_field="type")

    def test_value_entry_not_an_object_raises(self) -> None:
        """A bare number in ``values`` is malformed, not a zero reading."""
        with pytest.raises(UpstreamError, match="not an object"):
            extract_readings(
                {"unit": "kWh", "meters": [{"type": "Purchased", "values": [12.5]}]},
                kind_field="type",
            )

    def test_explicit_null_value_is_zero(self) -> None:
        readings = extract_readings(
            {"unit": "kWh", "meters": [{"type": "Purchased", "values": [{"value": None}]}]},
            kind_field="type",
        )
        assert readings.purchased == 0.0
