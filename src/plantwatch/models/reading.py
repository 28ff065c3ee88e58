"""Pydantic v2 models for plant telemetry readings.

The gateway publishes one payload per sample::

    {
      "timestamp": "2025-11-05 09:46:46",
      "offtake": {
        "reservoir_water_level_1": {"value": 2.654, "unit": "m"},
        ...
      }
    }

Channel keys keep the gateway's wire names (mixed case for the offtake
sites) via field aliases; Python attribute names are snake_case.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from plantwatch.errors import DataFormatError


class Channel(BaseModel):
    """A single sensor measurement."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    value: float = Field(strict=True)
    unit: str = Field(strict=True)


class TelemetryReading(BaseModel):
    """One immutable sample of every plant channel.

    ``timestamp`` is opaque: it is carried through for display and never
    parsed.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    timestamp: str = Field(strict=True)

    # Reservoir
    reservoir_water_level_1: Channel = Field(title="Water level")
    reservoir_turbidity_1: Channel = Field(title="Turbidity")
    reservoir_ph_1: Channel = Field(title="pH")
    reservoir_chlorine_1: Channel = Field(title="Chlorine")
    reservoir_temperature_1: Channel = Field(title="Temperature")

    # Distribution
    matang_bayu_flow: Channel = Field(alias="Matang_Bayu_Flow", title="Matang Bayu flow")
    matang_bayu_cubic: Channel = Field(alias="Matang_Bayu_Cubic", title="Matang Bayu volume")
    lhoksukon_flow: Channel = Field(alias="Lhoksukon_Flow", title="Lhoksukon flow")
    lhoksukon_cubic: Channel = Field(alias="Lhoksukon_Cubic", title="Lhoksukon volume")
    matang_bayu_pressure: Channel = Field(
        alias="Matang_Bayu_Pressure", title="Matang Bayu pressure"
    )
    lhoksukon_pressure: Channel = Field(alias="Lhoksukon_Pressure", title="Lhoksukon pressure")
    brigif_pressure: Channel = Field(alias="Brigif_Pressure", title="Brigif pressure")

    @classmethod
    def from_payload(cls, raw: Any) -> TelemetryReading:
        """Validate a raw gateway payload and build a reading.

        Accepts a mapping or its JSON encoding (``str``/``bytes``).  Channels
        may be nested under ``offtake`` (the gateway's layout) or sit at the
        top level.

        Raises :class:`DataFormatError` if the payload is not an object, a
        required channel is missing, or any value fails validation.
        """
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise DataFormatError("Payload is not valid UTF-8") from exc
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise DataFormatError(f"Payload is not valid JSON: {exc}") from exc
        if not isinstance(raw, Mapping):
            raise DataFormatError(f"Expected a JSON object, got {type(raw).__name__}")

        channels = raw.get("offtake", raw)
        if not isinstance(channels, Mapping):
            raise DataFormatError(f"'offtake' must be an object, got {type(channels).__name__}")

        missing = [name for name in CHANNEL_NAMES if name not in channels]
        if missing:
            raise DataFormatError(
                f"Payload missing channel(s): {', '.join(missing)}", missing=missing
            )

        data: dict[str, Any] = {name: channels[name] for name in CHANNEL_NAMES}
        data["timestamp"] = raw.get("timestamp")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
            raise DataFormatError(f"Invalid telemetry payload: {', '.join(fields)}") from exc

    def channels(self) -> dict[str, Channel]:
        """Return a fresh ``{wire_name: Channel}`` mapping in display order."""
        return {wire: getattr(self, attr) for wire, attr in _WIRE_TO_ATTR.items()}

    def channel(self, name: str) -> Channel:
        """Look up a channel by wire name (``KeyError`` if unknown)."""
        return getattr(self, _WIRE_TO_ATTR[name])  # type: ignore[no-any-return]

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the gateway's wire layout."""
        return {
            "timestamp": self.timestamp,
            "offtake": {
                wire: channel.model_dump() for wire, channel in self.channels().items()
            },
        }


_WIRE_TO_ATTR: dict[str, str] = {
    (info.alias or attr): attr
    for attr, info in TelemetryReading.model_fields.items()
    if attr != "timestamp"
}

CHANNEL_NAMES: tuple[str, ...] = tuple(_WIRE_TO_ATTR)
"""Wire names of every required channel, in display order."""

CHANNEL_LABELS: dict[str, str] = {
    wire: TelemetryReading.model_fields[attr].title or wire for wire, attr in _WIRE_TO_ATTR.items()
}

# Last known plant values shipped with the viewer; shown until live data arrives.
DEFAULT_READING = TelemetryReading.from_payload(
    {
        "timestamp": "2025-11-05 09:46:46",
        "offtake": {
            "reservoir_water_level_1": {"value": 2.654, "unit": "m"},
            "reservoir_turbidity_1": {"value": 4.326, "unit": "NTU"},
            "reservoir_ph_1": {"value": 7.701, "unit": "pH"},
            "reservoir_chlorine_1": {"value": 0.217, "unit": "mg/L"},
            "reservoir_temperature_1": {"value": 27.482, "unit": "C"},
            "Matang_Bayu_Flow": {"value": 267.882, "unit": "m3/h"},
            "Matang_Bayu_Cubic": {"value": 4016.091, "unit": "m3"},
            "Lhoksukon_Flow": {"value": 146.174, "unit": "m3/h"},
            "Lhoksukon_Cubic": {"value": 2678.064, "unit": "m3"},
            "Matang_Bayu_Pressure": {"value": 2.789, "unit": "bar"},
            "Lhoksukon_Pressure": {"value": 3.319, "unit": "bar"},
            "Brigif_Pressure": {"value": 3.361, "unit": "bar"},
        },
    }
)
