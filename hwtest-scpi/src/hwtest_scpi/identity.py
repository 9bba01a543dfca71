"""Instrument identification parsing for the IEEE 488.2 ``*IDN?`` query."""

from __future__ import annotations

from dataclasses import dataclass

from hwtest_scpi.errors import ScpiResponseError

_IDN_FIELD_COUNT = 4


@dataclass(frozen=True)
class InstrumentIdentity:
    """The four fields of an ``*IDN?`` reply.

    Attributes:
        manufacturer: Vendor name, e.g. ``"OWON"``.
        model: Model name, e.g. ``"SPE6103"``.
        serial: Serial number.
        firmware: Firmware revision, e.g. ``"FV:V3.7.0"``.
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.model} (S/N {self.serial}, {self.firmware})"


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Split an ``*IDN?`` reply into its fields.

    The reply is ``manufacturer,model,serial,firmware``. Some firmware appends
    further comma-separated revision fields; everything after the third comma
    is kept as the firmware string.

    Raises:
        ScpiResponseError: If the reply has fewer than four fields.
    """
    fields = response.strip().split(",", _IDN_FIELD_COUNT - 1)
    if len(fields) < _IDN_FIELD_COUNT:
        raise ScpiResponseError(
            f"Expected at least {_IDN_FIELD_COUNT} comma-separated fields in *IDN? reply",
            response,
        )
    manufacturer, model, serial, firmware = (field.strip() for field in fields)
    return InstrumentIdentity(manufacturer, model, serial, firmware)
