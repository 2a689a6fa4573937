"""Field schema for the RFLink serial protocol.

Keys and kinds follow the RFLink protocol reference
(http://www.rflink.nl/blog2/protref).
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class FieldKind(str, Enum):
    """Decoding rule applied to the raw token of a protocol field."""

    STRING = "string"
    BATTERY = "battery"
    ONOFF = "onoff"
    HEX = "hex"
    HEX_DIV10 = "hex_div10"
    INT = "int"
    TEMP = "temp"


FIELD_SCHEMA: Mapping[str, FieldKind] = MappingProxyType(
    {
        "ID": FieldKind.STRING,  # rolling code and/or channel number
        "AWINSP": FieldKind.HEX_DIV10,  # average wind speed, km/h
        "BARO": FieldKind.HEX,
        "BAT": FieldKind.BATTERY,
        "BFORECAST": FieldKind.HEX,  # 0=unknown 1=sunny 2=partly cloudy 3=cloudy 4=rain
        "CHIME": FieldKind.HEX,  # melody number
        "CMD": FieldKind.STRING,
        "CO2": FieldKind.INT,
        "CURRENT": FieldKind.INT,
        "CURRENT2": FieldKind.INT,
        "CURRENT3": FieldKind.INT,
        "DIST": FieldKind.INT,
        "HSTATUS": FieldKind.INT,  # 0=normal 1=comfortable 2=dry 3=wet
        "HUM": FieldKind.INT,  # relative humidity, 0-100
        "KWATT": FieldKind.HEX,
        "LUX": FieldKind.HEX,
        "METER": FieldKind.INT,
        "PIR": FieldKind.ONOFF,
        "RAIN": FieldKind.HEX_DIV10,  # total rain, mm
        "RAINRATE": FieldKind.HEX_DIV10,
        "RGBW": FieldKind.STRING,
        "SET_LEVEL": FieldKind.INT,  # dimming level, 0-15
        "SMOKEALERT": FieldKind.ONOFF,
        "SOUND": FieldKind.INT,
        "SWITCH": FieldKind.STRING,
        "TEMP": FieldKind.TEMP,  # celsius, sign in bit 15, tenths of a degree
        "UV": FieldKind.HEX,
        "VOLT": FieldKind.INT,
        "WATT": FieldKind.INT,
        "WINCHL": FieldKind.TEMP,  # wind chill
        "WINDIR": FieldKind.INT,  # 0-15, steps of 22.5 degrees
        "WINGS": FieldKind.HEX,  # wind gust, km/h
        "WINSP": FieldKind.HEX_DIV10,
        "WINTMP": FieldKind.TEMP,
    }
)

ID_FIELD = "ID"
