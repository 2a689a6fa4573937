"""Parsing of RFLink protocol lines into sensor readings.

A message looks like ``20;1A;Oregon_TempHygro;ID=1234;TEMP=010a;BAT=OK;``:
two header fields, the vendor name, a list of ``KEY=VALUE`` pairs and a
trailing terminator field which is ignored.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping

from models.fields import FIELD_SCHEMA, ID_FIELD, FieldKind
from models.records import FieldIssue, ParsedMessage, SensorIdentity
from services.decoder import DecodeError, decode, validate_schema

logger = logging.getLogger(__name__)

_MIN_FIELDS = 3
_VENDOR_INDEX = 2
_FIRST_PAIR_INDEX = 3


class IssueReason(str, Enum):
    missing_equals = "missing_equals"
    unknown_field = "unknown_field"


class ParseError(ValueError):
    """Raised when a line cannot be interpreted as a message at all."""

    reason = "too_few_fields"

    def __init__(self, line: str, field_count: int) -> None:
        self.line = line
        self.field_count = field_count
        super().__init__(
            f"Malformed message: {field_count} fields, at least {_MIN_FIELDS} required"
        )


def parse_message(line: str, schema: Mapping[str, FieldKind] = FIELD_SCHEMA) -> ParsedMessage:
    fields = line.rstrip("\r\n").split(";")
    if len(fields) < _MIN_FIELDS:
        raise ParseError(line, len(fields))

    vendor = fields[_VENDOR_INDEX]
    sensor_id = ""
    values: dict[str, float] = {}
    issues: list[FieldIssue] = []

    for index in range(_FIRST_PAIR_INDEX, len(fields) - 1):
        raw = fields[index]
        key, sep, token = raw.partition("=")
        if not sep:
            logger.warning(
                "Skipping field without value",
                extra={"vendor": vendor, "field_index": index, "token": raw},
            )
            issues.append(FieldIssue(index=index, key=None, reason=IssueReason.missing_equals.value, token=raw))
            continue

        kind = schema.get(key)
        if kind is None:
            logger.warning(
                "Skipping unknown field",
                extra={"vendor": vendor, "field": key, "field_index": index},
            )
            issues.append(FieldIssue(index=index, key=key, reason=IssueReason.unknown_field.value, token=token))
            continue

        if kind is FieldKind.STRING:
            # Only ID is meaningful; other string fields cannot become gauges.
            if key == ID_FIELD:
                sensor_id = token.lower()
            continue

        try:
            value = decode(token, kind)
        except DecodeError as exc:
            logger.warning(
                "Skipping malformed field",
                extra={
                    "vendor": vendor,
                    "field": key,
                    "field_index": index,
                    "token": token,
                    "reason": exc.reason.value,
                },
            )
            issues.append(FieldIssue(index=index, key=key, reason=exc.reason.value, token=token))
            continue

        values[key.lower()] = value

    return ParsedMessage(
        identity=SensorIdentity(vendor=vendor, id=sensor_id),
        values=values,
        issues=issues,
    )


validate_schema(FIELD_SCHEMA)
