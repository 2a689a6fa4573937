"""Tests for the transport and name mapping collaborators."""

from __future__ import annotations

import io
import logging

import pytest
import serial

from storage.name_mapping import NameMapping, load_name_mapping
from storage.transport import SerialTransport, StreamTransport, TransportError


def test_load_name_mapping_reads_id_to_names(tmp_path) -> None:
    path = tmp_path / "mapping.yaml"
    path.write_text("id_to_names:\n  abcd: garden\n  '0001': attic\n")

    mapping = load_name_mapping(path)

    assert mapping.lookup("abcd") == "garden"
    assert mapping.lookup("0001") == "attic"
    assert mapping.lookup("ffff") is None
    assert len(mapping) == 2


def test_missing_mapping_file_is_not_fatal(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        mapping = load_name_mapping(tmp_path / "absent.yaml")

    assert len(mapping) == 0
    assert "Cannot parse mapping file" in caplog.text


def test_malformed_mapping_file_is_not_fatal(tmp_path) -> None:
    path = tmp_path / "mapping.yaml"
    path.write_text("id_to_names: [unterminated\n")

    assert len(load_name_mapping(path)) == 0


def test_mapping_without_table_is_empty(tmp_path) -> None:
    path = tmp_path / "mapping.yaml"
    path.write_text("something_else: 1\n")

    assert len(load_name_mapping(path)) == 0


def test_no_path_yields_empty_mapping() -> None:
    assert load_name_mapping(None).as_dict() == {}
    assert NameMapping().lookup("abcd") is None


def test_stream_transport_strips_line_endings() -> None:
    transport = StreamTransport(io.StringIO("20;01;A;\r\n20;02;B;\n"))

    assert list(transport) == ["20;01;A;", "20;02;B;"]


def test_stream_transport_wraps_read_failures() -> None:
    stream = io.StringIO("20;01;A;\n")
    stream.close()

    with pytest.raises(TransportError):
        list(StreamTransport(stream))


class _FakeSerial:
    def __init__(self, lines: list[bytes]) -> None:
        self._lines = list(lines)
        self.closed = False

    def readline(self) -> bytes:
        if not self._lines:
            raise serial.SerialException("device reports readiness to read but returned no data")
        return self._lines.pop(0)

    def close(self) -> None:
        self.closed = True


def test_serial_transport_decodes_lines_and_fails_on_read_error(monkeypatch) -> None:
    fake = _FakeSerial([b"20;01;Oregon;ID=0001;HUM=50;\r\n", b"", b"20;02;Cresta;\r\n"])
    monkeypatch.setattr("storage.transport.serial.Serial", lambda port, baud: fake)
    transport = SerialTransport("/dev/ttyUSB0", 57600)

    lines = iter(transport)
    assert next(lines) == "20;01;Oregon;ID=0001;HUM=50;"
    assert next(lines) == "20;02;Cresta;"
    with pytest.raises(TransportError):
        next(lines)

    transport.close()
    assert fake.closed is True


def test_serial_transport_open_failure(monkeypatch) -> None:
    def refuse(port, baud):
        raise serial.SerialException(f"could not open port {port}")

    monkeypatch.setattr("storage.transport.serial.Serial", refuse)

    with pytest.raises(TransportError, match="Failed to open device /dev/missing"):
        SerialTransport("/dev/missing").open()
