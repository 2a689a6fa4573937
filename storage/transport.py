"""Line-oriented transports feeding the ingestion loop."""

from __future__ import annotations

import logging
from typing import Iterator, Optional, TextIO

import serial

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when the underlying device or stream can no longer be read."""


class SerialTransport:
    """Reads newline-terminated ASCII messages from an RFLink serial bridge."""

    def __init__(self, port: str, baud_rate: int = 57600) -> None:
        self.port = port
        self.baud_rate = baud_rate
        self._serial: Optional[serial.Serial] = None

    def open(self) -> None:
        try:
            self._serial = serial.Serial(self.port, self.baud_rate)
        except serial.SerialException as exc:
            raise TransportError(f"Failed to open device {self.port}: {exc}") from exc
        logger.info("RFLink connection established on %s", self.port)

    def close(self) -> None:
        if self._serial is not None:
            self._serial.close()
            self._serial = None

    def __iter__(self) -> Iterator[str]:
        if self._serial is None:
            self.open()
        assert self._serial is not None
        while True:
            try:
                raw = self._serial.readline()
            except (serial.SerialException, OSError) as exc:
                raise TransportError(f"Cannot read from serial: {exc}") from exc
            if not raw:
                continue
            yield raw.decode("ascii", errors="replace").rstrip("\r\n")


class StreamTransport:
    """Reads messages from an already open text stream such as stdin."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def close(self) -> None:
        self.stream.close()

    def __iter__(self) -> Iterator[str]:
        try:
            for line in self.stream:
                yield line.rstrip("\r\n")
        except (OSError, ValueError) as exc:
            # ValueError: the stream was closed underneath the reader
            raise TransportError(f"Cannot read from stream: {exc}") from exc
