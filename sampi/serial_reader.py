# Serial Reader for SAMPi
# Reads ECR output line by line from a serial port or a captured stream

import re
import sys
import logging
from collections import deque
from typing import BinaryIO, Deque, Optional

import serial

from .exceptions import SourceError

logger = logging.getLogger(__name__)

# The ECR ends lines with CR, LF or both
EOL_PATTERN = re.compile(rb'\r\n|\r|\n')

# Bytes are decoded one-to-one so the 0x9c pound sign survives for the parser
ENCODING = 'latin-1'


class LineBuffer:
    """Accumulates raw bytes and hands out complete, non-empty lines"""

    def __init__(self):
        self._pending = b''
        self._lines: Deque[str] = deque()

    def feed(self, data: bytes):
        parts = EOL_PATTERN.split(self._pending + data)
        # The last part has no terminator yet
        self._pending = parts.pop()
        for part in parts:
            if part:
                self._lines.append(part.decode(ENCODING))

    def pop(self) -> Optional[str]:
        if self._lines:
            return self._lines.popleft()
        return None

    def drain(self) -> Optional[str]:
        """Return the unterminated remainder as a final line"""
        data, self._pending = self._pending, b''
        return data.decode(ENCODING) if data else None


class SerialLineReader:
    """Non-blocking line reader for the ECR serial connection (8N1, no handshake)"""

    exhausted = False

    def __init__(self, port: str = '/dev/ttyUSB0', baudrate: int = 9600):
        self.port = port
        self.baudrate = baudrate
        self._serial = None
        self._buffer = LineBuffer()

    def open(self):
        logger.info("Initialising serial port %s...", self.port)
        try:
            self._serial = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                timeout=0,
            )
        except serial.SerialException as e:
            logger.error("Error opening serial port %s: %s", self.port, e)
            raise SourceError(f"Error opening serial port {self.port}: {e}") from e
        logger.info("Opened serial port %s at %sBPS", self.port, self.baudrate)

    def read_line(self) -> Optional[str]:
        """Return the next complete line, or None if none has arrived yet"""
        if self._serial is None:
            raise SourceError("Serial port has not been opened")

        line = self._buffer.pop()
        if line is not None:
            return line

        try:
            waiting = self._serial.in_waiting
            if waiting:
                self._buffer.feed(self._serial.read(waiting))
        except serial.SerialException as e:
            logger.error("Serial connection lost on %s: %s", self.port, e)
            raise SourceError(f"Serial connection lost on {self.port}: {e}") from e

        return self._buffer.pop()

    def close(self):
        if self._serial is not None:
            self._serial.close()
            logger.info("Serial port %s closed", self.port)
        self._serial = None


class StreamLineReader:
    """Replays captured ECR output from a file ('-' for stdin)"""

    def __init__(self, path: str = '-', stream: Optional[BinaryIO] = None):
        self.path = path
        self._stream = stream
        self._owns_stream = False
        self._buffer = LineBuffer()
        self.exhausted = False

    def open(self):
        if self._stream is not None:
            return
        if self.path == '-':
            self._stream = sys.stdin.buffer
            logger.info("Reading ECR data from stdin")
            return
        try:
            self._stream = open(self.path, 'rb')
        except OSError as e:
            logger.error("Error opening replay file %s: %s", self.path, e)
            raise SourceError(f"Error opening replay file {self.path}: {e}") from e
        self._owns_stream = True
        logger.info("Replaying ECR data from %s", self.path)

    def read_line(self) -> Optional[str]:
        while not self.exhausted:
            line = self._buffer.pop()
            if line is not None:
                return line
            data = self._stream.readline()
            if data:
                self._buffer.feed(data)
            else:
                self.exhausted = True
                return self._buffer.drain()
        return self._buffer.pop()

    def close(self):
        if self._owns_stream and self._stream is not None:
            self._stream.close()
        self._stream = None
        self._owns_stream = False
