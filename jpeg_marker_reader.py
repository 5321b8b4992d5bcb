#!/usr/bin/env python3
"""
JPEG Marker Reader Module

Walks the marker segments at the head of a JPEG file and hands back the raw
payload of each segment that matches a requested marker code.

A JPEG datastream starts with SOI (FF D8) followed by a run of segments of
the form FF <code> <length:uint16be> <payload>, where the length counts the
two length bytes themselves. Metadata segments (APPn) always come before the
entropy-coded image data, so scanning stops at SOS or EOI.
"""

import logging
import struct
from pathlib import Path
from typing import BinaryIO, Optional, Protocol, Union


logger = logging.getLogger(__name__)


# Marker codes (second byte after 0xFF)
SOI = 0xD8
EOI = 0xD9
SOS = 0xDA
TEM = 0x01
APP0 = 0xE0
APP1 = 0xE1

# Markers without a length field or payload
STANDALONE_MARKERS = frozenset([TEM] + list(range(0xD0, 0xD8)))


class JpegMarkerReaderError(Exception):
    """Base class for structural failures while reading a JPEG file."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class JpegMarkerReaderOpenError(JpegMarkerReaderError):
    """Raised when the JPEG file cannot be opened or read."""
    pass


class JpegMarkerReaderDamagedError(JpegMarkerReaderError):
    """
    Raised when the bytes do not form a valid JPEG marker structure.

    This covers a missing SOI, a non-marker byte where a marker is expected,
    an impossible segment length and segments cut short by end of file.
    """
    pass


class MarkerSource(Protocol):
    """Anything that can hand out marker payloads in file order."""

    def read_marker(self, marker: int) -> Optional[bytes]:
        ...


class JpegMarkerReader:
    """
    Sequential reader for JPEG marker segments.

    Each call to read_marker() resumes where the previous call stopped, so
    repeated calls with the same code return successive occurrences. Segments
    of other types are skipped and are not revisited unless the reader is
    rewound.
    """

    def __init__(self, filename: Union[str, Path]):
        """
        Args:
            filename: Path to the JPEG file. The file is opened on first use.
        """
        self.filename = Path(filename)
        self._file: Optional[BinaryIO] = None
        self._exhausted = False
        self._damage: Optional[JpegMarkerReaderDamagedError] = None

    def __enter__(self) -> 'JpegMarkerReader':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def rewind(self):
        """Restart scanning from the first segment after SOI."""
        self._exhausted = False
        self._damage = None
        if self._file is not None:
            self._file.seek(2)

    def read_marker(self, marker: int) -> Optional[bytes]:
        """
        Read the payload of the next segment with the given marker code.

        Args:
            marker: Marker code without the 0xFF prefix (0xE1 for APP1)

        Returns:
            The segment payload (length field excluded), or None when no
            further segment of that type precedes the image data.

        Raises:
            JpegMarkerReaderOpenError: the file could not be opened or read
            JpegMarkerReaderDamagedError: the file is not a valid JPEG stream;
                raised again by every later call until rewind()
        """
        if self._damage is not None:
            raise self._damage
        if self._exhausted:
            return None

        try:
            if self._file is None:
                self._open()
            return self._scan(marker)
        except JpegMarkerReaderDamagedError as e:
            # Nothing past the damage can be trusted until the reader is rewound
            self._damage = e
            raise

    def _scan(self, marker: int) -> Optional[bytes]:
        while True:
            code = self._next_marker_code()
            if code is None or code in (SOS, EOI):
                self._exhausted = True
                return None
            if code in STANDALONE_MARKERS:
                continue
            payload = self._read_payload(code)
            if code == marker:
                return payload
            logger.debug("Skipping marker 0x%02X (%d bytes) in %s", code, len(payload), self.filename)

    def _open(self):
        try:
            self._file = open(self.filename, 'rb')
        except OSError as e:
            raise JpegMarkerReaderOpenError(f"Unable to open {self.filename}: {e}") from e

        if self._read(2) != b'\xff\xd8':
            self.close()
            raise JpegMarkerReaderDamagedError(f"{self.filename} does not start with a JPEG SOI marker")

    def _read(self, count: int) -> bytes:
        try:
            return self._file.read(count)
        except OSError as e:
            raise JpegMarkerReaderOpenError(f"Unable to read {self.filename}: {e}") from e

    def _next_marker_code(self) -> Optional[int]:
        """Return the next marker code, or None on a clean end of file."""
        byte = self._read(1)
        if not byte:
            logger.debug("%s ended without SOS or EOI", self.filename)
            return None
        if byte[0] != 0xFF:
            raise JpegMarkerReaderDamagedError(
                f"Expected marker in {self.filename} at offset {self._file.tell() - 1}, "
                f"found 0x{byte[0]:02X}")

        # Any number of 0xFF fill bytes may precede the code
        while byte[0] == 0xFF:
            byte = self._read(1)
            if not byte:
                raise JpegMarkerReaderDamagedError(f"Truncated marker at end of {self.filename}")
        return byte[0]

    def _read_payload(self, code: int) -> bytes:
        raw_length = self._read(2)
        if len(raw_length) != 2:
            raise JpegMarkerReaderDamagedError(
                f"Truncated length for marker 0x{code:02X} in {self.filename}")
        length = struct.unpack('>H', raw_length)[0]
        if length < 2:
            raise JpegMarkerReaderDamagedError(
                f"Invalid length {length} for marker 0x{code:02X} in {self.filename}")

        payload = self._read(length - 2)
        if len(payload) != length - 2:
            raise JpegMarkerReaderDamagedError(
                f"Marker 0x{code:02X} in {self.filename} is truncated: "
                f"expected {length - 2} bytes, got {len(payload)}")
        return payload
