#!/usr/bin/env python3
"""
JPEG XMP Reader Module

This module reads Photoshop-style XMP (Extensible Metadata Platform) metadata
embedded in a JPEG file and answers Dublin Core field queries against it.

XMP lives in an APP1 segment whose payload starts with the Adobe namespace
URL followed by a NUL byte. EXIF uses the same APP1 marker, so every APP1
segment is checked for that signature and the non-matching ones are skipped.
The XML packet is then cut out of the payload, parsed with ElementTree, and
queried for title, description, subject and creator values.
"""

import io
import logging
import os
import re
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from jpeg_marker_reader import (
    APP1,
    JpegMarkerReader,
    JpegMarkerReaderError,
    MarkerSource,
)


logger = logging.getLogger(__name__)


XMP_SIGNATURE = b'http://ns.adobe.com/xap/1.0/\x00'
XML_DECLARATION = b"<?xml version='1.0'?>\n"

# The packet is surrounded by xpacket processing instructions, padding and
# whatever else the writer felt like adding; only x:xmpmeta is kept.
XMPMETA_PATTERN = re.compile(rb'(<x:xmpmeta.*?>.*?</x:xmpmeta>)', re.DOTALL)


def _direct_text(element: ET.Element) -> str:
    """Text directly inside element, skipping the text of child elements."""
    parts = [element.text or '']
    parts.extend(child.tail or '' for child in element)
    return ''.join(parts)


class XmpField(Enum):
    """Dublin Core fields that can be queried."""
    TITLE = "title"
    DESCRIPTION = "description"
    SUBJECT = "subject"
    CREATOR = "creator"


class XmpState(Enum):
    """Progress of the one-time scan for XMP data."""
    UNATTEMPTED = "unattempted"
    PRESENT = "present"
    ABSENT = "absent"


@dataclass
class XmpDocument:
    """
    Parsed XMP packet.

    namespaces holds every prefix declared anywhere in the packet, so a
    query can use a prefix no matter which element declared it.
    """
    root: ET.Element
    namespaces: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_packet(cls, packet: bytes) -> 'XmpDocument':
        """
        Parse an XML packet and collect its namespace declarations.

        Raises:
            ET.ParseError: if the packet is not well-formed XML
        """
        namespaces = {}
        events = ET.iterparse(io.BytesIO(packet), events=('start-ns',))
        for _event, (prefix, uri) in events:
            # First declaration of a prefix wins
            namespaces.setdefault(prefix, uri)
        return cls(root=events.root, namespaces=namespaces)

    def findall(self, path: str) -> List[ET.Element]:
        return self.root.findall(path, self.namespaces)

    def field_values(self, xmp_field: XmpField) -> List[str]:
        """Return the rdf:li texts under every dc:<field> element, in document order."""
        if 'dc' not in self.namespaces or 'rdf' not in self.namespaces:
            return []

        values = []
        seen = set()
        for item in self.findall(f'.//dc:{xmp_field.value}//rdf:li'):
            # Nested dc elements would otherwise report the same item twice
            if id(item) in seen:
                continue
            seen.add(id(item))
            values.append(_direct_text(item))
        return values


class JpegXmpReader:
    """
    Read Photoshop-style XMP metadata from a JPEG file with reasonable efficiency.

    The file is scanned at most once. A file without XMP is remembered as such,
    so further field lookups return None without touching the file again.
    Structural problems with the file itself (cannot open, not a JPEG) raise
    JpegMarkerReaderError subclasses.
    """

    def __init__(self, source: Union[str, Path, MarkerSource]):
        """
        Args:
            source: Path to a JPEG file, or an object providing read_marker().
                A reader created from a path is owned and closed by this object.
        """
        if hasattr(source, 'read_marker'):
            self._source = source
            self._owns_source = False
        else:
            self._source = JpegMarkerReader(source)
            self._owns_source = True
        self._state = XmpState.UNATTEMPTED
        self._document: Optional[XmpDocument] = None

    def __enter__(self) -> 'JpegXmpReader':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        if self._owns_source:
            self._source.close()

    @property
    def state(self) -> XmpState:
        return self._state

    def reset(self):
        """Forget the cached result so the next lookup scans the file again."""
        self._state = XmpState.UNATTEMPTED
        self._document = None
        if hasattr(self._source, 'rewind'):
            self._source.rewind()

    def read_xmp(self, refresh: bool = False) -> Optional[XmpDocument]:
        """
        Read the XMP metadata marker in the file.

        You don't have to call this directly unless you want the parsed
        document itself; the get_* methods call it on first use. It is also
        a good way to check whether a valid XMP packet is present at all.

        Args:
            refresh: Discard any cached result and scan again

        Returns:
            The parsed XmpDocument, or None if the file has no usable XMP.

        Raises:
            JpegMarkerReaderOpenError: the file could not be opened
            JpegMarkerReaderDamagedError: the file is not a valid JPEG stream
        """
        if refresh:
            self.reset()
        if self._state is XmpState.UNATTEMPTED:
            self._document = self._load_document()
            self._state = XmpState.ABSENT if self._document is None else XmpState.PRESENT
        return self._document

    def _locate_xmp_segment(self) -> Optional[bytes]:
        """Return the first XMP APP1 payload with the signature stripped."""
        while True:
            data = self._source.read_marker(APP1)
            if data is None:
                return None
            if data.startswith(XMP_SIGNATURE):
                return data[len(XMP_SIGNATURE):]
            # Keep looking; EXIF and extended XMP share the APP1 marker
            logger.debug("Skipping APP1 segment without XMP signature (%d bytes)", len(data))

    def _load_document(self) -> Optional[XmpDocument]:
        data = self._locate_xmp_segment()
        if data is None:
            logger.debug("No XMP APP1 segment found")
            return None

        match = XMPMETA_PATTERN.search(data)
        if not match:
            logger.debug("XMP segment has no x:xmpmeta element")
            return None

        try:
            return XmpDocument.from_packet(XML_DECLARATION + match.group(1))
        except ET.ParseError as e:
            logger.debug("Invalid XML in XMP packet: %s", e)
            return None

    def get_field(self, name: Union[str, XmpField]) -> Optional[List[str]]:
        """
        Retrieve all instances of a Dublin Core field.

        Args:
            name: One of title, description, subject, creator

        Returns:
            List of values in document order, or None if the file has no XMP
            data or the field has no values.

        Raises:
            ValueError: if name is not a supported field
        """
        xmp_field = XmpField(name)
        document = self.read_xmp()
        if document is None:
            return None
        return document.field_values(xmp_field) or None

    def get_field_joined(self, name: Union[str, XmpField]) -> Optional[str]:
        """Retrieve all instances of a field joined by newlines, or None."""
        values = self.get_field(name)
        if values:
            return "\n".join(values)
        return None

    def get_titles(self) -> Optional[List[str]]:
        return self.get_field(XmpField.TITLE)

    def get_title(self) -> Optional[str]:
        return self.get_field_joined(XmpField.TITLE)

    def get_descriptions(self) -> Optional[List[str]]:
        return self.get_field(XmpField.DESCRIPTION)

    def get_description(self) -> Optional[str]:
        return self.get_field_joined(XmpField.DESCRIPTION)

    def get_subjects(self) -> Optional[List[str]]:
        return self.get_field(XmpField.SUBJECT)

    def get_subject(self) -> Optional[str]:
        return self.get_field_joined(XmpField.SUBJECT)

    def get_creators(self) -> Optional[List[str]]:
        return self.get_field(XmpField.CREATOR)

    def get_creator(self) -> Optional[str]:
        return self.get_field_joined(XmpField.CREATOR)


def format_metadata(path: Path, reader: JpegXmpReader) -> str:
    """Format the Dublin Core fields of one file for human-readable output."""
    lines = [f"=== XMP Metadata: {path.name} ==="]
    if reader.read_xmp() is None:
        lines.append("No XMP metadata")
        return "\n".join(lines)

    for xmp_field in XmpField:
        value = reader.get_field_joined(xmp_field)
        if value is None:
            continue
        # Indent continuation lines of multi-valued fields
        lines.append(f"  {xmp_field.value}: " + value.replace("\n", "\n    "))
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line interface for the JPEG XMP reader."""
    args = list(sys.argv[1:] if argv is None else argv)

    debug = bool(os.environ.get("JPEG_XMP_DEBUG"))
    for flag in ('-v', '--verbose'):
        while flag in args:
            args.remove(flag)
            debug = True
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if not args:
        print("Usage:")
        print("  jpeg-xmp [-v] <jpeg_file>      # Show XMP Dublin Core fields")
        print("  jpeg-xmp [-v] <jpeg_dir>       # Show fields for every JPEG in directory")
        print("")
        print("Set JPEG_XMP_DEBUG=1 or pass -v for debug logging.")
        return 1

    path = Path(args[0])
    if path.is_file():
        jpeg_files = [path]
    elif path.is_dir():
        jpeg_files = sorted(p for p in path.iterdir()
                            if p.suffix.lower() in ('.jpg', '.jpeg'))
        if not jpeg_files:
            print(f"No JPEG files found in {path}")
            return 0
        print(f"Found {len(jpeg_files)} JPEG files to read\n")
    else:
        print(f"Error: {path} is not a valid file or directory")
        return 1

    for jpeg_file in jpeg_files:
        try:
            with JpegXmpReader(jpeg_file) as reader:
                print(format_metadata(jpeg_file, reader))
        except JpegMarkerReaderError as e:
            print(f"Error reading {jpeg_file}: {e}")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
