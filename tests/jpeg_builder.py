"""
Helpers for assembling synthetic JPEG files in tests.
"""
import struct

from jpeg_xmp_reader import XMP_SIGNATURE


SOI = b'\xff\xd8'
EOI = b'\xff\xd9'

# Minimal JFIF APP0 payload
JFIF_PAYLOAD = b'JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'

# Minimal little-endian TIFF header behind the EXIF identifier
EXIF_PAYLOAD = b'Exif\x00\x00II*\x00\x08\x00\x00\x00\x00\x00'

NS_DECLS = (
    'xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#" '
    'xmlns:dc="http://purl.org/dc/elements/1.1/"'
)


def segment(code, payload):
    """Encode one marker segment: FF <code> <length> <payload>."""
    return bytes([0xFF, code]) + struct.pack('>H', len(payload) + 2) + payload


def xmp_packet(body, decls=NS_DECLS, about_attrs=''):
    """Build an xpacket-wrapped x:xmpmeta document around rdf:Description content."""
    return (
        "<?xpacket begin='\ufeff' id='W5M0MpCehiHzreSzNTczkc9d'?>\n"
        "<x:xmpmeta xmlns:x='adobe:ns:meta/' x:xmptk='Adobe XMP Core 5.6-c140'>\n"
        f"<rdf:RDF {decls}>\n"
        f"<rdf:Description rdf:about=''{about_attrs}>\n"
        f"{body}\n"
        "</rdf:Description>\n"
        "</rdf:RDF>\n"
        "</x:xmpmeta>\n"
        + " " * 64 + "\n"
        "<?xpacket end='w'?>"
    )


def xmp_payload(body, decls=NS_DECLS, about_attrs=''):
    """Complete APP1 payload: signature followed by the packet."""
    return XMP_SIGNATURE + xmp_packet(body, decls, about_attrs).encode('utf-8')


def jpeg_bytes(*segments):
    """Assemble SOI, the given segments, a dummy scan and EOI."""
    scan = segment(0xDA, b'\x01\x01\x00\x00\x3f\x00') + b'\x12\x34\xff\x00\x56'
    return SOI + b''.join(segments) + scan + EOI


class CountingSource:
    """In-memory marker source that records how often it is asked for data."""

    def __init__(self, payloads):
        self.payloads = list(payloads)
        self.position = 0
        self.calls = 0
        self.rewinds = 0

    def read_marker(self, marker):
        self.calls += 1
        if self.position >= len(self.payloads):
            return None
        payload = self.payloads[self.position]
        self.position += 1
        return payload

    def rewind(self):
        self.rewinds += 1
        self.position = 0
