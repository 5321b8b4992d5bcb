"""
Pytest configuration and shared fixtures for the JPEG XMP reader tests.
"""
import pytest

from jpeg_builder import EXIF_PAYLOAD, JFIF_PAYLOAD, jpeg_bytes, segment, xmp_payload


@pytest.fixture
def write_jpeg(tmp_path):
    """Factory fixture writing raw bytes to a .jpg file and returning its path."""
    counter = [0]

    def _write(data, name=None):
        counter[0] += 1
        path = tmp_path / (name or f"image{counter[0]}.jpg")
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def sunset_body():
    """Description content with two titles, a subject bag and a creator."""
    return (
        "<dc:title><rdf:Alt>"
        "<rdf:li xml:lang='x-default'>Sunset</rdf:li>"
        "<rdf:li xml:lang='fr'>Lever</rdf:li>"
        "</rdf:Alt></dc:title>\n"
        "<dc:description><rdf:Alt>"
        "<rdf:li xml:lang='x-default'>Sun going down over the bay</rdf:li>"
        "</rdf:Alt></dc:description>\n"
        "<dc:subject><rdf:Bag>"
        "<rdf:li>sky</rdf:li><rdf:li>sea</rdf:li><rdf:li>evening</rdf:li>"
        "</rdf:Bag></dc:subject>\n"
        "<dc:creator><rdf:Seq><rdf:li>Jane Doe</rdf:li></rdf:Seq></dc:creator>"
    )


@pytest.fixture
def sunset_jpeg(write_jpeg, sunset_body):
    """JPEG with JFIF, EXIF and then XMP segments."""
    return write_jpeg(jpeg_bytes(
        segment(0xE0, JFIF_PAYLOAD),
        segment(0xE1, EXIF_PAYLOAD),
        segment(0xE1, xmp_payload(sunset_body)),
    ))


@pytest.fixture
def plain_jpeg(write_jpeg):
    """JPEG with JFIF and EXIF but no XMP."""
    return write_jpeg(jpeg_bytes(
        segment(0xE0, JFIF_PAYLOAD),
        segment(0xE1, EXIF_PAYLOAD),
    ))
