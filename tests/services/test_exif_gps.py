"""
Unit tests for EXIF GPS extraction.
"""

import io

import pytest
from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from farmer_assistant.services.exif_gps import (
    GPS_INFO_TAG,
    convert_dms_to_dd,
    extract_gps,
    gps_from_exif,
)


def jpeg_with_gps(gps_ifd=None) -> bytes:
    exif = Image.Exif()
    if gps_ifd is not None:
        exif[GPS_INFO_TAG] = gps_ifd
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), "green").save(buffer, format="JPEG", exif=exif)
    return buffer.getvalue()


class TestConvertDmsToDd:
    def test_north_is_positive(self):
        assert convert_dms_to_dd((17, 7, 58.2), "N") == pytest.approx(17.132833, abs=1e-6)

    def test_south_and_west_are_negative(self):
        assert convert_dms_to_dd((33, 52, 4), "S") == pytest.approx(-33.867778, abs=1e-6)
        assert convert_dms_to_dd((151, 12, 36), "W") == pytest.approx(-151.21, abs=1e-6)

    def test_rationals_are_accepted(self):
        dms = (IFDRational(78, 1), IFDRational(12, 1), IFDRational(173, 10))
        assert convert_dms_to_dd(dms, "E") == pytest.approx(78.204806, abs=1e-6)

    def test_bytes_reference(self):
        assert convert_dms_to_dd((10, 30, 0), b"S\x00") == pytest.approx(-10.5)


class TestGpsFromExif:
    def test_complete_tags(self):
        coords = gps_from_exif({1: "N", 2: (17, 7, 58.2), 3: "E", 4: (78, 12, 17.3)})

        assert coords.latitude == pytest.approx(17.1328, abs=1e-4)
        assert coords.longitude == pytest.approx(78.2048, abs=1e-4)

    @pytest.mark.parametrize("missing", [1, 2, 3, 4])
    def test_any_missing_tag_gives_none(self, missing):
        tags = {1: "N", 2: (17, 7, 58.2), 3: "E", 4: (78, 12, 17.3)}
        del tags[missing]
        assert gps_from_exif(tags) is None

    def test_malformed_triple_gives_none(self):
        assert gps_from_exif({1: "N", 2: (17, 7), 3: "E", 4: (78, 12, 17.3)}) is None


class TestExtractGps:
    def test_reads_coordinates_from_jpeg(self):
        data = jpeg_with_gps(
            {
                1: "N",
                2: (IFDRational(17, 1), IFDRational(7, 1), IFDRational(582, 10)),
                3: "E",
                4: (IFDRational(78, 1), IFDRational(12, 1), IFDRational(173, 10)),
            }
        )

        coords = extract_gps(data)

        assert coords is not None
        assert coords.latitude == pytest.approx(17.1328, abs=1e-4)
        assert coords.longitude == pytest.approx(78.2048, abs=1e-4)

    def test_image_without_gps(self):
        assert extract_gps(jpeg_with_gps()) is None

    def test_not_an_image(self):
        assert extract_gps(b"definitely not a jpeg") is None
