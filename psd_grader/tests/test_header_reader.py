import pytest

from psd_grader.errors import HeaderError, InvalidHeaderError, InvalidSignatureError, TooSmallError
from psd_grader.header_reader import color_mode_name, read_basic_info
from psd_grader.tests.psd_fixtures import build_header


def test_reads_basic_info_from_valid_header():
    info = read_basic_info(build_header(width=100, height=50, depth=8, color_mode=3))

    assert info.width == 100
    assert info.height == 50
    assert info.bit_depth == 8
    assert info.color_mode == "RGB"
    assert info.version == 1
    assert info.channels == 3


def test_trailing_bytes_are_ignored():
    info = read_basic_info(build_header(color_mode=4, channels=4, trailing=b"\x00" * 64))

    assert info.color_mode == "CMYK"
    assert info.raw_color_mode == 4


@pytest.mark.parametrize("signature", [b"8BPX", b"\x00\x00\x00\x00", b"PK\x03\x04"])
def test_wrong_signature_is_rejected(signature):
    with pytest.raises(InvalidSignatureError):
        read_basic_info(build_header(signature=signature))


def test_short_buffer_is_too_small():
    with pytest.raises(TooSmallError):
        read_basic_info(build_header()[:25])

    with pytest.raises(TooSmallError):
        read_basic_info(b"")


@pytest.mark.parametrize(
    "overrides",
    [
        {"width": 0},
        {"width": 40000},
        {"height": 0},
        {"height": 30001},
        {"depth": 3},
        {"depth": 24},
    ],
)
def test_out_of_range_header_values_are_invalid(overrides):
    with pytest.raises(InvalidHeaderError):
        read_basic_info(build_header(**overrides))


def test_maximum_dimension_is_accepted():
    info = read_basic_info(build_header(width=30000, height=30000, depth=16))

    assert (info.width, info.height, info.bit_depth) == (30000, 30000, 16)


def test_header_errors_share_a_base_class():
    assert issubclass(TooSmallError, HeaderError)
    assert issubclass(InvalidSignatureError, HeaderError)
    assert issubclass(InvalidHeaderError, HeaderError)


def test_color_mode_names():
    assert color_mode_name(0) == "Bitmap"
    assert color_mode_name(1) == "Grayscale"
    assert color_mode_name(9) == "Lab"
    assert color_mode_name(5) == "Unknown (5)"
    assert color_mode_name(None) == "Unknown"
