import base64
import io

from PIL import Image

from psd_grader.preview import placeholder_thumbnail, thumbnail_data_url


def _decode(data_url):
    assert data_url.startswith("data:image/png;base64,")
    return Image.open(io.BytesIO(base64.b64decode(data_url.split(",", 1)[1])))


def test_composite_is_scaled_to_thumbnail():
    image = _decode(thumbnail_data_url(Image.new("RGB", (400, 200), "red")))

    assert image.size == (100, 50)


def test_cmyk_composite_is_converted():
    image = _decode(thumbnail_data_url(Image.new("CMYK", (50, 50))))

    assert image.mode == "RGB"


def test_non_images_have_no_thumbnail():
    assert thumbnail_data_url(None) is None
    assert thumbnail_data_url(b"bytes") is None


def test_placeholder_uses_mode_colour():
    image = _decode(placeholder_thumbnail(1000, 500, "CMYK")).convert("RGB")

    assert image.size == (100, 100)
    assert image.getpixel((0, 0)) == (0xF0, 0xF0, 0xF0)
    assert image.getpixel((15, 35)) == (0x00, 0xBC, 0xD4)


def test_placeholder_needs_positive_dimensions():
    assert placeholder_thumbnail(0, 100, "RGB") is None
