from __future__ import annotations

from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from artifacts import DEFAULT_CONFIG, QRConfig, encode
from errors import EncodingError


def _image(artifact) -> Image.Image:
    return Image.open(BytesIO(artifact.raw_bytes())).convert("RGB")


def test_default_config_matches_fixed_geometry() -> None:
    assert DEFAULT_CONFIG.width == 300
    assert DEFAULT_CONFIG.margin == 2
    assert DEFAULT_CONFIG.dark == "#000000"
    assert DEFAULT_CONFIG.light == "#FFFFFF"


def test_order_payload_is_byte_identical_across_calls() -> None:
    first = encode("ORDER-1234", DEFAULT_CONFIG)
    second = encode("ORDER-1234", DEFAULT_CONFIG)
    assert first == second
    assert first.raw_bytes() == second.raw_bytes()


def test_png_artifact_is_embeddable_data_uri() -> None:
    artifact = encode("ORDER-1234")
    assert artifact.mime_type == "image/png"
    assert artifact.data.startswith("data:image/png;base64,")
    assert artifact.payload == "ORDER-1234"
    assert artifact.extension == "png"
    assert artifact.raw_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_png_is_exact_width_black_on_white() -> None:
    img = _image(encode("ORDER-1234"))
    assert img.size == (300, 300)
    # Quiet zone corner is light; the finder pattern starts right after the margin.
    assert img.getpixel((0, 0)) == (255, 255, 255)
    # Version 1 with a 2 module margin is 25 modules wide, 12 px per module.
    assert img.getpixel((2 * 12 + 1, 2 * 12 + 1)) == (0, 0, 0)


def test_custom_width_and_colors() -> None:
    img = _image(encode("hello", QRConfig(width=120, dark="#ff0000", light="#00ff00")))
    assert img.size == (120, 120)
    colors = {color for _, color in img.getcolors()}
    assert colors == {(255, 0, 0), (0, 255, 0)}


def test_different_payloads_give_different_images() -> None:
    assert encode("ORDER-1234").data != encode("ORDER-1235").data


def test_svg_format_uses_segno_data_uri() -> None:
    artifact = encode("ORDER-1234", QRConfig(image_format="svg"))
    assert artifact.mime_type == "image/svg+xml"
    assert artifact.data.startswith("data:image/svg+xml")
    assert artifact.extension == "svg"
    assert b"<svg" in artifact.raw_bytes()
    assert artifact == encode("ORDER-1234", QRConfig(image_format="svg"))


@pytest.mark.parametrize("image_format", ["png", "svg"])
def test_payload_over_capacity_raises(image_format: str) -> None:
    # Byte mode at level M tops out at 2331 bytes in version 40.
    with pytest.raises(EncodingError):
        encode("a" * 3000, QRConfig(image_format=image_format))


def test_empty_payload_raises() -> None:
    with pytest.raises(EncodingError):
        encode("")


def test_non_string_payload_raises() -> None:
    with pytest.raises(EncodingError):
        encode(1234)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "config",
    [
        QRConfig(width=0),
        QRConfig(margin=-1),
        QRConfig(error_correction="X"),
        QRConfig(image_format="gif"),
        QRConfig(dark="not-a-color"),
    ],
)
def test_invalid_config_raises(config: QRConfig) -> None:
    with pytest.raises(EncodingError):
        encode("ORDER-1234", config)


def test_encoding_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        encode("")


def test_invalid_version_from_qrcode_is_encoding_error() -> None:
    # qrcode 8 signals overflow as a ValueError about version 41.
    with patch(
        "artifacts.qrcode.QRCode.make",
        side_effect=ValueError("Invalid version (was 41, expected 1 to 40)"),
    ):
        with pytest.raises(EncodingError, match="exceeds QR capacity"):
            encode("ORDER-1234")


@pytest.mark.parametrize("image_format", ["png", "svg"])
def test_lone_surrogate_payload_raises(image_format: str) -> None:
    with pytest.raises(EncodingError):
        encode("ORDER-\ud800", QRConfig(image_format=image_format))
