import base64
import logging
from dataclasses import dataclass
from io import BytesIO
from urllib.parse import unquote_to_bytes

import qrcode
import segno
from PIL import Image, ImageColor
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from qrcode.exceptions import DataOverflowError

from errors import EncodingError

logger = logging.getLogger(__name__)

ERROR_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

MIME_TYPES = {
    "png": "image/png",
    "svg": "image/svg+xml",
}


@dataclass(frozen=True)
class QRConfig:
    width: int = 300
    margin: int = 2
    dark: str = "#000000"
    light: str = "#FFFFFF"
    error_correction: str = "M"
    image_format: str = "png"

    def validate(self) -> None:
        if self.width <= 0:
            raise EncodingError("width must be positive")
        if self.margin < 0:
            raise EncodingError("margin must not be negative")
        if self.error_correction not in ERROR_LEVELS:
            raise EncodingError(f"unknown error correction level {self.error_correction!r}")
        if self.image_format not in MIME_TYPES:
            raise EncodingError(f"unsupported image format {self.image_format!r}")
        for color in (self.dark, self.light):
            try:
                ImageColor.getrgb(color)
            except ValueError as exc:
                raise EncodingError(f"invalid color {color!r}") from exc


DEFAULT_CONFIG = QRConfig()


@dataclass(frozen=True)
class EncodedArtifact:
    data: str
    mime_type: str
    payload: str

    @property
    def extension(self) -> str:
        for ext, mime in MIME_TYPES.items():
            if mime == self.mime_type:
                return ext
        return "bin"

    def raw_bytes(self) -> bytes:
        """Decode the data URI back into the image file contents."""
        header, _, body = self.data.partition(",")
        if header.endswith(";base64"):
            return base64.b64decode(body)
        return unquote_to_bytes(body)


def _qr_matrix(payload: str, config: QRConfig):
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_LEVELS[config.error_correction],
        box_size=1,
        border=config.margin,
    )
    qr.add_data(payload)
    try:
        qr.make(fit=True)
    except ValueError as exc:
        # qrcode 8 reports an oversized payload as an invalid version 41.
        raise DataOverflowError(str(exc)) from exc
    return qr.get_matrix()


def _render_png(payload: str, config: QRConfig) -> bytes:
    matrix = _qr_matrix(payload, config)
    modules = len(matrix)
    dark = ImageColor.getrgb(config.dark)[:3]
    light = ImageColor.getrgb(config.light)[:3]

    # One pixel per module, then scaled up to the exact requested width.
    image = Image.new("RGB", (modules, modules), light)
    image.putdata([dark if cell else light for row in matrix for cell in row])
    image = image.resize((config.width, config.width), Image.Resampling.NEAREST)

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _render_svg_uri(payload: str, config: QRConfig) -> str:
    qr = segno.make(
        payload,
        error=config.error_correction.lower(),
        boost_error=False,
        micro=False,
    )
    symbol_width, _ = qr.symbol_size(scale=1, border=config.margin)
    scale = max(1, config.width // symbol_width)
    return qr.svg_data_uri(
        scale=scale,
        border=config.margin,
        dark=config.dark,
        light=config.light,
    )


def encode(payload: str, config: QRConfig = DEFAULT_CONFIG) -> EncodedArtifact:
    """
    Encode a text payload into a QR code image and return it as a data URI.

    The QR version is picked automatically to fit the payload. Output depends only
    on the payload and the config, so repeated calls yield identical data URIs.
    Raises EncodingError for empty payloads, payloads that exceed the largest QR
    version at the configured error-correction level, and invalid configs.
    """
    if not isinstance(payload, str):
        raise EncodingError("payload must be a string")
    if not payload:
        raise EncodingError("payload is empty")
    try:
        payload.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError("payload is not valid UTF-8 text") from exc
    config.validate()

    try:
        if config.image_format == "svg":
            data = _render_svg_uri(payload, config)
        else:
            png = _render_png(payload, config)
            data = "data:image/png;base64," + base64.b64encode(png).decode("ascii")
    except (DataOverflowError, segno.DataOverflowError) as exc:
        logger.info("Payload of %d characters does not fit in a QR code", len(payload))
        raise EncodingError(
            f"payload of {len(payload)} characters exceeds QR capacity "
            f"at error correction level {config.error_correction}"
        ) from exc

    return EncodedArtifact(data=data, mime_type=MIME_TYPES[config.image_format], payload=payload)
