from __future__ import annotations

import io
import logging

import zxingcpp
from PIL import Image

logger = logging.getLogger("kbankapi.backend.qr")

INVALID_IMAGE_MESSAGE = "รูปภาพไม่ถูกต้อง"
QR_NOT_FOUND_MESSAGE = "ไม่พบ qrcode"


class QRDecodeError(ValueError):
    """The uploaded image does not yield a QR payload."""


def decode_qr_image(data: bytes) -> str:
    """Return the text payload of the first QR code found in ``data``."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            rgb = image.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.info("Rejected upload that is not a readable image: %s", exc)
        raise QRDecodeError(INVALID_IMAGE_MESSAGE) from exc

    results = zxingcpp.read_barcodes(rgb, formats=zxingcpp.BarcodeFormat.QRCode)
    for result in results:
        if result.text:
            return result.text

    logger.info("No QR code found in uploaded %dx%d image", rgb.width, rgb.height)
    raise QRDecodeError(QR_NOT_FOUND_MESSAGE)
