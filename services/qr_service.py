"""
services.qr_service - QR symbol rendering for tool and consumable labels.

Encodes the exact payload string; no JSON wrapper, so a phone's stock
scanner app shows the readable TOOL#… text.
"""

from __future__ import annotations

from io import BytesIO

import qrcode
import qrcode.image.svg

import config


def _build(payload: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=config.QR_BOX_SIZE,
        border=config.QR_BORDER,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    return qr


def generate_qr_svg(payload: str) -> str:
    """Return a standalone SVG document for the payload."""
    img = _build(payload).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buf = BytesIO()
    img.save(buf)
    return buf.getvalue().decode("utf-8")


def generate_qr_png(payload: str) -> bytes:
    """Return PNG bytes (black on white) for the payload."""
    img = _build(payload).make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
