# app/utils/qr.py
"""
QR code encoding (qrcode + Pillow) and decoding (OpenCV).
"""

import io
import logging
from typing import Optional, Union

import cv2
import numpy as np
import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

from app.core.config import settings

logger = logging.getLogger(__name__)

ImageLike = Union[Image.Image, np.ndarray, bytes]


def encode_qr(
    data: str,
    size: Optional[int] = None,
    margin: Optional[int] = None,
    dark: Optional[str] = None,
    light: Optional[str] = None,
) -> Image.Image:
    """
    Render ``data`` as a square two-tone QR image of ``size`` pixels with a
    quiet zone of at least ``margin`` modules.

    Every module is the same whole number of pixels; any remainder becomes
    extra light border around the centred code. Raises ValueError when
    ``size`` cannot hold one pixel per module.
    """
    size = size or settings.QR_DEFAULT_SIZE
    margin = settings.QR_MARGIN if margin is None else margin

    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=1, border=margin)
    qr.add_data(data)
    qr.make(fit=True)

    modules = qr.modules_count + 2 * margin
    if size < modules:
        raise ValueError(f"A {size}px image cannot hold a {modules}-module QR code")
    qr.box_size = size // modules

    light = light or settings.QR_LIGHT_COLOR
    code = qr.make_image(
        fill_color=dark or settings.QR_DARK_COLOR, back_color=light
    ).get_image().convert("RGB")

    if code.size == (size, size):
        return code
    image = Image.new("RGB", (size, size), light)
    offset = (size - code.size[0]) // 2
    image.paste(code, (offset, offset))
    return image


def encode_qr_png(data: str, size: Optional[int] = None, **kwargs) -> bytes:
    output = io.BytesIO()
    encode_qr(data, size=size, **kwargs).save(output, format="PNG")
    return output.getvalue()


def to_bgr_array(image: ImageLike) -> Optional[np.ndarray]:
    """Converts PIL images and encoded image bytes to an OpenCV BGR array."""
    if isinstance(image, np.ndarray):
        return image
    if isinstance(image, Image.Image):
        rgb = np.array(image.convert("RGB"))
        return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)
    nparr = np.frombuffer(image, np.uint8)
    return cv2.imdecode(nparr, cv2.IMREAD_COLOR)


def decode_qr(image: ImageLike, detector: Optional[cv2.QRCodeDetector] = None) -> Optional[str]:
    """
    Returns the text of the first QR code found in the image, or None.
    Raises ValueError if the bytes are not a readable image.
    """
    frame = to_bgr_array(image)
    if frame is None:
        raise ValueError("Invalid image format")

    # extra white quiet zone; the detector struggles with codes at the image edge
    pad = max(8, min(frame.shape[:2]) // 10)
    frame = cv2.copyMakeBorder(
        frame, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=(255, 255, 255)
    )

    detector = detector or cv2.QRCodeDetector()
    text, points, _ = detector.detectAndDecode(frame)
    if points is None or not text:
        return None
    return text
