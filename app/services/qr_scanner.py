# app/services/qr_scanner.py
"""
Camera-driven QR scanning.

The scanner reads frames at a fixed rate, looks for a code inside a fixed
box at the centre of each frame, and hands the first decoded text to the
caller exactly once before releasing the camera. Frames that cannot be read
or decoded are normal while the user is still aiming and are only logged at
debug level. Failing to open the camera is the one error the caller sees.
"""

import logging
import threading
import time
from typing import Callable, Optional, Tuple

import cv2

from app.core.config import settings
from app.utils.qr import decode_qr

logger = logging.getLogger(__name__)


class ScannerInitError(Exception):
    """The camera could not be opened (missing device, permission denied)."""


def crop_center(frame, box: Tuple[int, int]):
    """The ``box`` (width, height) region at the centre of the frame."""
    height, width = frame.shape[:2]
    box_w, box_h = min(box[0], width), min(box[1], height)
    x = (width - box_w) // 2
    y = (height - box_h) // 2
    return frame[y : y + box_h, x : x + box_w]


class QRScanner:
    def __init__(
        self,
        camera=0,
        fps: Optional[int] = None,
        box: Optional[Tuple[int, int]] = None,
        capture_factory: Callable = cv2.VideoCapture,
    ):
        self.camera = camera
        self.fps = fps or settings.SCANNER_FPS
        self.box = box or (settings.SCANNER_BOX_SIZE, settings.SCANNER_BOX_SIZE)
        self._capture_factory = capture_factory
        self._capture = None
        self._stop = threading.Event()
        self._detector = cv2.QRCodeDetector()

    def _open(self):
        try:
            capture = self._capture_factory(self.camera)
        except Exception as e:
            raise ScannerInitError(f"Failed to initialize camera: {e}") from e
        if capture is None or not capture.isOpened():
            raise ScannerInitError(
                "Failed to initialize camera. Please ensure you have granted camera permissions."
            )
        return capture

    def _release(self):
        if self._capture is not None:
            try:
                self._capture.release()
            except Exception as e:
                logger.error(f"Error releasing camera: {e}")
            self._capture = None

    def stop(self):
        """Ask a running scan to finish; safe to call from another thread."""
        self._stop.set()

    def scan_frame(self, frame) -> Optional[str]:
        """Decode the central box of one frame; per-frame failures return None."""
        try:
            return decode_qr(crop_center(frame, self.box), detector=self._detector)
        except (cv2.error, ValueError) as e:
            logger.debug(f"QR scan failure: {e}")
            return None

    def scan(
        self,
        on_scan: Optional[Callable[[str], None]] = None,
        timeout: Optional[float] = None,
    ) -> Optional[str]:
        """
        Run the capture loop until a code is decoded, ``stop()`` is called or
        ``timeout`` seconds pass. Returns the decoded text or None.

        Raises ScannerInitError if the camera cannot be opened.
        """
        self._stop.clear()
        self._capture = self._open()
        interval = 1.0 / self.fps
        deadline = time.monotonic() + timeout if timeout is not None else None
        logger.info(f"QR scanner started on camera {self.camera} at {self.fps} fps")

        try:
            while not self._stop.is_set():
                started = time.monotonic()
                if deadline is not None and started >= deadline:
                    logger.info("QR scanner timed out")
                    return None

                ok, frame = self._capture.read()
                if ok and frame is not None:
                    text = self.scan_frame(frame)
                    if text:
                        logger.info(f"QR code scanned: {text}")
                        self._release()
                        if on_scan is not None:
                            on_scan(text)
                        return text
                else:
                    logger.debug("QR scan failure: no frame from camera")

                elapsed = time.monotonic() - started
                self._stop.wait(max(0.0, interval - elapsed))
            return None
        finally:
            self._release()
