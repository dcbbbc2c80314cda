from __future__ import annotations

import logging
import os
from io import BytesIO
from typing import Protocol

import cv2
import numpy as np
from PIL import Image, ImageOps
try:
    from pillow_heif import register_heif_opener
except Exception:  # pragma: no cover
    register_heif_opener = None

from framefit.schemas import GuideRegion

if register_heif_opener is not None:
    try:
        register_heif_opener()
    except Exception:
        pass

LOG = logging.getLogger("framefit.frames")

HEIC_EXTENSIONS = {"heic", "heif"}
MAX_DECODE_MEGAPIXELS = max(1.0, float(os.getenv("FRAMEFIT_MAX_DECODE_MEGAPIXELS", "12")))
MAX_DECODE_PIXELS = int(MAX_DECODE_MEGAPIXELS * 1_000_000)
Image.MAX_IMAGE_PIXELS = MAX_DECODE_PIXELS

# Guide oval proportions, matching the on-screen SVG guide.
GUIDE_CENTER_Y_FRACTION = 0.42
GUIDE_RADIUS_X_FRACTION = 0.22
GUIDE_RADIUS_Y_FRACTION = 0.28

BRIGHTNESS_SAMPLE_SIZE = 16
LIGHT_SCENE_THRESHOLD = 130.0


class FrameSource(Protocol):
    def read(self) -> np.ndarray | None: ...


def _enforce_decode_pixel_limit(width: int, height: int) -> None:
    total_pixels = int(width) * int(height)
    if total_pixels > MAX_DECODE_PIXELS:
        raise ValueError(
            "Frame resolution is too large to process safely. "
            f"Maximum decode limit is {MAX_DECODE_MEGAPIXELS:.0f} megapixels."
        )


def decode_image_bytes(file_bytes: bytes, extension: str | None = None) -> np.ndarray:
    """Decode an uploaded still into an RGB ``uint8`` array."""
    try:
        pil_img = Image.open(BytesIO(file_bytes))
        _enforce_decode_pixel_limit(*pil_img.size)
        pil_img = ImageOps.exif_transpose(pil_img).convert("RGB")
        return np.asarray(pil_img)
    except Image.DecompressionBombError as exc:
        raise ValueError(
            "Frame resolution is too large to process safely. "
            f"Maximum decode limit is {MAX_DECODE_MEGAPIXELS:.0f} megapixels."
        ) from exc
    except ValueError:
        raise
    except Exception:
        pass

    array = np.frombuffer(file_bytes, dtype=np.uint8)
    bgr = cv2.imdecode(array, cv2.IMREAD_COLOR)
    if bgr is None:
        ext = (extension or "").lower()
        if ext in HEIC_EXTENSIONS and register_heif_opener is None:
            raise ValueError(
                "Unable to decode HEIC/HEIF frame. Missing HEIC codec support. Install 'pillow-heif' and retry."
            )
        raise ValueError("Unable to decode frame. Please upload a valid JPG/PNG/HEIC image.")
    _enforce_decode_pixel_limit(bgr.shape[1], bgr.shape[0])
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def as_rgb_frame(frame: np.ndarray | None) -> np.ndarray | None:
    """Return the RGB view of a frame, or None when the buffer is unreadable."""
    if frame is None or not isinstance(frame, np.ndarray):
        return None
    if frame.dtype != np.uint8:
        return None
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        return None
    if frame.shape[0] == 0 or frame.shape[1] == 0:
        return None
    return frame[:, :, :3]


def guide_region(width: int, height: int) -> GuideRegion:
    center_x = width / 2.0
    center_y = height * GUIDE_CENTER_Y_FRACTION
    radius_x = width * GUIDE_RADIUS_X_FRACTION
    radius_y = height * GUIDE_RADIUS_Y_FRACTION
    return GuideRegion(
        center_x=center_x,
        center_y=center_y,
        radius_x=radius_x,
        radius_y=radius_y,
        x0=max(0, int(np.floor(center_x - radius_x))),
        y0=max(0, int(np.floor(center_y - radius_y))),
        x1=min(width, int(np.ceil(center_x + radius_x))),
        y1=min(height, int(np.ceil(center_y + radius_y))),
    )


def ellipse_distance(region: GuideRegion) -> np.ndarray:
    """Normalised squared distance ``(dx/rx)^2 + (dy/ry)^2`` for every window pixel."""
    xs = (np.arange(region.x0, region.x1, dtype=np.float64) - region.center_x) / region.radius_x
    ys = (np.arange(region.y0, region.y1, dtype=np.float64) - region.center_y) / region.radius_y
    return ys[:, None] ** 2 + xs[None, :] ** 2


def crop_region(frame: np.ndarray, region: GuideRegion) -> np.ndarray:
    return frame[region.y0 : region.y1, region.x0 : region.x1]


def scene_brightness(frame: np.ndarray | None) -> float | None:
    rgb = as_rgb_frame(frame)
    if rgb is None:
        return None
    small = cv2.resize(
        np.ascontiguousarray(rgb),
        (BRIGHTNESS_SAMPLE_SIZE, BRIGHTNESS_SAMPLE_SIZE),
        interpolation=cv2.INTER_AREA,
    ).astype(np.float64)
    luma = small[:, :, 0] * 0.299 + small[:, :, 1] * 0.587 + small[:, :, 2] * 0.114
    return float(luma.mean())


def is_light_scene(brightness: float | None, threshold: float = LIGHT_SCENE_THRESHOLD) -> bool:
    return brightness is not None and brightness > threshold


class CameraFrameSource:
    """Reads RGB frames from an OpenCV capture device."""

    def __init__(self, device: int | str = 0) -> None:
        self.device = device
        self._capture: cv2.VideoCapture | None = None

    def open(self) -> bool:
        self._capture = cv2.VideoCapture(self.device)
        opened = bool(self._capture.isOpened())
        if not opened:
            LOG.warning("camera_unavailable device=%s", self.device)
        return opened

    def read(self) -> np.ndarray | None:
        if self._capture is None:
            return None
        try:
            ok, bgr = self._capture.read()
        except cv2.error:
            LOG.warning("frame_read_failed device=%s", self.device, exc_info=True)
            return None
        if not ok or bgr is None:
            return None
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None

    def __enter__(self) -> "CameraFrameSource":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
