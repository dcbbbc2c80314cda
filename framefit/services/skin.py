from __future__ import annotations

import numpy as np

from framefit.schemas import SkinSample
from framefit.services.image_ops import as_rgb_frame, crop_region, ellipse_distance, guide_region

SAMPLE_STEP = 4
# Inner zone is ~60% of the guide radius (0.6^2).
CENTRE_ZONE_DIST2 = 0.36
FACE_LIKE_CENTRE_RATIO = 0.30

MIN_RED = 40
MIN_GREEN = 20
MIN_BLUE = 10
MIN_CHROMA = 10
MIN_RED_BLUE_SPREAD = 10
MAX_SATURATION = 0.75


def is_skin_pixel(r: int, g: int, b: int) -> bool:
    """RGB skin heuristic.

    Strict enough to reject grey walls and warm wood, loose enough to accept
    fair through deep skin under typical webcam lighting. Rules are applied
    in order and the first failing rule rejects the pixel.
    """
    if r < MIN_RED or g < MIN_GREEN or b < MIN_BLUE:
        return False

    max_c = max(r, g, b)
    min_c = min(r, g, b)
    diff = max_c - min_c
    if diff < MIN_CHROMA:
        return False

    # Red leads or ties green (fair skin often has R close to G), always beats blue.
    if r < g or r <= b:
        return False

    if r - b < MIN_RED_BLUE_SPREAD:
        return False

    saturation = diff / max(max_c, 1)
    if saturation > MAX_SATURATION:
        return False

    return True


def skin_mask(rgb: np.ndarray) -> np.ndarray:
    """Vectorised ``is_skin_pixel`` over an ``(..., 3)`` RGB array."""
    pixels = rgb[..., :3].astype(np.int32)
    r = pixels[..., 0]
    g = pixels[..., 1]
    b = pixels[..., 2]
    max_c = pixels.max(axis=-1)
    min_c = pixels.min(axis=-1)
    diff = max_c - min_c
    saturation = diff / np.maximum(max_c, 1)
    return (
        (r >= MIN_RED)
        & (g >= MIN_GREEN)
        & (b >= MIN_BLUE)
        & (diff >= MIN_CHROMA)
        & (r >= g)
        & (r > b)
        & (r - b >= MIN_RED_BLUE_SPREAD)
        & (saturation <= MAX_SATURATION)
    )


def sample_guide_region(frame: np.ndarray | None) -> SkinSample | None:
    """Sample the guide oval on a coarse grid.

    Returns None when the frame cannot be read or no pixel falls inside the
    oval. ``face_like`` is set when skin covers more than 30% of the inner
    zone, which a real face fills and scattered background warmth does not.
    """
    rgb = as_rgb_frame(frame)
    if rgb is None:
        return None

    region = guide_region(rgb.shape[1], rgb.shape[0])
    window = crop_region(rgb, region)[::SAMPLE_STEP, ::SAMPLE_STEP]
    dist2 = ellipse_distance(region)[::SAMPLE_STEP, ::SAMPLE_STEP]
    skin = skin_mask(window) & (dist2 <= 1.0)
    return summarize_skin(window, skin, dist2)


def summarize_skin(window: np.ndarray, skin: np.ndarray, dist2: np.ndarray) -> SkinSample | None:
    """Build a SkinSample from an already-sampled guide window.

    ``skin`` must be the skin mask of ``window`` restricted to the ellipse,
    so callers that already classified the region can reuse their mask.
    """
    inside = dist2 <= 1.0
    total_sampled = int(inside.sum())
    if total_sampled == 0:
        return None

    skin_count = int(skin.sum())

    centre = dist2 < CENTRE_ZONE_DIST2
    centre_total = int(centre.sum())
    centre_skin = int((skin & centre).sum())
    centre_ratio = centre_skin / centre_total if centre_total > 0 else 0.0

    ratio = skin_count / total_sampled
    face_like = centre_ratio > FACE_LIKE_CENTRE_RATIO

    if skin_count == 0:
        return SkinSample(avg_r=0.0, avg_g=0.0, avg_b=0.0, ratio=ratio, face_like=face_like)

    avg = window[skin].astype(np.float64).mean(axis=0)
    return SkinSample(
        avg_r=float(avg[0]),
        avg_g=float(avg[1]),
        avg_b=float(avg[2]),
        ratio=ratio,
        face_like=face_like,
    )


def average_samples(seed: SkinSample, fresh: SkinSample) -> SkinSample:
    return SkinSample(
        avg_r=(seed.avg_r + fresh.avg_r) / 2.0,
        avg_g=(seed.avg_g + fresh.avg_g) / 2.0,
        avg_b=(seed.avg_b + fresh.avg_b) / 2.0,
        ratio=(seed.ratio + fresh.ratio) / 2.0,
        face_like=seed.face_like or fresh.face_like,
    )
