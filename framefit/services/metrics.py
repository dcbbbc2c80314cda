from __future__ import annotations

import numpy as np

from framefit.schemas import FaceMetrics, SkinSample
from framefit.services.image_ops import as_rgb_frame, crop_region, ellipse_distance, guide_region
from framefit.services.skin import SAMPLE_STEP, skin_mask, summarize_skin

# Band centres as fractions of the guide window height, top to bottom.
FOREHEAD_BAND = 0.20
TEMPLE_BAND = 0.35
CHEEKBONE_BAND = 0.48
JAW_BAND = 0.70
CHIN_BAND = 0.85

BAND_HALF_HEIGHT = 6
HEIGHT_SCAN_STEP = 2
RATIO_SCAN_STEP = 4


def band_width(skin: np.ndarray, center_fraction: float, half_height: int = BAND_HALF_HEIGHT) -> int:
    """Leftmost-to-rightmost skin span across a horizontal band, 0 if none."""
    region_h = skin.shape[0]
    band_y = int(np.floor(region_h * center_fraction))
    top = max(0, band_y - half_height)
    bottom = min(region_h, band_y + half_height + 1)
    if top >= bottom:
        return 0
    columns = np.flatnonzero(skin[top:bottom].any(axis=0))
    if columns.size == 0:
        return 0
    return int(columns[-1] - columns[0])


def vertical_extent(skin: np.ndarray, step: int = HEIGHT_SCAN_STEP) -> int:
    rows = np.flatnonzero(skin[::step, ::step].any(axis=1)) * step
    if rows.size == 0:
        return 0
    top, bottom = int(rows[0]), int(rows[-1])
    return bottom - top if bottom > top else 0


def measure_face(frame: np.ndarray | None) -> FaceMetrics | None:
    """Measure face widths at five heights plus vertical extent.

    All values are in guide-window pixel units. Only pixels inside the guide
    ellipse are considered. Returns None when the frame cannot be read.
    """
    return measure_guide(frame)[1]


def measure_guide(frame: np.ndarray | None) -> tuple[SkinSample | None, FaceMetrics | None]:
    """Skin sample and face metrics from a single classification of the guide window."""
    rgb = as_rgb_frame(frame)
    if rgb is None:
        return None, None

    region = guide_region(rgb.shape[1], rgb.shape[0])
    window = crop_region(rgb, region)
    dist2 = ellipse_distance(region)
    inside = dist2 <= 1.0
    skin = skin_mask(window) & inside

    sample = summarize_skin(
        window[::SAMPLE_STEP, ::SAMPLE_STEP],
        skin[::SAMPLE_STEP, ::SAMPLE_STEP],
        dist2[::SAMPLE_STEP, ::SAMPLE_STEP],
    )

    sampled_inside = inside[::RATIO_SCAN_STEP, ::RATIO_SCAN_STEP]
    total_sampled = int(sampled_inside.sum())
    skin_count = int(skin[::RATIO_SCAN_STEP, ::RATIO_SCAN_STEP].sum())
    skin_ratio = skin_count / total_sampled if total_sampled > 0 else 0.0

    metrics = FaceMetrics(
        forehead_width=band_width(skin, FOREHEAD_BAND),
        temple_width=band_width(skin, TEMPLE_BAND),
        cheekbone_width=band_width(skin, CHEEKBONE_BAND),
        jaw_width=band_width(skin, JAW_BAND),
        chin_width=band_width(skin, CHIN_BAND),
        face_height=vertical_extent(skin),
        skin_ratio=skin_ratio,
    )
    return sample, metrics


def average_metrics(seed: FaceMetrics, fresh: FaceMetrics) -> FaceMetrics:
    return FaceMetrics(
        forehead_width=(seed.forehead_width + fresh.forehead_width) / 2.0,
        temple_width=(seed.temple_width + fresh.temple_width) / 2.0,
        cheekbone_width=(seed.cheekbone_width + fresh.cheekbone_width) / 2.0,
        jaw_width=(seed.jaw_width + fresh.jaw_width) / 2.0,
        chin_width=(seed.chin_width + fresh.chin_width) / 2.0,
        face_height=(seed.face_height + fresh.face_height) / 2.0,
        skin_ratio=(seed.skin_ratio + fresh.skin_ratio) / 2.0,
    )
