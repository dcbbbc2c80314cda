"""
Face-metrics extractor and face-shape / size recommender tests.
"""

from __future__ import annotations

import numpy as np
import pytest

from conftest import make_blank_frame
from framefit.config import get_product
from framefit.schemas import FaceMetrics, SizeSpec
from framefit.services.metrics import average_metrics, band_width, measure_face, vertical_extent
from framefit.services.shape import classify_shape, estimated_oval_radius, recommend_fit, recommend_size


def _metrics(forehead, cheekbone, jaw, chin, height, temple=None, ratio=0.5) -> FaceMetrics:
    return FaceMetrics(
        forehead_width=forehead,
        temple_width=temple if temple is not None else cheekbone,
        cheekbone_width=cheekbone,
        jaw_width=jaw,
        chin_width=chin,
        face_height=height,
        skin_ratio=ratio,
    )


THREE_SIZES = {
    "small": SizeSpec(lens_width="55mm", bridge="14mm", temple_length="135mm"),
    "standard": SizeSpec(lens_width="58mm", bridge="14mm", temple_length="135mm"),
    "large": SizeSpec(lens_width="62mm", bridge="14mm", temple_length="140mm"),
}


# ─── Measurement ──────────────────────────────────────────────

def test_measures_synthetic_face(face_frame):
    metrics = measure_face(face_frame)
    assert metrics is not None
    # Face ellipse is ~198 px wide and ~248 px tall.
    assert 190 <= metrics.cheekbone_width <= 202
    assert 235 <= metrics.face_height <= 252
    assert metrics.forehead_width < metrics.cheekbone_width
    assert metrics.chin_width < metrics.jaw_width < metrics.cheekbone_width
    assert 0.5 < metrics.skin_ratio < 0.8


def test_blank_frame_measures_zero(blank_frame):
    metrics = measure_face(blank_frame)
    assert metrics is not None
    assert metrics.band_widths() == [0, 0, 0, 0, 0]
    assert metrics.face_height == 0
    assert metrics.skin_ratio == 0.0


def test_unreadable_frame_returns_none():
    assert measure_face(None) is None
    assert measure_face(np.zeros((10, 10), dtype=np.uint8)) is None
    assert measure_face(np.full((480, 640, 3), 1000, dtype=np.uint16)) is None


def test_widths_stay_inside_guide():
    # Skin everywhere: widths are bounded by the guide ellipse, not the frame.
    frame = make_blank_frame(colour=(200, 150, 130))
    metrics = measure_face(frame)
    guide_width = 2 * 640 * 0.22
    assert metrics is not None
    assert metrics.cheekbone_width <= guide_width
    assert metrics.skin_ratio == pytest.approx(1.0)


def test_band_width_and_extent_helpers():
    skin = np.zeros((100, 50), dtype=bool)
    skin[45:55, 10:31] = True
    assert band_width(skin, 0.5) == 20
    assert band_width(skin, 0.1) == 0
    assert vertical_extent(skin) == 8
    assert vertical_extent(np.zeros((10, 10), dtype=bool)) == 0


def test_average_metrics():
    averaged = average_metrics(_metrics(90, 88, 55, 40, 120), _metrics(80, 92, 65, 50, 130))
    assert averaged.cheekbone_width == 90
    assert averaged.face_height == 125
    assert averaged.jaw_width == 60


# ─── Shape classification ─────────────────────────────────────

def test_heart_example():
    assert classify_shape(_metrics(90, 88, 55, 40, 120)) == "heart"


def test_square_example():
    assert classify_shape(_metrics(85, 90, 88, 82, 120)) == "square"


def test_round_example():
    assert classify_shape(_metrics(80, 100, 92, 70, 120)) == "round"


def test_oblong_example():
    assert classify_shape(_metrics(80, 90, 70, 60, 150)) == "oblong"


def test_oval_default():
    assert classify_shape(_metrics(80, 90, 70, 50, 130)) == "oval"
    assert classify_shape(_metrics(0, 0, 0, 0, 0)) == "oval"


def test_synthetic_face_is_round(face_frame):
    assert classify_shape(measure_face(face_frame)) == "round"


# ─── Size recommendation ──────────────────────────────────────

def test_oval_radius_has_a_floor():
    assert estimated_oval_radius(_metrics(0, 50, 0, 0, 0)) == 50.0
    assert estimated_oval_radius(_metrics(0, 100, 0, 0, 0)) == pytest.approx(70.0)


@pytest.mark.parametrize(
    "cheekbone, expected",
    [
        (30, "small"),  # fill 0.30
        (50, "standard"),  # fill 0.50
        (80, "large"),  # fill 1 / 1.4
    ],
)
def test_size_from_face_fill(cheekbone, expected):
    rec = recommend_size(_metrics(0, cheekbone, 0, 0, 0), THREE_SIZES)
    assert rec.size_key == expected
    assert rec.lens_width == THREE_SIZES[expected].lens_width


def test_two_sizes_use_nearest_available():
    two = {"standard": THREE_SIZES["standard"], "large": THREE_SIZES["large"]}
    assert recommend_size(_metrics(0, 50, 0, 0, 0), two).size_key == "large"
    assert recommend_size(_metrics(0, 30, 0, 0, 0), two).size_key == "standard"


def test_single_and_empty_size_tables():
    one = {"standard": THREE_SIZES["standard"]}
    assert recommend_size(_metrics(0, 80, 0, 0, 0), one).size_key == "standard"
    empty = recommend_size(_metrics(0, 80, 0, 0, 0), {})
    assert empty.size_key == "standard"
    assert empty.lens_width == ""


def test_fit_recommendation_uses_product_sizes():
    product = get_product("rayban-aviator")
    rec = recommend_fit(_metrics(90, 88, 55, 40, 120), product)
    assert rec.shape == "heart"
    assert rec.verdict == "great fit"
    assert rec.size_key == "large"
    assert rec.lens_width == "62mm"
    assert "Ray-Ban Aviator Classic (large)" in rec.explanation
    assert "62mm" in rec.explanation


@pytest.mark.parametrize(
    "metrics, verdict",
    [
        (_metrics(80, 90, 70, 50, 130), "great fit"),
        (_metrics(80, 100, 92, 70, 120), "good fit"),
        (_metrics(85, 90, 88, 82, 120), "good fit"),
        (_metrics(80, 90, 70, 60, 150), "good fit"),
    ],
)
def test_verdict_per_shape(metrics, verdict):
    assert recommend_fit(metrics, get_product(None)).verdict == verdict
