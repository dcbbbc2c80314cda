"""
Skin-pixel classifier and guide-region sampler tests.
Boundary checks at every rule threshold plus sampling over synthetic frames.
"""

from __future__ import annotations

import numpy as np
import pytest
from pydantic import ValidationError

from conftest import SKIN_RGB, make_blank_frame, make_face_frame
from framefit.schemas import PixelSample, SkinSample
from framefit.services.skin import average_samples, is_skin_pixel, sample_guide_region, skin_mask


# ─── Pixel classifier ─────────────────────────────────────────

@pytest.mark.parametrize(
    "rgb",
    [
        (200, 150, 130),  # light
        (90, 60, 50),  # deep
        (230, 200, 180),  # fair
        (150, 150, 100),  # red equals green
        (40, 30, 20),  # every gate at its minimum
    ],
)
def test_accepts_typical_skin(rgb):
    assert is_skin_pixel(*rgb)


@pytest.mark.parametrize(
    "rgb, expected",
    [
        # too dark
        ((39, 30, 20), False),
        ((40, 19, 10), False),
        ((60, 40, 9), False),
        # achromatic: diff 9 vs 10
        ((109, 100, 100), False),
        ((110, 105, 100), True),
        # green-dominant or blue >= red
        ((100, 101, 60), False),
        ((100, 80, 100), False),
        ((100, 100, 60), True),
        # saturation 0.75 is allowed, above is not
        ((200, 100, 50), True),
        ((200, 100, 49), False),
    ],
)
def test_rule_boundaries(rgb, expected):
    assert is_skin_pixel(*rgb) is expected


@pytest.mark.parametrize(
    "rgb, expected",
    [
        # green is the minimum channel, so chroma passes while r - b stays under 10
        ((60, 45, 55), False),
        ((60, 45, 50), True),
    ],
)
def test_red_blue_spread_rule(rgb, expected):
    assert is_skin_pixel(*rgb) is expected


def test_pixel_sample_validation():
    with pytest.raises(ValidationError):
        PixelSample(r=256, g=0, b=0)


def test_mask_matches_scalar_predicate():
    rng = np.random.RandomState(7)
    pixels = rng.randint(0, 256, size=(64, 64, 3)).astype(np.uint8)
    mask = skin_mask(pixels)
    expected = np.array(
        [[is_skin_pixel(int(p[0]), int(p[1]), int(p[2])) for p in row] for row in pixels]
    )
    assert mask.shape == (64, 64)
    assert np.array_equal(mask, expected)


# ─── Guide-region sampler ─────────────────────────────────────

def test_face_in_guide_is_face_like(face_frame):
    sample = sample_guide_region(face_frame)
    assert sample is not None
    assert sample.face_like
    assert 0.5 < sample.ratio < 0.8
    assert sample.rgb == pytest.approx(SKIN_RGB)


def test_grey_background_has_no_skin(blank_frame):
    sample = sample_guide_region(blank_frame)
    assert sample is not None
    assert sample.ratio == 0.0
    assert not sample.face_like
    assert (sample.avg_r, sample.avg_g, sample.avg_b) == (0.0, 0.0, 0.0)


def test_skin_outside_guide_is_ignored():
    frame = make_blank_frame()
    frame[:, :40] = SKIN_RGB
    frame[:, -40:] = SKIN_RGB
    sample = sample_guide_region(frame)
    assert sample is not None
    assert sample.ratio == 0.0


def test_ring_of_skin_is_not_face_like():
    # Skin only in the outer ring of the oval: plenty of ratio, empty centre.
    frame = make_face_frame(axes=(140, 134))
    centre = make_blank_frame()
    inner = make_face_frame(skin=(128, 128, 128), background=(0, 0, 0), axes=(100, 95))
    mask = inner[:, :, 0] == 128
    frame[mask] = centre[mask]
    sample = sample_guide_region(frame)
    assert sample is not None
    assert sample.ratio > 0.25
    assert not sample.face_like


@pytest.mark.parametrize(
    "frame",
    [
        None,
        np.zeros((0, 0, 3), dtype=np.uint8),
        np.zeros((480, 640), dtype=np.uint8),
        "not a frame",
    ],
)
def test_unreadable_frames_return_none(frame):
    assert sample_guide_region(frame) is None


@pytest.mark.parametrize("dtype", [np.uint16, np.int32, np.float32])
def test_non_uint8_frames_return_none(dtype):
    frame = np.empty((480, 640, 3), dtype=dtype)
    frame[:] = (1000, 750, 650)
    assert sample_guide_region(frame) is None


def test_rgba_frames_are_accepted(face_frame):
    alpha = np.full(face_frame.shape[:2] + (1,), 255, dtype=np.uint8)
    sample = sample_guide_region(np.concatenate([face_frame, alpha], axis=2))
    assert sample is not None
    assert sample.face_like


def test_average_samples_is_componentwise():
    seed = SkinSample(avg_r=200, avg_g=150, avg_b=130, ratio=0.6, face_like=True)
    fresh = SkinSample(avg_r=180, avg_g=140, avg_b=120, ratio=0.4, face_like=True)
    averaged = average_samples(seed, fresh)
    assert averaged.rgb == (190.0, 145.0, 125.0)
    assert averaged.ratio == pytest.approx(0.5)
