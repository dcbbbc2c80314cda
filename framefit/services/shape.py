from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from framefit.config import Product
from framefit.schemas import FaceMetrics, FaceShape, FitRecommendation, FitVerdict, SizeRecommendation, SizeSpec

SMALL_FILL_RATIO = 0.42
LARGE_FILL_RATIO = 0.55
# Guide diameter is not known at this layer, so it is approximated from the
# cheekbone width. This is a rough proxy, not a calibrated measurement.
OVAL_DIAMETER_FACTOR = 1.4
MIN_OVAL_DIAMETER_PX = 100.0
DEFAULT_SIZE_KEY = "standard"


@dataclass(frozen=True)
class ShapeProfile:
    verdict: FitVerdict
    fit_note: str
    template: str


SHAPE_PROFILES: dict[str, ShapeProfile] = {
    "oval": ShapeProfile(
        verdict="great fit",
        fit_note="Balanced proportions",
        template=(
            "Your oval face has well-balanced proportions, slightly wider at the cheekbones and "
            "tapering gently to the chin. The {product} ({size}) with its {lens_width} lens width "
            "sits naturally on your features without overpowering them. This is one of the most "
            "versatile face shapes for eyewear."
        ),
    ),
    "round": ShapeProfile(
        verdict="good fit",
        fit_note="Adds angular definition",
        template=(
            "Your face is approximately as wide as it is long, with soft contours at the cheekbones "
            "and jaw. The {product} ({size}) adds angular structure that complements your softer "
            "features. The {lens_width} lens width provides good coverage without making your face "
            "appear wider."
        ),
    ),
    "square": ShapeProfile(
        verdict="good fit",
        fit_note="Softens strong jaw",
        template=(
            "You have a strong jaw line with your forehead, cheekbones and jaw measuring similarly "
            "wide. The {product} ({size}) at {lens_width} works well, its curves soften the angular "
            "definition of your face. The {bridge} bridge should sit comfortably given your proportions."
        ),
    ),
    "heart": ShapeProfile(
        verdict="great fit",
        fit_note="Balances wider forehead",
        template=(
            "Your face is widest at the forehead and cheekbones, tapering to a narrower jaw and chin. "
            "The {product} ({size}) at {lens_width} lens width draws the eye to the centre of your "
            "face, balancing your proportions beautifully. A natural fit for your features."
        ),
    ),
    "oblong": ShapeProfile(
        verdict="good fit",
        fit_note="Adds horizontal balance",
        template=(
            "Your face is longer than it is wide, with a consistent width from forehead to jaw. "
            "The {product} ({size}) at {lens_width} adds horizontal emphasis that visually shortens "
            "and balances your proportions. The {bridge} bridge width is a good match."
        ),
    ),
}


def classify_shape(metrics: FaceMetrics) -> FaceShape:
    widest = max(metrics.forehead_width, metrics.cheekbone_width, metrics.jaw_width, 1.0)
    height_to_width = metrics.face_height / widest

    forehead_ratio = metrics.forehead_width / widest
    cheekbone_ratio = metrics.cheekbone_width / widest
    jaw_ratio = metrics.jaw_width / widest
    chin_ratio = metrics.chin_width / widest
    jaw_taper = cheekbone_ratio - jaw_ratio

    if jaw_taper > 0.20 and forehead_ratio > 0.80 and chin_ratio < 0.50:
        return "heart"
    if jaw_taper < 0.10 and forehead_ratio > 0.85 and jaw_ratio > 0.85 and height_to_width < 1.45:
        return "square"
    if cheekbone_ratio >= 0.95 and jaw_taper < 0.15 and height_to_width < 1.3:
        return "round"
    if height_to_width > 1.55:
        return "oblong"
    return "oval"


def estimated_oval_radius(metrics: FaceMetrics) -> float:
    return max(metrics.cheekbone_width * OVAL_DIAMETER_FACTOR, MIN_OVAL_DIAMETER_PX) / 2.0


def recommend_size(metrics: FaceMetrics, size_table: Mapping[str, SizeSpec]) -> SizeRecommendation:
    """Pick a catalog size from how much of the guide the cheekbones fill.

    Size keys are taken in catalog order, smallest first.
    """
    size_keys = list(size_table)
    if not size_keys:
        return SizeRecommendation(size_key=DEFAULT_SIZE_KEY)

    if len(size_keys) == 1:
        index = 0
    else:
        fill_ratio = metrics.cheekbone_width / (2.0 * estimated_oval_radius(metrics))
        if fill_ratio < SMALL_FILL_RATIO:
            index = 0
        elif fill_ratio > LARGE_FILL_RATIO:
            index = len(size_keys) - 1
        else:
            index = min(1, len(size_keys) - 1)

    key = size_keys[index]
    size = size_table[key]
    return SizeRecommendation(
        size_key=key,
        lens_width=size.lens_width,
        bridge=size.bridge,
        temple_length=size.temple_length,
    )


def recommend_fit(metrics: FaceMetrics, product: Product) -> FitRecommendation:
    shape = classify_shape(metrics)
    size = recommend_size(metrics, product.sizes)
    profile = SHAPE_PROFILES[shape]
    explanation = profile.template.format(
        product=product.name,
        size=size.size_key,
        lens_width=size.lens_width,
        bridge=size.bridge,
    )
    return FitRecommendation(
        shape=shape,
        verdict=profile.verdict,
        size_key=size.size_key,
        explanation=explanation,
        fit_note=profile.fit_note,
        lens_width=size.lens_width,
        bridge=size.bridge,
        temple_length=size.temple_length,
    )
