from __future__ import annotations

import math
from typing import Sequence

from framefit.schemas import (
    ColourRecommendation,
    Colourway,
    ScoredColourway,
    SkinClassification,
    SkinDepth,
    Undertone,
)

# Neutral mid-tone estimate used when a scan ends without a usable sample.
DEFAULT_SKIN_RGB = (160.0, 130.0, 110.0)

DEPTH_THRESHOLDS: tuple[tuple[float, SkinDepth], ...] = (
    (185.0, "fair"),
    (155.0, "light"),
    (125.0, "medium"),
    (95.0, "tan"),
)
WARM_SKIN_MIN_WARMTH = 0.15
WARM_SKIN_MIN_YELLOW = 0.08
COOL_SKIN_MAX_WARMTH = 0.08

WARM_FRAME_MIN_WARMTH = 0.12
COOL_FRAME_MAX_WARMTH = 0.05

DEPTH_LABELS: dict[str, str] = {
    "fair": "fair complexion",
    "light": "light skin tone",
    "medium": "medium skin tone",
    "tan": "warm tan complexion",
    "deep": "rich deep complexion",
}
UNDERTONE_LABELS: dict[str, str] = {
    "warm": "warm undertone",
    "cool": "cool undertone",
    "neutral": "neutral undertone",
}
# (skin undertone, top match is warm) -> why the pick works
HARMONY_REASONS: dict[tuple[str, bool], str] = {
    ("warm", True): "creates a harmonious, cohesive warmth",
    ("cool", False): "echoes your cooler tones for a refined, pulled-together look",
    ("warm", False): "provides a striking complementary contrast against your warmer tones",
    ("cool", True): "adds a warm complementary lift that brightens your complexion",
}
NEUTRAL_REASON = "works well with your balanced neutral colouring"


def luma(r: float, g: float, b: float) -> float:
    """BT.601 perceived brightness."""
    return r * 0.299 + g * 0.587 + b * 0.114


def hex_to_rgb(hex_value: str) -> tuple[int, int, int]:
    value = hex_value.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected a #RRGGBB colour, got '{hex_value}'.")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def warmth_index(r: float, b: float) -> float:
    return (r - b) / (r + b + 1)


def classify_skin(r: float, g: float, b: float) -> SkinClassification:
    brightness = luma(r, g, b)
    depth: SkinDepth = "deep"
    for threshold, label in DEPTH_THRESHOLDS:
        if brightness > threshold:
            depth = label
            break

    warmth = warmth_index(r, b)
    yellow = (g - b) / (g + b + 1)

    undertone: Undertone
    if warmth > WARM_SKIN_MIN_WARMTH and yellow > WARM_SKIN_MIN_YELLOW:
        undertone = "warm"
    elif warmth < COOL_SKIN_MAX_WARMTH:
        undertone = "cool"
    else:
        undertone = "neutral"

    return SkinClassification(depth=depth, undertone=undertone)


def _contrast_score(contrast: float) -> float:
    # Peaks around 0.45: visible against the skin without clashing.
    if contrast < 0.15:
        return 0.2
    if contrast > 0.8:
        return 0.5
    return 1 - abs(contrast - 0.45) * 1.5


def _harmony_score(undertone: str, frame_is_warm: bool, frame_is_cool: bool) -> float:
    if undertone == "neutral":
        return 0.85
    if undertone == "warm" and frame_is_warm:
        return 1.0
    if undertone == "cool" and frame_is_cool:
        return 1.0
    if undertone == "warm" and frame_is_cool:
        return 0.7
    if undertone == "cool" and frame_is_warm:
        return 0.65
    return 0.5


def _depth_bonus(depth: str, frame_luma: float, frame_is_warm: bool) -> float:
    if depth == "deep" and frame_is_warm and frame_luma > 100:
        return 0.2
    if depth in ("fair", "light") and frame_luma < 80:
        return 0.15
    if depth in ("deep", "tan") and frame_luma > 140:
        return 0.15
    return 0.0


def score_colourway(
    colourway: Colourway,
    skin_rgb: Sequence[float],
    classification: SkinClassification,
) -> float:
    skin_r, skin_g, skin_b = skin_rgb
    f_r, f_g, f_b = hex_to_rgb(colourway.hex)

    d_r = (skin_r - f_r) / 255
    d_g = (skin_g - f_g) / 255
    d_b = (skin_b - f_b) / 255
    contrast = math.sqrt(d_r * d_r + d_g * d_g + d_b * d_b) / math.sqrt(3)

    frame_warmth = warmth_index(f_r, f_b)
    frame_is_warm = frame_warmth > WARM_FRAME_MIN_WARMTH
    frame_is_cool = frame_warmth < COOL_FRAME_MAX_WARMTH

    contrast_score = _contrast_score(contrast)
    harmony_score = _harmony_score(classification.undertone, frame_is_warm, frame_is_cool)
    depth_bonus = _depth_bonus(classification.depth, luma(f_r, f_g, f_b), frame_is_warm)

    return contrast_score * 0.4 + harmony_score * 0.45 + depth_bonus + 0.15


def score_colourways(
    skin_rgb: Sequence[float],
    candidates: Sequence[Colourway],
) -> list[ScoredColourway]:
    """Score every candidate against the skin colour, best first.

    Scores are only comparable within one call. Ties keep catalog order.
    """
    classification = classify_skin(*skin_rgb)
    scored = [
        ScoredColourway(colourway=colourway, score=score_colourway(colourway, skin_rgb, classification))
        for colourway in candidates
    ]
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored


def is_warm_colourway(colourway: Colourway) -> bool:
    f_r, _, f_b = hex_to_rgb(colourway.hex)
    return warmth_index(f_r, f_b) > WARM_FRAME_MIN_WARMTH


def reasoning_text(
    classification: SkinClassification,
    top_match: Colourway,
    alternative: Colourway,
) -> str:
    reason = HARMONY_REASONS.get(
        (classification.undertone, is_warm_colourway(top_match)),
        NEUTRAL_REASON,
    )
    return (
        f"Based on your {DEPTH_LABELS[classification.depth]} with a "
        f"{UNDERTONE_LABELS[classification.undertone]}, I'd recommend the {top_match.name}, "
        f"as it {reason}. The {alternative.name} is a strong alternative. "
        "Head back to see how each looks on the frame."
    )


def recommend_colourway(
    skin_rgb: Sequence[float],
    candidates: Sequence[Colourway],
) -> ColourRecommendation:
    if not candidates:
        raise ValueError("At least one colourway is required to make a recommendation.")

    classification = classify_skin(*skin_rgb)
    scored = score_colourways(skin_rgb, candidates)
    top_match = scored[0].colourway
    alternative = scored[1].colourway if len(scored) > 1 else top_match

    return ColourRecommendation(
        top_match=top_match,
        alternative=alternative,
        reasoning_text=reasoning_text(classification, top_match, alternative),
        depth=classification.depth,
        undertone=classification.undertone,
    )


def skin_hex(r: float, g: float, b: float) -> str:
    def channel(value: float) -> str:
        return f"{int(round(max(0.0, min(255.0, value)))):02x}"

    return f"#{channel(r)}{channel(g)}{channel(b)}"


def skin_label(classification: SkinClassification) -> str:
    return f"{classification.depth.capitalize()} · {classification.undertone.capitalize()}"
