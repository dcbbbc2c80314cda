from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


SkinDepth = Literal["fair", "light", "medium", "tan", "deep"]
Undertone = Literal["warm", "cool", "neutral"]
FaceShape = Literal["oval", "round", "square", "heart", "oblong"]
FitVerdict = Literal["great fit", "good fit", "consider alternatives"]
ScanPhase = Literal["waiting", "detected", "scanning", "result"]
ScanMode = Literal["colour", "fit"]
ColourPool = Literal["product", "all"]

HEX_PATTERN = r"^#?[0-9a-fA-F]{6}$"


class PixelSample(BaseModel):
    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)


class GuideRegion(BaseModel):
    center_x: float
    center_y: float
    radius_x: float = Field(gt=0)
    radius_y: float = Field(gt=0)
    x0: int = Field(ge=0)
    y0: int = Field(ge=0)
    x1: int = Field(ge=0)
    y1: int = Field(ge=0)


class SkinSample(BaseModel):
    avg_r: float = Field(ge=0, le=255)
    avg_g: float = Field(ge=0, le=255)
    avg_b: float = Field(ge=0, le=255)
    ratio: float = Field(ge=0, le=1)
    face_like: bool

    @property
    def rgb(self) -> tuple[float, float, float]:
        return (self.avg_r, self.avg_g, self.avg_b)


class SkinClassification(BaseModel):
    depth: SkinDepth
    undertone: Undertone


class Colourway(BaseModel):
    id: str
    name: str
    hex: str = Field(pattern=HEX_PATTERN)
    metalness: float = Field(default=0.0, ge=0, le=1)
    roughness: float = Field(default=0.5, ge=0, le=1)


class ScoredColourway(BaseModel):
    colourway: Colourway
    score: float


class ColourRecommendation(BaseModel):
    top_match: Colourway
    alternative: Colourway
    reasoning_text: str
    depth: SkinDepth
    undertone: Undertone


class FaceMetrics(BaseModel):
    forehead_width: float = Field(ge=0)
    temple_width: float = Field(ge=0)
    cheekbone_width: float = Field(ge=0)
    jaw_width: float = Field(ge=0)
    chin_width: float = Field(ge=0)
    face_height: float = Field(ge=0)
    skin_ratio: float = Field(ge=0, le=1)

    def band_widths(self) -> list[float]:
        return [
            self.forehead_width,
            self.temple_width,
            self.cheekbone_width,
            self.jaw_width,
            self.chin_width,
        ]


class SizeSpec(BaseModel):
    lens_width: str
    bridge: str
    temple_length: str


class SizeRecommendation(BaseModel):
    size_key: str
    lens_width: str = ""
    bridge: str = ""
    temple_length: str = ""


class FitRecommendation(BaseModel):
    shape: FaceShape
    verdict: FitVerdict
    size_key: str
    explanation: str
    fit_note: str
    lens_width: str = ""
    bridge: str = ""
    temple_length: str = ""


class ColourMatchResponse(BaseModel):
    product_id: str
    recommendation: ColourRecommendation
    ranking: list[ScoredColourway] = Field(default_factory=list)
    skin_rgb: tuple[float, float, float]
    skin_hex: str
    skin_label: str
    samples_averaged: int
    scene_brightness: float
    is_light_scene: bool


class FitResponse(BaseModel):
    product_id: str
    recommendation: FitRecommendation
    metrics: FaceMetrics
    samples_averaged: int
    scene_brightness: float
    is_light_scene: bool


class ProductInfo(BaseModel):
    id: str
    name: str
    tagline: str
    colourways: list[Colourway]
    sizes: dict[str, SizeSpec]


class ColourScanResult(BaseModel):
    recommendation: ColourRecommendation
    skin_sample: SkinSample | None = None
    skin_rgb: tuple[float, float, float]
    samples_averaged: int = Field(ge=0)


class FitScanResult(BaseModel):
    recommendation: FitRecommendation
    metrics: FaceMetrics
    samples_averaged: int = Field(ge=0)
