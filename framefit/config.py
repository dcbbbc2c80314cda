from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from framefit.schemas import Colourway, SizeSpec

BASE_DIR = Path(__file__).resolve().parent
CATALOG_PATH = Path(os.getenv("FRAMEFIT_CATALOG_PATH", str(BASE_DIR / "data" / "catalog.yaml")))


class Product(BaseModel):
    id: str = ""
    name: str
    tagline: str = ""
    colourways: list[Colourway] = Field(default_factory=list)
    sizes: dict[str, SizeSpec] = Field(default_factory=dict)


class CatalogSettings(BaseModel):
    default_product: str
    products: dict[str, Product]


class ScanSettings(BaseModel):
    warmup_ms: int = Field(default=1000, ge=0)
    poll_interval_ms: int = Field(default=150, ge=0)
    required_hits: int = Field(default=6, ge=1)
    detected_pause_ms: int = Field(default=800, ge=0)
    colour_scan_ms: int = Field(default=2500, ge=0)
    fit_scan_ms: int = Field(default=2800, ge=0)
    colour_skin_threshold: float = Field(default=0.25, ge=0, le=1)
    fit_skin_threshold: float = Field(default=0.22, ge=0, le=1)
    min_cheekbone_px: float = 25.0
    min_face_height_px: float = 20.0
    min_bands_detected: int = 2
    band_detected_px: float = 8.0
    refresh_min_ratio: float = Field(default=0.10, ge=0, le=1)
    refresh_min_cheekbone_px: float = 20.0

    def scan_ms(self, mode: str) -> int:
        return self.fit_scan_ms if mode == "fit" else self.colour_scan_ms


@lru_cache(maxsize=1)
def load_catalog() -> CatalogSettings:
    with CATALOG_PATH.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    settings = CatalogSettings(**raw)
    for product_id, product in settings.products.items():
        product.id = product_id
    return settings


def get_product(product_id: str | None) -> Product:
    catalog = load_catalog()
    key = (product_id or catalog.default_product).strip().lower()
    if key not in catalog.products:
        key = catalog.default_product
    return catalog.products[key]


def list_products() -> dict[str, Product]:
    return load_catalog().products


def all_colourways() -> list[Colourway]:
    pool: dict[str, Colourway] = {}
    for product in load_catalog().products.values():
        for colourway in product.colourways:
            pool.setdefault(colourway.id, colourway)
    return list(pool.values())


def load_scan_settings() -> ScanSettings:
    overrides: dict[str, int] = {}
    for field_name, env_name in (
        ("warmup_ms", "FRAMEFIT_WARMUP_MS"),
        ("poll_interval_ms", "FRAMEFIT_POLL_INTERVAL_MS"),
        ("required_hits", "FRAMEFIT_REQUIRED_HITS"),
        ("detected_pause_ms", "FRAMEFIT_DETECTED_PAUSE_MS"),
        ("colour_scan_ms", "FRAMEFIT_COLOUR_SCAN_MS"),
        ("fit_scan_ms", "FRAMEFIT_FIT_SCAN_MS"),
    ):
        value = os.getenv(env_name)
        if value is not None and value.strip():
            overrides[field_name] = int(value)
    return ScanSettings(**overrides)
