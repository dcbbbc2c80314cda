from __future__ import annotations

import logging

import numpy as np

from framefit.config import ScanSettings, all_colourways, get_product, load_scan_settings
from framefit.schemas import ColourMatchResponse, ColourPool, FitResponse
from framefit.services.image_ops import decode_image_bytes, is_light_scene, scene_brightness
from framefit.services.scanner import finalize_colour, finalize_fit, is_colour_hit, is_fit_hit, observe
from framefit.services.tone import classify_skin, score_colourways, skin_hex, skin_label

LOG = logging.getLogger("framefit.pipeline")


class NoFaceDetectedError(ValueError):
    pass


class KioskVisionPipeline:
    """Single-request colour and fit analysis over captured stills.

    The first frame plays the role of the detection seed, the optional
    confirmation frame the later sample taken when the scan clock ends.
    """

    def __init__(self, settings: ScanSettings | None = None) -> None:
        self.settings = settings or load_scan_settings()

    def _decode(self, file_bytes: bytes | None, filename: str | None) -> np.ndarray | None:
        if not file_bytes:
            return None
        name = filename or ""
        extension = (name.rsplit(".", 1)[-1] if "." in name else "").lower()
        return decode_image_bytes(file_bytes, extension=extension)

    def analyze_colour(
        self,
        *,
        file_bytes: bytes,
        filename: str,
        product_id: str | None = None,
        confirm_bytes: bytes | None = None,
        confirm_filename: str | None = None,
        pool: ColourPool = "product",
    ) -> ColourMatchResponse:
        product = get_product(product_id)
        candidates = all_colourways() if pool == "all" else product.colourways
        if not candidates:
            raise ValueError(f"Product '{product.id}' has no colourways to recommend.")

        frame = self._decode(file_bytes, filename)
        seed, _ = observe(frame, "colour")
        if not is_colour_hit(seed, self.settings):
            LOG.info(
                "colour_no_face product=%s ratio=%s",
                product.id,
                None if seed is None else round(seed.ratio, 3),
            )
            raise NoFaceDetectedError("No face detected inside the guide oval.")

        fresh = None
        confirm_frame = self._decode(confirm_bytes, confirm_filename)
        if confirm_frame is not None:
            fresh, _ = observe(confirm_frame, "colour")

        result = finalize_colour(seed, fresh, candidates, self.settings)
        classification = classify_skin(*result.skin_rgb)
        brightness = scene_brightness(frame)
        return ColourMatchResponse(
            product_id=product.id,
            recommendation=result.recommendation,
            ranking=score_colourways(result.skin_rgb, candidates),
            skin_rgb=result.skin_rgb,
            skin_hex=skin_hex(*result.skin_rgb),
            skin_label=skin_label(classification),
            samples_averaged=result.samples_averaged,
            scene_brightness=brightness or 0.0,
            is_light_scene=is_light_scene(brightness),
        )

    def analyze_fit(
        self,
        *,
        file_bytes: bytes,
        filename: str,
        product_id: str | None = None,
        confirm_bytes: bytes | None = None,
        confirm_filename: str | None = None,
    ) -> FitResponse:
        product = get_product(product_id)

        frame = self._decode(file_bytes, filename)
        sample, seed = observe(frame, "fit")
        if seed is None or not is_fit_hit(sample, seed, self.settings):
            LOG.info(
                "fit_no_face product=%s skin_ratio=%s",
                product.id,
                None if seed is None else round(seed.skin_ratio, 3),
            )
            raise NoFaceDetectedError("No face detected inside the guide oval.")

        fresh = None
        confirm_frame = self._decode(confirm_bytes, confirm_filename)
        if confirm_frame is not None:
            _, fresh = observe(confirm_frame, "fit")

        result = finalize_fit(seed, fresh, product, self.settings)
        brightness = scene_brightness(frame)
        return FitResponse(
            product_id=product.id,
            recommendation=result.recommendation,
            metrics=result.metrics,
            samples_averaged=result.samples_averaged,
            scene_brightness=brightness or 0.0,
            is_light_scene=is_light_scene(brightness),
        )
