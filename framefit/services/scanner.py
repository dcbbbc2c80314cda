from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

import numpy as np

from framefit.config import Product, ScanSettings, load_scan_settings
from framefit.schemas import (
    ColourScanResult,
    Colourway,
    FaceMetrics,
    FitScanResult,
    ScanMode,
    ScanPhase,
    SkinSample,
)
from framefit.services.image_ops import FrameSource
from framefit.services.metrics import average_metrics, measure_guide
from framefit.services.shape import recommend_fit
from framefit.services.skin import average_samples, sample_guide_region
from framefit.services.tone import DEFAULT_SKIN_RGB, recommend_colourway

LOG = logging.getLogger("framefit.scanner")

PhaseListener = Callable[[ScanPhase], None]


def is_colour_hit(sample: SkinSample | None, settings: ScanSettings) -> bool:
    return sample is not None and sample.ratio >= settings.colour_skin_threshold and sample.face_like


def is_fit_hit(sample: SkinSample | None, metrics: FaceMetrics | None, settings: ScanSettings) -> bool:
    if sample is None or metrics is None or not sample.face_like:
        return False
    bands_detected = sum(1 for width in metrics.band_widths() if width > settings.band_detected_px)
    return (
        metrics.skin_ratio >= settings.fit_skin_threshold
        and metrics.cheekbone_width >= settings.min_cheekbone_px
        and metrics.face_height >= settings.min_face_height_px
        and bands_detected >= settings.min_bands_detected
    )


def finalize_colour(
    seed: SkinSample | None,
    fresh: SkinSample | None,
    candidates: Sequence[Colourway],
    settings: ScanSettings,
) -> ColourScanResult:
    """Average the frozen seed with a later sample and recommend a colourway.

    The later sample is only used when enough of the oval is still skin.
    Without any usable sample the neutral mid-tone default is classified.
    """
    usable_fresh = fresh if fresh is not None and fresh.ratio > settings.refresh_min_ratio else None

    if seed is not None and usable_fresh is not None:
        sample: SkinSample | None = average_samples(seed, usable_fresh)
        samples_averaged = 2
    elif seed is not None or usable_fresh is not None:
        sample = seed if seed is not None else usable_fresh
        samples_averaged = 1
    else:
        sample = None
        samples_averaged = 0

    skin_rgb = sample.rgb if sample is not None else DEFAULT_SKIN_RGB
    return ColourScanResult(
        recommendation=recommend_colourway(skin_rgb, candidates),
        skin_sample=sample,
        skin_rgb=skin_rgb,
        samples_averaged=samples_averaged,
    )


def finalize_fit(
    seed: FaceMetrics,
    fresh: FaceMetrics | None,
    product: Product,
    settings: ScanSettings,
) -> FitScanResult:
    metrics = seed
    samples_averaged = 1
    if (
        fresh is not None
        and fresh.skin_ratio > settings.refresh_min_ratio
        and fresh.cheekbone_width > settings.refresh_min_cheekbone_px
    ):
        metrics = average_metrics(seed, fresh)
        samples_averaged = 2
    return FitScanResult(
        recommendation=recommend_fit(metrics, product),
        metrics=metrics,
        samples_averaged=samples_averaged,
    )


class ScanSession:
    """Face-presence state machine for one colour or fit scan.

    The session owns no timers and does no I/O. The caller feeds it one
    observation per poll, advances it after the detected pause, and hands it
    the final observation when the scan clock runs out.
    """

    def __init__(
        self,
        mode: ScanMode,
        product: Product,
        settings: ScanSettings | None = None,
        candidates: Sequence[Colourway] | None = None,
    ) -> None:
        self.mode = mode
        self.product = product
        self.settings = settings or load_scan_settings()
        self.candidates = list(candidates) if candidates is not None else list(product.colourways)
        self.reset()

    def reset(self) -> None:
        self._phase: ScanPhase = "waiting"
        self._consecutive_hits = 0
        self._seed_sample: SkinSample | None = None
        self._seed_metrics: FaceMetrics | None = None
        self._result: ColourScanResult | FitScanResult | None = None

    @property
    def phase(self) -> ScanPhase:
        return self._phase

    @property
    def consecutive_hits(self) -> int:
        return self._consecutive_hits

    @property
    def seed_sample(self) -> SkinSample | None:
        return self._seed_sample

    @property
    def seed_metrics(self) -> FaceMetrics | None:
        return self._seed_metrics

    @property
    def result(self) -> ColourScanResult | FitScanResult | None:
        return self._result

    def is_hit(self, sample: SkinSample | None, metrics: FaceMetrics | None = None) -> bool:
        if self.mode == "fit":
            return is_fit_hit(sample, metrics, self.settings)
        return is_colour_hit(sample, self.settings)

    def poll(self, sample: SkinSample | None, metrics: FaceMetrics | None = None) -> bool:
        """Record one observation; returns True on the transition to ``detected``."""
        if self._phase != "waiting":
            return False

        if not self.is_hit(sample, metrics):
            self._consecutive_hits = 0
            return False

        self._consecutive_hits += 1
        if self._consecutive_hits < self.settings.required_hits:
            return False

        self._seed_sample = sample
        self._seed_metrics = metrics
        self._phase = "detected"
        LOG.info("scan_detected mode=%s hits=%d", self.mode, self._consecutive_hits)
        return True

    def begin_scan(self) -> None:
        if self._phase != "detected":
            raise RuntimeError(f"Cannot begin scanning from phase '{self._phase}'.")
        self._phase = "scanning"
        LOG.info("scan_started mode=%s", self.mode)

    def complete(
        self,
        sample: SkinSample | None,
        metrics: FaceMetrics | None = None,
    ) -> ColourScanResult | FitScanResult:
        if self._phase != "scanning":
            raise RuntimeError(f"Cannot complete a scan from phase '{self._phase}'.")

        if self.mode == "fit":
            if self._seed_metrics is None:
                raise RuntimeError("Fit scan has no seed measurement.")
            result: ColourScanResult | FitScanResult = finalize_fit(
                self._seed_metrics, metrics, self.product, self.settings
            )
        else:
            result = finalize_colour(self._seed_sample, sample, self.candidates, self.settings)

        self._result = result
        self._phase = "result"
        LOG.info("scan_completed mode=%s samples_averaged=%d", self.mode, result.samples_averaged)
        return result


def observe(frame: np.ndarray | None, mode: ScanMode) -> tuple[SkinSample | None, FaceMetrics | None]:
    if mode == "fit":
        return measure_guide(frame)
    return sample_guide_region(frame), None


async def run_scan(
    source: FrameSource,
    session: ScanSession,
    on_phase: PhaseListener | None = None,
) -> ColourScanResult | FitScanResult:
    """Drive a session from a live frame source until it reaches ``result``.

    Polling is strictly sequential; cancelling the awaiting task stops it at
    the next sleep.
    """
    if session.phase != "waiting":
        raise RuntimeError(f"Cannot run a scan from phase '{session.phase}'; reset the session first.")
    settings = session.settings

    def notify(phase: ScanPhase) -> None:
        if on_phase is not None:
            on_phase(phase)

    await asyncio.sleep(settings.warmup_ms / 1000.0)
    while session.phase == "waiting":
        await asyncio.sleep(settings.poll_interval_ms / 1000.0)
        sample, metrics = observe(source.read(), session.mode)
        session.poll(sample, metrics)
    notify("detected")

    await asyncio.sleep(settings.detected_pause_ms / 1000.0)
    session.begin_scan()
    notify("scanning")

    await asyncio.sleep(settings.scan_ms(session.mode) / 1000.0)
    sample, metrics = observe(source.read(), session.mode)
    result = session.complete(sample, metrics)
    notify("result")
    return result
