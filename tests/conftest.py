"""Shared synthetic frames for the kiosk vision tests.

Frames are RGB ``uint8`` arrays. The "face" is a filled ellipse drawn at the
guide centre (x = W/2, y = 0.42 H) on a flat grey background, which the skin
classifier rejects as achromatic.
"""

from __future__ import annotations

import cv2
import numpy as np
import pytest

SKIN_RGB = (200, 150, 130)
GREY_RGB = (128, 128, 128)


def make_face_frame(
    width: int = 640,
    height: int = 480,
    skin: tuple[int, int, int] = SKIN_RGB,
    background: tuple[int, int, int] = GREY_RGB,
    axes: tuple[int, int] | None = None,
) -> np.ndarray:
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:, :] = background
    if axes is None:
        axes = (int(width * 0.156), int(height * 0.26))
    center = (int(round(width / 2)), int(round(height * 0.42)))
    cv2.ellipse(frame, center, axes, 0, 0, 360, skin, -1)
    return frame


def make_blank_frame(
    width: int = 640,
    height: int = 480,
    colour: tuple[int, int, int] = GREY_RGB,
) -> np.ndarray:
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:, :] = colour
    return frame


def encode_png(frame: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(frame, cv2.COLOR_RGB2BGR))
    assert ok
    return encoded.tobytes()


class ScriptedFrameSource:
    """Plays back a fixed list of frames, repeating the last one."""

    def __init__(self, frames: list[np.ndarray | None]) -> None:
        self.frames = list(frames)
        self.reads = 0

    def read(self) -> np.ndarray | None:
        index = min(self.reads, len(self.frames) - 1)
        self.reads += 1
        return self.frames[index]


@pytest.fixture
def face_frame() -> np.ndarray:
    return make_face_frame()


@pytest.fixture
def blank_frame() -> np.ndarray:
    return make_blank_frame()
