from abc import ABC, abstractmethod

import cv2
import numpy as np

from ..errors import FrameDecodeError
from ..ip_types import Frame


class PreprocessStrategy(ABC):
    @abstractmethod
    def apply(self, f: Frame) -> Frame: ...


class ColorFrame(PreprocessStrategy):
    """Convert a frame to 3-channel 8-bit BGR, keeping its header.

    Raises FrameDecodeError for anything that cannot be converted.
    """

    # encoding -> (channels, cvtColor code or None)
    CONVERSIONS = {
        "bgr8": (3, None),
        "rgb8": (3, cv2.COLOR_RGB2BGR),
        "bgra8": (4, cv2.COLOR_BGRA2BGR),
        "rgba8": (4, cv2.COLOR_RGBA2BGR),
        "mono8": (1, cv2.COLOR_GRAY2BGR),
    }

    def apply(self, f: Frame) -> Frame:
        img = f.image
        enc = (f.encoding or "bgr8").lower()
        if enc not in self.CONVERSIONS:
            raise FrameDecodeError(f"frame {f.idx}: unsupported encoding {f.encoding!r}")
        if not isinstance(img, np.ndarray) or img.size == 0:
            raise FrameDecodeError(f"frame {f.idx}: empty image")
        if img.dtype != np.uint8:
            raise FrameDecodeError(f"frame {f.idx}: expected uint8, got {img.dtype}")

        channels, code = self.CONVERSIONS[enc]
        actual = 1 if img.ndim == 2 else (img.shape[2] if img.ndim == 3 else -1)
        if actual != channels:
            raise FrameDecodeError(
                f"frame {f.idx}: {enc} expects {channels} channel(s), got shape {img.shape}"
            )

        if code is None:
            return f if f.encoding == "bgr8" else f.with_image(img)
        return f.with_image(cv2.cvtColor(img, code))
