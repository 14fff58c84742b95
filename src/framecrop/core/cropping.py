"""Aspect-fit arithmetic and saliency-guided crop placement.

Cropping happens in two steps:

1. :func:`max_crop_for_aspect` computes the largest rectangle with the
   requested aspect ratio that fits inside the source image.  Because the
   rectangle is maximal, at least one side always spans the full image, so
   the crop can only slide along one axis (or not at all).
2. :func:`best_crop` decides *where* that rectangle goes.  A saliency map
   is computed with OpenCV's spectral-residual detector on a downscaled
   copy, and the window with the highest summed saliency wins.  Ties are
   resolved toward the centred window, which also makes featureless images
   fall back to a plain centre crop.

The saliency detector lives in ``opencv-contrib`` (``cv2.saliency``); the
plain ``opencv-python`` wheels do not ship it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image

from framecrop.core.errors import ImageProcessingError, ParameterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CropBox:
    """A crop rectangle in source-image pixels."""

    left: int
    top: int
    width: int
    height: int

    @property
    def box(self) -> tuple[int, int, int, int]:
        """The ``(left, upper, right, lower)`` tuple Pillow's ``crop`` expects."""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


def max_crop_for_aspect(img_w: int, img_h: int, req_w: int, req_h: int) -> tuple[int, int]:
    """Return the largest ``(width, height)`` with aspect ``req_w:req_h`` inside the image.

    Full width is tried first; if the matching height would overflow, full
    height is used instead.  Both sides are clamped to ``1..image side``.

    Args:
        img_w: Source width in pixels.
        img_h: Source height in pixels.
        req_w: Requested output width (only the ratio matters).
        req_h: Requested output height (only the ratio matters).

    Returns:
        Tuple of ``(crop_width, crop_height)``.

    Raises:
        ParameterError: If any argument is not positive.
    """
    if min(img_w, img_h, req_w, req_h) <= 0:
        raise ParameterError("Image and requested dimensions must be positive")

    # Full width first. Exact integer floors, no float rounding.
    width = img_w
    height = img_w * req_h // req_w
    if height > img_h:
        height = img_h
        width = img_h * req_w // req_h

    width = max(1, min(width, img_w))
    height = max(1, min(height, img_h))
    return width, height


def saliency_map(image: Image.Image, analysis_size: int = 256) -> tuple[np.ndarray, float, float]:
    """Compute a spectral-residual saliency map on a downscaled copy.

    Args:
        image: Source image (any mode; converted to RGB for analysis).
        analysis_size: Longest side of the analysis copy.  Images already
            smaller than this are analysed at full size.

    Returns:
        Tuple of ``(map, scale_x, scale_y)`` where ``map`` is a 2-D float
        array of the analysis copy's size and the scales convert
        source-pixel coordinates into map coordinates.

    Raises:
        ImageProcessingError: If OpenCV fails to produce a map.
    """
    src_w, src_h = image.size
    scale = min(1.0, analysis_size / max(src_w, src_h))
    small = image.convert("RGB")
    if scale < 1.0:
        small = small.resize(
            (max(1, round(src_w * scale)), max(1, round(src_h * scale))),
            Image.BILINEAR,
        )

    bgr = cv2.cvtColor(np.asarray(small), cv2.COLOR_RGB2BGR)
    detector = cv2.saliency.StaticSaliencySpectralResidual_create()
    success, result = detector.computeSaliency(bgr)
    if not success or result is None:
        raise ImageProcessingError("Saliency detection failed")

    # Flat regions can yield non-finite values from the log spectrum.
    result = np.nan_to_num(np.asarray(result, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
    return result, small.width / src_w, small.height / src_h


def _window_sums(sal: np.ndarray, win_w: int, win_h: int) -> np.ndarray:
    """Summed saliency of every ``win_w`` x ``win_h`` window, indexed ``[y, x]``."""
    integral = np.zeros((sal.shape[0] + 1, sal.shape[1] + 1), dtype=np.float64)
    integral[1:, 1:] = sal.cumsum(axis=0).cumsum(axis=1)
    ny = sal.shape[0] - win_h + 1
    nx = sal.shape[1] - win_w + 1
    return (
        integral[win_h : win_h + ny, win_w : win_w + nx]
        - integral[0:ny, win_w : win_w + nx]
        - integral[win_h : win_h + ny, 0:nx]
        + integral[0:ny, 0:nx]
    )


def _most_central(candidates: np.ndarray, ny: int, nx: int) -> tuple[int, int]:
    cy = (ny - 1) / 2
    cx = (nx - 1) / 2
    distances = (candidates[:, 0] - cy) ** 2 + (candidates[:, 1] - cx) ** 2
    y, x = candidates[int(np.argmin(distances))]
    return int(y), int(x)


def best_crop(image: Image.Image, crop_w: int, crop_h: int, analysis_size: int = 256) -> CropBox:
    """Place a ``crop_w`` x ``crop_h`` window over the most salient region.

    Args:
        image: Orientation-corrected source image.
        crop_w: Crop width in source pixels (clamped to the image width).
        crop_h: Crop height in source pixels (clamped to the image height).
        analysis_size: Longest side of the saliency analysis copy.

    Returns:
        A :class:`CropBox` that lies entirely inside the image.
    """
    img_w, img_h = image.size
    crop_w = max(1, min(crop_w, img_w))
    crop_h = max(1, min(crop_h, img_h))

    if crop_w == img_w and crop_h == img_h:
        return CropBox(0, 0, img_w, img_h)

    sal, scale_x, scale_y = saliency_map(image, analysis_size)
    map_h, map_w = sal.shape[:2]
    win_w = max(1, min(map_w, round(crop_w * scale_x)))
    win_h = max(1, min(map_h, round(crop_h * scale_y)))

    scores = _window_sums(sal, win_w, win_h)
    best = float(scores.max())
    tolerance = 1e-9 * max(abs(best), 1.0)
    candidates = np.argwhere(scores >= best - tolerance)
    y, x = _most_central(candidates, *scores.shape)

    left = min(max(0, round(x / scale_x)), img_w - crop_w)
    top = min(max(0, round(y / scale_y)), img_h - crop_h)
    logger.debug(
        "Best crop %dx%d at (%d, %d) in %dx%d image (score %.3f).",
        crop_w,
        crop_h,
        left,
        top,
        img_w,
        img_h,
        best,
    )
    return CropBox(left, top, crop_w, crop_h)
