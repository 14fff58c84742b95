"""Image decoding, darkening and the end-to-end frame render.

:func:`render_frame` is the whole image side of a request: decode the
original, apply its EXIF orientation, cut the maximal crop with the
requested aspect ratio at the most salient position, optionally resize it,
optionally darken it, and encode it as PNG.

Darkening
---------
``darken`` is a *target* darkness from 0 (leave as is) to 100 (black).
The current darkness of the crop is measured as
``100 - round(mean brightness / 255 * 100)``.  If the crop is already at
least that dark nothing happens; otherwise a black layer with alpha
``(target - darkness) / 100`` is composited on top.  Displays that overlay
text on the wallpaper use this to keep it readable without flattening
already-dark photos.
"""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageOps, ImageStat, UnidentifiedImageError
from pillow_heif import register_heif_opener

from framecrop.core.cropping import best_crop, max_crop_for_aspect
from framecrop.core.errors import ImageProcessingError, ParameterError

# Immich stores iPhone originals as HEIC.
register_heif_opener()

logger = logging.getLogger(__name__)


def load_oriented(data: bytes) -> Image.Image:
    """Decode image bytes and apply the EXIF orientation tag.

    Args:
        data: Encoded image file contents.

    Returns:
        A fully loaded image in ``RGB`` or ``RGBA`` mode.

    Raises:
        ImageProcessingError: If the bytes cannot be decoded or the image
            has no dimensions.
    """
    try:
        with Image.open(io.BytesIO(data)) as raw:
            image = ImageOps.exif_transpose(raw)
            image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageProcessingError(f"Unable to decode image: {exc}") from exc

    if not image.width or not image.height:
        raise ImageProcessingError("Unable to read image dimensions")

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA") if "A" in image.getbands() else image.convert("RGB")
    return image


def darkness(image: Image.Image) -> int:
    """Return how dark ``image`` is on a 0 (white) to 100 (black) scale."""
    means = ImageStat.Stat(image.convert("RGB")).mean
    brightness = sum(means[:3]) / 3
    return 100 - round(brightness / 255 * 100)


def apply_darken(image: Image.Image, target: int | None) -> Image.Image:
    """Darken ``image`` until it reaches the ``target`` darkness.

    Args:
        image: ``RGB`` or ``RGBA`` image.
        target: Desired darkness 0..100 (clamped), or ``None`` to skip.

    Returns:
        The composited image, or ``image`` itself when no overlay is needed.
    """
    current = darkness(image)
    logger.info("Original darkness: %d, requested darken: %s", current, target)
    if target is None:
        return image

    target = max(0, min(100, int(target)))
    if current >= target:
        return image

    alpha = (target - current) / 100
    overlay = Image.new("RGBA", image.size, (0, 0, 0, round(alpha * 255)))
    composited = Image.alpha_composite(image.convert("RGBA"), overlay)
    return composited if image.mode == "RGBA" else composited.convert("RGB")


def encode_png(image: Image.Image) -> bytes:
    """Encode ``image`` as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def render_frame(
    data: bytes,
    width: int,
    height: int,
    darken: int | None = None,
    *,
    resize: bool = False,
    analysis_size: int = 256,
    max_output_size: int = 8192,
) -> bytes:
    """Turn an original photo into the PNG served to a frame.

    Args:
        data: Original image bytes as downloaded from Immich.
        width: Requested output width; defines the aspect ratio.
        height: Requested output height; defines the aspect ratio.
        darken: Optional target darkness 0..100.
        resize: Scale the crop to exactly ``width`` x ``height``.  When
            ``False`` the crop keeps the source resolution.
        analysis_size: Longest side used for saliency analysis.
        max_output_size: Largest ``width`` or ``height`` accepted when
            ``resize`` is set.

    Returns:
        PNG-encoded bytes.

    Raises:
        ImageProcessingError: If the image cannot be decoded or encoded.
        ParameterError: If ``width`` or ``height`` is not positive, or
            exceeds ``max_output_size`` while resizing.
    """
    if resize and max(width, height) > max_output_size:
        raise ParameterError(f"Requested size exceeds the maximum of {max_output_size} pixels per side")

    image = load_oriented(data)
    crop_w, crop_h = max_crop_for_aspect(image.width, image.height, width, height)
    box = best_crop(image, crop_w, crop_h, analysis_size=analysis_size)
    cropped = image.crop(box.box)

    if resize and cropped.size != (width, height):
        cropped = cropped.resize((width, height), Image.LANCZOS)

    return encode_png(apply_darken(cropped, darken))
