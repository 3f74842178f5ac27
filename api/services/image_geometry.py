"""
Image geometry helpers for the square-only image model.

The image model only emits square outputs, so uploads are letterboxed into a
fixed square before transmission and the synthesized squares are cropped back
to the upload's aspect ratio afterwards. Both directions compute the content
rectangle with content_box() so the crop removes exactly the padding the
letterbox step added.
"""
import io
import logging
from typing import Tuple, Union

from PIL import Image, ImageColor, ImageOps, UnidentifiedImageError

from core.exceptions import DecodeError

logger = logging.getLogger(__name__)

DEFAULT_TARGET_SIZE = 1024
DEFAULT_BACKGROUND = "#000000"
DEFAULT_QUALITY = 95

Color = Union[str, Tuple[int, int, int]]


def _open_image(image_bytes: bytes) -> Image.Image:
    """Decode bytes into a loaded PIL image, raising DecodeError on failure."""
    if not image_bytes:
        raise DecodeError("Image data is empty.")
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Could not decode image: {e}") from e
    return image


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def measure_dimensions(image_bytes: bytes) -> Tuple[int, int]:
    """
    Intrinsic (width, height) of an encoded image.

    EXIF orientation is honoured so a rotated phone photo reports the size it
    is displayed at.
    """
    image = ImageOps.exif_transpose(_open_image(image_bytes))
    return image.width, image.height


def content_box(width: int, height: int, target_size: int) -> Tuple[int, int, int, int]:
    """
    Centered (left, top, right, bottom) rectangle a width x height image
    occupies inside a target_size square.

    Landscape sources span the full width; portrait and square sources span
    the full height.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image dimensions {width}x{height}")
    if target_size <= 0:
        raise ValueError(f"Invalid target size {target_size}")

    aspect_ratio = width / height
    if aspect_ratio > 1:
        box_width = target_size
        box_height = max(1, round(target_size / aspect_ratio))
    else:
        box_height = target_size
        box_width = max(1, round(target_size * aspect_ratio))

    left = (target_size - box_width) // 2
    top = (target_size - box_height) // 2
    return left, top, left + box_width, top + box_height


def letterbox_to_square(
    image_bytes: bytes,
    target_size: int = DEFAULT_TARGET_SIZE,
    background: Color = DEFAULT_BACKGROUND,
    quality: int = DEFAULT_QUALITY,
) -> bytes:
    """
    Fit an image into a target_size square, padding with the background color.

    Returns JPEG bytes. The output depends only on the inputs.
    """
    source = ImageOps.exif_transpose(_open_image(image_bytes)).convert("RGB")
    left, top, right, bottom = content_box(source.width, source.height, target_size)

    resized = source.resize((right - left, bottom - top), Image.Resampling.LANCZOS)
    fill = ImageColor.getrgb(background) if isinstance(background, str) else background
    canvas = Image.new("RGB", (target_size, target_size), fill)
    canvas.paste(resized, (left, top))

    logger.debug(f"Letterboxed {source.width}x{source.height} into {target_size}px square at ({left}, {top})")
    return _encode_jpeg(canvas, quality)


def crop_to_original_aspect(
    square_bytes: bytes,
    original_width: int,
    original_height: int,
    target_size: int = DEFAULT_TARGET_SIZE,
    quality: int = DEFAULT_QUALITY,
) -> bytes:
    """
    Remove the letterbox padding from a square image.

    The box is computed for target_size and scaled to the square's actual size,
    since the model may answer at a different resolution than it was sent.
    Returns JPEG bytes.
    """
    square = _open_image(square_bytes)
    left, top, right, bottom = content_box(original_width, original_height, target_size)

    if square.width != target_size or square.height != target_size:
        scale_x = square.width / target_size
        scale_y = square.height / target_size
        logger.info(
            f"Synthesized image is {square.width}x{square.height}, expected {target_size}px square; scaling crop box"
        )
        left, right = round(left * scale_x), round(right * scale_x)
        top, bottom = round(top * scale_y), round(bottom * scale_y)

    cropped = square.crop((left, top, right, bottom))
    return _encode_jpeg(cropped, quality)
