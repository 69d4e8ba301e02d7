"""Image handling: asset detection and compression before upload.

Images never enter the reconciled text workspace. They are recognized by
extension and only ever transferred as compressed binary payloads.
"""

import io
import logging

from PIL import Image

from .exceptions import ImageTooLargeError
from .utils import format_size

logger = logging.getLogger(__name__)

# Raster and vector image types excluded from trees, contents and baselines
IMAGE_EXTENSIONS: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")

# Largest image payload committed through the contents API (0.8 MB)
GITHUB_FILE_SIZE_LIMIT_BYTES: int = int(0.8 * 1024 * 1024)

DEFAULT_MAX_SIZE: tuple[int, int] = (512, 512)
DEFAULT_QUALITY: int = 80


def is_image_path(path: str) -> bool:
    """Check whether a path names an image asset (case-insensitive).

    Examples:
        >>> is_image_path("assets/Logo.PNG")
        True
        >>> is_image_path("images.md")
        False
    """
    return path.lower().endswith(IMAGE_EXTENSIONS)


def compress_image(
    data: bytes,
    max_size: tuple[int, int] = DEFAULT_MAX_SIZE,
    quality: int = DEFAULT_QUALITY,
    limit_bytes: int = GITHUB_FILE_SIZE_LIMIT_BYTES,
) -> bytes:
    """Resize an image to fit inside a box and re-encode it as WebP.

    The aspect ratio is kept and images are never enlarged.

    Args:
        data: Raw image bytes in any format Pillow can read
        max_size: (width, height) box the image must fit in
        quality: WebP quality (0-100)
        limit_bytes: Maximum size of the encoded result

    Returns:
        WebP encoded bytes

    Raises:
        ImageTooLargeError: If the result is still larger than limit_bytes
        ValueError: If the data is not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
            img.thumbnail(max_size)

            buffer = io.BytesIO()
            img.save(buffer, format="WEBP", quality=quality)
    except OSError as e:
        raise ValueError(f"Cannot read image data: {e}") from e

    result = buffer.getvalue()
    logger.debug(
        f"Compressed image from {format_size(len(data))} to {format_size(len(result))}"
    )

    if len(result) > limit_bytes:
        raise ImageTooLargeError(
            "Image is too large to publish to GitHub even after compression "
            "and resizing. Please use a smaller image."
        )
    return result
