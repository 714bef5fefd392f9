"""
Photo download and preparation for contact photo synchronization.

Provides utilities for:
- Downloading a directory contact's current photo from its URL
- Validating candidate photos and converting them to an uploadable JPEG
"""

import io
import logging
import time

import requests
from PIL import Image
from requests.exceptions import RequestException

from contact_photo_sync import __version__

# Retry configuration
MAX_RETRIES = 3
INITIAL_RETRY_DELAY = 1.0  # seconds
MAX_RETRY_DELAY = 10.0  # seconds

# HTTP timeout configuration
DOWNLOAD_TIMEOUT = 30.0  # seconds

USER_AGENT = f"contact-photo-sync/{__version__}"

# Photo preparation configuration
MAX_PHOTO_SIZE = 5 * 1024 * 1024  # 5MB - People API limit
MAX_PHOTO_DIMENSION = 1024  # pixels - contact photos are shown small
JPEG_QUALITY = 90
MIN_JPEG_QUALITY = 30

logger = logging.getLogger(__name__)


class PhotoError(Exception):
    """Raised when a photo operation fails."""

    pass


class PhotoDownloadError(PhotoError):
    """Raised when photo download fails after retries."""

    pass


def download_photo(
    url: str, max_retries: int = MAX_RETRIES, timeout: float = DOWNLOAD_TIMEOUT
) -> bytes:
    """
    Download a photo, retrying server errors and network failures.

    Client errors (4xx) are not retried.

    Args:
        url: http(s) URL of the photo
        max_retries: Maximum number of attempts (default: 3)
        timeout: Request timeout in seconds (default: 30)

    Returns:
        Photo data as bytes

    Raises:
        PhotoDownloadError: If the download fails
        PhotoError: For an empty or non-http URL, or an empty response
    """
    if not url:
        raise PhotoError("Photo URL cannot be empty")

    if not url.startswith(("http://", "https://")):
        raise PhotoError(f"Invalid photo URL scheme: {url}")

    delay = INITIAL_RETRY_DELAY
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            response = requests.get(
                url, timeout=timeout, headers={"User-Agent": USER_AGENT}
            )
            response.raise_for_status()

        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code is None or status_code < 500:
                logger.error(f"HTTP error downloading photo from {url}: {e}")
                raise PhotoDownloadError(f"Failed to download photo: {e}") from e
            last_error = e

        except RequestException as e:
            # Timeouts and connection errors
            last_error = e

        else:
            if not response.content:
                raise PhotoError(f"Empty response from {url}")

            logger.debug(f"Downloaded photo: {len(response.content)} bytes from {url}")
            return response.content

        if attempt < max_retries - 1:
            logger.warning(
                f"Photo download failed ({last_error}), retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{max_retries})"
            )
            time.sleep(delay)
            delay = min(delay * 2, MAX_RETRY_DELAY)

    logger.error(f"Giving up on photo download from {url}: {last_error}")
    raise PhotoDownloadError(
        f"Failed to download photo after {max_retries} attempts: {last_error}"
    ) from last_error


def process_photo(
    photo_data: bytes,
    max_size: int = MAX_PHOTO_SIZE,
    max_dimension: int = MAX_PHOTO_DIMENSION,
) -> bytes:
    """
    Validate a photo and convert it to a JPEG the People API accepts.

    Transparent images are flattened onto white, oversized images are
    scaled down preserving aspect ratio, and JPEG quality is lowered step
    by step until the result fits in max_size.

    Args:
        photo_data: Raw image bytes in any format Pillow can read
        max_size: Maximum output size in bytes (default: 5MB)
        max_dimension: Maximum width/height in pixels (default: 1024)

    Returns:
        JPEG bytes

    Raises:
        PhotoError: If the data is not a readable image or cannot be made
            small enough
    """
    if not photo_data:
        raise PhotoError("Photo data cannot be empty")

    try:
        image = Image.open(io.BytesIO(photo_data))
        image.load()
    except (
        Image.UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as e:
        logger.debug(f"Rejected photo data: {e}")
        raise PhotoError("Invalid or unsupported image format") from e

    has_alpha = image.mode in ("RGBA", "LA")
    if has_alpha or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        image = background
    elif image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    if max(image.size) > max_dimension:
        original_size = image.size
        image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        logger.debug(f"Resized photo from {original_size} to {image.size}")

    quality = JPEG_QUALITY
    while True:
        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality, optimize=True)
        data = output.getvalue()
        if len(data) <= max_size:
            return data
        if quality - 10 < MIN_JPEG_QUALITY:
            raise PhotoError(
                f"Unable to reduce photo size below {max_size} bytes "
                f"(current: {len(data)} bytes)"
            )
        quality -= 10
