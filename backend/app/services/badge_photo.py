"""Badge photo processing (Pillow).

The wizard's badge step uploads a photo, applies the applicant's
brightness/contrast/rotation/crop choices, and stores the exported image
as a self-contained `data:image/png;base64,...` string in
`badge_photo_url`.  Nothing here writes to the database; the caller
persists the result through the draft service.

Quality analysis is advisory only and never blocks the export.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageEnhance, ImageFont, ImageOps, ImageStat, UnidentifiedImageError

from app.config import settings
from app.middleware.exceptions import UnsupportedImageError
from app.schemas.onboarding import QualityIssue

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_EXPORT_DIMENSION = 800

# Quality thresholds (0-255 luminance)
TOO_DARK_BELOW = 60
TOO_BRIGHT_ABOVE = 200
DARK_PIXEL_LEVEL = 50
DARK_PIXEL_RATIO = 0.5
MIN_WIDTH = 200
MIN_HEIGHT = 200

# Badge card layout
CARD_SIZE = (300, 400)
CARD_BORDER = "#0066cc"
CARD_PHOTO_SIZE = 120
CARD_PHOTO_TOP = 40


@dataclass(frozen=True)
class BadgeAdjustment:
    """Percentages for brightness/contrast (100 = unchanged); clockwise rotation."""
    brightness: float = 100.0
    contrast: float = 100.0
    rotation_degrees: float = 0.0
    # (left, top, right, bottom) in source pixels
    crop: tuple[int, int, int, int] | None = None


def load_image(data: bytes, content_type: str | None) -> Image.Image:
    """Decode an upload into an RGB image, rejecting anything not JPEG/PNG/WEBP."""
    fmt = ALLOWED_CONTENT_TYPES.get((content_type or "").split(";")[0].strip().lower())
    if fmt is None:
        raise UnsupportedImageError("Please upload a JPEG, PNG or WEBP image")
    if not data:
        raise UnsupportedImageError("The uploaded file is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise UnsupportedImageError("Image must be 10MB or smaller")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise UnsupportedImageError("The file could not be read as an image") from exc

    if image.format not in set(ALLOWED_CONTENT_TYPES.values()):
        raise UnsupportedImageError("Please upload a JPEG, PNG or WEBP image")

    image = ImageOps.exif_transpose(image)
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, "white")
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def apply_adjustment(image: Image.Image, adjustment: BadgeAdjustment) -> Image.Image:
    """Return a new image with the adjustment applied; `image` is untouched."""
    result = image
    if adjustment.crop:
        left, top, right, bottom = adjustment.crop
        left, top = max(0, left), max(0, top)
        right, bottom = min(image.width, right), min(image.height, bottom)
        if right > left and bottom > top:
            result = result.crop((left, top, right, bottom))
    if adjustment.brightness != 100:
        result = ImageEnhance.Brightness(result).enhance(max(adjustment.brightness, 0) / 100)
    if adjustment.contrast != 100:
        result = ImageEnhance.Contrast(result).enhance(max(adjustment.contrast, 0) / 100)
    if adjustment.rotation_degrees % 360:
        result = rotate(result, adjustment.rotation_degrees)
    return result if result is not image else image.copy()


def rotate(image: Image.Image, degrees: float) -> Image.Image:
    # PIL rotates counter-clockwise
    return image.rotate(-degrees, expand=True, fillcolor="white")


def analyze_quality(image: Image.Image) -> list[QualityIssue]:
    issues: list[QualityIssue] = []
    gray = image.convert("L")

    brightness = ImageStat.Stat(gray).mean[0]
    if brightness < TOO_DARK_BELOW:
        issues.append(QualityIssue(
            type="too_dark",
            severity="high" if brightness < TOO_DARK_BELOW / 2 else "medium",
            message="Photo appears too dark",
            suggestion="Increase brightness or retake the photo in better lighting",
        ))
    elif brightness > TOO_BRIGHT_ABOVE:
        issues.append(QualityIssue(
            type="too_bright",
            severity="medium",
            message="Photo appears overexposed",
            suggestion="Reduce brightness or avoid direct light behind the camera",
        ))

    histogram = gray.histogram()
    total = gray.width * gray.height
    dark = sum(histogram[:DARK_PIXEL_LEVEL])
    if total and dark / total > DARK_PIXEL_RATIO:
        issues.append(QualityIssue(
            type="dark_pixels",
            severity="low",
            message="Large parts of the photo are very dark",
            suggestion="Make sure your face is evenly lit",
        ))

    if image.width < MIN_WIDTH or image.height < MIN_HEIGHT:
        issues.append(QualityIssue(
            type="low_resolution",
            severity="high",
            message=f"Photo is {image.width}x{image.height}; at least {MIN_WIDTH}x{MIN_HEIGHT} is recommended",
            suggestion="Upload a higher resolution photo",
        ))
    return issues


def _centered_text(draw: ImageDraw.ImageDraw, y: int, text: str, fill: str, font) -> None:
    width = draw.textlength(text, font=font)
    draw.text(((CARD_SIZE[0] - width) / 2, y), text, fill=fill, font=font)


def compose_badge_card(
    photo: Image.Image,
    *,
    full_name: str,
    email: str | None = None,
    company_name: str | None = None,
) -> Image.Image:
    """Render the photo onto a 300x400 badge card with a round portrait."""
    card = Image.new("RGB", CARD_SIZE, "white")
    draw = ImageDraw.Draw(card)
    draw.rectangle((0, 0, CARD_SIZE[0] - 1, CARD_SIZE[1] - 1), outline=CARD_BORDER, width=4)

    portrait = ImageOps.fit(photo, (CARD_PHOTO_SIZE, CARD_PHOTO_SIZE))
    mask = Image.new("L", portrait.size, 0)
    ImageDraw.Draw(mask).ellipse((0, 0, CARD_PHOTO_SIZE, CARD_PHOTO_SIZE), fill=255)
    card.paste(portrait, ((CARD_SIZE[0] - CARD_PHOTO_SIZE) // 2, CARD_PHOTO_TOP), mask)

    font = ImageFont.load_default()
    _centered_text(draw, 190, (company_name or settings.company_name).upper(), CARD_BORDER, font)
    _centered_text(draw, 230, full_name.strip() or "FIRST NAME LAST NAME", "#333333", font)
    if email:
        _centered_text(draw, 290, email, "#666666", font)
    return card


def to_data_url(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def export_final(image: Image.Image, *, badge_card: dict | None = None) -> str:
    """Encode the finished photo as a self-contained PNG data URL.

    `badge_card` (keyword arguments for compose_badge_card) renders the
    printable card instead of the bare photo.
    """
    if badge_card is not None:
        return to_data_url(compose_badge_card(image, **badge_card))

    result = image
    if max(image.size) > MAX_EXPORT_DIMENSION:
        result = image.copy()
        result.thumbnail((MAX_EXPORT_DIMENSION, MAX_EXPORT_DIMENSION), Image.Resampling.LANCZOS)
    return to_data_url(result)
