import base64
import binascii
import http.client
import io
import math
import mimetypes
import os
import re
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Tuple

from PIL import Image

from .geometry import check_view
from .settings import CANVAS_HEIGHT, CANVAS_WIDTH, MAX_UPLOAD_BYTES

MAX_WIDTH_RATIO = 0.25
MAX_HEIGHT_RATIO = 0.20
MIN_INTRINSIC_DIMENSION = 100
BACK_VIEW_Y_OFFSET = 50
URL_TIMEOUT_SECONDS = 10

_DATA_URI_RE = re.compile(r"^data:([^;,]*)((?:;[^;,]*)*),(.*)$", re.DOTALL)


class OverlayLoadError(Exception):
    pass


class OverlayUploadError(ValueError):
    pass


@dataclass(frozen=True)
class OverlayPlacement:
    scale: float
    x: float
    y: float
    width: float
    height: float

    @property
    def box(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


def _finite(value, default: float = 0.0) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(value, maximum))


def place_overlay(
    intrinsic_width,
    intrinsic_height,
    size_preference,
    position_x,
    position_y,
    view: str = "front",
    canvas_width: float = CANVAS_WIDTH,
    canvas_height: float = CANVAS_HEIGHT,
) -> OverlayPlacement:
    check_view(view)
    image_width = _finite(intrinsic_width)
    image_height = _finite(intrinsic_height)
    if image_width <= 0:
        image_width = MIN_INTRINSIC_DIMENSION
    if image_height <= 0:
        image_height = MIN_INTRINSIC_DIMENSION

    max_width = MAX_WIDTH_RATIO * canvas_width
    max_height = MAX_HEIGHT_RATIO * canvas_height

    user_scale = max(0.0, _finite(size_preference)) / 100
    scaled_width = image_width * user_scale
    scaled_height = image_height * user_scale

    # Width and height caps apply independently; the tighter one wins.
    final_scale = user_scale
    if scaled_width > max_width:
        final_scale = min(final_scale, max_width / image_width)
    if scaled_height > max_height:
        final_scale = min(final_scale, max_height / image_height)

    shield_width = min(image_width * final_scale, max_width)
    shield_height = min(image_height * final_scale, max_height)

    raw_x = _finite(position_x)
    raw_y = _finite(position_y)
    if view == "back":
        raw_y += BACK_VIEW_Y_OFFSET

    final_x = _clamp(raw_x, 0, canvas_width - shield_width)
    final_y = _clamp(raw_y, 0, canvas_height - shield_height)
    return OverlayPlacement(final_scale, final_x, final_y, shield_width, shield_height)


def _read_source_bytes(source: str) -> bytes:
    match = _DATA_URI_RE.match(source)
    if match:
        params = match.group(2).lower().split(";")
        payload = match.group(3)
        if "base64" in params:
            return base64.b64decode(payload, validate=False)
        return urllib.parse.unquote_to_bytes(payload)

    scheme = urllib.parse.urlparse(source).scheme.lower()
    if scheme in ("http", "https"):
        with urllib.request.urlopen(source, timeout=URL_TIMEOUT_SECONDS) as response:
            return response.read()
    if scheme == "file":
        source = urllib.request.url2pathname(urllib.parse.urlparse(source).path)

    with open(source, "rb") as handle:
        return handle.read()


def load_overlay_image(source: str) -> Image.Image:
    if not source:
        raise OverlayLoadError("No overlay source given")
    try:
        data = _read_source_bytes(source)
        img = Image.open(io.BytesIO(data))
        img.load()
        return img.convert("RGBA")
    except (OSError, ValueError, binascii.Error, http.client.HTTPException, Image.DecompressionBombError) as exc:
        label = source if len(source) <= 64 else source[:61] + "..."
        raise OverlayLoadError(f"Unable to load overlay from {label}: {exc}") from exc


def prepare_overlay_upload(path: str, max_bytes: int = MAX_UPLOAD_BYTES) -> str:
    mime_type, _ = mimetypes.guess_type(path)
    if not mime_type or not mime_type.startswith("image/"):
        raise OverlayUploadError("Please upload an image file")
    try:
        size = os.path.getsize(path)
    except OSError as exc:
        raise OverlayUploadError(f"Unable to read {path}: {exc}") from exc
    if size > max_bytes:
        raise OverlayUploadError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")

    try:
        with open(path, "rb") as handle:
            payload = handle.read()
    except OSError as exc:
        raise OverlayUploadError(f"Unable to read {path}: {exc}") from exc
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
