import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

import numpy as np
from PIL import Image

RGB = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]

BLACK: RGBA = (0, 0, 0, 255)
DEFAULT_GRADIENT_ANGLE = 135.0

# Text runs are painted with one flat color, so gradient text collapses to
# one of these per slot.
TEXT_SLOT_APPROXIMATIONS: Dict[str, str] = {
    "secondary": "#ffffff",
    "accent": "#fbbf24",
}


class ColorValueError(ValueError):
    pass


def hex_to_rgba(hex_color):
    hex_color = str(hex_color).strip().lstrip("#")
    lv = len(hex_color)
    try:
        if lv == 3:
            return tuple(int(ch * 2, 16) for ch in hex_color) + (255,)
        if lv == 6:
            return tuple(int(hex_color[i:i + 2], 16) for i in (0, 2, 4)) + (255,)
        if lv == 8:
            return tuple(int(hex_color[i:i + 2], 16) for i in (0, 2, 4, 6))
    except ValueError:
        pass
    raise ColorValueError(f"Invalid hex color '#{hex_color}'")


def rgb_to_hex(rgb) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb[:3])


def _format_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    # Positional notation keeps the output inside the stop and angle grammar.
    return np.format_float_positional(value, trim="-")


@dataclass(frozen=True)
class SolidColor:
    rgb: RGB

    @property
    def rgba(self) -> RGBA:
        return tuple(self.rgb) + (255,)

    def to_css(self) -> str:
        return rgb_to_hex(self.rgb)


@dataclass(frozen=True)
class GradientColor:
    """Multi-stop linear gradient; stops are (position in percent, rgb)."""

    stops: Tuple[Tuple[float, RGB], ...]
    angle: float = DEFAULT_GRADIENT_ANGLE
    name: Optional[str] = None

    def to_css(self) -> str:
        parts = [f"{_format_number(self.angle)}deg"]
        parts.extend(f"{rgb_to_hex(rgb)} {_format_number(pos)}%" for pos, rgb in self.stops)
        return f"linear-gradient({', '.join(parts)})"

    @property
    def dominant(self) -> RGB:
        return self.stops[len(self.stops) // 2][1]


ColorValue = Union[SolidColor, GradientColor]


def _gradient(name: str, *hex_stops: str, angle: float = DEFAULT_GRADIENT_ANGLE) -> GradientColor:
    count = len(hex_stops)
    stops = tuple(
        (float(round(100.0 * i / (count - 1), 4)), hex_to_rgba(color)[:3])
        for i, color in enumerate(hex_stops)
    )
    return GradientColor(stops=stops, angle=float(angle), name=name)


PRESET_GRADIENTS: Dict[str, GradientColor] = {
    preset.name: preset
    for preset in (
        _gradient("gold", "#FFD700", "#FFA500", "#FFD700", "#B8860B", "#FFD700"),
        _gradient("silver", "#C0C0C0", "#808080", "#C0C0C0", "#696969", "#C0C0C0"),
        _gradient("bronze", "#CD7F32", "#8B4513", "#CD7F32", "#A0522D", "#CD7F32"),
        _gradient("fire-red", "#FF4500", "#DC143C", "#8B0000"),
        _gradient("ocean-blue", "#006994", "#0077BE", "#003F5C"),
        _gradient("electric-blue", "#00BFFF", "#1E90FF", "#0000CD"),
        _gradient("forest-green", "#228B22", "#006400", "#2E8B57"),
        _gradient("neon-green", "#39FF14", "#32CD32", "#00FF7F"),
        _gradient("royal-purple", "#7851A9", "#4B0082", "#9370DB"),
        _gradient("purple-chrome", "#E0B0FF", "#8A2BE2", "#DDA0DD", "#4B0082"),
        _gradient("sunset-orange", "#FF7E5F", "#FEB47B", "#FF4500"),
        _gradient("copper", "#B87333", "#DA8A67", "#8B4513"),
    )
}

PRESET_LABELS: Dict[str, str] = {
    "gold": "Gold Shine",
    "silver": "Silver Metallic",
    "bronze": "Bronze",
    "fire-red": "Fire Red",
    "ocean-blue": "Ocean Blue",
    "electric-blue": "Electric Blue",
    "forest-green": "Forest Green",
    "neon-green": "Neon Green",
    "royal-purple": "Royal Purple",
    "purple-chrome": "Purple Chrome",
    "sunset-orange": "Sunset Orange",
    "copper": "Copper",
}

_PRESET_BY_SHAPE = {(preset.stops, preset.angle): name for name, preset in PRESET_GRADIENTS.items()}

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_GRADIENT_RE = re.compile(r"^linear-gradient\((.*)\)$", re.IGNORECASE | re.DOTALL)
_STOP_RE = re.compile(
    r"(#[0-9a-fA-F]{6}|#[0-9a-fA-F]{3}|rgba?\(\s*[^)]*\))\s*(-?\d+(?:\.\d+)?(?:e[-+]?\d+)?%)?",
    re.IGNORECASE,
)
_ANGLE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?(?:e[-+]?\d+)?)deg\s*,", re.IGNORECASE)
_DIRECTION_RE = re.compile(r"^\s*to\s+([a-z ]+?)\s*,", re.IGNORECASE)
_DIRECTIONS = {
    "top": 0.0,
    "top right": 45.0,
    "right top": 45.0,
    "right": 90.0,
    "bottom right": 135.0,
    "right bottom": 135.0,
    "bottom": 180.0,
    "bottom left": 225.0,
    "left bottom": 225.0,
    "left": 270.0,
    "top left": 315.0,
    "left top": 315.0,
}


def _parse_rgb_function(token: str) -> RGB:
    inner = token[token.index("(") + 1:-1]
    parts = [p.strip() for p in inner.split(",")]
    if len(parts) not in (3, 4):
        raise ColorValueError(f"Invalid color function '{token}'")
    try:
        channels = [int(round(float(p))) for p in parts[:3]]
    except ValueError:
        raise ColorValueError(f"Invalid color function '{token}'") from None
    if any(c < 0 or c > 255 for c in channels):
        raise ColorValueError(f"Color channel out of range in '{token}'")
    return tuple(channels)


def _parse_stop_color(token: str) -> RGB:
    if token.startswith("#"):
        return hex_to_rgba(token)[:3]
    return _parse_rgb_function(token)


def _parse_gradient(body: str) -> GradientColor:
    angle = 180.0  # CSS default direction
    angle_match = _ANGLE_RE.match(body)
    direction_match = _DIRECTION_RE.match(body)
    if angle_match:
        angle = float(angle_match.group(1))
        body = body[angle_match.end():]
    elif direction_match:
        direction = " ".join(direction_match.group(1).lower().split())
        if direction not in _DIRECTIONS:
            raise ColorValueError(f"Unknown gradient direction 'to {direction}'")
        angle = _DIRECTIONS[direction]
        body = body[direction_match.end():]

    raw_stops = []
    for chunk in _split_top_level(body):
        match = _STOP_RE.fullmatch(chunk.strip())
        if not match:
            raise ColorValueError(f"Invalid gradient stop '{chunk.strip()}'")
        position = float(match.group(2)[:-1]) if match.group(2) else None
        raw_stops.append((position, _parse_stop_color(match.group(1))))

    if len(raw_stops) < 2:
        raise ColorValueError("A gradient needs at least two color stops")

    # Unpositioned stops are spread evenly, as in CSS.
    count = len(raw_stops)
    stops = []
    for i, (position, rgb) in enumerate(raw_stops):
        if position is None:
            position = float(round(100.0 * i / (count - 1), 4))
        stops.append((position, rgb))
    stops = tuple(stops)
    return GradientColor(stops=stops, angle=angle, name=_PRESET_BY_SHAPE.get((stops, angle)))


def _split_top_level(body: str):
    depth = 0
    current = []
    for ch in body:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            yield "".join(current)
            current = []
        else:
            current.append(ch)
    if "".join(current).strip():
        yield "".join(current)


def parse_color(value) -> ColorValue:
    """Decide once whether a boundary color string is solid or gradient."""
    if isinstance(value, (SolidColor, GradientColor)):
        return value
    if not isinstance(value, str):
        raise ColorValueError(f"Color must be a string, got {type(value).__name__}")
    text = value.strip()
    if not text:
        raise ColorValueError("Color value is empty")

    preset = PRESET_GRADIENTS.get(text.lower())
    if preset is not None:
        return preset

    gradient_match = _GRADIENT_RE.match(text)
    if gradient_match:
        return _parse_gradient(gradient_match.group(1))

    if _HEX_RE.match(text):
        return SolidColor(hex_to_rgba(text)[:3])
    if text.lower().startswith("rgb"):
        return SolidColor(_parse_rgb_function(text))

    raise ColorValueError(f"Unrecognized color value '{value}'")


def format_color(value: ColorValue) -> str:
    return value.to_css()


def is_gradient(value) -> bool:
    return isinstance(value, GradientColor) and len(value.stops) > 1


@dataclass(frozen=True)
class Stroke:
    color: RGBA
    width: int


@dataclass(frozen=True)
class Shadow:
    color: RGBA
    blur: float
    offset: Tuple[int, int]


@dataclass(frozen=True)
class ResolvedFill:
    color: RGBA
    gradient: Optional[GradientColor] = None
    box: Optional[Tuple[int, int, int, int]] = None
    stroke: Optional[Stroke] = None
    shadow: Optional[Shadow] = None

    @property
    def rgb(self) -> RGB:
        return self.color[:3]

    @property
    def is_gradient(self) -> bool:
        return self.gradient is not None


FALLBACK_FILL = ResolvedFill(color=BLACK)

TEXT_SLOT_AUGMENTATION: Dict[str, Tuple[Shadow, Stroke]] = {
    "accent": (Shadow((0, 0, 0, 128), blur=4, offset=(2, 2)), Stroke(BLACK, 2)),
    "secondary": (Shadow((0, 0, 0, 102), blur=2, offset=(1, 1)), Stroke(BLACK, 1)),
}


def coerce_color(value) -> Optional[ColorValue]:
    if isinstance(value, (SolidColor, GradientColor)):
        return value
    if isinstance(value, str):
        try:
            return parse_color(value)
        except ColorValueError as exc:
            print(f"[WARN] {exc}; falling back to black")
            return None
    print(f"[WARN] Unrecognized color value {value!r}; falling back to black")
    return None


def resolve_fill(value, box=None) -> ResolvedFill:
    """Solid values pass through; a gradient is pinned to the pixel box it spans."""
    color = coerce_color(value)
    if color is None:
        return FALLBACK_FILL
    if is_gradient(color):
        if box is not None:
            box = tuple(int(round(v)) for v in box)
        return ResolvedFill(color=tuple(color.stops[0][1]) + (255,), gradient=color, box=box)
    return ResolvedFill(color=tuple(color.rgb) + (255,))


def resolve_text_fill(value, slot: str, approximation: str = "slot") -> ResolvedFill:
    if slot not in TEXT_SLOT_APPROXIMATIONS:
        raise ValueError(f"Unknown text color slot '{slot}'")
    if approximation not in ("slot", "dominant"):
        raise ValueError(f"Unknown approximation mode '{approximation}'")

    color = coerce_color(value)
    if color is None:
        return FALLBACK_FILL
    if not is_gradient(color):
        return ResolvedFill(color=tuple(color.rgb) + (255,))

    if approximation == "dominant":
        flat = tuple(color.dominant) + (255,)
    else:
        flat = hex_to_rgba(TEXT_SLOT_APPROXIMATIONS[slot])
    shadow, stroke = TEXT_SLOT_AUGMENTATION[slot]
    return ResolvedFill(color=flat, stroke=stroke, shadow=shadow)


def render_gradient(size, gradient: GradientColor) -> Image.Image:
    """Rasterize a CSS-style linear gradient filling a box of the given size."""
    width, height = (max(1, int(v)) for v in size)
    angle = np.radians(gradient.angle)
    dx, dy = np.sin(angle), -np.cos(angle)
    # Length of the CSS gradient line for this box and angle.
    line_length = abs(width * dx) + abs(height * dy)
    if line_length == 0:
        line_length = 1.0

    xs = np.arange(width, dtype=np.float32) + 0.5 - width / 2.0
    ys = np.arange(height, dtype=np.float32) + 0.5 - height / 2.0
    grid_x, grid_y = np.meshgrid(xs, ys)
    t = (grid_x * dx + grid_y * dy) / line_length + 0.5
    t = np.clip(t * 100.0, 0.0, 100.0)

    positions = np.array([pos for pos, _ in gradient.stops], dtype=np.float32)
    colors = np.array([rgb for _, rgb in gradient.stops], dtype=np.float32)
    positions = np.maximum.accumulate(positions)

    channels = [np.interp(t, positions, colors[:, c]) for c in range(3)]
    rgb = np.clip(np.stack(channels, axis=-1) + 0.5, 0, 255).astype(np.uint8)
    alpha = np.full((height, width, 1), 255, dtype=np.uint8)
    return Image.fromarray(np.concatenate([rgb, alpha], axis=-1))
