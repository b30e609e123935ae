import dataclasses
import json
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .colors import ColorValue, ColorValueError, format_color, parse_color
from .geometry import check_part

MAX_NUMBER_LENGTH = 3
MIN_FONT_SIZE = 8
MAX_FONT_SIZE = 96

FONT_OPTIONS = [
    "Arial",
    "Helvetica",
    "Arial Black",
    "Impact",
    "Times New Roman",
    "Georgia",
    "Verdana",
    "Trebuchet MS",
    "Comic Sans MS",
    "Courier New",
    "Lucida Console",
    "Tahoma",
    "Palatino",
    "Garamond",
    "Bookman",
    "Avant Garde",
    "Century Gothic",
    "Franklin Gothic Medium",
    "Copperplate",
    "Optima",
]

# Quick region color schemes: torso, torso trim, sleeve, sleeve trim, neck.
COLOR_SCHEMES: Dict[str, Tuple[str, str, str, str, str]] = {
    "Blue & White": ("#1e40af", "#ffffff", "#1e40af", "#ffffff", "#ffffff"),
    "Red & Black": ("#dc2626", "#000000", "#dc2626", "#000000", "#000000"),
    "Green & Gold": ("#059669", "#fbbf24", "#059669", "#fbbf24", "#fbbf24"),
    "Purple & Silver": ("#7c3aed", "#e5e7eb", "#7c3aed", "#e5e7eb", "#e5e7eb"),
    "Orange & Blue": ("#ea580c", "#1e40af", "#ea580c", "#1e40af", "#1e40af"),
    "Black & Yellow": ("#000000", "#fbbf24", "#000000", "#fbbf24", "#fbbf24"),
}

PART_COLOR_FIELDS = {
    "torso": "torso_color",
    "torsoTrim": "torso_trim_color",
    "sleeve": "sleeve_color",
    "sleeveTrim": "sleeve_trim_color",
    "neck": "neck_color",
}
SLOT_COLOR_FIELDS = {"secondary": "secondary_color", "accent": "accent_color"}
COLOR_FIELDS = tuple(PART_COLOR_FIELDS.values()) + tuple(SLOT_COLOR_FIELDS.values())

# Field name -> key in the exported JSON document.
FIELD_KEYS = {
    "torso_color": "torsoColor",
    "torso_trim_color": "torsoTrimColor",
    "sleeve_color": "sleeveColor",
    "sleeve_trim_color": "sleeveTrimColor",
    "neck_color": "neckColor",
    "secondary_color": "secondaryColor",
    "accent_color": "accentColor",
    "team_name": "teamName",
    "player_name": "playerName",
    "player_number": "playerNumber",
    "font_family": "font",
    "font_size": "fontSize",
    "shield_url": "shieldUrl",
    "shield_size": "shieldSize",
    "shield_position": "shieldPosition",
}
_KEY_FIELDS = {key: name for name, key in FIELD_KEYS.items()}

# Single-color documents written before the per-region slots existed.
_LEGACY_KEYS = {"primaryColor": ("torso_color", "sleeve_color")}


class InvalidConfigError(ValueError):
    pass


@dataclass(frozen=True)
class JerseyConfig:
    torso_color: ColorValue = parse_color("#1e40af")
    torso_trim_color: ColorValue = parse_color("#ffffff")
    sleeve_color: ColorValue = parse_color("#1e40af")
    sleeve_trim_color: ColorValue = parse_color("#ffffff")
    neck_color: ColorValue = parse_color("#ffffff")
    secondary_color: ColorValue = parse_color("#ffffff")
    accent_color: ColorValue = parse_color("#fbbf24")
    team_name: str = "TEAM"
    player_name: str = "PLAYER"
    player_number: str = "10"
    font_family: str = "Arial"
    font_size: int = 24
    shield_url: Optional[str] = None
    shield_size: float = 60
    shield_position: Tuple[float, float] = (150, 200)

    def color_for(self, part: str) -> ColorValue:
        return getattr(self, PART_COLOR_FIELDS[check_part(part)])

    def slot_color(self, slot: str) -> ColorValue:
        return getattr(self, SLOT_COLOR_FIELDS[slot])

    def merge(self, changes: Dict) -> "JerseyConfig":
        """Return a new snapshot with whole-field replacements applied."""
        normalized = {}
        for key, value in changes.items():
            if key in _LEGACY_KEYS:
                for name in _LEGACY_KEYS[key]:
                    normalized[name] = _normalize_field(name, value)
                continue
            name = _KEY_FIELDS.get(key, key)
            if name not in FIELD_KEYS:
                raise InvalidConfigError(f"Unknown configuration field '{key}'")
            normalized[name] = _normalize_field(name, value)
        return dataclasses.replace(self, **normalized)

    def to_dict(self) -> Dict:
        data = {}
        for name, key in FIELD_KEYS.items():
            value = getattr(self, name)
            if name in COLOR_FIELDS:
                value = format_color(value)
            elif name == "shield_position":
                value = {"x": value[0], "y": value[1]}
            data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "JerseyConfig":
        if not isinstance(data, dict):
            raise InvalidConfigError("Configuration document must be a JSON object")
        known = {}
        for key, value in data.items():
            if key in _KEY_FIELDS or key in FIELD_KEYS or key in _LEGACY_KEYS:
                known[key] = value
            else:
                print(f"[WARN] Ignoring unknown configuration key '{key}'")
        return cls().merge(known)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, text: str) -> "JerseyConfig":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidConfigError(f"Configuration is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _finite_number(name: str, value) -> float:
    if not _is_number(value) or not math.isfinite(value):
        raise InvalidConfigError(f"{name} must be a finite number, got {value!r}")
    return value


def _normalize_field(name: str, value):
    if name in COLOR_FIELDS:
        try:
            return parse_color(value)
        except ColorValueError as exc:
            raise InvalidConfigError(f"{FIELD_KEYS[name]}: {exc}") from exc

    if name in ("team_name", "player_name"):
        if value is None:
            return ""
        if not isinstance(value, str):
            raise InvalidConfigError(f"{FIELD_KEYS[name]} must be text")
        return value

    if name == "player_number":
        if value is None:
            return ""
        if _is_number(value) and float(value).is_integer():
            value = str(int(value))
        if not isinstance(value, str):
            raise InvalidConfigError("playerNumber must be text")
        value = value.strip()
        if value and not value.isdigit():
            raise InvalidConfigError("Player number must contain digits only")
        if len(value) > MAX_NUMBER_LENGTH:
            raise InvalidConfigError(f"Player number is limited to {MAX_NUMBER_LENGTH} digits")
        return value

    if name == "font_family":
        if not isinstance(value, str) or not value.strip():
            raise InvalidConfigError("Font family must be a non-empty name")
        return value.strip()

    if name == "font_size":
        value = _finite_number("fontSize", value)
        if not float(value).is_integer():
            raise InvalidConfigError("Font size must be a whole number of pixels")
        value = int(value)
        if not MIN_FONT_SIZE <= value <= MAX_FONT_SIZE:
            raise InvalidConfigError(f"Font size must be between {MIN_FONT_SIZE} and {MAX_FONT_SIZE}px")
        return value

    if name == "shield_url":
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise InvalidConfigError("shieldUrl must be a URL, data URI or file path")
        return value

    if name == "shield_size":
        value = _finite_number("shieldSize", value)
        if value < 0:
            raise InvalidConfigError("Shield size cannot be negative")
        return value

    if name == "shield_position":
        if isinstance(value, dict):
            if "x" not in value or "y" not in value:
                raise InvalidConfigError("shieldPosition needs both x and y")
            value = (value["x"], value["y"])
        if not isinstance(value, (tuple, list)) or len(value) != 2:
            raise InvalidConfigError("shieldPosition must be an (x, y) pair")
        return (_finite_number("shieldPosition.x", value[0]), _finite_number("shieldPosition.y", value[1]))

    raise InvalidConfigError(f"Unknown configuration field '{name}'")


def load_config_file(path: str) -> JerseyConfig:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        raise InvalidConfigError(f"Unable to read {path}: {exc}") from exc
    return JerseyConfig.from_json(text)


class ConfigStore:
    """Holds the current snapshot and applies partial updates to it."""

    def __init__(self, config: Optional[JerseyConfig] = None):
        self._config = config or JerseyConfig()
        self.version = 0
        self._listeners: List[Callable[[JerseyConfig], None]] = []

    @property
    def config(self) -> JerseyConfig:
        return self._config

    def subscribe(self, listener: Callable[[JerseyConfig], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, changes: Optional[Dict] = None, **fields) -> JerseyConfig:
        merged = dict(changes or {})
        merged.update(fields)
        # merge() raises before anything is stored, so a rejected update
        # leaves the current snapshot in place.
        new_config = self._config.merge(merged)
        return self._commit(new_config)

    def replace(self, config: JerseyConfig) -> JerseyConfig:
        return self._commit(config)

    def _commit(self, config: JerseyConfig) -> JerseyConfig:
        if config == self._config:
            return self._config
        self._config = config
        self.version += 1
        for listener in list(self._listeners):
            listener(config)
        return config
