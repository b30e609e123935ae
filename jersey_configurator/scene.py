import concurrent.futures
import os
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Callable, List, Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from .colors import ResolvedFill, hex_to_rgba, render_gradient, resolve_fill, resolve_text_fill
from .config import JerseyConfig
from .geometry import Rect, check_view, part_layout, text_anchors
from .overlay import OverlayLoadError, OverlayPlacement, load_overlay_image, place_overlay
from .settings import BACKGROUND_COLOR, CANVAS_SIZE, FONT_DIRS, HIGHLIGHT_COLOR, HIGHLIGHT_WIDTH

OVERLAY_CACHE_SIZE = 8


@dataclass(frozen=True)
class RectPrimitive:
    tag: str
    part: str
    rect: Rect
    fill: ResolvedFill
    outline: Optional[Tuple[str, int]] = None


@dataclass(frozen=True)
class TextPrimitive:
    role: str
    text: str
    x: float
    top: float
    font_family: str
    font_size: int
    fill: ResolvedFill
    bold: bool = True


@dataclass(frozen=True)
class ImagePrimitive:
    source: str
    placement: OverlayPlacement
    image: Optional[Image.Image] = field(default=None, compare=False, repr=False)


Primitive = Union[RectPrimitive, TextPrimitive, ImagePrimitive]


@dataclass(frozen=True)
class SceneGraph:
    view: str
    primitives: Tuple[Primitive, ...]
    generation: int = 0

    def hit_test(self, x: float, y: float) -> Optional[str]:
        """Tag of the topmost part rectangle under the point, if any."""
        for primitive in reversed(self.primitives):
            if isinstance(primitive, RectPrimitive) and primitive.rect.contains(x, y):
                return primitive.tag
        return None

    def overlay(self) -> Optional[ImagePrimitive]:
        for primitive in self.primitives:
            if isinstance(primitive, ImagePrimitive):
                return primitive
        return None

    def with_overlay(self, overlay: ImagePrimitive) -> "SceneGraph":
        base = tuple(p for p in self.primitives if not isinstance(p, ImagePrimitive))
        return replace(self, primitives=base + (overlay,))


def compose_scene(
    config: JerseyConfig,
    view: str,
    selected: Optional[str] = None,
    approximation: str = "slot",
    generation: int = 0,
) -> SceneGraph:
    """Build the overlay-free primitive list for one view, in paint order."""
    check_view(view)
    primitives: List[Primitive] = []

    for placement in part_layout(view):
        outline = (HIGHLIGHT_COLOR, HIGHLIGHT_WIDTH) if placement.part == selected else None
        primitives.append(
            RectPrimitive(
                tag=placement.tag,
                part=placement.part,
                rect=placement.rect,
                fill=resolve_fill(config.color_for(placement.part), placement.rect.box),
                outline=outline,
            )
        )

    texts = {
        "team_name": config.team_name,
        "player_number": config.player_number,
        "player_name": config.player_name,
    }
    for anchor in text_anchors(view):
        primitives.append(
            TextPrimitive(
                role=anchor.role,
                text=texts[anchor.role] or "",
                x=anchor.x,
                top=anchor.top,
                font_family=config.font_family,
                font_size=max(1, config.font_size + anchor.size_delta),
                fill=resolve_text_fill(config.slot_color(anchor.slot), anchor.slot, approximation),
            )
        )

    return SceneGraph(view=view, primitives=tuple(primitives), generation=generation)


def overlay_primitive(config: JerseyConfig, view: str, image: Image.Image) -> ImagePrimitive:
    pos_x, pos_y = config.shield_position
    placement = place_overlay(image.width, image.height, config.shield_size, pos_x, pos_y, view=view)
    return ImagePrimitive(source=config.shield_url, placement=placement, image=image)


def _font_candidates(family: str, bold: bool) -> List[str]:
    compact = family.replace(" ", "")
    names = []
    if bold:
        names += [f"{family} Bold.ttf", f"{compact}-Bold.ttf", f"{compact.lower()}bd.ttf"]
    names += [f"{family}.ttf", f"{compact}.ttf", f"{compact.lower()}.ttf"]
    return names


@lru_cache(maxsize=64)
def get_font(family: str, size: int, bold: bool = True) -> ImageFont.FreeTypeFont:
    candidates = _font_candidates(family, bold)
    for font_dir in FONT_DIRS:
        for name in candidates:
            path = os.path.join(font_dir, name)
            if os.path.exists(path):
                return ImageFont.truetype(path, size)
    # Let FreeType search the system font paths by file name.
    for name in candidates + (["DejaVuSans-Bold.ttf"] if bold else []) + ["DejaVuSans.ttf"]:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    print(f"[WARN] Font '{family}' not found; using Pillow's default font")
    return ImageFont.load_default(size=size)


def _draw_rect(img: Image.Image, primitive: RectPrimitive) -> None:
    left, top, right, bottom = (int(round(v)) for v in primitive.rect.box)
    fill = primitive.fill
    if fill.is_gradient:
        g_left, g_top, g_right, g_bottom = fill.box or (left, top, right, bottom)
        img.paste(render_gradient((g_right - g_left, g_bottom - g_top), fill.gradient), (g_left, g_top))
    else:
        ImageDraw.Draw(img).rectangle([left, top, right - 1, bottom - 1], fill=fill.color)
    if primitive.outline:
        color, width = primitive.outline
        ImageDraw.Draw(img).rectangle([left, top, right - 1, bottom - 1], outline=hex_to_rgba(color), width=width)


def _draw_text(img: Image.Image, primitive: TextPrimitive) -> None:
    if not primitive.text:
        return
    font = get_font(primitive.font_family, primitive.font_size, primitive.bold)
    fill = primitive.fill
    stroke_width = fill.stroke.width if fill.stroke else 0
    stroke_fill = fill.stroke.color if fill.stroke else None

    if fill.shadow:
        shadow = fill.shadow
        layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).text(
            (primitive.x + shadow.offset[0], primitive.top + shadow.offset[1]),
            primitive.text,
            font=font,
            fill=shadow.color,
            anchor="mt",
            stroke_width=stroke_width,
            stroke_fill=shadow.color,
        )
        if shadow.blur:
            layer = layer.filter(ImageFilter.GaussianBlur(shadow.blur / 2))
        img.alpha_composite(layer)

    ImageDraw.Draw(img).text(
        (primitive.x, primitive.top),
        primitive.text,
        font=font,
        fill=fill.color,
        anchor="mt",
        stroke_width=stroke_width,
        stroke_fill=stroke_fill,
    )


def _draw_image(img: Image.Image, primitive: ImagePrimitive) -> None:
    if primitive.image is None:
        return
    placement = primitive.placement
    width, height = int(round(placement.width)), int(round(placement.height))
    if width <= 0 or height <= 0:
        return
    resized = primitive.image.convert("RGBA").resize((width, height), Image.LANCZOS)
    img.alpha_composite(resized, dest=(int(round(placement.x)), int(round(placement.y))))


def rasterize(scene: SceneGraph, size=CANVAS_SIZE, background: str = BACKGROUND_COLOR) -> Image.Image:
    img = Image.new("RGBA", tuple(size), hex_to_rgba(background))
    for primitive in scene.primitives:
        if isinstance(primitive, RectPrimitive):
            _draw_rect(img, primitive)
        elif isinstance(primitive, TextPrimitive):
            _draw_text(img, primitive)
        elif isinstance(primitive, ImagePrimitive):
            _draw_image(img, primitive)
    return img


class Surface:
    """Drawing target for one view; each commit replaces the whole frame."""

    def __init__(self, view: str, size=CANVAS_SIZE, background: str = BACKGROUND_COLOR):
        self.view = check_view(view)
        self.size = tuple(size)
        self.background = background
        self.image: Optional[Image.Image] = Image.new("RGBA", self.size, hex_to_rgba(background))
        self.scene: Optional[SceneGraph] = None
        self.commits = 0
        self.disposed = False

    def commit(self, scene: SceneGraph) -> Image.Image:
        if self.disposed:
            raise RuntimeError(f"{self.view} surface has been disposed")
        if scene.view != self.view:
            raise ValueError(f"Cannot commit a {scene.view} scene to the {self.view} surface")
        # Draw off-screen, then swap so a reader never sees a half-drawn frame.
        frame = rasterize(scene, self.size, self.background)
        self.image = frame
        self.scene = scene
        self.commits += 1
        return frame

    def clear(self) -> None:
        self.image = Image.new("RGBA", self.size, hex_to_rgba(self.background))
        self.scene = None

    def dispose(self) -> None:
        self.image = None
        self.scene = None
        self.disposed = True

    def __enter__(self) -> "Surface":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


@dataclass
class _PendingLoad:
    generation: int
    config: JerseyConfig
    selected: Optional[str]
    future: concurrent.futures.Future


class ViewRenderer:
    """Renders one view onto its surface.

    The base scene is committed right away. An overlay that is not cached yet is
    decoded on the executor, and ``poll()`` (called from the owner's event loop)
    recommits once it arrives, unless a newer render has started since.
    """

    def __init__(
        self,
        view: str,
        executor: Optional[concurrent.futures.Executor] = None,
        on_commit: Optional[Callable[["Surface"], None]] = None,
        approximation: str = "slot",
        size=CANVAS_SIZE,
    ):
        self.view = check_view(view)
        self.surface = Surface(view, size=size)
        self.generation = 0
        self.approximation = approximation
        self._on_commit = on_commit
        self._owns_executor = executor is None
        self._executor = executor
        self._pending: List[_PendingLoad] = []
        self._inflight = {}
        self._cache: "OrderedDict[str, Image.Image]" = OrderedDict()
        self._failed: "OrderedDict[str, None]" = OrderedDict()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _get_executor(self) -> concurrent.futures.Executor:
        # Created on first async load; render_now never needs one.
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=2)
        return self._executor

    def _mark_failed(self, source: str, exc: Exception) -> None:
        print(f"[WARN] {exc}")
        self._failed[source] = None
        while len(self._failed) > OVERLAY_CACHE_SIZE:
            self._failed.popitem(last=False)

    def _commit(self, scene: SceneGraph) -> None:
        self.surface.commit(scene)
        if self._on_commit is not None:
            self._on_commit(self.surface)

    def _remember(self, source: str, image: Image.Image) -> None:
        self._cache[source] = image
        self._cache.move_to_end(source)
        while len(self._cache) > OVERLAY_CACHE_SIZE:
            self._cache.popitem(last=False)

    def _cached(self, source: str) -> Optional[Image.Image]:
        image = self._cache.get(source)
        if image is not None:
            self._cache.move_to_end(source)
        return image

    def _compose(self, config: JerseyConfig, selected: Optional[str]) -> SceneGraph:
        return compose_scene(config, self.view, selected, self.approximation, self.generation)

    def render(self, config: JerseyConfig, selected: Optional[str] = None) -> SceneGraph:
        self.generation += 1
        scene = self._compose(config, selected)
        source = config.shield_url
        if source and source not in self._failed:
            image = self._cached(source)
            if image is not None:
                scene = scene.with_overlay(overlay_primitive(config, self.view, image))
            else:
                future = self._inflight.get(source)
                if future is None:
                    future = self._get_executor().submit(load_overlay_image, source)
                    self._inflight[source] = future
                self._pending.append(_PendingLoad(self.generation, config, selected, future))
        self._commit(scene)
        return scene

    def poll(self) -> bool:
        """Apply finished overlay loads; returns True if the surface was recommitted."""
        recommitted = False
        still_pending = []
        for load in self._pending:
            if not load.future.done():
                still_pending.append(load)
                continue
            source = load.config.shield_url
            if self._inflight.get(source) is load.future:
                del self._inflight[source]
            if load.generation != self.generation:
                print(f"[INFO] Discarding stale {self.view} overlay load (generation {load.generation})")
                continue
            try:
                image = load.future.result()
            except OverlayLoadError as exc:
                self._mark_failed(source, exc)
                continue
            except Exception as exc:
                self._mark_failed(source, OverlayLoadError(f"Overlay load failed for {self.view} view: {exc!r}"))
                continue
            self._remember(source, image)
            scene = self._compose(load.config, load.selected)
            self._commit(scene.with_overlay(overlay_primitive(load.config, self.view, image)))
            recommitted = True
        self._pending = still_pending
        return recommitted

    def wait(self, timeout: Optional[float] = None) -> bool:
        futures = [load.future for load in self._pending]
        if futures:
            concurrent.futures.wait(futures, timeout=timeout)
        return self.poll()

    def render_now(self, config: JerseyConfig, selected: Optional[str] = None) -> Surface:
        """Synchronous render, overlay included, for exports and batch runs."""
        self.generation += 1
        scene = self._compose(config, selected)
        source = config.shield_url
        if source and source not in self._failed:
            image = self._cached(source)
            if image is None:
                try:
                    image = load_overlay_image(source)
                    self._remember(source, image)
                except OverlayLoadError as exc:
                    self._mark_failed(source, exc)
            if image is not None:
                scene = scene.with_overlay(overlay_primitive(config, self.view, image))
        self._commit(scene)
        return self.surface

    def close(self) -> None:
        self._pending = []
        self._inflight.clear()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self.surface.dispose()
