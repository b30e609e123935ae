import io
import os
import re
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas

from .colors import GradientColor
from .config import JerseyConfig, load_config_file
from .scene import rasterize
from .settings import (
    COMBINED_CANVAS_SIZE,
    COMBINED_SCALE,
    OUTPUT_DIR,
    SHEET_FRONT_LIFT,
    SHEET_MARGIN,
    SHEET_OVERLAP_RATIO,
    WATERMARK_TEXT,
)

TRANSPARENT = "#00000000"
WATERMARK_SIZE = 50
WATERMARK_GREY = 200 / 255
PDF_IMAGE_WIDTH_MM = 100
PDF_IMAGE_LEFT_MM = 55
PDF_IMAGE_TOP_MM = 30
PDF_TEXT_LEFT_MM = 20
PDF_TEXT_TOP_MM = 200
PDF_LINE_STEP_MM = 10


@dataclass
class ExportResult:
    success: bool
    kind: str
    path: Optional[str]
    message: str


def print_result(result: ExportResult) -> None:
    status = "✓" if result.success else "✗"
    print(f"{status} {result.kind.upper()} export: {result.message}")


def _report(result: ExportResult, notify: Optional[Callable[[ExportResult], None]]) -> ExportResult:
    (notify or print_result)(result)
    return result


def sanitize_filename_component(value: str) -> str:
    value = (value or "").strip()
    clean = re.sub(r"[^A-Za-z0-9_-]+", "_", value)
    return clean.strip("_")


def export_filename(config: JerseyConfig, ext: str, suffix: str = "") -> str:
    team = sanitize_filename_component(config.team_name) or "team"
    player = sanitize_filename_component(config.player_name) or "player"
    return f"jersey-{team}-{player}{suffix}.{ext}"


def config_filename(config: JerseyConfig) -> str:
    team = sanitize_filename_component(config.team_name) or "team"
    return f"jersey-config-{team}.json"


def _write_atomic(path: str, data: bytes) -> None:
    """Write through a temporary file so a failed export leaves nothing behind."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    temp_path = path + ".part"
    try:
        with open(temp_path, "wb") as handle:
            handle.write(data)
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise


def _surface_image(surface) -> Optional[Image.Image]:
    if surface is None:
        return None
    return getattr(surface, "image", None)


def transparent_image(surface) -> Optional[Image.Image]:
    """Redraw the committed scene with no background fill behind it."""
    img = _surface_image(surface)
    if img is None:
        return None
    scene = getattr(surface, "scene", None)
    if scene is None:
        return Image.new("RGBA", img.size, (0, 0, 0, 0))
    return rasterize(scene, img.size, background=TRANSPARENT)


def _srgb_to_linear(c):  # c in [0..1]
    return np.where(c <= 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)


def _linear_to_srgb(c):  # c in [0..1]
    return np.where(c <= 0.0031308, 12.92 * c, 1.055 * (c ** (1 / 2.4)) - 0.055)


def resize_rgba_linear_pm(img: Image.Image, size, resample=Image.LANCZOS) -> Image.Image:
    """Resize in linear light with premultiplied alpha so edges don't darken."""
    if img.mode != "RGBA":
        return img.resize(size, resample)

    arr = np.asarray(img, dtype=np.float32) / 255.0
    alpha = arr[..., 3]
    premultiplied = [_srgb_to_linear(arr[..., c]) * alpha for c in range(3)]

    def _resize_plane(plane):
        return np.asarray(Image.fromarray(plane.astype(np.float32)).resize(size, resample), dtype=np.float32)

    alpha_rs = _resize_plane(alpha)
    alpha_safe = np.maximum(alpha_rs, 1e-6)
    channels = [
        _linear_to_srgb(np.clip(_resize_plane(plane) / alpha_safe, 0.0, 1.0)) for plane in premultiplied
    ]
    channels.append(alpha_rs)
    out = np.clip(np.stack(channels, axis=-1) * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return Image.fromarray(out)


def scale_image(img: Image.Image, factor: float) -> Image.Image:
    factor = max(0.01, factor)
    new_width = max(1, int(img.width * factor))
    new_height = max(1, int(img.height * factor))
    return resize_rgba_linear_pm(img.convert("RGBA"), (new_width, new_height))


def compose_sheet(
    front_img: Image.Image,
    back_img: Image.Image,
    size=COMBINED_CANVAS_SIZE,
    scale: float = COMBINED_SCALE,
    margin: int = SHEET_MARGIN,
    overlap: float = SHEET_OVERLAP_RATIO,
) -> Image.Image:
    """Back view on the left, front view overlapping it on the right."""
    sheet_width, sheet_height = size
    inner_width, inner_height = sheet_width - 2 * margin, sheet_height - 2 * margin
    back, front = scale_image(back_img, scale), scale_image(front_img, scale)

    span_width = front.width + back.width - int(min(front.width, back.width) * overlap)
    span_height = max(front.height, back.height)
    fit = min(1.0, inner_width / span_width, inner_height / span_height)
    if fit < 1.0:
        back, front = scale_image(back, fit), scale_image(front, fit)

    overlap_px = int(min(front.width, back.width) * overlap)
    back_pos = (margin, margin + (inner_height - back.height) // 2)
    front_pos = (
        back_pos[0] + back.width - overlap_px,
        max(margin, margin + (inner_height - front.height) // 2 - SHEET_FRONT_LIFT),
    )

    sheet = Image.new("RGBA", tuple(size), (0, 0, 0, 0))
    sheet.alpha_composite(back, dest=back_pos)
    sheet.alpha_composite(front, dest=front_pos)
    return sheet


def _png_bytes(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def export_png(surface, config: JerseyConfig, out_dir: str = OUTPUT_DIR, notify=None, suffix: str = "") -> ExportResult:
    img = _surface_image(surface)
    if img is None:
        return _report(ExportResult(False, "png", None, "Canvas not found"), notify)
    path = os.path.join(out_dir, export_filename(config, "png", suffix))
    try:
        _write_atomic(path, _png_bytes(transparent_image(surface)))
    except Exception as exc:
        print(f"[ERROR] PNG export failed: {exc}")
        return _report(ExportResult(False, "png", None, "Failed to export PNG"), notify)
    return _report(ExportResult(True, "png", path, f"Saved {path}"), notify)


def _color_label(value) -> str:
    if isinstance(value, GradientColor) and value.name:
        return value.name
    return value.to_css()


def _pdf_bytes(img: Image.Image, config: JerseyConfig) -> bytes:
    buffer = io.BytesIO()
    _, page_height = A4
    pdf = pdf_canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(f"Jersey {config.team_name} {config.player_name}".strip())

    pdf.saveState()
    pdf.setFont("Helvetica", WATERMARK_SIZE)
    pdf.setFillColorRGB(WATERMARK_GREY, WATERMARK_GREY, WATERMARK_GREY)
    pdf.translate(105 * mm, page_height - 150 * mm)
    pdf.rotate(45)
    pdf.drawCentredString(0, 0, WATERMARK_TEXT)
    pdf.restoreState()

    image_width = PDF_IMAGE_WIDTH_MM * mm
    image_height = img.height * image_width / img.width
    pdf.drawImage(
        ImageReader(img.convert("RGB")),
        PDF_IMAGE_LEFT_MM * mm,
        page_height - PDF_IMAGE_TOP_MM * mm - image_height,
        width=image_width,
        height=image_height,
    )

    lines = [
        "Jersey Configuration:",
        f"Team: {config.team_name}",
        f"Player: {config.player_name}",
        f"Number: {config.player_number}",
        "Colors: "
        + ", ".join(_color_label(c) for c in (config.torso_color, config.secondary_color, config.accent_color)),
        "Regions: "
        + ", ".join(
            f"{label} {_color_label(value)}"
            for label, value in (
                ("torso trim", config.torso_trim_color),
                ("sleeve", config.sleeve_color),
                ("sleeve trim", config.sleeve_trim_color),
                ("neck", config.neck_color),
            )
        ),
    ]
    pdf.setFont("Helvetica", 12)
    pdf.setFillColorRGB(0, 0, 0)
    for i, line in enumerate(lines):
        pdf.drawString(PDF_TEXT_LEFT_MM * mm, page_height - (PDF_TEXT_TOP_MM + i * PDF_LINE_STEP_MM) * mm, line)

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def export_pdf(surface, config: JerseyConfig, out_dir: str = OUTPUT_DIR, notify=None) -> ExportResult:
    img = _surface_image(surface)
    if img is None:
        return _report(ExportResult(False, "pdf", None, "Canvas not found"), notify)
    path = os.path.join(out_dir, export_filename(config, "pdf"))
    try:
        _write_atomic(path, _pdf_bytes(img, config))
    except Exception as exc:
        print(f"[ERROR] PDF export failed: {exc}")
        return _report(ExportResult(False, "pdf", None, "Failed to export PDF"), notify)
    return _report(ExportResult(True, "pdf", path, f"Saved {path}"), notify)


def export_config(config: JerseyConfig, out_dir: str = OUTPUT_DIR, notify=None) -> ExportResult:
    path = os.path.join(out_dir, config_filename(config))
    try:
        _write_atomic(path, config.to_json().encode("utf-8"))
    except Exception as exc:
        print(f"[ERROR] Configuration export failed: {exc}")
        return _report(ExportResult(False, "config", None, "Failed to export configuration"), notify)
    return _report(ExportResult(True, "config", path, f"Configuration exported to {path}"), notify)


def import_config(path: str) -> JerseyConfig:
    config = load_config_file(path)
    print(f"[INFO] Loaded configuration from {path}")
    return config


def export_sheet(front_surface, back_surface, config: JerseyConfig, out_dir: str = OUTPUT_DIR, notify=None) -> ExportResult:
    front_img = _surface_image(front_surface)
    back_img = _surface_image(back_surface)
    if front_img is None or back_img is None:
        return _report(ExportResult(False, "sheet", None, "Canvas not found"), notify)
    path = os.path.join(out_dir, export_filename(config, "png", "-sheet"))
    try:
        sheet = compose_sheet(transparent_image(front_surface), transparent_image(back_surface))
        _write_atomic(path, _png_bytes(sheet))
    except Exception as exc:
        print(f"[ERROR] Sheet export failed: {exc}")
        return _report(ExportResult(False, "sheet", None, "Failed to export sheet"), notify)
    return _report(ExportResult(True, "sheet", path, f"Saved {path}"), notify)
