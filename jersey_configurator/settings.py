import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
OUTPUT_DIR = os.environ.get("JERSEY_OUTPUT_DIR") or os.path.join(os.getcwd(), "output")

# Reference frame every view is laid out in.
CANVAS_WIDTH = 400
CANVAS_HEIGHT = 500
CANVAS_SIZE = (CANVAS_WIDTH, CANVAS_HEIGHT)
BACKGROUND_COLOR = "#f8f9fa"

HIGHLIGHT_COLOR = "#3b82f6"
HIGHLIGHT_WIDTH = 3

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
WATERMARK_TEXT = "JERSEY CONFIGURATOR"

COMBINED_CANVAS_SIZE = (700, 1000)
COMBINED_SCALE = 0.8
SHEET_MARGIN = 30
SHEET_OVERLAP_RATIO = 0.35
SHEET_FRONT_LIFT = 10

FONT_DIRS = [
    path
    for path in (
        os.environ.get("JERSEY_FONT_DIR"),
        os.path.join(BASE_DIR, "fonts"),
        "/usr/share/fonts/truetype/dejavu",
        "/usr/share/fonts/truetype/msttcorefonts",
        "/Library/Fonts",
        "C:\\Windows\\Fonts",
    )
    if path
]


def verbose_enabled() -> bool:
    return os.environ.get("JERSEY_VERBOSE", "0").lower() in {"1", "true", "yes"}
