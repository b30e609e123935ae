import concurrent.futures
import sys
import tkinter as tk
from tkinter import colorchooser, filedialog, messagebox

from PIL import ImageTk

from .colors import PRESET_GRADIENTS, PRESET_LABELS, SolidColor, format_color
from .config import (
    COLOR_SCHEMES,
    FONT_OPTIONS,
    PART_COLOR_FIELDS,
    ConfigStore,
    InvalidConfigError,
    JerseyConfig,
)
from .export import ExportResult, export_config, export_pdf, export_png, export_sheet, import_config
from .geometry import VIEWS
from .overlay import OverlayUploadError, prepare_overlay_upload
from .scene import ViewRenderer
from .selection import SelectionController
from .settings import CANVAS_HEIGHT, CANVAS_WIDTH, OUTPUT_DIR

PART_LABELS = {
    "torso": "Torso",
    "torsoTrim": "Torso Trim",
    "sleeve": "Sleeves",
    "sleeveTrim": "Sleeve Trim",
    "neck": "Neck",
}
POLL_MS = 50
STATUS_CLEAR_MS = 3000
OVERLAY_EXPORT_TIMEOUT = 5


class JerseyConfiguratorApp:
    def __init__(self, master, config=None, out_dir=OUTPUT_DIR):
        self.master = master
        self.master.title("Jersey Configurator")
        self.out_dir = out_dir

        self.store = ConfigStore(config)
        self.selection = SelectionController(on_change=self._on_selection_change)
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=2)
        self.renderers = {
            view: ViewRenderer(view, executor=self.executor, on_commit=self._refresh_canvas) for view in VIEWS
        }
        self.canvases = {}
        self.image_ids = {}
        self.photos = {}
        self.vars = {}
        self.scales = {}
        self._scale_values = {}
        self._status_after = None
        self._poll_after = None
        self._control_guard = False

        self._build_ui()
        self.store.subscribe(self._on_config_change)
        self._sync_controls(self.store.config)
        self._render_all()
        self._poll_after = self.master.after(POLL_MS, self._poll)
        self.master.protocol("WM_DELETE_WINDOW", self.close)

    def _build_ui(self):
        root = self.master

        left = tk.Frame(root, padx=10, pady=10)
        left.pack(side=tk.LEFT, fill=tk.Y)

        color_frame = tk.LabelFrame(left, text="Jersey Colors", padx=6, pady=6)
        color_frame.pack(fill=tk.X, pady=(0, 6))
        self.selected_label = tk.Label(color_frame, text="Click a part of the jersey to edit it", anchor="w")
        self.selected_label.pack(fill=tk.X)
        self.swatch = tk.Label(color_frame, text="", width=4, relief=tk.SUNKEN)
        self.swatch.pack(anchor="w", pady=4)
        tk.Button(color_frame, text="Pick part color", command=self.on_pick_part_color).pack(fill=tk.X)
        tk.Button(color_frame, text="Done editing", command=self.selection.deselect).pack(fill=tk.X, pady=(4, 0))

        gradient_frame = tk.LabelFrame(left, text="Gradient Presets", padx=6, pady=6)
        gradient_frame.pack(fill=tk.X, pady=(0, 6))
        self.vars["gradient_target"] = tk.StringVar(value="part")
        for value, text in (("part", "Selected part"), ("secondary", "Name text"), ("accent", "Number")):
            tk.Radiobutton(
                gradient_frame, text=text, value=value, variable=self.vars["gradient_target"]
            ).pack(anchor="w")
        labels = [PRESET_LABELS[name] for name in PRESET_GRADIENTS]
        self.vars["gradient"] = tk.StringVar(value=labels[0])
        tk.OptionMenu(gradient_frame, self.vars["gradient"], *labels).pack(fill=tk.X)
        tk.Button(gradient_frame, text="Apply gradient", command=self.on_apply_gradient).pack(fill=tk.X, pady=(4, 0))

        scheme_frame = tk.LabelFrame(left, text="Color Schemes", padx=6, pady=6)
        scheme_frame.pack(fill=tk.X, pady=(0, 6))
        for name in COLOR_SCHEMES:
            tk.Button(scheme_frame, text=name, command=lambda n=name: self.on_apply_scheme(n)).pack(fill=tk.X)

        text_color_frame = tk.LabelFrame(left, text="Text Colors", padx=6, pady=6)
        text_color_frame.pack(fill=tk.X, pady=(0, 6))
        tk.Button(
            text_color_frame, text="Name color", command=lambda: self.on_pick_text_color("secondary_color")
        ).pack(fill=tk.X)
        tk.Button(
            text_color_frame, text="Number color", command=lambda: self.on_pick_text_color("accent_color")
        ).pack(fill=tk.X, pady=(4, 0))

        canvas_frame = tk.Frame(root, bd=1, relief=tk.SUNKEN)
        canvas_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True, padx=10, pady=10)
        for view in VIEWS:
            column = tk.Frame(canvas_frame)
            column.pack(side=tk.LEFT, padx=5, pady=5)
            tk.Label(column, text=f"{view.title()} View").pack()
            canvas = tk.Canvas(column, width=CANVAS_WIDTH, height=CANVAS_HEIGHT, highlightthickness=0)
            canvas.pack()
            canvas.bind("<ButtonPress-1>", lambda event, v=view: self.on_canvas_press(v, event))
            self.canvases[view] = canvas
            self.image_ids[view] = canvas.create_image(0, 0, anchor=tk.NW)

        right = tk.Frame(root, padx=10, pady=10)
        right.pack(side=tk.LEFT, fill=tk.Y)

        text_frame = tk.LabelFrame(right, text="Text Customization", padx=6, pady=6)
        text_frame.pack(fill=tk.X, pady=(0, 6))
        for key, label in (("team_name", "Team name"), ("player_name", "Player name"), ("player_number", "Number")):
            tk.Label(text_frame, text=label).pack(anchor="w")
            var = tk.StringVar()
            tk.Entry(text_frame, textvariable=var, width=24).pack(fill=tk.X, pady=(0, 4))
            var.trace_add("write", lambda *_args, k=key: self.on_text_change(k))
            self.vars[key] = var

        tk.Label(text_frame, text="Font").pack(anchor="w")
        self.vars["font_family"] = tk.StringVar()
        tk.OptionMenu(text_frame, self.vars["font_family"], *FONT_OPTIONS, command=self.on_font_change).pack(fill=tk.X)
        self._add_scale(text_frame, "font_size", "Font size", 16, 48, 1)

        shield_frame = tk.LabelFrame(right, text="Shield / Logo", padx=6, pady=6)
        shield_frame.pack(fill=tk.X, pady=(0, 6))
        btn_row = tk.Frame(shield_frame)
        btn_row.pack(fill=tk.X)
        tk.Button(btn_row, text="Upload", command=self.on_upload_shield).pack(side=tk.LEFT, expand=True, fill=tk.X, padx=(0, 4))
        tk.Button(btn_row, text="Remove", command=self.on_remove_shield).pack(side=tk.LEFT, expand=True, fill=tk.X)
        self._add_scale(shield_frame, "shield_size", "Size (%)", 30, 120, 1)
        self._add_scale(shield_frame, "shield_x", "Position X", 50, 250, 1)
        self._add_scale(shield_frame, "shield_y", "Position Y", 120, 280, 1)

        export_frame = tk.LabelFrame(right, text="Export Options", padx=6, pady=6)
        export_frame.pack(fill=tk.X, pady=(0, 6))
        self.vars["export_view"] = tk.StringVar(value="front")
        view_row = tk.Frame(export_frame)
        view_row.pack(fill=tk.X)
        for view in VIEWS:
            tk.Radiobutton(view_row, text=view.title(), value=view, variable=self.vars["export_view"]).pack(side=tk.LEFT)
        tk.Button(export_frame, text="Export PNG", command=self.on_export_png).pack(fill=tk.X)
        tk.Button(export_frame, text="Export PDF", command=self.on_export_pdf).pack(fill=tk.X, pady=4)
        tk.Button(export_frame, text="Export front + back sheet", command=self.on_export_sheet).pack(fill=tk.X)
        tk.Button(export_frame, text="Save configuration", command=self.on_export_config).pack(fill=tk.X, pady=4)
        tk.Button(export_frame, text="Load configuration", command=self.on_load_config).pack(fill=tk.X)

        self.status_label = tk.Label(right, text="", anchor="w", justify=tk.LEFT, wraplength=220)
        self.status_label.pack(fill=tk.X, pady=(10, 0))

    def _add_scale(self, parent, key, label, low, high, resolution):
        tk.Label(parent, text=label).pack(anchor="w")
        scale = tk.Scale(
            parent,
            from_=low,
            to=high,
            orient=tk.HORIZONTAL,
            resolution=resolution,
            command=lambda value, k=key: self.on_scale_change(k, value),
        )
        scale.pack(fill=tk.X)
        self.scales[key] = scale

    # Rendering

    def _render_all(self):
        config = self.store.config
        for renderer in self.renderers.values():
            renderer.render(config, self.selection.selected)

    def _refresh_canvas(self, surface):
        if surface.image is None:
            return
        photo = ImageTk.PhotoImage(surface.image)
        # Keep a reference or Tk drops the image.
        self.photos[surface.view] = photo
        self.canvases[surface.view].itemconfigure(self.image_ids[surface.view], image=photo)

    def _poll(self):
        for renderer in self.renderers.values():
            renderer.poll()
        self._poll_after = self.master.after(POLL_MS, self._poll)

    def _on_config_change(self, _config):
        self._render_all()

    def _on_selection_change(self, part):
        if part is None:
            self.selected_label.config(text="Click a part of the jersey to edit it")
            self.swatch.config(bg=self.master.cget("bg"))
        else:
            self._update_swatch(part)
        self._render_all()

    def _update_swatch(self, part):
        value = self.store.config.color_for(part)
        self.selected_label.config(text=f"Editing: {PART_LABELS[part]}")
        color = value if isinstance(value, SolidColor) else SolidColor(value.stops[0][1])
        self.swatch.config(bg=format_color(color))

    # Controls -> configuration

    def _apply(self, **changes):
        try:
            self.store.update(changes)
        except InvalidConfigError as exc:
            self.set_status(str(exc), error=True)
            return False
        return True

    def on_canvas_press(self, view, event):
        scene = self.renderers[view].surface.scene
        if scene is None:
            return
        self.selection.pointer_down(scene.hit_test(event.x, event.y))

    def on_pick_part_color(self):
        part = self.selection.selected
        if part is None:
            messagebox.showwarning("No Part Selected", "Click a part of the jersey before picking a color.")
            return
        current = self.store.config.color_for(part)
        initial = format_color(current) if isinstance(current, SolidColor) else None
        _rgb, hex_value = colorchooser.askcolor(color=initial, title=f"{PART_LABELS[part]} color")
        if hex_value and self._apply(**{PART_COLOR_FIELDS[part]: hex_value}):
            self._update_swatch(part)

    def on_pick_text_color(self, field_name):
        current = getattr(self.store.config, field_name)
        initial = format_color(current) if isinstance(current, SolidColor) else None
        _rgb, hex_value = colorchooser.askcolor(color=initial, title="Text color")
        if hex_value:
            self._apply(**{field_name: hex_value})

    def on_apply_gradient(self):
        label = self.vars["gradient"].get()
        preset = next(name for name, text in PRESET_LABELS.items() if text == label)
        target = self.vars["gradient_target"].get()
        if target == "part":
            part = self.selection.selected
            if part is None:
                messagebox.showwarning("No Part Selected", "Click a part of the jersey before applying a gradient.")
                return
            if self._apply(**{PART_COLOR_FIELDS[part]: preset}):
                self._update_swatch(part)
        else:
            self._apply(**{f"{target}_color": preset})

    def on_apply_scheme(self, name):
        torso, torso_trim, sleeve, sleeve_trim, neck = COLOR_SCHEMES[name]
        self._apply(
            torso_color=torso,
            torso_trim_color=torso_trim,
            sleeve_color=sleeve,
            sleeve_trim_color=sleeve_trim,
            neck_color=neck,
        )
        if self.selection.selected:
            self._update_swatch(self.selection.selected)

    def on_text_change(self, key):
        if self._control_guard:
            return
        if not self._apply(**{key: self.vars[key].get()}):
            # Put the last accepted value back in the entry.
            self._control_guard = True
            self.vars[key].set(getattr(self.store.config, key))
            self._control_guard = False

    def on_font_change(self, value):
        if not self._control_guard:
            self._apply(font_family=value)

    def on_scale_change(self, key, value):
        value = float(value)
        if self._control_guard or self._scale_values.get(key) == value:
            return
        self._scale_values[key] = value
        if key == "font_size":
            self._apply(font_size=int(value))
        elif key == "shield_size":
            self._apply(shield_size=value)
        else:
            x, y = self.store.config.shield_position
            self._apply(shield_position=(value, y) if key == "shield_x" else (x, value))

    def on_upload_shield(self):
        path = filedialog.askopenfilename(
            title="Select shield or logo image",
            filetypes=[("Image Files", "*.png;*.jpg;*.jpeg;*.gif;*.webp"), ("All Files", "*.*")],
        )
        if not path:
            return
        try:
            data_uri = prepare_overlay_upload(path)
        except OverlayUploadError as exc:
            messagebox.showerror("Upload Error", str(exc))
            return
        if self._apply(shield_url=data_uri):
            self.set_status("Shield uploaded successfully!")

    def on_remove_shield(self):
        self._apply(shield_url=None)

    def _sync_controls(self, config: JerseyConfig):
        self._control_guard = True
        try:
            for key in ("team_name", "player_name", "player_number", "font_family"):
                self.vars[key].set(getattr(config, key))
            values = {
                "font_size": config.font_size,
                "shield_size": config.shield_size,
                "shield_x": config.shield_position[0],
                "shield_y": config.shield_position[1],
            }
            for key, value in values.items():
                scale = self.scales[key]
                # Record the clamped value so the scale's own callback is ignored.
                low, high = float(scale.cget("from")), float(scale.cget("to"))
                self._scale_values[key] = float(max(low, min(value, high)))
                scale.set(value)
        finally:
            self._control_guard = False

    # Export

    def set_status(self, text, error=False):
        self.status_label.config(text=text, fg="#dc2626" if error else "#15803d")
        if self._status_after is not None:
            self.master.after_cancel(self._status_after)
        self._status_after = self.master.after(STATUS_CLEAR_MS, lambda: self.status_label.config(text=""))

    def notify(self, result: ExportResult):
        self.set_status(result.message, error=not result.success)
        if not result.success:
            messagebox.showerror("Export Error", result.message)

    def _export_renderer(self, view=None):
        renderer = self.renderers[view or self.vars["export_view"].get()]
        if renderer.pending:
            renderer.wait(timeout=OVERLAY_EXPORT_TIMEOUT)
        return renderer

    def on_export_png(self):
        export_png(self._export_renderer().surface, self.store.config, self.out_dir, notify=self.notify)

    def on_export_pdf(self):
        export_pdf(self._export_renderer().surface, self.store.config, self.out_dir, notify=self.notify)

    def on_export_sheet(self):
        front = self._export_renderer("front").surface
        back = self._export_renderer("back").surface
        export_sheet(front, back, self.store.config, self.out_dir, notify=self.notify)

    def on_export_config(self):
        export_config(self.store.config, self.out_dir, notify=self.notify)

    def on_load_config(self):
        path = filedialog.askopenfilename(
            title="Select jersey configuration",
            filetypes=[("JSON Files", "*.json"), ("All Files", "*.*")],
        )
        if not path:
            return
        try:
            config = import_config(path)
        except InvalidConfigError as exc:
            messagebox.showerror("Load Error", f"Failed to load configuration:\n{exc}")
            return
        self.selection.deselect()
        self.store.replace(config)
        self._sync_controls(config)
        self.set_status("Configuration loaded")

    def close(self):
        if self._poll_after is not None:
            self.master.after_cancel(self._poll_after)
        for renderer in self.renderers.values():
            renderer.close()
        self.executor.shutdown(wait=False)
        self.master.destroy()


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    config = None
    if argv:
        try:
            config = import_config(argv[0])
        except InvalidConfigError as exc:
            print(f"[ERROR] {exc}")
            return
    root = tk.Tk()
    JerseyConfiguratorApp(root, config=config)
    root.mainloop()


if __name__ == "__main__":
    main()
