from typing import Callable, Dict, Optional

from .geometry import PARTS, VIEWS, check_part, part_layout


def _build_dispatch() -> Dict[str, str]:
    table = {}
    for view in VIEWS:
        for placement in part_layout(view):
            table[placement.tag] = placement.part
    return table


# Primitive tag -> jersey part. Only filled part rectangles are listed, so text
# runs and the overlay never resolve to a selection.
DISPATCH: Dict[str, str] = _build_dispatch()


def part_for_tag(tag: Optional[str]) -> Optional[str]:
    if tag is None:
        return None
    return DISPATCH.get(tag)


class SelectionController:
    """Tracks the selected part; the owner repaints when notified."""

    def __init__(self, on_change: Optional[Callable[[Optional[str]], None]] = None):
        self._selected: Optional[str] = None
        self._on_change = on_change

    @property
    def selected(self) -> Optional[str]:
        return self._selected

    def pointer_down(self, tag: Optional[str]) -> Optional[str]:
        part = part_for_tag(tag)
        if part is None:
            return None
        self._set(part)
        return part

    def select(self, part: str) -> None:
        self._set(check_part(part))

    def deselect(self) -> None:
        self._set(None)

    def is_highlighted(self, part: str) -> bool:
        return self._selected is not None and part == self._selected

    def highlights(self) -> Dict[str, bool]:
        return {part: self.is_highlighted(part) for part in PARTS}

    def _set(self, part: Optional[str]) -> None:
        if part == self._selected:
            return
        self._selected = part
        if self._on_change is not None:
            self._on_change(part)
