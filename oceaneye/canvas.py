"""Interactive annotation editing on an image: selection, handles, pan and zoom."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from PIL import Image

from oceaneye.yolov8 import MODEL_CLASSES, Annotation, Box

log = logging.getLogger(__name__)

HANDLE_SIZE = 4
BOUNDARY = 50.0
MIN_ZOOM = 0.5
MAX_ZOOM = 20.0


class Cursor(enum.Enum):
    """Mouse cursor shapes the canvas asks for."""

    ARROW = "arrow"
    SIZE_VER = "size_ver"
    SIZE_HOR = "size_hor"
    SIZE_BDIAG = "size_bdiag"
    SIZE_FDIAG = "size_fdiag"


@dataclass(frozen=True)
class Handle:
    """A resize handle: its place relative to the box (0-1) and the sides it moves."""

    x: float
    y: float
    top: bool
    left: bool
    bottom: bool
    right: bool

    @property
    def cursor(self) -> Cursor:
        if (self.top and self.left) or (self.bottom and self.right):
            return Cursor.SIZE_FDIAG
        if (self.top and self.right) or (self.bottom and self.left):
            return Cursor.SIZE_BDIAG
        if self.top or self.bottom:
            return Cursor.SIZE_VER
        return Cursor.SIZE_HOR


HANDLES: tuple[Handle, ...] = (
    Handle(0.0, 0.0, True, True, False, False),
    Handle(0.0, 0.5, False, True, False, False),
    Handle(0.0, 1.0, False, True, True, False),
    Handle(0.5, 1.0, False, False, True, False),
    Handle(1.0, 1.0, False, False, True, True),
    Handle(1.0, 0.5, False, False, False, True),
    Handle(1.0, 0.0, True, False, False, True),
    Handle(0.5, 0.0, True, False, False, False),
)


def _qround(value: float) -> int:
    if value >= 0:
        return int(math.floor(value + 0.5))
    return int(math.ceil(value - 0.5))


def _handle_point(box: Box, handle: Handle) -> tuple[float, float]:
    return (box.x + box.width * handle.x, box.y + box.height * handle.y)


def _near(point: tuple[float, float], other: tuple[float, float]) -> bool:
    distance = abs(point[0] - other[0]) + abs(point[1] - other[1])
    return distance * distance < HANDLE_SIZE * HANDLE_SIZE


class AnnotationCanvas:
    """The editing state of one displayed image and its annotations."""

    def __init__(self, project: Any) -> None:
        self.project = project
        self.annotations: list[Annotation] = []
        self.selected_annotation = -1
        self.selected_handle: Handle | None = None
        self.mouse_pos = (0.0, 0.0)
        self.image_pos = (0.0, 0.0)
        self.zoom = 1.0
        self.image_scale = 1.0
        self.target = (0, 0, 0, 0)
        self.width = 0
        self.height = 0
        self.image_width = 0
        self.image_height = 0
        self.has_image = False
        self.cursor = Cursor.ARROW
        self.on_annotations_changed: list[Callable[[], None]] = []

    def _emit_changed(self) -> None:
        for callback in list(self.on_annotations_changed):
            callback()

    def load_image(self, path: str | Path) -> None:
        """Show an image and load its stored annotations."""
        self.annotations = list(self.project.get_annotation(path))
        self._emit_changed()
        try:
            with Image.open(path) as picture:
                self.image_width, self.image_height = picture.size
            self.has_image = True
        except OSError:
            log.warning("Could not load image %s", path)
            self.image_width = self.image_height = 0
            self.has_image = False
        self.zoom = 1.0
        self.image_pos = (0.0, 0.0)
        self._set_margins()

    def clear_image(self) -> None:
        """Show no image."""
        self.has_image = False
        self.image_width = self.image_height = 0

    def resize(self, width: int, height: int) -> None:
        self.width = int(width)
        self.height = int(height)
        self._set_margins()

    def _set_margins(self) -> None:
        if not self.has_image:
            return
        w, h = self.width, self.height
        pw, ph = self.image_width, self.image_height
        if w <= 0 or h <= 0 or pw <= 0 or ph <= 0:
            return
        if w * ph > h * pw:
            margin = w - (pw * h // ph)
            self.target = (margin // 2, 0, w - margin, h)
            self.image_scale = h / ph
        else:
            margin = h - (ph * w // pw)
            self.target = (0, margin // 2, w, h - margin)
            self.image_scale = w / pw

    def widget_to_image(self, x: float, y: float) -> tuple[float, float]:
        """Map a widget position to image coordinates under the current view."""
        tx, ty, tw, th = self.target
        sx = self.image_width / tw if tw > 0 else 1.0
        sy = self.image_height / th if th > 0 else 1.0
        window_x = (x - tx) * sx
        window_y = (y - ty) * sy
        return (
            (window_x - self.image_pos[0]) / self.zoom,
            (window_y - self.image_pos[1]) / self.zoom,
        )

    def _enforce_boundaries(self) -> None:
        px, py = self.image_pos
        w, h = self.image_width, self.image_height
        if px < (BOUNDARY - w) * self.zoom:
            px = (BOUNDARY - w) * self.zoom
        if px > w - BOUNDARY:
            px = w - BOUNDARY
        if py < (BOUNDARY - h) * self.zoom:
            py = (BOUNDARY - h) * self.zoom
        if py > h - BOUNDARY:
            py = h - BOUNDARY
        self.image_pos = (px, py)
        self.zoom = min(max(self.zoom, MIN_ZOOM), MAX_ZOOM)

    def _pan(self, dx: float, dy: float) -> None:
        self.image_pos = (
            self.image_pos[0] + dx / self.image_scale,
            self.image_pos[1] + dy / self.image_scale,
        )
        self._enforce_boundaries()

    def mouse_press(
        self, x: float, y: float, new_annotation: bool = False, class_id: int = 0
    ) -> None:
        """Left press: start a new box, grab a handle or select a box."""
        if not self.project.media:
            return
        self.mouse_pos = (float(x), float(y))
        ix, iy = self.widget_to_image(x, y)

        if new_annotation:
            annotation = Annotation(
                class_id,
                MODEL_CLASSES[class_id],
                1.0,
                Box(_qround(ix), _qround(iy), 1, 1),
            )
            self.selected_annotation = len(self.annotations)
            self.annotations.append(annotation)
            self.selected_handle = HANDLES[4]
            self._emit_changed()
            return

        if self.selected_annotation >= 0:
            box = self.annotations[self.selected_annotation].box
            for handle in HANDLES:
                if _near(_handle_point(box, handle), (ix, iy)):
                    self.selected_handle = handle
                    return

        self.selected_annotation = -1
        point = (_qround(ix), _qround(iy))
        for index, annotation in enumerate(self.annotations):
            if annotation.box.contains(*point):
                self.selected_annotation = index
                return

    def mouse_release(self) -> None:
        """Finish dragging and normalise every box."""
        if not self.project.media:
            return
        self.selected_handle = None
        for annotation in self.annotations:
            annotation.box = annotation.box.normalized()
        self._emit_changed()

    def mouse_move(self, x: float, y: float, left: bool = False, right: bool = False) -> None:
        """Move with buttons held: right pans, left resizes by handle or pans."""
        dx = x - self.mouse_pos[0]
        dy = y - self.mouse_pos[1]
        self.cursor = Cursor.ARROW

        if right:
            self._pan(dx, dy)
        elif self.selected_annotation >= 0:
            ix, iy = self.widget_to_image(x, y)
            annotation = self.annotations[self.selected_annotation]
            for handle in HANDLES:
                if _near(_handle_point(annotation.box, handle), (ix, iy)) or (
                    self.selected_handle is not None
                    and (self.selected_handle.x, self.selected_handle.y) == (handle.x, handle.y)
                ):
                    self.cursor = handle.cursor
            if left:
                if self.selected_handle is not None:
                    bx = int(min(max(ix, 0.0), float(self.image_width)))
                    by = int(min(max(iy, 0.0), float(self.image_height)))
                    box = annotation.box
                    if self.selected_handle.top:
                        box.top = by
                    if self.selected_handle.left:
                        box.left = bx
                    if self.selected_handle.bottom:
                        box.bottom = by
                    if self.selected_handle.right:
                        box.right = bx
                else:
                    self._pan(dx, dy)
        self.mouse_pos = (float(x), float(y))

    def wheel(self, x: float, y: float, delta: float) -> None:
        """Zoom about the mouse position; 120 units of delta is one step."""
        mouse_x = self.image_pos[0] - (x - self.target[0]) / self.image_scale
        mouse_y = self.image_pos[1] - (y - self.target[1]) / self.image_scale
        zoom_x, zoom_y = mouse_x / self.zoom, mouse_y / self.zoom

        self.zoom *= 1.1 ** (delta / 120.0)
        self._enforce_boundaries()

        new_x, new_y = mouse_x / self.zoom, mouse_y / self.zoom
        self.image_pos = (
            self.image_pos[0] + (zoom_x - new_x) * self.zoom,
            self.image_pos[1] + (zoom_y - new_y) * self.zoom,
        )
        self._enforce_boundaries()

    def delete_selected(self) -> None:
        if self.selected_annotation >= 0:
            del self.annotations[self.selected_annotation]
            self.selected_annotation = -1
            self._emit_changed()

    def cycle_selected_class(self) -> None:
        """Give the selected box the next class in the model's list."""
        if self.selected_annotation >= 0:
            annotation = self.annotations[self.selected_annotation]
            annotation.class_id = (annotation.class_id + 1) % len(MODEL_CLASSES)
            annotation.class_name = MODEL_CLASSES[annotation.class_id]
            self._emit_changed()

    def cancel(self) -> None:
        """Drop the current selection."""
        if self.selected_annotation >= 0:
            self.selected_annotation = -1
        self.selected_handle = None

    def reset_view(self) -> None:
        self.zoom = 1.0
        self.image_pos = (0.0, 0.0)
        self._set_margins()