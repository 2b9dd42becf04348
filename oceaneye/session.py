"""The state of an open project: current image, detection and media adding."""

from __future__ import annotations

import logging
import math
import os
from pathlib import Path
from typing import Any, Iterable, Sequence

from PIL import Image

from oceaneye.canvas import AnnotationCanvas
from oceaneye.slicer import VideoSlicer
from oceaneye.yolov8 import MODEL_CLASSES, Annotation

log = logging.getLogger(__name__)

ALL_CLASSES = "All"
DEFAULT_MODEL_CONFIDENCE = 70
CONFIDENCE_KEY = "Model Confidence"
MAX_MODEL_LABEL = 30


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def is_image(path: str | Path) -> bool:
    """True when the file's content is an image format that can be read."""
    try:
        with Image.open(path) as picture:
            return picture.format is not None
    except (OSError, ValueError):
        return False


class Session:
    """One project being worked on: which image is shown and what is detected."""

    def __init__(self, project: Any, slicer: VideoSlicer | None = None) -> None:
        self.project = project
        self.slicer = slicer if slicer is not None else VideoSlicer(project)
        self.current_img = 0
        self.image_label = ""
        self.count_label = ""
        self.rows: list[tuple[str, str]] = []
        self.canvas = AnnotationCanvas(project)
        self.canvas.on_annotations_changed.append(self.update_table)

        if ALL_CLASSES not in project.selected_items:
            project.selected_items.append(ALL_CLASSES)

        label = self.model_label()
        self.model_path_label, self.model_path_tooltip = label if label else ("", "")
        project.on_model_loaded.append(self._model_loaded)

        if project.settings.contains(CONFIDENCE_KEY):
            conf = _to_int(project.settings.value(CONFIDENCE_KEY))
        else:
            conf = DEFAULT_MODEL_CONFIDENCE
        self.set_model_confidence(conf)

        self.slicer.on_done_slicing.append(self.update_image)
        self.update_image()

    def _model_loaded(self, model_path: str) -> None:
        self.model_path_label = model_path

    def _current_path(self) -> str:
        return self.project.media[self.current_img]

    def set_model_confidence(self, conf: int) -> None:
        """Set the detection confidence threshold, in percent."""
        self.model_confidence = conf
        self.project.set_model_conf(conf)

    def navigate_next(self) -> None:
        self.current_img += 1
        self.update_image()

    def navigate_previous(self) -> None:
        """Step back one image, wrapping to the last one from the first."""
        if self.current_img < 1:
            self.current_img = len(self.project.media) - 1
        else:
            self.current_img -= 1
        self.update_image()

    def update_image(self) -> None:
        """Bring the current index into range and show that image."""
        media = self.project.media
        if not media:
            self.image_label = "No Images Loaded"
            self.count_label = "0 / 0"
            self.canvas.clear_image()
            self.current_img = 0
            return
        size = len(media)
        if self.current_img < 0:
            self.current_img = size - 1 + int(math.fmod(self.current_img, size))
        if self.current_img >= size:
            self.current_img %= size
        path = media[self.current_img]
        self.image_label = path
        self.count_label = f"{self.current_img + 1} / {size}"
        self.canvas.load_image(path)

    def update_table(self) -> None:
        """Store the canvas annotations for the current image and refresh the rows."""
        if not self.project.media:
            return
        self.project.set_annotation(self._current_path(), self.canvas.annotations)
        self.rows = self.table_rows(self.canvas.annotations)

    def table_rows(self, annotations: Iterable[Annotation]) -> list[tuple[str, str]]:
        """Class name and confidence of each annotation, as shown in the table."""
        return [
            (annotation.class_name, format(float(annotation.confidence), ".6g"))
            for annotation in annotations
        ]

    def select_row(self, row: int) -> None:
        """Highlight the annotation shown in a table row."""
        if row < 0:
            return
        self.canvas.selected_annotation = row

    def select_classes(self, names: Sequence[str]) -> None:
        """Choose which classes detection keeps; "All" keeps every class."""
        allowed = {ALL_CLASSES, *MODEL_CLASSES}
        unknown = [name for name in names if name not in allowed]
        if unknown:
            raise ValueError(f"unknown classes: {', '.join(unknown)}")
        self.project.selected_items = list(names)

    def run_detection(self) -> list[Annotation]:
        """Detect on the current image with the selected classes."""
        if not self.project.media:
            return []
        path = self._current_path()
        if ALL_CLASSES in self.project.selected_items:
            self.project.run_detection(path)
        else:
            self.project.run_specific_detection(path, self.project.selected_items)
        self.update_image()
        return list(self.canvas.annotations)

    def run_specific_detection(self, class_names: Iterable[str]) -> list[Annotation]:
        """Detect on the current image keeping only the given classes."""
        if not self.project.media:
            return []
        self.project.run_specific_detection(self._current_path(), class_names)
        self.update_image()
        return list(self.canvas.annotations)

    def add_media(self, files: Iterable[str | Path]) -> list[list[str]]:
        """Add images directly and slice everything else as video."""
        videos: list[str] = []
        for file in files:
            name = str(file)
            if is_image(name):
                self.project.media.append(name)
            else:
                videos.append(name)
        self.project.save_media()
        results = self.slicer.slice(videos)
        self.update_image()
        return results

    def model_label(self) -> tuple[str, str] | None:
        """Shortened model file name and its full path, or None without a model."""
        if not self.project.is_model_loaded():
            return None
        model_path = self.project.model.model_path
        name = Path(model_path).name
        if len(name) > MAX_MODEL_LABEL:
            name = name[:MAX_MODEL_LABEL] + "..."
        return name, os.path.abspath(model_path)