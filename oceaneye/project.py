"""A project directory: its settings, media list, annotations and detection model."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable

import numpy as np
from PIL import Image

from oceaneye.settings import SettingsFile
from oceaneye.yolov8 import Annotation, Box, Forward, YOLOv8

log = logging.getLogger(__name__)

SETTINGS_FILENAME = "oceaneye_project_settings.yaml"
_ANNOTATIONS = "annotations"
_MEDIA = "media"


def _to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _read_image(path: str | Path) -> np.ndarray:
    with Image.open(path) as picture:
        return np.asarray(picture.convert("RGB"))


class Project:
    """A project folder holding its settings file and per-image annotation files."""

    def __init__(self, project_path: str | Path, forward: Forward | None = None) -> None:
        self.project_path = str(project_path)
        self.settings = SettingsFile(
            Path(os.path.normpath(os.path.join(self.project_path, SETTINGS_FILENAME)))
        )
        self.forward = forward
        self.media: list[str] = []
        self.model: YOLOv8 | None = None
        self.selected_items: list[str] = []
        self.on_model_loaded: list[Callable[[str], None]] = []

        model_path = self.settings.value("Model Path")
        self.load_model("" if model_path is None else str(model_path))

        if self.settings.contains("Model Confidence"):
            self.set_model_conf(_to_int(self.settings.value("Model Confidence")))

        self.load_media()

    def annotation_path(self, image_path: str | Path) -> Path:
        """The YAML file in the project folder holding an image's annotations."""
        name = Path(image_path).name + ".yaml"
        return Path(os.path.normpath(os.path.join(self.project_path, name)))

    def get_annotation(self, image_path: str | Path) -> list[Annotation]:
        """Read the stored annotations of an image; empty when there are none."""
        store = SettingsFile(self.annotation_path(image_path))
        annotations = []
        for index, entry in enumerate(store.read_array(_ANNOTATIONS)):
            class_name = entry.get("className")
            annotation = Annotation(
                class_id=_to_int(entry.get("classId")),
                class_name="" if class_name is None else str(class_name),
                confidence=_to_float(entry.get("confidence")),
                box=Box(
                    int(_to_float(entry.get("x"))),
                    int(_to_float(entry.get("y"))),
                    int(_to_float(entry.get("w"))),
                    int(_to_float(entry.get("h"))),
                ),
            )
            log.info(
                "Loading annotation #%d: class %d (%s), confidence %s",
                index,
                annotation.class_id,
                annotation.class_name,
                annotation.confidence,
            )
            annotations.append(annotation)
        return annotations

    def set_annotation(self, image_path: str | Path, annotations: Iterable[Annotation]) -> None:
        """Replace the stored annotations of an image."""
        store = SettingsFile(self.annotation_path(image_path))
        store.write_array(
            _ANNOTATIONS,
            [
                {
                    "classId": annotation.class_id,
                    "className": annotation.class_name,
                    "confidence": float(annotation.confidence),
                    "x": annotation.box.x,
                    "y": annotation.box.y,
                    "w": annotation.box.width,
                    "h": annotation.box.height,
                }
                for annotation in annotations
            ],
        )

    def set_model_conf(self, conf: int) -> None:
        """Set the model confidence, in percent, and store it."""
        if self.model is not None:
            self.model.score_threshold = conf / 100.0
        self.settings.set_value("Model Confidence", conf)

    def is_model_loaded(self) -> bool:
        return self.model is not None

    def load_model(self, model_path: str | Path | None) -> None:
        """Create a detector for a model file; an empty path does nothing."""
        model_path = "" if model_path is None else str(model_path)
        if not model_path:
            return
        self.model = YOLOv8(model_path, forward=self.forward)
        self.model.load_network()
        self.model.score_threshold = (
            _to_int(self.settings.value("Model Confidence")) / 100.0
        )
        self.settings.set_value("Model Path", model_path)
        for callback in self.on_model_loaded:
            callback(model_path)

    def run_detection(self, image_path: str | Path) -> bool:
        """Detect objects in an image; True when annotations were found and stored."""
        if self.model is None:
            log.warning("No Model Loaded!")
            return False
        try:
            image = _read_image(image_path)
        except OSError:
            log.critical("Error running upload detection on %s", image_path, exc_info=True)
            raise
        annotations = self.model.run_inference(image)
        if annotations:
            self.set_annotation(image_path, annotations)
            return True
        return False

    def run_specific_detection(
        self, image_path: str | Path, class_names: Iterable[str]
    ) -> list[Annotation]:
        """Detect objects, keep those of the given classes and store them."""
        if self.model is None:
            log.warning("Attempted detection without model loaded.")
            return []
        log.info("Running Detection on: %s", image_path)
        try:
            image = _read_image(image_path)
        except OSError:
            log.critical("Error running specific detection on %s", image_path, exc_info=True)
            raise
        wanted = set(class_names)
        specific = [
            annotation
            for annotation in self.model.run_inference(image)
            if annotation.class_name in wanted
        ]
        self.set_annotation(image_path, specific)
        return specific

    def save_media(self) -> None:
        """Store the media list in the project settings."""
        for path in self.media:
            log.info("Saving media: %s", path)
        self.settings.write_array(_MEDIA, [{"path": path} for path in self.media])
        log.info("Done saving media. Saved %d items", len(self.media))

    def load_media(self) -> None:
        """Read the media list from the project settings."""
        media = []
        for entry in self.settings.read_array(_MEDIA):
            value = entry.get("path")
            path = "" if value is None else str(value)
            log.info("Loading Media: %s", path)
            media.append(path)
        self.media = media
        log.info("Done loading media. Loaded %d items", len(media))