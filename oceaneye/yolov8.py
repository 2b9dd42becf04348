"""YOLO detection: output decoding, non-maximum suppression and class metadata."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont

log = logging.getLogger(__name__)

MODEL_CLASSES: tuple[str, ...] = ("Kelp", "Sea Urchin", "Sea Star", "Fish", "Sea Cucumber")

# Metadata key "names" followed by the protobuf tag of the value field.
_NAMES_MAGIC = b"names\x12"

# Blue, for images held as RGB arrays.
BOX_COLOR = (0, 0, 255)

Forward = Callable[[np.ndarray], Any]


@dataclass
class Box:
    """Integer rectangle; right and bottom are the last covered pixel."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @property
    def left(self) -> int:
        return self.x

    @left.setter
    def left(self, value: int) -> None:
        right = self.right
        self.x = int(value)
        self.width = right - self.x + 1

    @property
    def top(self) -> int:
        return self.y

    @top.setter
    def top(self, value: int) -> None:
        bottom = self.bottom
        self.y = int(value)
        self.height = bottom - self.y + 1

    @property
    def right(self) -> int:
        return self.x + self.width - 1

    @right.setter
    def right(self, value: int) -> None:
        self.width = int(value) - self.x + 1

    @property
    def bottom(self) -> int:
        return self.y + self.height - 1

    @bottom.setter
    def bottom(self, value: int) -> None:
        self.height = int(value) - self.y + 1

    @property
    def area(self) -> int:
        return self.width * self.height

    def normalized(self) -> Box:
        """Return a box with non-negative width and height covering the same span."""
        x1, y1, x2, y2 = self.left, self.top, self.right, self.bottom
        if x2 < x1:
            x1, x2 = x2 + 1, x1 - 1
        if y2 < y1:
            y1, y2 = y2 + 1, y1 - 1
        return Box(x1, y1, x2 - x1 + 1, y2 - y1 + 1)

    def contains(self, x: float, y: float) -> bool:
        """True when the point lies strictly inside the box, not on its edge."""
        x1, y1, x2, y2 = self.left, self.top, self.right, self.bottom
        left, right = (x2 + 1, x1 - 1) if x2 < x1 - 1 else (x1, x2)
        if x <= left or x >= right:
            return False
        top, bottom = (y2 + 1, y1 - 1) if y2 < y1 - 1 else (y1, y2)
        return top < y < bottom


@dataclass
class Annotation:
    """One labelled box in an image."""

    class_id: int
    class_name: str
    confidence: float
    box: Box = field(default_factory=Box)


class _Scanner:
    """Walks the bytes of a metadata string, counting every byte read."""

    def __init__(self, data: bytes, position: int, length: int) -> None:
        self._data = data
        self._position = position
        self.count = 1
        self._length = length

    def _read(self) -> int | None:
        if self._position < len(self._data):
            byte = self._data[self._position]
            self._position += 1
            return byte
        return None

    def until(self, pattern: str, keep: Callable[[int], bool] = lambda _: True) -> str:
        stop = ord(pattern)
        collected = bytearray()
        byte = self._read()
        self.count += 1
        while byte != stop and self.count < self._length:
            if byte is not None and keep(byte):
                collected.append(byte)
            byte = self._read()
            self.count += 1
        return collected.decode("utf-8", errors="replace")


def parse_class_names(data: bytes) -> dict[int, str]:
    """Read the "names" metadata dictionary embedded in an ONNX model file."""
    data = bytes(data)
    start = data.find(_NAMES_MAGIC)
    if start < 0 or start + len(_NAMES_MAGIC) >= len(data):
        return {}
    length = data[start + len(_NAMES_MAGIC)]
    # Skip the length byte and the opening "{"; the closing "}" is never read.
    scanner = _Scanner(data, start + len(_NAMES_MAGIC) + 2, length)
    classes: dict[int, str] = {}
    while scanner.count < length - 1:
        key = scanner.until(":", keep=lambda byte: 0x30 <= byte <= 0x39)
        scanner.until("'")
        value = scanner.until("'")
        try:
            index = int(key)
        except ValueError:
            raise ValueError(f"malformed class entry with key {key!r}") from None
        classes[index] = value
        log.info("Class %s: %s", key, value)
    return classes


def load_classes(path: str | Path) -> dict[int, str]:
    """Read class names from a model file; raises OSError if it cannot be read."""
    log.info("Attempting to open model: %s", path)
    data = Path(path).read_bytes()
    log.info("Successfully Opened Model: %s", path)
    return parse_class_names(data)


def _overlap(a: Box, b: Box) -> float:
    x1 = max(a.x, b.x)
    y1 = max(a.y, b.y)
    x2 = min(a.x + a.width, b.x + b.width)
    y2 = min(a.y + a.height, b.y + b.height)
    inter = (x2 - x1) * (y2 - y1) if x2 > x1 and y2 > y1 else 0
    union = a.area + b.area - inter
    if union <= 0:
        return 0.0
    return inter / union


def nms_boxes(
    boxes: Sequence[Box],
    scores: Sequence[float],
    score_threshold: float,
    nms_threshold: float,
) -> list[int]:
    """Greedy non-maximum suppression; returns kept indices, best score first."""
    if len(boxes) != len(scores):
        raise ValueError("boxes and scores must have the same length")
    candidates = sorted(
        (index for index, score in enumerate(scores) if score > score_threshold),
        key=lambda index: -scores[index],
    )
    kept: list[int] = []
    for index in candidates:
        if all(_overlap(boxes[index], boxes[other]) <= nms_threshold for other in kept):
            kept.append(index)
    return kept


def format_to_square(image: np.ndarray) -> np.ndarray:
    """Pad an image with black on the right and bottom to make it square."""
    rows, cols = image.shape[:2]
    side = max(rows, cols)
    result = np.zeros((side, side) + image.shape[2:], dtype=image.dtype)
    result[:rows, :cols] = image
    return result


def draw_detections(annotations: Sequence[Annotation], image: np.ndarray) -> np.ndarray:
    """Draw boxes and labels onto an RGB uint8 image in place and return it."""
    canvas = Image.fromarray(np.ascontiguousarray(image))
    draw = ImageDraw.Draw(canvas)
    font = ImageFont.load_default()
    for annotation in annotations:
        box = annotation.box.normalized()
        if box.width > 0 and box.height > 0:
            draw.rectangle([box.left, box.top, box.right, box.bottom], outline=BOX_COLOR, width=2)
        label = f"{annotation.class_name} {annotation.confidence:f}"[: len(annotation.class_name) + 5]
        left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
        text_width, text_height = right - left, bottom - top
        draw.rectangle(
            [box.x, box.y - 40, box.x + text_width + 10 - 1, box.y - 40 + text_height + 20 - 1],
            fill=BOX_COLOR,
        )
        draw.text((box.x + 5, box.y - 10 - text_height), label, fill=(0, 0, 0), font=font)
    image[...] = np.asarray(canvas)
    return image


def _blob_from_image(image: np.ndarray, size: tuple[int, int]) -> np.ndarray:
    picture = Image.fromarray(np.ascontiguousarray(image.astype(np.uint8))).convert("RGB")
    resized = picture.resize(size, Image.Resampling.BILINEAR)
    scaled = np.asarray(resized, dtype=np.float32) / 255.0
    return scaled.transpose(2, 0, 1)[np.newaxis]


class YOLOv8:
    """A YOLOv5/v8 detector; the network itself is the supplied forward callable."""

    def __init__(
        self,
        model_path: str | Path = "",
        input_shape: tuple[int, int] = (640, 640),
        forward: Forward | None = None,
    ) -> None:
        self.model_path = str(model_path)
        self.input_shape = (int(input_shape[0]), int(input_shape[1]))
        self.forward = forward
        self.loaded = False
        self.class_map: dict[int, str] = {}
        self.confidence_threshold = 0.25
        self.score_threshold = 0.45
        self.nms_threshold = 0.50
        self.letterbox_for_square = True

    def load_network(self) -> None:
        """Check the model file and backend, then read the class names."""
        log.info("Loading ONNX model from: %s", self.model_path)
        if not self.model_path or not Path(self.model_path).is_file():
            log.error("Error loading the ONNX model: %s is not a file", self.model_path)
            self.loaded = False
            return
        if self.forward is None:
            log.error("Error loading the ONNX model: no inference backend")
            self.loaded = False
            return
        self.loaded = True
        log.info("Model loaded successfully.")
        log.info("Beginning to load classes... ")
        try:
            self.class_map = load_classes(self.model_path)
        except OSError as error:
            log.error("Error opening the file %s: %s", self.model_path, error)
            self.class_map = {}

    def decode_outputs(
        self, output: Any, image_width: int, image_height: int
    ) -> list[Annotation]:
        """Turn a raw (1, rows, dims) or (1, dims, rows) output into annotations."""
        array = np.asarray(output, dtype=np.float32)
        if array.ndim != 3:
            raise ValueError(f"expected a 3-dimensional output, got shape {array.shape}")
        rows, dimensions = array.shape[1], array.shape[2]
        is_v8 = dimensions > rows
        data = array[0].T if is_v8 else array[0]
        num_classes = len(MODEL_CLASSES)
        x_factor = image_width / self.input_shape[0]
        y_factor = image_height / self.input_shape[1]

        class_ids: list[int] = []
        confidences: list[float] = []
        boxes: list[Box] = []
        for row in data:
            if is_v8:
                scores = row[4 : 4 + num_classes]
                class_id = int(np.argmax(scores))
                best = float(scores[class_id])
                if best <= self.score_threshold:
                    continue
                confidence = best
            else:
                confidence = float(row[4])
                if confidence < self.confidence_threshold:
                    continue
                scores = row[5 : 5 + num_classes]
                class_id = int(np.argmax(scores))
                if float(scores[class_id]) <= self.score_threshold:
                    continue
            x, y, w, h = (float(value) for value in row[:4])
            boxes.append(
                Box(
                    int((x - 0.5 * w) * x_factor),
                    int((y - 0.5 * h) * y_factor),
                    int(w * x_factor),
                    int(h * y_factor),
                )
            )
            confidences.append(confidence)
            class_ids.append(class_id)

        log.info("Beginning detections...")
        annotations = []
        for index in nms_boxes(boxes, confidences, self.score_threshold, self.nms_threshold):
            annotation = Annotation(
                class_ids[index],
                MODEL_CLASSES[class_ids[index]],
                confidences[index],
                boxes[index],
            )
            log.info(
                "Detected: %s ID: %d Conf: %s",
                annotation.class_name,
                annotation.class_id,
                annotation.confidence,
            )
            annotations.append(annotation)
        log.info("Completed annotation for current media")
        return annotations

    def run_inference(self, image: np.ndarray) -> list[Annotation]:
        """Detect objects in an RGB image; empty when no model is loaded."""
        if not self.loaded or self.forward is None:
            log.warning("Error: Model is not loaded")
            return []
        model_input = np.asarray(image)
        width, height = self.input_shape
        if self.letterbox_for_square and width == height:
            model_input = format_to_square(model_input)
        blob = _blob_from_image(model_input, (width, height))
        outputs = self.forward(blob)
        if isinstance(outputs, (list, tuple)):
            outputs = outputs[0]
        return self.decode_outputs(outputs, model_input.shape[1], model_input.shape[0])