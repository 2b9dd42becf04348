"""Export of all project annotations as CSV, JSON, COCO or YAML."""

from __future__ import annotations

import enum
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml
from PIL import Image

from oceaneye.yolov8 import Annotation

log = logging.getLogger(__name__)

AnnotationMap = Mapping[str, Sequence[Annotation]]

CSV_HEADER = "Frame Name, Class, Confidence, X, Y, Width, Height\n"


class ExportFormat(enum.Enum):
    """Supported export formats and their default file names."""

    CSV = "CSV"
    JSON = "JSON"
    COCO = "COCO"
    YAML = "YAML"

    @property
    def default_filename(self) -> str:
        return {
            ExportFormat.CSV: "all_annotations.csv",
            ExportFormat.JSON: "all_annotations.json",
            ExportFormat.COCO: "all_annotations.json",
            ExportFormat.YAML: "all_annotations.yaml",
        }[self]


def collect_annotations(project: Any) -> dict[str, list[Annotation]]:
    """Annotations of every media file of a project, ordered by file path."""
    return {image: list(project.get_annotation(image)) for image in sorted(set(project.media))}


def _records(annotations: AnnotationMap) -> list[dict[str, Any]]:
    return [
        {
            "frame_name": image,
            "class": annotation.class_name,
            "confidence": float(annotation.confidence),
            "x": annotation.box.x,
            "y": annotation.box.y,
            "width": annotation.box.width,
            "height": annotation.box.height,
        }
        for image, anns in annotations.items()
        for annotation in anns
    ]


def export_csv(path: str | Path, annotations: AnnotationMap) -> None:
    """Write one line per annotation under a header row."""
    with open(path, "w", encoding="utf-8", newline="") as out:
        out.write(CSV_HEADER)
        for image, anns in annotations.items():
            for annotation in anns:
                box = annotation.box
                out.write(
                    f"{image}, {annotation.class_name}, "
                    f"{format(float(annotation.confidence), '.6g')}, "
                    f"{box.x}, {box.y}, {box.width}, {box.height}\n"
                )


def export_json(path: str | Path, annotations: AnnotationMap) -> None:
    """Write all annotations as a JSON array of flat objects."""
    Path(path).write_text(
        json.dumps(_records(annotations), indent=4, sort_keys=True) + "\n", encoding="utf-8"
    )


def _image_size(path: str) -> tuple[int, int]:
    try:
        with Image.open(path) as picture:
            return picture.size
    except OSError:
        log.warning("Could not read image %s for its size", path)
        return (0, 0)


def export_coco(path: str | Path, annotations: AnnotationMap) -> None:
    """Write a COCO dataset description of all images and annotations."""
    images: list[dict[str, Any]] = []
    coco_annotations: list[dict[str, Any]] = []
    categories: list[dict[str, Any]] = []
    known_categories: set[int] = set()
    annotation_id = 0

    for image_id, (image, anns) in enumerate(annotations.items(), start=1):
        width, height = _image_size(image)
        images.append(
            {
                "id": image_id,
                "width": width,
                "height": height,
                "file_name": image,
                "license": 0,
                "date_captured": 0,
            }
        )
        for annotation in anns:
            box = annotation.box
            coco_annotations.append(
                {
                    "id": annotation_id,
                    "image_id": image_id,
                    "category_id": annotation.class_id,
                    "area": box.width * box.height,
                    "bbox": [box.x, box.y, box.width, box.height],
                    "segmentation": [],
                    "iscrowd": 0,
                }
            )
            annotation_id += 1
            if annotation.class_id not in known_categories:
                known_categories.add(annotation.class_id)
                categories.append(
                    {
                        "id": annotation.class_id,
                        "name": annotation.class_name,
                        "supercategory": "",
                    }
                )

    today = date.today()
    document = {
        "categories": categories,
        "info": {
            "year": today.year,
            "version": "",
            "description": "",
            "contributor": "",
            "url": "",
            "date_created": today.strftime("%Y-%m-%d"),
        },
        "licenses": [{"id": 0, "name": "", "url": ""}],
        "images": images,
        "annotations": coco_annotations,
    }
    Path(path).write_text(
        json.dumps(document, indent=4, sort_keys=True) + "\n", encoding="utf-8"
    )


def export_yaml(path: str | Path, annotations: AnnotationMap) -> None:
    """Write all annotations as a YAML sequence of maps."""
    Path(path).write_text(
        yaml.safe_dump(_records(annotations), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )


_WRITERS = {
    ExportFormat.CSV: export_csv,
    ExportFormat.JSON: export_json,
    ExportFormat.COCO: export_coco,
    ExportFormat.YAML: export_yaml,
}


def export_project(
    project: Any, export_format: ExportFormat | str, path: str | Path | None = None
) -> int:
    """Export every annotation of a project; returns how many were counted."""
    export_format = ExportFormat(export_format)
    annotations = collect_annotations(project)
    total = sum(len(annotations[image]) for image in project.media)
    log.info("Exporting %d annotations", total)
    target = export_format.default_filename if path is None else path
    _WRITERS[export_format](target, annotations)
    return total