import json
from datetime import date

import pytest
import yaml
from PIL import Image

from oceaneye.exporting import (
    CSV_HEADER,
    ExportFormat,
    collect_annotations,
    export_coco,
    export_csv,
    export_json,
    export_project,
    export_yaml,
)
from oceaneye.project import Project
from oceaneye.yolov8 import Annotation, Box


@pytest.fixture
def annotations(tmp_path):
    first = tmp_path / "a.png"
    second = tmp_path / "b.png"
    Image.new("RGB", (8, 6)).save(first)
    Image.new("RGB", (5, 7)).save(second)
    return {
        str(first): [
            Annotation(3, "Fish", 0.5, Box(1, 2, 3, 4)),
            Annotation(0, "Kelp", 0.25, Box(5, 6, 7, 8)),
        ],
        str(second): [Annotation(3, "Fish", 1.0, Box(0, 0, 2, 2))],
    }


def test_csv_contents(tmp_path, annotations):
    out = tmp_path / "out.csv"
    export_csv(out, annotations)
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] + "\n" == CSV_HEADER
    first = str(tmp_path / "a.png")
    assert lines[1] == f"{first}, Fish, 0.5, 1, 2, 3, 4"
    assert lines[2] == f"{first}, Kelp, 0.25, 5, 6, 7, 8"
    assert len(lines) == 4


def test_json_contents(tmp_path, annotations):
    out = tmp_path / "out.json"
    export_json(out, annotations)
    data = json.loads(out.read_text(encoding="utf-8"))
    assert len(data) == 3
    assert data[0] == {
        "frame_name": str(tmp_path / "a.png"),
        "class": "Fish",
        "confidence": 0.5,
        "x": 1,
        "y": 2,
        "width": 3,
        "height": 4,
    }
    assert [row["class"] for row in data] == ["Fish", "Kelp", "Fish"]


def test_yaml_matches_json(tmp_path, annotations):
    export_json(tmp_path / "out.json", annotations)
    export_yaml(tmp_path / "out.yaml", annotations)
    from_json = json.loads((tmp_path / "out.json").read_text(encoding="utf-8"))
    from_yaml = yaml.safe_load((tmp_path / "out.yaml").read_text(encoding="utf-8"))
    assert from_yaml == from_json


def test_coco_structure(tmp_path, annotations):
    out = tmp_path / "coco.json"
    export_coco(out, annotations)
    data = json.loads(out.read_text(encoding="utf-8"))

    assert [image["id"] for image in data["images"]] == [1, 2]
    assert (data["images"][0]["width"], data["images"][0]["height"]) == (8, 6)
    assert (data["images"][1]["width"], data["images"][1]["height"]) == (5, 7)
    assert data["images"][0]["file_name"] == str(tmp_path / "a.png")

    assert [ann["id"] for ann in data["annotations"]] == [0, 1, 2]
    assert [ann["image_id"] for ann in data["annotations"]] == [1, 1, 2]
    assert data["annotations"][0]["bbox"] == [1, 2, 3, 4]
    for ann in data["annotations"]:
        assert ann["area"] == ann["bbox"][2] * ann["bbox"][3]
        assert ann["iscrowd"] == 0

    assert data["categories"] == [
        {"id": 3, "name": "Fish", "supercategory": ""},
        {"id": 0, "name": "Kelp", "supercategory": ""},
    ]
    assert data["licenses"] == [{"id": 0, "name": "", "url": ""}]
    assert data["info"]["year"] == date.today().year
    assert data["info"]["date_created"] == date.today().strftime("%Y-%m-%d")


def test_coco_unreadable_image_has_zero_size(tmp_path):
    out = tmp_path / "coco.json"
    export_coco(out, {str(tmp_path / "gone.png"): []})
    data = json.loads(out.read_text(encoding="utf-8"))
    assert (data["images"][0]["width"], data["images"][0]["height"]) == (0, 0)
    assert data["annotations"] == []


@pytest.mark.parametrize(
    "name, expected",
    [
        ("CSV", "all_annotations.csv"),
        ("COCO", "all_annotations.json"),
        ("YAML", "all_annotations.yaml"),
    ],
)
def test_default_filenames(tmp_path, name, expected):
    project = Project(tmp_path / "proj")
    out = tmp_path / ExportFormat[name].default_filename
    total = export_project(project, name, out)
    assert total == 0
    assert out.name == expected
    assert out.exists()


def test_collect_annotations_sorted(tmp_path):
    project = Project(tmp_path / "proj")
    project.media = ["z.png", "a.png"]
    project.set_annotation("z.png", [Annotation(1, "Sea Urchin", 0.5, Box(1, 1, 1, 1))])
    collected = collect_annotations(project)
    assert list(collected) == ["a.png", "z.png"]
    assert collected["a.png"] == []
    assert collected["z.png"] == [Annotation(1, "Sea Urchin", 0.5, Box(1, 1, 1, 1))]


def test_export_project_by_name(tmp_path):
    project = Project(tmp_path / "proj")
    project.media = ["x.png", "y.png"]
    project.set_annotation("x.png", [Annotation(2, "Sea Star", 0.5, Box(0, 0, 4, 4))] * 2)
    project.set_annotation("y.png", [Annotation(4, "Sea Cucumber", 0.5, Box(1, 1, 2, 2))])
    out = tmp_path / "all.yaml"
    total = export_project(project, "YAML", out)
    assert total == 3
    rows = yaml.safe_load(out.read_text(encoding="utf-8"))
    assert [row["frame_name"] for row in rows] == ["x.png", "x.png", "y.png"]


def test_export_project_unknown_format(tmp_path):
    project = Project(tmp_path / "proj")
    with pytest.raises(ValueError):
        export_project(project, "XML", tmp_path / "out.xml")