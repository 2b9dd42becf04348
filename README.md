# oceaneye

Tools for annotating underwater imagery. A project is a directory holding
`oceaneye_project_settings.yaml` (its settings and media list) and one
`<image name>.yaml` annotation file per image. With the package you can:

- keep a project's media list: add images, cut videos into still frames,
  remove media together with their annotation files;
- decode YOLO outputs (v5 and v8 layouts) into annotations, with a confidence
  threshold and non-maximum suppression, and keep only chosen classes
  (Kelp, Sea Urchin, Sea Star, Fish, Sea Cucumber);
- edit bounding boxes: create, resize by their handles, cycle a box's class,
  delete, pan and zoom the view;
- export every annotation of a project as CSV, JSON, COCO or YAML.

Requires Python 3.10 or later, PyYAML, NumPy, Pillow and imageio.

## Command line

```
oceaneye --help
```

Global options: `--settings-file PATH` (user settings file, by default
`~/.oceaneye/oceaneye/oceaneye.yaml`) and `--log-file PATH` (default
`log.txt`, recreated on every run). Commands:

| Command | What it does |
|---|---|
| `recent [--filter TEXT]` | list recently opened projects, newest first (also the default when no command is given) |
| `open PROJECT [--new]` | open a project folder and remember it; `--new` writes the default settings |
| `forget INDEX` | drop the project at that position of the recent list |
| `add PROJECT FILE...` | add files Pillow can read as images; everything else is sliced as video |
| `detect PROJECT [--classes NAME...]` | run detection on every media file; `All` (the default) keeps every class |
| `export PROJECT {CSV,JSON,COCO,YAML} [--output PATH]` | export all annotations; the default file is `all_annotations.csv`, `.json` or `.yaml` |
| `settings PROJECT [--set KEY=VALUE]... [--model FILE]` | store settings (values are clamped to their range), rerun detection on every media file, print the settings |
| `settings-path` | print where the user settings file lives |

Project settings:

| Setting                          | Default | Range       |
|----------------------------------|---------|-------------|
| Slice Interval (seconds)         | 5       | 1 – 6000    |
| Model Path                       | empty   | set with `--model` |
| Model Confidence (%)             | 70      | 1 – 100     |
| Automatically Filter Dead Video  | false   |             |

Videos are read through imageio, which needs a plugin able to read the
video's format. Frames are saved as `<video stem>_<frame>.jpeg` in the project
directory every "Slice Interval" seconds. They are added to the media list
only when the project settings contain "Automatically Filter Dead Video"
(as after `open --new` or `settings`); when it is true, only frames in which
the detector finds something are added.

## What it does not do

There is no graphical interface; `AnnotationCanvas`, `Session` and
`MediaEditor` hold the editing state and can drive one. The package contains
no neural-network runtime: `YOLOv8` and `Project` take a `forward` callable
that receives a `(1, 3, H, W)` float32 blob and returns the raw model output.
The command line does not supply one, so there `detect` and `settings` find
no annotations, and frame filtering keeps no frames.

## Using it from Python

```python
from oceaneye.project import Project
from oceaneye.exporting import ExportFormat, export_project

def forward(blob):
    ...  # run your network on the blob, return its (1, rows, dims) output

project = Project("my_project", forward=forward)
project.load_model("model.onnx")
project.run_detection(project.media[0])
export_project(project, ExportFormat.COCO, "dataset.json")
```

`Project.get_annotation` and `Project.set_annotation` read and write the
annotations of one image; `Project.run_specific_detection` keeps only the
given class names. `load_model` reads the class names stored in the model
file's "names" metadata into `YOLOv8.class_map`.

Modules:

- `oceaneye.settings` – the YAML settings format (`parse_settings`,
  `dump_settings`, `SettingsFile` with `read_array`/`write_array`), the
  `Setting` defaults and `user_settings_path`;
- `oceaneye.yolov8` – `Box`, `Annotation`, `YOLOv8` (`decode_outputs`,
  `run_inference`), `nms_boxes`, `format_to_square`, `draw_detections`,
  `parse_class_names`, `load_classes`;
- `oceaneye.project` – `Project`;
- `oceaneye.exporting` – `ExportFormat`, `collect_annotations`,
  `export_csv`, `export_json`, `export_coco`, `export_yaml`, `export_project`;
- `oceaneye.canvas` – `AnnotationCanvas` and its resize `Handle`s;
- `oceaneye.slicer` – `VideoSlicer` and `Progress`;
- `oceaneye.session` – `Session`, navigation and detection on the current image;
- `oceaneye.mediaeditor` – `MediaEditor` and `delete_image_and_annotation`;
- `oceaneye.recents` – `RecentProjects`;
- `oceaneye.flowlayout` – `FlowLayout`, `LayoutItem`, `Rect`;
- `oceaneye.logger` – `init`, `cleanup` and `LogFormatter`;
- `oceaneye.cli` – `main` and `apply_project_settings`.

## Export formats

- **CSV** – header row, then one row per annotation: frame name, class, confidence, x, y, width, height.
- **JSON** – a list of objects with `frame_name`, `class`, `confidence`, `x`, `y`, `width`, `height`.
- **COCO** – `images`, `annotations`, `categories`, `info` and `licenses`; image sizes are read from the files (0 when unreadable).
- **YAML** – the same records as JSON, as a YAML sequence.