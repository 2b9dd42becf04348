"""Command-line entry point: recent projects, media, detection, export and settings."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Sequence

from oceaneye import logger
from oceaneye.exporting import ExportFormat, export_project
from oceaneye.project import Project
from oceaneye.recents import RecentProjects
from oceaneye.session import ALL_CLASSES, Session
from oceaneye.settings import DEFAULT_PROJECT_SETTINGS, Setting, SettingsFile, user_settings_path

log = logging.getLogger(__name__)

MODEL_PATH_KEY = "Model Path"
CONFIDENCE_KEY = "Model Confidence"
LAST_OPENED_KEY = "lastOpenedProject"

EDITABLE_SETTINGS: tuple[Setting, ...] = tuple(
    setting for setting in DEFAULT_PROJECT_SETTINGS if setting.key != MODEL_PATH_KEY
)

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}


def _to_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise ValueError(f"{key} expects true or false, got {value!r}")


def _coerce(setting: Setting, value: Any) -> Any:
    default = setting.default
    if isinstance(default, bool):
        return _to_bool(value, setting.key)
    if isinstance(default, int):
        try:
            number = int(value.strip()) if isinstance(value, str) else int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{setting.key} expects a whole number, got {value!r}") from None
        return min(max(number, setting.min_value), setting.max_value)
    if isinstance(default, float):
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{setting.key} expects a number, got {value!r}") from None
        return min(max(number, float(setting.min_value)), float(setting.max_value))
    return "" if value is None else str(value)


def apply_project_settings(project: Any, values: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Store new project settings, then rerun detection on every media file."""
    values = dict(values or {})
    editable = {setting.key: setting for setting in EDITABLE_SETTINGS}
    unknown = sorted(set(values) - set(editable))
    if unknown:
        raise ValueError(f"settings that cannot be changed here: {', '.join(unknown)}")

    settings = project.settings
    applied = {
        setting.key: _coerce(
            setting, values.get(setting.key, settings.value(setting.key, setting.default))
        )
        for setting in EDITABLE_SETTINGS
    }

    for setting in DEFAULT_PROJECT_SETTINGS:
        if not settings.contains(setting.key):
            settings.set_value(setting.key, setting.default)

    for key, new_value in applied.items():
        if key == CONFIDENCE_KEY:
            project.set_model_conf(new_value)
        if settings.value(key) != new_value:
            settings.set_value(key, new_value)

    for image in list(project.media):
        project.run_detection(image)
    return applied


def _parse_assignments(assignments: Sequence[str]) -> dict[str, str]:
    values = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        if not sep:
            raise ValueError(f"expected KEY=VALUE, got {assignment!r}")
        values[key.strip()] = value
    return values


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oceaneye", description="Annotate underwater imagery and detect marine life."
    )
    parser.add_argument("--settings-file", type=Path, default=None, help="user settings file")
    parser.add_argument("--log-file", default="log.txt", help="file to write the log to")
    commands = parser.add_subparsers(dest="command")

    recent = commands.add_parser("recent", help="list recently opened projects")
    recent.add_argument("--filter", default="", help="show paths containing this text")

    opening = commands.add_parser("open", help="open a project folder")
    opening.add_argument("project")
    opening.add_argument("--new", action="store_true", help="write the default settings")

    forget = commands.add_parser("forget", help="drop a project from the recent list")
    forget.add_argument("index", type=int)

    add = commands.add_parser("add", help="add images or videos to a project")
    add.add_argument("project")
    add.add_argument("files", nargs="+")

    detect = commands.add_parser("detect", help="run detection on every media file")
    detect.add_argument("project")
    detect.add_argument("--classes", nargs="+", default=[ALL_CLASSES])

    export = commands.add_parser("export", help="export all annotations")
    export.add_argument("project")
    export.add_argument("format", choices=[fmt.value for fmt in ExportFormat])
    export.add_argument("--output", default=None)

    settings = commands.add_parser("settings", help="show or change project settings")
    settings.add_argument("project")
    settings.add_argument("--set", dest="assignments", action="append", default=[],
                          metavar="KEY=VALUE")
    settings.add_argument("--model", default=None, help="model file to load")

    commands.add_parser("settings-path", help="show where the user settings live")
    return parser


def _open_project(path: str) -> Project:
    return Project(os.path.abspath(path))


def _run(args: argparse.Namespace, user_settings: SettingsFile) -> int:
    command = args.command or "recent"

    if command == "recent":
        for path in RecentProjects(user_settings).load(getattr(args, "filter", "")):
            print(path)
    elif command == "open":
        project = _open_project(args.project)
        RecentProjects(user_settings).remember(project.project_path)
        if args.new:
            apply_project_settings(project, {})
        print(f"Opened {project.project_path}: {len(project.media)} media")
        label = Session(project).model_label()
        if label:
            print(f"Model: {label[0]} ({label[1]})")
    elif command == "forget":
        recents = RecentProjects(user_settings)
        recents.forget(args.index)
    elif command == "add":
        project = _open_project(args.project)
        Session(project).add_media(args.files)
        print(f"{len(project.media)} media in project")
    elif command == "detect":
        project = _open_project(args.project)
        session = Session(project)
        session.select_classes(args.classes)
        for index, path in enumerate(list(project.media)):
            session.current_img = index
            found = session.run_detection()
            print(f"{path}: {len(found)} annotations")
    elif command == "export":
        project = _open_project(args.project)
        total = export_project(project, ExportFormat(args.format), args.output)
        print(f"Exporting {total} annotations")
    elif command == "settings":
        project = _open_project(args.project)
        if args.model:
            project.load_model(args.model)
        applied = apply_project_settings(project, _parse_assignments(args.assignments))
        suffixes = {setting.key: setting.suffix for setting in EDITABLE_SETTINGS}
        for key, value in applied.items():
            print(f"{key}: {value}{suffixes[key]}")
    elif command == "settings-path":
        print(user_settings.path)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the oceaneye command line; returns the exit status."""
    args = _build_parser().parse_args(argv)
    logger.init(args.log_file)
    try:
        settings_path = args.settings_file or user_settings_path()
        user_settings = SettingsFile(settings_path)
        user_settings.set_value(
            LAST_OPENED_KEY, datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        )
        return _run(args, user_settings)
    except (ValueError, OSError, IndexError) as error:
        log.error("%s", error)
        print(f"oceaneye: {error}", file=sys.stderr)
        return 1
    finally:
        logger.cleanup()


if __name__ == "__main__":
    sys.exit(main())