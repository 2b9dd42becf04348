from pathlib import Path

import pytest

from oceaneye.settings import (
    DEFAULT_PROJECT_SETTINGS,
    Setting,
    SettingsError,
    SettingsFile,
    dump_settings,
    parse_settings,
    user_settings_path,
)


def test_parse_flattens_nested_groups():
    text = "outer:\n  inner:\n    leaf: 3\n  other: x\ntop: true\n"
    assert parse_settings(text) == {
        "outer/inner/leaf": 3,
        "outer/other": "x",
        "top": True,
    }


def test_parse_keeps_lists_and_null():
    text = "items:\n  - a\n  - b\nnothing:\n"
    assert parse_settings(text) == {"items": ["a", "b"], "nothing": None}


def test_parse_accepts_variant_tags():
    text = "list: !QVariantList\n  - a\n  - b\nmap: !QVariantMap\n  k: v\n"
    assert parse_settings(text) == {"list": ["a", "b"], "map/k": "v"}


def test_parse_keeps_timestamps_as_text():
    text = "stamp: 2024-01-02 03:04:05\n"
    assert parse_settings(text) == {"stamp": "2024-01-02 03:04:05"}


def test_parse_non_mapping_document_is_empty():
    assert parse_settings("- a\n- b\n") == {}
    assert parse_settings("") == {}


def test_parse_invalid_yaml_raises():
    with pytest.raises(SettingsError):
        parse_settings("a: [1, 2")


def test_dump_round_trip():
    mapping = {
        "Model Confidence": 70,
        "Model Path": "",
        "media/1/path": "one.png",
        "media/2/path": "two.png",
        "media/size": 2,
        "flag": False,
        "values": [1, 2, 3],
    }
    assert parse_settings(dump_settings(mapping)) == mapping


def test_dump_rejects_value_and_group_with_same_name():
    with pytest.raises(SettingsError):
        dump_settings({"a": 1, "a/b": 2})


def test_dump_converts_unknown_values_to_text():
    dumped = dump_settings({"where": Path("some") / "file.txt"})
    assert parse_settings(dumped) == {"where": str(Path("some") / "file.txt")}


def test_settings_file_persists_values(tmp_path):
    path = tmp_path / "nested" / "settings.yaml"
    settings = SettingsFile(path)
    settings.set_value("Slice Interval", 5)
    settings.set_value("group/name", "value")
    reloaded = SettingsFile(path)
    assert reloaded.value("Slice Interval") == 5
    assert reloaded.value("group/name") == "value"
    assert reloaded.contains("group/name")
    assert "missing" not in reloaded
    assert reloaded.value("missing", "fallback") == "fallback"


def test_settings_file_remove_group(tmp_path):
    settings = SettingsFile(tmp_path / "s.yaml")
    settings.set_value("group/a", 1)
    settings.set_value("group/b", 2)
    settings.set_value("groupie", 3)
    settings.remove("group")
    assert settings.keys() == ["groupie"]
    settings.remove("")
    assert SettingsFile(tmp_path / "s.yaml").keys() == []


def test_array_round_trip(tmp_path):
    path = tmp_path / "s.yaml"
    settings = SettingsFile(path)
    settings.write_array("projects", [{"path": "test_path1"}, {"path": "test_path2"}])
    assert SettingsFile(path).read_array("projects") == [
        {"path": "test_path1"},
        {"path": "test_path2"},
    ]


def test_write_array_replaces_previous_entries(tmp_path):
    settings = SettingsFile(tmp_path / "s.yaml")
    settings.write_array("media", [{"path": "a"}, {"path": "b"}, {"path": "c"}])
    settings.write_array("media", [{"path": "z"}])
    assert settings.read_array("media") == [{"path": "z"}]
    assert not settings.contains("media/2/path")


def test_read_missing_array_is_empty(tmp_path):
    assert SettingsFile(tmp_path / "s.yaml").read_array("projects") == []


def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "s.yaml"
    path.write_text("a: [1, 2", encoding="utf-8")
    with pytest.raises(SettingsError):
        SettingsFile(path)


def test_default_project_settings():
    by_key = {setting.key: setting for setting in DEFAULT_PROJECT_SETTINGS}
    assert by_key["Slice Interval"].default == 5
    assert by_key["Slice Interval"].suffix == " seconds"
    assert by_key["Model Confidence"].default == 70
    assert by_key["Automatically Filter Dead Video"].default is False
    assert by_key["Model Path"] == Setting("Model Path", "")


def test_user_settings_path_under_home():
    path = user_settings_path()
    assert path.relative_to(Path.home()).parts == (".oceaneye", "oceaneye", "oceaneye.yaml")