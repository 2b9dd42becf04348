"""The list of recently opened projects kept in the user settings."""

from __future__ import annotations

from pathlib import Path

from oceaneye.settings import SettingsFile

_ARRAY = "projects"


class RecentProjects:
    """Recently opened project paths, filtered by a search text."""

    def __init__(self, settings: SettingsFile) -> None:
        self.settings = settings
        self.projects: list[str] = []
        self.filter_text = ""
        self.load()

    def load(self, filter_text: str = "") -> list[str]:
        """Read the stored paths newest first, keeping those matching the filter."""
        self.filter_text = filter_text
        needle = filter_text.strip().lower()
        paths = []
        for entry in reversed(self.settings.read_array(_ARRAY)):
            value = entry.get("path")
            path = "" if value is None else str(value)
            if not needle or needle in path.lower():
                paths.append(path)
        self.projects = paths
        return list(self.projects)

    def save(self) -> None:
        """Store the current list in its present order."""
        self.settings.write_array(_ARRAY, [{"path": path} for path in self.projects])

    def remember(self, path: str | Path) -> None:
        """Move a project path to the end of the list and store it."""
        path = str(path)
        if path in self.projects:
            self.projects.remove(path)
        self.projects.append(path)
        self.save()

    def forget(self, index: int) -> None:
        """Drop the path at index, store the list and read it back."""
        del self.projects[index]
        self.save()
        self.load(self.filter_text)