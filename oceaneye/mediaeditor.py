"""Browsing, selecting and deleting the media files of a project."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from PIL import Image

log = logging.getLogger(__name__)

THUMBNAIL_SIZE = 150
ITEMS_PER_LOAD = 20
SCROLL_MARGIN = 100


def _delete(path: Path, kind: str) -> bool:
    if not path.exists():
        log.debug("%s file does not exist: %s", kind, path)
        return False
    try:
        path.unlink()
    except OSError:
        log.debug("Failed to delete %s file: %s", kind.lower(), path)
        return False
    log.debug("Deleted %s file: %s", kind.lower(), path)
    return True


def delete_image_and_annotation(
    image_path: str | Path, annotation_path: str | Path
) -> tuple[bool, bool]:
    """Delete an image and its annotation file; report which were removed."""
    return (
        _delete(Path(image_path), "Image"),
        _delete(Path(annotation_path), "Annotation"),
    )


def _thumbnail_size(path: str) -> tuple[int, int] | None:
    """Size of the image scaled to fit the thumbnail square, or None if unreadable."""
    try:
        with Image.open(path) as picture:
            picture.load()
            width, height = picture.size
    except (OSError, ValueError, Image.DecompressionBombError):
        return None
    if width <= 0 or height <= 0:
        return None
    ratio = min(THUMBNAIL_SIZE / width, THUMBNAIL_SIZE / height)
    return (max(1, round(width * ratio)), max(1, round(height * ratio)))


class MediaEditor:
    """Pages through a project's media as thumbnails and removes chosen files."""

    def __init__(self, project: Any) -> None:
        self.project = project
        self.items_per_load = ITEMS_PER_LOAD
        self.loaded_items = 0
        self.thumbnails: dict[int, tuple[int, int]] = {}
        self.selected: set[int] = set()
        self.preview_path: str | None = None
        self.on_media_changed: list[Callable[[], None]] = []
        if project.media:
            self.load_more()

    def _emit_changed(self) -> None:
        for callback in list(self.on_media_changed):
            callback()

    def load_more(self) -> list[int]:
        """Load the next page of thumbnails; unreadable images are skipped."""
        media = self.project.media
        start = self.loaded_items
        end = min(start + self.items_per_load, len(media))
        added = []
        for index, path in enumerate(media[start:end], start=start):
            size = _thumbnail_size(path)
            if size is None:
                log.warning("Failed to load image from: %s", path)
                continue
            self.thumbnails[index] = size
            added.append(index)
        self.loaded_items = end
        return added

    def on_scroll(self, position: int, viewport_height: int, maximum: int) -> list[int]:
        """Load more thumbnails when the view is scrolled close to the bottom."""
        if position + viewport_height >= maximum - SCROLL_MARGIN:
            if self.loaded_items < len(self.project.media):
                return self.load_more()
        return []

    def refresh(self) -> list[int]:
        """Drop all thumbnails and the selection, then load the first page."""
        self.thumbnails.clear()
        self.selected.clear()
        self.loaded_items = 0
        return self.load_more()

    def select(self, index: int) -> None:
        """Mark a shown thumbnail as selected."""
        if index not in self.thumbnails:
            raise IndexError(f"no thumbnail shown for media index {index}")
        self.selected.add(index)

    def clear_selection(self) -> None:
        self.selected.clear()

    def remove_selected(self) -> list[str]:
        """Delete the selected images and annotations and drop them from the project."""
        media = self.project.media
        doomed = []
        for index in sorted(self.selected):
            if 0 <= index < len(media):
                image = media[index]
                delete_image_and_annotation(image, image + ".yaml")
                doomed.append(index)
            else:
                log.warning("Index out of bounds: %d", index)
        removed = [media[index] for index in doomed]
        for index in sorted(doomed, reverse=True):
            del media[index]
        self.project.save_media()
        self.selected.clear()
        self.refresh()
        self._emit_changed()
        return removed

    def remove_all(self) -> list[str]:
        """Delete every media file with its annotations and empty the project."""
        removed = list(self.project.media)
        for image in removed:
            delete_image_and_annotation(image, image + ".yaml")
        self.project.media.clear()
        self.project.save_media()
        self.selected.clear()
        self.refresh()
        self._emit_changed()
        return removed

    def preview(self, index: int) -> str | None:
        """Show a media file large; None when the index or image is invalid."""
        media = self.project.media
        if not 0 <= index < len(media):
            log.warning("Invalid media index: %d", index)
            return None
        path = media[index]
        if _thumbnail_size(path) is None:
            return None
        self.preview_path = path
        return path