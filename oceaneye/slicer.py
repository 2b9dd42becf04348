"""Cutting videos into still frames at a fixed interval, with progress reporting."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

import numpy as np
from PIL import Image

log = logging.getLogger(__name__)

FILTER_KEY = "Automatically Filter Dead Video"
INTERVAL_KEY = "Slice Interval"


class VideoSource(Protocol):
    """An opened video that can return a frame by index."""

    fps: float
    frame_count: int

    def read(self, index: int) -> np.ndarray | None: ...

    def close(self) -> None: ...


class _ImageioVideo:
    """A video read through imageio."""

    def __init__(self, path: str) -> None:
        import imageio.v2 as iio

        self._reader = iio.get_reader(path)
        meta = self._reader.get_meta_data()
        self.fps = float(meta.get("fps", 0) or 0)
        count = meta.get("nframes", 0)
        counter = getattr(self._reader, "count_frames", None)
        if counter is not None:
            try:
                count = counter()
            except (OSError, RuntimeError, ValueError):
                pass
        try:
            self.frame_count = int(count)
        except (TypeError, ValueError, OverflowError):
            self.frame_count = 0

    def read(self, index: int) -> np.ndarray | None:
        try:
            return np.asarray(self._reader.get_data(index))
        except (IndexError, OSError, RuntimeError, ValueError):
            return None

    def close(self) -> None:
        self._reader.close()


Reader = Callable[[str], VideoSource]


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _is_true(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.strip().lower() == "true")


def _write_frame(frame: np.ndarray, path: Path) -> bool:
    try:
        Image.fromarray(np.ascontiguousarray(frame)).convert("RGB").save(path, "JPEG")
    except (OSError, ValueError, TypeError):
        return False
    return True


class Progress:
    """Progress of a long task; it cannot be closed by the user, only hidden."""

    def __init__(self, label: str) -> None:
        self.label = label
        self.minimum = 0
        self.maximum = 0
        self.current = 0
        self.visible = False
        self.closing = False

    def show(self) -> None:
        self.visible = True
        self.closing = False

    def set_range(self, minimum: int, maximum: int) -> None:
        self.minimum = minimum
        self.maximum = maximum

    def update(self, value: int) -> None:
        self.current = value

    def hide(self) -> None:
        self.closing = True
        self.visible = False


class VideoSlicer:
    """Saves every n-th frame of videos into the project and adds them as media."""

    def __init__(
        self,
        project: Any,
        reader: Reader | None = None,
        progress: Progress | None = None,
    ) -> None:
        self.project = project
        self._reader: Reader = reader if reader is not None else _ImageioVideo
        self.progress = progress if progress is not None else Progress("Slicing Video(s)...")
        self.on_done_slicing: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    def _advance(self, amount: int) -> None:
        with self._lock:
            self.progress.update(self.progress.current + amount)

    def _open(self, video: str) -> VideoSource | None:
        try:
            return self._reader(video)
        except (OSError, RuntimeError, ValueError):
            log.warning("Error opening video file %s", video)
            return None

    def slice_video(self, video: str | Path, output_dir: str | Path) -> list[str]:
        """Save sampled frames of one video; return the frames to add as media."""
        video = str(video)
        log.info("Commence Slicing %s", video)
        source = self._open(video)
        if source is None:
            return []
        settings = self.project.settings
        saved: list[str] = []
        stem = Path(video).stem
        out = Path(output_dir)
        try:
            interval = int(source.fps * _to_int(settings.value(INTERVAL_KEY)))
            step = max(interval, 1)
            current = 0
            while (frame := source.read(current)) is not None:
                self._advance(interval)
                frame_path = out / f"{stem}_{current}.jpeg"
                name = str(frame_path)
                if not frame_path.exists():
                    if not _write_frame(frame, frame_path):
                        log.warning("Failed to save frame: %s", name)
                    else:
                        found = self.project.run_detection(name)
                        if settings.contains(FILTER_KEY):
                            if _is_true(settings.value(FILTER_KEY)):
                                if found:
                                    saved.append(name)
                                    log.info("Filtered Frame saved successfully: %d %s", current, name)
                            else:
                                saved.append(name)
                                log.info("Unfiltered Frame saved successfully: %d %s", current, name)
                elif settings.contains(FILTER_KEY):
                    if _is_true(settings.value(FILTER_KEY)):
                        if self.project.run_detection(name):
                            saved.append(name)
                            log.info("Filtered Frame saved successfully: %d %s", current, name)
                    else:
                        saved.append(name)
                        log.info("Unfiltered Frame saved successfully: %d %s", current, name)
                current += step
        finally:
            source.close()
        log.info("Done slicing video %s", video)
        return saved

    def _frame_count(self, video: str) -> int:
        source = self._open(video)
        if source is None:
            return 0
        try:
            return int(source.frame_count)
        finally:
            source.close()

    def slice(self, videos: Iterable[str | Path]) -> list[list[str]]:
        """Slice videos in parallel, add their frames to the project and save it."""
        videos = [str(video) for video in videos]
        if not videos:
            return []
        self.progress.show()
        total = sum(self._frame_count(video) for video in videos)
        self.progress.set_range(0, total)
        self.progress.update(0)

        output_dir = self.project.project_path
        with ThreadPoolExecutor() as pool:
            results = list(pool.map(lambda video: self.slice_video(video, output_dir), videos))

        log.info("all threads done, results: %d", len(results))
        for frames in results:
            self.project.media.extend(frames)
        self.project.save_media()
        for callback in list(self.on_done_slicing):
            callback()
        self.progress.hide()
        return results