"""A flow layout that places items left to right, wrapping onto new lines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

DEFAULT_SPACING = 6


@dataclass(frozen=True)
class Rect:
    """Integer rectangle; right and bottom are the last covered pixel."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width - 1

    @property
    def bottom(self) -> int:
        return self.y + self.height - 1

    def adjusted(self, dx1: int, dy1: int, dx2: int, dy2: int) -> Rect:
        return Rect(
            self.x + dx1,
            self.y + dy1,
            self.width + dx2 - dx1,
            self.height + dy2 - dy1,
        )


@dataclass
class LayoutItem:
    """An item with a preferred size and the geometry the layout gave it."""

    width: int
    height: int
    min_width: int | None = None
    min_height: int | None = None
    payload: Any = None
    geometry: Rect | None = None

    @property
    def size_hint(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def minimum_size(self) -> tuple[int, int]:
        width = self.width if self.min_width is None else self.min_width
        height = self.height if self.min_height is None else self.min_height
        return (width, height)


class FlowLayout:
    """Lays items out in rows, starting a new row when one fills up."""

    def __init__(self, margin: int = -1, h_spacing: int = -1, v_spacing: int = -1) -> None:
        m = max(margin, 0)
        self.margins = (m, m, m, m)
        self._h_space = h_spacing
        self._v_space = v_spacing
        self._items: list[LayoutItem] = []
        self.geometry: Rect | None = None

    @property
    def horizontal_spacing(self) -> int:
        return self._h_space if self._h_space >= 0 else DEFAULT_SPACING

    @property
    def vertical_spacing(self) -> int:
        return self._v_space if self._v_space >= 0 else DEFAULT_SPACING

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LayoutItem]:
        return iter(self._items)

    def add_item(self, item: LayoutItem) -> None:
        self._items.append(item)

    def item_at(self, index: int) -> LayoutItem | None:
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def take_at(self, index: int) -> LayoutItem | None:
        """Remove and return the item at index, or None when out of range."""
        if 0 <= index < len(self._items):
            return self._items.pop(index)
        return None

    def height_for_width(self, width: int) -> int:
        return self._do_layout(Rect(0, 0, width, 0), test_only=True)

    def set_geometry(self, rect: Rect) -> None:
        self.geometry = rect
        self._do_layout(rect, test_only=False)

    def minimum_size(self) -> tuple[int, int]:
        width = max((item.minimum_size[0] for item in self._items), default=0)
        height = max((item.minimum_size[1] for item in self._items), default=0)
        left, top, right, bottom = self.margins
        return (width + left + right, height + top + bottom)

    def size_hint(self) -> tuple[int, int]:
        return self.minimum_size()

    def _do_layout(self, rect: Rect, test_only: bool) -> int:
        left, top, right, bottom = self.margins
        effective = rect.adjusted(left, top, -right, -bottom)
        x = effective.x
        y = effective.y
        line_height = 0
        space_x = self.horizontal_spacing
        space_y = self.vertical_spacing
        for item in self._items:
            width, height = item.size_hint
            next_x = x + width + space_x
            if next_x - space_x > effective.right and line_height > 0:
                x = effective.x
                y += line_height + space_y
                next_x = x + width + space_x
                line_height = 0
            if not test_only:
                item.geometry = Rect(x, y, width, height)
            x = next_x
            line_height = max(line_height, height)
        return y + line_height - rect.y + bottom