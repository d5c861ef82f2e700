from typing import Generic, Optional, Sequence, TypeVar

T = TypeVar("T")

SPINNER = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


def spinner_frame(now_ms: int, cycle_ms: int = 1500) -> str:
    return SPINNER[(now_ms % cycle_ms) // (cycle_ms // len(SPINNER))]


class SelectableList(Generic[T]):
    """Ordered items with a wraparound cursor.

    The cursor lives in table-row coordinates: the first ``header_size`` rows
    (title, column headers) are not selectable, so ``selected`` ranges over
    ``[header_size, header_size + len(items))``.
    """

    def __init__(self, items: Sequence[T], header_size: int = 2) -> None:
        self.items: list[T] = list(items)
        self.header_size = header_size
        self.selected: Optional[int] = None

    def __len__(self) -> int:
        return len(self.items)

    def _last_index(self) -> int:
        return self.header_size + len(self.items) - 1

    def next(self) -> None:
        if not self.items:
            self.selected = None
            return
        if self.selected is None or self.selected >= self._last_index():
            self.selected = self.header_size
        else:
            self.selected += 1

    def previous(self) -> None:
        if not self.items:
            self.selected = None
            return
        if self.selected is None:
            self.selected = self.header_size
        elif self.selected <= self.header_size:
            self.selected = self._last_index()
        else:
            self.selected -= 1

    def select(self, data_index: Optional[int]) -> None:
        if data_index is None or not self.items:
            self.selected = None
            return
        if not 0 <= data_index < len(self.items):
            raise IndexError(f"data index {data_index} out of range for {len(self.items)} items")
        self.selected = data_index + self.header_size

    def selected_item_index(self) -> Optional[int]:
        if self.selected is None:
            return None
        return self.selected - self.header_size

    def selected_item(self) -> Optional[T]:
        index = self.selected_item_index()
        if index is None or index >= len(self.items):
            return None
        return self.items[index]
