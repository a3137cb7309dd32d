"""Fixed-capacity breadcrumb log."""

from collections import deque

from .models import Breadcrumb

DEFAULT_CAPACITY = 100


class BreadcrumbRing:
    """Ordered log of recent actions; the oldest entry is evicted first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            capacity = DEFAULT_CAPACITY
        self.capacity = capacity
        self._items: deque[Breadcrumb] = deque(maxlen=capacity)

    def add(self, breadcrumb: Breadcrumb) -> None:
        self._items.append(breadcrumb)

    def get_all(self) -> tuple[Breadcrumb, ...]:
        """Snapshot of the ring, oldest first."""
        return tuple(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
