"""Optional progress bar for long-running tag operations."""

from typing import Optional

import tqdm


class Progress:
    """tqdm progress bar that does nothing unless enabled"""

    def __init__(self, enabled: bool, total: int, desc: Optional[str] = None):
        self.enabled = enabled
        self.total = total
        self.desc = desc
        self._bar = None

    def start(self) -> None:
        if self.enabled and self._bar is None:
            self._bar = tqdm.tqdm(total=self.total, desc=self.desc)

    def increment(self) -> None:
        if self._bar is not None:
            self._bar.update(1)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def __enter__(self) -> "Progress":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finish()
