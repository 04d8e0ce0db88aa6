"""Timestamp-based entry ids."""

import time
from typing import Callable


class IdGenerator:
    """
    Issues strictly increasing integer ids.

    Ids are millisecond timestamps, bumped past the last issued id when
    two are requested within the same millisecond or the clock steps back.
    """

    def __init__(
        self,
        start_after: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self._last = start_after
        self._clock = clock

    def next_id(self) -> int:
        candidate = int(self._clock() * 1000)
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return candidate

    def observe(self, existing_id: int) -> None:
        """Make sure future ids sort after an id issued elsewhere."""
        if existing_id > self._last:
            self._last = existing_id
