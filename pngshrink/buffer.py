# pngshrink/buffer.py
from __future__ import annotations

"""
Growable byte buffer used to accumulate encoder output in memory.

Capacity grows geometrically (x1.4) so repeated small appends stay amortised O(1).
The logical size is tracked separately from capacity; only [0, size) is content.
"""

import math
from typing import Optional, Union

from .constants import BUFFER_GROWTH_FACTOR

BytesLike = Union[bytes, bytearray, memoryview]


class ByteBuffer:
    """Owned, growable byte region with a separate logical size."""

    __slots__ = ("_data", "_size")

    def __init__(self, capacity: int = 0) -> None:
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self._data = bytearray(capacity)
        self._size = 0

    # size / capacity

    def __len__(self) -> int:
        return self._size

    @property
    def size(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return len(self._data)

    def empty(self) -> bool:
        return self._size == 0

    def reserve(self, n: int) -> bool:
        """
        Ensure capacity >= n. Returns True iff a reallocation happened.

        New capacity is max(n, ceil(old_capacity * 1.4)). Existing bytes are
        preserved; views taken with view() before the call are invalidated.
        """
        cap = len(self._data)
        if n <= cap:
            return False
        grown = int(math.ceil(cap * BUFFER_GROWTH_FACTOR))
        new_data = bytearray(max(n, grown))
        new_data[: self._size] = self._data[: self._size]
        self._data = new_data
        return True

    def append(self, data: BytesLike) -> None:
        """Grow if needed, then copy data in after the current content."""
        mv = memoryview(data).cast("B")
        n = mv.nbytes
        if n == 0:
            return
        end = self._size + n
        self.reserve(end)
        self._data[self._size : end] = mv
        self._size = end

    # file-like alias so the buffer can stand in for a binary stream
    def write(self, data: BytesLike) -> int:
        self.append(data)
        return memoryview(data).nbytes

    def clear(self) -> None:
        """Drop content but keep capacity."""
        self._size = 0

    # access

    def __getitem__(self, index):
        if isinstance(index, slice):
            return bytes(self._data[: self._size][index])
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("ByteBuffer index out of range")
        return self._data[index]

    def view(self) -> memoryview:
        """Read-only view of [0, size); invalid after the next growth."""
        return memoryview(self._data)[: self._size].toreadonly()

    def getvalue(self) -> bytes:
        return bytes(self._data[: self._size])

    def __bytes__(self) -> bytes:
        return self.getvalue()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ByteBuffer):
            return self.view() == other.view()
        if isinstance(other, (bytes, bytearray, memoryview)):
            return self.view() == memoryview(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ByteBuffer(size={self._size}, capacity={self.capacity})"

    # ownership

    def copy(self) -> "ByteBuffer":
        """Deep clone with the same capacity and content."""
        out = ByteBuffer()
        out._data = bytearray(self._data)
        out._size = self._size
        return out

    __copy__ = copy

    def __deepcopy__(self, memo: Optional[dict] = None) -> "ByteBuffer":
        return self.copy()

    def take(self) -> "ByteBuffer":
        """Move the storage into a new buffer and leave this one empty."""
        out = ByteBuffer()
        out._data, out._size = self._data, self._size
        self._data, self._size = bytearray(), 0
        return out


__all__ = ["ByteBuffer"]
