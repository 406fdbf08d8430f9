"""Sector allocator for region files.

A region file is a sequence of 4096-byte sectors. Sectors [0, reserved) hold the
header and are never handed out.

Policy: first fit over free sectors, otherwise append at the end of the file
(reusing a free run that already touches the end).
"""

from __future__ import annotations

SECTOR_BYTES = 4096


def sectors_for(nbytes: int) -> int:
    """Number of whole sectors needed to hold nbytes."""
    if nbytes < 0:
        raise ValueError("nbytes negativo")
    return (int(nbytes) + SECTOR_BYTES - 1) // SECTOR_BYTES


class SectorAllocator:
    def __init__(self, total_sectors: int = 0, *, reserved: int = 2):
        if reserved < 0:
            raise ValueError("reserved negativo")
        self.reserved = int(reserved)
        n = max(int(total_sectors), self.reserved)
        self._used = bytearray(n)
        for i in range(self.reserved):
            self._used[i] = 1

    @property
    def total_sectors(self) -> int:
        return len(self._used)

    @property
    def end(self) -> int:
        """First sector after the last used one."""
        for i in range(len(self._used) - 1, -1, -1):
            if self._used[i]:
                return i + 1
        return 0

    def is_free(self, offset: int, count: int) -> bool:
        if offset < self.reserved:
            return False
        for i in range(offset, offset + count):
            if i < len(self._used) and self._used[i]:
                return False
        return True

    def mark_used(self, offset: int, count: int) -> None:
        if offset < 0 or count < 0:
            raise ValueError(f"mark_used: range non valido ({offset}, {count})")
        stop = offset + count
        if stop > len(self._used):
            self._used.extend(bytes(stop - len(self._used)))
        for i in range(offset, stop):
            self._used[i] = 1

    def free(self, offset: int, count: int) -> None:
        start = max(int(offset), self.reserved)
        stop = min(int(offset) + int(count), len(self._used))
        for i in range(start, stop):
            self._used[i] = 0

    def allocate(self, count: int) -> int:
        if count <= 0:
            raise ValueError(f"allocate: count deve essere > 0, got {count}")
        start = self.reserved
        run = 0
        for i in range(self.reserved, len(self._used)):
            if self._used[i]:
                run = 0
                continue
            if run == 0:
                start = i
            run += 1
            if run == count:
                self.mark_used(start, count)
                return start
        # no hole large enough: append, extending a trailing free run if there is one
        start = len(self._used) - run if run else len(self._used)
        self.mark_used(start, count)
        return start
