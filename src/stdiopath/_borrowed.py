# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Non-owning raw file adapter used by file-backed views."""

from __future__ import annotations

import io
from collections.abc import Buffer
from typing import override

__all__ = ["BorrowedFile"]


class BorrowedFile(io.RawIOBase):
    """Raw stream that forwards to a file owned by a handle.

    Closing the adapter disconnects it; the underlying file stays open. A
    buffered reader or writer stacked on top can therefore be closed or
    garbage collected without touching the handle's file, and any bytes it
    still buffers are dropped instead of reaching the file later.
    """

    def __init__(self, file: io.RawIOBase) -> None:
        super().__init__()
        self._file = file
        self._released = False

    @property
    @override
    def closed(self) -> bool:
        return self._released or self._file.closed

    @override
    def close(self) -> None:
        self._released = True

    def _target(self) -> io.RawIOBase:
        if self.closed:
            raise ValueError("I/O operation on released view")
        return self._file

    @override
    def readable(self) -> bool:
        return self._target().readable()

    @override
    def writable(self) -> bool:
        return self._target().writable()

    @override
    def seekable(self) -> bool:
        return self._target().seekable()

    @override
    def readinto(self, buffer: Buffer, /) -> int | None:
        return self._target().readinto(buffer)

    @override
    def write(self, b: Buffer, /) -> int | None:
        return self._target().write(b)

    @override
    def seek(self, offset: int, whence: int = io.SEEK_SET, /) -> int:
        return self._target().seek(offset, whence)

    @override
    def tell(self) -> int:
        return self._target().tell()

    @override
    def fileno(self) -> int:
        return self._target().fileno()

    @override
    def isatty(self) -> bool:
        return self._target().isatty()
