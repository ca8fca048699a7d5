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

"""Base exception hierarchy for :mod:`stdiopath`."""

from __future__ import annotations

import errno
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Final, override

__all__ = [
    "IOErrorKind",
    "StdioPathError",
    "StreamIOError",
    "ViewActiveError",
    "translate_os_errors",
]


class StdioPathError(Exception):
    """Base class for all stdiopath exceptions.

    Callers can catch every library-specific failure with a single handler
    while standard Python exceptions propagate normally.

    Example:
        Treat any failure to read the input as fatal::

            try:
                text = ReadableHandle.read_to_string(args.input)
            except StdioPathError as e:
                raise SystemExit(str(e)) from e
    """


class IOErrorKind(Enum):
    """Coarse classification of an I/O failure."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    IS_A_DIRECTORY = "is_a_directory"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    INTERRUPTED = "interrupted"
    INVALID_DATA = "invalid_data"
    STORAGE_FULL = "storage_full"
    WRITE_ZERO = "write_zero"
    BROKEN_PIPE = "broken_pipe"
    OTHER = "other"


_ERRNO_KINDS: Final[dict[int, IOErrorKind]] = {
    errno.ENOENT: IOErrorKind.NOT_FOUND,
    errno.EACCES: IOErrorKind.PERMISSION_DENIED,
    errno.EPERM: IOErrorKind.PERMISSION_DENIED,
    errno.EISDIR: IOErrorKind.IS_A_DIRECTORY,
    errno.EMFILE: IOErrorKind.RESOURCE_EXHAUSTED,
    errno.ENFILE: IOErrorKind.RESOURCE_EXHAUSTED,
    errno.ENOMEM: IOErrorKind.RESOURCE_EXHAUSTED,
    errno.EINTR: IOErrorKind.INTERRUPTED,
    errno.EILSEQ: IOErrorKind.INVALID_DATA,
    errno.ENOSPC: IOErrorKind.STORAGE_FULL,
    errno.EDQUOT: IOErrorKind.STORAGE_FULL,
    errno.EFBIG: IOErrorKind.STORAGE_FULL,
    errno.EPIPE: IOErrorKind.BROKEN_PIPE,
}


class StreamIOError(StdioPathError, OSError):
    """Raised when opening, reading, writing or decoding a stream fails.

    This is the single failure category of the library. Each instance
    identifies the path that produced it (``"-"`` for a standard stream) and
    the operation that was attempted. The originating ``OSError`` or
    ``UnicodeDecodeError`` is chained as ``__cause__``.

    Example:
        Distinguishing a missing input from other failures::

            try:
                handle = ReadableHandle.from_path(path)
            except StreamIOError as e:
                if e.kind is IOErrorKind.NOT_FOUND:
                    ...

    Note:
        This exception also inherits from ``OSError``, so existing
        ``except OSError`` handlers keep working. ``filename`` is the same
        value as ``path``.
    """

    def __init__(
        self,
        code: int | None,
        strerror: str,
        *,
        path: str,
        operation: str,
        kind: IOErrorKind | None = None,
    ) -> None:
        super().__init__(code, strerror, path)
        self.path = path
        self.operation = operation
        self._kind = kind

    @classmethod
    def from_os_error(
        cls, error: OSError, *, path: str, operation: str
    ) -> StreamIOError:
        """Build an instance carrying the errno and message of ``error``."""

        strerror = error.strerror or str(error) or type(error).__name__
        return cls(error.errno, strerror, path=path, operation=operation)

    @property
    def kind(self) -> IOErrorKind:
        """Classification derived from ``errno`` unless set explicitly."""

        if self._kind is not None:
            return self._kind
        if self.errno is None:
            return IOErrorKind.OTHER
        return _ERRNO_KINDS.get(self.errno, IOErrorKind.OTHER)

    @override
    def __str__(self) -> str:
        prefix = f"[Errno {self.errno}] " if self.errno is not None else ""
        return f"{prefix}{self.operation} failed for {self.path!r}: {self.strerror}"

    @override
    def __reduce__(self) -> tuple[object, ...]:
        return (
            _rebuild_stream_io_error,
            (self.errno, self.strerror, self.path, self.operation, self._kind),
        )


def _rebuild_stream_io_error(
    code: int | None,
    strerror: str,
    path: str,
    operation: str,
    kind: IOErrorKind | None,
) -> StreamIOError:
    return StreamIOError(code, strerror, path=path, operation=operation, kind=kind)


class ViewActiveError(StdioPathError, RuntimeError):
    """Raised when a handle is locked while one of its views is still live.

    A handle hands out at most one view at a time. Release the current view
    (leave its ``with`` block or call ``release()``) before locking again.
    """


@contextmanager
def translate_os_errors(path: str, operation: str) -> Iterator[None]:
    """Re-raise any ``OSError`` from the block as :class:`StreamIOError`.

    Errors that already are :class:`StreamIOError` pass through untouched.
    """

    try:
        yield
    except StreamIOError:
        raise
    except OSError as error:
        raise StreamIOError.from_os_error(
            error, path=path, operation=operation
        ) from error
