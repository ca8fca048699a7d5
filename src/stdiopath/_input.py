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

"""Readable handle over a file or standard input.

Example::

    from stdiopath import ReadableHandle

    with ReadableHandle.from_path(args.input) as handle, handle.lock() as view:
        for line in view.lines(strip=True):
            process(line)

    # Or in one call
    text = ReadableHandle.read_to_string(args.input)
"""

from __future__ import annotations

import errno
import io
import threading
from collections.abc import Buffer, Iterator
from dataclasses import dataclass, field
from typing import Protocol, Self, assert_never, cast

from ._borrowed import BorrowedFile
from ._sentinel import (
    STDIO_FILENAME,
    PathArg,
    file_display_name,
    is_stdio_path,
    lossy_path_string,
)
from ._stdstreams import StandardStream, standard_stream
from .errors import IOErrorKind, StreamIOError, ViewActiveError, translate_os_errors
from .logging import StructuredLogger, get_logger

__all__ = [
    "FileReadBuffer",
    "FileSource",
    "InputSource",
    "ReadLock",
    "ReadableHandle",
    "ReadableView",
    "StdinLock",
    "StdinSource",
]

logger: StructuredLogger = get_logger(__name__, context={"component": "input"})


class BufferedSource(Protocol):
    """Buffered binary reader interface shared by both view variants."""

    def read(self, size: int = -1, /) -> bytes: ...

    def read1(self, size: int = -1, /) -> bytes: ...

    def readinto(self, buffer: Buffer, /) -> int: ...

    def peek(self, size: int = 0, /) -> bytes: ...

    def readline(self, size: int | None = -1, /) -> bytes: ...


@dataclass(frozen=True, slots=True)
class FileSource:
    """Handle variant owning an unbuffered file opened for reading."""

    path: str
    raw: io.RawIOBase


@dataclass(frozen=True, slots=True)
class StdinSource:
    """Handle variant referring to the process standard input."""

    stream: StandardStream


type InputSource = FileSource | StdinSource


@dataclass(frozen=True, slots=True)
class FileReadBuffer:
    """View variant: a read-ahead buffer over the handle's file."""

    reader: io.BufferedReader


@dataclass(frozen=True, slots=True)
class StdinLock:
    """View variant: the held standard input lock and its buffered stream."""

    stream: StandardStream
    reader: BufferedSource


type ReadLock = FileReadBuffer | StdinLock


@dataclass(slots=True, eq=False)
class ReadableHandle:
    """Owns either an open file or a reference to standard input.

    The variant is fixed at construction. Closing the handle releases the
    file descriptor (and any live view first); closing a standard input
    handle releases nothing because the process owns the stream.
    """

    _source: InputSource
    _view: ReadableView | None = field(default=None, init=False, repr=False)
    _closed: bool = field(default=False, init=False)
    _state_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    @classmethod
    def from_path(cls, path: PathArg) -> ReadableHandle:
        """Open ``path`` for reading, or select standard input for ``"-"``.

        Args:
            path: File path, or ``"-"`` for standard input.

        Returns:
            New handle. The file stays open until the handle is closed.

        Raises:
            StreamIOError: If the file cannot be opened. Never raised for
                standard input.
            TypeError: If ``path`` is not a str, bytes or path-like object.
        """
        if is_stdio_path(path):
            return cls.stdin()
        display = lossy_path_string(path)
        with translate_os_errors(display, "open"):
            raw = open(path, "rb", buffering=0)  # noqa: SIM115
        return cls._opened(FileSource(path=display, raw=raw))

    @classmethod
    def from_file(cls, file: io.RawIOBase, *, path: str | None = None) -> ReadableHandle:
        """Take ownership of an unbuffered binary file opened for reading.

        Args:
            file: Raw file object, e.g. ``open(p, "rb", buffering=0)``.
            path: Name used in errors. Defaults to the file's ``name``.

        Raises:
            ValueError: If ``file`` is closed or not readable.
        """
        if file.closed or not file.readable():
            raise ValueError("from_file requires an open, readable file.")
        display = path if path is not None else file_display_name(file)
        return cls._opened(FileSource(path=display, raw=file))

    @classmethod
    def stdin(cls) -> ReadableHandle:
        """Return a handle on the process standard input."""

        return cls._opened(StdinSource(stream=standard_stream("stdin")))

    @classmethod
    def _opened(cls, source: InputSource) -> ReadableHandle:
        handle = cls(source)
        logger.debug(
            "handle.opened",
            event="handle.opened",
            context={"path": handle.path, "stdio": handle.is_stdio},
        )
        return handle

    @classmethod
    def read_to_string(cls, path: PathArg, *, encoding: str = "utf-8") -> str:
        """Read the whole of ``path`` (or standard input) as text.

        Equivalent to opening, locking and reading to the end, then closing.

        Raises:
            StreamIOError: On open or read failures, and with kind
                ``INVALID_DATA`` when the bytes are not valid ``encoding``.
        """
        with cls.from_path(path) as handle, handle.lock() as view:
            return view.read_to_string(encoding=encoding)

    @classmethod
    def read_bytes(cls, path: PathArg) -> bytes:
        """Read the whole of ``path`` (or standard input) as bytes."""

        with cls.from_path(path) as handle, handle.lock() as view:
            return view.read_to_end()

    @property
    def source(self) -> InputSource:
        """The variant this handle was built with."""
        return self._source

    @property
    def path(self) -> str:
        """Path of the file, or ``"-"`` for standard input."""
        match self._source:
            case FileSource(path=path):
                return path
            case StdinSource():
                return STDIO_FILENAME
            case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                assert_never(unreachable)

    @property
    def is_stdio(self) -> bool:
        """True if this handle wraps standard input."""
        return isinstance(self._source, StdinSource)

    @property
    def closed(self) -> bool:
        """True if the handle has been closed."""
        return self._closed

    def lock(self) -> ReadableView:
        """Return the buffered view of this handle.

        For a file, wraps the file in a fresh read-ahead buffer. For standard
        input, blocks until the process-wide standard input lock is free. The
        handle itself is not locked while waiting, so another thread may close
        it meanwhile.

        Raises:
            ValueError: If the handle is closed.
            ViewActiveError: If a view of this handle is still live.
        """
        match self._source:
            case FileSource(raw=raw):
                with self._state_lock:
                    self._ensure_lockable()
                    reader = io.BufferedReader(BorrowedFile(raw))
                    view = self._attach(FileReadBuffer(reader))
            case StdinSource(stream=stream):
                with self._state_lock:
                    self._ensure_lockable()
                with translate_os_errors(STDIO_FILENAME, "read"):
                    shared = cast(BufferedSource, stream.acquire())
                try:
                    with self._state_lock:
                        self._ensure_lockable()
                        view = self._attach(StdinLock(stream=stream, reader=shared))
                except BaseException:
                    stream.release()
                    raise
            case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                assert_never(unreachable)
        logger.debug("view.acquired", event="view.acquired", context={"path": self.path})
        return view

    # Callers hold _state_lock.
    def _ensure_lockable(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed handle")
        if self._view is not None and not self._view.closed:
            raise ViewActiveError(
                f"A view of {self.path!r} is still live; release it first."
            )

    def _attach(self, view_lock: ReadLock) -> ReadableView:
        view = ReadableView(_path=self.path, _lock=view_lock)
        self._view = view
        return view

    def close(self) -> None:
        """Release any live view, then close the file."""

        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            view, self._view = self._view, None
        try:
            if view is not None:
                view.release()
        finally:
            match self._source:
                case FileSource(raw=raw):
                    raw.close()
                case StdinSource():
                    pass
                case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                    assert_never(unreachable)
            logger.debug("handle.closed", event="handle.closed", context={"path": self.path})

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit context manager, closing the handle."""
        self.close()


@dataclass(slots=True, eq=False)
class ReadableView:
    """Buffered byte source borrowed from a :class:`ReadableHandle`.

    Reads are sequential and return the bytes of the underlying file or
    standard input unchanged. Releasing the view frees the standard input
    lock; it does not close the file.
    """

    _path: str
    _lock: ReadLock
    _closed: bool = field(default=False, init=False)

    @property
    def path(self) -> str:
        """Path being read, ``"-"`` for standard input."""
        return self._path

    @property
    def closed(self) -> bool:
        """True if the view has been released."""
        return self._closed

    @property
    def lock_variant(self) -> ReadLock:
        """The variant backing this view."""
        return self._lock

    def _reader(self) -> BufferedSource:
        if self._closed:
            raise ValueError("I/O operation on released view")
        match self._lock:
            case FileReadBuffer(reader=reader):
                return reader
            case StdinLock(reader=reader):
                return reader
            case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                assert_never(unreachable)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; ``-1`` reads to end of input.

        Returns:
            Bytes read. Empty bytes at end of input.
        """
        reader = self._reader()
        with translate_os_errors(self._path, "read"):
            return reader.read(size)

    def read1(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes with at most one call to the source."""
        reader = self._reader()
        with translate_os_errors(self._path, "read"):
            return reader.read1(size)

    def readinto(self, buffer: Buffer) -> int:
        """Read bytes into ``buffer`` and return the count; 0 at end of input."""
        reader = self._reader()
        with translate_os_errors(self._path, "read"):
            return reader.readinto(buffer)

    def peek(self) -> bytes:
        """Return the buffered bytes without consuming them.

        The buffer is refilled from the source only when it is empty. Empty
        bytes mean end of input.
        """
        reader = self._reader()
        with translate_os_errors(self._path, "read"):
            return reader.peek(1)

    def consume(self, amount: int) -> None:
        """Mark ``amount`` buffered bytes as read.

        Amounts larger than what :meth:`peek` returned are clamped to the
        buffered length.

        Raises:
            ValueError: If ``amount`` is negative.
        """
        if amount < 0:
            raise ValueError(f"consume amount must be non-negative, got {amount}")
        if amount == 0:
            return
        buffered = self.peek()
        _ = self._reader().read(min(amount, len(buffered)))

    def readline(self) -> bytes:
        """Read one line including its ``\\n``; empty bytes at end of input."""
        reader = self._reader()
        with translate_os_errors(self._path, "read"):
            return reader.readline()

    def read_until(self, delimiter: int) -> bytes:
        """Read up to and including the byte ``delimiter`` or end of input."""
        if not 0 <= delimiter <= 0xFF:
            raise ValueError(f"delimiter must be a byte value, got {delimiter}")
        chunks: list[bytes] = []
        while True:
            available = self.peek()
            if not available:
                break
            index = available.find(delimiter)
            if index >= 0:
                chunks.append(available[: index + 1])
                self.consume(index + 1)
                break
            chunks.append(available)
            self.consume(len(available))
        return b"".join(chunks)

    def __iter__(self) -> Iterator[bytes]:
        """Iterate over lines, newlines included."""
        while line := self.readline():
            yield line

    def lines(self, *, strip: bool = False) -> Iterator[bytes]:
        """Iterate over lines, optionally stripping the line terminator."""
        for line in self:
            yield line.rstrip(b"\r\n") if strip else line

    def read_to_end(self) -> bytes:
        """Read every remaining byte."""
        return self.read()

    def read_to_string(self, *, encoding: str = "utf-8") -> str:
        """Read every remaining byte and decode it.

        Raises:
            StreamIOError: With kind ``INVALID_DATA`` if decoding fails.
        """
        data = self.read_to_end()
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as error:
            raise StreamIOError(
                errno.EILSEQ,
                f"stream did not contain valid {encoding}: {error.reason}",
                path=self._path,
                operation="decode",
                kind=IOErrorKind.INVALID_DATA,
            ) from error

    def release(self) -> None:
        """Give the view back to its handle.

        For a file, the file position is moved back to the first unread byte
        when the file is seekable, so the next view resumes there. For
        standard input, the process-wide lock is released.
        """
        if self._closed:
            return
        self._closed = True
        match self._lock:
            case FileReadBuffer(reader=reader):
                _release_reader(reader, self._path)
            case StdinLock(stream=stream):
                stream.release()
            case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                assert_never(unreachable)
        logger.debug("view.released", event="view.released", context={"path": self._path})

    def close(self) -> None:
        """Alias for :meth:`release`."""
        self.release()

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit context manager, releasing the view."""
        self.release()


def _release_reader(reader: io.BufferedReader, path: str) -> None:
    borrowed = reader.raw
    if borrowed.closed:
        return
    try:
        # Leave the file positioned at the first byte this view did not hand out.
        with translate_os_errors(path, "read"):
            if reader.seekable():
                _ = borrowed.seek(reader.tell())
    finally:
        borrowed.close()
