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

"""Writable handle over a file or standard output.

Files are always created or truncated, never appended to.

Example::

    from stdiopath import WritableHandle

    with WritableHandle.from_path(args.output) as handle, handle.lock() as view:
        for record in records:
            view.write_all(encode(record))

    # Or in one call
    WritableHandle.write_all(args.output, payload)
"""

from __future__ import annotations

import io
import threading
from collections.abc import Buffer, Iterable
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
    "FileSink",
    "FileWriteBuffer",
    "OutputSink",
    "StdoutLock",
    "StdoutSink",
    "WritableHandle",
    "WritableView",
    "WriteLock",
]

logger: StructuredLogger = get_logger(__name__, context={"component": "output"})


class BufferedSink(Protocol):
    """Binary writer interface shared by both view variants."""

    def write(self, data: Buffer, /) -> int | None: ...

    def flush(self) -> None: ...


@dataclass(frozen=True, slots=True)
class FileSink:
    """Handle variant owning an unbuffered file opened for writing."""

    path: str
    raw: io.RawIOBase


@dataclass(frozen=True, slots=True)
class StdoutSink:
    """Handle variant referring to the process standard output."""

    stream: StandardStream


type OutputSink = FileSink | StdoutSink


@dataclass(frozen=True, slots=True)
class FileWriteBuffer:
    """View variant: a write buffer over the handle's file."""

    writer: io.BufferedWriter


@dataclass(frozen=True, slots=True)
class StdoutLock:
    """View variant: the held standard output lock and its binary stream."""

    stream: StandardStream
    writer: BufferedSink


type WriteLock = FileWriteBuffer | StdoutLock


@dataclass(slots=True, eq=False)
class WritableHandle:
    """Owns either a created file or a reference to standard output.

    Closing the handle releases any live view (flushing it) and then the
    file descriptor. Closing a standard output handle releases nothing.
    """

    _sink: OutputSink
    _view: WritableView | None = field(default=None, init=False, repr=False)
    _closed: bool = field(default=False, init=False)
    _state_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    @classmethod
    def from_path(cls, path: PathArg) -> WritableHandle:
        """Create or truncate ``path``, or select standard output for ``"-"``.

        Raises:
            StreamIOError: If the file cannot be created. Never raised for
                standard output.
            TypeError: If ``path`` is not a str, bytes or path-like object.
        """
        if is_stdio_path(path):
            return cls.stdout()
        display = lossy_path_string(path)
        with translate_os_errors(display, "create"):
            raw = open(path, "wb", buffering=0)  # noqa: SIM115
        return cls._opened(FileSink(path=display, raw=raw))

    @classmethod
    def from_file(cls, file: io.RawIOBase, *, path: str | None = None) -> WritableHandle:
        """Take ownership of an unbuffered binary file opened for writing.

        Raises:
            ValueError: If ``file`` is closed or not writable.
        """
        if file.closed or not file.writable():
            raise ValueError("from_file requires an open, writable file.")
        display = path if path is not None else file_display_name(file)
        return cls._opened(FileSink(path=display, raw=file))

    @classmethod
    def stdout(cls) -> WritableHandle:
        """Return a handle on the process standard output."""

        return cls._opened(StdoutSink(stream=standard_stream("stdout")))

    @classmethod
    def _opened(cls, sink: OutputSink) -> WritableHandle:
        handle = cls(sink)
        logger.debug(
            "handle.opened",
            event="handle.opened",
            context={"path": handle.path, "stdio": handle.is_stdio},
        )
        return handle

    @classmethod
    def write_all(cls, path: PathArg, data: Buffer) -> None:
        """Write all of ``data`` to ``path`` (or standard output) and flush.

        The file is truncated first. On failure the first error is raised
        and whatever was already written stays in place.

        Raises:
            StreamIOError: On create, write or flush failures.
        """
        with cls.from_path(path) as handle, handle.lock() as view:
            view.write_all(data)
            view.flush()

    @classmethod
    def write_text(cls, path: PathArg, text: str, *, encoding: str = "utf-8") -> None:
        """Encode ``text`` and write it with :meth:`write_all`."""

        cls.write_all(path, text.encode(encoding))

    @property
    def sink(self) -> OutputSink:
        """The variant this handle was built with."""
        return self._sink

    @property
    def path(self) -> str:
        """Path of the file, or ``"-"`` for standard output."""
        match self._sink:
            case FileSink(path=path):
                return path
            case StdoutSink():
                return STDIO_FILENAME
            case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                assert_never(unreachable)

    @property
    def is_stdio(self) -> bool:
        """True if this handle wraps standard output."""
        return isinstance(self._sink, StdoutSink)

    @property
    def closed(self) -> bool:
        """True if the handle has been closed."""
        return self._closed

    def lock(self) -> WritableView:
        """Return the buffered view of this handle.

        For a file, wraps the file in a fresh write buffer. For standard
        output, blocks until the process-wide standard output lock is free and
        then flushes ``sys.stdout``. The handle itself is not locked while
        waiting, so another thread may close it meanwhile.

        Raises:
            ValueError: If the handle is closed.
            ViewActiveError: If a view of this handle is still live.
            StreamIOError: If flushing the text layer of standard output fails.
        """
        match self._sink:
            case FileSink(raw=raw):
                with self._state_lock:
                    self._ensure_lockable()
                    writer = io.BufferedWriter(BorrowedFile(raw))
                    view = self._attach(FileWriteBuffer(writer))
            case StdoutSink(stream=stream):
                with self._state_lock:
                    self._ensure_lockable()
                with translate_os_errors(STDIO_FILENAME, "flush"):
                    shared = cast(BufferedSink, stream.acquire())
                try:
                    with self._state_lock:
                        self._ensure_lockable()
                        view = self._attach(StdoutLock(stream=stream, writer=shared))
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

    def _attach(self, view_lock: WriteLock) -> WritableView:
        view = WritableView(_path=self.path, _lock=view_lock)
        self._view = view
        return view

    def close(self) -> None:
        """Release (and flush) any live view, then close the file."""

        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            view, self._view = self._view, None
        try:
            if view is not None:
                view.release()
        finally:
            match self._sink:
                case FileSink(raw=raw):
                    raw.close()
                case StdoutSink():
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
class WritableView:
    """Buffered byte sink borrowed from a :class:`WritableHandle`.

    Bytes reach the file or standard output in the order they are written.
    Buffered bytes are flushed by :meth:`flush` and when the view is
    released.
    """

    _path: str
    _lock: WriteLock
    _bytes_written: int = field(default=0, init=False)
    _closed: bool = field(default=False, init=False)

    @property
    def path(self) -> str:
        """Path being written, ``"-"`` for standard output."""
        return self._path

    @property
    def bytes_written(self) -> int:
        """Total bytes accepted by this view."""
        return self._bytes_written

    @property
    def closed(self) -> bool:
        """True if the view has been released."""
        return self._closed

    @property
    def lock_variant(self) -> WriteLock:
        """The variant backing this view."""
        return self._lock

    def _writer(self) -> BufferedSink:
        if self._closed:
            raise ValueError("I/O operation on released view")
        match self._lock:
            case FileWriteBuffer(writer=writer):
                return writer
            case StdoutLock(writer=writer):
                return writer
            case _ as unreachable:  # pragma: no cover - exhaustiveness sentinel
                assert_never(unreachable)

    def write(self, data: Buffer) -> int:
        """Write ``data`` and return the number of bytes accepted."""
        writer = self._writer()
        with translate_os_errors(self._path, "write"):
            written = writer.write(data)
        # Non-blocking raw sinks report "nothing accepted" as None.
        count = 0 if written is None else written
        self._bytes_written += count
        return count

    def write_all(self, data: Buffer) -> int:
        """Write every byte of ``data``, retrying short and interrupted writes.

        Returns:
            Number of bytes written, always the full length of ``data``.

        Raises:
            StreamIOError: With kind ``WRITE_ZERO`` if the sink accepts no
                bytes, or the error reported by the sink.
        """
        remaining = memoryview(data).cast("B")
        total = len(remaining)
        while remaining:
            try:
                written = self.write(remaining)
            except StreamIOError as error:
                if error.kind is IOErrorKind.INTERRUPTED:
                    continue
                raise
            if written == 0:
                raise StreamIOError(
                    None,
                    "failed to write whole buffer",
                    path=self._path,
                    operation="write",
                    kind=IOErrorKind.WRITE_ZERO,
                )
            remaining = remaining[written:]
        return total

    def writelines(self, chunks: Iterable[Buffer]) -> int:
        """Write every chunk in order and return the total byte count."""
        return sum(self.write_all(chunk) for chunk in chunks)

    def flush(self) -> None:
        """Push buffered bytes to the file or standard output now."""
        writer = self._writer()
        with translate_os_errors(self._path, "flush"):
            writer.flush()

    def release(self) -> None:
        """Flush and give the view back to its handle.

        For a file, the write buffer is flushed and disconnected from the
        file, which stays open. If the flush fails, the bytes it could not
        write are discarded rather than written by a later view. For standard
        output, the stream is flushed and the process-wide lock is released
        even when the flush fails.
        """
        if self._closed:
            return
        match self._lock:
            case FileWriteBuffer(writer=writer):
                try:
                    if not writer.raw.closed:
                        with translate_os_errors(self._path, "flush"):
                            writer.flush()
                finally:
                    self._closed = True
                    # Disconnects the buffer; unflushed bytes are dropped.
                    writer.raw.close()
            case StdoutLock(stream=stream, writer=writer):
                try:
                    with translate_os_errors(self._path, "flush"):
                        writer.flush()
                finally:
                    self._closed = True
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
        """Exit context manager, releasing (and flushing) the view."""
        self.release()
