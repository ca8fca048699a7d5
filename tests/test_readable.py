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

"""Tests for ReadableHandle and ReadableView."""

from __future__ import annotations

import errno
import io
import sys
from collections.abc import Buffer, Callable
from pathlib import Path
from typing import override

import pytest

from stdiopath import (
    FileReadBuffer,
    FileSource,
    IOErrorKind,
    ReadableHandle,
    StdinLock,
    StdinSource,
    StreamIOError,
    ViewActiveError,
)


def _write(path: Path, data: bytes) -> Path:
    _ = path.write_bytes(data)
    return path


class _FailingRaw(io.RawIOBase):
    """Readable raw stream whose every read fails with EIO."""

    @override
    def readable(self) -> bool:
        return True

    @override
    def readinto(self, buffer: Buffer, /) -> int:
        raise OSError(errno.EIO, "Input/output error")


class TestReadableHandleConstruction:
    """Tests for choosing the handle variant."""

    def test_file_path_opens_file(self, tmp_path: Path) -> None:
        """A regular path should produce the file variant."""
        path = _write(tmp_path / "in.txt", b"data")
        with ReadableHandle.from_path(path) as handle:
            assert isinstance(handle.source, FileSource)
            assert handle.path == str(path)
            assert not handle.is_stdio

    def test_str_and_bytes_paths(self, tmp_path: Path) -> None:
        """str and bytes paths should both open the file."""
        path = _write(tmp_path / "in.txt", b"data")
        for value in (str(path), bytes(path)):
            with ReadableHandle.from_path(value) as handle, handle.lock() as view:
                assert view.read() == b"data"

    def test_dash_selects_stdin(self) -> None:
        """'-' should produce the standard input variant."""
        handle = ReadableHandle.from_path("-")
        assert isinstance(handle.source, StdinSource)
        assert handle.path == "-"
        assert handle.is_stdio

    def test_dash_never_touches_file_named_dash(
        self, workdir: Path, feed_stdin: Callable[[bytes], None]
    ) -> None:
        """A file literally named '-' should be ignored for the '-' path."""
        _ = _write(workdir / "-", b"from file")
        feed_stdin(b"from stdin")
        assert ReadableHandle.read_to_string("-") == "from stdin"

    def test_dot_slash_dash_string_reads_file(self, workdir: Path) -> None:
        """The string './-' should open the file named '-'."""
        _ = _write(workdir / "-", b"from file")
        assert ReadableHandle.read_to_string("./-") == "from file"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """A missing path should raise StreamIOError naming the path."""
        missing = tmp_path / "missing.txt"
        with pytest.raises(StreamIOError) as exc_info:
            _ = ReadableHandle.from_path(missing)
        error = exc_info.value
        assert error.kind is IOErrorKind.NOT_FOUND
        assert error.path == str(missing)
        assert error.operation == "open"
        assert isinstance(error.__cause__, FileNotFoundError)

    def test_directory_raises(self, tmp_path: Path) -> None:
        """Opening a directory should raise with IS_A_DIRECTORY."""
        with pytest.raises(StreamIOError) as exc_info:
            _ = ReadableHandle.from_path(tmp_path)
        assert exc_info.value.kind is IOErrorKind.IS_A_DIRECTORY

    def test_empty_path_is_literal(self) -> None:
        """An empty path should be treated as a (missing) file."""
        with pytest.raises(StreamIOError) as exc_info:
            _ = ReadableHandle.from_path("")
        assert exc_info.value.path == ""

    def test_from_file_takes_ownership(self, tmp_path: Path) -> None:
        """from_file should wrap an existing raw file and close it with the handle."""
        path = _write(tmp_path / "in.bin", b"abc")
        raw = open(path, "rb", buffering=0)  # noqa: SIM115
        handle = ReadableHandle.from_file(raw)
        assert handle.path == str(path)
        with handle.lock() as view:
            assert view.read() == b"abc"
        handle.close()
        assert raw.closed

    def test_from_file_rejects_closed_file(self, tmp_path: Path) -> None:
        """from_file should refuse a closed file."""
        path = _write(tmp_path / "in.bin", b"abc")
        raw = open(path, "rb", buffering=0)  # noqa: SIM115
        raw.close()
        with pytest.raises(ValueError, match="readable"):
            _ = ReadableHandle.from_file(raw)

    def test_from_file_rejects_write_only_file(self, tmp_path: Path) -> None:
        """from_file should refuse a file that cannot be read."""
        with open(tmp_path / "out.bin", "wb", buffering=0) as raw:
            with pytest.raises(ValueError, match="readable"):
                _ = ReadableHandle.from_file(raw)

    def test_stdin_constructor(self) -> None:
        """stdin() should build the standard input variant."""
        assert ReadableHandle.stdin().is_stdio


class TestReadableHandleLocking:
    """Tests for the one-live-view rule and handle lifecycle."""

    def test_file_view_variant(self, tmp_path: Path) -> None:
        """A file handle should hand out a buffered file view."""
        path = _write(tmp_path / "in.txt", b"x")
        with ReadableHandle.from_path(path) as handle, handle.lock() as view:
            assert isinstance(view.lock_variant, FileReadBuffer)
            assert view.path == str(path)

    def test_stdin_view_variant(self, feed_stdin: Callable[[bytes], None]) -> None:
        """A stdin handle should hand out a stdin lock view."""
        feed_stdin(b"x")
        with ReadableHandle.stdin() as handle, handle.lock() as view:
            assert isinstance(view.lock_variant, StdinLock)
            assert view.path == "-"

    def test_second_lock_while_live_raises(self, tmp_path: Path) -> None:
        """Locking again before releasing should raise ViewActiveError."""
        path = _write(tmp_path / "in.txt", b"x")
        with ReadableHandle.from_path(path) as handle, handle.lock():
            with pytest.raises(ViewActiveError):
                _ = handle.lock()

    def test_lock_after_release_succeeds(self, tmp_path: Path) -> None:
        """A released view should allow a new lock."""
        path = _write(tmp_path / "in.txt", b"x")
        with ReadableHandle.from_path(path) as handle:
            handle.lock().release()
            with handle.lock() as view:
                assert not view.closed

    def test_next_view_resumes_at_first_unread_byte(self, tmp_path: Path) -> None:
        """Read-ahead bytes of a released view should not be lost."""
        path = _write(tmp_path / "in.txt", b"line one\nline two\n")
        with ReadableHandle.from_path(path) as handle:
            with handle.lock() as view:
                assert view.readline() == b"line one\n"
            with handle.lock() as view:
                assert view.read() == b"line two\n"

    def test_stdin_buffer_survives_across_views(
        self, feed_stdin: Callable[[bytes], None]
    ) -> None:
        """Bytes buffered by one stdin view should be seen by the next."""
        feed_stdin(b"first\nsecond\n")
        with ReadableHandle.stdin() as handle:
            with handle.lock() as view:
                assert view.readline() == b"first\n"
            with handle.lock() as view:
                assert view.read() == b"second\n"

    def test_close_releases_live_view(self, tmp_path: Path) -> None:
        """Closing the handle should release its live view and the file."""
        path = _write(tmp_path / "in.txt", b"x")
        handle = ReadableHandle.from_path(path)
        view = handle.lock()
        handle.close()
        assert view.closed
        assert handle.closed
        with pytest.raises(ValueError, match="released"):
            _ = view.read()

    def test_lock_after_close_raises(self, tmp_path: Path) -> None:
        """Locking a closed handle should raise ValueError."""
        path = _write(tmp_path / "in.txt", b"x")
        handle = ReadableHandle.from_path(path)
        handle.close()
        with pytest.raises(ValueError, match="closed"):
            _ = handle.lock()

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        """close() should be safe to call repeatedly."""
        path = _write(tmp_path / "in.txt", b"x")
        handle = ReadableHandle.from_path(path)
        handle.close()
        handle.close()
        assert handle.closed

    def test_release_keeps_file_open(self, tmp_path: Path) -> None:
        """Releasing a view should not close the handle's file."""
        path = _write(tmp_path / "in.txt", b"x")
        with ReadableHandle.from_path(path) as handle:
            handle.lock().release()
            source = handle.source
            assert isinstance(source, FileSource)
            assert not source.raw.closed

    def test_closing_view_buffer_leaves_file_open(self, tmp_path: Path) -> None:
        """The read buffer of a view should only borrow the handle's file."""
        path = _write(tmp_path / "in.txt", b"abcdef")
        with ReadableHandle.from_path(path) as handle:
            view = handle.lock()
            lock = view.lock_variant
            assert isinstance(lock, FileReadBuffer)
            assert view.read(2) == b"ab"
            lock.reader.close()
            source = handle.source
            assert isinstance(source, FileSource)
            assert not source.raw.closed

            view.release()
            _ = source.raw.seek(0)
            assert source.raw.read() == b"abcdef"

    def test_view_release_is_idempotent(self, tmp_path: Path) -> None:
        """release() should be safe to call repeatedly."""
        path = _write(tmp_path / "in.txt", b"x")
        with ReadableHandle.from_path(path) as handle:
            view = handle.lock()
            view.release()
            view.close()
            assert view.closed


class TestReadableView:
    """Tests for the byte-source operations of a view."""

    @pytest.fixture
    def view_of(self, tmp_path: Path) -> Callable[[bytes], ReadableHandle]:
        def make(data: bytes) -> ReadableHandle:
            return ReadableHandle.from_path(_write(tmp_path / "in.bin", data))

        return make

    def test_read_sizes(self, view_of: Callable[[bytes], ReadableHandle]) -> None:
        """read(n) should return n bytes, then the rest, then b''."""
        with view_of(b"hello world") as handle, handle.lock() as view:
            assert view.read(5) == b"hello"
            assert view.read() == b" world"
            assert view.read() == b""

    def test_readinto_counts_bytes(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """readinto should fill the buffer and return 0 at end of input."""
        with view_of(b"abcdef") as handle, handle.lock() as view:
            buffer = bytearray(4)
            assert view.readinto(buffer) == 4
            assert bytes(buffer) == b"abcd"
            assert view.readinto(buffer) == 2
            assert bytes(buffer[:2]) == b"ef"
            assert view.readinto(buffer) == 0

    def test_read1_returns_some_bytes(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """read1 should return at least one byte before end of input."""
        with view_of(b"abc") as handle, handle.lock() as view:
            chunk = view.read1(10)
            assert b"abc".startswith(chunk)
            assert chunk

    def test_peek_does_not_consume(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """peek should expose buffered bytes without advancing."""
        with view_of(b"abc") as handle, handle.lock() as view:
            assert view.peek() == b"abc"
            assert view.peek() == b"abc"
            assert view.read() == b"abc"
            assert view.peek() == b""

    def test_consume_advances(self, view_of: Callable[[bytes], ReadableHandle]) -> None:
        """consume should mark buffered bytes as read."""
        with view_of(b"abcdef") as handle, handle.lock() as view:
            _ = view.peek()
            view.consume(2)
            assert view.read(2) == b"cd"

    def test_consume_clamps_to_buffer(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """consume beyond the buffered bytes should stop at the buffer end."""
        with view_of(b"abc") as handle, handle.lock() as view:
            view.consume(100)
            assert view.read() == b""

    def test_consume_zero_and_negative(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """consume(0) is a no-op and negative amounts are rejected."""
        with view_of(b"abc") as handle, handle.lock() as view:
            view.consume(0)
            assert view.read(1) == b"a"
            with pytest.raises(ValueError, match="non-negative"):
                view.consume(-1)

    def test_readline_and_iteration(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """Iteration should yield each line including its newline."""
        with view_of(b"a\nb\r\nc") as handle, handle.lock() as view:
            assert list(view) == [b"a\n", b"b\r\n", b"c"]

    def test_lines_strip(self, view_of: Callable[[bytes], ReadableHandle]) -> None:
        """lines(strip=True) should drop line terminators only."""
        with view_of(b" a \nb\r\n\n") as handle, handle.lock() as view:
            assert list(view.lines(strip=True)) == [b" a ", b"b", b""]

    def test_read_until(self, view_of: Callable[[bytes], ReadableHandle]) -> None:
        """read_until should include the delimiter and stop at end of input."""
        with view_of(b"k1=v1;k2=v2") as handle, handle.lock() as view:
            assert view.read_until(ord(";")) == b"k1=v1;"
            assert view.read_until(ord(";")) == b"k2=v2"
            assert view.read_until(ord(";")) == b""

    def test_read_until_spans_buffer_refills(self, tmp_path: Path) -> None:
        """read_until should keep reading past the read-ahead buffer size."""
        data = b"x" * (io.DEFAULT_BUFFER_SIZE * 3) + b"|tail"
        with ReadableHandle.from_path(_write(tmp_path / "big", data)) as handle:
            with handle.lock() as view:
                head = view.read_until(ord("|"))
                assert head == data[: data.index(b"|") + 1]
                assert view.read() == b"tail"

    def test_read_until_rejects_non_byte(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """read_until should reject delimiters outside 0..255."""
        with view_of(b"abc") as handle, handle.lock() as view:
            with pytest.raises(ValueError, match="byte"):
                _ = view.read_until(256)

    def test_read_to_string_invalid_utf8(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """Invalid UTF-8 should raise StreamIOError with INVALID_DATA."""
        with view_of(b"\xff\xfe") as handle, handle.lock() as view:
            with pytest.raises(StreamIOError) as exc_info:
                _ = view.read_to_string()
        error = exc_info.value
        assert error.kind is IOErrorKind.INVALID_DATA
        assert error.operation == "decode"
        assert isinstance(error.__cause__, UnicodeDecodeError)

    def test_read_to_string_other_encoding(
        self, view_of: Callable[[bytes], ReadableHandle]
    ) -> None:
        """read_to_string should honor the encoding argument."""
        with view_of("café".encode("latin-1")) as handle, handle.lock() as view:
            assert view.read_to_string(encoding="latin-1") == "café"

    def test_read_errors_are_translated(self) -> None:
        """OS errors during reads should surface as StreamIOError."""
        with ReadableHandle.from_file(_FailingRaw(), path="device") as handle:
            with handle.lock() as view, pytest.raises(StreamIOError) as exc_info:
                _ = view.read()
        error = exc_info.value
        assert error.path == "device"
        assert error.operation == "read"
        assert error.errno == errno.EIO


class TestReadConvenience:
    """Tests for read_to_string and read_bytes."""

    def test_read_to_string_matches_manual_read(self, tmp_path: Path) -> None:
        """read_to_string should equal open, lock and read to the end."""
        path = _write(tmp_path / "in.txt", "héllo\nwörld\n".encode())
        with ReadableHandle.from_path(path) as handle, handle.lock() as view:
            manual = view.read().decode("utf-8")
        assert ReadableHandle.read_to_string(path) == manual == "héllo\nwörld\n"

    def test_read_bytes(self, tmp_path: Path) -> None:
        """read_bytes should return the exact file contents."""
        path = _write(tmp_path / "in.bin", bytes(range(256)))
        assert ReadableHandle.read_bytes(path) == bytes(range(256))

    def test_read_to_string_missing_file(self, tmp_path: Path) -> None:
        """read_to_string should propagate the open error."""
        with pytest.raises(StreamIOError) as exc_info:
            _ = ReadableHandle.read_to_string(tmp_path / "nope")
        assert exc_info.value.kind is IOErrorKind.NOT_FOUND

    def test_read_to_string_from_stdin(
        self, feed_stdin: Callable[[bytes], None]
    ) -> None:
        """read_to_string('-') should read standard input."""
        feed_stdin("stdin text ✓".encode())
        assert ReadableHandle.read_to_string("-") == "stdin text ✓"

    def test_read_bytes_from_unpeekable_stdin(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A stdin whose binary layer cannot peek should still be readable."""
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"raw")))
        with ReadableHandle.stdin() as handle, handle.lock() as view:
            assert view.peek() == b"raw"
            assert view.read() == b"raw"

    def test_missing_stdin_reads_as_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """No standard input at all should behave as empty input."""
        monkeypatch.setattr(sys, "stdin", None)
        assert ReadableHandle.read_bytes("-") == b""
