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

"""Process-wide standard input and output.

Each standard stream is represented by one :class:`StandardStream` that
lives for the whole process. Locking it is a process-wide mutual exclusion
point: two unrelated handles wrapping standard output contend for the same
lock. The binary stream itself is looked up on ``sys`` each time the lock is
acquired, so streams replaced at runtime (by a test harness, for example)
are honored.
"""

from __future__ import annotations

import io
import sys
import threading
from collections.abc import Buffer
from dataclasses import dataclass, field
from typing import BinaryIO, Final, Literal, cast, override

__all__ = [
    "StandardStream",
    "StreamName",
    "standard_stream",
]

type StreamName = Literal["stdin", "stdout"]


@dataclass(slots=True, eq=False)
class StandardStream:
    """Process-lifetime wrapper around ``sys.stdin`` or ``sys.stdout``.

    The lock is reentrant so a thread that already holds the stream can
    lock it again through another handle.
    """

    name: StreamName
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _wrapped: tuple[object, BinaryIO] | None = field(default=None, repr=False)

    def acquire(self) -> BinaryIO:
        """Block until the stream lock is held and return the binary stream."""

        _ = self._lock.acquire()
        try:
            return self._binary()
        except BaseException:
            self._lock.release()
            raise

    def release(self) -> None:
        """Release the lock taken by :meth:`acquire`."""

        self._lock.release()

    def _binary(self) -> BinaryIO:
        if self.name == "stdin":
            return self._binary_stdin()
        return self._binary_stdout()

    def _binary_stdin(self) -> BinaryIO:
        text = sys.stdin
        source: object = _EMPTY_INPUT if text is None else _binary_layer(text)
        if hasattr(source, "peek"):
            return cast(BinaryIO, source)
        # Keep one read-ahead buffer per installed stream so bytes buffered
        # by one view are still there for the next.
        if self._wrapped is None or self._wrapped[0] is not source:
            buffered = io.BufferedReader(cast(io.RawIOBase, source))
            self._wrapped = (source, cast(BinaryIO, buffered))
        return self._wrapped[1]

    def _binary_stdout(self) -> BinaryIO:
        text = sys.stdout
        if text is None:
            return cast(BinaryIO, _DISCARD_OUTPUT)
        # Bytes printed through the text layer go out before ours.
        text.flush()
        return cast(BinaryIO, _binary_layer(text))


def _binary_layer(stream: object) -> object:
    return getattr(stream, "buffer", stream)


class _DiscardSink(io.RawIOBase):
    """Writable stream that accepts and drops every byte."""

    @override
    def writable(self) -> bool:
        return True

    @override
    def write(self, b: Buffer, /) -> int:
        return memoryview(b).nbytes


_EMPTY_INPUT: Final = io.BufferedReader(io.BytesIO())
_DISCARD_OUTPUT: Final = _DiscardSink()

_STREAMS: Final[dict[StreamName, StandardStream]] = {
    "stdin": StandardStream("stdin"),
    "stdout": StandardStream("stdout"),
}


def standard_stream(name: StreamName) -> StandardStream:
    """Return the process-wide :class:`StandardStream` called ``name``."""

    return _STREAMS[name]
