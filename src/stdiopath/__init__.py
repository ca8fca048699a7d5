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

"""Read from a file or standard input, write to a file or standard output.

A single path value selects the resource: ``"-"`` means the standard stream,
anything else is a filesystem path. Calling code gets one handle type per
direction and one code path regardless of the variant.

Example usage::

    from stdiopath import ReadableHandle, WritableHandle

    text = ReadableHandle.read_to_string(args.input)
    WritableHandle.write_all(args.output, transform(text).encode())

Handles own their file; views borrowed with ``lock()`` provide buffered
byte-stream access and hold the process-wide lock of a standard stream while
they are live:

- ``ReadableHandle`` / ``ReadableView``: file or standard input
- ``WritableHandle`` / ``WritableView``: file or standard output
"""

from __future__ import annotations

from ._input import (
    FileReadBuffer,
    FileSource,
    InputSource,
    ReadableHandle,
    ReadableView,
    ReadLock,
    StdinLock,
    StdinSource,
)
from ._output import (
    FileSink,
    FileWriteBuffer,
    OutputSink,
    StdoutLock,
    StdoutSink,
    WritableHandle,
    WritableView,
    WriteLock,
)
from ._sentinel import STDIO_FILENAME, PathArg, is_stdio_path, lossy_path_string
from ._stdstreams import StandardStream, StreamName, standard_stream
from .errors import IOErrorKind, StdioPathError, StreamIOError, ViewActiveError
from .logging import configure_logging

__all__ = [
    "STDIO_FILENAME",
    "FileReadBuffer",
    "FileSink",
    "FileSource",
    "FileWriteBuffer",
    "IOErrorKind",
    "InputSource",
    "OutputSink",
    "PathArg",
    "ReadLock",
    "ReadableHandle",
    "ReadableView",
    "StandardStream",
    "StdinLock",
    "StdinSource",
    "StdioPathError",
    "StdoutLock",
    "StdoutSink",
    "StreamIOError",
    "StreamName",
    "ViewActiveError",
    "WritableHandle",
    "WritableView",
    "WriteLock",
    "configure_logging",
    "is_stdio_path",
    "lossy_path_string",
    "standard_stream",
]
