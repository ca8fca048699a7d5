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

"""Path resolution shared by readable and writable handles.

A path whose string form is exactly ``"-"`` selects the process standard
stream. Every other value, including ``""``, ``"--"`` and ``"./-"``, is a
literal filesystem path.

Functions:
    lossy_path_string: Text form of a path with undecodable bytes replaced
    is_stdio_path: True when a path selects the standard stream
    file_display_name: Name of an open file object for error messages
"""

from __future__ import annotations

import os
from typing import Final, cast

__all__ = [
    "STDIO_FILENAME",
    "PathArg",
    "file_display_name",
    "is_stdio_path",
    "lossy_path_string",
]

STDIO_FILENAME: Final[str] = "-"

type PathArg = str | bytes | os.PathLike[str] | os.PathLike[bytes]


def lossy_path_string(path: PathArg) -> str:
    """Return the text form of ``path``, replacing undecodable bytes.

    Byte paths are decoded as UTF-8 with U+FFFD for invalid sequences.
    String paths that carry surrogate-escaped bytes (as produced by
    ``os.fsdecode`` for non-UTF-8 file names) get the same treatment.

    Raises:
        TypeError: If ``path`` is not a str, bytes or path-like object.

    Examples:
        >>> lossy_path_string(b"caf\\xe9") == "caf\\ufffd"
        True
        >>> lossy_path_string("-")
        '-'
    """
    raw = os.fspath(path)
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    try:
        encoded = raw.encode("utf-8", errors="surrogateescape")
    except UnicodeEncodeError:
        # Lone surrogates that did not come from os.fsdecode.
        encoded = raw.encode("utf-8", errors="surrogatepass")
    return encoded.decode("utf-8", errors="replace")


def is_stdio_path(path: PathArg) -> bool:
    """Return True when ``path`` selects the standard stream.

    The comparison is exact equality of the lossy text form with ``"-"``.
    A ``pathlib.Path("./-")`` normalizes to ``"-"`` and therefore selects the
    standard stream; pass the string ``"./-"`` to open a file named ``-``.
    """
    return lossy_path_string(path) == STDIO_FILENAME


def file_display_name(file: object) -> str:
    """Return the name used in errors for an already open file object."""
    name = getattr(file, "name", None)
    if isinstance(name, str | bytes | os.PathLike):
        return lossy_path_string(cast(PathArg, name))
    if isinstance(name, int):
        return f"<fd {name}>"
    return "<file>"
