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

from __future__ import annotations

import io
import sys
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

type StdinFeeder = Callable[[bytes], None]


@pytest.fixture
def feed_stdin(monkeypatch: pytest.MonkeyPatch) -> StdinFeeder:
    """Return a callable that installs ``data`` as the process standard input."""

    def feed(data: bytes) -> None:
        buffered = io.BufferedReader(io.BytesIO(data))
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(buffered, encoding="utf-8"))

    return feed


@pytest.fixture
def stdout_buffer(monkeypatch: pytest.MonkeyPatch) -> io.BytesIO:
    """Install an in-memory standard output and return its byte buffer."""

    raw = io.BytesIO()
    monkeypatch.setattr(
        sys, "stdout", io.TextIOWrapper(raw, encoding="utf-8", write_through=True)
    )
    return raw


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Run the test with ``tmp_path`` as the working directory."""

    monkeypatch.chdir(tmp_path)
    yield tmp_path
