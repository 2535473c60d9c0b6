from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

# framerender.main builds an app at import time; keep its media out of the repo.
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="framerender-tests-"))

from framerender.config import MediaPaths  # noqa: E402
from tests.helpers.config import build_config  # noqa: E402


@pytest.fixture
def media_paths(tmp_path: Path) -> MediaPaths:
    return build_config(tmp_path).media_paths
