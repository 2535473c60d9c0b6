import shutil
from fractions import Fraction
from pathlib import Path

import pytest

from framerender.media.frame_store import FrameStore
from framerender.render.encoder import FfmpegEncoder
from framerender.render.render_models import ImageFormat
from tests.helpers.frames import png_frames

pytestmark = [
    pytest.mark.ffmpeg,
    pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg is not installed"),
]


@pytest.mark.asyncio
async def test_ffmpeg_encodes_png_sequence(tmp_path: Path) -> None:
    store = FrameStore(tmp_path / "frames")
    job_id = "c" * 32
    store.ingest(job_id, png_frames(6), ImageFormat.PNG)
    output = tmp_path / f"{job_id}.mp4"

    result = await FfmpegEncoder(timeout_seconds=30).encode(
        store.pattern(job_id, ImageFormat.PNG), Fraction(24), output
    )

    assert result.output_path == output
    data = output.read_bytes()
    assert data[4:8] == b"ftyp"
