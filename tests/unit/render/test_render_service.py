import asyncio
import uuid
from pathlib import Path

import pytest

from framerender.config import AppConfig
from framerender.dependencies import build_encoder
from framerender.media.artifact_lifecycle import ArtifactLifecycle
from framerender.media.frame_store import FrameStore
from framerender.render.encoder import Encoder
from framerender.render.render_errors import (
    ArtifactNotFoundError,
    EncodeError,
    FrameSequenceError,
    FrameWriteError,
    InvalidFrameEncodingError,
)
from framerender.render.render_models import FailureReason, JobState
from framerender.render.render_service import RenderService, failure_reason_for
from framerender.render.validation import FrameRequestValidator
from tests.helpers.config import build_config
from tests.helpers.frames import data_uri, png_frames
from tests.mocks.encoder import FailingEncoder, FakeEncoder


def build_service(
    tmp_path: Path, encoder: Encoder | None = None, *, ttl_seconds: float = 60.0
) -> tuple[RenderService, AppConfig]:
    config = build_config(tmp_path, ttl_seconds=ttl_seconds)
    frame_store = FrameStore(config.media_paths.frames)
    service = RenderService(
        validator=FrameRequestValidator(config.render_limits),
        frame_store=frame_store,
        encoder=encoder or FakeEncoder(),
        artifacts=ArtifactLifecycle(
            artifacts_dir=config.media_paths.artifacts,
            frame_store=frame_store,
            default_ttl_seconds=ttl_seconds,
        ),
    )
    return service, config


def files_with_prefix(directory: Path, job_id: str) -> list[str]:
    return sorted(path.name for path in directory.iterdir() if path.name.startswith(job_id))


@pytest.mark.asyncio
async def test_render_produces_one_artifact_then_expires(tmp_path: Path) -> None:
    service, config = build_service(tmp_path, ttl_seconds=0.2)
    request = service.prepare_request(png_frames(5), 24)

    job = await service.render(request)

    assert job.state is JobState.READY
    assert service.artifacts.resolve(job.job_id).name == f"{job.job_id}.mp4"
    assert files_with_prefix(config.media_paths.artifacts, job.job_id) == [f"{job.job_id}.mp4"]
    assert len(files_with_prefix(config.media_paths.frames, job.job_id)) == 5

    await asyncio.sleep(0.4)

    with pytest.raises(ArtifactNotFoundError):
        service.artifacts.resolve(job.job_id)
    assert files_with_prefix(config.media_paths.frames, job.job_id) == []
    assert files_with_prefix(config.media_paths.artifacts, job.job_id) == []
    assert job.state is JobState.EXPIRED


@pytest.mark.asyncio
async def test_encoder_receives_pattern_rate_and_output(tmp_path: Path) -> None:
    encoder = FakeEncoder()
    service, config = build_service(tmp_path, encoder)

    job = await service.render(service.prepare_request(png_frames(3), 30))

    pattern, rate, output = encoder.calls[0]
    assert pattern == config.media_paths.frames / f"{job.job_id}_frame_%06d.png"
    assert rate == 30
    assert output == config.media_paths.artifacts / f"{job.job_id}.mp4"
    assert [path.name for path in encoder.frames_seen[0]] == [p.name for p in job.frame_paths]
    await service.artifacts.shutdown(drain=True)


@pytest.mark.asyncio
async def test_gif_frame_in_png_job_writes_nothing(tmp_path: Path) -> None:
    encoder = FakeEncoder()
    service, config = build_service(tmp_path, encoder)
    frames = [data_uri(b"GIF89a", "gif")]

    with pytest.raises(InvalidFrameEncodingError):
        request = service.prepare_request(frames, 24, image_format="png")
        await service.render(request)

    assert list(config.media_paths.frames.iterdir()) == []
    assert encoder.calls == []


@pytest.mark.asyncio
async def test_mixed_formats_fail_during_ingest_and_leave_no_files(tmp_path: Path) -> None:
    encoder = FakeEncoder()
    service, config = build_service(tmp_path, encoder)
    request = service.prepare_request(png_frames(2) + [data_uri(b"GIF89a", "gif")], 24)

    with pytest.raises(InvalidFrameEncodingError):
        await service.render(request)

    assert list(config.media_paths.frames.iterdir()) == []
    assert encoder.calls == []


def test_zero_frames_rejected_before_encoding(tmp_path: Path) -> None:
    service, _ = build_service(tmp_path)

    with pytest.raises(FrameSequenceError):
        service.prepare_request([], 24)


def test_non_contiguous_declared_sequence_rejected(tmp_path: Path) -> None:
    service, config = build_service(tmp_path)

    with pytest.raises(FrameSequenceError):
        service.prepare_request(png_frames(3), 24, frame_count=4)

    assert list(config.media_paths.frames.iterdir()) == []


@pytest.mark.asyncio
async def test_encode_failure_cleans_up_immediately(tmp_path: Path) -> None:
    encoder = FailingEncoder()
    service, config = build_service(tmp_path, encoder)
    job_id = uuid.uuid4().hex
    service.job_id_factory = lambda: job_id

    with pytest.raises(EncodeError):
        await service.render(service.prepare_request(png_frames(4), 24))

    assert encoder.calls == 1
    assert list(config.media_paths.frames.iterdir()) == []
    assert list(config.media_paths.artifacts.iterdir()) == []
    assert service.artifacts.pending() == []
    with pytest.raises(ArtifactNotFoundError):
        service.artifacts.resolve(job_id)


@pytest.mark.asyncio
async def test_write_failure_aborts_before_encoding(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    encoder = FakeEncoder()
    service, config = build_service(tmp_path, encoder)

    def failing_ingest(*_args, **_kwargs):
        raise FrameWriteError("disk full")

    monkeypatch.setattr(FrameStore, "ingest", failing_ingest)

    with pytest.raises(FrameWriteError):
        await service.render(service.prepare_request(png_frames(2), 24))

    assert encoder.calls == []


@pytest.mark.asyncio
async def test_concurrent_jobs_do_not_collide(tmp_path: Path) -> None:
    encoder = FakeEncoder(delay=0.05)
    service, config = build_service(tmp_path, encoder)
    request = service.prepare_request(png_frames(5), 24)

    job_a, job_b = await asyncio.gather(service.render(request), service.render(request))

    assert job_a.job_id != job_b.job_id
    names_a = {path.name for path in encoder.frames_seen[0]}
    names_b = {path.name for path in encoder.frames_seen[1]}
    assert len(names_a) == len(names_b) == 5
    assert names_a.isdisjoint(names_b)
    assert service.artifacts.resolve(job_a.job_id) != service.artifacts.resolve(job_b.job_id)

    service.artifacts.expire_now(job_a.job_id)

    assert service.artifacts.resolve(job_b.job_id).exists()
    assert len(files_with_prefix(config.media_paths.frames, job_b.job_id)) == 5
    await service.artifacts.shutdown(drain=True)


@pytest.mark.asyncio
async def test_each_render_gets_fresh_job_id(tmp_path: Path) -> None:
    service, _ = build_service(tmp_path)
    request = service.prepare_request(png_frames(1), 24)

    ids = {(await service.render(request)).job_id for _ in range(3)}

    assert len(ids) == 3
    await service.artifacts.shutdown(drain=True)


def test_failure_reason_mapping() -> None:
    assert failure_reason_for(FrameSequenceError()) is FailureReason.INVALID_FRAME_ENCODING
    assert failure_reason_for(EncodeError()) is FailureReason.ENCODE_ERROR
    assert failure_reason_for(RuntimeError()) is FailureReason.INTERNAL_ERROR


def test_build_encoder_uses_config(tmp_path: Path) -> None:
    config = build_config(tmp_path)

    encoder = build_encoder(config)

    assert encoder.binary == "ffmpeg"
    assert encoder.timeout_seconds == config.encoder.timeout_seconds
