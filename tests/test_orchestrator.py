"""End-to-end tests for the pipeline orchestrator with scripted services."""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path

import pytest
from fakes import (
    FAKE_PNG,
    ScriptedMeshService,
    anim_done,
    failed,
    in_progress,
    mesh_done,
    rig_done,
)

from robotforge.errors import (
    AssetError,
    DecodeError,
    JobTimeout,
    PipelineCancelled,
    SubmitError,
    SubmitReason,
    TerminalFailure,
    TransientFetchError,
)
from robotforge.models import EventKind, ProgressEvent
from robotforge.pipeline import (
    CallbackSink,
    PipelineOrchestrator,
    PipelineStage,
    decode_input_image,
)
from robotforge.pipeline.orchestrator import STAGE_MESSAGES

PHOTO = b"\xff\xd8\xff\xe0fake-jpeg"


def _messages(events: list[ProgressEvent]) -> list[str]:
    return [e.message for e in events if e.kind is EventKind.PROGRESS]


# ── Happy path ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_full_run_builds_and_stores_record(
    make_orchestrator, happy_mesh_service, repository, text_service, tmp_path: Path,
):
    record = await make_orchestrator(happy_mesh_service).execute(PHOTO)

    assert record.name == "Onigiri Titan"
    assert (record.hp, record.atk, record.defense) == (1200, 45, 30)
    assert Path(record.original_image_path).read_bytes() == PHOTO
    assert Path(record.image_path).read_bytes() == FAKE_PNG
    assert Path(record.model_path).name == "mesh-1_idle.glb"
    assert Path(record.attack_model_path).name == "mesh-1_attack.glb"
    assert Path(record.model_path).read_bytes() == b"glTFhttps://x/idle.glb"
    assert record.generation_time_ms >= 0
    assert repository.list_all() == [record]

    assert text_service.stats_calls == [base64.b64encode(PHOTO).decode()]
    assert text_service.image_prompts == ["white rice armour robot, full body standing"]


@pytest.mark.asyncio
async def test_jobs_are_chained(make_orchestrator, happy_mesh_service):
    await make_orchestrator(happy_mesh_service).execute(PHOTO)

    paths = [path for path, _ in happy_mesh_service.created]
    assert paths == ["/image-to-3d", "/rigging", "/animations", "/animations"]
    mesh_body = happy_mesh_service.created[0][1]
    assert mesh_body["image_url"] == "data:image/png;base64," + base64.b64encode(FAKE_PNG).decode()
    assert mesh_body["enable_pbr"] is True
    assert happy_mesh_service.created[1][1] == {"input_task_id": "mesh-1"}
    action_ids = sorted(body["action_id"] for _, body in happy_mesh_service.created[2:])
    assert action_ids == [0, 92]
    assert all(body["rig_task_id"] == "rig-1" for _, body in happy_mesh_service.created[2:])
    # The base mesh is never downloaded, only the two animations.
    assert happy_mesh_service.downloads == ["https://x/idle.glb", "https://x/attack.glb"]


@pytest.mark.asyncio
async def test_progress_events_in_stage_order(make_orchestrator, happy_mesh_service, events):
    await make_orchestrator(happy_mesh_service).execute(PHOTO)

    messages = _messages(events)
    stage_positions = [messages.index(STAGE_MESSAGES[stage]) for stage in PipelineStage]
    assert stage_positions == sorted(stage_positions)
    assert "Image to 3D Base Model: 40%" in messages
    assert "Rigging Model: 50%" in messages
    assert messages[-1] == "Robot complete: Onigiri Titan"

    kinds = [e.kind for e in events]
    assert kinds.index(EventKind.STATS) < kinds.index(EventKind.IMAGES)
    stats_event = next(e for e in events if e.kind is EventKind.STATS)
    assert stats_event.payload["def"] == 30
    images_event = next(e for e in events if e.kind is EventKind.IMAGES)
    assert images_event.payload["image_path"].endswith("mesh-1_gen.png")


@pytest.mark.asyncio
async def test_accepts_data_uri_input(make_orchestrator, happy_mesh_service):
    data_uri = "data:image/jpeg;base64," + base64.b64encode(PHOTO).decode()
    record = await make_orchestrator(happy_mesh_service).execute(data_uri)
    assert Path(record.original_image_path).read_bytes() == PHOTO


def test_decode_input_image_rejects_garbage():
    with pytest.raises(DecodeError):
        decode_input_image("data:image/png;base64,@@not-base64@@")


@pytest.mark.asyncio
async def test_transient_poll_errors_are_invisible(make_orchestrator, mesh_service, repository):
    mesh_service.script(
        "/image-to-3d", "mesh-1", TransientFetchError("503"), TransientFetchError("timeout"),
        mesh_done(),
    )
    mesh_service.script("/rigging", "rig-1", rig_done())
    mesh_service.script("/animations", "anim-0", anim_done("https://x/idle.glb"))
    mesh_service.script("/animations", "anim-92", anim_done("https://x/attack.glb"))

    await make_orchestrator(mesh_service).execute(PHOTO)
    assert mesh_service.fetch_count("mesh-1") == 3
    assert len(repository.list_all()) == 1


# ── Animation fan-out ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_animations_join_on_slower_branch(make_orchestrator, mesh_service, events):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.script("/rigging", "rig-1", rig_done())
    mesh_service.script("/animations", "anim-0", in_progress(50), anim_done("https://x/idle.glb"))
    mesh_service.script(
        "/animations", "anim-92",
        in_progress(10), in_progress(30), in_progress(60), in_progress(90),
        anim_done("https://x/attack.glb"),
    )

    record = await make_orchestrator(mesh_service).execute(PHOTO)

    assert mesh_service.fetch_count("anim-0") == 2
    assert mesh_service.fetch_count("anim-92") == 5
    last_anim_fetch = max(
        i for i, entry in enumerate(mesh_service.log) if entry.startswith("fetch:anim-")
    )
    first_download = next(
        i for i, entry in enumerate(mesh_service.log) if entry.startswith("download:")
    )
    assert first_download > last_anim_fetch
    # The two branches really interleave.
    anim_fetches = [e for e in mesh_service.log if e.startswith("fetch:anim-")]
    assert anim_fetches[:2] == ["fetch:anim-0", "fetch:anim-92"]

    assert Path(record.model_path).read_bytes() == b"glTFhttps://x/idle.glb"
    assert Path(record.attack_model_path).read_bytes() == b"glTFhttps://x/attack.glb"
    sources = {e.source for e in events if e.source}
    assert sources == {"Idle", "Attack"}
    assert "Applying Animation (Attack): 90%" in _messages(events)


@pytest.mark.asyncio
async def test_one_animation_failure_fails_run_after_both_finish(
    make_orchestrator, mesh_service, repository,
):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.script("/rigging", "rig-1", rig_done())
    mesh_service.script("/animations", "anim-0", failed("idle exploded"))
    mesh_service.script(
        "/animations", "anim-92", in_progress(20), in_progress(70), anim_done("https://x/a.glb"),
    )

    with pytest.raises(TerminalFailure, match="idle exploded"):
        await make_orchestrator(mesh_service).execute(PHOTO)

    # No cross-cancellation: the attack branch ran to its own end.
    assert mesh_service.fetch_count("anim-92") == 3
    assert mesh_service.downloads == []
    assert repository.list_all() == []


@pytest.mark.asyncio
async def test_both_animation_failures_are_reported(make_orchestrator, mesh_service):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.script("/rigging", "rig-1", rig_done())
    mesh_service.script("/animations", "anim-0", failed("idle broke"))
    mesh_service.script("/animations", "anim-92", failed("attack broke"))

    with pytest.raises(TerminalFailure) as exc_info:
        await make_orchestrator(mesh_service).execute(PHOTO)
    assert exc_info.value.remote_message == "idle broke"
    assert any("attack broke" in note for note in exc_info.value.__notes__)


# ── Failures ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_rig_failure_aborts_with_remote_message(
    make_orchestrator, mesh_service, repository, events,
):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.script("/rigging", "rig-1", in_progress(30), failed("input mesh invalid"))

    with pytest.raises(TerminalFailure) as exc_info:
        await make_orchestrator(mesh_service).execute(PHOTO)

    assert exc_info.value.remote_message == "input mesh invalid"
    assert "input mesh invalid" in str(exc_info.value)
    assert repository.list_all() == []
    assert not any(path == "/animations" for path, _ in mesh_service.created)
    assert STAGE_MESSAGES[PipelineStage.ANIMATION] not in _messages(events)


@pytest.mark.asyncio
async def test_failure_log_names_robot_and_jobs(make_orchestrator, mesh_service, caplog):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.script("/rigging", "rig-1", failed("input mesh invalid"))

    with caplog.at_level(logging.ERROR, logger="robotforge.pipeline.orchestrator"):
        with pytest.raises(TerminalFailure):
            await make_orchestrator(mesh_service).execute(PHOTO)

    assert "Pipeline failed for Onigiri Titan" in caplog.text
    assert "jobs: image_to_3d=mesh-1, rigging=rig-1" in caplog.text


@pytest.mark.asyncio
async def test_submit_error_aborts(make_orchestrator, mesh_service, repository):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.submit_errors["/rigging"] = SubmitError(
        "Meshy API error on /rigging: 400 - bad", reason=SubmitReason.SERVICE, status_code=400,
    )
    with pytest.raises(SubmitError):
        await make_orchestrator(mesh_service).execute(PHOTO)
    assert repository.list_all() == []


@pytest.mark.asyncio
async def test_mesh_timeout_names_stage(make_orchestrator, mesh_service, fast_poll):
    mesh_service.script(
        "/image-to-3d", "mesh-1", *[in_progress(10) for _ in range(fast_poll.max_attempts)],
    )
    with pytest.raises(JobTimeout) as exc_info:
        await make_orchestrator(mesh_service).execute(PHOTO)
    assert exc_info.value.label == "Image to 3D"
    assert exc_info.value.handle == "mesh-1"
    assert mesh_service.fetch_count("mesh-1") == fast_poll.max_attempts


@pytest.mark.asyncio
async def test_attack_timeout_names_branch(make_orchestrator, mesh_service, fast_poll):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.script("/rigging", "rig-1", rig_done())
    mesh_service.script("/animations", "anim-0", anim_done("https://x/i.glb"))
    mesh_service.script(
        "/animations", "anim-92", *[in_progress(10) for _ in range(fast_poll.max_attempts)],
    )
    with pytest.raises(JobTimeout) as exc_info:
        await make_orchestrator(mesh_service).execute(PHOTO)
    assert exc_info.value.label == "Animation (Attack)"
    assert exc_info.value.handle == "anim-92"
    assert "Animation (Attack) task anim-92" in str(exc_info.value)


@pytest.mark.asyncio
async def test_idle_failure_names_branch(make_orchestrator, mesh_service):
    mesh_service.script("/image-to-3d", "mesh-1", mesh_done())
    mesh_service.script("/rigging", "rig-1", rig_done())
    mesh_service.script("/animations", "anim-0", failed("no skeleton"))
    mesh_service.script("/animations", "anim-92", anim_done("https://x/a.glb"))
    with pytest.raises(TerminalFailure, match=r"Animation \(Idle\) task failed: no skeleton"):
        await make_orchestrator(mesh_service).execute(PHOTO)


@pytest.mark.asyncio
async def test_malformed_progress_is_decode_error(make_orchestrator, mesh_service, repository):
    mesh_service.script("/image-to-3d", "mesh-1", {"status": "IN_PROGRESS", "progress": "n/a"})
    with pytest.raises(DecodeError, match="Invalid progress"):
        await make_orchestrator(mesh_service).execute(PHOTO)
    assert repository.list_all() == []


@pytest.mark.asyncio
async def test_asset_write_failure_is_asset_error(
    text_service, happy_mesh_service, repository, fast_poll,
):
    class BrokenStore:
        def save(self, data: bytes, name: str) -> Path:
            raise PermissionError("read-only")

    orchestrator = PipelineOrchestrator(
        text_service, happy_mesh_service, BrokenStore(), repository, poll=fast_poll,
    )
    with pytest.raises(AssetError, match="read-only"):
        await orchestrator.execute(PHOTO)
    assert repository.list_all() == []


# ── Sink and cancellation ────────────────────────────────────────


@pytest.mark.asyncio
async def test_broken_sink_never_fails_run(make_orchestrator, happy_mesh_service, repository):
    def explode(event: ProgressEvent) -> None:
        raise RuntimeError("window closed")

    record = await make_orchestrator(happy_mesh_service, sink=CallbackSink(explode)).execute(PHOTO)
    assert repository.list_all() == [record]


@pytest.mark.asyncio
async def test_runs_without_sink(make_orchestrator, happy_mesh_service):
    record = await make_orchestrator(happy_mesh_service, sink=None).execute(PHOTO)
    assert record.name == "Onigiri Titan"


@pytest.mark.asyncio
async def test_cancel_before_start(make_orchestrator, happy_mesh_service, text_service):
    cancel = asyncio.Event()
    cancel.set()
    with pytest.raises(PipelineCancelled):
        await make_orchestrator(happy_mesh_service).execute(PHOTO, cancel=cancel)
    assert text_service.stats_calls == []


@pytest.mark.asyncio
async def test_cancel_during_polling(make_orchestrator, mesh_service, repository):
    cancel = asyncio.Event()
    mesh_service.script("/image-to-3d", "mesh-1", in_progress(10), in_progress(20), mesh_done())

    def on_event(event: ProgressEvent) -> None:
        if event.percent == 10:
            cancel.set()

    orchestrator = make_orchestrator(mesh_service, sink=CallbackSink(on_event))
    with pytest.raises(PipelineCancelled):
        await orchestrator.execute(PHOTO, cancel=cancel)
    assert mesh_service.fetch_count("mesh-1") == 1
    assert repository.list_all() == []
