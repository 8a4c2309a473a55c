"""Shared fixtures for RobotForge tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fakes import FakeTextService, ScriptedMeshService, anim_done, in_progress, mesh_done, rig_done

from robotforge.config import AnimationSettings, PollSettings
from robotforge.models import RobotStats
from robotforge.pipeline import CallbackSink, PipelineOrchestrator
from robotforge.storage import FileAssetStore, RobotRepository


@pytest.fixture
def fast_poll() -> PollSettings:
    return PollSettings(mesh_interval=0, rigging_interval=0, animation_interval=0, max_attempts=10)


@pytest.fixture
def sample_stats() -> RobotStats:
    return RobotStats(
        name="Onigiri Titan",
        lore="A rice-armoured siege unit from Oishii Industries.",
        hp=1200,
        atk=45,
        defense=30,
        visual_description="white rice armour robot, full body standing",
    )


@pytest.fixture
def mesh_service() -> ScriptedMeshService:
    return ScriptedMeshService()


@pytest.fixture
def happy_mesh_service(mesh_service: ScriptedMeshService) -> ScriptedMeshService:
    mesh_service.script("/image-to-3d", "mesh-1", in_progress(40), mesh_done())
    mesh_service.script("/rigging", "rig-1", in_progress(50), rig_done())
    mesh_service.script("/animations", "anim-0", anim_done("https://x/idle.glb"))
    mesh_service.script("/animations", "anim-92", anim_done("https://x/attack.glb"))
    return mesh_service


@pytest.fixture
def text_service(sample_stats: RobotStats) -> FakeTextService:
    return FakeTextService(sample_stats)


@pytest.fixture
def repository():
    repo = RobotRepository(":memory:")
    yield repo
    repo.close()


@pytest.fixture
def asset_store(tmp_path: Path) -> FileAssetStore:
    return FileAssetStore(tmp_path / "assets")


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def make_orchestrator(text_service, asset_store, repository, fast_poll, events):
    def _make(service: ScriptedMeshService, **kwargs: Any) -> PipelineOrchestrator:
        kwargs.setdefault("sink", CallbackSink(events.append))
        return PipelineOrchestrator(
            text_service,
            service,
            asset_store,
            repository,
            poll=fast_poll,
            animation=AnimationSettings(),
            **kwargs,
        )

    return _make
