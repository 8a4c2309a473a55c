"""End-to-end pipeline: photo -> stats -> concept image -> mesh -> rig -> animations -> record."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from robotforge.config import AnimationSettings, PollSettings
from robotforge.errors import AssetError, DecodeError, PipelineCancelled, PipelineError
from robotforge.jobs import RemoteJobClient, StageAdapters, image_data_uri
from robotforge.models import EventKind, JobKind, ProgressEvent, RobotRecord
from robotforge.pipeline.progress import emit

if TYPE_CHECKING:
    from pathlib import Path

    from robotforge.backend.base import MeshService, ProgressCallback, TextImageService
    from robotforge.models import RobotStats
    from robotforge.pipeline.progress import ProgressSink
    from robotforge.storage import AssetMaterializer, ResultRepository

logger = logging.getLogger(__name__)


class PipelineStage(StrEnum):
    STAT_GENERATION = "stat_generation"
    CONCEPT_IMAGE = "concept_image_generation"
    MESH_GENERATION = "mesh_generation"
    RIGGING = "rigging"
    ANIMATION = "animation"
    ASSET_DOWNLOAD = "asset_download"
    RECORD_ASSEMBLY = "record_assembly"


STAGE_MESSAGES: dict[PipelineStage, str] = {
    PipelineStage.STAT_GENERATION: "Analyzing photo and generating stats...",
    PipelineStage.CONCEPT_IMAGE: "Generating robot concept image...",
    PipelineStage.MESH_GENERATION: "Submitting 3D Generation Task to Meshy...",
    PipelineStage.RIGGING: "Creating Rigging task...",
    PipelineStage.ANIMATION: "Creating Animation tasks (Idle and Attack)...",
    PipelineStage.ASSET_DOWNLOAD: "Downloading animated models...",
    PipelineStage.RECORD_ASSEMBLY: "Saving robot...",
}


@dataclass
class PipelineRun:
    """In-memory state of one execution. Never persisted."""

    stats: RobotStats | None = None
    concept_image: bytes = b""
    jobs: list[tuple[JobKind, str]] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None

    def describe_jobs(self) -> str:
        return ", ".join(f"{kind.value}={handle}" for kind, handle in self.jobs) or "none"

    @property
    def elapsed_ms(self) -> int:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return int((end - self.started_at) * 1000)


def decode_input_image(image: bytes | str) -> bytes:
    """Accept raw bytes, plain base64, or a ``data:...;base64,`` URI."""
    if isinstance(image, bytes):
        return image
    encoded = image.rsplit(",", 1)[-1].strip()
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        msg = f"Input image is not valid base64: {exc}"
        raise DecodeError(msg) from exc


class PipelineOrchestrator:
    """Runs one photo through every stage and stores the finished robot.

    Stages run strictly in order except the two animation jobs, which are
    submitted and polled concurrently and joined before downloads start.
    Any stage failure aborts the run; remote jobs and files already created
    are left in place and no record is stored.
    """

    def __init__(
        self,
        text_service: TextImageService,
        mesh_service: MeshService,
        materializer: AssetMaterializer,
        repository: ResultRepository,
        *,
        sink: ProgressSink | None = None,
        poll: PollSettings | None = None,
        animation: AnimationSettings | None = None,
        enable_pbr: bool = True,
    ) -> None:
        self.text_service = text_service
        self.mesh_service = mesh_service
        self.materializer = materializer
        self.repository = repository
        self.sink = sink
        self.animation = animation or AnimationSettings()
        self.enable_pbr = enable_pbr

        adapters = StageAdapters(poll or PollSettings())
        self._mesh_jobs = RemoteJobClient(mesh_service, adapters.mesh)
        self._rig_jobs = RemoteJobClient(mesh_service, adapters.rigging)
        self._animation_jobs = RemoteJobClient(mesh_service, adapters.animation)

    async def execute(
        self,
        image: bytes | str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> RobotRecord:
        """Run the full pipeline for *image* and return the stored record.

        Raises
        ------
        PipelineError
            On any stage failure, timeout, or cancellation.
        """
        run = PipelineRun()
        try:
            record = await self._execute(run, decode_input_image(image), cancel)
        except PipelineError as exc:
            logger.error(
                "Pipeline failed for %s after %d ms (jobs: %s): %s",
                run.stats.name if run.stats else "unnamed robot",
                run.elapsed_ms, run.describe_jobs(), exc,
            )
            raise
        logger.info("Pipeline finished in %d ms: %s", record.generation_time_ms, record.id)
        return record

    async def _execute(
        self,
        run: PipelineRun,
        original: bytes,
        cancel: asyncio.Event | None,
    ) -> RobotRecord:
        self._enter(PipelineStage.STAT_GENERATION, cancel)
        stats = await self.text_service.generate_stats(base64.b64encode(original).decode("ascii"))
        run.stats = stats
        emit(self.sink, ProgressEvent(
            kind=EventKind.STATS,
            message=f"Stats ready: {stats.name}",
            payload=stats.model_dump(by_alias=True),
        ))

        self._enter(PipelineStage.CONCEPT_IMAGE, cancel)
        run.concept_image = await self.text_service.generate_image(stats.visual_description)

        self._enter(PipelineStage.MESH_GENERATION, cancel)
        mesh_id = await self._mesh_jobs.submit(
            image_url=image_data_uri(run.concept_image), enable_pbr=self.enable_pbr,
        )
        run.jobs.append((self._mesh_jobs.kind, mesh_id))
        # Only completion matters; the un-animated base mesh is never downloaded.
        await self._mesh_jobs.wait(
            mesh_id,
            on_progress=self._reporter("Image to 3D Base Model"),
            cancel=cancel,
        )

        original_path = self._save(original, f"{mesh_id}_original.png")
        image_path = self._save(run.concept_image, f"{mesh_id}_gen.png")
        emit(self.sink, ProgressEvent(
            kind=EventKind.IMAGES,
            message="Images saved",
            payload={"original_image_path": str(original_path), "image_path": str(image_path)},
        ))

        self._enter(PipelineStage.RIGGING, cancel)
        rig_id = await self._rig_jobs.submit(input_task_id=mesh_id)
        run.jobs.append((self._rig_jobs.kind, rig_id))
        await self._rig_jobs.wait(
            rig_id, on_progress=self._reporter("Rigging Model"), cancel=cancel,
        )

        self._enter(PipelineStage.ANIMATION, cancel)
        idle_url, attack_url = await self._animate_both(run, rig_id, cancel)

        self._enter(PipelineStage.ASSET_DOWNLOAD, cancel)
        idle_path = self._save(await self.mesh_service.download(idle_url), f"{mesh_id}_idle.glb")
        attack_path = self._save(
            await self.mesh_service.download(attack_url), f"{mesh_id}_attack.glb",
        )

        self._enter(PipelineStage.RECORD_ASSEMBLY, cancel)
        run.finished_at = time.monotonic()
        record = RobotRecord(
            id=str(uuid.uuid4()),
            name=stats.name,
            lore=stats.lore,
            hp=stats.hp,
            atk=stats.atk,
            defense=stats.defense,
            original_image_path=str(original_path),
            image_path=str(image_path),
            model_path=str(idle_path),
            attack_model_path=str(attack_path),
            created_at=int(time.time()),
            generation_time_ms=run.elapsed_ms,
        )
        self.repository.insert(record)
        emit(self.sink, ProgressEvent.text(f"Robot complete: {record.name}", percent=100))
        return record

    async def _animate_both(
        self,
        run: PipelineRun,
        rig_id: str,
        cancel: asyncio.Event | None,
    ) -> tuple[str, str]:
        """Fan out the idle and attack jobs and join on both.

        Both branches always run to their own end; a failure in one does not
        cancel the other. If either failed, the first failure is raised.
        """
        branches = (
            ("Idle", self.animation.idle_action_id),
            ("Attack", self.animation.attack_action_id),
        )
        results = await asyncio.gather(
            *(self._animate(run, rig_id, name, action, cancel) for name, action in branches),
            return_exceptions=True,
        )

        failures: list[BaseException] = []
        for (name, _), result in zip(branches, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("%s animation failed: %s", name, result)
                failures.append(result)
        if failures:
            first = failures[0]
            for other in failures[1:]:
                first.add_note(f"Also failed: {other}")
            raise first

        idle_url, attack_url = results
        return str(idle_url), str(attack_url)

    async def _animate(
        self,
        run: PipelineRun,
        rig_id: str,
        name: str,
        action_id: int,
        cancel: asyncio.Event | None,
    ) -> str:
        handle = await self._animation_jobs.submit(rig_task_id=rig_id, action_id=action_id)
        run.jobs.append((self._animation_jobs.kind, handle))
        return await self._animation_jobs.wait(
            handle,
            label=f"{self._animation_jobs.label} ({name})",
            on_progress=self._reporter(f"Applying Animation ({name})", source=name),
            cancel=cancel,
        )

    def _enter(self, stage: PipelineStage, cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            msg = f"Cancelled before {stage.value}"
            raise PipelineCancelled(msg)
        logger.info("Stage: %s", stage.value)
        emit(self.sink, ProgressEvent.text(STAGE_MESSAGES[stage]))

    def _reporter(self, label: str, *, source: str | None = None) -> ProgressCallback:
        def report(percent: int) -> None:
            event = ProgressEvent.text(f"{label}: {percent}%", source=source, percent=percent)
            emit(self.sink, event)

        return report

    def _save(self, data: bytes, name: str) -> Path:
        try:
            return self.materializer.save(data, name)
        except OSError as exc:
            msg = f"Failed to write asset {name}: {exc}"
            raise AssetError(msg) from exc
