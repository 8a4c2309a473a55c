"""RobotForge generation pipeline - orchestrates the remote jobs."""

from robotforge.pipeline.orchestrator import (
    PipelineOrchestrator,
    PipelineRun,
    PipelineStage,
    decode_input_image,
)
from robotforge.pipeline.progress import (
    CallbackSink,
    LoggingSink,
    NullSink,
    ProgressSink,
    QueueSink,
    emit,
)
from robotforge.pipeline.stats import extract_stats, parse_stats

__all__ = [
    "CallbackSink",
    "LoggingSink",
    "NullSink",
    "PipelineOrchestrator",
    "PipelineRun",
    "PipelineStage",
    "ProgressSink",
    "QueueSink",
    "decode_input_image",
    "emit",
    "extract_stats",
    "parse_stats",
]
