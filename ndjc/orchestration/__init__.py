"""Pipeline orchestration."""

from .pipeline import E_CRITICAL_ANCHORS_UNCHANGED, NDJCPipeline, PipelineResult, render_summary, run_pipeline

__all__ = ["E_CRITICAL_ANCHORS_UNCHANGED", "NDJCPipeline", "PipelineResult", "render_summary", "run_pipeline"]
