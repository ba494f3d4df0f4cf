"""
Setup pipeline: step descriptors, the runner and the host capability.

Public API::

    from homelab_setup.pipeline import StepPipeline, HostSystem, default_steps

    pipeline = StepPipeline(default_steps(), config, markers, HostSystem(), reporter)
    pipeline.run_all(skip={"wireguard"})
"""

from homelab_setup.pipeline.base import (
    PipelineResult,
    PipelineStatus,
    RecordedWarning,
    Step,
    StepContext,
    StepProgress,
    StepResult,
    StepStatus,
)
from homelab_setup.pipeline.registry import STEP_ORDER, default_steps
from homelab_setup.pipeline.runner import StepPipeline
from homelab_setup.pipeline.system import HostSystem, SystemCapability

__all__ = [
    "StepPipeline",
    "Step",
    "StepContext",
    "StepStatus",
    "StepResult",
    "StepProgress",
    "PipelineResult",
    "PipelineStatus",
    "RecordedWarning",
    "HostSystem",
    "SystemCapability",
    "default_steps",
    "STEP_ORDER",
]
