"""Dependency resolution, planning, execution and orchestration."""

from toolrelay.orchestration.executor import ToolExecutor, classify_error, validate_arguments
from toolrelay.orchestration.machine import OrchestrationState, OrchestrationStateMachine
from toolrelay.orchestration.orchestrator import ToolOrchestrator
from toolrelay.orchestration.planner import ChainPlan, ChainPlanner, PlannedTool
from toolrelay.orchestration.resolver import DependencyResolver, Resolution, evaluate_path
from toolrelay.orchestration.runs import RunStatus, RunTracker, ToolRun, merge_user_input

__all__ = [
    "ChainPlan",
    "ChainPlanner",
    "DependencyResolver",
    "OrchestrationState",
    "OrchestrationStateMachine",
    "PlannedTool",
    "Resolution",
    "RunStatus",
    "RunTracker",
    "ToolExecutor",
    "ToolOrchestrator",
    "ToolRun",
    "classify_error",
    "evaluate_path",
    "merge_user_input",
    "validate_arguments",
]
