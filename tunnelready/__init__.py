from .errors import (
    PayloadMismatchError,
    PollTimeoutError,
    RetryableError,
    is_retryable,
    mark_retryable,
    unwrap,
)
from .wait import PollConfig, poll_immediate
from .retry import BackoffConfig, backoff_delays, retry_expo
from .pipeline import (
    FailureKind,
    PipelineReport,
    PipelineState,
    ReadinessPipeline,
    Stage,
    StageFailure,
    StageResult,
)
from .background import BackgroundCommand, BackgroundCommandError, CommandOutcome
from .config import TunnelCheckConfig
from .fetch import fetch_body
from .kube import KubeClient, KubectlError
from .tunnel import build_pipeline, verify_tunnel

__all__ = [
    # errors
    "PayloadMismatchError",
    "PollTimeoutError",
    "RetryableError",
    "is_retryable",
    "mark_retryable",
    "unwrap",
    # waiting
    "PollConfig",
    "poll_immediate",
    "BackoffConfig",
    "backoff_delays",
    "retry_expo",
    # pipeline
    "FailureKind",
    "PipelineReport",
    "PipelineState",
    "ReadinessPipeline",
    "Stage",
    "StageFailure",
    "StageResult",
    # collaborators
    "BackgroundCommand",
    "BackgroundCommandError",
    "CommandOutcome",
    "KubeClient",
    "KubectlError",
    "fetch_body",
    # tunnel verification
    "TunnelCheckConfig",
    "build_pipeline",
    "verify_tunnel",
]
