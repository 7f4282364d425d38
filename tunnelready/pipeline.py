from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from .errors import PollTimeoutError, is_retryable, unwrap

logger = logging.getLogger(__name__)


class PipelineState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class FailureKind(enum.Enum):
    """
    Why a stage failed.

    ``EXHAUSTED`` is the retrier's form of a timeout: the operation kept
    raising retryable errors until its attempts or duration budget ran out, and
    the last of those errors is re-raised instead of a ``TimeoutError``.
    """

    TIMEOUT = "timeout"
    ASSERTION = "assertion"
    EXHAUSTED = "exhausted"
    TERMINAL = "terminal"

    @property
    def timed_out(self) -> bool:
        return self in (FailureKind.TIMEOUT, FailureKind.EXHAUSTED)

    @property
    def label(self) -> str:
        if self is FailureKind.EXHAUSTED:
            return "exhausted, retry budget ran out"
        return self.value


def classify(err: BaseException) -> FailureKind:
    if isinstance(err, AssertionError):
        return FailureKind.ASSERTION
    if isinstance(err, TimeoutError):
        return FailureKind.TIMEOUT
    if is_retryable(err):
        return FailureKind.EXHAUSTED
    return FailureKind.TERMINAL


@dataclass(frozen=True)
class Stage:
    name: str
    execute: Callable[[Mapping[str, Any]], Any]
    diagnose: Callable[[], str] | None = None


@dataclass(frozen=True)
class StageResult:
    name: str
    value: Any
    elapsed: float


@dataclass
class PipelineReport:
    results: list[StageResult] = field(default_factory=list)
    elapsed: float = 0.0

    def __getitem__(self, name: str) -> Any:
        for result in self.results:
            if result.name == name:
                return result.value
        raise KeyError(name)

    @property
    def stage_names(self) -> list[str]:
        return [result.name for result in self.results]


class StageFailure(Exception):
    def __init__(
        self,
        stage: str,
        cause: BaseException,
        kind: FailureKind | None = None,
        diagnostics: str | None = None,
    ):
        self.stage = stage
        self.cause = cause
        self.kind = kind or classify(cause)
        self.diagnostics = diagnostics
        super().__init__(self._render())

    @property
    def last_error(self) -> BaseException:
        if isinstance(self.cause, PollTimeoutError) and self.cause.last_error is not None:
            return unwrap(self.cause.last_error)
        return unwrap(self.cause)

    def _render(self) -> str:
        lines = [f"stage {self.stage!r} failed ({self.kind.label}): {self.cause}"]
        last_error = self.last_error
        if last_error is not self.cause:
            lines.append(f"last error: {last_error}")
        if self.diagnostics:
            lines.append(f"DIAGNOSTICS:\n{self.diagnostics}")
        return "\n".join(lines)


class ReadinessPipeline:
    def __init__(
        self,
        stages: Iterable[Stage],
        *,
        guard: Callable[[], None] | None = None,
        overall_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stages = list(stages)
        names = [stage.name for stage in self.stages]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate stage names: {names}")
        self.guard = guard
        self.overall_timeout = overall_timeout
        self._clock = clock
        self.state = PipelineState.PENDING
        self.current_stage: str | None = None

    def run(self) -> PipelineReport:
        if self.state is not PipelineState.PENDING:
            raise RuntimeError(f"Pipeline already ran (state={self.state.value})")
        started = self._clock()
        report = PipelineReport()
        results: dict[str, Any] = {}
        for stage in self.stages:
            self.state = PipelineState.RUNNING
            self.current_stage = stage.name
            self._check_boundary(stage, started)
            logger.info("stage %s: started", stage.name)
            stage_started = self._clock()
            try:
                value = stage.execute(results)
            except Exception as exc:
                self._fail(stage, exc)
            elapsed = self._clock() - stage_started
            logger.info("stage %s: done in %.1fs", stage.name, elapsed)
            results[stage.name] = value
            report.results.append(StageResult(stage.name, value, elapsed))
        self.state = PipelineState.DONE
        self.current_stage = None
        report.elapsed = self._clock() - started
        return report

    def _check_boundary(self, stage: Stage, started: float) -> None:
        if self.overall_timeout is not None and self._clock() - started >= self.overall_timeout:
            self._fail(
                stage,
                TimeoutError(f"overall deadline of {self.overall_timeout:g}s passed before stage {stage.name!r}"),
                diagnose=False,
            )
        if self.guard is not None:
            try:
                self.guard()
            except Exception as exc:
                self._fail(stage, exc, diagnose=False)

    def _fail(self, stage: Stage, exc: Exception, *, diagnose: bool = True) -> None:
        self.state = PipelineState.FAILED
        diagnostics = _collect_diagnostics(stage) if diagnose else None
        failure = StageFailure(stage.name, exc, diagnostics=diagnostics)
        logger.warning("stage %s: failed (%s): %s", stage.name, failure.kind.value, exc)
        raise failure from exc


def _collect_diagnostics(stage: Stage) -> str | None:
    if stage.diagnose is None:
        return None
    try:
        return stage.diagnose()
    except Exception as exc:
        return f"<diagnostics unavailable: {exc}>"
