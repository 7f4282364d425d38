from __future__ import annotations

import logging
import subprocess
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutcome:
    rc: int
    stdout: str
    stderr: str


class BackgroundCommandError(RuntimeError):
    def __init__(self, command: Sequence[str], outcome: CommandOutcome):
        self.command = list(command)
        self.outcome = outcome
        super().__init__(
            f"Background command {' '.join(self.command)} exited early (exit {outcome.rc}).\n"
            f"STDOUT:\n{outcome.stdout}\nSTDERR:\n{outcome.stderr}"
        )


class BackgroundCommand:
    """
    A long-lived process started next to the verification flow.

    Its outcome is published through ``outcome`` (a Future) once the process
    exits, so an early exit is observed by ``check()`` instead of being lost.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ):
        self.command = list(command)
        self.cwd = cwd
        self.env = dict(env) if env is not None else None
        self.outcome: Future[CommandOutcome] = Future()
        self._process: subprocess.Popen | None = None
        self._stopping = False

    def start(self) -> "BackgroundCommand":
        if self._process is not None:
            raise RuntimeError(f"{self.command[0]} already started")
        logger.info("starting background command: %s", " ".join(self.command))
        process = subprocess.Popen(
            self.command,
            cwd=self.cwd,
            env=self.env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
        if process.stdout is None or process.stderr is None:
            raise RuntimeError("Failed to capture process output.")
        self._process = process

        stdout_buffer: list[str] = []
        stderr_buffer: list[str] = []

        def _reader(pipe, buffer):
            with pipe:
                for line in iter(pipe.readline, ""):
                    buffer.append(line)

        readers = [
            threading.Thread(target=_reader, args=(process.stdout, stdout_buffer), daemon=True),
            threading.Thread(target=_reader, args=(process.stderr, stderr_buffer), daemon=True),
        ]
        for thread in readers:
            thread.start()

        def _waiter():
            returncode = process.wait()
            for thread in readers:
                thread.join()
            outcome = CommandOutcome(returncode, "".join(stdout_buffer), "".join(stderr_buffer))
            if not self._stopping:
                logger.warning("background command %s exited with code %d", self.command[0], returncode)
            self.outcome.set_result(outcome)

        threading.Thread(target=_waiter, daemon=True).start()
        return self

    @property
    def running(self) -> bool:
        return self._process is not None and not self.outcome.done()

    def check(self) -> None:
        """Raise BackgroundCommandError if the process exited on its own."""
        if self._process is None:
            raise RuntimeError(f"{self.command[0]} was never started")
        if self.outcome.done() and not self._stopping:
            raise BackgroundCommandError(self.command, self.outcome.result())

    def stop(self, timeout: float = 10.0) -> CommandOutcome:
        if self._process is None:
            raise RuntimeError(f"{self.command[0]} was never started")
        self._stopping = True
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("background command %s ignored SIGTERM, killing", self.command[0])
                self._process.kill()
        return self.outcome.result(timeout=timeout)

    def __enter__(self) -> "BackgroundCommand":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()
