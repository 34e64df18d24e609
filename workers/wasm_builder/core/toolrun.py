"""
Tool runner — the one place that spawns external processes.

Every stage talks to cargo, rustup, wasm-opt and wasm-tools through a
``ToolRunner``.  Each call is synchronous, never retried and has no
timeout.  Tests substitute a runner that emulates the tools.
"""
import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# Pinned for any tool that embeds wall-clock or locale-sensitive metadata
SOURCE_DATE_EPOCH = "1600000000"
REPRODUCIBLE_ENV: Dict[str, str] = {
    "SOURCE_DATE_EPOCH": SOURCE_DATE_EPOCH,
    "TZ": "UTC",
    "LC_ALL": "C",
}


@dataclass
class CommandResult:
    """Outcome of one tool invocation."""
    argv: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command(self) -> str:
        return " ".join(self.argv)

    @property
    def diagnostic(self) -> str:
        """What the tool said about its failure (stderr, else stdout)."""
        return self.stderr if self.stderr.strip() else self.stdout


def reproducible_env(
    extra: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Process environment with the reproducibility variables pinned."""
    env = dict(os.environ if base is None else base)
    env.update(REPRODUCIBLE_ENV)
    if extra:
        env.update(extra)
    return env


@dataclass
class ToolRunner:
    """Runs commands with the pinned environment and records each call."""

    cwd: Path = field(default_factory=Path.cwd)
    history: List[CommandResult] = field(default_factory=list)

    def run(
        self,
        argv: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """Execute *argv*; *env* entries are layered over the pinned environment."""
        argv = [str(a) for a in argv]
        logger.debug("exec: %s", " ".join(argv))

        t0 = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                cwd=str(self.cwd),
                env=reproducible_env(env),
                capture_output=True,
                text=True,
            )
            exit_code, stdout, stderr = proc.returncode, proc.stdout, proc.stderr
        except OSError as e:
            exit_code, stdout, stderr = -1, "", f"{argv[0]}: {e}"
        duration = int((time.monotonic() - t0) * 1000)

        result = CommandResult(
            argv=argv,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            duration_ms=duration,
        )
        self.history.append(result)
        logger.info("%s → exit %d (%d ms)", argv[0], exit_code, duration)
        return result
