"""Exception hierarchy for wasm_builder.

One class per failure family of the pipeline:
- MissingToolError: a companion tool is not on PATH (precondition)
- VersionParseError / TargetInstallError: toolchain resolution failed
- BuildError: cargo/rustc rejected the crate
- OptimizeError: wasm-opt failed
- FinalizeError: strip, render, verify or write of the final artifacts failed

Every error is fatal to the run.  Tool diagnostics are kept verbatim in
``detail`` so the entry point can pass them through unmodified.
"""

from __future__ import annotations


class WasmBuilderError(Exception):
    """Base exception for the pipeline.

    Args:
        message: Human-readable summary naming the failed check.
        detail: Verbatim diagnostic text from the failing tool, if any.
    """

    exit_code = 1

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def render(self) -> str:
        """Message plus diagnostic, as written to stderr."""
        if self.detail:
            return f"ERROR - {self.message}\n{self.detail.rstrip()}"
        return f"ERROR - {self.message}"


class MissingToolError(WasmBuilderError):
    """A required companion tool is not installed."""

    exit_code = 2

    def __init__(self, tool: str, install_hint: str) -> None:
        super().__init__(
            f"'{tool}' is not installed. Please install it by running:\n"
            f"    {install_hint}"
        )
        self.tool = tool
        self.install_hint = install_hint


class VersionParseError(WasmBuilderError):
    """The toolchain version string is not ``major.minor.patch[-pre]``."""

    exit_code = 3

    def __init__(self, raw: str) -> None:
        super().__init__(
            f"cannot parse toolchain version {raw!r}: "
            "expected 'major.minor.patch[-prerelease]'"
        )
        self.raw = raw


class TargetInstallError(WasmBuilderError):
    """The compilation target could not be registered with rustup."""

    exit_code = 3


class BuildError(WasmBuilderError):
    """The compiler failed; ``detail`` holds its diagnostics verbatim."""

    exit_code = 4


class OptimizeError(WasmBuilderError):
    """The optimizer failed; ``detail`` holds its diagnostics verbatim."""

    exit_code = 5


class FinalizeError(WasmBuilderError):
    """Stripping, rendering, verifying or writing the final artifacts failed."""

    exit_code = 6
