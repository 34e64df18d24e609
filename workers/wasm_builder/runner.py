"""
Pipeline runner — top-level orchestration: crate → .wasm + .wat.

Stages run strictly in order, each consuming only the previous stage's
output plus fixed configuration:

    preconditions → resolve → assemble → build → optimize → finalize

The state travels in an explicit ``PipelineState`` value; every stage
returns a new state.  The first error aborts the run.
"""
import logging
import shutil
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, List, Optional

from wasm_builder.config import BuilderSettings
from wasm_builder.core.build import BuildArtifact, invoke
from wasm_builder.core.finalize import FinalArtifact, finalize
from wasm_builder.core.optimize import optimize
from wasm_builder.core.preconditions import check_tools
from wasm_builder.core.toolchain import EnsureOutcome, ensure_target, read_toolchain_version, resolve
from wasm_builder.core.toolrun import CommandResult, ToolRunner
from wasm_builder.errors import FinalizeError, WasmBuilderError
from wasm_builder.io.schema import (
    ArtifactMeta,
    BuildReceipt,
    FeatureEntry,
    FinalArtifactMeta,
    FlagsInfo,
    PassGroupEntry,
    PhaseStatus,
    PlanInfo,
    RunStatus,
    ToolchainInfo,
    ToolPhase,
    now_iso,
)
from wasm_builder.io.writer import write_receipt
from wasm_builder.policy.flags import FlagBlob, assemble
from wasm_builder.policy.plan import OptimizationPlan
from wasm_builder.policy.profile import TargetProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineState:
    """Everything produced so far; later fields stay None until their stage runs."""
    profile: Optional[TargetProfile] = None
    registration: Optional[EnsureOutcome] = None
    flags: Optional[FlagBlob] = None
    plan: Optional[OptimizationPlan] = None
    raw: Optional[BuildArtifact] = None
    optimized: Optional[BuildArtifact] = None
    final: Optional[FinalArtifact] = None


# ── Stages ───────────────────────────────────────────────────────────────────

def stage_resolve(state: PipelineState, runner: ToolRunner) -> PipelineState:
    profile = resolve(read_toolchain_version(runner))
    logger.info("rust version: %s", profile.installed)
    logger.info("      target: %s (channel %s)", profile.target, profile.channel)
    registration = ensure_target(profile, runner)
    return replace(state, profile=profile, registration=registration)


def stage_assemble(state: PipelineState) -> PipelineState:
    blob = assemble(state.profile)
    plan = OptimizationPlan.for_features(state.profile.features)
    return replace(state, flags=blob, plan=plan)


def stage_build(
    state: PipelineState, settings: BuilderSettings, runner: ToolRunner
) -> PipelineState:
    raw = invoke(state.profile, state.flags, settings, runner)
    return replace(state, raw=raw)


def stage_optimize(
    state: PipelineState, settings: BuilderSettings, runner: ToolRunner
) -> PipelineState:
    optimized = optimize(state.raw, state.plan.features, settings, runner)
    return replace(state, optimized=optimized)


def stage_finalize(
    state: PipelineState, settings: BuilderSettings, runner: ToolRunner
) -> PipelineState:
    final = finalize(state.optimized, settings, runner)
    return replace(state, final=final)


# ── Receipt ──────────────────────────────────────────────────────────────────

def _artifact_meta(artifact: BuildArtifact) -> ArtifactMeta:
    return ArtifactMeta(
        path=artifact.filepath,
        sha256=artifact.sha256,
        size_bytes=artifact.size_bytes,
        debug_sections=artifact.debug_sections,
    )


def build_receipt(
    state: PipelineState,
    history: List[CommandResult],
    started_at: str,
    error: Optional[WasmBuilderError] = None,
) -> BuildReceipt:
    """Assemble a receipt from whatever stages completed."""
    receipt = BuildReceipt(
        status=RunStatus.FAILED if error else RunStatus.SUCCESS,
        started_at=started_at,
        finished_at=now_iso(),
        error=error.render() if error else None,
        phases=[
            ToolPhase(
                command=r.command,
                exit_code=r.exit_code,
                duration_ms=r.duration_ms,
                status=PhaseStatus.SUCCESS if r.ok else PhaseStatus.FAILED,
            )
            for r in history
        ],
    )

    if state.profile is not None:
        receipt.toolchain = ToolchainInfo(
            version=str(state.profile.installed),
            prerelease=state.profile.installed.prerelease,
            target=state.profile.target,
            channel=state.profile.channel,
            legacy=state.profile.legacy,
            stack_size=state.profile.stack_size,
            memory_linkage=state.profile.memory_linkage.value,
            target_registration=state.registration.value if state.registration else None,
        )
    if state.flags is not None:
        receipt.flags = FlagsInfo(
            rustflags=state.flags.flags,
            features=[
                FeatureEntry(
                    name=f.name,
                    enabled=f.enabled,
                    rustc_name=f.rustc_name,
                    wasm_opt_name=f.wasm_opt_name,
                )
                for f in state.flags.features.features
            ],
        )
    if state.plan is not None:
        receipt.plan = PlanInfo(
            opt_level=state.plan.opt_level,
            groups=[PassGroupEntry(name=g.name, flags=list(g.flags)) for g in state.plan.groups],
            feature_flags=state.plan.features.wasm_opt_flags(),
        )
    if state.raw is not None:
        receipt.raw = _artifact_meta(state.raw)
    if state.optimized is not None:
        receipt.optimized = _artifact_meta(state.optimized)
    if state.final is not None:
        receipt.final = FinalArtifactMeta(
            wasm_path=state.final.wasm_path,
            wat_path=state.final.wat_path,
            size_bytes=state.final.size_bytes,
            sha256=state.final.sha256,
            md5=state.final.md5,
            custom_sections=state.final.custom_sections,
            roundtrip_verified=state.final.roundtrip_verified,
        )
    return receipt


# ── Orchestration ────────────────────────────────────────────────────────────

def run_pipeline(
    settings: Optional[BuilderSettings] = None,
    runner: Optional[ToolRunner] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> PipelineState:
    """
    Run every stage and return the final state.

    Parameters
    ----------
    settings : BuilderSettings, optional
        Defaults to settings read from the environment.
    runner : ToolRunner, optional
        Defaults to a runner rooted at the cargo workspace.
    which : callable
        PATH lookup used by the precondition checks.

    Raises
    ------
    WasmBuilderError
        The first failure, unmodified.  Nothing is retried.
    """
    if settings is None:
        settings = BuilderSettings()
    if runner is None:
        runner = ToolRunner(cwd=settings.workspace)

    started_at = now_iso()
    state = PipelineState()
    try:
        check_tools(which=which)
        state = stage_resolve(state, runner)
        state = stage_assemble(state)
        state = stage_build(state, settings, runner)
        state = stage_optimize(state, settings, runner)
        state = stage_finalize(state, settings, runner)
    except WasmBuilderError as e:
        if settings.RECEIPT_PATH:
            try:
                write_receipt(
                    build_receipt(state, runner.history, started_at, error=e),
                    Path(settings.RECEIPT_PATH),
                )
            except OSError:
                # The pipeline error is the one the caller must see
                logger.exception("could not write failure receipt to %s", settings.RECEIPT_PATH)
        raise

    if settings.RECEIPT_PATH:
        try:
            path = write_receipt(
                build_receipt(state, runner.history, started_at),
                Path(settings.RECEIPT_PATH),
            )
        except OSError as e:
            raise FinalizeError(f"could not write receipt {settings.RECEIPT_PATH}: {e}") from e
        logger.info("receipt written to %s", path)
    return state


def main() -> int:
    """No-argument entry point; returns the process exit status."""
    settings = BuilderSettings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        state = run_pipeline(settings)
    except WasmBuilderError as e:
        print(e.render(), file=sys.stderr)
        return e.exit_code

    final = state.final
    print(f"{final.size_bytes} {final.wasm_path}")
    print(f"{final.md5}  {final.wasm_path}")
    print(f"sha256: {final.sha256}")
    print("\nSuccess !!!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
