"""
Optimize — run the fixed wasm-opt plan over the raw artifact.

One wasm-opt invocation applies every pass group exactly once, in
plan order, under the same feature set the compiler was given.
A failure aborts the run; there is no fallback to the raw binary.
"""
import logging
from pathlib import Path

from wasm_builder.config import BuilderSettings
from wasm_builder.core.build import BuildArtifact, describe_artifact
from wasm_builder.core.toolrun import ToolRunner
from wasm_builder.errors import OptimizeError
from wasm_builder.policy.features import FeatureBitmask
from wasm_builder.policy.plan import OptimizationPlan

logger = logging.getLogger(__name__)


def optimized_path(settings: BuilderSettings) -> Path:
    return settings.staging_root / f"{settings.ARTIFACT_STEM}.opt.wasm"


def optimize(
    artifact: BuildArtifact,
    features: FeatureBitmask,
    settings: BuilderSettings,
    runner: ToolRunner,
) -> BuildArtifact:
    """
    Apply the optimization plan to *artifact*.

    Raises
    ------
    OptimizeError
        If *features* differ from the set the artifact was compiled
        with, or wasm-opt fails (diagnostic verbatim).
    """
    if features != artifact.profile.features:
        raise OptimizeError(
            "optimizer feature set differs from the compile-time feature set",
            detail=(
                f"compile: {artifact.profile.features.names}\n"
                f"optimize: {features.names}"
            ),
        )

    plan = OptimizationPlan.for_features(features)
    out = optimized_path(settings)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.unlink(missing_ok=True)
    except OSError as e:
        raise OptimizeError(f"could not prepare staging directory {out.parent}: {e}") from e

    logger.info(
        "wasm-opt: %d pass groups (%s), %d feature flags",
        len(plan.groups), ", ".join(plan.group_names), len(features.wasm_opt_flags()),
    )
    result = runner.run(
        ["wasm-opt", *plan.arguments(), "--output", str(out.resolve()), str(artifact.path.resolve())]
    )
    if not result.ok:
        raise OptimizeError(
            f"wasm-opt failed (exit {result.exit_code})",
            detail=result.diagnostic,
        )
    if not out.is_file():
        raise OptimizeError(f"wasm-opt reported success but wrote no output at {out}")

    try:
        optimized = describe_artifact(out, artifact.profile)
    except OSError as e:
        raise OptimizeError(f"could not read wasm-opt output {out}: {e}") from e
    except ValueError as e:
        raise OptimizeError(f"wasm-opt output {out} is not a wasm module", detail=str(e)) from e

    logger.info("optimized: %d → %d bytes", artifact.size_bytes, optimized.size_bytes)
    return optimized
