"""
Build — compile the crate for the freestanding target with cargo.

Handles:
- Cargo command assembly (channel override, build-std for nightlies)
- Flag delivery through CARGO_ENCODED_RUSTFLAGS
- Raw artifact discovery and metadata (sha256, size, debug sections)

Any compiler diagnostic aborts the run; nothing here is retried.
"""
import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from wasm_builder.config import BuilderSettings
from wasm_builder.core.toolrun import REPRODUCIBLE_ENV, CommandResult, ToolRunner
from wasm_builder.core.wasm_reader import parse_wasm
from wasm_builder.errors import BuildError
from wasm_builder.policy.flags import RUSTFLAGS_ENV, FlagBlob
from wasm_builder.policy.profile import TargetProfile

logger = logging.getLogger(__name__)

DEFAULT_TARGET_DIR = "target"


@dataclass
class BuildArtifact:
    """A wasm binary on disk, tagged with the profile that produced it."""
    filename: str
    filepath: str
    sha256: str
    size_bytes: int
    has_debug_info: bool
    profile: TargetProfile
    debug_sections: List[str] = field(default_factory=list)

    @property
    def path(self) -> Path:
        return Path(self.filepath)


def describe_artifact(path: Path, profile: TargetProfile) -> BuildArtifact:
    """Create metadata for a wasm binary.  Raises ValueError if it does not parse."""
    data = path.read_bytes()
    meta = parse_wasm(data)
    return BuildArtifact(
        filename=path.name,
        filepath=str(path),
        sha256=hashlib.sha256(data).hexdigest(),
        size_bytes=len(data),
        has_debug_info=meta.has_debug_info,
        profile=profile,
        debug_sections=meta.debug_sections,
    )


def cargo_command(profile: TargetProfile, settings: BuilderSettings) -> List[str]:
    """The cargo invocation for *profile*, without environment."""
    cmd = ["cargo"]
    if profile.legacy:
        cmd.append(f"+{profile.channel}")
        if profile.is_nightly:
            cmd.append("-Zbuild-std=core,alloc")
    cmd += [
        "build",
        f"--package={settings.PACKAGE}",
        f"--profile={settings.CARGO_PROFILE}",
        f"--target={profile.target}",
        "--no-default-features",
    ]
    return cmd


def raw_artifact_path(profile: TargetProfile, settings: BuilderSettings) -> Path:
    return (
        settings.target_root
        / profile.target
        / settings.profile_dir
        / f"{settings.ARTIFACT_STEM}.wasm"
    )


def format_command(cmd: List[str], blob: FlagBlob) -> str:
    """Human-readable rendering of the build command and its variables."""
    variables = [f"{RUSTFLAGS_ENV}={blob.encoded()!r}"]
    variables += [f"{k}={v!r}" for k, v in REPRODUCIBLE_ENV.items()]
    return " \\\n".join(variables + [" ".join(cmd)])


def invoke(
    profile: TargetProfile,
    blob: FlagBlob,
    settings: BuilderSettings,
    runner: ToolRunner,
) -> BuildArtifact:
    """
    Run cargo and return the raw artifact.

    Raises
    ------
    BuildError
        With the compiler's diagnostics verbatim.
    """
    cmd = cargo_command(profile, settings)
    logger.info("COMMAND:\n%s", format_command(cmd, blob))

    env = blob.env()
    if settings.TARGET_DIR != DEFAULT_TARGET_DIR:
        env["CARGO_TARGET_DIR"] = settings.TARGET_DIR

    result: CommandResult = runner.run(cmd, env=env)
    if not result.ok:
        raise BuildError(
            f"cargo build failed for target '{profile.target}' (exit {result.exit_code})",
            detail=result.diagnostic,
        )

    raw = raw_artifact_path(profile, settings)
    if not raw.is_file():
        raise BuildError(f"cargo reported success but produced no artifact at {raw}")
    try:
        artifact = describe_artifact(raw, profile)
    except OSError as e:
        raise BuildError(f"could not read build output {raw}: {e}") from e
    except ValueError as e:
        raise BuildError(f"build output {raw} is not a wasm module", detail=str(e)) from e

    logger.info("raw artifact: %s (%d bytes)", raw, artifact.size_bytes)
    return artifact
