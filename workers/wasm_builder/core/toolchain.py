"""
Toolchain — read the installed cargo version, resolve the target
profile and make sure its target is registered with rustup.
"""
import logging
from enum import Enum

from wasm_builder.core.toolrun import ToolRunner
from wasm_builder.errors import TargetInstallError, VersionParseError
from wasm_builder.policy.profile import TargetProfile, ToolchainVersion, select_profile

logger = logging.getLogger(__name__)


class EnsureOutcome(str, Enum):
    """Result of an idempotent ensure call."""
    ALREADY_PRESENT = "ALREADY_PRESENT"
    INSTALLED = "INSTALLED"


def read_toolchain_version(runner: ToolRunner) -> str:
    """
    Version string reported by ``cargo --version``.

    First line, second field: ``cargo 1.84.0 (66221abde 2024-11-19)``
    gives ``1.84.0``.
    """
    result = runner.run(["cargo", "--version"])
    lines = result.stdout.splitlines()
    fields = lines[0].split() if lines else []
    if not result.ok or len(fields) < 2:
        raise VersionParseError(lines[0] if lines else result.diagnostic.strip())
    return fields[1]


def resolve(version_string: str) -> TargetProfile:
    """Parse *version_string* and pick its target profile.  Pure."""
    return select_profile(ToolchainVersion.parse(version_string))


def ensure_target(profile: TargetProfile, runner: ToolRunner) -> EnsureOutcome:
    """
    Register ``profile.target`` with ``profile.channel`` unless it already is.

    Safe to call repeatedly: only the first call on a fresh toolchain
    installs anything.
    """
    # The installed channel is the active toolchain; only a pinned one is named
    toolchain_args = ["--toolchain", profile.channel] if profile.legacy else []

    listed = runner.run(["rustup", "target", "list", "--installed", *toolchain_args])
    if listed.ok and profile.target in listed.stdout.split():
        logger.info("target %s already installed for %s", profile.target, profile.channel)
        return EnsureOutcome.ALREADY_PRESENT

    logger.info("Installing the target with rustup '%s'", profile.target)
    added = runner.run(["rustup", "target", "add", profile.target, *toolchain_args])
    if not added.ok:
        raise TargetInstallError(
            f"could not add target '{profile.target}' to toolchain '{profile.channel}'",
            detail=added.diagnostic,
        )
    return EnsureOutcome.INSTALLED
