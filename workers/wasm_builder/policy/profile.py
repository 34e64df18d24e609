"""
Profile — toolchain version ordering and target-profile selection.

The profile encapsulates every codegen decision so that the build,
optimize and finalize stages contain no version logic.  A profile is
fully determined by the installed toolchain version and the fixed
threshold below.

Rust >= 1.84 ships ``wasm32v1-none``, which already disables every
post-MVP proposal except mutable globals.  Older toolchains only have
``wasm32-unknown-unknown``, whose default feature set grew over time
(sign-ext since 1.70, multivalue and reference-types since 1.82), so
for them a pinned nightly rebuilds ``core``/``alloc`` with the
restricted feature list passed explicitly.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from wasm_builder.errors import VersionParseError
from wasm_builder.policy.features import FeatureBitmask


# ── Fixed policy constants ───────────────────────────────────────────────────

MODERN_TARGET = "wasm32v1-none"
LEGACY_TARGET = "wasm32-unknown-unknown"
LEGACY_CHANNEL = "nightly-2025-11-09"

STACK_SIZE_BYTES = 65536

_VERSION_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z][0-9A-Za-z.-]*))?$"
)


# ── Version ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class ToolchainVersion:
    """
    A ``major.minor.patch[-prerelease]`` toolchain version.

    Equality and ordering use (major, minor, patch) only; the prerelease
    tag is kept for reporting, so ``1.84.0-rc1`` orders equal to ``1.84.0``.
    """

    major: int
    minor: int
    patch: int
    prerelease: Optional[str] = field(default=None, compare=False)

    @classmethod
    def parse(cls, raw: str) -> "ToolchainVersion":
        m = _VERSION_RE.match(raw.strip())
        if m is None:
            raise VersionParseError(raw)
        return cls(
            major=int(m.group("major")),
            minor=int(m.group("minor")),
            patch=int(m.group("patch")),
            prerelease=m.group("pre"),
        )

    @property
    def key(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.prerelease}" if self.prerelease else base


THRESHOLD_VERSION = ToolchainVersion(1, 84, 0)


# ── Target profile ───────────────────────────────────────────────────────────

class MemoryLinkage(str, Enum):
    """Whether the module imports its linear memory or exports its own."""
    IMPORT = "import"
    EXPORT = "export"


@dataclass(frozen=True)
class TargetProfile:
    """Everything the later stages need to know about the chosen target."""

    target: str
    channel: str
    features: FeatureBitmask
    stack_size: int = STACK_SIZE_BYTES
    memory_linkage: MemoryLinkage = MemoryLinkage.IMPORT
    legacy: bool = False
    # Installed toolchain this profile was resolved for; not part of its identity
    installed: Optional[ToolchainVersion] = field(default=None, compare=False)

    @property
    def profile_id(self) -> str:
        return f"{self.target}@{self.channel}"

    @property
    def is_nightly(self) -> bool:
        return self.channel.startswith("nightly")

    @classmethod
    def modern(cls, version: ToolchainVersion) -> "TargetProfile":
        """wasm32v1-none on the installed toolchain."""
        return cls(
            target=MODERN_TARGET,
            channel=str(version),
            features=FeatureBitmask.restricted(),
            installed=version,
        )

    @classmethod
    def legacy_profile(cls, installed: Optional[ToolchainVersion] = None) -> "TargetProfile":
        """wasm32-unknown-unknown on the pinned nightly."""
        return cls(
            target=LEGACY_TARGET,
            channel=LEGACY_CHANNEL,
            features=FeatureBitmask.restricted(),
            legacy=True,
            installed=installed,
        )


def select_profile(version: ToolchainVersion) -> TargetProfile:
    """Pick the target profile for *version* against THRESHOLD_VERSION."""
    if version >= THRESHOLD_VERSION:
        return TargetProfile.modern(version)
    return TargetProfile.legacy_profile(installed=version)
