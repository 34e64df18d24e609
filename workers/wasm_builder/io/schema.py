"""
BuildReceipt Schema — wasm_builder v1

One JSON receipt per pipeline run: which toolchain and profile were
resolved, which flags and passes were applied, how each tool call
went, and what was shipped.

Runtime contract fields (present in every receipt):
  builder.name, builder.version, builder.schema_version.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from wasm_builder import BUILDER_NAME, BUILDER_VERSION, SCHEMA_VERSION


# =============================================================================
# Enums
# =============================================================================

class RunStatus(str, Enum):
    """Status of the whole run."""
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PhaseStatus(str, Enum):
    """Status of a single tool invocation."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# =============================================================================
# Identity
# =============================================================================

class BuilderInfo(BaseModel):
    """Identifies the builder package."""
    name: str = BUILDER_NAME
    version: str = BUILDER_VERSION
    schema_version: str = SCHEMA_VERSION


class ToolchainInfo(BaseModel):
    """Resolved toolchain and target profile."""
    version: str
    prerelease: Optional[str] = None
    target: str
    channel: str
    legacy: bool
    stack_size: int
    memory_linkage: str
    target_registration: Optional[str] = None  # ALREADY_PRESENT | INSTALLED


# =============================================================================
# Flags & plan
# =============================================================================

class FeatureEntry(BaseModel):
    name: str
    enabled: bool
    rustc_name: Optional[str] = None
    wasm_opt_name: Optional[str] = None


class FlagsInfo(BaseModel):
    """rustc flags as delivered through CARGO_ENCODED_RUSTFLAGS."""
    rustflags: List[str] = Field(default_factory=list)
    features: List[FeatureEntry] = Field(default_factory=list)


class PassGroupEntry(BaseModel):
    name: str
    flags: List[str]


class PlanInfo(BaseModel):
    opt_level: str
    groups: List[PassGroupEntry] = Field(default_factory=list)
    feature_flags: List[str] = Field(default_factory=list)


# =============================================================================
# Phases & artifacts
# =============================================================================

class ToolPhase(BaseModel):
    """One external tool invocation."""
    command: str
    exit_code: int
    duration_ms: int = 0
    status: PhaseStatus


class ArtifactMeta(BaseModel):
    """An intermediate wasm binary (raw or optimized)."""
    path: str
    sha256: str
    size_bytes: int
    debug_sections: List[str] = Field(default_factory=list)


class FinalArtifactMeta(BaseModel):
    """The shipped binary and text rendering."""
    wasm_path: str
    wat_path: str
    size_bytes: int
    sha256: str
    md5: str
    custom_sections: List[str] = Field(default_factory=list)
    roundtrip_verified: bool = False


# =============================================================================
# Top-level BuildReceipt
# =============================================================================

class BuildReceipt(BaseModel):
    """
    Single authoritative receipt for one pipeline run.

    Written only when a receipt path is configured, so the ``.wasm`` and
    ``.wat`` stay the run's sole outputs by default.
    """
    builder: BuilderInfo = Field(default_factory=BuilderInfo)
    status: RunStatus = RunStatus.RUNNING
    started_at: str = Field(default_factory=lambda: now_iso())
    finished_at: Optional[str] = None

    toolchain: Optional[ToolchainInfo] = None
    flags: Optional[FlagsInfo] = None
    plan: Optional[PlanInfo] = None
    phases: List[ToolPhase] = Field(default_factory=list)

    raw: Optional[ArtifactMeta] = None
    optimized: Optional[ArtifactMeta] = None
    final: Optional[FinalArtifactMeta] = None

    error: Optional[str] = None


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()
