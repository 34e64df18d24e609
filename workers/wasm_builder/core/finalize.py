"""
Finalize — strip, render, verify and publish the final artifacts.

Steps, strictly in order:
  1. ``wasm-tools strip`` the optimized binary (catches anything the
     optimizer's own strip passes left behind).
  2. ``wasm-tools print`` the *stripped* binary, so the ``.wat`` always
     matches what ships.
  3. Verify: no debug sections, memory imported (not exported) when the
     profile says so, and the rendering parses back to identical bytes.
  4. Compute size and checksums.
  5. Delete old outputs (absence is fine), then move the staged files
     into place.

Between the delete and the move no valid artifact exists at the output
paths; each move itself is an atomic rename from the staging directory.
"""
import hashlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from wasm_builder.config import BuilderSettings
from wasm_builder.core.build import BuildArtifact
from wasm_builder.core.toolrun import ToolRunner
from wasm_builder.core.wasm_reader import WasmMeta, parse_wasm
from wasm_builder.errors import FinalizeError
from wasm_builder.policy.profile import MemoryLinkage

logger = logging.getLogger(__name__)


@dataclass
class FinalArtifact:
    """The shipped binary and its text rendering."""
    wasm_path: str
    wat_path: str
    size_bytes: int
    sha256: str
    md5: str
    custom_sections: List[str] = field(default_factory=list)
    roundtrip_verified: bool = False

    @property
    def checksum(self) -> str:
        """Content checksum used for cross-machine reproducibility checks."""
        return self.sha256


def _run_or_fail(runner: ToolRunner, argv: List[str], what: str) -> None:
    result = runner.run(argv)
    if not result.ok:
        raise FinalizeError(
            f"{what} failed (exit {result.exit_code})",
            detail=result.diagnostic,
        )


def verify_module(meta: WasmMeta, linkage: MemoryLinkage) -> None:
    """Structural checks on the stripped binary."""
    if meta.has_debug_info:
        raise FinalizeError(
            "final binary still carries debug sections",
            detail=", ".join(meta.debug_sections),
        )
    if linkage == MemoryLinkage.IMPORT:
        if not meta.imports_memory:
            raise FinalizeError("final binary does not import its linear memory")
        if meta.exports_memory:
            raise FinalizeError("final binary exports a memory but should import it")


def replace_outputs(staged: List[Path], outputs: List[Path]) -> None:
    """Delete *outputs* (best effort on absence), then move *staged* over them."""
    try:
        for out in outputs:
            out.unlink(missing_ok=True)
        for src, dst in zip(staged, outputs):
            os.replace(src, dst)
    except OSError as e:
        raise FinalizeError(f"could not write final artifacts: {e}") from e


def finalize(
    optimized: BuildArtifact,
    settings: BuilderSettings,
    runner: ToolRunner,
) -> FinalArtifact:
    """
    Turn the optimized artifact into the shipped ``.wasm`` and ``.wat``.

    Raises
    ------
    FinalizeError
        If stripping, rendering, verification or the final write fails.
    """
    staging = settings.staging_root
    stem = settings.ARTIFACT_STEM
    staged_wasm = staging / f"{stem}.wasm"
    staged_wat = staging / f"{stem}.wat"
    reparsed = staging / f"{stem}.roundtrip.wasm"
    try:
        staging.mkdir(parents=True, exist_ok=True)
        for stale in (staged_wasm, staged_wat, reparsed):
            stale.unlink(missing_ok=True)
    except OSError as e:
        raise FinalizeError(f"could not prepare staging directory {staging}: {e}") from e

    # ── Step 1: strip ────────────────────────────────────────────────
    _run_or_fail(
        runner,
        ["wasm-tools", "strip", str(optimized.path.resolve()), "-o", str(staged_wasm.resolve())],
        "wasm-tools strip",
    )
    if not staged_wasm.is_file():
        raise FinalizeError(f"wasm-tools strip wrote no output at {staged_wasm}")

    # ── Step 2: render from the stripped binary ──────────────────────
    _run_or_fail(
        runner,
        ["wasm-tools", "print", str(staged_wasm.resolve()), "-o", str(staged_wat.resolve())],
        "wasm-tools print",
    )
    if not staged_wat.is_file():
        raise FinalizeError(f"wasm-tools print wrote no output at {staged_wat}")

    # ── Step 3: verify ───────────────────────────────────────────────
    try:
        data = staged_wasm.read_bytes()
    except OSError as e:
        raise FinalizeError(f"could not read stripped binary {staged_wasm}: {e}") from e
    try:
        meta = parse_wasm(data)
    except ValueError as e:
        raise FinalizeError("stripped binary is not a wasm module", detail=str(e)) from e
    verify_module(meta, optimized.profile.memory_linkage)

    roundtrip_verified = False
    if settings.VERIFY_ROUNDTRIP:
        _run_or_fail(
            runner,
            ["wasm-tools", "parse", str(staged_wat.resolve()), "-o", str(reparsed.resolve())],
            "wasm-tools parse",
        )
        try:
            roundtrip = reparsed.read_bytes()
            reparsed.unlink()
        except OSError as e:
            raise FinalizeError(f"could not read re-parsed rendering {reparsed}: {e}") from e
        if roundtrip != data:
            raise FinalizeError(
                "text rendering does not parse back to the shipped binary",
                detail=f"shipped {len(data)} bytes, re-parsed {len(roundtrip)} bytes",
            )
        roundtrip_verified = True

    # ── Step 4: size + checksums ─────────────────────────────────────
    final = FinalArtifact(
        wasm_path=str(settings.wasm_output),
        wat_path=str(settings.wat_output),
        size_bytes=len(data),
        sha256=hashlib.sha256(data).hexdigest(),
        md5=hashlib.md5(data).hexdigest(),
        custom_sections=meta.custom_sections,
        roundtrip_verified=roundtrip_verified,
    )

    # ── Step 5: replace previous outputs ─────────────────────────────
    replace_outputs(
        [staged_wasm, staged_wat],
        [settings.wasm_output, settings.wat_output],
    )
    logger.info("wrote %s and %s", final.wasm_path, final.wat_path)
    return final
