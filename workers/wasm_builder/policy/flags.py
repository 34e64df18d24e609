"""
Flags — codegen/link flags and their environment encoding.

``assemble`` is a pure function of the profile: no timestamps,
hostnames or paths ever enter the result.  The flags travel to rustc
through ``CARGO_ENCODED_RUSTFLAGS``, where cargo splits them on the
ASCII unit separator (0x1F), so individual flags may contain spaces.

Reference: https://doc.rust-lang.org/cargo/reference/environment-variables.html
"""
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from wasm_builder.policy.features import FeatureBitmask
from wasm_builder.policy.profile import MemoryLinkage, TargetProfile

FLAG_SEPARATOR = "\x1f"
RUSTFLAGS_ENV = "CARGO_ENCODED_RUSTFLAGS"


def encode_flags(flags: Sequence[str]) -> str:
    """Join *flags* with the unit separator."""
    for flag in flags:
        if not flag:
            raise ValueError("empty flag cannot be encoded")
        if FLAG_SEPARATOR in flag:
            raise ValueError(f"flag contains the 0x1F separator: {flag!r}")
    return FLAG_SEPARATOR.join(flags)


def decode_flags(blob: str) -> List[str]:
    """Inverse of ``encode_flags``; an empty blob means no flags."""
    if not blob:
        return []
    return blob.split(FLAG_SEPARATOR)


@dataclass(frozen=True)
class FlagBlob:
    """Assembled rustc flags plus the feature set they were built from."""

    codegen_flags: Tuple[str, ...]
    feature_flags: Tuple[str, ...]
    features: FeatureBitmask

    @property
    def flags(self) -> List[str]:
        return [*self.codegen_flags, *self.feature_flags]

    def encoded(self) -> str:
        return encode_flags(self.flags)

    def env(self) -> Dict[str, str]:
        return {RUSTFLAGS_ENV: self.encoded()}


def assemble(profile: TargetProfile) -> FlagBlob:
    """Build the rustc flag set for *profile*: codegen group, then features."""
    codegen = [
        # Max wasm stack size
        f"-Clink-arg=-zstack-size={profile.stack_size}",
    ]
    if profile.memory_linkage == MemoryLinkage.IMPORT:
        # The host supplies the linear memory
        codegen.append("-Clink-arg=--import-memory")
    codegen.append("-Dwarnings")
    if profile.legacy:
        codegen.append("-Ctarget-cpu=mvp")

    return FlagBlob(
        codegen_flags=tuple(codegen),
        feature_flags=(f"-Ctarget-feature={profile.features.rustc_target_feature()}",),
        features=profile.features,
    )
