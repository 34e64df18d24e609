"""
Features — the WebAssembly capability allow/deny table.

One canonical list drives both the compiler (``-Ctarget-feature``) and
the optimizer (``--enable-*`` / ``--disable-*``).  Each capability
records how each tool spells it; ``None`` means that tool has no
switch for it.  Every capability is explicitly on or off.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class WasmFeature:
    """One post-MVP capability and its on/off state."""

    name: str                      # canonical name
    enabled: bool
    rustc_name: Optional[str]      # rustc -Ctarget-feature spelling
    wasm_opt_name: Optional[str]   # wasm-opt --enable-/--disable- spelling

    def rustc_flag(self) -> Optional[str]:
        if self.rustc_name is None:
            return None
        return ("+" if self.enabled else "-") + self.rustc_name

    def wasm_opt_flag(self) -> Optional[str]:
        if self.wasm_opt_name is None:
            return None
        state = "enable" if self.enabled else "disable"
        return f"--{state}-{self.wasm_opt_name}"


# Run `rustc -Ctarget-feature=help --target wasm32-unknown-unknown` and
# `wasm-opt --help` to list what each tool knows about.
_FEATURE_TABLE: Tuple[WasmFeature, ...] = (
    # enabled
    WasmFeature("mutable-globals", True, "mutable-globals", "mutable-globals"),
    # disabled
    WasmFeature("atomics", False, "atomics", "threads"),
    WasmFeature("bulk-memory", False, "bulk-memory", "bulk-memory"),
    WasmFeature("bulk-memory-opt", False, "bulk-memory-opt", "bulk-memory-opt"),
    WasmFeature("call-indirect-overlong", False, "call-indirect-overlong", "call-indirect-overlong"),
    WasmFeature("crt-static", False, "crt-static", None),
    WasmFeature("exception-handling", False, "exception-handling", "exception-handling"),
    WasmFeature("extended-const", False, "extended-const", "extended-const"),
    WasmFeature("fp16", False, "fp16", "fp16"),
    WasmFeature("gc", False, None, "gc"),
    WasmFeature("memory64", False, None, "memory64"),
    WasmFeature("multimemory", False, "multimemory", "multimemory"),
    WasmFeature("multivalue", False, "multivalue", "multivalue"),
    WasmFeature("nontrapping-fptoint", False, "nontrapping-fptoint", "nontrapping-float-to-int"),
    WasmFeature("reference-types", False, "reference-types", "reference-types"),
    WasmFeature("relaxed-simd", False, "relaxed-simd", "relaxed-simd"),
    WasmFeature("shared-everything", False, None, "shared-everything"),
    WasmFeature("sign-ext", False, "sign-ext", "sign-ext"),
    WasmFeature("simd128", False, "simd128", "simd"),
    WasmFeature("stack-switching", False, None, "stack-switching"),
    WasmFeature("strings", False, None, "strings"),
    WasmFeature("tail-call", False, "tail-call", "tail-call"),
    WasmFeature("wide-arithmetic", False, "wide-arithmetic", None),
)


@dataclass(frozen=True)
class FeatureBitmask:
    """Ordered, exhaustive enabled/disabled set of capabilities."""

    features: Tuple[WasmFeature, ...]

    def __post_init__(self):
        names = [f.name for f in self.features]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate feature names in bitmask: {names}")

    @classmethod
    def restricted(cls) -> "FeatureBitmask":
        """MVP plus mutable globals; every other proposal denied."""
        return cls(features=_FEATURE_TABLE)

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.features]

    @property
    def enabled(self) -> List[str]:
        return [f.name for f in self.features if f.enabled]

    @property
    def disabled(self) -> List[str]:
        return [f.name for f in self.features if not f.enabled]

    def rustc_target_feature(self) -> str:
        """Comma-joined value for ``-Ctarget-feature=``."""
        flags = [f.rustc_flag() for f in self.features]
        return ",".join(flag for flag in flags if flag is not None)

    def wasm_opt_flags(self) -> List[str]:
        flags = [f.wasm_opt_flag() for f in self.features]
        return [flag for flag in flags if flag is not None]
