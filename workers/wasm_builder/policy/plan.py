"""
Plan — the fixed, ordered wasm-opt pass sequence.

Order is part of the contract: it determines the final byte layout,
and therefore whether two builds of the same source are identical.
Run ``wasm-opt --help`` to see all available options.
"""
from dataclasses import dataclass
from typing import List, Tuple

from wasm_builder.policy.features import FeatureBitmask

OPT_LEVEL = "-O4"


@dataclass(frozen=True)
class PassGroup:
    """A named step of the plan and the wasm-opt flags that implement it."""
    name: str
    flags: Tuple[str, ...]


PASS_GROUPS: Tuple[PassGroup, ...] = (
    PassGroup("dce", ("--dce",)),
    PassGroup("precompute", ("--precompute", "--precompute-propagate")),
    PassGroup("peephole", ("--optimize-instructions", "--optimize-casts")),
    # --optimize-added-constants relies on the low-memory-unused assumption
    PassGroup("low-memory", (
        "--low-memory-unused",
        "--optimize-added-constants",
        "--optimize-added-constants-propagate",
    )),
    PassGroup("globals", ("--simplify-globals-optimizing",)),
    PassGroup("inline-dedup", (
        "--inlining-optimizing",
        "--once-reduction",
        "--merge-similar-functions",
        "--duplicate-function-elimination",
    )),
    PassGroup("locals", ("--merge-locals",)),
    PassGroup("strip", ("--strip", "--strip-debug", "--strip-dwarf")),
    PassGroup("lowering", (
        "--abstract-type-refining",
        "--signext-lowering",
        "--alignment-lowering",
        "--avoid-reinterprets",
    )),
    PassGroup("remove-unused", (
        "--remove-unused-names",
        "--remove-unused-types",
        "--remove-unused-module-elements",
        "--duplicate-import-elimination",
    )),
    PassGroup("reorder", ("--reorder-functions",)),
    PassGroup("vacuum", ("--optimize-stack-ir", "--vacuum")),
)


@dataclass(frozen=True)
class OptimizationPlan:
    """Pass groups plus the feature set the optimizer must respect."""

    features: FeatureBitmask
    groups: Tuple[PassGroup, ...] = PASS_GROUPS
    opt_level: str = OPT_LEVEL

    @classmethod
    def for_features(cls, features: FeatureBitmask) -> "OptimizationPlan":
        return cls(features=features)

    @property
    def group_names(self) -> List[str]:
        return [g.name for g in self.groups]

    @property
    def pass_flags(self) -> List[str]:
        return [flag for g in self.groups for flag in g.flags]

    def arguments(self) -> List[str]:
        """wasm-opt arguments, without input and output paths."""
        return [self.opt_level, *self.pass_flags, *self.features.wasm_opt_flags()]
