"""
test_plan — the fixed wasm-opt pass order.

The order is contractual: it determines the final byte layout.
"""
from wasm_builder.policy.features import FeatureBitmask
from wasm_builder.policy.plan import OPT_LEVEL, PASS_GROUPS, OptimizationPlan

EXPECTED_ORDER = [
    "dce",
    "precompute",
    "peephole",
    "low-memory",
    "globals",
    "inline-dedup",
    "locals",
    "strip",
    "lowering",
    "remove-unused",
    "reorder",
    "vacuum",
]


class TestPlan:

    def test_group_order(self):
        plan = OptimizationPlan.for_features(FeatureBitmask.restricted())
        assert plan.group_names == EXPECTED_ORDER

    def test_first_and_last_pass(self):
        flags = OptimizationPlan.for_features(FeatureBitmask.restricted()).pass_flags
        assert flags[0] == "--dce"
        assert flags[-1] == "--vacuum"

    def test_each_pass_once(self):
        flags = [f for g in PASS_GROUPS for f in g.flags]
        assert len(flags) == len(set(flags))

    def test_key_passes_present(self):
        flags = OptimizationPlan.for_features(FeatureBitmask.restricted()).pass_flags
        for expected in ("--precompute-propagate", "--simplify-globals-optimizing",
                         "--merge-similar-functions", "--merge-locals", "--strip-debug",
                         "--signext-lowering", "--remove-unused-module-elements",
                         "--duplicate-import-elimination", "--reorder-functions"):
            assert expected in flags
        assert flags.index("--dce") < flags.index("--precompute")
        assert flags.index("--merge-similar-functions") < flags.index("--merge-locals")
        assert flags.index("--strip-debug") < flags.index("--signext-lowering")
        assert flags.index("--reorder-functions") < flags.index("--vacuum")

    def test_type_refining_before_lowering(self):
        flags = OptimizationPlan.for_features(FeatureBitmask.restricted()).pass_flags
        assert flags.index("--strip-dwarf") < flags.index("--abstract-type-refining")
        assert flags.index("--abstract-type-refining") < flags.index("--signext-lowering")

    def test_arguments_layout(self):
        mask = FeatureBitmask.restricted()
        plan = OptimizationPlan.for_features(mask)
        args = plan.arguments()
        assert args[0] == OPT_LEVEL == "-O4"
        assert args[1:1 + len(plan.pass_flags)] == plan.pass_flags
        assert args[1 + len(plan.pass_flags):] == mask.wasm_opt_flags()

    def test_plan_is_fixed(self):
        a = OptimizationPlan.for_features(FeatureBitmask.restricted())
        b = OptimizationPlan.for_features(FeatureBitmask.restricted())
        assert a == b
        assert a.arguments() == b.arguments()
