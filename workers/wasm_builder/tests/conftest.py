"""
Shared pytest fixtures for wasm_builder tests.

All fixtures are pure-Python: no cargo, no wasm-opt, no wasm-tools.
Wasm modules are assembled byte-by-byte, and ``FakeRunner`` emulates
the external tools on the filesystem so the whole pipeline can run
inside ``tmp_path``.
"""
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set

import pytest

from wasm_builder.config import BuilderSettings
from wasm_builder.core.toolrun import CommandResult, ToolRunner, reproducible_env

# ═══════════════════════════════════════════════════════════════════════════════
# Wasm assembly helpers
# ═══════════════════════════════════════════════════════════════════════════════

HEADER = b"\x00asm\x01\x00\x00\x00"


def uleb(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def name(text: str) -> bytes:
    raw = text.encode("utf-8")
    return uleb(len(raw)) + raw


def section(section_id: int, payload: bytes) -> bytes:
    return bytes([section_id]) + uleb(len(payload)) + payload


def custom_section(section_name: str, body: bytes = b"") -> bytes:
    return section(0, name(section_name) + body)


def type_section() -> bytes:
    # (i32, i32) -> i32
    return section(1, b"\x01\x60\x02\x7f\x7f\x01\x7f")


def import_section(memory: bool = True) -> bytes:
    entries = [name("env") + name("console_log") + b"\x00" + uleb(0)]
    if memory:
        entries.append(name("env") + name("memory") + b"\x02" + b"\x00" + uleb(17))
    return section(2, uleb(len(entries)) + b"".join(entries))


def export_section(memory: bool = False) -> bytes:
    entries = [name("add") + b"\x00" + uleb(1)]
    if memory:
        entries.append(name("memory") + b"\x02" + uleb(0))
    return section(7, uleb(len(entries)) + b"".join(entries))


def make_module(
    debug_bytes: int = 0,
    import_memory: bool = True,
    export_memory: bool = False,
    extra_custom: Sequence[str] = (),
) -> bytes:
    """A small module; ``debug_bytes`` > 0 adds a .debug_info section of that size."""
    parts = [HEADER, type_section(), import_section(memory=import_memory),
             export_section(memory=export_memory)]
    if debug_bytes:
        parts.append(custom_section(".debug_info", b"\xab" * debug_bytes))
    for extra in extra_custom:
        parts.append(custom_section(extra, b"\x00"))
    return b"".join(parts)


def split_sections(data: bytes) -> List[tuple]:
    """(section_id, raw_section_bytes, custom_name_or_None) for each section."""
    out = []
    off = 8
    while off < len(data):
        start = off
        sid = data[off]
        off += 1
        size = 0
        shift = 0
        while True:
            b = data[off]
            off += 1
            size |= (b & 0x7F) << shift
            if not b & 0x80:
                break
            shift += 7
        payload = data[off:off + size]
        off += size
        cname = None
        if sid == 0:
            nlen = payload[0]
            cname = payload[1:1 + nlen].decode()
        out.append((sid, data[start:off], cname))
    return out


def drop_custom(data: bytes, keep: Set[str] = frozenset()) -> bytes:
    kept = [raw for sid, raw, cname in split_sections(data) if sid != 0 or cname in keep]
    return data[:8] + b"".join(kept)


@pytest.fixture
def minimal_module() -> bytes:
    return make_module()


@pytest.fixture
def debug_module() -> bytes:
    return make_module(debug_bytes=64, extra_custom=("producers",))


# ═══════════════════════════════════════════════════════════════════════════════
# Fake tool runner
# ═══════════════════════════════════════════════════════════════════════════════

class FakeRunner(ToolRunner):
    """
    Emulates rustup, cargo, wasm-opt and wasm-tools.

    ``fail`` maps a tool name (``cargo``, ``wasm-opt``, ``wasm-tools``) to
    the stderr it should fail with.
    """

    def __init__(
        self,
        cwd: Path,
        version: str = "1.90.0",
        installed_targets: Optional[Set[str]] = None,
        raw_module: Optional[bytes] = None,
        fail: Optional[Dict[str, str]] = None,
    ):
        super().__init__(cwd=cwd)
        self.version = version
        self.installed_targets = set(installed_targets or set())
        self.raw_module = raw_module if raw_module is not None else make_module(debug_bytes=50_000)
        self.fail = dict(fail or {})
        self.envs: List[Dict[str, str]] = []

    # -- dispatch ------------------------------------------------------------

    def run(self, argv: Sequence[str], env: Optional[Mapping[str, str]] = None) -> CommandResult:
        argv = [str(a) for a in argv]
        self.envs.append(reproducible_env(env, base={}))
        tool = argv[0]
        if tool in self.fail and self._is_work(argv):
            code, out, err = 1, "", self.fail[tool]
        elif tool == "cargo":
            code, out, err = self._cargo(argv, env or {})
        elif tool == "rustup":
            code, out, err = self._rustup(argv)
        elif tool == "wasm-opt":
            code, out, err = self._wasm_opt(argv)
        elif tool == "wasm-tools":
            code, out, err = self._wasm_tools(argv)
        else:
            code, out, err = 127, "", f"{tool}: command not found"
        result = CommandResult(argv=argv, exit_code=code, stdout=out, stderr=err)
        self.history.append(result)
        return result

    @staticmethod
    def _is_work(argv: List[str]) -> bool:
        return argv[:2] != ["cargo", "--version"]

    def tools_called(self) -> List[str]:
        return [r.argv[0] for r in self.history]

    # -- tools ---------------------------------------------------------------

    def _cargo(self, argv: List[str], env: Mapping[str, str]):
        if argv[1:] == ["--version"]:
            return 0, f"cargo {self.version} (66221abde 2024-11-19)\n", ""
        opts = dict(a[2:].split("=", 1) for a in argv if a.startswith("--") and "=" in a)
        profile_dir = "debug" if opts["profile"] == "dev" else opts["profile"]
        target_dir = env.get("CARGO_TARGET_DIR", "target")
        out = self.cwd / target_dir / opts["target"] / profile_dir / "wasm_runtime.wasm"
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(self.raw_module)
        return 0, "", "   Compiling wasm-runtime v0.1.0\n    Finished `release` profile\n"

    def _rustup(self, argv: List[str]):
        if argv[1:4] == ["target", "list", "--installed"]:
            return 0, "".join(f"{t}\n" for t in sorted(self.installed_targets)), ""
        if argv[1:3] == ["target", "add"]:
            self.installed_targets.add(argv[3])
            return 0, "", f"info: installing component 'rust-std' for '{argv[3]}'\n"
        return 1, "", "unsupported rustup call"

    def _wasm_opt(self, argv: List[str]):
        src = Path(argv[-1])
        dst = Path(argv[argv.index("--output") + 1])
        data = src.read_bytes()
        if "--strip-debug" in argv:
            data = drop_custom(data, keep={"producers"})
        dst.write_bytes(data)
        return 0, "", ""

    def _wasm_tools(self, argv: List[str]):
        sub, src, dst = argv[1], Path(argv[2]), Path(argv[argv.index("-o") + 1])
        if sub == "strip":
            dst.write_bytes(drop_custom(src.read_bytes()))
        elif sub == "print":
            dst.write_text(f"(module\n  ;; {src.read_bytes().hex()}\n)\n")
        elif sub == "parse":
            hex_line = src.read_text().splitlines()[1].strip()[3:]
            dst.write_bytes(bytes.fromhex(hex_line))
        else:
            return 1, "", f"unknown subcommand {sub}"
        return 0, "", ""


def all_tools(tool: str) -> Optional[str]:
    return f"/usr/bin/{tool}"


@pytest.fixture
def settings(tmp_path: Path) -> BuilderSettings:
    return BuilderSettings(WORKSPACE_DIR=str(tmp_path))


@pytest.fixture
def fake_runner(tmp_path: Path) -> FakeRunner:
    return FakeRunner(cwd=tmp_path, installed_targets={"wasm32v1-none"})


# ═══════════════════════════════════════════════════════════════════════════════
# Real toolchain (integration)
# ═══════════════════════════════════════════════════════════════════════════════

def real_tools_available() -> bool:
    return all(shutil.which(t) for t in ("rustup", "cargo", "wasm-opt", "wasm-tools"))
