"""
Wasm reader — open a WebAssembly binary and extract structural metadata.

Responsibilities:
  - Validate the magic number and version.
  - List section ids in file order and the names of custom sections.
  - Flag debug-bearing custom sections (.debug_*, sourceMappingURL, ...).
  - Decode the import and export sections (module, name, kind).

This module intentionally does NOT decode code or data sections.
"""
import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

WASM_MAGIC = b"\x00asm"
WASM_VERSION = b"\x01\x00\x00\x00"

SECTION_CUSTOM = 0
SECTION_IMPORT = 2
SECTION_EXPORT = 7

KIND_NAMES = {0: "func", 1: "table", 2: "memory", 3: "global", 4: "tag"}

DEBUG_SECTION_NAMES = frozenset({"sourceMappingURL", "external_debug_info"})


@dataclass(frozen=True)
class WasmImport:
    module: str
    name: str
    kind: str


@dataclass(frozen=True)
class WasmExport:
    name: str
    kind: str
    index: int


@dataclass(frozen=True)
class WasmMeta:
    """Structural metadata extracted from a wasm module."""

    sha256: str
    size_bytes: int
    section_ids: List[int] = field(default_factory=list)
    custom_sections: List[str] = field(default_factory=list)
    imports: List[WasmImport] = field(default_factory=list)
    exports: List[WasmExport] = field(default_factory=list)

    @property
    def debug_sections(self) -> List[str]:
        return [n for n in self.custom_sections if is_debug_section(n)]

    @property
    def has_debug_info(self) -> bool:
        return bool(self.debug_sections)

    @property
    def imports_memory(self) -> bool:
        return any(i.kind == "memory" for i in self.imports)

    @property
    def exports_memory(self) -> bool:
        return any(e.kind == "memory" for e in self.exports)


def is_debug_section(name: str) -> bool:
    return name.startswith(".debug_") or name in DEBUG_SECTION_NAMES


# ── LEB128 / string primitives ───────────────────────────────────────────────

def _read_varuint(data: bytes, offset: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("Unexpected EOF while reading varuint")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if byte & 0x80 == 0:
            break
        shift += 7
    return result, offset


def _read_byte(data: bytes, offset: int) -> Tuple[int, int]:
    if offset >= len(data):
        raise ValueError("Unexpected EOF while reading byte")
    return data[offset], offset + 1


def _read_name(data: bytes, offset: int) -> Tuple[str, int]:
    length, offset = _read_varuint(data, offset)
    end = offset + length
    if end > len(data):
        raise ValueError("Unexpected EOF while reading name")
    return data[offset:end].decode("utf-8"), end


def _skip_limits(data: bytes, offset: int) -> int:
    flags, offset = _read_byte(data, offset)
    _, offset = _read_varuint(data, offset)
    if flags & 0x01:
        _, offset = _read_varuint(data, offset)
    return offset


# ── Section decoders ─────────────────────────────────────────────────────────

def _parse_imports(payload: bytes) -> List[WasmImport]:
    count, off = _read_varuint(payload, 0)
    imports: List[WasmImport] = []
    for _ in range(count):
        module, off = _read_name(payload, off)
        name, off = _read_name(payload, off)
        kind, off = _read_byte(payload, off)
        if kind == 0:                       # func: type index
            _, off = _read_varuint(payload, off)
        elif kind == 1:                     # table: reftype + limits
            _, off = _read_byte(payload, off)
            off = _skip_limits(payload, off)
        elif kind == 2:                     # memory: limits
            off = _skip_limits(payload, off)
        elif kind == 3:                     # global: valtype + mutability
            _, off = _read_byte(payload, off)
            _, off = _read_byte(payload, off)
        elif kind == 4:                     # tag: attribute + type index
            _, off = _read_byte(payload, off)
            _, off = _read_varuint(payload, off)
        else:
            raise ValueError(f"unknown import kind {kind:#x}")
        imports.append(WasmImport(module=module, name=name, kind=KIND_NAMES[kind]))
    return imports


def _parse_exports(payload: bytes) -> List[WasmExport]:
    count, off = _read_varuint(payload, 0)
    exports: List[WasmExport] = []
    for _ in range(count):
        name, off = _read_name(payload, off)
        kind, off = _read_byte(payload, off)
        index, off = _read_varuint(payload, off)
        exports.append(WasmExport(name=name, kind=KIND_NAMES.get(kind, f"{kind:#x}"), index=index))
    return exports


def parse_wasm(data: bytes) -> WasmMeta:
    """
    Parse *data* as a core wasm module.

    Raises
    ------
    ValueError
        If the header is wrong or a section runs past the end of input.
    """
    if data[:4] != WASM_MAGIC:
        raise ValueError("Not a wasm module (bad magic)")
    if data[4:8] != WASM_VERSION:
        raise ValueError(f"Unsupported wasm version {data[4:8].hex()}")

    section_ids: List[int] = []
    custom: List[str] = []
    imports: List[WasmImport] = []
    exports: List[WasmExport] = []

    offset = 8
    while offset < len(data):
        section_id, offset = _read_byte(data, offset)
        size, offset = _read_varuint(data, offset)
        end = offset + size
        if end > len(data):
            raise ValueError(f"Section {section_id} overruns module end")
        payload = data[offset:end]
        section_ids.append(section_id)

        if section_id == SECTION_CUSTOM:
            name, _ = _read_name(payload, 0)
            custom.append(name)
        elif section_id == SECTION_IMPORT:
            imports = _parse_imports(payload)
        elif section_id == SECTION_EXPORT:
            exports = _parse_exports(payload)
        offset = end

    return WasmMeta(
        sha256=hashlib.sha256(data).hexdigest(),
        size_bytes=len(data),
        section_ids=section_ids,
        custom_sections=custom,
        imports=imports,
        exports=exports,
    )


def read_wasm(path: str) -> WasmMeta:
    """
    Open *path* as a wasm module and return structural metadata.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the file is not a valid wasm module.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Binary not found: {path}")
    return parse_wasm(p.read_bytes())
