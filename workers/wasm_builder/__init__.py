"""
wasm_builder — deterministic WebAssembly build-and-optimize pipeline.

Turns a freestanding Rust crate into a minimal, reproducible
``.wasm`` module plus its ``.wat`` text rendering:

    resolve toolchain → assemble flags → cargo build → wasm-opt → finalize
"""

__version__ = "1.0.0"
BUILDER_NAME = "wasm_builder"
BUILDER_VERSION = "v1"
SCHEMA_VERSION = "1.0"
