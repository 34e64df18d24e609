"""
Preconditions — companion tools that must exist before any build work.

Checked once, up front, in a fixed order.  The first missing tool
aborts the run with its own install hint.
"""
import logging
import shutil
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from wasm_builder.errors import MissingToolError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequiredTool:
    name: str
    install_hint: str


REQUIRED_TOOLS: Tuple[RequiredTool, ...] = (
    RequiredTool("rustup", "curl --proto '=https' --tlsv1.2 -sSf https://sh.rustup.rs | sh"),
    RequiredTool("cargo", "rustup toolchain install stable"),
    RequiredTool("wasm-opt", "cargo install wasm-opt"),
    RequiredTool("wasm-tools", "cargo install wasm-tools --version 1.240.0 --locked --force"),
)

Which = Callable[[str], Optional[str]]


def missing_tools(
    tools: Tuple[RequiredTool, ...] = REQUIRED_TOOLS,
    which: Which = shutil.which,
) -> List[RequiredTool]:
    """Return every required tool not found on PATH, in check order."""
    return [tool for tool in tools if which(tool.name) is None]


def check_tools(
    tools: Tuple[RequiredTool, ...] = REQUIRED_TOOLS,
    which: Which = shutil.which,
) -> None:
    """
    Fail fast on the first missing companion tool.

    Raises
    ------
    MissingToolError
        Naming the tool and how to install it.
    """
    missing = missing_tools(tools, which)
    for tool in missing:
        logger.error("required tool missing: %s", tool.name)
    if missing:
        first = missing[0]
        raise MissingToolError(first.name, first.install_hint)
    logger.info("preconditions ok: %s", ", ".join(t.name for t in tools))
