"""
Builder configuration
"""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class BuilderSettings(BaseSettings):
    """Builder settings (environment prefix ``WASM_BUILDER_``)"""

    # Cargo
    PACKAGE: str = "wasm-runtime"
    ARTIFACT_STEM: str = "wasm_runtime"
    CARGO_PROFILE: str = "release"

    # Filesystem
    WORKSPACE_DIR: str = "."
    TARGET_DIR: str = "target"
    STAGING_DIR: str = "target/wasm-builder"
    RECEIPT_PATH: Optional[str] = None

    # Verification
    VERIFY_ROUNDTRIP: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def workspace(self) -> Path:
        """Cargo workspace root; final artifacts land here too"""
        return Path(self.WORKSPACE_DIR)

    @property
    def target_root(self) -> Path:
        return self.workspace / self.TARGET_DIR

    @property
    def staging_root(self) -> Path:
        return self.workspace / self.STAGING_DIR

    @property
    def wasm_output(self) -> Path:
        return self.workspace / f"{self.ARTIFACT_STEM}.wasm"

    @property
    def wat_output(self) -> Path:
        return self.workspace / f"{self.ARTIFACT_STEM}.wat"

    @property
    def profile_dir(self) -> str:
        """Directory cargo uses for CARGO_PROFILE (``dev`` builds into ``debug``)"""
        return "debug" if self.CARGO_PROFILE == "dev" else self.CARGO_PROFILE

    class Config:
        env_prefix = "WASM_BUILDER_"
        env_file = ".env"
        case_sensitive = True
