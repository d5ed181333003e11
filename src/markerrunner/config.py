"""Configuration management for MarkerRunner."""

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


CONFIG_NAMES = ["markerrunner.json", ".markerrunner.json"]

DISTRIBUTED_ARGS = {"--numprocesses", "--dist", "--maxprocesses", "--looponfail", "-f"}


class PathConfig(BaseModel):
    """Import-path expansion settings."""

    wildcard: str = Field(default="*", description="Suffix marking an entry as a directory wildcard")
    archive_suffixes: list[str] = Field(
        default_factory=lambda: [".whl", ".zip", ".egg"],
        description="File suffixes a wildcard entry expands to",
    )
    ambient_env: Optional[str] = Field(
        default="PYTHONPATH",
        description="Environment variable whose directories are always searched for tests",
    )

    @field_validator("wildcard")
    @classmethod
    def validate_wildcard(cls, v: str) -> str:
        if not v:
            raise ValueError("Wildcard marker cannot be empty")
        return v

    @field_validator("archive_suffixes")
    @classmethod
    def validate_suffixes(cls, v: list[str]) -> list[str]:
        for suffix in v:
            if not suffix.startswith("."):
                raise ValueError(f"Archive suffix must start with '.': {suffix}")
        return v


class EngineConfig(BaseModel):
    """pytest invocation settings."""

    capture: Literal["no", "fd", "sys", "tee-sys"] = Field(
        default="no", description="pytest capture mode for test output"
    )
    continue_on_collection_errors: bool = Field(
        default=True, description="Run collected tests even if some modules fail to import"
    )
    extra_args: list[str] = Field(default_factory=list, description="Additional pytest arguments")

    @field_validator("extra_args")
    @classmethod
    def validate_extra_args(cls, v: list[str]) -> list[str]:
        # tests run by pytest-xdist workers never report back to this process
        for arg in v:
            name = arg.split("=", 1)[0]
            if name in DISTRIBUTED_ARGS or (arg.startswith("-n") and not arg.startswith("--")):
                raise ValueError(f"Distributed test execution is not supported: {arg}")
        return v


class ProtocolConfig(BaseModel):
    """Output protocol settings."""

    line_feed_token: str = Field(
        default="<:LF:>", description="Replacement for line separators inside payloads"
    )

    @field_validator("line_feed_token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        if not v:
            raise ValueError("Line feed token cannot be empty")
        if "\n" in v or "\r" in v:
            raise ValueError("Line feed token cannot contain line separators")
        return v


class RunnerConfig(BaseModel):
    """Main configuration for MarkerRunner."""

    paths: PathConfig = Field(default_factory=PathConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "RunnerConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "RunnerConfig":
        """Find and load configuration file, searching up the directory tree."""
        if start_dir is None:
            start_dir = Path.cwd()
        else:
            start_dir = Path(start_dir)

        current = start_dir.resolve()
        for directory in [current, *current.parents]:
            for name in CONFIG_NAMES:
                config_path = directory / name
                if config_path.exists():
                    return cls.from_file(config_path)

        raise FileNotFoundError(
            f"No configuration file found. Create {CONFIG_NAMES[0]} to customize the runner"
        )

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)


def load_config(path: Path | str | None = None, start_dir: Path | str | None = None) -> RunnerConfig:
    """Load an explicit config file, or the nearest one, or the defaults.

    Only an explicitly requested file is required to exist.
    """
    if path is not None:
        return RunnerConfig.from_file(path)
    try:
        return RunnerConfig.find_and_load(start_dir)
    except FileNotFoundError:
        return RunnerConfig()
