from __future__ import annotations

from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fpkgi_server.domain.models.mapped_path import MappedPath


class RuntimeSettings(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    log_level: str = Field(default="info")
    error_log: Path | None = Field(default=None)

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: str | None) -> str:
        normalized = str(value or "").strip().lower()
        if not normalized:
            return "info"
        if normalized not in {"debug", "info", "warn", "warning", "error"}:
            raise ValueError("LOG_LEVEL must be one of: debug, info, warn, error")
        return "warning" if normalized == "warn" else normalized


class GenerateSettings(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    packages: MappedPath
    out: MappedPath
    base_url: str
    icons: MappedPath | None = Field(default=None)
    external: Path | None = Field(default=None)
    workers: int = Field(default=1, ge=1)
    lock_timeout_seconds: float = Field(default=-1.0)

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        normalized = str(value or "").strip().rstrip("/")
        if not normalized:
            raise ValueError("base URL must not be empty")
        return normalized

    @property
    def lock_path(self) -> Path:
        # Beside the output directory, which is published as-is.
        out = self.out.fs_path
        return out.with_name(f".{out.name}.fpkgi-generate.lock")


class ServeSettings(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    directories: dict[str, Path]
    port: int = Field(default=8000, ge=0, le=65535)
    host: str = Field(default="0.0.0.0")

    @field_validator("directories")
    @classmethod
    def _validate_directories(cls, value: dict[str, Path]) -> dict[str, Path]:
        if not value:
            raise ValueError("No valid directories specified")
        for name, path in value.items():
            if not name or "/" in name:
                raise ValueError(f"Directory name {name!r} must be a single non-empty path segment")
            if path.exists() and not path.is_dir():
                raise ValueError(f"'{path}' is not a directory")
        return value

    def missing_directories(self) -> list[tuple[str, Path]]:
        return [(name, path) for name, path in self.directories.items() if not path.exists()]


class WatchSettings(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    directories: tuple[Path, ...] = Field(min_length=1)


class HostSettings(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    generate: GenerateSettings
    port: int = Field(default=8000, ge=0, le=65535)
    host: str = Field(default="0.0.0.0")

    @model_validator(mode="after")
    def _validate_served_names(self) -> "HostSettings":
        _ = self.serve_settings()
        return self

    def serve_settings(self) -> ServeSettings:
        mappings = [self.generate.packages, self.generate.out]
        if self.generate.icons is not None:
            mappings.append(self.generate.icons)
        directories = {mapping.url_prefix: mapping.fs_path for mapping in mappings}
        return ServeSettings(directories=directories, port=self.port, host=self.host)

    def watch_settings(self) -> WatchSettings:
        return WatchSettings(directories=(self.generate.packages.fs_path,))
