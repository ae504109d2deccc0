from __future__ import annotations

import argparse
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import ClassVar, TypeVar, final

from pydantic import BaseModel, ValidationError

from fpkgi_server.config.settings_models import (
    GenerateSettings,
    HostSettings,
    RuntimeSettings,
    ServeSettings,
    WatchSettings,
)
from fpkgi_server.domain.errors import ConfigInvalidError
from fpkgi_server.domain.models.mapped_path import MappedPath

_ModelT = TypeVar("_ModelT", bound=BaseModel)


@final
class SettingsLoader:
    LOG_LEVEL_ENV: ClassVar[str] = "LOG_LEVEL"

    @staticmethod
    def _describe(exc: ValidationError) -> str:
        parts: list[str] = []
        for error in exc.errors():
            location = ".".join(str(item) for item in error.get("loc", ()))
            message = str(error.get("msg", "invalid value"))
            parts.append(f"{location}: {message}" if location else message)
        return "; ".join(parts)

    @classmethod
    def _validate(cls, model: type[_ModelT], data: Mapping[str, object]) -> _ModelT:
        try:
            return model.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigInvalidError(cls._describe(exc)) from exc

    @staticmethod
    def parse_mapped_path(raw: str, flag: str) -> MappedPath:
        try:
            return MappedPath.parse(raw)
        except ValueError as exc:
            raise ConfigInvalidError(f"--{flag}: {exc}") from exc

    @staticmethod
    def parse_named_dirs(values: Sequence[str]) -> dict[str, Path]:
        directories: dict[str, Path] = {}
        for raw in values:
            value = str(raw or "").strip()
            if not value:
                continue
            if ":" in value:
                name, path = value.split(":", 1)
            else:
                name, path = value, value
            directories[name.strip().strip("/")] = Path(path)
        return directories

    @classmethod
    def runtime(
        cls, args: argparse.Namespace, environ: Mapping[str, str]
    ) -> RuntimeSettings:
        return cls._validate(
            RuntimeSettings,
            {
                "log_level": environ.get(cls.LOG_LEVEL_ENV),
                "error_log": getattr(args, "error_log", None),
            },
        )

    @classmethod
    def generate(cls, args: argparse.Namespace) -> GenerateSettings:
        icons_raw = getattr(args, "icons", None)
        external_raw = getattr(args, "external", None)
        return cls._validate(
            GenerateSettings,
            {
                "packages": cls.parse_mapped_path(args.packages, "packages"),
                "out": cls.parse_mapped_path(args.out, "out"),
                "base_url": args.url,
                "icons": cls.parse_mapped_path(icons_raw, "icons") if icons_raw else None,
                "external": Path(external_raw) if external_raw else None,
                "workers": getattr(args, "workers", 1),
            },
        )

    @classmethod
    def serve(cls, args: argparse.Namespace) -> ServeSettings:
        return cls._validate(
            ServeSettings,
            {
                "directories": cls.parse_named_dirs(args.dirs),
                "port": args.port,
                "host": args.host,
            },
        )

    @classmethod
    def watch(cls, args: argparse.Namespace) -> WatchSettings:
        directories = tuple(Path(str(raw)) for raw in args.dirs if str(raw or "").strip())
        return cls._validate(WatchSettings, {"directories": directories})

    @classmethod
    def host(cls, args: argparse.Namespace) -> HostSettings:
        return cls._validate(
            HostSettings,
            {
                "generate": cls.generate(args),
                "port": args.port,
                "host": args.host,
            },
        )
