from __future__ import annotations

from pathlib import Path

import pytest

from fpkgi_server.application.cli import build_parser
from fpkgi_server.config.settings_loader import SettingsLoader
from fpkgi_server.domain.errors import ConfigInvalidError
from fpkgi_server.domain.models import MappedPath


def _args(*argv: str):
    return build_parser().parse_args(list(argv))


def test_settings_loader_given_generate_flags_when_loaded_then_normalizes_paths_and_urls(
    temp_workspace: Path,
):
    args = _args(
        "generate",
        "--packages",
        f"{temp_workspace / 'pkgs'}:pkgs",
        "--url",
        " http://10.0.0.2:8000/ ",
        "--out",
        f"{temp_workspace / 'out'}:/out/",
        "--icons",
        f"{temp_workspace / 'icons'}:icons",
        "--external",
        str(temp_workspace / "external"),
        "--workers",
        "3",
    )

    settings = SettingsLoader.generate(args)

    assert settings.packages == MappedPath((temp_workspace / "pkgs").resolve(), "pkgs")
    assert settings.out.url_prefix == "out"
    assert settings.icons is not None
    assert settings.icons.fs_path == (temp_workspace / "icons").resolve()
    assert settings.external == temp_workspace / "external"
    assert settings.base_url == "http://10.0.0.2:8000"
    assert settings.workers == 3
    assert settings.lock_path == temp_workspace.resolve() / ".out.fpkgi-generate.lock"


def test_settings_loader_given_value_without_colon_then_uses_it_for_both_halves(
    temp_workspace: Path,
):
    raw = str(temp_workspace / "pkgs")

    mapped = SettingsLoader.parse_mapped_path(raw, "packages")

    assert mapped.fs_path == (temp_workspace / "pkgs").resolve()
    assert mapped.url_path == raw
    assert mapped.url_prefix == raw.strip("/")


def test_settings_loader_given_missing_fs_path_then_keeps_raw_path():
    mapped = SettingsLoader.parse_mapped_path("does/not/exist:files", "packages")

    assert mapped.fs_path == Path("does/not/exist")
    assert mapped.url_path == "files"


def test_settings_loader_given_empty_fs_half_then_raises_config_invalid():
    with pytest.raises(ConfigInvalidError, match="--packages"):
        _ = SettingsLoader.parse_mapped_path(":pkgs", "packages")


def test_settings_loader_given_blank_url_or_zero_workers_then_raises_config_invalid(
    temp_workspace: Path,
):
    common = ("--packages", str(temp_workspace / "pkgs"), "--out", str(temp_workspace / "out"))

    with pytest.raises(ConfigInvalidError, match="base_url"):
        _ = SettingsLoader.generate(_args("generate", *common, "--url", "/"))
    with pytest.raises(ConfigInvalidError, match="workers"):
        _ = SettingsLoader.generate(_args("generate", *common, "--url", "http://h", "--workers", "0"))


def test_settings_loader_given_serve_dirs_when_loaded_then_maps_names(temp_workspace: Path):
    args = _args(
        "serve",
        "--dirs",
        f"pkgs:{temp_workspace / 'pkgs'}",
        f"/out/:{temp_workspace / 'out'}",
        f"gone:{temp_workspace / 'gone'}",
        "--port",
        "9000",
    )

    settings = SettingsLoader.serve(args)

    assert settings.directories == {
        "pkgs": temp_workspace / "pkgs",
        "out": temp_workspace / "out",
        "gone": temp_workspace / "gone",
    }
    assert settings.port == 9000
    assert settings.host == "0.0.0.0"
    assert settings.missing_directories() == [("gone", temp_workspace / "gone")]


def test_settings_loader_given_file_instead_of_directory_when_serving_then_raises(
    temp_workspace: Path,
):
    plain = temp_workspace / "plain.txt"
    _ = plain.write_text("x")

    with pytest.raises(ConfigInvalidError, match="is not a directory"):
        _ = SettingsLoader.serve(_args("serve", "--dirs", f"plain:{plain}"))


def test_settings_loader_given_blank_dirs_or_bad_port_when_serving_then_raises():
    with pytest.raises(ConfigInvalidError, match="No valid directories"):
        _ = SettingsLoader.serve(_args("serve", "--dirs", " "))
    with pytest.raises(ConfigInvalidError, match="port"):
        _ = SettingsLoader.serve(_args("serve", "--dirs", "a:/tmp", "--port", "70000"))


def test_settings_loader_given_log_level_env_when_runtime_loaded_then_normalizes():
    args = _args("--error-log", "logs/errors.log", "watch", "--dirs", ".")

    assert SettingsLoader.runtime(args, {"LOG_LEVEL": "WARN"}).log_level == "warning"
    assert SettingsLoader.runtime(args, {}).log_level == "info"
    assert SettingsLoader.runtime(args, {}).error_log == Path("logs/errors.log")
    with pytest.raises(ConfigInvalidError, match="LOG_LEVEL"):
        _ = SettingsLoader.runtime(args, {"LOG_LEVEL": "verbose"})


def test_settings_loader_given_host_flags_when_loaded_then_derives_serve_and_watch_settings(
    temp_workspace: Path,
):
    args = _args(
        "host",
        "--port",
        "0",
        "--packages",
        f"{temp_workspace / 'pkgs'}:pkgs",
        "--url",
        "http://h",
        "--out",
        f"{temp_workspace / 'out'}:out",
        "--icons",
        f"{temp_workspace / 'icons'}:icons",
    )

    settings = SettingsLoader.host(args)

    assert settings.serve_settings().directories == {
        "pkgs": (temp_workspace / "pkgs").resolve(),
        "out": (temp_workspace / "out").resolve(),
        "icons": (temp_workspace / "icons").resolve(),
    }
    assert settings.watch_settings().directories == ((temp_workspace / "pkgs").resolve(),)


def test_settings_loader_given_nested_url_prefix_when_hosting_then_raises(temp_workspace: Path):
    args = _args(
        "host",
        "--packages",
        f"{temp_workspace / 'pkgs'}:files/pkgs",
        "--url",
        "http://h",
        "--out",
        f"{temp_workspace / 'out'}:out",
    )

    with pytest.raises(ConfigInvalidError, match="single non-empty path segment"):
        _ = SettingsLoader.host(args)
