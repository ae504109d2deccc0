from __future__ import annotations

import argparse
from typing import Any

from fpkgi_server import __version__

GENERATE_ARGS: tuple[tuple[str, dict[str, Any]], ...] = (
    (
        "--packages",
        {
            "required": True,
            "metavar": "FS:URL",
            "help": "Packages directory and the URL prefix it is served under",
        },
    ),
    (
        "--url",
        {
            "required": True,
            "metavar": "BASE",
            "help": "Base URL prefixed to every package and cover link",
        },
    ),
    (
        "--out",
        {
            "required": True,
            "metavar": "FS:URL",
            "help": "Directory receiving the per-category JSON files",
        },
    ),
    (
        "--icons",
        {
            "default": None,
            "metavar": "FS:URL",
            "help": "Directory receiving extracted icon0.png covers",
        },
    ),
    (
        "--external",
        {
            "default": None,
            "metavar": "DIR",
            "help": "Directory of <category>.json files merged into the catalog",
        },
    ),
    (
        "--workers",
        {
            "type": int,
            "default": 1,
            "help": "Packages parsed in parallel (default: 1)",
        },
    ),
)

SERVER_ARGS: tuple[tuple[str, dict[str, Any]], ...] = (
    ("--port", {"type": int, "default": 8000, "help": "Listening port (default: 8000)"}),
    ("--host", {"default": "0.0.0.0", "help": "Listening address (default: 0.0.0.0)"}),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fpkgi-server",
        description="Index PS4 PKG files into FPKGi JSON catalogs and serve them over HTTP.",
    )
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _ = parser.add_argument(
        "--error-log",
        default=None,
        metavar="PATH",
        help="Also write WARNING and above to a rotating log file",
    )
    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    generate = commands.add_parser("generate", help="Build the JSON catalog once")
    for flag, opts in GENERATE_ARGS:
        _ = generate.add_argument(flag, **opts)

    serve = commands.add_parser("serve", help="Serve directories over HTTP")
    _ = serve.add_argument(
        "--dirs",
        nargs="+",
        required=True,
        metavar="NAME:PATH",
        help="Directories to expose, each under /NAME/",
    )
    for flag, opts in SERVER_ARGS:
        _ = serve.add_argument(flag, **opts)

    watch = commands.add_parser("watch", help="Log filesystem events")
    _ = watch.add_argument("--dirs", nargs="+", required=True, metavar="PATH")

    host = commands.add_parser(
        "host", help="Generate, serve and regenerate whenever packages change"
    )
    for flag, opts in (*SERVER_ARGS, *GENERATE_ARGS):
        _ = host.add_argument(flag, **opts)

    inspect = commands.add_parser("inspect", help="Print the header, entries and SFO of a PKG")
    _ = inspect.add_argument("pkg", metavar="PKG")

    extract = commands.add_parser("extract", help="Extract one entry from a PKG")
    _ = extract.add_argument("pkg", metavar="PKG")
    _ = extract.add_argument(
        "identifier", help="Entry name (e.g. param.sfo) or hexadecimal id (e.g. 0x1000)"
    )
    _ = extract.add_argument("dest", metavar="DEST")

    return parser
