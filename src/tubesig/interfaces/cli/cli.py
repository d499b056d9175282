from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any, TextIO

import structlog
from pydantic import ValidationError

from tubesig.domain.entities.formats import FormatDescriptor, VideoInfo
from tubesig.domain.exceptions import TubesigError
from tubesig.infrastructure.composition import Services, build_services
from tubesig.infrastructure.config import AppConfig, load_config
from tubesig.infrastructure.formats.ranking import QUALITY_CHOICES, choose_format
from tubesig.infrastructure.logging.setup import configure_logging

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tubesig",
        description="Resolve playable media URLs for a video.",
    )

    # Config wiring flags (no business logic)
    parser.add_argument("--config", default=None, help="Path to YAML config file.")
    parser.add_argument("--dotenv", default=None, help="Path to .env file.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )
    parser.add_argument("--proxy", default=None, help="Proxy URL for all requests.")
    parser.add_argument(
        "--clients",
        default=None,
        help="Comma separated device clients, e.g. IOS,ANDROID_VR.",
    )
    parser.add_argument("--cookie", default=None, help="Raw Cookie header.")
    parser.add_argument("--cookie-file", default=None, help="Netscape cookies.txt.")
    parser.add_argument("--po-token", default=None, help="Proof-of-origin token.")
    parser.add_argument("--visitor-data", default=None, help="Visitor id.")

    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="List the resolved formats of a video.")
    info.add_argument("video", help="Video id or URL.")
    info.add_argument("--json", action="store_true", help="Print JSON instead of a table.")

    download = sub.add_parser("download", help="Download one format of a video.")
    download.add_argument("video", help="Video id or URL.")
    download.add_argument(
        "-o", "--output", required=True, help="Target file, '-' for stdout."
    )
    download.add_argument(
        "--quality",
        default="highest",
        help=f"One of {', '.join(QUALITY_CHOICES)} or an itag.",
    )
    download.add_argument(
        "--filter",
        default=None,
        choices=["video", "videoonly", "audio", "audioonly", "audioandvideo"],
        help="Restrict candidate formats before choosing.",
    )

    player = sub.add_parser("player", help="Diagnose the current player script.")
    player.add_argument("--seed", default=None, help="Seed page to read the script URL from.")
    player.add_argument(
        "--dump",
        action="store_true",
        help="Also print the extracted program sources.",
    )

    return parser.parse_args(argv)


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "log_level": args.log_level,
        "log_format": args.log_format,
        "http_proxy": args.proxy,
        "clients": args.clients,
        "session_cookie": args.cookie,
        "session_cookie_file": args.cookie_file,
        "session_po_token": args.po_token,
        "session_visitor_data": args.visitor_data,
    }


def _human_size(size: int | None) -> str:
    if not size:
        return "-"
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{value:.1f}{unit}" if unit != "B" else f"{int(value)}B"
        value /= 1024
    return f"{size}B"


def _format_row(fmt: FormatDescriptor) -> str:
    kind = "av" if fmt.has_video and fmt.has_audio else "video" if fmt.has_video else "audio"
    return (
        f"{fmt.itag:>5}  {kind:<5}  {fmt.container or '-':<5}  "
        f"{fmt.quality_label or '-':<8}  {fmt.codecs or '-':<28}  "
        f"{(fmt.bitrate or 0) // 1000:>6}k  {fmt.audio_bitrate or '-':>4}  "
        f"{_human_size(fmt.content_length):>9}  {fmt.client or '-'}"
    )


def print_info(info: VideoInfo, out: TextIO, *, as_json: bool = False) -> None:
    if as_json:
        json.dump(info.to_dict(), out, indent=2)
        out.write("\n")
        return
    out.write(f"{info.title or info.video_id}  ({info.author or 'unknown'})\n")
    out.write(f"player script: {info.player_script_url or '-'}\n")
    if info.client_errors:
        for name, error in info.client_errors.items():
            out.write(f"client {name} failed: {error}\n")
    out.write(
        " itag  kind   cont.  quality   codecs                        "
        "bitrate  abr       size  client\n"
    )
    for fmt in info.formats:
        out.write(_format_row(fmt) + "\n")


async def _cmd_info(services: Services, args: argparse.Namespace) -> int:
    info = await services.video_info.execute(args.video)
    print_info(info, sys.stdout, as_json=args.json)
    return EXIT_OK


async def _cmd_download(services: Services, args: argparse.Namespace) -> int:
    info = await services.video_info.execute(args.video)
    fmt = choose_format(info.formats, args.quality, filter=args.filter)
    log.info("format_chosen", itag=fmt.itag, quality=fmt.quality_label, client=fmt.client)
    if args.output == "-":
        written = await services.streamer.stream(fmt, sys.stdout.buffer)
    else:
        with Path(args.output).open("wb") as sink:
            written = await services.streamer.stream(fmt, sink)
    sys.stderr.write(f"wrote {written} bytes (itag {fmt.itag})\n")
    return EXIT_OK


async def _cmd_player(services: Services, args: argparse.Namespace) -> int:
    if args.seed:
        script_url = await services.fetcher.locate_script_url(args.seed)
    else:
        script_url = await services.functions.locate_script_url()
    functions = await services.functions.get_function_set(script_url)
    report: dict[str, Any] = {
        "script_url": script_url,
        "signature_timestamp": functions.signature_timestamp,
        "decipher": functions.decipher is not None,
        "n_transform": functions.n_transform is not None,
    }
    if args.dump:
        report["decipher_source"] = functions.decipher.source if functions.decipher else None
        report["n_transform_source"] = (
            functions.n_transform.source if functions.n_transform else None
        )
    json.dump(report, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return EXIT_OK


_COMMANDS = {
    "info": _cmd_info,
    "download": _cmd_download,
    "player": _cmd_player,
}


async def run(config: AppConfig, args: argparse.Namespace) -> int:
    async with build_services(config) as services:
        return await _COMMANDS[args.command](services, args)


def start(argv: Iterable[str] | None = None) -> int:
    """Process entrypoint: load config once, configure logging, run one command."""
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    try:
        config = load_config(
            config_path=Path(args.config) if args.config else None,
            dotenv_path=Path(args.dotenv) if args.dotenv else None,
            cli_overrides=_cli_overrides(args),
        )
    except (ValidationError, ValueError, FileNotFoundError) as exc:
        sys.stderr.write(f"tubesig: configuration error: {exc}\n")
        return EXIT_USAGE

    configure_logging(config)

    try:
        return asyncio.run(run(config, args))
    except TubesigError as exc:
        log.debug("command_failed", command=args.command, exc_info=True)
        sys.stderr.write(f"tubesig: {exc}\n")
        return EXIT_ERROR
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(start())
