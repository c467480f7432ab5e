from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from ampy_commander.common.logging_config import (
    add_log_level_arguments,
    configure_logging,
    level_from_args,
)
from ampy_commander.constants import AMPY_EXECUTABLE, DEFAULT_COM_PORT, LOG_LEVEL
from ampy_commander.services.ampy import Ampy, AmpyOutput, ResetMode

OUTPUT_BANNER = "-------------OUTPUT-------------"
ERROR_BANNER = "-------------ERROR-------------"


def print_output(res: AmpyOutput) -> None:
    print(OUTPUT_BANNER)
    print(res.output)
    if res.error != "":
        print(ERROR_BANNER)
        print(res.error)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ampy-commander-cli", description="Run one ampy command against a board"
    )
    parser.add_argument(
        "-p", "--port", type=int, default=DEFAULT_COM_PORT, help="Board port number (COM<n>)"
    )
    parser.add_argument(
        "--executable", default=AMPY_EXECUTABLE, help="ampy executable to launch"
    )
    add_log_level_arguments(parser)

    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("ls", help="List a directory")
    ls.add_argument("directory", nargs="?", default="/")
    ls.add_argument("-l", "--long-format", action="store_true")
    ls.add_argument("-r", "--recursive", action="store_true")

    get = sub.add_parser("get", help="Print a remote file, or save it locally")
    get.add_argument("remote_file")
    get.add_argument("local_file", nargs="?")

    put = sub.add_parser("put", help="Upload a file or folder")
    put.add_argument("local")
    put.add_argument("remote", nargs="?")

    rm = sub.add_parser("rm", help="Remove a file")
    rm.add_argument("remote_file")

    mkdir = sub.add_parser("mkdir", help="Create a directory")
    mkdir.add_argument("directory")
    mkdir.add_argument("--exists-okay", action="store_true")
    mkdir.add_argument("--make-parents", action="store_true")

    rmdir = sub.add_parser("rmdir", help="Remove a directory and its children")
    rmdir.add_argument("remote_folder")
    rmdir.add_argument("--missing-okay", action="store_true")

    reset = sub.add_parser("reset", help="Reboot the board")
    reset.add_argument(
        "mode",
        nargs="?",
        default=ResetMode.REPL.value,
        choices=[m.value for m in ResetMode],
    )

    run = sub.add_parser("run", help="Upload and run a script")
    run.add_argument("local_file")
    mode = run.add_mutually_exclusive_group()
    mode.add_argument("-n", "--no-wait", action="store_true", help="Do not wait for the script")
    mode.add_argument("-s", "--stream", action="store_true", help="Print output as it arrives")

    return parser


async def _stream(ampy: Ampy, local_file: str) -> int:
    session = await ampy.run_with_stream_output(
        local_file,
        on_stdout=lambda line: print(line, flush=True),
        on_stderr=lambda line: print(line, file=sys.stderr, flush=True),
    )
    try:
        return await session.wait()
    except asyncio.CancelledError:
        await session.stop()
        raise


async def execute(ampy: Ampy, args: argparse.Namespace) -> int:
    """Run the selected subcommand; returns the process exit code."""
    cmd = args.command
    if cmd == "ls":
        print_output(await ampy.list_directory(args.directory, args.long_format, args.recursive))
    elif cmd == "get":
        if args.local_file:
            await ampy.download_file(args.remote_file, args.local_file)
        else:
            print_output(await ampy.get_file_content(args.remote_file))
    elif cmd == "put":
        await ampy.upload(args.local, args.remote)
    elif cmd == "rm":
        await ampy.remove_file(args.remote_file)
    elif cmd == "mkdir":
        await ampy.create_directory(args.directory, args.exists_okay, args.make_parents)
    elif cmd == "rmdir":
        await ampy.remove_directory(args.remote_folder, args.missing_okay)
    elif cmd == "reset":
        await ampy.reset(ResetMode(args.mode))
    elif cmd == "run":
        if args.no_wait:
            await ampy.run_no_wait(args.local_file)
        elif args.stream:
            return await _stream(ampy, args.local_file)
        else:
            print_output(await ampy.run(args.local_file))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level_from_args(args, LOG_LEVEL), add_ui_handler=False)

    ampy = Ampy(args.port, executable=args.executable)
    logging.info("Target: %s via %s", ampy.device, ampy.executable)
    try:
        return asyncio.run(execute(ampy, args))
    except OSError as e:
        logging.error("Failed to launch %s: %s", ampy.executable, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
