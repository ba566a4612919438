"""
cam - Command Line Interface

    cam pin docker -- docker ps -a          # add to the top of "docker"
    cam pin danger -p -- rm -rf /tmp/x      # private: stored encrypted
    cam ls                                  # stacks (public view)
    cam ls docker                           # commands of one stack
    cam ls -p danger                        # full view, private decrypted
    cam cp docker 1                         # copy to clipboard
    cam mv docker                           # copy index 0, then remove it
    cam clear docker 2 | cam clear docker | cam clear -a
    cam swap docker 2 [0]
    cam config api-key <value>

Options of `pin` go anywhere before `--`; everything after `--` is the
command, so its own dashes are not read as cam options.

Indexes: `ls` and `cp` without -p count public commands only. `mv`,
`clear` and `swap` always work on the full stack, as shown by `ls -p`.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pyperclip

from . import __version__
from .codec import Record
from .config import ConfigStore, SecretConfigField, StorePaths
from .errors import CamError
from .store import Store


def open_store(paths: StorePaths, decrypt_private: bool, missing_ok: bool = True) -> Store:
    store = Store(paths)
    store.load(decrypt_private=decrypt_private, missing_ok=missing_ok)
    return store


def format_record(index: int, record: Record) -> str:
    marker = "*" if record.is_private else " "
    text = record.plaintext or "(encrypted)"
    line = f"[{index}]{marker} {text}"
    if record.tags:
        line += f"  #{' #'.join(record.tags)}"
    return line


def copy_text(record: Record) -> str:
    """Text to put on the clipboard; refuses records we could not decrypt."""
    if record.decrypt_failed:
        raise CamError("Command could not be decrypted; refusing to copy it")
    if not record.plaintext:
        raise CamError("Command is encrypted and the private key is missing")
    return record.plaintext


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_pin(paths: StorePaths, args) -> int:
    store = open_store(paths, decrypt_private=True)
    text = " ".join(args.command)
    store.add_command(args.stack, text, args.tag, is_private=args.private)
    store.save()
    print(f"✓ Pinned to '{args.stack}'{' (private)' if args.private else ''}")
    return 0


def cmd_ls(paths: StorePaths, args) -> int:
    store = open_store(paths, decrypt_private=args.private)

    if not args.stack:
        names = store.stack_names()
        if not names:
            print("No stacks found.")
            return 0
        print("Available Stacks:")
        for name in names:
            print(f"- {name} ({len(store.get_stack(name))} commands)")
        return 0

    records = store.get_stack(args.stack)
    if not records:
        if args.stack in store.stacks:
            print(f"Stack '{args.stack}' is empty.")
        else:
            print(f"Stack '{args.stack}' does not exist.")
        return 0

    print(f"Stack: {args.stack}")
    for i, record in enumerate(records):
        print(format_record(i, record))
    return 0


def cmd_cp(paths: StorePaths, args) -> int:
    store = open_store(paths, decrypt_private=args.private, missing_ok=False)
    record = store.get_command(args.stack, args.index)
    pyperclip.copy(copy_text(record))
    print("✓ Copied to clipboard!")
    return 0


def cmd_mv(paths: StorePaths, args) -> int:
    store = open_store(paths, decrypt_private=True, missing_ok=False)
    record = store.get_command(args.stack, args.index)
    pyperclip.copy(copy_text(record))
    store.remove_command(args.stack, args.index)
    store.save()
    print("✓ Moved to clipboard!")
    return 0


def cmd_clear(paths: StorePaths, args) -> int:
    store = open_store(paths, decrypt_private=True, missing_ok=args.all)
    if args.all:
        store.clear()
        what = "all stacks"
    elif not args.stack:
        raise CamError("Give a stack name, or -a to remove all stacks")
    elif args.index is not None:
        store.remove_command(args.stack, args.index)
        what = f"'{args.stack}' [{args.index}]"
    else:
        store.remove_stack(args.stack)
        what = f"stack '{args.stack}'"
    store.save()
    print(f"✓ Removed {what}.")
    return 0


def cmd_swap(paths: StorePaths, args) -> int:
    store = open_store(paths, decrypt_private=True, missing_ok=False)
    store.swap(args.stack, args.i, args.j)
    store.save()
    print(f"✓ Swapped [{args.i}] and [{args.j}] in '{args.stack}'.")
    return 0


def cmd_config(paths: StorePaths, args) -> int:
    config = ConfigStore(paths)
    config.load()
    if args.key.lower() != "api-key":
        raise CamError(f"Unknown configuration key: '{args.key}'")
    SecretConfigField(config).set(args.value)
    print("✓ API key saved (encrypted).")
    return 0


# =============================================================================
# ARGUMENTS
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cam", description="Pin, list and recall shell commands.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--home", type=Path, help="config directory (default: $CAM_HOME or ~/.config/cam)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for debug)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("pin", help="pin a command to the top of a stack")
    p.add_argument("stack")
    p.add_argument("command", nargs="+", help="command text (put -- before commands with dashes)")
    p.add_argument("-p", "--private", action="store_true", help="store encrypted")
    p.add_argument("-t", "--tag", action="append", default=[], help="tag (repeatable)")
    p.set_defaults(func=cmd_pin)

    p = sub.add_parser("ls", help="list stacks, or the commands of one stack")
    p.add_argument("stack", nargs="?")
    p.add_argument("-p", "--private", action="store_true", help="include and decrypt private commands")
    p.set_defaults(func=cmd_ls)

    p = sub.add_parser("cp", help="copy a command to the clipboard")
    p.add_argument("stack")
    p.add_argument("index", nargs="?", type=int, default=0)
    p.add_argument("-p", "--private", action="store_true", help="index into the full (decrypted) stack")
    p.set_defaults(func=cmd_cp)

    p = sub.add_parser("mv", help="copy a command to the clipboard and remove it")
    p.add_argument("stack")
    p.add_argument("index", nargs="?", type=int, default=0)
    p.set_defaults(func=cmd_mv)

    p = sub.add_parser("clear", help="remove a command, a stack, or everything")
    p.add_argument("stack", nargs="?")
    p.add_argument("index", nargs="?", type=int)
    p.add_argument("-a", "--all", action="store_true", help="remove all stacks")
    p.set_defaults(func=cmd_clear)

    p = sub.add_parser("swap", help="swap two commands in a stack")
    p.add_argument("stack")
    p.add_argument("i", type=int)
    p.add_argument("j", type=int, nargs="?", default=0)
    p.set_defaults(func=cmd_swap)

    p = sub.add_parser("config", help="set a configuration value")
    p.add_argument("key", help="api-key")
    p.add_argument("value")
    p.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    paths = StorePaths(args.home.expanduser()) if args.home else StorePaths.default()
    try:
        return args.func(paths, args)
    except (CamError, ValueError, pyperclip.PyperclipException) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(130)
