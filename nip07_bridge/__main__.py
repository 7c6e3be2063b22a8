"""Command-line entry point: sign stdin events or run a key/cipher request."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, Sequence, TextIO

from pydantic import ValidationError

from . import BridgeError, BridgeSettings, fetch_public_key, launch_signer, run_cipher
from .models import Event, Mode

LOGGER = logging.getLogger("nip07_bridge")

CIPHER_CHOICES = ("nip04", "nip44")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nip07-bridge",
        description="Sign Nostr events through a NIP-07 browser extension",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Port to run the server on (default: 17007)",
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument(
        "--pubkey",
        action="store_true",
        help="Get public key instead of signing events",
    )
    action.add_argument(
        "--encrypt",
        choices=CIPHER_CHOICES,
        help="Encrypt the message read from stdin for --peer",
    )
    action.add_argument(
        "--decrypt",
        choices=CIPHER_CHOICES,
        help="Decrypt the ciphertext read from stdin from --peer",
    )
    parser.add_argument("--peer", help="Counterparty public key for --encrypt/--decrypt")
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Do not open a browser; navigate to the printed URL manually",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log bridge activity")
    args = parser.parse_args(argv)
    if (args.encrypt or args.decrypt) and not args.peer:
        parser.error("--peer is required with --encrypt/--decrypt")
    return args


def build_settings(args: argparse.Namespace) -> BridgeSettings:
    overrides = {}
    if args.port is not None:
        overrides["port"] = args.port
    if args.no_browser:
        overrides["open_browser"] = False
    return BridgeSettings(**overrides)


def read_events(stream: TextIO) -> List[Event]:
    events: List[Event] = []
    for number, line in enumerate(stream, start=1):
        if not line.strip():
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError as exc:
            LOGGER.error("Error parsing JSON on line %d: %s", number, exc)
            continue
        if not isinstance(event, dict):
            LOGGER.error("Error parsing JSON on line %d: expected an object", number)
            continue
        events.append(event)
    return events


def cipher_mode(args: argparse.Namespace) -> Mode:
    if args.encrypt:
        return Mode.NIP44_ENCRYPT if args.encrypt == "nip44" else Mode.NIP04_ENCRYPT
    return Mode.NIP44_DECRYPT if args.decrypt == "nip44" else Mode.NIP04_DECRYPT


async def run(args: argparse.Namespace, stdin: TextIO, stdout: TextIO) -> int:
    settings = build_settings(args)

    if args.pubkey:
        stdout.write(await fetch_public_key(settings) + "\n")
        return 0

    if args.encrypt or args.decrypt:
        text = stdin.read()
        if text.endswith("\n"):
            text = text[:-1]
        stdout.write(await run_cipher(cipher_mode(args), args.peer, text, settings) + "\n")
        return 0

    events = read_events(stdin)
    if not events:
        LOGGER.error("No valid events were provided. Exiting.")
        return 1
    signed = await launch_signer(events, settings)
    # Emit only after the whole batch succeeded.
    stdout.write("".join(json.dumps(event) + "\n" for event in signed))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(message)s")
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    try:
        code = asyncio.run(run(args, sys.stdin, sys.stdout))
    except (BridgeError, ValidationError) as exc:
        LOGGER.error("Error: %s", exc)
        code = 1
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
