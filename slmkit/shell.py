"""Interactive shell that sends AT commands to the modem over a serial line."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from typing import Optional, Sequence, Union

from .host import AtCmdState, CommandTimeout, ModemSlm
from .monitor import MonitorRegistry

log = logging.getLogger(__name__)

__all__ = ["USAGE", "CEREG_FILTER", "cereg_status", "is_registered", "run_command", "main"]

USAGE = "Usage: slm <at_command>"
CEREG_FILTER = "\r\n+CEREG:"
_CEREG_PREFIX_LEN = len("\r\n+CEREG: ")
_ATOI_RE = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")
_COMMAND_TIMEOUT = 10


def cereg_status(notif: str) -> int:
    """Registration status of a ``+CEREG`` notification; 0 if unreadable."""
    match = _ATOI_RE.match(notif[_CEREG_PREFIX_LEN:])
    return int(match.group(1)) if match else 0


def is_registered(notif: str) -> bool:
    """Whether a ``+CEREG`` notification reports home or roaming registration."""
    return cereg_status(notif) in (1, 5)


def run_command(modem: ModemSlm, argv: Sequence[str]) -> Union[int, AtCmdState]:
    """Handle ``slm <at_command>``: print usage or send the command."""
    if len(argv) < 2:
        print(USAGE)
        return 0
    return modem.send_cmd(argv[1], _COMMAND_TIMEOUT)


def _cereg_monitor(notif: str) -> None:
    if is_registered(notif):
        log.info("LTE connected")


def _data_indication(data: bytes) -> None:
    log.info("Data received (len=%d): %s", len(data), data.decode("utf-8", errors="replace"))


def _indication_handler() -> None:
    log.info("SLM indicate pin triggered")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="slmkit-shell", description="Send AT commands to a serial LTE modem."
    )
    parser.add_argument("device", help="serial device of the modem")
    parser.add_argument("-b", "--baudrate", type=int, default=115200)
    parser.add_argument(
        "--termination", choices=("crlf", "cr", "lf"), default="crlf",
        help="AT command terminator",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    terminators = {"crlf": "\r\n", "cr": "\r", "lf": "\n"}
    monitors = MonitorRegistry()
    monitors.register(CEREG_FILTER, _cereg_monitor)
    modem = ModemSlm(
        args.device,
        _data_indication,
        monitors=monitors,
        termination=terminators[args.termination],
        echo=lambda text: print(text, end="", flush=True),
        baudrate=args.baudrate,
    )
    modem.register_ind(_indication_handler)

    log.info("SLM Shell starts on %s", args.device)
    try:
        modem.start()
    except OSError as exc:
        log.error("Failed to initialize SLM: %s", exc)
        return 1

    try:
        for line in sys.stdin:
            command = line.rstrip("\r\n")
            try:
                run_command(modem, ["slm", command] if command else ["slm"])
            except CommandTimeout:
                print("timeout")
            except OSError as exc:
                log.error("Sending failed: %s", exc)
    except KeyboardInterrupt:
        pass
    finally:
        modem.close()
    return 0