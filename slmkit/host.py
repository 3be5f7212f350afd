"""Host side of the serial LTE modem link: sends AT commands over a serial
line, waits for their result codes and routes everything else to monitors
and a raw data handler."""

from __future__ import annotations

import errno
import logging
import threading
from enum import IntEnum
from typing import Any, Callable, Optional, Tuple, Union

from .monitor import MonitorRegistry
from .util import AtCommandError

log = logging.getLogger(__name__)

__all__ = [
    "AT_CMD_RESPONSE_MAX_LEN",
    "AtCmdState",
    "CommandTimeout",
    "parse_at_response",
    "ModemSlm",
]

AT_CMD_RESPONSE_MAX_LEN = 2100
"""Largest AT command response the host buffers, in bytes."""

_TERMINATIONS = (b"\r\n", b"\r", b"\n")


class AtCmdState(IntEnum):
    """Result of an AT command."""

    OK = 0
    ERROR = 1
    ERROR_CMS = 2
    ERROR_CME = 3
    PENDING = 4


class CommandTimeout(AtCommandError):
    """No result code arrived for an AT command in time."""

    def __init__(self, command: str) -> None:
        super().__init__(errno.EAGAIN, f"no response to {command!r}")
        self.command = command


# Result codes as formatted by the modem application (TS 27.007), in the
# order they are searched for.
_AT_RESPONSES = (
    (AtCmdState.OK, b"\r\nOK\r\n"),
    (AtCmdState.ERROR, b"\r\nERROR\r\n"),
    (AtCmdState.ERROR_CMS, b"\r\n+CMS ERROR:"),
    (AtCmdState.ERROR_CME, b"\r\n+CME ERROR:"),
)


def parse_at_response(data: Union[bytes, bytearray]) -> Optional[Tuple[AtCmdState, int]]:
    """Find a result code in ``data``.

    Returns ``(state, consumed)`` where ``consumed`` is the number of bytes
    up to and including the result line, or None if there is none yet.
    """
    data = bytes(data)
    for state, marker in _AT_RESPONSES:
        start = data.find(marker)
        if start < 0:
            continue
        end = start + len(marker)
        if state in (AtCmdState.OK, AtCmdState.ERROR):
            return state, end
        line_end = data.find(b"\r\n", end)
        if line_end >= 0:
            return state, line_end + 2
    return None


DataHandler = Callable[[bytes], None]
IndHandler = Callable[[], None]


class ModemSlm:
    """AT command client for a modem application on a serial line.

    ``port`` is a device name, opened with pyserial on :meth:`start`, or an
    already open port object with ``write`` (and ``read`` for :meth:`start`).
    Incoming bytes go through :meth:`feed`, either from the reader thread
    that :meth:`start` runs or from the caller.
    """

    def __init__(
        self,
        port: Any,
        data_handler: Optional[DataHandler] = None,
        *,
        monitors: Optional[MonitorRegistry] = None,
        termination: Union[str, bytes] = b"\r\n",
        resp_max_size: int = AT_CMD_RESPONSE_MAX_LEN,
        echo: Optional[Callable[[str], Any]] = None,
        baudrate: int = 115200,
    ) -> None:
        if isinstance(termination, str):
            termination = termination.encode("ascii")
        if termination not in _TERMINATIONS:
            raise ValueError(f"unsupported command terminator {termination!r}")
        if resp_max_size <= 0:
            raise ValueError("resp_max_size must be positive")
        if isinstance(port, str):
            self._device: Optional[str] = port
            self._port: Any = None
        else:
            self._device = None
            self._port = port
        self._owns_port = False
        self._baudrate = baudrate
        self._termination = bytes(termination)
        self._resp_max_size = resp_max_size
        self.data_handler = data_handler
        self.monitors = monitors if monitors is not None else MonitorRegistry()
        self.echo = echo
        self.ind_handler: Optional[IndHandler] = None
        self.ind_handler_backup: Optional[IndHandler] = None

        self._state = AtCmdState.OK
        self._resp = bytearray()
        self._lock = threading.Lock()
        self._tx_lock = threading.Lock()
        self._response = threading.Event()
        self._stop = threading.Event()
        self._reader: Optional[threading.Thread] = None

    @property
    def state(self) -> AtCmdState:
        """State of the last AT command."""
        with self._lock:
            return self._state

    def __enter__(self) -> "ModemSlm":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def start(self) -> None:
        """Open the port if needed and start reading from it."""
        if self._reader is not None:
            raise AtCommandError(errno.EFAULT, "already started")
        if self._port is None:
            import serial

            self._port = serial.Serial(self._device, self._baudrate, timeout=0.1)
            self._owns_port = True
        if not hasattr(self._port, "read"):
            raise AtCommandError(errno.ENODEV, "port cannot be read from")
        self._stop.clear()
        self._reader = threading.Thread(target=self._read_loop, name="slm-rx", daemon=True)
        self._reader.start()

    def close(self) -> None:
        """Stop reading, release the port and forget all handlers."""
        self._stop.set()
        reader, self._reader = self._reader, None
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=2)
        if self._owns_port and self._port is not None:
            self._port.close()
            self._port = None
            self._owns_port = False
        self.data_handler = None
        self.ind_handler = None
        self.ind_handler_backup = None
        with self._lock:
            self._state = AtCmdState.OK
            self._resp.clear()

    def _read_loop(self) -> None:
        while not self._stop.is_set():
            try:
                waiting = getattr(self._port, "in_waiting", 0) or 1
                data = self._port.read(waiting)
            except (OSError, TypeError, AttributeError) as exc:
                if not self._stop.is_set():
                    log.error("UART read failed: %s", exc)
                break
            if data:
                self.feed(data)

    def _print(self, data: bytes) -> None:
        if self.echo is not None:
            self.echo(data.decode("utf-8", errors="replace"))

    def feed(self, data: Union[bytes, bytearray]) -> None:
        """Process bytes received from the modem."""
        data = bytes(data)
        log.debug("RX %r", data)
        completed: Optional[bytes] = None
        unsolicited: Optional[bytes] = None
        with self._lock:
            copy_len = min(len(data), self._resp_max_size - len(self._resp))
            self._resp += data[:copy_len]

            if self._state is AtCmdState.PENDING:
                processed = 0
                match = parse_at_response(self._resp)
                if match is not None:
                    self._state, processed = match
                if processed == 0 and len(self._resp) == self._resp_max_size:
                    log.error("AT-response overflow. Increase resp_max_size")
                    processed = len(self._resp)
                if processed > 0:
                    completed = bytes(self._resp[:processed])
                    del self._resp[:processed]
                    room = self._resp_max_size - len(self._resp)
                    self._resp += data[copy_len:copy_len + room]

            if self._state is not AtCmdState.PENDING and self._resp:
                unsolicited = bytes(self._resp)
                self._resp.clear()

        if completed is not None:
            self._print(completed)
            self._response.set()

        if unsolicited is not None:
            if self.monitors.dispatch(unsolicited.decode("utf-8", errors="replace")):
                self.monitors.run_pending()
            self._print(unsolicited)

        if self.data_handler is not None:
            self.data_handler(data)

    def _tx_write(self, data: bytes, flush: bool) -> None:
        if self._port is None:
            raise AtCommandError(errno.ENODEV, "port is not open")
        log.debug("TX %r", data)
        with self._tx_lock:
            self._port.write(data)
            if flush and hasattr(self._port, "flush"):
                self._port.flush()

    def send_cmd(self, command: str, timeout: Optional[float]) -> AtCmdState:
        """Send ``command`` and wait for its result code.

        ``timeout`` is in seconds; zero or None waits forever. Raises
        :class:`CommandTimeout` when no result code arrives in time.
        """
        with self._lock:
            self._state = AtCmdState.PENDING
            self._response.clear()
        self._tx_write(command.encode("utf-8"), flush=False)
        self._tx_write(self._termination, flush=True)
        if not self._response.wait(timeout if timeout else None):
            log.error("timeout")
            raise CommandTimeout(command)
        with self._lock:
            return self._state

    def send_data(self, data: Union[bytes, bytearray]) -> None:
        """Send raw data, for example in data mode."""
        self._tx_write(bytes(data), flush=True)

    def register_ind(self, handler: Optional[IndHandler]) -> None:
        """Set the handler for indications; the previous one is kept as backup."""
        if self.ind_handler is not None:
            self.ind_handler_backup = self.ind_handler
        self.ind_handler = handler

    def indicate(self) -> bool:
        """Deliver an indication from the modem; False if no handler is set."""
        log.info("Remote indication")
        handler = self.ind_handler
        if handler is None:
            log.warning("Indication received but no indication handler is registered")
            return False
        handler()
        return True