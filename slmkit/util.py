"""Shared helpers for AT command handling: parameter access, hex coding,
response reconstruction, address helpers and the AT response channel."""

from __future__ import annotations

import errno
import ipaddress
import logging
import math
import os
import re
import socket
import string
import struct
import threading
from enum import Enum, IntEnum
from typing import Any, Callable, Optional, Sequence, Tuple, Union

log = logging.getLogger(__name__)

__all__ = [
    "AtSockopt",
    "AtSecSockopt",
    "CommandType",
    "AtCommandError",
    "AtChannel",
    "DATAMODE_SEND",
    "DATAMODE_EXIT",
    "DATAMODE_FLAG_MORE_DATA",
    "DATAMODE_FLAG_EXIT_HANDLER",
    "cmd_name_has_lower",
    "casecmp",
    "hexstr_check",
    "htoa",
    "atoh",
    "str_to_int",
    "format_forwarded_response",
    "parse_cgpaddr",
    "string_param",
    "float_param",
    "int_param",
    "resolve_host",
    "get_peer_addr",
]

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

DATAMODE_SEND = "send"
DATAMODE_EXIT = "exit"
DATAMODE_FLAG_MORE_DATA = 0x1
DATAMODE_FLAG_EXIT_HANDLER = 0x2

_C_SPACE = " \t\n\v\f\r"
_ASCII_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)
_HEX_DIGITS = frozenset(string.hexdigits)
_DIGITS = string.digits + string.ascii_lowercase

_CGPADDR_RE = re.compile(
    r'\+CGPADDR:\s*[+-]?\d+,"([.:0-9A-F]{1,46})(?:",\"([:0-9A-F]{1,46}))?'
)
_FLOAT_PREFIX_RE = re.compile(
    r"[ \t\n\v\f\r]*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


class AtSockopt(IntEnum):
    """Non-secure socket options for XSOCKETOPT."""

    REUSEADDR = 2
    RCVTIMEO = 20
    SNDTIMEO = 21
    SILENCE_ALL = 30
    IP_ECHO_REPLY = 31
    IPV6_ECHO_REPLY = 32
    BINDTOPDN = 40
    TCP_SRV_SESSTIMEO = 55
    RAI = 61
    IPV6_DELAYED_ADDR_REFRESH = 62


class AtSecSockopt(IntEnum):
    """Secure socket options for XSSOCKETOPT."""

    TLS_HOSTNAME = 2
    TLS_CIPHERSUITE_USED = 4
    TLS_PEER_VERIFY = 5
    TLS_SESSION_CACHE = 12
    TLS_SESSION_CACHE_PURGE = 13
    TLS_DTLS_CID = 14
    TLS_DTLS_CID_STATUS = 15
    TLS_DTLS_HANDSHAKE_TIMEO = 18


class CommandType(Enum):
    """Kind of AT command: set (``=``), read (``?``), test (``=?``)."""

    SET = "set"
    READ = "read"
    TEST = "test"
    UNKNOWN = "unknown"


class AtCommandError(OSError):
    """An AT command failed with an errno-style code."""

    def __init__(self, code: int, message: Optional[str] = None) -> None:
        super().__init__(code, message or os.strerror(code))


DatamodeCallback = Callable[[str, bytes, int], Any]


class AtChannel:
    """Where AT responses and received data go, plus data-mode state.

    ``sink`` is a callable taking bytes or an object with ``write``;
    without one, everything sent is collected in :attr:`output`.
    """

    def __init__(self, sink: Any = None) -> None:
        if sink is None:
            self._write = None
        elif hasattr(sink, "write"):
            self._write = sink.write
        elif callable(sink):
            self._write = sink
        else:
            raise TypeError("sink must be callable or have a write() method")
        self.output = bytearray()
        self._callback: Optional[DatamodeCallback] = None
        self._lock = threading.RLock()

    @property
    def in_datamode(self) -> bool:
        return self._callback is not None

    @property
    def datamode_callback(self) -> Optional[DatamodeCallback]:
        return self._callback

    def _emit(self, data: bytes) -> None:
        with self._lock:
            if self._write is None:
                self.output += data
            else:
                self._write(data)

    def rsp_send(self, text: str) -> None:
        """Send an AT response or notification."""
        self._emit(text.encode("utf-8"))

    def data_send(self, data: bytes) -> None:
        """Send raw data."""
        self._emit(bytes(data))

    def enter_datamode(self, callback: DatamodeCallback) -> None:
        """Enter data mode; ``callback(op, data, flags)`` handles the traffic."""
        with self._lock:
            if self._callback is not None:
                raise AtCommandError(errno.EINVAL, "already in data mode")
            self._callback = callback

    def exit_datamode(self, cause: int = 0) -> bool:
        """Leave data mode because of ``cause``; False if not in data mode."""
        with self._lock:
            callback = self._callback
            if callback is None:
                return False
            self._callback = None
        callback(DATAMODE_EXIT, b"", DATAMODE_FLAG_EXIT_HANDLER)
        self.rsp_send(f"\r\n#XDATAMODE: {cause}\r\n")
        return True


def cmd_name_has_lower(cmd: str) -> bool:
    """Whether the command name (before ``=`` or ``?``) has lowercase letters."""
    for char in cmd:
        if char in "=?":
            break
        if "a" <= char <= "z":
            log.error('AT command "%s" must be all-uppercase.', cmd)
            return True
    return False


def casecmp(str1: str, str2: str) -> bool:
    """ASCII case-insensitive equality."""
    return len(str1) == len(str2) and str1.translate(_ASCII_UPPER) == str2.translate(
        _ASCII_UPPER
    )


def _as_text(data: Union[str, bytes, bytearray]) -> str:
    return data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else data


def hexstr_check(data: Union[str, bytes, bytearray]) -> bool:
    """Whether every character is a hexadecimal digit."""
    return all(char in _HEX_DIGITS for char in _as_text(data))


def htoa(data: Union[bytes, bytearray]) -> str:
    """Encode bytes as an uppercase hexadecimal string."""
    return bytes(data).hex().upper()


def atoh(ascii: Union[str, bytes, bytearray], max_len: Optional[int] = None) -> bytes:
    """Decode a hexadecimal string into at most ``max_len`` bytes."""
    text = _as_text(ascii)
    if len(text) % 2:
        raise ValueError("hex string has odd length")
    if max_len is not None and len(text) > max_len * 2:
        raise ValueError("hex string too long")
    if not hexstr_check(text):
        raise ValueError("not a hex string")
    return bytes.fromhex(text)


def str_to_int(text: str, base: int = 10) -> int:
    """Convert a whole string to a 32-bit integer with ``strtol`` rules."""
    if base != 0 and not 2 <= base <= 36:
        raise ValueError(f"invalid base {base}")
    body = text.lstrip(_C_SPACE)
    sign = 1
    if body[:1] in ("+", "-"):
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    has_hex_prefix = body[:2].lower() == "0x" and len(body) > 2 and body[2].lower() in "0123456789abcdef"
    if base == 0:
        if has_hex_prefix:
            base, body = 16, body[2:]
        elif body.startswith("0") and len(body) > 1:
            base, body = 8, body[1:]
        else:
            base = 10
    elif base == 16 and has_hex_prefix:
        body = body[2:]
    valid = _DIGITS[:base]
    if not body or any(char not in valid for char in body.lower()):
        raise ValueError(f"not an integer: {text!r}")
    value = sign * int(body, base)
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def format_forwarded_response(
    lines: Sequence[str], max_len: Optional[int] = None
) -> Tuple[str, bool]:
    """Rebuild a forwarded AT response from its first one or two lines.

    Returns ``(text, is_error)``. ``max_len`` is the buffer size including
    the terminator; a response that does not fit raises ``E2BIG``.
    """
    if not lines:
        raise ValueError("no response lines")
    line_count = min(len(lines), 2)
    first = lines[0]
    result_line = first if line_count == 1 else lines[1]

    if result_line == "OK":
        body = first
        terminator = "\r\n" if line_count == 1 else "\r\nOK\r\n"
        is_error = False
    else:
        body = first if (line_count == 1 and "ERROR" in result_line) else ""
        terminator = "\r\n" if body else "ERROR\r\n"
        is_error = True

    text = body + terminator
    if max_len is not None and len(text) >= max_len:
        raise AtCommandError(
            errno.E2BIG, f"{len(text) - max_len + 1} bytes of the AT response truncated"
        )
    return text, is_error


def parse_cgpaddr(response: str) -> Tuple[str, str]:
    """Extract ``(ipv4, ipv6)`` from a ``+CGPADDR`` response; missing are ''."""
    match = _CGPADDR_RE.match(response)
    if not match:
        return "", ""
    addr1, addr2 = match.group(1), match.group(2)
    addr4 = addr6 = ""
    if _is_ip(addr1, ipaddress.IPv4Address):
        addr4 = addr1
    elif _is_ip(addr1, ipaddress.IPv6Address):
        return addr4, addr1
    if addr2 is not None and _is_ip(addr2, ipaddress.IPv6Address):
        addr6 = addr2
    return addr4, addr6


def _is_ip(text: str, kind: type) -> bool:
    try:
        kind(text)
    except ValueError:
        return False
    return True


def _param(params: Sequence[Any], index: int) -> Any:
    if not 0 <= index < len(params):
        raise AtCommandError(errno.EINVAL, f"no parameter at index {index}")
    return params[index]


def string_param(params: Sequence[Any], index: int, max_len: Optional[int] = None) -> str:
    """String parameter at ``index``, shorter than ``max_len`` bytes.

    An empty parameter raises ``ENODATA``, a non-string ``EOPNOTSUPP``
    and a too long one ``ENOMEM``.
    """
    value = _param(params, index)
    if value is None:
        raise AtCommandError(errno.ENODATA, f"parameter {index} is empty")
    if not isinstance(value, str):
        raise AtCommandError(errno.EOPNOTSUPP, f"parameter {index} is not a string")
    if max_len is not None and len(value.encode("utf-8")) >= max_len:
        raise AtCommandError(errno.ENOMEM, f"parameter {index} is too long")
    return value


def float_param(params: Sequence[Any], index: int) -> float:
    """Single-precision value of a string parameter, parsed like ``strtof``."""
    text = string_param(params, index, 32)
    match = _FLOAT_PREFIX_RE.match(text)
    if not match:
        return 0.0
    value = float(match.group(1))
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def int_param(params: Sequence[Any], index: int) -> int:
    """Integer parameter at ``index``; a non-integer raises ``EOPNOTSUPP``."""
    value = _param(params, index)
    if isinstance(value, bool) or not isinstance(value, int):
        raise AtCommandError(errno.EOPNOTSUPP, f"parameter {index} is not a number")
    return value


def resolve_host(
    host: str, port: int, family: int = socket.AF_UNSPEC, cid: int = 0
) -> tuple:
    """Resolve ``host`` to its first IPv4 or IPv6 socket address.

    ``cid`` is the PDP context (0 to 10) the lookup belongs to.
    """
    if not 0 <= cid <= 10:
        raise AtCommandError(errno.EINVAL, f"invalid PDP context {cid}")
    if not 0 <= port <= 0xFFFF:
        raise AtCommandError(errno.EINVAL, f"invalid port {port}")
    try:
        infos = socket.getaddrinfo(host, str(port), family, 0, 0, socket.AI_NUMERICSERV)
    except socket.gaierror as exc:
        log.error("getaddrinfo() error: %s", exc)
        raise AtCommandError(errno.EHOSTUNREACH, f"cannot resolve {host}: {exc}") from exc
    for addr_family, _type, _proto, _name, sockaddr in infos:
        if addr_family in (socket.AF_INET, socket.AF_INET6):
            return sockaddr
    raise AtCommandError(errno.EAFNOSUPPORT, f"no IP address for {host}")


def get_peer_addr(address: Sequence[Any]) -> Tuple[str, int]:
    """Printable ``(ip, port)`` of a socket address tuple."""
    if len(address) < 2:
        raise ValueError("address must hold a host and a port")
    host = str(address[0]).split("%", 1)[0]
    ip = ipaddress.ip_address(host)
    return str(ip), int(address[1])