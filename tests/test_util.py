import errno
import io
import socket

import pytest

from slmkit.util import (
    DATAMODE_EXIT,
    DATAMODE_FLAG_EXIT_HANDLER,
    AtChannel,
    AtCommandError,
    atoh,
    casecmp,
    cmd_name_has_lower,
    float_param,
    format_forwarded_response,
    get_peer_addr,
    hexstr_check,
    htoa,
    int_param,
    parse_cgpaddr,
    resolve_host,
    str_to_int,
    string_param,
)


@pytest.mark.parametrize(
    "cmd, expected",
    [
        ("AT+CFUN=lower", False),
        ("AT#XPING?", False),
        ("AT+cfun=1", True),
        ("at", True),
    ],
)
def test_cmd_name_has_lower(cmd, expected):
    assert cmd_name_has_lower(cmd) is expected


def test_casecmp():
    assert casecmp("AbC", "aBc") is True
    assert casecmp("abc", "abcd") is False
    assert casecmp("abc", "abd") is False
    assert casecmp("é", "É") is False


def test_hexstr_check():
    assert hexstr_check("0123456789abcdefABCDEF") is True
    assert hexstr_check(b"12") is True
    assert hexstr_check("") is True
    assert hexstr_check("0g") is False


@pytest.mark.parametrize("data", [b"", b"\x00", b"\x01\xab\xff", bytes(range(256))])
def test_htoa_atoh_round_trip(data):
    text = htoa(data)
    assert len(text) == 2 * len(data)
    assert text == text.upper()
    assert atoh(text) == data
    assert atoh(text.lower(), len(data)) == data


def test_htoa_pinned():
    assert htoa(bytes([0x0A])) == "0A"


def test_atoh_errors():
    with pytest.raises(ValueError):
        atoh("abc")
    with pytest.raises(ValueError):
        atoh("zz")
    with pytest.raises(ValueError):
        atoh("0102", 1)
    assert atoh(b"0102", 2) == bytes([1, 2])


@pytest.mark.parametrize("value", [0, 7, -123, 2147483647, -2147483648])
def test_str_to_int_round_trip(value):
    assert str_to_int(str(value), 10) == value
    assert str_to_int(format(value, "x"), 16) == value


def test_str_to_int_prefixes():
    assert str_to_int("0x1f", 16) == str_to_int("1f", 16)
    assert str_to_int("0x1f", 0) == str_to_int("31", 10)
    assert str_to_int("010", 0) == 8
    assert str_to_int("  42", 10) == str_to_int("42", 10)


@pytest.mark.parametrize("text", ["", " ", "12a", "1 ", "2147483648", "-2147483649", "0x", "1_0"])
def test_str_to_int_rejects(text):
    with pytest.raises(ValueError):
        str_to_int(text, 10 if text != "0x" else 16)


def test_str_to_int_bad_base():
    with pytest.raises(ValueError):
        str_to_int("1", 1)


def test_forwarded_ok_single_line():
    assert format_forwarded_response(["OK"], 100) == ("OK\r\n", False)


def test_forwarded_ok_two_lines():
    line = "+CGEREP: 1,0"
    assert format_forwarded_response([line, "OK"], 100) == (line + "\r\nOK\r\n", False)


def test_forwarded_error_in_first_line():
    line = "+CME ERROR: 10"
    assert format_forwarded_response([line]) == (line + "\r\n", True)


def test_forwarded_error_replaced():
    assert format_forwarded_response(["garbage", "+CME ERROR: 10"]) == ("ERROR\r\n", True)
    assert format_forwarded_response(["foo"]) == ("ERROR\r\n", True)


def test_forwarded_overflow():
    with pytest.raises(AtCommandError) as exc:
        format_forwarded_response(["OK"], 4)
    assert exc.value.errno == errno.E2BIG
    assert format_forwarded_response(["OK"], 5)[0] == "OK\r\n"


def test_forwarded_no_lines():
    with pytest.raises(ValueError):
        format_forwarded_response([])


@pytest.mark.parametrize(
    "response, expected",
    [
        ('+CGPADDR: 0,"10.0.0.1","FE80:0:0:0:1:2:3:4"', ("10.0.0.1", "FE80:0:0:0:1:2:3:4")),
        ('+CGPADDR: 1,"FE80::1"', ("", "FE80::1")),
        ('+CGPADDR: 1,"FE80::1","FE80::2"', ("", "FE80::1")),
        ('+CGPADDR: 0,"10.0.0.1"', ("10.0.0.1", "")),
        ('+CGPADDR: 0,"999.1.1.1","FE80::1"', ("", "FE80::1")),
        ('+CGPADDR: 0,"fe80::1"', ("", "")),
        ("ERROR", ("", "")),
    ],
)
def test_parse_cgpaddr(response, expected):
    assert parse_cgpaddr(response) == expected


PARAMS = ["AT#XTCPSEND", "hello", 7, None, "3.25", "abc", "1.5e2xyz"]


def test_string_param():
    assert string_param(PARAMS, 1) == "hello"
    assert string_param(PARAMS, 1, 6) == "hello"


@pytest.mark.parametrize(
    "index, max_len, code",
    [(2, None, errno.EOPNOTSUPP), (3, None, errno.ENODATA), (99, None, errno.EINVAL), (1, 5, errno.ENOMEM)],
)
def test_string_param_errors(index, max_len, code):
    with pytest.raises(AtCommandError) as exc:
        string_param(PARAMS, index, max_len)
    assert exc.value.errno == code


def test_float_param():
    assert float_param(PARAMS, 4) == 3.25
    assert float_param(PARAMS, 5) == 0.0
    assert float_param(PARAMS, 6) == 1.5e2


def test_float_param_too_long():
    with pytest.raises(AtCommandError) as exc:
        float_param(["X", "1" * 32], 1)
    assert exc.value.errno == errno.ENOMEM


def test_int_param():
    assert int_param(PARAMS, 2) == 7
    for index in (1, 3):
        with pytest.raises(AtCommandError) as exc:
            int_param(PARAMS, index)
        assert exc.value.errno == errno.EOPNOTSUPP
    with pytest.raises(AtCommandError) as exc:
        int_param(PARAMS, 42)
    assert exc.value.errno == errno.EINVAL


def test_resolve_host_ipv4():
    sockaddr = resolve_host("127.0.0.1", 8080, socket.AF_INET)
    assert sockaddr[:2] == ("127.0.0.1", 8080)


def test_resolve_host_invalid_arguments():
    with pytest.raises(AtCommandError) as exc:
        resolve_host("127.0.0.1", 80, socket.AF_INET, 11)
    assert exc.value.errno == errno.EINVAL
    with pytest.raises(AtCommandError) as exc:
        resolve_host("127.0.0.1", 70000, socket.AF_INET)
    assert exc.value.errno == errno.EINVAL


def test_get_peer_addr():
    assert get_peer_addr(("127.0.0.1", 8080)) == ("127.0.0.1", 8080)
    assert get_peer_addr(("FE80:0:0:0:0:0:0:1", 9, 0, 0)) == ("fe80::1", 9)
    with pytest.raises(ValueError):
        get_peer_addr(("not-an-ip", 1))


def test_channel_collects_output():
    channel = AtChannel()
    channel.rsp_send("\r\n#XTCPSEND: 5\r\n")
    channel.data_send(b"\x00\x01")
    assert bytes(channel.output) == b"\r\n#XTCPSEND: 5\r\n\x00\x01"


def test_channel_sinks():
    received = []
    AtChannel(received.append).data_send(b"abc")
    assert received == [b"abc"]
    stream = io.BytesIO()
    AtChannel(stream).rsp_send("OK")
    assert stream.getvalue() == b"OK"


def test_channel_datamode():
    calls = []
    channel = AtChannel()
    assert channel.exit_datamode(0) is False
    channel.enter_datamode(lambda op, data, flags: calls.append((op, data, flags)))
    assert channel.in_datamode is True
    with pytest.raises(AtCommandError) as exc:
        channel.enter_datamode(lambda *args: None)
    assert exc.value.errno == errno.EINVAL
    assert channel.exit_datamode(-5) is True
    assert channel.in_datamode is False
    assert calls == [(DATAMODE_EXIT, b"", DATAMODE_FLAG_EXIT_HANDLER)]
    assert b"-5" in channel.output