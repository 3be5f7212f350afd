import pytest

from slmkit.host import AtCmdState, ModemSlm
from slmkit.shell import USAGE, cereg_status, is_registered, main, run_command


class FakePort:
    def __init__(self, reply=b""):
        self.written = bytearray()
        self.reply = reply
        self.modem = None

    def write(self, data):
        self.written += data

    def flush(self):
        reply, self.reply = self.reply, b""
        if reply and self.modem is not None:
            self.modem.feed(reply)


def make_modem(reply=b""):
    port = FakePort(reply)
    modem = ModemSlm(port)
    port.modem = modem
    return modem, port


def test_cereg_status_reads_number():
    assert cereg_status('\r\n+CEREG: 5,"ABCD","01234567",7') == 5


def test_cereg_status_unreadable_is_zero():
    assert cereg_status("\r\n+CEREG: x") == 0


@pytest.mark.parametrize("status,expected", [(1, True), (5, True), (2, False), (0, False)])
def test_is_registered(status, expected):
    assert is_registered(f"\r\n+CEREG: {status}\r\n") is expected


def test_run_command_without_argument_prints_usage(capsys):
    modem, port = make_modem()
    assert run_command(modem, ["slm"]) == 0
    assert capsys.readouterr().out.strip() == USAGE
    assert port.written == bytearray()


def test_run_command_sends_at():
    modem, port = make_modem(b"\r\nOK\r\n")
    assert run_command(modem, ["slm", "AT+CFUN?"]) is AtCmdState.OK
    assert bytes(port.written) == b"AT+CFUN?\r\n"


def test_main_fails_on_missing_device():
    assert main(["/nonexistent/slmkit-missing-device"]) == 1