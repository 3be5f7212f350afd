# slmkit

Tools for working with a serial LTE modem that speaks AT commands over a
UART. The package gives you:

- a host-side driver, `ModemSlm`, that sends AT commands, waits for the final
  result code (`OK`, `ERROR`, `+CMS ERROR:`, `+CME ERROR:`), passes raw data
  through and routes unsolicited notifications to monitors;
- a monitor registry for unsolicited notifications;
- an interactive shell, `slmkit-shell`;
- helpers for AT command handling: hex coding, parameter access, response
  rebuilding, `+CGPADDR` parsing, host resolution and socket option numbers;
- a small JSON-backed settings store.

## Installation

```
pip install slmkit
```

For running the tests:

```
pip install "slmkit[test]"
pytest
```

## Modules

| Module | What it holds |
| --- | --- |
| `slmkit.util` | `AtSockopt`, `AtSecSockopt`, `CommandType`, `AtCommandError`, `AtChannel` and the helper functions |
| `slmkit.monitor` | `MonitorEntry`, `MonitorRegistry` and the `MON_ANY`, `MON_PAUSED`, `MON_ACTIVE` constants |
| `slmkit.settings` | `SettingsStore` |
| `slmkit.host` | `ModemSlm`, `AtCmdState`, `CommandTimeout`, `parse_at_response` |
| `slmkit.shell` | The shell's `main`, `run_command`, and the `+CEREG` helpers `cereg_status` and `is_registered` |

## The shell

```
slmkit-shell /dev/ttyACM0
slmkit-shell /dev/ttyACM0 --baudrate 115200 --termination cr
```

Options:

- `device`: the modem's serial device (required);
- `-b`, `--baudrate`: line speed, 115200 by default;
- `--termination`: command terminator, one of `crlf` (default), `cr`, `lf`.

Type one AT command per line on standard input. Each is sent with a 10 second
timeout and the modem's output is printed as it arrives; an empty line prints
`Usage: slm <at_command>`, and a command with no result code in time prints
`timeout`. A `+CEREG` notification reporting registration (status 1 or 5) is
logged as `LTE connected`. End the session with end-of-file or Ctrl-C.

## Talking to the modem

```python
from slmkit.host import AtCmdState, ModemSlm

with ModemSlm("/dev/ttyACM0", data_handler=print) as modem:
    state = modem.send_cmd("AT+CFUN?", timeout=5)
    if state is AtCmdState.OK:
        ...
```

- `ModemSlm(port, data_handler=None, *, monitors=None, termination=b"\r\n",
  resp_max_size=2100, echo=None, baudrate=115200)`: `port` is a device name
  (opened with pyserial by `start`) or an already open object with `write`
  and `read`.
- `start()` starts a reader thread that passes received bytes to `feed`;
  `close()` stops it, closes a port it opened and drops all handlers. The
  object is a context manager doing both.
- `send_cmd(command, timeout)` writes the command and its terminator and
  returns the `AtCmdState` of the result code. It raises `CommandTimeout`
  when no result arrives in time; a timeout of zero or `None` waits forever.
- `send_data(data)` writes raw bytes.
- `feed(data)` processes received bytes: it completes a pending command when
  a result code is found, hands other text to the monitors, calls `echo`
  with printable text and passes every chunk to `data_handler`.
- `register_ind(handler)` sets the indication handler, keeping the previous
  one in `ind_handler_backup`; `indicate()` calls it and returns False when
  none is set.

`parse_at_response(data)` returns `(state, consumed)` for the first result
code found in `data`, or `None`.

## Monitoring notifications

```python
from slmkit.monitor import MonitorRegistry
from slmkit.shell import is_registered

registry = MonitorRegistry()

@registry.monitor("\r\n+CEREG:")
def on_cereg(notif):
    if is_registered(notif):
        print("LTE connected")

registry.dispatch("\r\n+CEREG: 1\r\n")
registry.run_pending()
```

`dispatch` queues a notification, from the point where the first active
monitor's filter matches, in a queue bounded by `capacity` bytes (1024 by
default); `run_pending` calls every active monitor whose filter matches. A
filter of `None` (`MON_ANY`) matches everything. The decorator binds the name
to the `MonitorEntry`, which has `pause()`, `resume()` and `matches(notif)`.

## Helpers

```python
from slmkit.util import atoh, casecmp, hexstr_check, htoa, str_to_int

casecmp("at+cfun?", "AT+CFUN?")   # True
hexstr_check("0A1b")              # True
htoa(b"\x01\xab")                 # "01AB"
atoh("01AB", 2)                   # b"\x01\xab", at most 2 bytes
str_to_int("0x1F", 0)             # 31
```

Also in `slmkit.util`: `cmd_name_has_lower`, `format_forwarded_response`,
`parse_cgpaddr`, `string_param`, `float_param`, `int_param` (these take a
sequence of already parsed parameters), `resolve_host` and `get_peer_addr`.
Invalid input raises `ValueError` or `AtCommandError` (an `OSError` with an
errno code). `AtChannel` collects or forwards responses and data and keeps
data-mode state.

## Settings

`SettingsStore(path)` keeps the `modem_full_fota` flag in a JSON file under
the key `slm/modem_full_fota`. `load()` reads it, ignoring unknown keys of
the `slm/` subtree; `save_fota()` writes it back, leaving other keys alone.

## What the package does not do

- It does not drive the power or indicate pins: there is no GPIO handling.
  Call `indicate()` yourself when your hardware signals the host.
- It has no AT command line parser or command dispatcher for the modem side,
  and it does not implement the modem's TCP or UDP socket commands; the
  helpers in `slmkit.util` are building blocks only.