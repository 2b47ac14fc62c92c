"""Pure command-line tokenizer for the options pg-wrap cares about.

The wrapper never parses a client's full option grammar.  It classifies
each argument against a small fixed grammar and returns one structured
decision per token:

* ``--``                                — end of options, scanning stops.
* ``--cluster <designator>`` / ``--cluster=<designator>``
                                        — cluster selection, scanning stops.
* ``--host...`` or ``-<letters with h>`` — explicit host.
* ``--port[=N]`` or ``-<letters>p[N]``   — explicit port.
* anything containing ``service=``      — explicit service (conninfo).

The short-option patterns match whole option clusters (``-Xh``,
``-wp5433``), so a client's unrelated short options can trip them.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from pgwrap.exceptions import CLUSTER_FORMAT_HINT, MissingClusterNameError

CLUSTER_OPTION: str = "--cluster"
END_OF_OPTIONS: str = "--"

_SHORT_HOST = re.compile(r"^-\w*h\w*$")
_SHORT_PORT = re.compile(r"^-\w*p(\d*)$")
_LONG_PORT = re.compile(r"^--port(?:=(.*))?$")

# Connection options other than host and port whose value may be separate.
_VALUE_OPTIONS = frozenset({"-U", "-d", "--username", "--dbname"})


@dataclass(frozen=True, slots=True)
class ArgumentToken:
    """Classification of the argument at ``index``."""

    index: int
    text: str
    span: int = 1
    """Number of arguments the token occupies (2 for ``--cluster X``)."""

    terminator: bool = False
    cluster: str | None = None
    host: bool = False
    port: str | None = None
    service: bool = False
    value_follows: bool = False
    """The host or port value is the next argument (``-h db``, ``--port 5433``)."""


def classify_argument(args: Sequence[str], index: int) -> ArgumentToken:
    """Classify ``args[index]``, looking ahead one argument where needed.

    Raises
    ------
    MissingClusterNameError
        If ``--cluster`` is the last argument.
    """
    text = args[index]
    following = args[index + 1] if index + 1 < len(args) else None

    if text == END_OF_OPTIONS:
        return ArgumentToken(index=index, text=text, terminator=True)

    if text == CLUSTER_OPTION:
        if following is None:
            raise MissingClusterNameError(
                "--cluster option needs an argument (<version>/<cluster>)",
                hint=CLUSTER_FORMAT_HINT,
            )
        return ArgumentToken(index=index, text=text, span=2, cluster=following)

    if text.startswith(CLUSTER_OPTION + "="):
        return ArgumentToken(
            index=index,
            text=text,
            cluster=text[len(CLUSTER_OPTION) + 1:],
        )

    host = text.startswith("--host") or bool(_SHORT_HOST.match(text))
    port = _port_value(text, following)
    return ArgumentToken(
        index=index,
        text=text,
        host=host,
        port=port,
        service="service=" in text,
        value_follows=following is not None and _value_is_separate(text),
    )


def _value_is_separate(text: str) -> bool:
    """Whether a host or port option leaves its value to the next argument."""
    if text in ("--host", "--port"):
        return True
    if _SHORT_HOST.match(text) and text.index("h") == len(text) - 1:
        return True
    short_match = _SHORT_PORT.match(text)
    return bool(short_match) and not short_match.group(1)


def _port_value(text: str, following: str | None) -> str | None:
    """Return the port carried by *text*, ``""`` if it is missing, else ``None``."""
    long_match = _LONG_PORT.match(text)
    if long_match:
        attached = long_match.group(1)
        if attached is not None:
            return attached
        return following if following is not None else ""

    short_match = _SHORT_PORT.match(text)
    if short_match:
        if short_match.group(1):
            return short_match.group(1)
        return following if following is not None else ""

    return None


def scan_arguments(args: Sequence[str]) -> list[ArgumentToken]:
    """Classify arguments left to right.

    Scanning stops after a ``--cluster`` token or at ``--``; both are
    included as the last element of the returned list.
    """
    tokens: list[ArgumentToken] = []
    for index in range(len(args)):
        token = classify_argument(args, index)
        tokens.append(token)
        if token.terminator or token.cluster is not None:
            break
    return tokens


def without_token(args: Sequence[str], token: ArgumentToken) -> tuple[str, ...]:
    """Return *args* with the arguments covered by *token* removed."""
    return (*args[:token.index], *args[token.index + token.span:])


def split_program_name(args: Sequence[str]) -> tuple[str | None, tuple[str, ...]]:
    """Pick the program name out of a dispatcher-mode argument list.

    The program name is the first free argument: not an option, and not
    the separate value of ``--cluster``, a host or port option, or one of
    :data:`_VALUE_OPTIONS`.  Returns ``(None, args)`` when there is none.
    """
    index = 0
    while index < len(args):
        text = args[index]
        if text == CLUSTER_OPTION or text in _VALUE_OPTIONS:
            index += 2
        elif text.startswith("-"):
            index += 2 if classify_argument(args, index).value_follows else 1
        else:
            return text, (*args[:index], *args[index + 1:])
    return None, tuple(args)
