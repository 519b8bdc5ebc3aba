"""getopts-style option parsing: single-letter flags, strict about duplicates and empties."""

from __future__ import annotations

from gitstatus_tooling.errors import ValidationError


def parse_options(
    argv: list[str], value_flags: str, switch_flags: str = ""
) -> tuple[dict[str, str], set[str]]:
    """Parse argv in one pass like sh getopts.

    value_flags take an argument (``-mARCH`` or ``-m ARCH``); switch_flags don't.
    Parsing stops at the first switch (e.g. -h), so it wins over anything after it.
    ``--`` ends options. Returns (flag -> value, switches seen).
    Raises ValidationError on unknown, duplicate, empty or missing values and on
    any positional argument.
    """
    values: dict[str, str] = {}
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--":
            i += 1
            break
        if not arg.startswith("-") or arg == "-":
            break
        j = 1
        while j < len(arg):
            opt = arg[j]
            if opt in switch_flags:
                return values, {opt}
            if opt not in value_flags:
                msg = f"invalid option: -{opt}"
                raise ValidationError(msg)
            value = arg[j + 1 :]
            if not value:
                if i + 1 >= len(argv):
                    msg = f"missing required argument: -{opt}"
                    raise ValidationError(msg)
                i += 1
                value = argv[i]
            if opt in values:
                msg = f"duplicate option: -{opt}"
                raise ValidationError(msg)
            if not value:
                msg = f"incorrect value of -{opt}: {value}"
                raise ValidationError(msg)
            values[opt] = value
            break
        i += 1
    if i < len(argv):
        msg = "unexpected positional argument"
        raise ValidationError(msg)
    return values, set()
