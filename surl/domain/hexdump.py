"""Hex dump rendering for request dumps."""

import textwrap

BYTES_PER_LINE = 16
DUMP_INDENT = "    "


def _printable(byte: int) -> str:
    return chr(byte) if 0x20 <= byte < 0x7F else "."


def hexdump(data: bytes) -> str:
    """Render ``data`` in the canonical ``hexdump -C`` layout.

    Each line holds an 8 digit offset, sixteen hex bytes split into two
    groups of eight, and the printable ASCII rendering between bars.
    """
    lines = []
    for offset in range(0, len(data), BYTES_PER_LINE):
        chunk = data[offset : offset + BYTES_PER_LINE]
        left = " ".join(f"{byte:02x}" for byte in chunk[:8])
        right = " ".join(f"{byte:02x}" for byte in chunk[8:])
        text = "".join(_printable(byte) for byte in chunk)
        lines.append(f"{offset:08x}  {left:<23}  {right:<23}  |{text}|")
    return "\n".join(lines)


def indented_hexdump(data: bytes) -> str:
    """Return the hex dump of ``data`` as an indented block."""
    return textwrap.indent(hexdump(data), DUMP_INDENT)
