"""Unit tests for request hex dumps."""

from surl.domain.hexdump import hexdump, indented_hexdump


def test_hexdump_full_line():
    """Sixteen bytes render as two groups of eight plus ASCII."""
    output = hexdump(b"GET / HTTP/1.1\r\n")

    assert output == (
        "00000000  47 45 54 20 2f 20 48 54  54 50 2f 31 2e 31 0d 0a  "
        "|GET / HTTP/1.1..|"
    )


def test_hexdump_partial_line_is_padded():
    """Short trailing lines keep the ASCII column aligned."""
    lines = hexdump(b"0123456789abcdefXY").splitlines()

    assert len(lines) == 2
    assert lines[1].startswith("00000010  58 59 ")
    assert lines[1].endswith("|XY|")
    assert lines[1].index("|") == lines[0].index("|")


def test_hexdump_empty_input():
    """No bytes produce no lines."""
    assert hexdump(b"") == ""


def test_indented_hexdump_prefixes_each_line():
    """Every dump line is indented for the access log."""
    lines = indented_hexdump(bytes(range(32))).splitlines()

    assert len(lines) == 2
    assert all(line.startswith("    0000") for line in lines)
