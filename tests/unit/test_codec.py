"""Tests for the ServerQuery text codec."""

from __future__ import annotations

import pytest

from teamspeak_bridge.query import codec


class TestEscaping:
    """Tests for escape()/unescape()."""

    @pytest.mark.parametrize(
        ("raw", "escaped"),
        [
            ("Lobby Room", "Lobby\\sRoom"),
            ("a|b", "a\\pb"),
            ("path/to", "path\\/to"),
            ("back\\slash", "back\\\\slash"),
            ("line\nbreak", "line\\nbreak"),
            ("tab\there", "tab\\there"),
        ],
    )
    def test_escape(self, raw: str, escaped: str) -> None:
        assert codec.escape(raw) == escaped
        assert codec.unescape(escaped) == raw

    def test_backslash_escaped_first(self) -> None:
        """A literal backslash before 's' must not become a space."""
        assert codec.unescape(codec.escape("\\s")) == "\\s"

    def test_unescape_plain_value(self) -> None:
        assert codec.unescape("Alice") == "Alice"


class TestEncodeCommand:
    def test_params_and_options(self) -> None:
        line = codec.encode_command(
            "clientlist", {"cid": 1, "skip": None, "flag": True}, options=("uid", "away")
        )

        assert line == "clientlist cid=1 flag=1 -uid -away"

    def test_escapes_values(self) -> None:
        line = codec.encode_command("clientupdate", {"client_nickname": "TS Bot"})

        assert line == "clientupdate client_nickname=TS\\sBot"


class TestParsing:
    """Tests for reply and notification parsing."""

    def test_parse_records(self) -> None:
        records = codec.parse_records(
            "clid=1 cid=2 client_nickname=Alice\\sA client_type=0|clid=3 cid=2 client_nickname=Bob"
        )

        assert records == [
            {"clid": "1", "cid": "2", "client_nickname": "Alice A", "client_type": "0"},
            {"clid": "3", "cid": "2", "client_nickname": "Bob"},
        ]

    def test_flag_without_value(self) -> None:
        assert codec.parse_record("virtualserver_id=1 client_away") == {
            "virtualserver_id": "1",
            "client_away": "",
        }

    def test_parse_records_empty(self) -> None:
        assert codec.parse_records("  ") == []

    def test_error_line(self) -> None:
        line = "error id=1281 msg=database\\sempty\\sresult\\sset"

        assert codec.is_error_line(line)
        assert codec.parse_error(line) == (1281, "database empty result set")

    def test_error_line_with_bad_id(self) -> None:
        assert codec.parse_error("error id=x msg=odd") == (-1, "odd")

    def test_notification(self) -> None:
        line = "notifycliententerview cfid=0 ctid=5 reasonid=0 clid=7 client_nickname=Carol"

        assert codec.is_notification(line)
        assert not codec.is_error_line(line)
        name, record = codec.parse_notification(line)
        assert name == "notifycliententerview"
        assert record["ctid"] == "5"
        assert record["client_nickname"] == "Carol"
