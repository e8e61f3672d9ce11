import logging
import time

import pytest

from factorio_supervisor.server.output import ParsedOutput, log_level_for, parse_output

TEST_LINES = [
    (
        b"   0.000 2019-04-24 14:30:08; Factorio 0.17.32 (build 44722, linux64, headless)",
        dict(format="seconds", time="0.000", type="generic",
             message="2019-04-24 14:30:08; Factorio 0.17.32 (build 44722, linux64, headless)"),
    ),
    (
        b"   0.001 Operating system: Linux (Debian 9)",
        dict(format="seconds", time="0.001", type="generic", message="Operating system: Linux (Debian 9)"),
    ),
    (
        b"   0.728 Info ServerMultiplayerManager.cpp:808: updateTick(-1) changing state from(Ready) to(PreparedToHostGame)",
        dict(format="seconds", time="0.728", type="log", level="Info", file="ServerMultiplayerManager.cpp:808",
             message="updateTick(-1) changing state from(Ready) to(PreparedToHostGame)"),
    ),
    (
        b"1234.567 Warning FileUtil.cpp:63: Path is not a directory",
        dict(format="seconds", time="1234.567", type="log", level="Warning", file="FileUtil.cpp:63",
             message="Path is not a directory"),
    ),
    (
        b"  12.345 Error ServerMultiplayerManager.cpp:91: MultiplayerManager failed: \"Map load failed\"",
        dict(format="seconds", time="12.345", type="log", level="Error", file="ServerMultiplayerManager.cpp:91",
             message="MultiplayerManager failed: \"Map load failed\""),
    ),
    (
        b"  10.000 Script @__level__/control.lua:12: Hello from Lua",
        dict(format="seconds", time="10.000", type="log", level="Script", file="@__level__/control.lua:12",
             message="Hello from Lua"),
    ),
    (
        b"2019-04-24 14:30:21 [JOIN] Someone joined the game",
        dict(format="date", time="2019-04-24 14:30:21", type="action", action="JOIN",
             message="Someone joined the game"),
    ),
    (
        b"2019-04-24 14:31:02 [CHAT] Someone: hello [gps=1,2]",
        dict(format="date", time="2019-04-24 14:31:02", type="action", action="CHAT",
             message="Someone: hello [gps=1,2]"),
    ),
    (
        b"2019-04-24 14:31:02 Something without an action tag",
        dict(format="date", time="2019-04-24 14:31:02", type="generic", message="Something without an action tag"),
    ),
    (
        b"Factorio initialised",
        dict(format="none", type="generic", message="Factorio initialised"),
    ),
    (
        b"",
        dict(format="none", type="generic", message=""),
    ),
]


class TestParseOutput:

    @pytest.mark.parametrize("line,expected", TEST_LINES)
    def test_parses_known_line_shapes(self, line, expected):
        assert parse_output(line, "test") == ParsedOutput(source="test", **expected)

    def test_accepts_str(self):
        output = parse_output("2019-04-24 14:30:21 [LEAVE] Someone left the game", "stdout")
        assert output.action == "LEAVE"
        assert output.source == "stdout"

    def test_received_is_stamped_and_ignored_in_equality(self):
        before = time.time()
        first = parse_output(b"Factorio initialised", "test")
        after = time.time()
        assert before <= first.received <= after

        second = ParsedOutput(source="test", format="none", type="generic", message="Factorio initialised", received=0)
        assert first == second

    def test_record_defaults_received_to_now(self):
        before = time.time()
        output = ParsedOutput(source="stdout", format="none", type="generic", message="x", time="1.000")
        assert output.time == "1.000"
        assert before <= output.received <= time.time()

    def test_never_fails_on_invalid_utf8(self):
        output = parse_output(b"\xff\xfe garbage \x00", "stderr")
        assert output.type == "generic"
        assert "garbage" in output.message


class TestLogLevelFor:

    @pytest.mark.parametrize("line,level", [
        (b"   1.000 Error a.cpp:1: x", logging.ERROR),
        (b"   1.000 Warning a.cpp:1: x", logging.WARNING),
        (b"   1.000 Verbose a.cpp:1: x", logging.DEBUG),
        (b"   1.000 Info a.cpp:1: x", logging.INFO),
        (b"plain", logging.INFO),
    ])
    def test_maps_factorio_levels(self, line, level):
        assert log_level_for(parse_output(line, "stdout")) == level

    def test_stderr_is_error(self):
        assert log_level_for(parse_output(b"plain", "stderr")) == logging.ERROR
