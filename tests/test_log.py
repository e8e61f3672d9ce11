import logging
from unittest import mock

import pytest
import requests

from factorio_supervisor.log.handler import LokiHandler
from factorio_supervisor.log.setup import MainFormatter


def make_record(name, level=logging.INFO, msg="hello"):
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


@pytest.fixture
def handler():
    handler = LokiHandler("http://loki:3100/", org_id="tenant", flush_interval=60, batch_size=3)
    yield handler
    with mock.patch("requests.post"):
        handler.close()


class TestMainFormatter:

    def test_server_output_is_raw(self):
        record = make_record("proc.factorio", msg="   0.000 Info a.cpp:1: raw")
        assert MainFormatter().format(record) == "   0.000 Info a.cpp:1: raw"

    def test_supervisor_records_are_formatted(self):
        formatted = MainFormatter().format(make_record("factorio_supervisor.server", logging.WARNING))
        assert "WARNING" in formatted
        assert "[factorio_supervisor.server]" in formatted
        assert formatted.endswith("hello")


class TestLokiHandler:

    def test_push_url(self, handler):
        assert handler.url == "http://loki:3100/loki/api/v1/push"

    def test_server_output_entry(self, handler):
        record = make_record("proc.factorio", logging.ERROR, "crash")
        entry = handler.build_entry(record)
        assert entry["stream"]["job"] == "factorio-server"
        assert entry["stream"]["logger"] == "factorio"
        assert entry["stream"]["level"] == "error"
        assert entry["values"] == [[str(int(record.created * 1e9)), "crash"]]

    def test_supervisor_entry(self, handler):
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        entry = handler.build_entry(make_record("factorio_supervisor.main"))
        assert entry["stream"]["job"] == "factorio-supervisor"
        assert entry["values"][0][1] == "factorio_supervisor.main: hello"

    def test_flushes_when_batch_is_full(self, handler):
        with mock.patch("requests.post") as post:
            post.return_value.status_code = 204
            handler.emit(make_record("a"))
            handler.emit(make_record("b"))
            post.assert_not_called()
            handler.emit(make_record("c"))

        post.assert_called_once()
        args, kwargs = post.call_args
        assert args == ("http://loki:3100/loki/api/v1/push",)
        assert len(kwargs["json"]["streams"]) == 3
        assert kwargs["headers"]["X-Scope-OrgID"] == "tenant"

    def test_failed_push_is_reported_not_raised(self, handler, capsys):
        with mock.patch("requests.post", side_effect=requests.ConnectionError("down")):
            handler.emit(make_record("a"))
            handler.flush()
        assert "Failed to send 1 logs to Loki" in capsys.readouterr().err
        assert not handler.log_buffer

    def test_flush_with_empty_buffer_sends_nothing(self, handler):
        with mock.patch("requests.post") as post:
            handler.flush()
        post.assert_not_called()
