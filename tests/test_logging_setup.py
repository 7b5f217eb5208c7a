"""Tests for logging configuration."""

import io
import logging
import sys

from orderdesk.logging_setup import LOG_LEVEL_ENV, configure_logging, resolve_level


class TestResolveLevel:
    def test_explicit_level(self):
        assert resolve_level("info") == logging.INFO

    def test_environment_level(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "DEBUG")
        assert resolve_level() == logging.DEBUG

    def test_unknown_level_falls_back_to_warning(self):
        assert resolve_level("chatty") == logging.WARNING


class TestConfigureLogging:
    def test_warnings_go_to_stderr(self, seeded, capsys):
        configure_logging()
        assert seeded.engine.create_order(99) is None
        err = capsys.readouterr().err
        assert "customer_not_found" in err
        assert "customer_id=99" in err

    def test_info_filtered_by_default(self, seeded, capsys, monkeypatch):
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
        configure_logging()
        seeded.engine.create_order(1)
        assert "order_created" not in capsys.readouterr().err

    def test_closed_stream_does_not_break_business_calls(self, seeded, monkeypatch):
        stream = io.StringIO()
        with monkeypatch.context() as m:
            m.setattr(sys, "stderr", stream)
            configure_logging()
        stream.close()

        assert seeded.engine.create_order(99) is None
        order = seeded.engine.create_order(1)
        assert seeded.engine.add_item_to_order(order.order_id, 99, 1) is False
