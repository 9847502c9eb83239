"""
Tests for logging helpers.
"""

import logging

from src.logger import NOISY_LOGGERS, setup_logging, summarize


class TestSummarize:
    """Tests for summarize()."""

    def test_compact_json(self):
        assert summarize({"type": "response.create"}) == '{"type":"response.create"}'

    def test_truncates(self):
        text = summarize("x" * 500, limit=10)
        assert text.startswith("xxxxxxxxxx...")
        assert "(500 chars)" in text

    def test_unserializable_falls_back_to_str(self):
        assert "object" in summarize({"obj": object()})


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_quiets_transport_loggers(self):
        root = logging.getLogger()
        previous = (root.level, list(root.handlers))
        try:
            setup_logging(level="DEBUG", use_colors=False)
            assert root.level == logging.DEBUG
            for name in NOISY_LOGGERS:
                assert logging.getLogger(name).level == logging.WARNING
        finally:
            root.setLevel(previous[0])
            root.handlers[:] = previous[1]
