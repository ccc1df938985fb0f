"""Tests for logging setup."""

from __future__ import annotations

import logging
import os
import sys
from unittest.mock import patch

from packagelist.core.logging import setup_logging


class TestSetupLogging:
    def test_env_level(self):
        with patch.dict(os.environ, {"PACKAGELIST_LOG_LEVEL": "warning"}):
            setup_logging()
        assert logging.getLogger("packagelist").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_explicit_level_wins(self):
        with patch.dict(os.environ, {"PACKAGELIST_LOG_LEVEL": "WARNING"}):
            setup_logging("DEBUG")
        assert logging.getLogger("packagelist").level == logging.DEBUG

    def test_logs_go_to_stderr(self):
        with patch.dict(os.environ, {"PACKAGELIST_LOG_FORMAT": "json"}):
            setup_logging()
        handler = logging.getLogger().handlers[0]
        assert handler.stream is sys.stderr
