"""Tests for the system prompt and configuration."""

from __future__ import annotations

from datetime import datetime

import pytest

from tuition_agent import config
from tuition_agent.prompts import get_system_prompt


class TestSystemPrompt:
    def test_includes_iso_date_and_weekday(self):
        prompt = get_system_prompt(now=datetime(2025, 6, 2, 9, 30))
        assert "2025-06-02" in prompt
        assert "Monday" in prompt

    def test_includes_context(self):
        prompt = get_system_prompt("Q: Fees?\nA: $200", now=datetime(2025, 6, 2))
        assert "Q: Fees?\nA: $200" in prompt

    def test_empty_context_is_marked(self):
        assert "(no matching entries)" in get_system_prompt("", now=datetime(2025, 6, 2))

    def test_mentions_every_tool(self):
        prompt = get_system_prompt(now=datetime(2025, 6, 2))
        for name in ("getAvailability", "bookSlot", "addSlot", "createBatchSchedule"):
            assert name in prompt

    def test_never_contains_admin_secret(self):
        assert config.ADMIN_PASSWORD not in get_system_prompt(now=datetime(2025, 6, 2))


class TestRequireEnv:
    def test_missing_value_raises_configuration_error(self, monkeypatch):
        monkeypatch.delenv("SOME_MISSING_KEY", raising=False)
        with pytest.raises(config.ConfigurationError, match="SOME_MISSING_KEY"):
            config._require_env("SOME_MISSING_KEY")

    def test_placeholder_counts_as_missing(self, monkeypatch):
        monkeypatch.setenv("SOME_KEY", "your_key_here")
        with pytest.raises(OSError):
            config._require_env("SOME_KEY")

    def test_present_value_returned(self, monkeypatch):
        monkeypatch.setenv("SOME_KEY", "abc")
        assert config._require_env("SOME_KEY") == "abc"
