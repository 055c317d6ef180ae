"""Shared fixtures for the llmsfree test suite."""

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's LLMSFREE_* variables out of the tests."""
    monkeypatch.delenv("LLMSFREE_API_KEY", raising=False)
    monkeypatch.delenv("LLMSFREE_BASE_URL", raising=False)
