"""
Shared pytest fixtures.

Settings read QCR_* / OPENAI_API_KEY from the environment and a .env file in
the working directory, so every test starts from a clean environment in a
scratch directory.
"""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith("QCR_") or name == "OPENAI_API_KEY":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
