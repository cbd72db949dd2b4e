from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``CAPTCHA_SOLVERS_*`` variables out of the tests."""

    for name in list(os.environ):
        if name.startswith("CAPTCHA_SOLVERS_"):
            monkeypatch.delenv(name, raising=False)
