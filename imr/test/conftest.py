from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _clean_ci_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Tests must behave the same on a developer machine and on a CI runner.
    for name in (
        "GITHUB_ACTIONS",
        "GITHUB_OUTPUT",
        "GITHUB_REPOSITORY",
        "GITHUB_SHA",
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "IMR_PROJECT_ROOT",
    ):
        monkeypatch.delenv(name, raising=False)
