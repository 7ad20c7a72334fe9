import pytest


@pytest.fixture(autouse=True)
def default_generation_env(monkeypatch):
    """Tests count retries against the built-in defaults, not the caller's shell."""
    for name in ("GENERATION_ATTEMPTS", "GAME_UTC_OFFSET_MINUTES"):
        monkeypatch.delenv(name, raising=False)
