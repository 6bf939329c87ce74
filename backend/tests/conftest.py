"""
Pytest configuration and fixtures
"""

import stat
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from raytrace_api.config import settings
from raytrace_api.main import app
from raytrace_api.services.dispatcher import reset_dispatcher
from raytrace_api.services.rate_limiter import ai_render_rate_limiter
from raytrace_api.services.scene_generator_client import reset_scene_generator
from render_engine.factory import reset_render_engine


@pytest.fixture(autouse=True)
def isolated_service(tmp_path, monkeypatch):
    """Fresh singletons, preview engine and a private work directory per test."""
    monkeypatch.setattr(settings, "RENDER_ENGINE", "preview")
    monkeypatch.setattr(settings, "WORK_DIR", str(tmp_path / "work"))
    reset_dispatcher()
    reset_render_engine()
    reset_scene_generator()
    ai_render_rate_limiter.reset()
    yield
    app.dependency_overrides.clear()
    reset_dispatcher()
    reset_render_engine()
    reset_scene_generator()


@pytest.fixture
def client():
    """FastAPI test client fixture; the context keeps the lifespan and background jobs alive."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def work_dir():
    return Path(settings.WORK_DIR)


def write_script(path: Path, body: str) -> Path:
    """Write an executable /bin/sh script."""
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_compiler(tmp_path):
    """
    Stand-in compiler: the "source" is itself a shell script, copied to the -o path
    without leading blank lines.

    Invoked as: compiler -o <binary> <source>
    """
    return write_script(
        tmp_path / "fake-cc",
        'out="$2"\nsrc="$3"\n'
        "sed '/./,$!d' \"$src\" > \"$out\"\n"
        'chmod +x "$out"\n',
    )


@pytest.fixture
def failing_compiler(tmp_path):
    return write_script(
        tmp_path / "broken-cc",
        'echo "scene.cpp:3:5: error: expected \';\' before \'}\' token" >&2\nexit 1\n',
    )


def _wait_for(condition, timeout: float = 10.0, interval: float = 0.02):
    deadline = time.time() + timeout
    while time.time() < deadline:
        value = condition()
        if value:
            return value
        time.sleep(interval)
    raise AssertionError(f"Condition not met within {timeout}s")


@pytest.fixture
def wait_for():
    """Poll condition() until it returns truthy or the timeout expires."""
    return _wait_for


@pytest.fixture
def make_script(tmp_path):
    """Factory for executable shell scripts under tmp_path."""

    def _make(name: str, body: str) -> Path:
        return write_script(tmp_path / name, body)

    return _make
