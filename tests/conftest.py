"""Pytest configuration and fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fakes import FakeRestorationClient, make_page

from comicrestore.config.settings import get_settings

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for tests."""
    return tmp_path


@pytest.fixture
def page_image():
    """32x48 midtone checkerboard page."""
    return make_page()


@pytest.fixture
def fake_client():
    """Fake client that upscales every page."""
    return FakeRestorationClient()


@pytest.fixture
def no_sleep():
    """Replacement for asyncio.sleep in the job runner."""
    return AsyncMock()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; each test starts clean."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
