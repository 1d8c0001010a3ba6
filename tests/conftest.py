"""
Pytest configuration and shared fixtures.

Provides an in-memory stand-in for the key-value store repository, users of
every role and settings isolated from the environment.
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from api.config.settings import AppSettings, reset_settings
from api.models.user_models import Role
from tests.factories import InMemoryKVStore, make_user


@pytest.fixture
def kv_store():
    """Empty in-memory key-value store."""
    return InMemoryKVStore()


@pytest.fixture
def app_settings():
    """Settings with defaults only, unaffected by the environment or a .env file."""
    with patch.dict(os.environ, {}, clear=True):
        return AppSettings(_env_file=None)


@pytest.fixture
def mock_env_vars():
    """Environment for running the app without a database."""
    env = {
        "DB_AUTO_CREATE": "false",
        "SEED_DEMO_USERS": "false",
        "JWT_SECRET_KEY": "test-secret",
    }
    with patch.dict(os.environ, env):
        reset_settings()
        yield env
    reset_settings()


@pytest.fixture
def citizen():
    return make_user(Role.USER, "Jan Burger", "jan@example.nl")


@pytest.fixture
def worker():
    return make_user(Role.WORKER, "Wim Werker", "wim@grofvuil.nl")


@pytest.fixture
def admin():
    return make_user(Role.ADMIN, "Anna Admin", "anna@grofvuil.nl")
