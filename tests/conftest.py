"""
Pytest configuration and shared fixtures
"""
import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def test_env_vars():
    """Fixture providing test environment variables"""
    original_env = os.environ.copy()

    # Set test environment variables
    os.environ['TOUROPS_ENV'] = 'testing'
    os.environ['STORAGE_BACKEND'] = 'memory'

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def now():
    """Fixed reference instant for date-dependent derivations"""
    return datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def memory_store():
    """Fixture providing an empty in-memory backing store"""
    from services.backing_store import MemoryBackingStore
    return MemoryBackingStore()


@pytest.fixture
def data_store(memory_store, now):
    """Fixture providing an unloaded DataStore over the memory backing store"""
    from services.data_store import DataStore
    from services.repositories import build_repositories
    return DataStore(build_repositories(memory_store), clock=lambda: now)


@pytest_asyncio.fixture
async def loaded_store(data_store):
    """Fixture providing a DataStore that has completed its first reload"""
    await data_store.reload()
    return data_store


@pytest.fixture
def create_temp_directories(tmp_path):
    """Fixture creating temporary directory structure"""
    directories = [
        'data',
        'logs'
    ]

    created_dirs = {}
    for dir_name in directories:
        dir_path = tmp_path / dir_name
        dir_path.mkdir()
        created_dirs[dir_name] = dir_path

    return created_dirs
