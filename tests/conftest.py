"""
Shared fixtures for the model generator tests.
"""

import logging

import pytest

from codegen.modelgen.modelinfo import ModelInfo, RandomUidSource, UidGenerator


@pytest.fixture
def uid_generator():
    """Seeded uid generator, for reproducible identities."""
    return UidGenerator(RandomUidSource(seed=1234))


@pytest.fixture
def model(uid_generator):
    """Empty in-memory catalog."""
    return ModelInfo.create(uid_generator)


@pytest.fixture
def restore_logging():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
