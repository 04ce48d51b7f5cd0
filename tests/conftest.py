import logging

import pytest


@pytest.fixture
def restore_root_logger():
    """Undo handler and level changes made by configure_structured_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
