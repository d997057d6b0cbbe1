"""
Integration test fixtures and configuration.

These fixtures wire the real file-backed stores into a WorkflowGateEvaluator
over a temporary workspace, the same way the command-line interface does.

Key Fixtures:
- file_evaluator: WorkflowGateEvaluator over FileDocumentStore and
  JsonFileHistoryStore rooted at temp_workspace
- make_evaluator: Factory for fresh evaluators over the same workspace,
  to check that state survives between processes
"""

import os
import pytest
from unittest.mock import patch

from specgate.main import create_evaluator


@pytest.fixture(autouse=True)
def clean_environment():
    """Keep developer SPECGATE_* settings out of integration runs."""
    with patch.dict(os.environ, {key: value for key, value in os.environ.items()
                                 if not key.startswith('SPECGATE_')}, clear=True):
        yield


@pytest.fixture
def make_evaluator(test_config_manager, temp_workspace):
    """Create evaluators over the temporary workspace."""
    def _make(config_manager=None):
        return create_evaluator(config_manager or test_config_manager, temp_workspace)

    return _make


@pytest.fixture
def file_evaluator(make_evaluator):
    return make_evaluator()
