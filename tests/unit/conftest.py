"""
Unit test specific fixtures and configuration.

This module provides fixtures for unit tests that run entirely in memory:
in-memory document and history stores and a gate evaluator wired to them.
"""

import pytest

from specgate.document_store import InMemoryDocumentStore
from specgate.history_store import InMemoryHistoryStore
from specgate.workflow_manager import WorkflowGateEvaluator


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def history_store():
    return InMemoryHistoryStore()


@pytest.fixture
def evaluator(document_store, history_store):
    """Create a WorkflowGateEvaluator over in-memory stores."""
    return WorkflowGateEvaluator(document_store, history_store)
