"""
Shared test fixtures and configuration for all tests.

This module provides common test fixtures that can be used across
unit tests and integration tests: temporary workspaces, configuration
managers that ignore the developer's .env, and reference documents with
known quality scores.
"""

import os
import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import patch

from specgate.config_manager import ConfigManager, reset_config_manager


# Partial spec: 5 of 7 sections, half the completeness keywords, four hedges.
# Scores 66 overall (major, needs another iteration).
PARTIAL_SPEC_DOCUMENT = """# Overview

The leave tool lets a team lead file leave requests for the team. It replaces the shared spreadsheet that payroll staff maintain by hand today.

# Users

The primary user is a team lead with up to 12 direct reports. The stakeholder group also covers payroll staff, who sometimes export approved requests twice a month.

# Requirements

- Each feature should work in the browser without a plugin.
- A request stores the start date, the end date and a reason.
- Approval behavior moves the request from pending to approved.
- Rejected requests should keep the reason entered by the approver.

# Scenarios

A team lead opens the form, enters the dates and submits the request. For example, a request for 3 days in June appears in the payroll export for June.

However, payroll staff see approved requests only.

# Goals

The goal is a fast approval: from 5 days down to 2 days. The metric is the median time between submission and approval.

Furthermore, the main constraint is the existing login system. One known limitation is that half days are out of scope.
"""

# Complete spec: all sections, full keyword coverage, no ambiguous terms.
# Scores 99 overall (acceptable).
STRONG_SPEC_DOCUMENT = """# Overview
The leave tool replaces the shared spreadsheet that payroll staff edit by hand. Each team lead files and approves leave requests in one place.

# Users and Stakeholders
In addition, the primary persona is a team lead with up to 12 direct reports.
- Target audience: team leads in the Berlin office.
- Stakeholder: payroll staff who export approved requests.
- Each user signs in with the existing login system.

# Goals
Therefore, the objective is to cut approval time from 5 days to 2 days.
- Goal: every request receives a decision within 48 hours.
- Goal: payroll exports need no manual corrections.

# Requirements
Furthermore, each feature below is required for the first release.
- Functionality: a request stores start date, end date and reason.
- Capability: a team lead approves or rejects a request with one action.
- Behavior: a rejected request keeps the reason entered by the approver.
- The export lists approved requests for one calendar month.

# User Scenarios
Moreover, the main flow covers submission and approval.
- A team lead submits a request for 3 days in June.
- The request appears in the payroll export for June after approval.

# Success Criteria
As a result, success is tracked with one metric and one KPI.
- Measurement: median time from submission to decision, below 48 hours.
- KPI: zero manual corrections in the monthly payroll export.

# Constraints
However, the first release has a clear boundary.
- Limitation: half days are out of scope.
- Restriction: the tool reads employee data from the HR system only.
- Constraint: the existing login system handles authentication.
"""


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables for the entire test session."""
    os.environ['TESTING'] = 'true'

    yield

    os.environ.pop('TESTING', None)


@pytest.fixture
def test_config_manager(temp_workspace):
    """Create a ConfigManager that ignores .env files and any specgate.json."""
    reset_config_manager()

    config_manager = ConfigManager(
        load_env=False,
        config_file=str(Path(temp_workspace) / "specgate.json")
    )

    yield config_manager

    reset_config_manager()


@pytest.fixture
def temp_workspace():
    """Create a temporary workspace directory for testing."""
    temp_dir = tempfile.mkdtemp(prefix="specgate_test_")

    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_env_vars():
    """Provide a context manager for mocking environment variables in tests."""
    def _mock_env(**env_vars):
        return patch.dict(os.environ, env_vars, clear=False)

    return _mock_env


@pytest.fixture
def partial_spec_document():
    return PARTIAL_SPEC_DOCUMENT


@pytest.fixture
def strong_spec_document():
    return STRONG_SPEC_DOCUMENT
