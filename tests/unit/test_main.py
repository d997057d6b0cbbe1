"""
Tests for the main entry point module.

This module tests the command-line interface:
- Logging setup
- Gate checks, iteration recording and status reports
- Document analysis and configuration commands
- Exit codes and error handling
"""

import json
import logging
import os
import pytest
from pathlib import Path
from unittest.mock import patch
from click.testing import CliRunner

from specgate.main import cli, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Remove the handlers setup_logging installs on the root logger."""
    root_logger = logging.getLogger()
    original_level = root_logger.level

    yield

    for handler in list(root_logger.handlers):
        if getattr(handler, '_specgate_handler', False):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(original_level)


@pytest.fixture
def run_cli(temp_workspace):
    """Invoke the CLI against the temporary workspace with a clean environment."""
    runner = CliRunner()
    config_file = str(Path(temp_workspace) / "specgate.json")

    def _run(*args, env=None):
        with patch.dict(os.environ, env or {}, clear=True):
            return runner.invoke(cli, ['--workspace', temp_workspace, '--config-file', config_file] + list(args),
                                 obj={})

    return _run


@pytest.fixture
def strong_spec_file(temp_workspace, strong_spec_document):
    path = Path(temp_workspace) / "strong-spec.md"
    path.write_text(strong_spec_document, encoding='utf-8')
    return str(path)


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_console_handler_is_replaced_not_duplicated(self):
        setup_logging()
        setup_logging()

        root_logger = logging.getLogger()
        tagged = [h for h in root_logger.handlers if getattr(h, '_specgate_handler', False)]
        assert len(tagged) == 1
        assert tagged[0].level == logging.WARNING

    def test_verbose_logging(self):
        setup_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file_is_created(self, temp_workspace):
        log_file = Path(temp_workspace) / "logs" / "specgate.log"

        setup_logging(log_file=str(log_file), file_level='DEBUG')
        logging.getLogger("specgate.test").debug("written to file only")

        assert log_file.exists()
        assert logging.getLogger().level == logging.DEBUG
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text(encoding='utf-8')


class TestCheckCommand:
    """Test cases for the check command."""

    def test_missing_document_blocks(self, run_cli):
        result = run_cli('check', 'leave-tool', 'spec')

        assert result.exit_code == 1
        assert "🚫 Phase spec: blocked" in result.output
        assert "   - spec document does not exist" in result.output

    def test_json_output(self, run_cli):
        result = run_cli('check', 'leave-tool', 'plan', '--json')

        data = json.loads(result.output)
        assert result.exit_code == 1
        assert data['current_phase'] == 'plan'
        assert data['can_proceed'] is False
        assert data['quality_score'] == 0.0

    def test_json_output_from_environment(self, run_cli):
        result = run_cli('check', 'leave-tool', 'plan', env={'SPECGATE_JSON_OUTPUT': 'true'})
        assert json.loads(result.output)['current_phase'] == 'plan'

    def test_synthetic_params(self, run_cli, temp_workspace):
        params_file = Path(temp_workspace) / "plan-params.json"
        params_file.write_text(json.dumps({
            "architecture": "A single web service in front of a relational database.",
            "tech_stack": ["Python", "Flask", "PostgreSQL"]
        }), encoding='utf-8')

        result = run_cli('check', 'leave-tool', 'plan', '--params', str(params_file), '--json')

        data = json.loads(result.output)
        assert data['synthetic'] is True
        assert data['quality_score'] > 0
        assert data['can_proceed'] is False

    def test_unreadable_document(self, run_cli, temp_workspace):
        spec_file = Path(temp_workspace) / "leave-tool" / ".specify" / "spec" / "current.md"
        spec_file.parent.mkdir(parents=True)
        spec_file.write_bytes(b"# Overview\n\xff\xfe bad bytes\n")

        result = run_cli('check', 'leave-tool', 'spec')

        assert result.exit_code == 1
        assert "   - spec document is unreadable: Cannot read" in result.output

    def test_invalid_params_file(self, run_cli, temp_workspace):
        params_file = Path(temp_workspace) / "bad.json"
        params_file.write_text("{ nope", encoding='utf-8')

        result = run_cli('check', 'leave-tool', 'plan', '--params', str(params_file))

        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_corrupt_history(self, run_cli, temp_workspace):
        history_file = Path(temp_workspace) / "leave-tool" / ".specify" / ".workflow-history.json"
        history_file.parent.mkdir(parents=True)
        history_file.write_text("{ corrupt", encoding='utf-8')

        result = run_cli('check', 'leave-tool', 'spec')

        assert result.exit_code == 1
        assert "Iteration history error" in result.output

    def test_invalid_config_file(self, run_cli, temp_workspace):
        (Path(temp_workspace) / "specgate.json").write_text('{"synthetic_confidence": 3}', encoding='utf-8')

        result = run_cli('check', 'leave-tool', 'spec')

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestRecordAndReport:
    """Test cases for the record, report and status commands."""

    def test_record_then_check_opens_gate(self, run_cli, temp_workspace, strong_spec_file):
        first = run_cli('record', 'leave-tool', 'spec', strong_spec_file)
        second = run_cli('record', 'leave-tool', 'spec', strong_spec_file)

        assert first.exit_code == 0
        assert first.output.startswith("📝 Iteration 1: | Quality ↑99pts (100%)")
        assert "Iteration 2: Minor revision" in second.output
        assert (Path(temp_workspace) / "leave-tool" / ".specify" / "spec" / "current.md").exists()

        result = run_cli('check', 'leave-tool', 'spec')
        assert result.exit_code == 0
        assert "✅ Phase spec: can proceed to plan" in result.output

    def test_record_detailed(self, run_cli, strong_spec_file):
        result = run_cli('record', 'leave-tool', 'spec', strong_spec_file, '--detailed')

        assert result.exit_code == 0
        assert "## Iteration 1 Analysis" in result.output
        assert "- Current Score: 99.0/100" in result.output

    def test_history_error_leaves_document_unchanged(self, run_cli, temp_workspace, strong_spec_file):
        specify_dir = Path(temp_workspace) / "leave-tool" / ".specify"
        spec_file = specify_dir / "spec" / "current.md"
        spec_file.parent.mkdir(parents=True)
        spec_file.write_text("ORIGINAL", encoding='utf-8')
        (specify_dir / ".workflow-history.json").write_text("{ corrupt", encoding='utf-8')

        result = run_cli('record', 'leave-tool', 'spec', strong_spec_file)

        assert result.exit_code == 1
        assert "Iteration history error" in result.output
        assert spec_file.read_text(encoding='utf-8') == "ORIGINAL"

    def test_record_rejects_undecodable_document(self, run_cli, temp_workspace):
        document = Path(temp_workspace) / "latin1.md"
        document.write_bytes(b"# Overview\nCaf\xe9 requests\n")

        result = run_cli('record', 'leave-tool', 'spec', str(document))

        assert result.exit_code == 1
        assert "Cannot read" in result.output
        assert not (Path(temp_workspace) / "leave-tool").exists()

    def test_record_rejects_unknown_phase(self, run_cli, strong_spec_file):
        result = run_cli('record', 'leave-tool', 'deploy', strong_spec_file)
        assert result.exit_code == 2

    def test_report(self, run_cli, strong_spec_file):
        empty = run_cli('report', 'leave-tool', 'spec')
        run_cli('record', 'leave-tool', 'spec', strong_spec_file)
        result = run_cli('report', 'leave-tool', 'spec')

        assert "No iterations recorded yet." in empty.output
        assert "# Iteration History Report: leave-tool (spec)" in result.output
        assert "**Total Iterations**: 1" in result.output

    def test_status(self, run_cli):
        result = run_cli('status', 'leave-tool')

        assert result.exit_code == 0
        assert "# Workflow Status: leave-tool" in result.output
        assert "**Current phase:** spec" in result.output

    def test_status_json(self, run_cli):
        result = run_cli('status', 'leave-tool', '--json')

        data = json.loads(result.output)
        assert data['current_phase'] == 'spec'
        assert data['complete'] is False
        assert 'overview' not in data
        assert set(data['phases']) == {'spec', 'plan', 'tasks', 'implement'}


class TestAnalyzeCommand:
    """Test cases for the analyze command."""

    def test_markdown_report(self, run_cli, strong_spec_file):
        result = run_cli('analyze', strong_spec_file, '--phase', 'spec')

        assert result.exit_code == 0
        assert "**Overall Score: 99/100** (acceptable)" in result.output

    def test_json_report(self, run_cli, strong_spec_file):
        result = run_cli('analyze', strong_spec_file, '-p', 'spec', '--json')

        data = json.loads(result.output)
        assert data['overall_score'] == 99
        assert data['severity'] == 'acceptable'
        assert data['degraded'] is False

    def test_score_card(self, run_cli, strong_spec_file):
        result = run_cli('analyze', strong_spec_file, '-p', 'spec', '--score-card')

        assert result.exit_code == 0
        assert "SPEC QUALITY SCORE CARD" in result.output
        assert "Confidence: 57%" in result.output

    def test_score_card_json(self, run_cli, strong_spec_file):
        result = run_cli('analyze', strong_spec_file, '-p', 'spec', '--json', '--score-card')

        data = json.loads(result.output)
        assert data['score_card']['confidence'] == 57
        assert data['score_card']['total_score'] == 99
        assert data['misalignments'] == []

    def test_without_score_card(self, run_cli, strong_spec_file):
        data = json.loads(run_cli('analyze', strong_spec_file, '-p', 'spec', '--json').output)
        assert 'score_card' not in data

    def test_undecodable_document(self, run_cli, temp_workspace):
        document = Path(temp_workspace) / "latin1.md"
        document.write_bytes(b"# Overview\nCaf\xe9 requests\n")

        result = run_cli('analyze', str(document), '-p', 'spec')

        assert result.exit_code == 1
        assert "Cannot read" in result.output

    def test_phase_is_required(self, run_cli, strong_spec_file):
        assert run_cli('analyze', strong_spec_file).exit_code == 2


class TestConfigCommands:
    """Test cases for the config command group."""

    def test_show_json(self, run_cli):
        result = run_cli('config', 'show', '--format', 'json', env={'SPECGATE_SPEC_REQUIRED_QUALITY': '60'})

        data = json.loads(result.output)
        assert data['gates']['spec'] == {'required_quality': 60, 'required_iterations': 2}
        assert data['gates']['tasks']['required_quality'] == 78
        assert data['settings']['synthetic_confidence'] == 0.8
        assert data['sources']['environment_overrides'] == ['SPECGATE_SPEC_REQUIRED_QUALITY']

    def test_show_text(self, run_cli):
        result = run_cli('config', 'show')

        assert "=== Gates ===" in result.output
        assert "spec: quality ≥ 75, iterations ≥ 2" in result.output

    def test_validate(self, run_cli):
        result = run_cli('config', 'validate')

        assert result.exit_code == 0
        assert "✅ Configuration validation passed!" in result.output
