#!/usr/bin/env python3
"""
specgate - Main Entry Point

This module provides the command-line interface for the quality-gated
document workflow. It wires the configuration, the file-backed stores and
the WorkflowGateEvaluator together and exposes them as click commands.

The main program handles:
- Command-line argument parsing
- Logging and configuration setup
- Gate checks, iteration recording and status reports
- Exit codes (1 when a checked gate is blocked or configuration is invalid)
"""

import click
import asyncio
import logging
import sys
import os
import json
from pathlib import Path
from typing import Optional, Dict, Any

from .config_manager import ConfigManager, ConfigurationError
from .document_store import FileDocumentStore
from .history_store import HistoryStoreError, JsonFileHistoryStore
from .models import Phase, PHASE_ORDER, UnknownPhaseError
from .quality_metrics import QualityAssessmentEngine
from .workflow_manager import WorkflowGateEvaluator


PHASE_CHOICE = click.Choice([phase.value for phase in PHASE_ORDER], case_sensitive=False)


def setup_logging(verbose: bool = False, log_file: Optional[str] = None,
                  file_level: str = 'INFO') -> None:
    """
    Setup logging configuration for specgate.

    The console only shows warnings unless verbose is set, so command output
    stays readable; the log file records everything from file_level up.

    Args:
        verbose: Enable verbose (DEBUG) console logging
        log_file: Optional log file path
        file_level: Level name for the log file
    """
    console_level = logging.DEBUG if verbose else logging.WARNING
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, '_specgate_handler', False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    console_handler._specgate_handler = True
    root_logger.addHandler(console_handler)

    levels = [console_level]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(getattr(logging, file_level.upper(), logging.INFO))
        file_handler.setFormatter(formatter)
        file_handler._specgate_handler = True
        root_logger.addHandler(file_handler)
        levels.append(file_handler.level)

    root_logger.setLevel(min(levels))


def create_evaluator(config_manager: ConfigManager, workspace_path: str) -> WorkflowGateEvaluator:
    """Build a gate evaluator over file-backed stores rooted at the workspace."""
    settings = config_manager.get_config()
    return WorkflowGateEvaluator(
        document_store=FileDocumentStore(workspace_path),
        history_store=JsonFileHistoryStore(workspace_path),
        gates=config_manager.get_gates(),
        synthetic_confidence=settings['synthetic_confidence'],
        directory_phase_score=settings['directory_phase_score']
    )


def _fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


@click.group()
@click.option('--workspace', '-w',
              default=lambda: os.getenv('WORKSPACE_PATH'),
              help='Workspace directory path (overrides WORKSPACE_PATH env var, default: current directory)')
@click.option('--config-file', '-c',
              default=lambda: os.getenv('SPECGATE_CONFIG_FILE'),
              help='JSON configuration file (overrides SPECGATE_CONFIG_FILE env var, default: ./specgate.json)')
@click.option('--verbose', '-v', is_flag=True,
              help='Enable verbose (DEBUG) logging on the console')
@click.option('--log-file',
              default=lambda: os.getenv('LOG_FILE'),
              help='Log file path (overrides LOG_FILE env var)')
@click.pass_context
def cli(ctx: click.Context, workspace: Optional[str], config_file: Optional[str],
        verbose: bool, log_file: Optional[str]):
    """
    specgate - quality-gated document workflow

    Scores each phase document (spec → plan → tasks → implement) and only
    lets a project advance once the document is good enough and has been
    revised enough times.

    Configuration:
        Settings come from environment variables (optionally in a .env file),
        a specgate.json config file and built-in defaults, in that order.

        Optional: WORKSPACE_PATH, LOG_FILE, LOG_LEVEL, SPECGATE_CONFIG_FILE,
        SPECGATE_<PHASE>_REQUIRED_QUALITY, SPECGATE_<PHASE>_REQUIRED_ITERATIONS
    """
    try:
        config_manager = ConfigManager(config_file=config_file)
        settings = config_manager.get_config()
    except ConfigurationError as e:
        _fail(f"Configuration error: {e}")

    workspace_path = Path(workspace or config_manager.get_workspace_path()).resolve()
    setup_logging(verbose or str(settings['log_level']).upper() == 'DEBUG',
                  log_file or settings['log_file'],
                  file_level=str(settings['log_level']))

    ctx.ensure_object(dict)
    ctx.obj['config_manager'] = config_manager
    ctx.obj['workspace_path'] = workspace_path
    ctx.obj['json_output'] = settings['json_output']


def _evaluator(ctx: click.Context) -> WorkflowGateEvaluator:
    try:
        return create_evaluator(ctx.obj['config_manager'], str(ctx.obj['workspace_path']))
    except ConfigurationError as e:
        _fail(f"Configuration error: {e}")


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"Cannot read {path}: {e}")


def _print_status(status: Dict[str, Any]) -> None:
    icon = "✅" if status['can_proceed'] else "🚫"
    verdict = "can proceed" if status['can_proceed'] else "blocked"
    if status['can_proceed']:
        next_phase = Phase.parse(status['current_phase']).next_phase()
        if next_phase:
            verdict += f" to {next_phase.value}"
    click.echo(f"{icon} Phase {status['current_phase']}: {verdict}")
    click.echo(f"   Quality score: {status['quality_score']:.1f}")
    click.echo(f"   Iterations: {status['iteration_count']}")
    if status['synthetic']:
        click.echo("   ⚠️  Scored from supplied parameters (no document yet)")
    if status['degraded']:
        click.echo("   ⚠️  Approximate score (full analysis failed)")
    for reason in status['blocking_reasons']:
        click.echo(f"   {reason}" if reason.startswith("  ") else f"   - {reason}")


@cli.command()
@click.argument('project')
@click.argument('phase')
@click.option('--params', 'params_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON file with known fields used to score a phase that has no document yet')
@click.option('--json', 'json_flag', is_flag=True, help='Print the status as JSON')
@click.pass_context
def check(ctx: click.Context, project: str, phase: str, params_file: Optional[str], json_flag: bool):
    """Check whether PROJECT may advance past PHASE."""
    synthetic_params = None
    if params_file:
        try:
            synthetic_params = json.loads(Path(params_file).read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            _fail(f"Invalid JSON in {params_file}: {e}")
        if not isinstance(synthetic_params, dict):
            _fail(f"{params_file} must contain a JSON object")

    evaluator = _evaluator(ctx)
    try:
        status = asyncio.run(evaluator.check_phase_readiness(project, phase, synthetic_params))
    except HistoryStoreError as e:
        _fail(f"Iteration history error: {e}")

    if json_flag or ctx.obj['json_output']:
        click.echo(json.dumps(status.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_status(status.to_dict())

    if not status.can_proceed:
        sys.exit(1)


@cli.command()
@click.argument('project')
@click.argument('phase', type=PHASE_CHOICE)
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('--detailed', is_flag=True, help='Also print the detailed iteration analysis')
@click.pass_context
def record(ctx: click.Context, project: str, phase: str, document: str, detailed: bool):
    """Record DOCUMENT as an iteration and store it as PROJECT's PHASE document."""
    content = _read_text(document)
    evaluator = _evaluator(ctx)
    try:
        summary = asyncio.run(evaluator.record_iteration(project, phase, content, save_document=True))
    except HistoryStoreError as e:
        _fail(f"Iteration history error: {e}")
    except OSError as e:
        _fail(f"Iteration recorded but the {phase} document could not be saved: {e}")

    click.echo(f"📝 {summary}")
    if detailed:
        latest = evaluator.history_store.latest_record(project, phase)
        click.echo()
        click.echo((latest.analysis or {}).get('detailed_analysis', ''))


@cli.command()
@click.argument('project')
@click.option('--json', 'json_flag', is_flag=True, help='Print the status as JSON')
@click.pass_context
def status(ctx: click.Context, project: str, json_flag: bool):
    """Show every phase gate of PROJECT."""
    evaluator = _evaluator(ctx)
    try:
        workflow_status = asyncio.run(evaluator.get_workflow_status(project))
    except HistoryStoreError as e:
        _fail(f"Iteration history error: {e}")

    if json_flag or ctx.obj['json_output']:
        click.echo(json.dumps({key: value for key, value in workflow_status.items() if key != 'overview'},
                              indent=2, ensure_ascii=False))
    else:
        click.echo(workflow_status['overview'])


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('--phase', '-p', type=PHASE_CHOICE, required=True, help='Phase the document belongs to')
@click.option('--json', 'json_flag', is_flag=True, help='Print the assessment as JSON')
@click.option('--score-card', is_flag=True, help='Add the per-dimension score breakdown')
@click.pass_context
def analyze(ctx: click.Context, document: str, phase: str, json_flag: bool, score_card: bool):
    """Score DOCUMENT without touching any project."""
    content = _read_text(document)
    engine = QualityAssessmentEngine()
    result = engine.assess(content, Phase.parse(phase))
    breakdown = engine.score_breakdown(content, result) if score_card else None

    if json_flag or ctx.obj['json_output']:
        data = result.assessment.to_dict()
        data['degraded'] = result.degraded
        if breakdown:
            data['score_card'] = breakdown
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        click.echo(engine.format_report(result))
        if breakdown:
            click.echo(engine.format_score_card(breakdown))


@cli.command()
@click.argument('project')
@click.argument('phase', type=PHASE_CHOICE)
@click.pass_context
def report(ctx: click.Context, project: str, phase: str):
    """Show the recorded iteration history of PROJECT's PHASE."""
    evaluator = _evaluator(ctx)
    try:
        click.echo(evaluator.get_iteration_report(project, phase))
    except HistoryStoreError as e:
        _fail(f"Iteration history error: {e}")


@cli.group()
def config():
    """Inspect and validate configuration."""
    pass


@config.command()
@click.option('--format', '-f', 'output_format', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def show(ctx: click.Context, output_format: str):
    """Show the resolved configuration and gate table."""
    config_manager: ConfigManager = ctx.obj['config_manager']
    settings = config_manager.get_config()
    gates = config_manager.get_gates()

    data = {
        'workspace_path': str(ctx.obj['workspace_path']),
        'settings': {key: value for key, value in settings.items() if key != 'gates'},
        'gates': {
            phase.value: {
                'required_quality': gate.required_quality,
                'required_iterations': gate.required_iterations
            }
            for phase, gate in gates.items()
        },
        'sources': config_manager.get_configuration_sources_info()
    }

    if output_format == 'json':
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    click.echo("=== Configuration ===")
    click.echo(f"📁 Workspace: {data['workspace_path']}")
    for key, value in data['settings'].items():
        click.echo(f"  {key}={value}")
    click.echo("\n=== Gates ===")
    for phase_name, gate in data['gates'].items():
        click.echo(f"  {phase_name}: quality ≥ {gate['required_quality']}, "
                   f"iterations ≥ {gate['required_iterations']}")
    sources = data['sources']
    marker = "✓" if sources['config_file_exists'] else "⚠"
    click.echo(f"\n{marker} Config file: {sources['config_file']}")
    if sources['environment_overrides']:
        click.echo(f"✓ Environment overrides: {', '.join(sources['environment_overrides'])}")


@config.command()
@click.pass_context
def validate(ctx: click.Context):
    """Validate configuration, including the gate table."""
    try:
        ctx.obj['config_manager'].get_gates()
    except (ConfigurationError, UnknownPhaseError) as e:
        _fail(f"Configuration validation failed: {e}")
    click.echo("✅ Configuration validation passed!")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
