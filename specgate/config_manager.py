"""
Configuration Manager for specgate.

This module provides centralized configuration management using environment
variables, an optional JSON configuration file and built-in defaults, with
validation and clear error messages. It supports loading environment
variables from .env files and resolving the per-phase gate table.

Precedence: environment variables > config file > built-in defaults
"""

import os
import json
import logging
from typing import Optional, Dict, Any, Callable, Tuple
from pathlib import Path
from dotenv import load_dotenv

from .models import Phase, WorkflowGate
from .workflow_manager import DEFAULT_GATES, DIRECTORY_PHASE_SCORE, SYNTHETIC_CONFIDENCE


DEFAULT_CONFIG_FILE = "specgate.json"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required values."""
    pass


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# ENV_VAR: (config key, value type)
ENVIRONMENT_VARIABLES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    'WORKSPACE_PATH': ('workspace_path', str),
    'LOG_LEVEL': ('log_level', str),
    'LOG_FILE': ('log_file', str),
    'SPECGATE_JSON_OUTPUT': ('json_output', _parse_bool),
    'SPECGATE_SYNTHETIC_CONFIDENCE': ('synthetic_confidence', float),
    'SPECGATE_DIRECTORY_PHASE_SCORE': ('directory_phase_score', float),
}

GATE_FIELDS = ('required_quality', 'required_iterations')


class ConfigManager:
    """
    Centralized configuration manager for specgate.

    Handles loading configuration from environment variables, .env files and
    a JSON config file, with validation and clear error messages for invalid
    values.
    """

    def __init__(self, env_file: Optional[str] = None, load_env: bool = True,
                 config_file: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            env_file: Path to .env file to load. If None, looks for .env in the
                current directory and its parents.
            load_env: Whether to load environment variables from a .env file.
            config_file: JSON config file path (overrides SPECGATE_CONFIG_FILE).
        """
        self.logger = logging.getLogger(__name__)
        self._config_file_override = config_file
        self._config_cache: Optional[Dict[str, Any]] = None

        if load_env:
            self._load_env_file(env_file)

    def _load_env_file(self, env_file: Optional[str] = None) -> None:
        """
        Load environment variables from .env file.

        Args:
            env_file: Path to .env file. If None, searches upwards from cwd.
        """
        if env_file is None:
            current_dir = Path.cwd()
            for path in [current_dir] + list(current_dir.parents):
                env_path = path / ".env"
                if env_path.exists():
                    env_file = str(env_path)
                    break

        if env_file and Path(env_file).exists():
            load_dotenv(env_file)
            self.logger.info(f"Loaded environment configuration from {env_file}")
        else:
            self.logger.info("No .env file found, using system environment variables only")

    def get_config_file_path(self) -> Path:
        """Resolve the JSON config file: argument > SPECGATE_CONFIG_FILE > ./specgate.json."""
        if self._config_file_override:
            return Path(self._config_file_override)
        env_path = os.getenv('SPECGATE_CONFIG_FILE')
        if env_path:
            return Path(env_path)
        return Path.cwd() / DEFAULT_CONFIG_FILE

    def _get_defaults(self) -> Dict[str, Any]:
        return {
            'workspace_path': '.',
            'log_level': 'INFO',
            'log_file': None,
            'json_output': False,
            'synthetic_confidence': SYNTHETIC_CONFIDENCE,
            'directory_phase_score': DIRECTORY_PHASE_SCORE,
            'gates': {},
        }

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """
        Load configuration from a JSON file.

        Raises:
            ConfigurationError: If the file cannot be read or is not a JSON object.
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read().strip()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}")

        if not content:
            return {}

        try:
            config = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in configuration file {config_path}: {e}. "
                f"Please check the file syntax and ensure it contains valid JSON."
            )

        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Configuration file must contain a JSON object, got {type(config).__name__}: {config_path}"
            )
        self.logger.debug(f"Successfully loaded configuration from {config_path}")
        return config

    def get_config(self) -> Dict[str, Any]:
        """
        Get the resolved configuration.

        Returns:
            Dictionary of configuration values, with gate overrides under
            'gates' as {phase name: {field: value}}.

        Raises:
            ConfigurationError: If any value is invalid.
        """
        if self._config_cache is not None:
            return self._config_cache

        config = self._get_defaults()

        config_path = self.get_config_file_path()
        if config_path.exists():
            file_config = self._load_config_file(config_path)
            for key, value in file_config.items():
                if key == 'gates':
                    config['gates'] = self._parse_file_gates(value, config_path)
                elif key in config:
                    config[key] = value
                    self.logger.debug(f"Using {key} from config file: {value}")
                else:
                    self.logger.warning(f"Ignoring unknown configuration key '{key}' in {config_path}")
            self.logger.info(f"Loaded configuration from {config_path}")
        else:
            self.logger.debug(f"No config file found at {config_path}")

        for env_var, (config_key, value_type) in ENVIRONMENT_VARIABLES.items():
            value = os.getenv(env_var)
            if value:
                config[config_key] = self._convert(env_var, value, value_type)
                self.logger.debug(f"Using {config_key} from environment variable {env_var}")

        for phase in Phase:
            for field_name in GATE_FIELDS:
                env_var = f"SPECGATE_{phase.value.upper()}_{field_name.upper()}"
                value = os.getenv(env_var)
                if value:
                    config['gates'].setdefault(phase.value, {})[field_name] = self._convert(env_var, value, int)

        self._validate_config(config)
        self._config_cache = config
        return config

    def _convert(self, env_var: str, value: str, value_type: Callable[[str], Any]) -> Any:
        try:
            return value_type(value)
        except ValueError:
            raise ConfigurationError(
                f"Invalid value for {env_var}: '{value}'. Expected {value_type.__name__}."
            )

    def _parse_file_gates(self, gates: Any, config_path: Path) -> Dict[str, Dict[str, Any]]:
        if not isinstance(gates, dict):
            raise ConfigurationError(f"'gates' in {config_path} must be an object keyed by phase")

        parsed: Dict[str, Dict[str, Any]] = {}
        for phase_name, overrides in gates.items():
            try:
                phase = Phase.parse(phase_name)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown phase '{phase_name}' in gates of {config_path}. "
                    f"Valid phases: {', '.join(p.value for p in Phase)}"
                )
            if not isinstance(overrides, dict):
                raise ConfigurationError(f"gates.{phase.value} in {config_path} must be an object")
            parsed[phase.value] = {key: value for key, value in overrides.items() if key in GATE_FIELDS}
        return parsed

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        confidence = config['synthetic_confidence']
        if (isinstance(confidence, bool) or not isinstance(confidence, (int, float))
                or not (0.0 < confidence <= 1.0)):
            raise ConfigurationError(
                f"Invalid synthetic_confidence: {confidence}. Must be greater than 0.0 and at most 1.0."
            )

        directory_score = config['directory_phase_score']
        if (isinstance(directory_score, bool) or not isinstance(directory_score, (int, float))
                or not (0 <= directory_score <= 100)):
            raise ConfigurationError(
                f"Invalid directory_phase_score: {directory_score}. Must be between 0 and 100."
            )

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if str(config['log_level']).upper() not in valid_levels:
            raise ConfigurationError(
                f"Invalid log_level: '{config['log_level']}'. Must be one of: {', '.join(valid_levels)}"
            )

        for phase_name, overrides in config['gates'].items():
            quality = overrides.get('required_quality')
            if quality is not None and (isinstance(quality, bool) or not isinstance(quality, int)
                                        or not (0 <= quality <= 100)):
                raise ConfigurationError(
                    f"Invalid required_quality for {phase_name}: {quality}. Must be an integer between 0 and 100."
                )
            iterations = overrides.get('required_iterations')
            if iterations is not None and (isinstance(iterations, bool) or not isinstance(iterations, int)
                                           or iterations < 0):
                raise ConfigurationError(
                    f"Invalid required_iterations for {phase_name}: {iterations}. Must be a non-negative integer."
                )

    def get_gates(self) -> Dict[Phase, WorkflowGate]:
        """
        Get the gate table with configured overrides applied.

        Returns:
            Dictionary mapping every phase to its WorkflowGate.
        """
        overrides = self.get_config()['gates']
        gates = {}
        for phase, gate in DEFAULT_GATES.items():
            phase_overrides = overrides.get(phase.value, {})
            gates[phase] = gate.with_overrides(**phase_overrides)
            if phase_overrides:
                self.logger.info(f"Gate for {phase.value} overridden: {phase_overrides}")
        return gates

    def get_workspace_path(self) -> str:
        return self.get_config()['workspace_path']

    def get_configuration_sources_info(self) -> Dict[str, Any]:
        """Describe where configuration was loaded from, for the CLI."""
        config_path = self.get_config_file_path()
        return {
            'config_file': str(config_path),
            'config_file_exists': config_path.exists(),
            'environment_overrides': sorted(
                var for var in list(ENVIRONMENT_VARIABLES) + [
                    f"SPECGATE_{phase.value.upper()}_{field_name.upper()}"
                    for phase in Phase for field_name in GATE_FIELDS
                ] if os.getenv(var)
            ),
        }


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_file: Optional[str] = None) -> ConfigManager:
    """
    Get the global configuration manager instance.

    Args:
        config_file: JSON config file path override.

    Returns:
        ConfigManager instance.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_file=config_file)
    return _config_manager


def reset_config_manager() -> None:
    """Reset the global configuration manager instance (useful for testing)."""
    global _config_manager
    _config_manager = None
