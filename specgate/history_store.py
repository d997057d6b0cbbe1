"""
Iteration history persistence.

This module implements the stores that hold each project's per-phase
iteration history. The history is append-only: the number of records for a
phase is that phase's iteration count, so any failure to read or write it is
surfaced as a HistoryStoreError instead of being papered over.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Any, Optional

from .models import IterationRecord, Phase


HISTORY_FILE = Path(".specify") / ".workflow-history.json"


class HistoryStoreError(Exception):
    """Raised when the iteration history cannot be read, parsed or written."""
    pass


class IterationHistoryStore(ABC):
    """
    Abstract store for per-project, per-phase iteration history.

    Implementations must keep histories append-only. Concurrent writers to
    the same project are not supported.
    """

    @abstractmethod
    def read_history(self, project: str, phase: Phase) -> List[IterationRecord]:
        """Return the phase's records, oldest first. Empty if none exist."""

    @abstractmethod
    def append_history(self, project: str, phase: Phase, record: IterationRecord) -> None:
        """Append one record to the phase's history."""

    def iteration_count(self, project: str, phase: Phase) -> int:
        return len(self.read_history(project, phase))

    def latest_record(self, project: str, phase: Phase) -> Optional[IterationRecord]:
        history = self.read_history(project, phase)
        return history[-1] if history else None


class JsonFileHistoryStore(IterationHistoryStore):
    """
    History store backed by one JSON file per project.

    The file lives at <workspace>/<project>/.specify/.workflow-history.json
    and maps phase names to lists of records. Appending reads the whole
    file, adds the record and writes the whole file back.
    """

    def __init__(self, workspace_path: str):
        """
        Initialize the history store.

        Args:
            workspace_path: Directory that project paths are resolved against
        """
        self.workspace_path = Path(workspace_path)
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"JsonFileHistoryStore initialized for workspace: {workspace_path}")

    def history_file(self, project: str) -> Path:
        return self.workspace_path / project / HISTORY_FILE

    def _load(self, project: str) -> Dict[str, List[Dict[str, Any]]]:
        history_file = self.history_file(project)
        if not history_file.exists():
            return {}

        try:
            with open(history_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to read iteration history {history_file}: {e}")
            raise HistoryStoreError(f"Failed to read iteration history {history_file}: {e}") from e

        if not isinstance(data, dict):
            self.logger.error(f"Iteration history {history_file} is not a JSON object")
            raise HistoryStoreError(f"Iteration history {history_file} is not a JSON object")
        return data

    def read_history(self, project: str, phase: Phase) -> List[IterationRecord]:
        phase = Phase.parse(phase)
        entries = self._load(project).get(phase.value, [])
        if not isinstance(entries, list):
            raise HistoryStoreError(f"History for phase {phase.value} is not a list")
        try:
            return [IterationRecord.from_dict(entry) for entry in entries]
        except (AttributeError, TypeError, ValueError) as e:
            raise HistoryStoreError(f"Malformed history record for phase {phase.value}: {e}") from e

    def append_history(self, project: str, phase: Phase, record: IterationRecord) -> None:
        phase = Phase.parse(phase)
        data = self._load(project)
        data.setdefault(phase.value, []).append(record.to_dict())

        history_file = self.history_file(project)
        try:
            history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(history_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Failed to write iteration history {history_file}: {e}")
            raise HistoryStoreError(f"Failed to write iteration history {history_file}: {e}") from e

        self.logger.debug(f"Appended {phase.value} iteration for {project} "
                          f"({len(data[phase.value])} total)")


class InMemoryHistoryStore(IterationHistoryStore):
    """History store kept in a dictionary, for tests and embedding."""

    def __init__(self):
        self.histories: Dict[str, Dict[Phase, List[IterationRecord]]] = {}

    def read_history(self, project: str, phase: Phase) -> List[IterationRecord]:
        return list(self.histories.get(project, {}).get(Phase.parse(phase), []))

    def append_history(self, project: str, phase: Phase, record: IterationRecord) -> None:
        self.histories.setdefault(project, {}).setdefault(Phase.parse(phase), []).append(record)
