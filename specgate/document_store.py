"""
Phase document storage.

Single-document phases (spec, plan) are stored as one markdown file each;
directory-backed phases (tasks, implement) are directory trees whose
presence is judged from their listing. A document that exists but cannot be
read raises DocumentStoreError so callers can report it.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .models import Phase


SPECIFY_DIR = ".specify"

PHASE_PATHS: Dict[Phase, Path] = {
    Phase.SPEC: Path(SPECIFY_DIR) / "spec" / "current.md",
    Phase.PLAN: Path(SPECIFY_DIR) / "plan" / "current.md",
    Phase.TASKS: Path(SPECIFY_DIR) / "tasks",
    Phase.IMPLEMENT: Path(SPECIFY_DIR) / "implementations",
}


class DocumentStoreError(Exception):
    """Raised when a phase document exists but cannot be read."""
    pass


class DocumentStore(ABC):
    """Abstract store for phase documents."""

    @abstractmethod
    def read_document(self, project: str, phase: Phase) -> Optional[str]:
        """
        Return the phase document's text, or None when it does not exist.

        Raises:
            DocumentStoreError: If the document exists but cannot be read
        """

    @abstractmethod
    def write_document(self, project: str, phase: Phase, text: str) -> None:
        """Create or replace the phase document."""

    @abstractmethod
    def list_phase_entries(self, project: str, phase: Phase) -> Optional[List[str]]:
        """Return the entries of a directory-backed phase, or None when absent."""


class FileDocumentStore(DocumentStore):
    """
    Document store on the local file system.

    Layout under <workspace>/<project>:
    - .specify/spec/current.md
    - .specify/plan/current.md
    - .specify/tasks/
    - .specify/implementations/

    Writing to a directory-backed phase stores the text as current.md inside
    the phase directory.
    """

    def __init__(self, workspace_path: str):
        """
        Initialize the document store.

        Args:
            workspace_path: Directory that project paths are resolved against
        """
        self.workspace_path = Path(workspace_path)
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"FileDocumentStore initialized for workspace: {workspace_path}")

    def phase_path(self, project: str, phase: Phase) -> Path:
        return self.workspace_path / project / PHASE_PATHS[Phase.parse(phase)]

    def read_document(self, project: str, phase: Phase) -> Optional[str]:
        path = self.phase_path(project, phase)
        if path.is_dir():
            path = path / "current.md"
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(f"Failed to read {path}: {e}")
            raise DocumentStoreError(f"Cannot read {path}: {e}") from e

    def write_document(self, project: str, phase: Phase, text: str) -> None:
        phase = Phase.parse(phase)
        path = self.phase_path(project, phase)
        if phase.is_directory_backed:
            path = path / "current.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding='utf-8')
        self.logger.info(f"Saved {phase.value} document for {project}: {path}")

    def list_phase_entries(self, project: str, phase: Phase) -> Optional[List[str]]:
        path = self.phase_path(project, phase)
        if not path.is_dir():
            return None
        try:
            return sorted(item.name for item in path.iterdir())
        except OSError as e:
            self.logger.error(f"Failed to list {path}: {e}")
            raise DocumentStoreError(f"Cannot list {path}: {e}") from e


class InMemoryDocumentStore(DocumentStore):
    """Document store kept in a dictionary, for tests and embedding."""

    def __init__(self):
        self.documents: Dict[Tuple[str, Phase], str] = {}
        self.entries: Dict[Tuple[str, Phase], List[str]] = {}

    def read_document(self, project: str, phase: Phase) -> Optional[str]:
        return self.documents.get((project, Phase.parse(phase)))

    def write_document(self, project: str, phase: Phase, text: str) -> None:
        phase = Phase.parse(phase)
        self.documents[(project, phase)] = text
        if phase.is_directory_backed:
            entries = self.entries.setdefault((project, phase), [])
            if "current.md" not in entries:
                entries.append("current.md")

    def add_entry(self, project: str, phase: Phase, name: str) -> None:
        """Register an entry in a directory-backed phase."""
        self.entries.setdefault((project, Phase.parse(phase)), []).append(name)

    def list_phase_entries(self, project: str, phase: Phase) -> Optional[List[str]]:
        entries = self.entries.get((project, Phase.parse(phase)))
        return sorted(entries) if entries is not None else None
