"""
Core data models for the specgate quality-gated workflow.

This module defines the data structures shared by the analyzers, the
iteration tracker and the workflow gate evaluator: the closed phase
enumeration, parsed document sections, quality assessments, gate
configuration, gate verdicts and iteration history records.
"""

from enum import Enum
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime


class UnknownPhaseError(ValueError):
    """Raised when a string does not name a workflow phase."""
    pass


class Phase(Enum):
    """Enumeration of the document-authoring workflow phases."""
    SPEC = "spec"
    PLAN = "plan"
    TASKS = "tasks"
    IMPLEMENT = "implement"

    @classmethod
    def parse(cls, value: Any) -> 'Phase':
        """
        Convert a phase name into a Phase member.

        Args:
            value: Phase member or phase name (case-insensitive)

        Returns:
            The matching Phase

        Raises:
            UnknownPhaseError: If the value does not name a phase
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownPhaseError(f"Unknown phase: {value}") from None

    @property
    def is_directory_backed(self) -> bool:
        """Tasks and implement artifacts are directory trees, not single documents."""
        return self in (Phase.TASKS, Phase.IMPLEMENT)

    def next_phase(self) -> Optional['Phase']:
        """Return the phase that follows this one, or None for the last phase."""
        index = PHASE_ORDER.index(self)
        if index < len(PHASE_ORDER) - 1:
            return PHASE_ORDER[index + 1]
        return None


PHASE_ORDER: Tuple[Phase, ...] = (Phase.SPEC, Phase.PLAN, Phase.TASKS, Phase.IMPLEMENT)


class Severity(Enum):
    """Overall health tier of a quality assessment."""
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    ACCEPTABLE = "acceptable"


@dataclass(frozen=True)
class Section:
    """
    A heading-delimited section of a markdown document.

    Built once per analysis call by the section extractor and never
    mutated afterwards.
    """
    title: str
    level: int
    content: str
    word_count: int
    has_examples: bool
    has_numbers: bool
    subsections: Tuple['Section', ...] = ()


@dataclass
class DimensionResult:
    """Raw output of a single dimension analyzer."""
    score: float
    details: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)


@dataclass
class QualityDimension:
    """
    A scored and weighted quality dimension.

    Scores are on a 0-1 scale; weights of the four dimensions of a phase
    sum to 1.0.
    """
    name: str
    score: float
    weight: float
    details: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    @property
    def percentage(self) -> float:
        """Get score as percentage."""
        return self.score * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "score": self.score,
            "weight": self.weight,
            "percentage": self.percentage,
            "details": list(self.details),
            "issues": list(self.issues)
        }


@dataclass
class QualityAssessment:
    """
    Multi-dimensional quality assessment of one document.

    Derived from the document text on every check and never persisted.
    """
    phase: Phase
    overall_score: int
    dimensions: List[QualityDimension]
    severity: Severity
    recommendations: List[str] = field(default_factory=list)
    requires_iteration: bool = True
    misalignments: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "phase": self.phase.value,
            "overall_score": self.overall_score,
            "severity": self.severity.value,
            "requires_iteration": self.requires_iteration,
            "dimensions": [dimension.to_dict() for dimension in self.dimensions],
            "recommendations": list(self.recommendations),
            "misalignments": list(self.misalignments)
        }


@dataclass
class AssessmentResult:
    """
    An assessment tagged with how much it can be trusted.

    A confident result comes from the full four-dimension engine. A
    degraded result was produced by the fallback scorer after the engine
    failed, and carries the failure reason.
    """
    assessment: QualityAssessment
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def confident(cls, assessment: QualityAssessment) -> 'AssessmentResult':
        return cls(assessment=assessment)

    @classmethod
    def degraded_from(cls, assessment: QualityAssessment, error: str) -> 'AssessmentResult':
        return cls(assessment=assessment, degraded=True, error=error)

    @property
    def overall_score(self) -> int:
        return self.assessment.overall_score


@dataclass(frozen=True)
class WorkflowGate:
    """
    Admission requirements for entering a phase.

    Gates are configuration: one per phase, fixed at process start.
    """
    phase: Phase
    required_quality: int
    required_iterations: int
    required_content: Tuple[str, ...] = ()
    blocking_conditions: Tuple[str, ...] = ()

    def with_overrides(self, required_quality: Optional[int] = None,
                       required_iterations: Optional[int] = None) -> 'WorkflowGate':
        """Return a copy of this gate with the given requirements replaced."""
        changes: Dict[str, Any] = {}
        if required_quality is not None:
            changes['required_quality'] = required_quality
        if required_iterations is not None:
            changes['required_iterations'] = required_iterations
        return replace(self, **changes)


@dataclass
class WorkflowStatus:
    """
    The gate verdict for one phase of one project.

    Recomputed on every readiness check.
    """
    current_phase: str
    can_proceed: bool
    blocking_reasons: List[str] = field(default_factory=list)
    quality_score: float = 0.0
    iteration_count: int = 0
    recommendations: List[str] = field(default_factory=list)
    document_exists: bool = False
    degraded: bool = False
    synthetic: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "current_phase": self.current_phase,
            "can_proceed": self.can_proceed,
            "blocking_reasons": list(self.blocking_reasons),
            "quality_score": self.quality_score,
            "iteration_count": self.iteration_count,
            "recommendations": list(self.recommendations),
            "document_exists": self.document_exists,
            "degraded": self.degraded,
            "synthetic": self.synthetic
        }


@dataclass
class ContentDelta:
    """Word-level changes between two document versions."""
    additions: List[str] = field(default_factory=list)
    removals: List[str] = field(default_factory=list)
    modifications: List[str] = field(default_factory=list)
    total_added_words: int = 0
    total_removed_words: int = 0

    @property
    def net_word_change(self) -> int:
        return self.total_added_words - self.total_removed_words

    def to_dict(self) -> Dict[str, Any]:
        return {
            "additions": list(self.additions),
            "removals": list(self.removals),
            "modifications": list(self.modifications),
            "total_added_words": self.total_added_words,
            "total_removed_words": self.total_removed_words,
            "net_word_change": self.net_word_change
        }


@dataclass
class QualityImprovement:
    """Change in overall quality score between two document versions."""
    previous_score: float
    current_score: float
    improvement: float
    improvement_percentage: float
    significant_improvement: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_score": self.previous_score,
            "current_score": self.current_score,
            "improvement": self.improvement,
            "improvement_percentage": self.improvement_percentage,
            "significant_improvement": self.significant_improvement
        }


@dataclass
class FeedbackIncorporation:
    """How many of the previous round's suggestions the new version addresses."""
    suggestions_provided: List[str] = field(default_factory=list)
    suggestions_implemented: List[str] = field(default_factory=list)
    missed_suggestions: List[str] = field(default_factory=list)
    incorporation_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suggestions_provided": list(self.suggestions_provided),
            "suggestions_implemented": list(self.suggestions_implemented),
            "missed_suggestions": list(self.missed_suggestions),
            "incorporation_rate": self.incorporation_rate
        }


@dataclass
class IterationAnalysis:
    """
    Verdict on whether one revision is a meaningful iteration.

    Produced by the iteration tracker from a previous and a new document
    version together with their quality scores.
    """
    iteration_number: int
    quality_improvement: QualityImprovement
    content_delta: ContentDelta
    feedback_incorporation: FeedbackIncorporation
    meaningful: bool
    summary: str
    detailed_analysis: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "iteration_number": self.iteration_number,
            "quality_improvement": self.quality_improvement.to_dict(),
            "content_delta": self.content_delta.to_dict(),
            "feedback_incorporation": self.feedback_incorporation.to_dict(),
            "meaningful": self.meaningful,
            "summary": self.summary,
            "detailed_analysis": self.detailed_analysis
        }


@dataclass
class IterationRecord:
    """
    One recorded revision in a project's per-phase iteration history.

    Records are appended to the history and never modified afterwards.
    """
    timestamp: str
    content_length: int
    quality_score: float
    content: str = ""
    recommendations: List[str] = field(default_factory=list)
    analysis: Optional[Dict[str, Any]] = None

    @classmethod
    def create(cls, content: str, quality_score: float,
               recommendations: Optional[List[str]] = None,
               analysis: Optional[IterationAnalysis] = None) -> 'IterationRecord':
        """Create a record stamped with the current time."""
        summary = None
        if analysis is not None:
            summary = {
                "iteration_number": analysis.iteration_number,
                "meaningful": analysis.meaningful,
                "summary": analysis.summary,
                "quality_improvement": analysis.quality_improvement.improvement,
                "net_word_change": analysis.content_delta.net_word_change,
                "incorporation_rate": analysis.feedback_incorporation.incorporation_rate,
                "detailed_analysis": analysis.detailed_analysis
            }
        return cls(
            timestamp=datetime.now().isoformat(),
            content_length=len(content),
            quality_score=quality_score,
            content=content,
            recommendations=list(recommendations or []),
            analysis=summary
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp,
            "contentLength": self.content_length,
            "qualityScore": self.quality_score,
            "content": self.content,
            "recommendations": list(self.recommendations),
            "analysis": self.analysis
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IterationRecord':
        """
        Rebuild a record from its persisted form.

        Older history files only carry timestamp, length and score; the
        remaining fields default to empty.
        """
        return cls(
            timestamp=data.get("timestamp", ""),
            content_length=int(data.get("contentLength", 0)),
            quality_score=float(data.get("qualityScore", 0.0)),
            content=data.get("content", ""),
            recommendations=list(data.get("recommendations", [])),
            analysis=data.get("analysis")
        )
