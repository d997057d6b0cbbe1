"""
Workflow gate evaluation for specgate.

This module implements the WorkflowGateEvaluator, which decides whether a
project may advance past a phase. A phase passes its gate when its document
exists, scores at least the gate's required quality and has been revised at
least the required number of recorded iterations. Revisions are recorded here
too: each recorded version is scored, compared with the previous one and
appended to the project's iteration history.
"""

import logging
from typing import Dict, Any, Optional, List, Mapping, Union

from .models import (
    AssessmentResult,
    IterationRecord,
    PHASE_ORDER,
    Phase,
    UnknownPhaseError,
    WorkflowGate,
    WorkflowStatus,
)
from .document_store import DocumentStore, DocumentStoreError
from .history_store import IterationHistoryStore
from .iteration_tracker import IterationQualityTracker
from .quality_metrics import QualityAssessmentEngine
from .synthesis import recognised_fields, synthesize


SYNTHETIC_CONFIDENCE = 0.8
DIRECTORY_PHASE_SCORE = 70
MAX_RECOMMENDATION_REASONS = 3

DEFAULT_GATES: Dict[Phase, WorkflowGate] = {
    Phase.SPEC: WorkflowGate(
        phase=Phase.SPEC,
        required_quality=75,
        required_iterations=2,
        required_content=('user_definition', 'functional_requirements', 'success_criteria'),
        blocking_conditions=('insufficient_detail', 'ambiguous_requirements', 'missing_user_context')
    ),
    Phase.PLAN: WorkflowGate(
        phase=Phase.PLAN,
        required_quality=80,
        required_iterations=1,
        required_content=('architecture', 'technology_stack', 'data_model'),
        blocking_conditions=('incomplete_specification', 'insufficient_technical_detail')
    ),
    Phase.TASKS: WorkflowGate(
        phase=Phase.TASKS,
        required_quality=78,
        required_iterations=1,
        required_content=('task_breakdown', 'dependencies', 'testing_strategy'),
        blocking_conditions=('incomplete_planning', 'unclear_task_boundaries')
    ),
    Phase.IMPLEMENT: WorkflowGate(
        phase=Phase.IMPLEMENT,
        required_quality=85,
        required_iterations=1,
        required_content=('test_cases', 'implementation_guide', 'integration_plan'),
        blocking_conditions=('incomplete_tasks', 'insufficient_tdd_guidance')
    ),
}

_missing = [phase.value for phase in Phase if phase not in DEFAULT_GATES]
if _missing:
    raise RuntimeError(f"DEFAULT_GATES has no entry for phases: {', '.join(_missing)}")


class WorkflowGateEvaluator:
    """
    Phase gate evaluator for the document-authoring workflow.

    The WorkflowGateEvaluator is responsible for:
    - Scoring the current document of a phase (or a virtual document built
      from supplied parameters) with the QualityAssessmentEngine
    - Joining the score with the persisted iteration count
    - Producing a WorkflowStatus with ranked blocking reasons
    - Recording new document versions as iterations

    Stores are injected; the evaluator itself holds no per-project state.
    """

    def __init__(self, document_store: DocumentStore, history_store: IterationHistoryStore,
                 engine: Optional[QualityAssessmentEngine] = None,
                 gates: Optional[Mapping[Phase, WorkflowGate]] = None,
                 tracker: Optional[IterationQualityTracker] = None,
                 synthetic_confidence: float = SYNTHETIC_CONFIDENCE,
                 directory_phase_score: float = DIRECTORY_PHASE_SCORE):
        """
        Initialize the Workflow Gate Evaluator.

        Args:
            document_store: Source of phase documents
            history_store: Persistent per-phase iteration history
            engine: Quality assessment engine (default: a new engine)
            gates: Gate table; phases missing from it use DEFAULT_GATES
            tracker: Iteration tracker (default: a new tracker)
            synthetic_confidence: Multiplier applied to scores of virtual documents
            directory_phase_score: Coarse score for a non-empty tasks or
                implement directory
        """
        self.document_store = document_store
        self.history_store = history_store
        self.engine = engine or QualityAssessmentEngine()
        self.tracker = tracker or IterationQualityTracker()
        self.gates: Dict[Phase, WorkflowGate] = dict(DEFAULT_GATES)
        if gates:
            self.gates.update(gates)
        self.synthetic_confidence = synthetic_confidence
        self.directory_phase_score = directory_phase_score
        self.logger = logging.getLogger(__name__)

        self.logger.info("WorkflowGateEvaluator initialized with gates: " + ", ".join(
            f"{gate.phase.value}={gate.required_quality}/{gate.required_iterations}"
            for gate in self.gates.values()
        ))

    def get_gate(self, phase: Union[Phase, str]) -> WorkflowGate:
        """
        Get the gate configuration for a phase.

        Raises:
            UnknownPhaseError: If phase does not name a workflow phase
        """
        return self.gates[Phase.parse(phase)]

    async def check_phase_readiness(self, project: str, target_phase: Union[Phase, str],
                                    synthetic_params: Optional[Mapping[str, Any]] = None) -> WorkflowStatus:
        """
        Decide whether a project may advance past a phase.

        Args:
            project: Project reference, resolved by the stores
            target_phase: Phase whose gate is checked
            synthetic_params: Known fields used to build a virtual document
                when no document exists yet

        Returns:
            WorkflowStatus with the verdict and ranked blocking reasons

        Raises:
            HistoryStoreError: If the iteration history cannot be read
        """
        try:
            phase = Phase.parse(target_phase)
        except UnknownPhaseError as e:
            self.logger.warning(str(e))
            return WorkflowStatus(
                current_phase=str(target_phase),
                can_proceed=False,
                blocking_reasons=[str(e)]
            )

        gate = self.gates[phase]
        status = WorkflowStatus(current_phase=phase.value, can_proceed=False)
        read_error = None

        try:
            if phase.is_directory_backed:
                entries = self.document_store.list_phase_entries(project, phase)
                if entries:
                    status.document_exists = True
                    status.quality_score = float(self.directory_phase_score)
            else:
                content = self.document_store.read_document(project, phase)
                if content is not None:
                    status.document_exists = True
                    self._apply_assessment(status, self.engine.assess(content, phase))
        except DocumentStoreError as e:
            self.logger.warning(f"Unreadable {phase.value} document for {project}: {e}")
            read_error = str(e)

        if not status.document_exists:
            if synthetic_params:
                ignored = sorted(set(synthetic_params) - set(recognised_fields(phase)) - {'title'})
                if ignored:
                    self.logger.warning(f"Ignoring fields not used for {phase.value} documents: "
                                        f"{', '.join(ignored)}")
                virtual_document = synthesize(phase, synthetic_params)
                self._apply_assessment(status, self.engine.assess(virtual_document, phase),
                                       confidence=self.synthetic_confidence)
                status.synthetic = True
            elif read_error:
                status.recommendations = [f"Check that the {phase.value} document is readable UTF-8 text"]
            else:
                status.recommendations = [f"No {phase.value} document found"]

        status.iteration_count = self.history_store.iteration_count(project, phase)
        status.can_proceed = (status.document_exists
                              and status.quality_score >= gate.required_quality
                              and status.iteration_count >= gate.required_iterations)
        if not status.can_proceed:
            status.blocking_reasons = self._generate_blocking_reasons(status, gate, read_error)

        self.logger.info(
            f"Gate {phase.value} for {project}: {'open' if status.can_proceed else 'blocked'} "
            f"(score {status.quality_score:.1f}/{gate.required_quality}, "
            f"iterations {status.iteration_count}/{gate.required_iterations})"
        )
        return status

    def _apply_assessment(self, status: WorkflowStatus, result: AssessmentResult,
                          confidence: float = 1.0) -> None:
        status.quality_score = round(result.overall_score * confidence, 1)
        status.recommendations = list(result.assessment.recommendations)
        status.degraded = result.degraded

    def _generate_blocking_reasons(self, status: WorkflowStatus, gate: WorkflowGate,
                                   read_error: Optional[str] = None) -> List[str]:
        phase = gate.phase.value
        reasons = []

        if not status.document_exists:
            if read_error:
                reasons.append(f"{phase} document is unreadable: {read_error}")
            else:
                reasons.append(f"{phase} document does not exist")
            if status.synthetic:
                reasons.append(f"Quality was scored from supplied parameters at reduced confidence; "
                               f"write the {phase} document to pass this gate")

        if status.quality_score < gate.required_quality:
            reasons.append(f"Quality score insufficient ({status.quality_score:.0f}/{gate.required_quality} required)")

        if status.iteration_count < gate.required_iterations:
            reasons.append(f"Insufficient iterations ({status.iteration_count}/{gate.required_iterations} required)")

        if status.degraded:
            reasons.append("Quality score is approximate: full analysis failed")

        if status.document_exists or status.synthetic:
            top = status.recommendations[:MAX_RECOMMENDATION_REASONS]
            if top:
                reasons.append("Top recommendations:")
                reasons.extend(f"  • {recommendation}" for recommendation in top)

        return reasons

    async def record_iteration(self, project: str, phase: Union[Phase, str], content: str,
                               save_document: bool = False) -> str:
        """
        Record a new version of a phase document as an iteration.

        The new version is scored and compared with the previously recorded
        version (empty content scoring 0 for the first iteration), and the
        previous version's recommendations are checked for uptake. The record,
        including the detailed analysis, is appended to the history.

        Args:
            project: Project reference, resolved by the stores
            phase: Phase the document belongs to
            content: Full text of the new version
            save_document: Also store the text as the phase document, once the
                record has been appended

        Returns:
            One-line summary of the iteration

        Raises:
            UnknownPhaseError: If phase does not name a workflow phase
            HistoryStoreError: If the iteration history cannot be read or written;
                the phase document is then left unchanged
        """
        phase = Phase.parse(phase)
        history = self.history_store.read_history(project, phase)
        previous = history[-1] if history else None

        result = self.engine.assess(content, phase)
        analysis = self.tracker.analyze_iteration(
            previous.content if previous else "",
            content,
            previous.quality_score if previous else 0,
            result.overall_score,
            previous.recommendations if previous else [],
            iteration_number=len(history) + 1
        )

        record = IterationRecord.create(
            content,
            result.overall_score,
            recommendations=result.assessment.recommendations,
            analysis=analysis
        )
        self.history_store.append_history(project, phase, record)
        if save_document:
            self.document_store.write_document(project, phase, content)

        self.logger.info(f"Recorded {phase.value} iteration {analysis.iteration_number} for {project}: "
                         f"{analysis.summary}")
        return analysis.summary

    def get_iteration_report(self, project: str, phase: Union[Phase, str]) -> str:
        """
        Render the persisted iteration history of a phase as markdown.

        Raises:
            UnknownPhaseError: If phase does not name a workflow phase
            HistoryStoreError: If the iteration history cannot be read
        """
        phase = Phase.parse(phase)
        history = self.history_store.read_history(project, phase)
        if not history:
            return 'No iterations recorded yet.'

        analyses = [record.analysis or {} for record in history]
        meaningful = sum(1 for analysis in analyses if analysis.get('meaningful'))
        first_previous = history[0].quality_score - analyses[0].get('quality_improvement', history[0].quality_score)
        total_improvement = history[-1].quality_score - first_previous

        report = f"# Iteration History Report: {project} ({phase.value})\n\n"
        report += f"**Total Iterations**: {len(history)}\n"
        report += f"**Meaningful Iterations**: {meaningful}\n"
        report += f"**Total Quality Improvement**: {total_improvement:+.1f} points\n\n"
        report += "## Iteration Timeline\n\n"
        for index, (record, analysis) in enumerate(zip(history, analyses), start=1):
            icon = '✅' if analysis.get('meaningful') else '○'
            summary = analysis.get('summary') or f"Iteration {index}"
            report += f"{icon} **{summary}**\n"
            report += f"   {record.timestamp} | score {record.quality_score:.0f} | {record.content_length} chars\n\n"
        return report

    async def get_workflow_status(self, project: str) -> Dict[str, Any]:
        """
        Check every phase gate of a project in workflow order.

        The current phase is the first phase whose gate is not yet open;
        later phases are reported but cannot be active before it.

        Returns:
            Dictionary with the current phase, per-phase statuses and a
            markdown overview
        """
        statuses: Dict[str, WorkflowStatus] = {}
        current_phase: Optional[Phase] = None

        for phase in PHASE_ORDER:
            status = await self.check_phase_readiness(project, phase)
            statuses[phase.value] = status
            if current_phase is None and not status.can_proceed:
                current_phase = phase

        return {
            "project": project,
            "current_phase": current_phase.value if current_phase else None,
            "complete": current_phase is None,
            "phases": {name: status.to_dict() for name, status in statuses.items()},
            "overview": self._format_overview(project, statuses, current_phase)
        }

    def _format_overview(self, project: str, statuses: Dict[str, WorkflowStatus],
                         current_phase: Optional[Phase]) -> str:
        overview = f"# Workflow Status: {project}\n\n"
        for phase in PHASE_ORDER:
            status = statuses[phase.value]
            gate = self.gates[phase]
            if status.can_proceed:
                icon = "✅"
            elif phase == current_phase:
                icon = "▶️"
            else:
                icon = "⏸️"
            overview += (f"{icon} **{phase.value}**: score {status.quality_score:.0f}/{gate.required_quality}, "
                         f"iterations {status.iteration_count}/{gate.required_iterations}\n")

        if current_phase is None:
            overview += "\nAll phase gates are open.\n"
        else:
            overview += f"\n**Current phase:** {current_phase.value}\n"
            for reason in statuses[current_phase.value].blocking_reasons:
                if reason.startswith("  "):
                    overview += f"  {reason.strip()}\n"
                else:
                    overview += f"- {reason}\n"
        return overview
