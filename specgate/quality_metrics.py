"""
Quality Metrics Framework for phase document evaluation.

This module provides deterministic, rule-based quality assessment of the
documents produced in each workflow phase. Four independent evaluators score
a document on structure, completeness, clarity and internal consistency; the
QualityAssessmentEngine combines them with fixed weights into an overall
0-100 score, a severity tier and an iterate/proceed recommendation.

A separate phase-alignment check flags content that belongs to another phase
and adds it to the recommendations without changing the score.

When an evaluator fails, the engine falls back to a simple keyword and length
scorer and marks the result as degraded instead of aborting.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .models import (
    AssessmentResult,
    DimensionResult,
    Phase,
    QualityAssessment,
    QualityDimension,
    Section,
    Severity,
)
from .section_extractor import extract_sections, iter_sections, max_depth, section_titles, total_word_count


class QualityMetric(Enum):
    """Enumeration of quality dimensions."""
    STRUCTURAL = "Structural Quality"
    COMPLETENESS = "Completeness"
    CLARITY = "Clarity & Specificity"
    CONSISTENCY = "Internal Consistency"


DIMENSION_ORDER = (
    QualityMetric.STRUCTURAL,
    QualityMetric.COMPLETENESS,
    QualityMetric.CLARITY,
    QualityMetric.CONSISTENCY,
)

_STANDARD_WEIGHTS = {
    QualityMetric.STRUCTURAL: 0.25,
    QualityMetric.COMPLETENESS: 0.30,
    QualityMetric.CLARITY: 0.25,
    QualityMetric.CONSISTENCY: 0.20,
}

DIMENSION_WEIGHTS: Dict[Phase, Dict[QualityMetric, float]] = {
    Phase.SPEC: dict(_STANDARD_WEIGHTS),
    Phase.PLAN: dict(_STANDARD_WEIGHTS),
    Phase.TASKS: dict(_STANDARD_WEIGHTS),
    Phase.IMPLEMENT: dict(_STANDARD_WEIGHTS),
}

# Later phases tolerate less ambiguity.
ITERATION_THRESHOLDS: Dict[Phase, int] = {
    Phase.SPEC: 75,
    Phase.PLAN: 80,
    Phase.TASKS: 70,
    Phase.IMPLEMENT: 85,
}

PHASE_GUIDANCE: Dict[Phase, List[str]] = {
    Phase.SPEC: [
        'Focus on WHAT and WHY, avoid HOW (technical implementation)',
        'Include concrete user scenarios and acceptance criteria',
        'Define clear success metrics and constraints'
    ],
    Phase.PLAN: [
        'Specify technical architecture and design patterns',
        'Include detailed technology stack decisions',
        'Address scalability, security, and performance considerations'
    ],
    Phase.TASKS: [
        'Break down work into testable, independent units',
        'Define clear dependencies between tasks',
        'Include TDD approach for each task'
    ],
    Phase.IMPLEMENT: [
        'Provide specific test cases and implementation guidance',
        'Include code examples and patterns',
        'Ensure traceability to requirements and tasks'
    ],
}


def _check_phase_tables() -> None:
    """Every phase must appear in every per-phase table."""
    tables = {
        'DIMENSION_WEIGHTS': DIMENSION_WEIGHTS,
        'ITERATION_THRESHOLDS': ITERATION_THRESHOLDS,
        'PHASE_GUIDANCE': PHASE_GUIDANCE,
        'REQUIRED_SECTIONS': StructuralEvaluator.REQUIRED_SECTIONS,
        'EXPECTED_LENGTH': StructuralEvaluator.EXPECTED_LENGTH,
        'CATEGORY_KEYWORDS': CompletenessEvaluator.CATEGORY_KEYWORDS,
        'FALLBACK_KEYWORDS': FallbackQualityScorer.PHASE_KEYWORDS,
        'MISPLACED_PATTERNS': PhaseAlignmentEvaluator.MISPLACED_PATTERNS,
    }
    for table_name, table in tables.items():
        missing = [phase.value for phase in Phase if phase not in table]
        if missing:
            raise RuntimeError(f"{table_name} has no entry for phases: {', '.join(missing)}")
    for phase, weights in DIMENSION_WEIGHTS.items():
        if set(weights) != set(DIMENSION_ORDER):
            raise RuntimeError(f"DIMENSION_WEIGHTS[{phase.value}] must cover all four dimensions")


class StructuralEvaluator:
    """
    Evaluates document structure.

    score = 0.3 * section presence + 0.4 * logical flow + 0.3 * content depth
    """

    REQUIRED_SECTIONS: Dict[Phase, List[str]] = {
        Phase.SPEC: ['overview', 'user', 'requirements', 'scenarios', 'criteria', 'constraints', 'goals'],
        Phase.PLAN: ['architecture', 'technology', 'design', 'data model', 'api', 'security'],
        Phase.TASKS: ['overview', 'breakdown', 'dependencies', 'timeline', 'testing', 'deliverables'],
        Phase.IMPLEMENT: ['overview', 'tests', 'implementation', 'examples', 'integration', 'deployment'],
    }

    SYNONYMS: Dict[str, List[str]] = {
        'overview': ['introduction', 'background', 'summary'],
        'user': ['stakeholder', 'persona', 'audience', 'customer'],
        'requirements': ['needs', 'specs', 'features', 'functional'],
        'scenarios': ['use case', 'stories', 'flows', 'journeys'],
        'criteria': ['success', 'metrics', 'kpi', 'acceptance'],
        'constraints': ['limitations', 'assumptions', 'restrictions'],
        'goals': ['objectives', 'purpose'],
        'architecture': ['structure', 'framework', 'pattern'],
        'technology': ['tech stack', 'tools', 'platform'],
        'design': ['system design', 'patterns'],
        'data model': ['database', 'schema', 'storage', 'entities'],
        'api': ['interface', 'endpoint', 'contract'],
        'security': ['authentication', 'authorization', 'auth'],
        'breakdown': ['tasks', 'work items', 'work breakdown'],
        'dependencies': ['prerequisites', 'sequencing', 'order'],
        'timeline': ['schedule', 'milestones', 'estimates'],
        'testing': ['tests', 'validation', 'qa', 'verification', 'tdd'],
        'deliverables': ['definition of done', 'outputs', 'outcomes'],
        'tests': ['test cases', 'test scenarios', 'testing'],
        'implementation': ['implementation guide', 'coding standards', 'code structure'],
        'examples': ['samples', 'code examples', 'patterns'],
        'integration': ['integration plan', 'integration strategy'],
        'deployment': ['deployment guide', 'release', 'monitoring', 'rollout'],
    }

    EXPECTED_LENGTH: Dict[Phase, int] = {
        Phase.SPEC: 800,
        Phase.PLAN: 1200,
        Phase.TASKS: 600,
        Phase.IMPLEMENT: 1000,
    }

    CONNECTORS = [
        'therefore', 'however', 'furthermore', 'consequently',
        'as a result', 'in addition', 'moreover', 'additionally'
    ]

    def evaluate(self, content: str, phase: Phase,
                 sections: Optional[List[Section]] = None) -> DimensionResult:
        if sections is None:
            sections = extract_sections(content)
        result = DimensionResult(score=0.0)

        presence = self._analyze_section_presence(sections, phase)
        if presence < 0.6:
            result.issues.append('Document structure is incomplete or poorly organized')
        result.details.append(f'Section organization: {presence * 100:.0f}%')

        flow = self._analyze_logical_flow(content)
        if flow < 0.7:
            result.issues.append('Logical flow between sections needs improvement')
        result.details.append(f'Logical flow: {flow * 100:.0f}%')

        depth = self._analyze_content_depth(content, phase)
        if depth < 0.6:
            result.issues.append('Content lacks sufficient detail and depth')
        result.details.append(f'Content depth: {depth * 100:.0f}%')

        result.score = presence * 0.3 + flow * 0.4 + depth * 0.3
        return result

    def _analyze_section_presence(self, sections: List[Section], phase: Phase) -> float:
        required = self.REQUIRED_SECTIONS[phase]
        titles = [title.lower() for title in section_titles(sections)]
        found = sum(1 for name in required if any(self._title_matches(title, name) for title in titles))
        return min(found / len(required), 1.0)

    def _title_matches(self, title: str, required: str) -> bool:
        if required in title:
            return True
        return any(synonym in title for synonym in self.SYNONYMS.get(required, []))

    def _analyze_logical_flow(self, content: str) -> float:
        paragraphs = [p for p in re.split(r'\n\s*\n', content) if p.strip()]
        transitions = 0
        for paragraph in paragraphs[1:]:
            lower = paragraph.lower()
            if any(connector in lower for connector in self.CONNECTORS):
                transitions += 1
        return min(transitions / max(len(paragraphs) - 1, 1), 1.0)

    def _analyze_content_depth(self, content: str, phase: Phase) -> float:
        length_score = min(len(content) / self.EXPECTED_LENGTH[phase], 1.0)

        bullets = len(re.findall(r'^\s*[-*+]', content, re.MULTILINE))
        numbered_items = len(re.findall(r'^\s*\d+\.', content, re.MULTILINE))
        code_blocks = content.count('```') // 2
        detail_score = min((bullets + numbered_items + code_blocks) / 10, 1.0)

        return (length_score + detail_score) / 2


class CompletenessEvaluator:
    """Evaluates keyword coverage of the phase's four content categories."""

    CATEGORY_KEYWORDS: Dict[Phase, Dict[str, List[str]]] = {
        Phase.SPEC: {
            'User Definition': ['user', 'stakeholder', 'persona', 'target audience'],
            'Functional Requirements': ['feature', 'functionality', 'capability', 'behavior'],
            'Success Criteria': ['metric', 'measurement', 'goal', 'objective', 'kpi'],
            'Constraints': ['limitation', 'constraint', 'boundary', 'restriction'],
        },
        Phase.PLAN: {
            'Architecture': ['architecture', 'pattern', 'design', 'structure'],
            'Technology Stack': ['technology', 'framework', 'library', 'tool', 'platform'],
            'Data Model': ['data', 'model', 'schema', 'entity', 'relationship'],
            'Integration': ['api', 'interface', 'integration', 'service', 'endpoint'],
        },
        Phase.TASKS: {
            'Task Breakdown': ['task', 'subtask', 'activity', 'work item'],
            'Dependencies': ['dependency', 'prerequisite', 'requires', 'depends on'],
            'Testing Strategy': ['test', 'testing', 'validation', 'verification'],
            'Timeline': ['timeline', 'schedule', 'milestone', 'deadline'],
        },
        Phase.IMPLEMENT: {
            'Test Cases': ['test case', 'unit test', 'integration test', 'scenario'],
            'Implementation Guide': ['implementation', 'code', 'algorithm', 'logic'],
            'Examples': ['example', 'sample', 'demo', 'illustration'],
            'Integration': ['integration', 'deployment', 'configuration', 'setup'],
        },
    }

    def evaluate(self, content: str, phase: Phase,
                 sections: Optional[List[Section]] = None) -> DimensionResult:
        result = DimensionResult(score=0.0)
        categories = self.CATEGORY_KEYWORDS[phase]
        lower = content.lower()

        total = 0.0
        for category, keywords in categories.items():
            found = sum(1 for keyword in keywords if keyword in lower)
            category_score = min(found / len(keywords), 1.0)
            total += category_score

            result.details.append(f'{category}: {category_score * 100:.0f}%')
            if category_score < 0.6:
                result.issues.append(f'{category} section is incomplete or missing key elements')

        result.score = total / len(categories)
        return result


class ClarityEvaluator:
    """
    Evaluates clarity as the inverse density of ambiguous language.

    ratio = ambiguous terms per 100 words; score = max(0, 1 - ratio / 10)
    """

    AMBIGUOUS_PATTERNS = [
        re.compile(r'\b(some|many|few|several|various|often|usually|sometimes|might|could|should|may)\b', re.IGNORECASE),
        re.compile(r'\b(appropriate|suitable|reasonable|adequate|sufficient|proper|good|bad|better|optimal)\b', re.IGNORECASE),
        re.compile(r'\b(large|small|big|little|fast|slow|quick|simple|complex|easy|difficult)\b', re.IGNORECASE),
        re.compile(r'\b(soon|later|eventually|frequently|regularly|occasionally|periodically)\b', re.IGNORECASE),
        re.compile(r'\b(etc|and so on|among others|including but not limited to)\b', re.IGNORECASE),
    ]

    VAGUE_PHRASES = [
        'user-friendly', 'easy to use', 'intuitive', 'robust', 'scalable', 'flexible',
        'high performance', 'efficient', 'reliable', 'secure', 'maintainable'
    ]

    def evaluate(self, content: str, phase: Phase,
                 sections: Optional[List[Section]] = None) -> DimensionResult:
        result = DimensionResult(score=0.0)
        total_words = len(content.split())
        if total_words == 0:
            result.issues.append('Document is empty')
            result.details.append('Word count: 0')
            return result

        ambiguity_count = 0
        for pattern in self.AMBIGUOUS_PATTERNS:
            matches = [match.group(0) for match in pattern.finditer(content)]
            ambiguity_count += len(matches)
            if matches:
                preview = ', '.join(matches[:3]) + ('...' if len(matches) > 3 else '')
                result.issues.append(f'Found {len(matches)} ambiguous terms: {preview}')

        lower = content.lower()
        for phrase in self.VAGUE_PHRASES:
            if phrase in lower:
                ambiguity_count += 1
                result.issues.append(f'Vague phrase detected: "{phrase}" - needs specific criteria')

        ambiguity_ratio = ambiguity_count / max(total_words / 100, 1)
        result.score = max(0.0, 1 - ambiguity_ratio / 10)

        result.details.append(f'Ambiguous terms found: {ambiguity_count}')
        result.details.append(f'Clarity ratio: {result.score * 100:.0f}%')
        result.details.append(f'Word count: {total_words}')
        return result


class ConsistencyEvaluator:
    """Evaluates terminology, heading-format and reference consistency."""

    TERM_FAMILIES: List[Tuple[str, ...]] = [
        ('user', 'customer', 'client'),
        ('system', 'application', 'app', 'platform'),
        ('feature', 'functionality', 'capability'),
        ('task', 'ticket', 'work item'),
    ]

    CHECKBOX_PATTERN = re.compile(r'^(\s*[-*+]\s+)\[[ xX]\]', re.MULTILINE)
    REFERENCE_PATTERN = re.compile(r'\[([^\[\]]*)\]')

    def evaluate(self, content: str, phase: Phase,
                 sections: Optional[List[Section]] = None) -> DimensionResult:
        result = DimensionResult(score=0.0)
        if not content.strip():
            result.issues.append('Document is empty')
            return result

        term_score = self._check_terminology_consistency(content)
        result.details.append(f'Terminology consistency: {term_score * 100:.0f}%')
        if term_score < 0.7:
            result.issues.append('Inconsistent terminology usage detected')

        format_score = self._check_format_consistency(content)
        result.details.append(f'Format consistency: {format_score * 100:.0f}%')
        if format_score < 0.8:
            result.issues.append('Inconsistent formatting or structure')

        reference_score = self._check_reference_consistency(content)
        result.details.append(f'Reference consistency: {reference_score * 100:.0f}%')
        if reference_score < 0.9:
            result.issues.append('Inconsistent references or cross-links')

        result.score = (term_score + format_score + reference_score) / 3
        return result

    def _check_terminology_consistency(self, content: str) -> float:
        lower = content.lower()
        score = 1.0
        for family in self.TERM_FAMILIES:
            used = [term for term in family if re.search(rf'\b{re.escape(term)}s?\b', lower)]
            if len(used) > 1:
                score -= 0.1
        return max(score, 0.0)

    def _check_format_consistency(self, content: str) -> float:
        levels = [len(match.group(1)) for match in re.finditer(r'^(#+)\s', content, re.MULTILINE)]
        score = 1.0
        if levels and max(levels) - min(levels) > 3:
            score -= 0.2
        return max(score, 0.0)

    def _check_reference_consistency(self, content: str) -> float:
        stripped = self.CHECKBOX_PATTERN.sub(r'\1', content)
        references = self.REFERENCE_PATTERN.findall(stripped)
        if not references:
            return 1.0
        valid = sum(1 for reference in references if reference.strip())
        return valid / len(references)


class PhaseAlignmentEvaluator:
    """
    Flags content that belongs to a different phase.

    A spec says WHAT and WHY; database, API and deployment details belong in
    the plan. A plan says HOW; personas and user stories belong in the spec,
    code and test cases in the implementation guide. Tasks and implementation
    documents may contain most technical content and are not checked.
    """

    # pattern, what was found, phase it belongs to
    MISPLACED_PATTERNS: Dict[Phase, List[Tuple[re.Pattern, str, Phase]]] = {
        Phase.SPEC: [
            (re.compile(r'database\s+schema|table\s+structure', re.IGNORECASE), 'Database schema details', Phase.PLAN),
            (re.compile(r'class\s+diagram|\buml\b', re.IGNORECASE), 'Technical diagrams', Phase.PLAN),
            (re.compile(r'api\s+endpoint|rest\s+api|graphql', re.IGNORECASE), 'API implementation details', Phase.PLAN),
            (re.compile(r'docker|kubernetes|deployment', re.IGNORECASE), 'Deployment configuration', Phase.PLAN),
            (re.compile(r'microservice|architecture\s+pattern', re.IGNORECASE), 'Architecture patterns', Phase.PLAN),
        ],
        Phase.PLAN: [
            (re.compile(r'user\s+persona|target\s+audience', re.IGNORECASE), 'User personas', Phase.SPEC),
            (re.compile(r'problem\s+statement|pain\s+points', re.IGNORECASE), 'Problem definitions', Phase.SPEC),
            (re.compile(r'user\s+stor(y|ies)|as\s+a\s+user', re.IGNORECASE), 'User stories', Phase.SPEC),
            (re.compile(r'```[^`]*\b(function|class|const|def)\b', re.IGNORECASE), 'Implementation code',
             Phase.IMPLEMENT),
            (re.compile(r'test\s+case|describe\(|\bit\(', re.IGNORECASE), 'Test implementations', Phase.IMPLEMENT),
        ],
        Phase.TASKS: [],
        Phase.IMPLEMENT: [],
    }

    PHASE_NAMES: Dict[Phase, str] = {
        Phase.SPEC: 'specification',
        Phase.PLAN: 'technical planning',
        Phase.TASKS: 'task breakdown',
        Phase.IMPLEMENT: 'implementation',
    }

    def evaluate(self, content: str, phase: Phase) -> List[str]:
        """Return one message per kind of misplaced content, empty when aligned."""
        return [
            f'{found} should be in {self.PHASE_NAMES[target]} phase'
            for pattern, found, target in self.MISPLACED_PATTERNS[phase]
            if pattern.search(content)
        ]


class FallbackQualityScorer:
    """
    Simplified keyword and length scorer.

    Used only when the full engine fails; its results are approximate.
    """

    PHASE_KEYWORDS: Dict[Phase, Tuple[List[str], int, int]] = {
        # keywords, points per keyword, cap
        Phase.SPEC: (['user', 'customer', 'requirement', 'function', 'feature', 'goal', 'purpose'], 5, 40),
        Phase.PLAN: (['architecture', 'database', 'framework', 'technology', 'design', 'api',
                      'security', 'deployment'], 6, 50),
        Phase.TASKS: (['task', 'dependency', 'test', 'milestone', 'estimate', 'priority'], 6, 50),
        Phase.IMPLEMENT: (['test', 'implementation', 'integration', 'deployment', 'example',
                           'error handling'], 6, 50),
    }

    def score(self, content: str, phase: Phase) -> int:
        total = 0
        length = len(content)
        if length > 2000:
            total += 30
        elif length > 1000:
            total += 20
        elif length > 500:
            total += 10

        keywords, points, cap = self.PHASE_KEYWORDS[phase]
        lower = content.lower()
        found = [keyword for keyword in keywords if keyword in lower]
        total += min(len(found) * points, cap)

        return min(total, 100)


class QualityAssessmentEngine:
    """
    Combines the four dimension evaluators into a phase-aware assessment.

    The engine is stateless: every call re-parses the document and
    recomputes every score.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.evaluators = {
            QualityMetric.STRUCTURAL: StructuralEvaluator(),
            QualityMetric.COMPLETENESS: CompletenessEvaluator(),
            QualityMetric.CLARITY: ClarityEvaluator(),
            QualityMetric.CONSISTENCY: ConsistencyEvaluator(),
        }
        self.alignment_evaluator = PhaseAlignmentEvaluator()
        self.fallback_scorer = FallbackQualityScorer()

    def analyze(self, content: str, phase: Phase) -> QualityAssessment:
        """
        Run the full four-dimension assessment.

        Args:
            content: Document text
            phase: Workflow phase the document belongs to

        Returns:
            QualityAssessment for the document

        Raises:
            Any exception raised by an evaluator. Use assess() for the
            fault-tolerant variant.
        """
        phase = Phase.parse(phase)
        sections = extract_sections(content)
        weights = DIMENSION_WEIGHTS[phase]

        dimensions = []
        for metric in DIMENSION_ORDER:
            result = self.evaluators[metric].evaluate(content, phase, sections)
            dimensions.append(QualityDimension(
                name=metric.value,
                score=result.score,
                weight=weights[metric],
                details=result.details,
                issues=result.issues
            ))
            self.logger.debug(f"{phase.value} {metric.value}: {result.score:.3f}")

        misalignments = self.alignment_evaluator.evaluate(content, phase)
        if misalignments:
            self.logger.debug(f"{phase.value} misplaced content: {misalignments}")

        overall_score = self._calculate_overall_score(dimensions)
        return QualityAssessment(
            phase=phase,
            overall_score=overall_score,
            dimensions=dimensions,
            severity=self.determine_severity(overall_score, dimensions),
            recommendations=self._generate_recommendations(dimensions, phase, misalignments),
            requires_iteration=self.should_require_iteration(overall_score, dimensions, phase),
            misalignments=misalignments
        )

    def assess(self, content: str, phase: Phase) -> AssessmentResult:
        """
        Assess a document, falling back to approximate scoring on failure.

        Returns:
            A confident AssessmentResult, or a degraded one when any
            evaluator raised.
        """
        phase = Phase.parse(phase)
        try:
            return AssessmentResult.confident(self.analyze(content, phase))
        except Exception as e:
            self.logger.warning(f"Full quality analysis failed for {phase.value}, using fallback scorer: {e}")
            return AssessmentResult.degraded_from(self._fallback_assessment(content, phase), str(e))

    def determine_severity(self, score: float, dimensions: List[QualityDimension]) -> Severity:
        if score < 50 or any(d.score < 0.4 for d in dimensions):
            return Severity.CRITICAL
        if score < 70 or any(d.score < 0.6 for d in dimensions):
            return Severity.MAJOR
        if score < 85:
            return Severity.MINOR
        return Severity.ACCEPTABLE

    def should_require_iteration(self, score: float, dimensions: List[QualityDimension],
                                 phase: Phase) -> bool:
        return score < ITERATION_THRESHOLDS[phase] or any(d.score < 0.5 for d in dimensions)

    def _calculate_overall_score(self, dimensions: List[QualityDimension]) -> int:
        weighted = sum(d.score * d.weight for d in dimensions)
        return int(round(min(max(weighted, 0.0), 1.0) * 100))

    def _generate_recommendations(self, dimensions: List[QualityDimension], phase: Phase,
                                  misalignments: Optional[List[str]] = None) -> List[str]:
        recommendations: List[str] = []
        for dimension in dimensions:
            if dimension.score < 0.6:
                recommendations.append(f"**{dimension.name}** needs improvement ({dimension.percentage:.0f}%)")
                recommendations.extend(dimension.issues)
        recommendations.extend(misalignments or [])
        recommendations.extend(PHASE_GUIDANCE[phase])
        return recommendations

    def _fallback_assessment(self, content: str, phase: Phase) -> QualityAssessment:
        overall_score = self.fallback_scorer.score(content, phase)
        weights = DIMENSION_WEIGHTS[phase]
        approximate = overall_score / 100
        dimensions = [
            QualityDimension(
                name=metric.value,
                score=approximate,
                weight=weights[metric],
                details=['Approximate score from keyword and length heuristics']
            )
            for metric in DIMENSION_ORDER
        ]
        recommendations = ['Quality score is approximate: full analysis was unavailable']
        recommendations.extend(PHASE_GUIDANCE[phase])
        return QualityAssessment(
            phase=phase,
            overall_score=overall_score,
            dimensions=dimensions,
            severity=self.determine_severity(overall_score, dimensions),
            recommendations=recommendations,
            requires_iteration=self.should_require_iteration(overall_score, dimensions, phase)
        )

    def format_report(self, result: AssessmentResult) -> str:
        """Render an assessment as a markdown report."""
        assessment = result.assessment
        report = f"## Quality Assessment: {assessment.phase.value}\n\n"
        report += f"**Overall Score: {assessment.overall_score}/100** ({assessment.severity.value})\n"
        if result.degraded:
            report += f"\n> Approximate score: full analysis failed ({result.error})\n"
        report += "\n### Dimensions\n"
        for dimension in assessment.dimensions:
            report += f"- **{dimension.name}**: {dimension.percentage:.0f}% (weight {dimension.weight:.2f})\n"
            for detail in dimension.details:
                report += f"  - {detail}\n"
        if assessment.misalignments:
            report += "\n### Content That Belongs in Other Phases\n"
            for misalignment in assessment.misalignments:
                report += f"- {misalignment}\n"
        if assessment.recommendations:
            report += "\n### Recommendations\n"
            for recommendation in assessment.recommendations:
                report += f"- {recommendation}\n"
        verdict = "Another iteration is required" if assessment.requires_iteration else "Ready to proceed"
        report += f"\n**{verdict}** (threshold {ITERATION_THRESHOLDS[assessment.phase]})\n"
        return report

    def score_breakdown(self, content: str, result: AssessmentResult) -> Dict[str, Any]:
        """
        Break an assessment down into per-dimension contributions.

        Confidence is the share of sections that back their claims with
        examples or concrete numbers. It is 0 for degraded results and for
        documents without headings.

        Args:
            content: The assessed document text
            result: Assessment of that text

        Returns:
            Dictionary with the total, the confidence, one component per
            dimension, strengths (>= 80%), weaknesses (< 50%) and the section
            evidence the confidence is based on
        """
        assessment = result.assessment
        sections = extract_sections(content)
        all_sections = list(iter_sections(sections))
        with_examples = sum(1 for section in all_sections if section.has_examples)
        with_numbers = sum(1 for section in all_sections if section.has_numbers)
        evidenced = sum(1 for section in all_sections if section.has_examples or section.has_numbers)

        if result.degraded or not all_sections:
            confidence = 0
        else:
            confidence = int(round(evidenced / len(all_sections) * 100))

        components = [
            {
                'name': dimension.name,
                'weight': dimension.weight,
                'raw_score': int(round(dimension.percentage)),
                'weighted_score': round(dimension.score * dimension.weight * 100, 1),
            }
            for dimension in assessment.dimensions
        ]
        return {
            'phase': assessment.phase.value,
            'total_score': assessment.overall_score,
            'confidence': confidence,
            'components': components,
            'strengths': [d.name for d in assessment.dimensions if d.percentage >= 80],
            'weaknesses': [d.name for d in assessment.dimensions if d.percentage < 50],
            'evidence': {
                'sections': len(all_sections),
                'nesting_depth': max((max_depth(section) for section in sections), default=0),
                'section_words': total_word_count(sections),
                'sections_with_examples': with_examples,
                'sections_with_numbers': with_numbers,
            },
        }

    def format_score_card(self, breakdown: Dict[str, Any], bar_width: int = 20) -> str:
        """Render a score breakdown as a fixed-width text card with progress bars."""
        width = bar_width + 12
        rule = '─' * (width + 2)

        def row(text: str) -> str:
            return f"│ {text.ljust(width)} │\n"

        card = f"┌{rule}┐\n"
        card += row(f"{breakdown['phase'].upper()} QUALITY SCORE CARD")
        card += f"├{rule}┤\n"
        card += row(f"Total Score: {breakdown['total_score']}/100")
        card += row(f"Confidence: {breakdown['confidence']}%")
        card += f"├{rule}┤\n"
        for component in breakdown['components']:
            filled = int(round(component['raw_score'] / 100 * bar_width))
            bar = '█' * filled + '░' * (bar_width - filled)
            weight = f"{component['weight'] * 100:.0f}%"
            card += row(f"{component['name'][:width - 5]:<{width - 5}}{weight:>5}")
            card += row(f"{bar} {component['raw_score']:>3}/100")
        card += f"└{rule}┘\n"
        return card


_check_phase_tables()
