"""
Iteration quality tracking for phase documents.

Decides whether a revision between two versions of a document is a
meaningful iteration: a real quality gain, a substantial content addition,
or good uptake of the previous round's suggestions. Counting raw saves is
not enough, so each revision is diffed and scored before it is counted.
"""

import difflib
import logging
import re
from typing import Dict, List, Optional, Sequence

from .models import (
    ContentDelta,
    FeedbackIncorporation,
    IterationAnalysis,
    QualityImprovement,
)


STOP_WORDS = frozenset([
    'add', 'include', 'consider', 'the', 'a', 'an', 'and', 'or', 'but',
    'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by', 'more', 'section'
])

SIGNIFICANT_POINTS = 10
SIGNIFICANT_PERCENTAGE = 15
SUBSTANTIAL_ADDED_WORDS = 50
GOOD_INCORPORATION_RATE = 60
MODIFICATION_SIMILARITY = 0.3
SUGGESTION_MATCH_RATIO = 0.6


def extract_key_terms(text: str) -> List[str]:
    """Lowercased, deduplicated terms longer than three characters, minus stop-words."""
    words = re.sub(r'[^\w\s]', ' ', text.lower()).split()
    terms: List[str] = []
    for word in words:
        if len(word) > 3 and word not in STOP_WORDS and word not in terms:
            terms.append(word)
    return terms


def word_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the lowercased word sets of two strings."""
    words1 = set(first.lower().split())
    words2 = set(second.lower().split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


class IterationQualityTracker:
    """
    Tracks meaningful improvements between document versions.

    track_iteration keeps an in-memory history of analyses per project id,
    owned by the tracker instance. analyze_iteration computes the same
    analysis without keeping it, for callers whose durable history lives in
    an iteration history store.
    """

    def __init__(self, store: Optional[Dict[str, List[IterationAnalysis]]] = None):
        self.logger = logging.getLogger(__name__)
        self.iterations: Dict[str, List[IterationAnalysis]] = store if store is not None else {}

    def track_iteration(self, project_id: str, old_content: str, new_content: str,
                        old_score: float, new_score: float,
                        previous_suggestions: Sequence[str] = (),
                        iteration_number: Optional[int] = None) -> IterationAnalysis:
        """
        Analyze a revision and append the result to the project's history.

        Args:
            project_id: Key of the in-memory history
            old_content: Previous document version
            new_content: New document version
            old_score: Overall quality score of the previous version
            new_score: Overall quality score of the new version
            previous_suggestions: Recommendations produced for the previous version
            iteration_number: Explicit iteration number; defaults to the next
                number in the in-memory history

        Returns:
            IterationAnalysis for the revision
        """
        history = self.iterations.setdefault(project_id, [])
        if iteration_number is None:
            iteration_number = len(history) + 1

        analysis = self.analyze_iteration(old_content, new_content, old_score, new_score,
                                          previous_suggestions, iteration_number)
        history.append(analysis)

        self.logger.info(f"Tracked iteration {iteration_number} for {project_id}: "
                         f"{'meaningful' if analysis.meaningful else 'minor'}")
        return analysis

    def analyze_iteration(self, old_content: str, new_content: str,
                          old_score: float, new_score: float,
                          previous_suggestions: Sequence[str],
                          iteration_number: int) -> IterationAnalysis:
        """Analyze a revision without adding it to the in-memory history."""
        content_delta = self.analyze_content_delta(old_content, new_content)
        quality_improvement = self.analyze_quality_improvement(old_score, new_score)
        feedback = self.analyze_feedback_incorporation(new_content, list(previous_suggestions))
        meaningful = self.is_iteration_meaningful(quality_improvement, content_delta, feedback)

        return IterationAnalysis(
            iteration_number=iteration_number,
            quality_improvement=quality_improvement,
            content_delta=content_delta,
            feedback_incorporation=feedback,
            meaningful=meaningful,
            summary=self._generate_summary(iteration_number, quality_improvement, content_delta,
                                           feedback, meaningful),
            detailed_analysis=self._generate_detailed_analysis(iteration_number, quality_improvement,
                                                               content_delta, feedback)
        )

    def analyze_content_delta(self, old_content: str, new_content: str) -> ContentDelta:
        old_words = old_content.split()
        new_words = new_content.split()
        delta = ContentDelta()

        matcher = difflib.SequenceMatcher(None, old_words, new_words, autojunk=False)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == 'equal':
                continue
            removed = ' '.join(old_words[i1:i2])
            added = ' '.join(new_words[j1:j2])
            if removed:
                delta.removals.append(removed)
                delta.total_removed_words += i2 - i1
            if added:
                delta.additions.append(added)
                delta.total_added_words += j2 - j1
            if tag == 'replace' and word_similarity(removed, added) > MODIFICATION_SIMILARITY:
                delta.modifications.append(f'Modified: "{removed[:50]}..." → "{added[:50]}..."')

        return delta

    def analyze_quality_improvement(self, old_score: float, new_score: float) -> QualityImprovement:
        """
        Compare two overall scores.

        The percentage is relative to the old score. From an old score of 0 it
        is 100 only when the score went up, and 0 otherwise, so an unchanged
        zero never reads as a 100% gain.
        """
        improvement = new_score - old_score
        if old_score > 0:
            improvement_percentage = improvement / old_score * 100
        elif improvement > 0:
            improvement_percentage = 100.0
        else:
            improvement_percentage = 0.0

        return QualityImprovement(
            previous_score=old_score,
            current_score=new_score,
            improvement=improvement,
            improvement_percentage=improvement_percentage,
            significant_improvement=(improvement >= SIGNIFICANT_POINTS
                                     or improvement_percentage >= SIGNIFICANT_PERCENTAGE)
        )

    def analyze_feedback_incorporation(self, new_content: str,
                                       previous_suggestions: List[str]) -> FeedbackIncorporation:
        lower_content = new_content.lower()
        implemented: List[str] = []
        missed: List[str] = []

        for suggestion in previous_suggestions:
            if self.is_suggestion_implemented(suggestion, lower_content):
                implemented.append(suggestion)
            else:
                missed.append(suggestion)

        rate = len(implemented) / len(previous_suggestions) * 100 if previous_suggestions else 0.0
        return FeedbackIncorporation(
            suggestions_provided=list(previous_suggestions),
            suggestions_implemented=implemented,
            missed_suggestions=missed,
            incorporation_rate=rate
        )

    def is_suggestion_implemented(self, suggestion: str, lower_content: str) -> bool:
        terms = extract_key_terms(suggestion)
        if not terms:
            return False
        matches = sum(1 for term in terms if term in lower_content)
        return matches / len(terms) > SUGGESTION_MATCH_RATIO

    def is_iteration_meaningful(self, quality: QualityImprovement, content: ContentDelta,
                                feedback: FeedbackIncorporation) -> bool:
        if quality.significant_improvement:
            return True
        if content.total_added_words >= SUBSTANTIAL_ADDED_WORDS:
            return True
        if feedback.incorporation_rate >= GOOD_INCORPORATION_RATE:
            return True
        return content.net_word_change > 20 and quality.improvement > 0

    def _generate_summary(self, iteration_number: int, quality: QualityImprovement,
                          content: ContentDelta, feedback: FeedbackIncorporation,
                          meaningful: bool) -> str:
        if not meaningful:
            return (f"Iteration {iteration_number}: Minor revision "
                    f"({quality.improvement:+.1f} points, {content.net_word_change:+d} words)")

        parts = [f"Iteration {iteration_number}:"]
        if quality.significant_improvement:
            parts.append(f"Quality ↑{quality.improvement:.0f}pts ({quality.improvement_percentage:.0f}%)")
        if content.net_word_change > 0:
            parts.append(f"Content +{content.total_added_words} words")
        if feedback.incorporation_rate > 0:
            parts.append(f"Feedback {feedback.incorporation_rate:.0f}% incorporated")
        return ' | '.join(parts)

    def _generate_detailed_analysis(self, iteration_number: int, quality: QualityImprovement,
                                    content: ContentDelta, feedback: FeedbackIncorporation) -> str:
        analysis = f"## Iteration {iteration_number} Analysis\n\n"

        analysis += "### 📈 Quality Improvement\n"
        analysis += f"- Previous Score: {quality.previous_score:.1f}/100\n"
        analysis += f"- Current Score: {quality.current_score:.1f}/100\n"
        analysis += (f"- **Improvement: {quality.improvement:+.1f} points "
                     f"({quality.improvement_percentage:+.1f}%)**\n")
        if quality.significant_improvement:
            analysis += "- ✅ Significant improvement achieved!\n"
        elif quality.improvement > 0:
            analysis += "- 👍 Positive improvement\n"
        elif quality.improvement == 0:
            analysis += "- ➖ No change in quality\n"
        else:
            analysis += "- ⚠️ Quality decreased - review changes\n"
        analysis += "\n"

        analysis += "### 📝 Content Changes\n"
        analysis += f"- Words Added: {content.total_added_words}\n"
        analysis += f"- Words Removed: {content.total_removed_words}\n"
        analysis += f"- Net Change: {content.net_word_change:+d} words\n"
        if content.total_added_words > 100:
            analysis += "- 🎯 Substantial content addition\n"
        elif content.total_added_words > SUBSTANTIAL_ADDED_WORDS:
            analysis += "- 📄 Moderate content addition\n"
        for modification in content.modifications[:5]:
            analysis += f"- {modification}\n"
        analysis += "\n"

        if feedback.suggestions_provided:
            analysis += "### 🎯 Feedback Incorporation\n"
            analysis += f"- Suggestions Provided: {len(feedback.suggestions_provided)}\n"
            analysis += f"- Suggestions Implemented: {len(feedback.suggestions_implemented)}\n"
            analysis += f"- **Incorporation Rate: {feedback.incorporation_rate:.0f}%**\n"
            if feedback.incorporation_rate >= 80:
                analysis += "- ✅ Excellent feedback incorporation!\n"
            elif feedback.incorporation_rate >= GOOD_INCORPORATION_RATE:
                analysis += "- 👍 Good feedback incorporation\n"
            elif feedback.incorporation_rate >= 40:
                analysis += "- ⚠️ Partial feedback incorporation\n"
            else:
                analysis += "- ❌ Low feedback incorporation - review suggestions\n"

            if feedback.missed_suggestions:
                analysis += "\n#### Missed Suggestions:\n"
                for suggestion in feedback.missed_suggestions:
                    analysis += f"- {suggestion}\n"

        return analysis

    def get_iteration_history(self, project_id: str) -> List[IterationAnalysis]:
        return list(self.iterations.get(project_id, []))

    def get_meaningful_iteration_count(self, project_id: str) -> int:
        return sum(1 for analysis in self.get_iteration_history(project_id) if analysis.meaningful)

    def get_total_quality_improvement(self, project_id: str) -> float:
        """Score gain from the first tracked version to the latest one."""
        history = self.get_iteration_history(project_id)
        if not history:
            return 0.0
        return history[-1].quality_improvement.current_score - history[0].quality_improvement.previous_score

    def generate_iteration_report(self, project_id: str) -> str:
        """Render the project's iteration timeline as markdown."""
        history = self.get_iteration_history(project_id)
        if not history:
            return 'No iterations recorded yet.'

        report = "# Iteration History Report\n\n"
        report += f"**Total Iterations**: {len(history)}\n"
        report += f"**Meaningful Iterations**: {self.get_meaningful_iteration_count(project_id)}\n"
        report += f"**Total Quality Improvement**: {self.get_total_quality_improvement(project_id):+.1f} points\n\n"
        report += "## Iteration Timeline\n\n"

        for analysis in history:
            icon = '✅' if analysis.meaningful else '○'
            report += f"{icon} **{analysis.summary}**\n"
            if analysis.meaningful:
                quality = analysis.quality_improvement
                report += (f"   Quality: {quality.previous_score:.0f} → {quality.current_score:.0f} | "
                           f"Content: +{analysis.content_delta.total_added_words} words | "
                           f"Feedback: {analysis.feedback_incorporation.incorporation_rate:.0f}%\n")
            report += "\n"

        return report
