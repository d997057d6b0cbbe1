"""
Virtual document synthesis.

Builds a minimal markdown document for a phase from caller-supplied fields,
so that a proposal passed inline (for example a plan described by its tech
stack) can be scored before any document has been written. Each phase has
its own layout with a fixed set of recognised fields; unknown fields are
ignored and missing fields simply omit their section.
"""

from typing import Any, Dict, List, Mapping, Tuple

from .models import Phase


# phase -> (default title, [(field name, section heading), ...])
PHASE_LAYOUTS: Dict[Phase, Tuple[str, List[Tuple[str, str]]]] = {
    Phase.SPEC: ('Feature Specification', [
        ('problem', 'Overview'),
        ('users', 'Users and Stakeholders'),
        ('goals', 'Goals'),
        ('requirements', 'Functional Requirements'),
        ('scenarios', 'User Scenarios'),
        ('success_criteria', 'Success Criteria'),
        ('constraints', 'Constraints'),
    ]),
    Phase.PLAN: ('Technical Plan', [
        ('architecture', 'Architecture'),
        ('tech_stack', 'Technology Stack'),
        ('design_system', 'Design'),
        ('data_model', 'Data Model'),
        ('api', 'API'),
        ('security', 'Security'),
        ('testing', 'Testing Strategy'),
        ('deployment', 'Deployment'),
    ]),
    Phase.TASKS: ('Task Breakdown', [
        ('overview', 'Overview'),
        ('tasks', 'Task Breakdown'),
        ('dependencies', 'Dependencies'),
        ('timeline', 'Timeline'),
        ('testing', 'Testing'),
        ('deliverables', 'Deliverables'),
    ]),
    Phase.IMPLEMENT: ('Implementation Guide', [
        ('overview', 'Overview'),
        ('test_cases', 'Tests'),
        ('implementation', 'Implementation'),
        ('examples', 'Examples'),
        ('integration', 'Integration'),
        ('deployment', 'Deployment'),
    ]),
}

_missing = [phase.value for phase in Phase if phase not in PHASE_LAYOUTS]
if _missing:
    raise RuntimeError(f"No synthesis layout for phases: {', '.join(_missing)}")


def _render(value: Any) -> str:
    """Render a field value as markdown body text."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Mapping):
        lines = []
        for key, item in value.items():
            if isinstance(item, (list, tuple)):
                item = ', '.join(str(element) for element in item)
            label = str(key).replace('_', ' ').title()
            lines.append(f"- **{label}**: {item}")
        return '\n'.join(lines)
    if isinstance(value, (list, tuple)):
        return '\n'.join(f"- {item}" for item in value)
    return str(value)


def synthesize(phase: Phase, known_fields: Mapping[str, Any]) -> str:
    """
    Build a virtual document for a phase from known fields.

    Args:
        phase: Phase to build the document for
        known_fields: Field values; strings, lists and mappings are rendered
            as paragraphs, bullet lists and labelled bullet lists. A 'title'
            field replaces the default document title.

    Returns:
        Markdown text. Only the title heading when no field is recognised.

    Raises:
        UnknownPhaseError: If phase does not name a workflow phase
    """
    default_title, layout = PHASE_LAYOUTS[Phase.parse(phase)]
    fields = known_fields or {}

    document = f"# {fields.get('title') or default_title}\n"
    for field_name, heading in layout:
        body = _render(fields.get(field_name))
        if body:
            document += f"\n## {heading}\n\n{body}\n"
    return document


def recognised_fields(phase: Phase) -> List[str]:
    """Names of the fields rendered for a phase, besides 'title'."""
    return [field_name for field_name, _ in PHASE_LAYOUTS[Phase.parse(phase)][1]]
