"""
Section extraction for markdown documents.

Parses heading-delimited text into a tree of Section objects. Each section
carries its body text plus a few computed attributes (word count, whether it
contains examples, whether it contains concrete numbers) that the structural
checks and the score breakdown rely on.
"""

import re
from dataclasses import dataclass, field
from typing import Iterator, List

from .models import Section


HEADER_PATTERN = re.compile(r'^(#{1,6})\s+(.+)')

EXAMPLE_INDICATORS = [
    re.compile(r'for example', re.IGNORECASE),
    re.compile(r'e\.g\.', re.IGNORECASE),
    re.compile(r'such as', re.IGNORECASE),
    re.compile(r'for instance', re.IGNORECASE),
    re.compile(r'including', re.IGNORECASE),
    re.compile(r'"[^"]{20,}"'),
    re.compile(r'```[\s\S]+```'),
]

NUMBER_INDICATORS = [
    re.compile(r'\d+'),
    re.compile(r'\d+\s*%'),
    re.compile(r'\$\d+'),
    re.compile(r'\d+\s*(hours?|days?|weeks?|months?|ms|seconds?|minutes?)', re.IGNORECASE),
    re.compile(r'\d+\s*(users?|customers?)', re.IGNORECASE),
    re.compile(r'version\s*\d+', re.IGNORECASE),
]


def count_words(text: str) -> int:
    """Count whitespace-separated, non-empty tokens."""
    return len(text.split())


def has_examples(text: str) -> bool:
    return any(pattern.search(text) for pattern in EXAMPLE_INDICATORS)


def has_numbers(text: str) -> bool:
    return any(pattern.search(text) for pattern in NUMBER_INDICATORS)


@dataclass
class _OpenSection:
    """Mutable section under construction; frozen into a Section on close."""
    title: str
    level: int
    lines: List[str] = field(default_factory=list)
    children: List['_OpenSection'] = field(default_factory=list)

    def freeze(self) -> Section:
        content = '\n'.join(self.lines).strip()
        return Section(
            title=self.title,
            level=self.level,
            content=content,
            word_count=count_words(content),
            has_examples=has_examples(content),
            has_numbers=has_numbers(content),
            subsections=tuple(child.freeze() for child in self.children)
        )


def extract_sections(text: str) -> List[Section]:
    """
    Extract the section tree from markdown text.

    A heading of level L closes every open section of level >= L and opens
    a child of the nearest open section with a lower level, or a new
    top-level section. Lines before the first heading belong to no section.

    Args:
        text: Raw document text

    Returns:
        Top-level sections, in document order. Empty for heading-less text.
    """
    roots: List[_OpenSection] = []
    stack: List[_OpenSection] = []

    for line in text.split('\n'):
        match = HEADER_PATTERN.match(line)
        if match:
            level = len(match.group(1))
            section = _OpenSection(title=match.group(2).strip(), level=level)

            while stack and stack[-1].level >= level:
                stack.pop()

            if stack:
                stack[-1].children.append(section)
            else:
                roots.append(section)
            stack.append(section)
        elif stack:
            stack[-1].lines.append(line)

    return [section.freeze() for section in roots]


def iter_sections(sections: List[Section]) -> Iterator[Section]:
    """Walk a section tree depth-first, parents before children."""
    for section in sections:
        yield section
        yield from iter_sections(list(section.subsections))


def section_titles(sections: List[Section]) -> List[str]:
    return [section.title for section in iter_sections(sections)]


def total_word_count(sections: List[Section]) -> int:
    return sum(section.word_count for section in iter_sections(sections))


def max_depth(section: Section, current_depth: int = 0) -> int:
    """Depth of the deepest subsection below a section (0 for a leaf)."""
    if not section.subsections:
        return current_depth
    return max(max_depth(child, current_depth + 1) for child in section.subsections)
