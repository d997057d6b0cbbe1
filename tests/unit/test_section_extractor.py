"""
Unit tests for markdown section extraction.
"""

from specgate.section_extractor import (
    count_words,
    extract_sections,
    has_examples,
    has_numbers,
    iter_sections,
    max_depth,
    section_titles,
    total_word_count,
)


NESTED_DOCUMENT = """Preamble text that belongs to no section.

# Overview
Intro paragraph with two sentences.

## Scope
For example, only leave requests.

### Out of scope
Half days.

## Users
Up to 12 team leads.

# Goals
Cut approval time.
"""


class TestExtractSections:
    """Test cases for extract_sections."""

    def test_builds_tree_by_heading_level(self):
        sections = extract_sections(NESTED_DOCUMENT)

        assert [s.title for s in sections] == ["Overview", "Goals"]
        overview = sections[0]
        assert [s.title for s in overview.subsections] == ["Scope", "Users"]
        assert overview.subsections[0].subsections[0].title == "Out of scope"
        assert overview.subsections[0].subsections[0].level == 3

    def test_lines_before_first_heading_are_ignored(self):
        sections = extract_sections(NESTED_DOCUMENT)
        assert all("Preamble" not in s.content for s in iter_sections(sections))

    def test_section_body_excludes_children(self):
        overview = extract_sections(NESTED_DOCUMENT)[0]
        assert overview.content == "Intro paragraph with two sentences."
        assert overview.word_count == 5

    def test_computed_attributes(self):
        sections = extract_sections(NESTED_DOCUMENT)
        scope = sections[0].subsections[0]
        users = sections[0].subsections[1]

        assert scope.has_examples is True
        assert users.has_numbers is True
        assert sections[1].has_numbers is False

    def test_headingless_text_yields_no_sections(self):
        assert extract_sections("just a paragraph\nand another line") == []
        assert extract_sections("") == []

    def test_heading_needs_space_after_hashes(self):
        assert extract_sections("#hashtag\n####### seven") == []

    def test_level_jump_back_closes_deeper_sections(self):
        sections = extract_sections("## A\n### B\n# C\n## D")
        assert [s.title for s in sections] == ["A", "C"]
        assert sections[1].subsections[0].title == "D"


class TestSectionHelpers:
    """Test cases for the section tree helpers."""

    def test_titles_are_depth_first(self):
        sections = extract_sections(NESTED_DOCUMENT)
        assert section_titles(sections) == ["Overview", "Scope", "Out of scope", "Users", "Goals"]

    def test_total_word_count(self):
        sections = extract_sections("# A\none two\n## B\nthree")
        assert total_word_count(sections) == 3

    def test_max_depth(self):
        sections = extract_sections(NESTED_DOCUMENT)
        assert max_depth(sections[0]) == 2
        assert max_depth(sections[1]) == 0

    def test_word_and_indicator_helpers(self):
        assert count_words("  one\ttwo\n three  ") == 3
        assert has_examples("Use a tool such as a calendar") is True
        assert has_examples("Plain statement") is False
        assert has_numbers("Response within 200 ms") is True
        assert has_numbers("No figures here") is False
