"""Tests for StructuralMemoryClassifier"""

import pytest


@pytest.fixture
def classifier():
    from cortex.classifier.structural import StructuralMemoryClassifier
    return StructuralMemoryClassifier()


class TestStructuralClassification:
    @pytest.mark.asyncio
    async def test_checkbox_list_is_task(self, classifier):
        content = "- [ ] write tests\n- [ ] fix FIXME in parser\nTask deadline: 2024-06-01"
        result = await classifier.classify(content)

        assert result.primary == "task"
        assert result.secondary == "structural"
        assert result.confidence == 1.0
        assert result.attributes["matched_patterns"] == 4
        assert result.attributes["total_patterns"] == 4
        assert result.attributes["weight"] == 1.2

    @pytest.mark.asyncio
    async def test_code_block_is_code(self, classifier):
        content = (
            "```python\n"
            "import os\n\n"
            "class Parser:\n"
            "    def parse(self, text):\n"
            "        return text\n"
            "```"
        )
        result = await classifier.classify(content)

        assert result.primary == "code"
        assert result.attributes["structure"]["has_code_blocks"] is True
        assert result.attributes["structure"]["code_block_count"] == 1

    @pytest.mark.asyncio
    async def test_note_weight_scales_confidence(self, classifier):
        result = await classifier.classify("# Title\nImportant: remember this")

        assert result.primary == "note"
        assert result.confidence == pytest.approx(0.8)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   \n\t"])
    async def test_blank_content_is_unknown(self, classifier, content):
        result = await classifier.classify(content)

        assert result.primary == "unknown"
        assert result.confidence == 0.0
        assert result.attributes["reason"] == "empty_content"

    @pytest.mark.asyncio
    async def test_no_patterns(self, classifier):
        result = await classifier.classify("lorem ipsum dolor sit amet")

        assert result.is_unknown
        assert result.secondary == "structural"
        assert result.attributes["reason"] == "no_patterns"

    @pytest.mark.asyncio
    async def test_confidence_always_in_range(self, classifier):
        samples = [
            "## Meeting\nAgenda: x\nAction items\nWe agreed",
            "Sources: [1] (2020) doi: study findings",
            "## Project\nmilestone sprint\n## Status",
            "random text",
        ]
        for content in samples:
            result = await classifier.classify(content, {"unused": True})
            assert 0.0 <= result.confidence <= 1.0

    def test_supported_types(self, classifier):
        assert classifier.supported_types() == {
            "meeting", "task", "code", "research", "documentation", "project", "note",
        }


class TestAnalyzeStructure:
    def test_fingerprint(self):
        from cortex.classifier.structural import analyze_structure

        content = "---\ntitle: x\n---\n# Heading\n- item\n[[Link]] https://example.com\n- [ ] todo"
        structure = analyze_structure(content)

        assert structure["has_yaml_frontmatter"] is True
        assert structure["has_headings"] is True
        assert structure["heading_count"] == 1
        assert structure["has_lists"] is True
        assert structure["link_count"] == 2
        assert structure["checkbox_count"] == 1
        assert structure["line_count"] == 7
        assert structure["link_density"] > 0
