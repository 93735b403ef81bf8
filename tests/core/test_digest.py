"""
Test Digest
===========

Digest levels, the local fallback and LLM-backed generation.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from a3s_context.core.digest import (
    Digest,
    DigestGenerator,
    DigestLevel,
    extract_first_sentence,
    kind_label,
    truncate,
)
from a3s_context.core.models import NodeKind
from a3s_context.errors import DigestGenerationError


class TestDigestLevel:
    """Test level selection by token budget."""

    @pytest.mark.parametrize("tokens,level", [
        (0, DigestLevel.BRIEF),
        (99, DigestLevel.BRIEF),
        (100, DigestLevel.SUMMARY),
        (999, DigestLevel.SUMMARY),
        (1000, DigestLevel.FULL),
    ])
    def test_get_level(self, tokens, level):
        assert Digest.get_level(tokens) == level

    def test_with_content_marks_generated(self):
        digest = Digest.with_content("b", "s")
        assert digest.generated
        assert not Digest().generated


class TestFallback:
    """Test the deterministic fallback."""

    def test_first_sentence(self):
        assert extract_first_sentence("Hello world. More text.") == "Hello world."

    def test_earliest_terminator_wins(self):
        assert extract_first_sentence("Really? Yes. Ok!") == "Really?"
        assert extract_first_sentence("Wow! Such. Text") == "Wow!"

    def test_newline_terminator(self):
        assert extract_first_sentence("Line one.\nLine two.") == "Line one."

    def test_no_terminator_returns_all(self):
        assert extract_first_sentence("  no terminator here  ") == "no terminator here"

    def test_period_without_space_is_not_a_terminator(self):
        assert extract_first_sentence("version 1.2 is out. yes") == "version 1.2 is out."

    def test_capped_at_200_chars(self):
        text = "x" * 500 + ". tail"
        assert len(extract_first_sentence(text)) == 200

    def test_truncate(self):
        assert truncate("abc", 5) == "abc"
        assert truncate("abcdef", 3) == "abc"

    @pytest.mark.asyncio
    async def test_generator_without_llm(self):
        content = "First sentence. " + "y" * 3000
        digest = await DigestGenerator().generate(content, NodeKind.DOCUMENT)

        assert digest.generated
        assert digest.brief == "First sentence."
        assert len(digest.summary) == 2000


class TestLLMGeneration:
    """Test generation through an LLM client."""

    @pytest.fixture
    def llm(self):
        client = Mock()
        client.complete = AsyncMock(side_effect=["one line", "longer summary"])
        client.close = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_prompts(self, llm):
        generator = DigestGenerator(llm)
        digest = await generator.generate("z" * 10000, NodeKind.MARKDOWN)

        assert digest == Digest.with_content("one line", "longer summary")

        brief_prompt = llm.complete.call_args_list[0].args[0]
        summary_prompt = llm.complete.call_args_list[1].args[0]
        assert brief_prompt.startswith("Summarize the following markdown document in one concise sentence")
        assert brief_prompt.endswith("\n\n" + "z" * 4000)
        assert summary_prompt.startswith("Provide a comprehensive summary of the following markdown document")
        assert summary_prompt.endswith("\n\n" + "z" * 8000)

    @pytest.mark.asyncio
    async def test_llm_failure_propagates(self, llm):
        llm.complete = AsyncMock(side_effect=DigestGenerationError("API error 500"))
        with pytest.raises(DigestGenerationError):
            await DigestGenerator(llm).generate("text", NodeKind.DOCUMENT)

    def test_kind_labels(self):
        assert kind_label(NodeKind.MARKDOWN) == "markdown document"
        assert kind_label(NodeKind.CODE) == "code"
