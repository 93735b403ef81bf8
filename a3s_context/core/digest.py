"""
Digest Model & Generator
========================

A digest summarizes a node at three levels:

- Brief (~50 tokens): relevance triage
- Summary (~500 tokens): planning
- Full: the node's own content, never duplicated in the digest

``DigestGenerator`` produces brief and summary with an LLM when one is
configured, otherwise with a deterministic local fallback (first sentence
and a 2000 character truncation).
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog

if TYPE_CHECKING:
    from a3s_context.llm import ChatClient

log = structlog.get_logger()

BRIEF_MAX_CHARS = 200
SUMMARY_MAX_CHARS = 2000
BRIEF_PROMPT_CHARS = 4000
SUMMARY_PROMPT_CHARS = 8000

SENTENCE_ENDINGS = (". ", ".\n", "! ", "!\n", "? ", "?\n")


class DigestLevel(str, Enum):
    BRIEF = "brief"
    SUMMARY = "summary"
    FULL = "full"


@dataclass
class Digest:
    brief: str = ""
    summary: str = ""
    generated: bool = False

    @classmethod
    def with_content(cls, brief: str, summary: str) -> "Digest":
        return cls(brief=brief, summary=summary, generated=True)

    @staticmethod
    def get_level(max_tokens: int) -> DigestLevel:
        """Pick the richest level that fits a token budget."""
        if max_tokens < 100:
            return DigestLevel.BRIEF
        if max_tokens < 1000:
            return DigestLevel.SUMMARY
        return DigestLevel.FULL

    def to_dict(self) -> Dict[str, Any]:
        return {"brief": self.brief, "summary": self.summary, "generated": self.generated}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Digest":
        return cls(
            brief=data.get("brief", ""),
            summary=data.get("summary", ""),
            generated=bool(data.get("generated", False)),
        )


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def extract_first_sentence(text: str) -> str:
    """
    Return the first sentence of ``text``, capped at 200 characters.

    The sentence ends at the earliest terminator among ``". "``, ``".\\n"``,
    ``"! "``, ``"!\\n"``, ``"? "`` and ``"?\\n"`` (terminator punctuation kept).
    """
    text = text.strip()

    end = len(text)
    for ending in SENTENCE_ENDINGS:
        pos = text.find(ending)
        if pos != -1:
            end = min(end, pos + 1)

    end = min(end, BRIEF_MAX_CHARS)
    return text[:end].strip()


def kind_label(kind) -> str:
    """Human label used in prompts ("markdown document", "code", ...)."""
    value = getattr(kind, "value", str(kind))
    if value == "markdown":
        return "markdown document"
    return value


class DigestGenerator:
    """
    Produce ``Digest`` objects for node content.

    Example:
        >>> generator = DigestGenerator()            # local fallback
        >>> digest = await generator.generate("First. Second.", NodeKind.DOCUMENT)
        >>> digest.brief
        'First.'
    """

    def __init__(self, llm: Optional["ChatClient"] = None):
        self.llm = llm

    async def generate(self, content: str, kind) -> Digest:
        if self.llm is None:
            return self.generate_fallback(content)

        label = kind_label(kind)
        brief = await self.llm.complete(
            f"Summarize the following {label} in one concise sentence (max 50 tokens):\n\n"
            f"{truncate(content, BRIEF_PROMPT_CHARS)}"
        )
        summary = await self.llm.complete(
            f"Provide a comprehensive summary of the following {label} (max 500 tokens). "
            f"Include key points, main concepts, and important details:\n\n"
            f"{truncate(content, SUMMARY_PROMPT_CHARS)}"
        )
        log.debug(f"Generated LLM digest for {label} ({len(content)} chars)")
        return Digest.with_content(brief, summary)

    @staticmethod
    def generate_fallback(content: str) -> Digest:
        return Digest.with_content(
            extract_first_sentence(content),
            truncate(content, SUMMARY_MAX_CHARS),
        )

    async def close(self):
        if self.llm is not None:
            await self.llm.close()
