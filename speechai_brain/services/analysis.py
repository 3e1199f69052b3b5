"""
Language analysis of stored conversations.

The user's own speech (prompt texts only) is folded into one corpus and sent
to the chat model with a fixed five-part rubric. The numbered reply is split
back into the five fields of ``AnalysisResult``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from ..storage.models import Conversation
from .base import call_dependency
from .protocols import ChatLLM

logger = logging.getLogger("speechai.analysis")

NO_DATA = "No data available."

ANALYSIS_INSTRUCTIONS = (
    "Analyze the following text and answer in exactly five numbered sections, "
    "without section titles: "
    "1. Vocabulary richness: identify unique words, repetitive patterns and the "
    "overall variation in word choice. "
    "2. Grammar mistakes: identify sentences with grammatical errors and suggest corrections. "
    "3. Improvements: suggest improvements in sentence structure and word choice "
    "for clarity and precision. "
    "4. Filler words: identify and list filler words or expressions "
    "(e.g. 'uh', 'um', 'like', 'you know') and how often each occurs. "
    "5. Summary: give a short summary of the overall analysis."
)

# A section starts at a line beginning with optional markup and "N." / "N)" / "N:"
SECTION_START = re.compile(r"^[ \t]*[#*_]*[ \t]*(\d+)[ \t]*[.):][ \t]*", re.MULTILINE)
MARKUP = "#*_ \t\r\n"

FIELDS = ("vocabulary_richness", "grammar_mistakes", "improvements", "filler_words", "summary")


@dataclass
class AnalysisResult:
    """Five-section critique of a speech corpus."""

    vocabulary_richness: str = NO_DATA
    grammar_mistakes: str = NO_DATA
    improvements: str = NO_DATA
    filler_words: str = NO_DATA
    summary: str = NO_DATA
    word_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "vocabularyRichness": self.vocabulary_richness,
            "grammarMistakes": self.grammar_mistakes,
            "improvements": self.improvements,
            "fillerWords": self.filler_words,
            "summary": self.summary,
            "wordCount": self.word_count,
        }


def combine_conversations(conversations: Iterable[Conversation]) -> str:
    """Join every non-blank prompt text with single spaces."""
    return " ".join(
        turn.prompt_text.strip()
        for conversation in conversations
        for turn in conversation.turns
        if not turn.is_blank
    )


def count_words(corpus: str) -> int:
    return len(corpus.split())


def parse_sections(reply: str) -> list[str]:
    """
    Split a numbered reply into cleaned section bodies, in order.

    Only the running sequence 1, 2, 3... counts as section boundaries, so a
    numbered list inside a section stays part of that section.
    """
    starts = []
    for match in SECTION_START.finditer(reply):
        if int(match.group(1)) == len(starts) + 1:
            starts.append(match)
    if not starts:
        body = reply.strip(MARKUP)
        return [body] if body else []

    sections = []
    for i, match in enumerate(starts):
        end = starts[i + 1].start() if i + 1 < len(starts) else len(reply)
        sections.append(reply[match.end():end].strip(MARKUP) or NO_DATA)
    return sections


class AnalysisAggregator:
    """Requests and parses the rubric critique."""

    def __init__(self, llm: ChatLLM, timeout: float = 30.0, instructions: str = ANALYSIS_INSTRUCTIONS):
        self.llm = llm
        self.timeout = timeout
        self.instructions = instructions

    async def analyze(self, corpus: str) -> AnalysisResult:
        """
        Analyze *corpus*.

        An empty corpus returns the sentinel record without calling the model.
        Missing sections default to the sentinel.
        """
        word_count = count_words(corpus)
        if word_count == 0:
            logger.info("Empty corpus; skipping analysis")
            return AnalysisResult()

        reply = await call_dependency(
            "llm",
            self.llm.complete(corpus, instructions=self.instructions),
            self.timeout,
        )
        sections = parse_sections(reply)
        if len(sections) < len(FIELDS):
            logger.warning("Analysis reply had %d of %d sections", len(sections), len(FIELDS))

        values = {name: sections[i] if i < len(sections) else NO_DATA for i, name in enumerate(FIELDS)}
        return AnalysisResult(word_count=word_count, **values)

    async def analyze_conversations(self, conversations: Iterable[Conversation]) -> AnalysisResult:
        return await self.analyze(combine_conversations(conversations))


# Global instance
_analysis_aggregator: Optional[AnalysisAggregator] = None


def get_analysis_aggregator() -> AnalysisAggregator:
    """Get the global analysis aggregator."""
    global _analysis_aggregator
    if _analysis_aggregator is None:
        from ..config import settings
        from .providers import get_chat_llm

        _analysis_aggregator = AnalysisAggregator(
            get_chat_llm(),
            timeout=settings.conversation.dependency_timeout,
        )
    return _analysis_aggregator
