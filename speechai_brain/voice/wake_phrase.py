"""
Wake-phrase segmentation of transcribed snippets.

A snippet is logged as-is unless it contains the wake phrase "hi speech AI".
Text before the phrase is logged only; text after it is the question the
assistant answers. The whole snippet "end conversation" is a command and is
not segmented.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger("speechai.voice.wake_phrase")

# hi / h i / hai / hey, then speech / speach / spech, then ai / a i / a.i.
WAKE_PHRASE = re.compile(
    r"\b(?:h\s*a?\s*i|hey)"
    r"[\s,.!-]*"
    r"sp(?:ee|ea|e)ch"
    r"[\s.-]*"
    r"a\s*\.?\s*i\.?"
    r"(?!\w)",
    re.IGNORECASE,
)

END_COMMAND = "end conversation"


@dataclass(frozen=True)
class Segmentation:
    logged_segment: str
    answer_segment: str
    should_answer: bool
    is_end_command: bool = False


def is_end_command(text: str) -> bool:
    """True when the whole snippet is the end-conversation command."""
    normalized = " ".join(text.split()).rstrip(".!?").casefold()
    return normalized == END_COMMAND


class WakePhraseSegmenter:
    """Splits a transcription around the first wake phrase."""

    def __init__(self, pattern: re.Pattern = WAKE_PHRASE):
        self.pattern = pattern

    def segment(self, text: str) -> Segmentation:
        text = (text or "").strip()
        if is_end_command(text):
            return Segmentation("", "", should_answer=False, is_end_command=True)

        match = self.pattern.search(text)
        if match is None:
            return Segmentation(text, "", should_answer=False)

        logged = text[:match.start()].rstrip(" ,;:-").strip()
        answer = text[match.end():].lstrip(" ,.;:!?-").strip()
        logger.debug("Wake phrase at %d: logged=%d chars, answer=%d chars", match.start(), len(logged), len(answer))
        return Segmentation(logged, answer, should_answer=bool(answer))
