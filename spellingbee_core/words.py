"""Round word lists and the spelling check."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .validation import CompetitionModel, WordEntryModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WordEntry:
    number: int
    word: str


@dataclass(frozen=True)
class SpellingVerdict:
    round_number: int
    word_number: int
    expected: str
    spelled: str
    correct: bool
    speller_id: str | None = None

    def to_payload(self) -> dict:
        return {
            "roundNumber": self.round_number,
            "wordNumber": self.word_number,
            "expected": self.expected,
            "spelled": self.spelled,
            "correct": self.correct,
            "spellerId": self.speller_id,
        }


def normalize_spelling(text: str) -> str:
    return text.strip().lower()


def is_correct_spelling(expected: str, spelled: str) -> bool:
    """Exact match after trimming whitespace and ignoring case."""
    return normalize_spelling(expected) == normalize_spelling(spelled)


class RoundWords:
    """Authoritative words per round number, in authored order.

    Word numbers are 1-based positions within a round.
    """

    def __init__(self, rounds: Mapping[int, Sequence[WordEntry]] | None = None):
        self._rounds: Dict[int, Tuple[WordEntry, ...]] = {
            n: tuple(entries) for n, entries in sorted((rounds or {}).items())
        }

    @classmethod
    def from_model(cls, model: CompetitionModel) -> "RoundWords":
        return cls({n: _entries_from_models(words) for n, words in model.rounds.items()})

    @classmethod
    def from_payload(cls, rounds: Mapping[object, Sequence[Mapping]]) -> "RoundWords":
        """Build from loader-style ``{"Round 1": [{"word": ...}, ...]}`` data."""
        try:
            model = CompetitionModel.model_validate(
                {"competitionName": "-", "rounds": dict(rounds)}
            )
        except PydanticValidationError as e:
            raise ValidationError(f"invalid round words: {e}", kind="invalid_words") from e
        return cls.from_model(model)

    @property
    def last_round(self) -> int:
        """Highest authored round number, 0 when nothing is loaded."""
        return max(self._rounds, default=0)

    def rounds(self) -> list[int]:
        return list(self._rounds)

    def has_round(self, round_number: int) -> bool:
        return round_number in self._rounds

    def words_for(self, round_number: int) -> Tuple[WordEntry, ...]:
        return self._rounds.get(round_number, ())

    def lookup(self, round_number: int, word_number: int) -> WordEntry:
        words = self._rounds.get(round_number)
        if not words:
            raise ValidationError(
                f"No words found for Round {round_number}.", kind="no_words"
            )
        if isinstance(word_number, bool) or not isinstance(word_number, int):
            raise ValidationError("Invalid word number for this round.", kind="invalid_word_number")
        if word_number < 1 or word_number > len(words):
            raise ValidationError(
                f"Invalid word number for this round (1-{len(words)}).",
                kind="invalid_word_number",
            )
        return words[word_number - 1]

    def check(self, round_number: int, word_number: int, spelled: str) -> Tuple[WordEntry, bool]:
        entry = self.lookup(round_number, word_number)
        if not isinstance(spelled, str):
            raise ValidationError("spelling must be a string", kind="invalid_spelling")
        return entry, is_correct_spelling(entry.word, spelled)

    def __len__(self) -> int:
        return len(self._rounds)


def _entries_from_models(words: Sequence[WordEntryModel]) -> Tuple[WordEntry, ...]:
    entries = []
    for position, item in enumerate(words, start=1):
        if item.number is not None and item.number != position:
            logger.debug(
                "Word %r numbered %d at position %d; using position", item.word, item.number, position
            )
        entries.append(WordEntry(number=position, word=item.word))
    return tuple(entries)
