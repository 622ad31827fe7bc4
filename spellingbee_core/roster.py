"""Roster manager: competitors and their elimination/turn flags."""
from __future__ import annotations

import logging
import uuid
from copy import deepcopy
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence

from .config import get_settings
from .errors import ValidationError
from .types import CompetitorPayload
from .validation import InputSanitizer

logger = logging.getLogger(__name__)


@dataclass
class Competitor:
    id: str
    name: str
    is_eliminated: bool = False
    is_current_turn: bool = False
    # Reserved for extension; the state machine never reads it.
    score: int = 0

    def to_payload(self) -> CompetitorPayload:
        return {
            "id": self.id,
            "name": self.name,
            "isEliminated": self.is_eliminated,
            "isCurrentTurn": self.is_current_turn,
            "score": self.score,
        }


def _new_competitor_id() -> str:
    return uuid.uuid4().hex


def _normalize_names(
    names: Sequence[str] | None, *, min_count: int, max_count: int, max_length: int
) -> List[str]:
    """Sanitize registration names and enforce registration limits.

    Args:
        names: Raw names as typed by the organizer

    Returns:
        Sanitized names in the given order

    Raises:
        ValidationError: on blank or overlong names, or a roster
        size outside [min_count, max_count]
    """
    if names is None or isinstance(names, (str, bytes)):
        raise ValidationError("names must be a list of strings", kind="invalid_names")

    cleaned: List[str] = []
    for i, raw in enumerate(names):
        if not isinstance(raw, str):
            raise ValidationError(f"name {i} must be a string", kind="invalid_names")
        if len(raw.strip()) > max_length:
            raise ValidationError(
                f"name {i} exceeds {max_length} characters", kind="invalid_names"
            )
        name = InputSanitizer.sanitize_competitor_name(raw, max_length)
        if not name:
            raise ValidationError(f"name {i} cannot be empty", kind="invalid_names")
        cleaned.append(name)

    if len(cleaned) < min_count:
        raise ValidationError(
            f"Please add at least {min_count} competitors to start the competition.",
            kind="too_few_competitors",
        )
    if len(cleaned) > max_count:
        raise ValidationError(
            f"competitors cannot exceed {max_count} entries", kind="too_many_competitors"
        )
    return cleaned


class Roster:
    """Ordered list of competitors for one competition run.

    Registration order is preserved; ids are unique for the lifetime of the run.
    """

    def __init__(self, competitors: Iterable[Competitor] = ()):
        self._competitors: List[Competitor] = list(competitors)

    def __len__(self) -> int:
        return len(self._competitors)

    def __iter__(self) -> Iterator[Competitor]:
        return iter(self._competitors)

    def __contains__(self, competitor_id: object) -> bool:
        return any(c.id == competitor_id for c in self._competitors)

    def register(self, names: Sequence[str]) -> List[Competitor]:
        """Replace the roster with one fresh competitor per name."""
        settings = get_settings()
        cleaned = _normalize_names(
            names,
            min_count=settings.min_competitors,
            max_count=settings.max_competitors,
            max_length=settings.max_name_length,
        )
        self._competitors = [Competitor(id=_new_competitor_id(), name=n) for n in cleaned]
        logger.info("Registered %d competitors", len(self._competitors))
        return list(self._competitors)

    def get(self, competitor_id: str) -> Competitor:
        for comp in self._competitors:
            if comp.id == competitor_id:
                return comp
        raise ValidationError(f"unknown competitor id: {competitor_id}", kind="unknown_competitor")

    def active(self) -> List[Competitor]:
        """Competitors still in the competition, in registration order."""
        return [c for c in self._competitors if not c.is_eliminated]

    def current_turn(self) -> Competitor | None:
        for comp in self._competitors:
            if comp.is_current_turn:
                return comp
        return None

    def select_speller(self, competitor_id: str) -> Competitor:
        target = self.get(competitor_id)
        if target.is_eliminated:
            raise ValidationError(
                f"{target.name} has been eliminated and cannot spell",
                kind="eliminated_competitor",
            )
        for comp in self._competitors:
            comp.is_current_turn = comp.id == competitor_id
        return target

    def clear_turn(self) -> None:
        for comp in self._competitors:
            comp.is_current_turn = False

    def apply_eliminations(self, winner_ids: Iterable[str]) -> List[Competitor]:
        """Eliminate every competitor not in ``winner_ids``.

        Returns:
            The competitors left in the competition

        Raises:
            ValidationError: if ``winner_ids`` is empty or names an unknown id
        """
        winners = set(winner_ids)
        if not winners:
            raise ValidationError(
                "Please select at least one competitor to advance.", kind="no_winners"
            )
        known = {c.id for c in self._competitors}
        unknown = sorted(winners - known)
        if unknown:
            raise ValidationError(
                f"unknown competitor id(s): {', '.join(unknown)}", kind="unknown_competitor"
            )

        for comp in self._competitors:
            comp.is_eliminated = comp.id not in winners
            comp.is_current_turn = False
        return self.active()

    def copy(self) -> List[Competitor]:
        return deepcopy(self._competitors)

    def restore(self, competitors: Iterable[Competitor]) -> None:
        """Load a roster copy (e.g. from a round snapshot) as the live roster."""
        self._competitors = deepcopy(list(competitors))

    def clear(self) -> None:
        self._competitors = []

    def to_payload(self) -> List[CompetitorPayload]:
        return [c.to_payload() for c in self._competitors]
