"""Round history store: per-round roster snapshots.

Snapshots are always deep copies, both on the way in and on the way out, so
neither later mutation of the live roster nor mutation of a returned copy can
alter what is stored.
"""
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Dict, Iterable, List

from .errors import NotFoundError, ValidationError
from .roster import Competitor
from .types import CompetitorPayload

logger = logging.getLogger(__name__)


class RoundHistory:
    def __init__(self) -> None:
        self._snapshots: Dict[int, List[Competitor]] = {}

    def snapshot(self, round_number: int, roster: Iterable[Competitor]) -> None:
        """Store a copy of ``roster`` under ``round_number``, replacing any prior one."""
        if isinstance(round_number, bool) or not isinstance(round_number, int) or round_number < 1:
            raise ValidationError(f"invalid round number: {round_number!r}", kind="invalid_round")
        replaced = round_number in self._snapshots
        self._snapshots[round_number] = deepcopy(list(roster))
        logger.debug(
            "%s snapshot for round %d", "Replaced" if replaced else "Stored", round_number
        )

    def get(self, round_number: int) -> List[Competitor]:
        try:
            stored = self._snapshots[round_number]
        except KeyError:
            raise NotFoundError(
                f"No snapshot for round {round_number}", kind="round_not_found"
            ) from None
        return deepcopy(stored)

    def has(self, round_number: int) -> bool:
        return round_number in self._snapshots

    def rounds(self) -> List[int]:
        return sorted(self._snapshots)

    def clear(self) -> None:
        self._snapshots.clear()

    def to_payload(self) -> Dict[int, List[CompetitorPayload]]:
        return {
            n: [c.to_payload() for c in self._snapshots[n]] for n in sorted(self._snapshots)
        }
