"""Type definitions for serialized run state, collaborator payloads and commands."""
from __future__ import annotations

from typing import Dict, List, Literal, Optional, TypedDict

Phase = Literal["registration", "round_spelling", "round_review", "finished"]
TimerStateName = Literal["idle", "running", "expired", "stopped"]
NotificationLevel = Literal["info", "success", "error"]
CueKind = Literal["correct", "incorrect", "winner"]


class CompetitorPayload(TypedDict):
    """A competitor entry as exposed to the UI."""
    id: str
    name: str
    isEliminated: bool
    isCurrentTurn: bool
    score: int


class WordEntryPayload(TypedDict, total=False):
    """One authored word. ``number`` is optional; position wins when present."""
    number: int
    id: str
    word: str


class CompetitionPayload(TypedDict):
    """
    What a competition loader returns for a passkey.

    Round labels are free-form at this boundary ("Round 1", "1", ...).
    """
    competitionName: str
    rounds: Dict[str, List[WordEntryPayload]]


class TimerPayload(TypedDict):
    durationSeconds: int
    remainingSeconds: int
    isRunning: bool
    state: TimerStateName


class VerdictPayload(TypedDict):
    roundNumber: int
    wordNumber: int
    expected: str
    spelled: str
    correct: bool
    spellerId: Optional[str]


class RunState(TypedDict):
    """
    Read-only view of the competition run aggregate.

    Snapshots are keyed by round number; each value is a full roster copy.
    """
    competitionName: Optional[str]
    phase: Phase
    currentRoundNumber: int
    frontierRound: int
    reviewing: bool
    roster: List[CompetitorPayload]
    snapshots: Dict[int, List[CompetitorPayload]]
    selectedSpellerId: Optional[str]
    championId: Optional[str]
    timer: TimerPayload
    lastVerdict: Optional[VerdictPayload]


class CommandPayload(TypedDict, total=False):
    """
    TypedDict for command payloads sent to apply_command().

    Fields vary by command type.
    """
    type: str

    # REGISTER
    names: Optional[List[str]]

    # SELECT_SPELLER
    competitorId: Optional[str]

    # SET_DURATION
    durationSeconds: Optional[int]
    timerPreset: Optional[str]

    # CHECK_SPELLING
    wordNumber: Optional[int]
    spelling: Optional[str]

    # CONFIRM_WINNERS
    winnerIds: Optional[List[str]]
