"""Spelling bee competition run-state machine (pure core, no web/DB).

This module implements the round-transition engine that drives a live spelling
bee once a competition's word lists are available. A host UI (or any other
caller) invokes transitions; it never mutates run state directly.

Architecture:
- SpellingBeeContest owns the aggregate: roster, round history, turn timer, phase
- Collaborators (competition loader, notification sink, cue sink) are Protocols
- apply_command() accepts plain command dicts ({"type": "CONFIRM_WINNERS", ...}),
  validates them with pydantic and dispatches to the matching transition,
  returning a CommandOutcome with the serialized state
- Every transition validates before it mutates; a rejected call raises and
  leaves the contest unchanged

Phases:
- registration: waiting for at least two competitor names
- round_spelling: turns are played against the current round's word list
- round_review: the organizer selects which active competitors advance
- finished: a single competitor remains; champion recorded

Round navigation:
- frontier_round: highest round reached by forward progress
- previous_round() restores the snapshot of the prior round into review; while
  current_round < frontier_round the contest is "reviewing" and confirming
  winners patches that round's snapshot instead of advancing
- next_round() ends spelling, steps forward through stored snapshots, or
  returns to the frontier round when reviewing
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from .errors import LoadFailure, NotFoundError, SpellingBeeError, ValidationError
from .history import RoundHistory
from .roster import Competitor, Roster
from .timer import TurnTimer, parse_timer_preset
from .types import CueKind, NotificationLevel, Phase, RunState
from .validation import CompetitionModel, ValidatedCmd
from .words import RoundWords, SpellingVerdict

logger = logging.getLogger(__name__)


class CompetitionLoader(Protocol):
    async def load(self, passkey: str) -> Mapping[str, Any] | None:
        """Return competition data for ``passkey`` or None when it does not exist."""
        ...


class NotificationSink(Protocol):
    def notify(self, level: NotificationLevel, message: str) -> None:
        ...


class CueSink(Protocol):
    def cue(self, kind: CueKind) -> None:
        ...


_LOG_LEVELS = {"info": logging.INFO, "success": logging.INFO, "error": logging.WARNING}


class LoggingNotificationSink:
    """Default sink: route user-facing notifications to the module logger."""

    def notify(self, level: NotificationLevel, message: str) -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s", level, message)


class NullCueSink:
    def cue(self, kind: CueKind) -> None:
        return None


@dataclass
class CommandOutcome:
    """Result of applying a contest command."""

    state: RunState
    cmd_payload: Dict[str, Any]
    snapshot_required: bool


class SpellingBeeContest:
    def __init__(
        self,
        *,
        words: RoundWords | None = None,
        competition_name: str | None = None,
        loader: CompetitionLoader | None = None,
        notifications: NotificationSink | None = None,
        cues: CueSink | None = None,
        timer: TurnTimer | None = None,
    ):
        self._words = words or RoundWords()
        self._competition_name = competition_name
        self._loader = loader
        self._notifications = notifications or LoggingNotificationSink()
        self._cues = cues or NullCueSink()
        self._timer = timer or TurnTimer()
        self._timer.on_expire = self._on_time_up

        self._roster = Roster()
        self._history = RoundHistory()
        self._phase: Phase = "registration"
        self._current_round = 1
        self._frontier_round = 1
        self._champion_id: str | None = None
        self._last_verdict: SpellingVerdict | None = None
        # Competitor whose countdown is (or was last) running
        self._turn_speller_id: str | None = None
        self._loading = False

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def current_round(self) -> int:
        return self._current_round

    @property
    def frontier_round(self) -> int:
        return self._frontier_round

    @property
    def reviewing(self) -> bool:
        """True while working on a round reached by backward navigation."""
        return (
            self._phase in ("round_spelling", "round_review")
            and self._current_round < self._frontier_round
        )

    @property
    def competition_name(self) -> str | None:
        return self._competition_name

    @property
    def words(self) -> RoundWords:
        return self._words

    @property
    def timer(self) -> TurnTimer:
        return self._timer

    @property
    def roster(self) -> List[Competitor]:
        return self._roster.copy()

    @property
    def active_competitors(self) -> List[Competitor]:
        return [c for c in self._roster.copy() if not c.is_eliminated]

    @property
    def selected_speller(self) -> Competitor | None:
        return self._roster.current_turn()

    @property
    def champion(self) -> Competitor | None:
        if self._champion_id is None:
            return None
        return self._roster.get(self._champion_id)

    @property
    def last_verdict(self) -> SpellingVerdict | None:
        return self._last_verdict

    def get_snapshot(self, round_number: int) -> List[Competitor]:
        return self._history.get(round_number)

    def to_state(self) -> RunState:
        speller = self._roster.current_turn()
        return {
            "competitionName": self._competition_name,
            "phase": self._phase,
            "currentRoundNumber": self._current_round,
            "frontierRound": self._frontier_round,
            "reviewing": self.reviewing,
            "roster": self._roster.to_payload(),
            "snapshots": self._history.to_payload(),
            "selectedSpellerId": speller.id if speller else None,
            "championId": self._champion_id,
            "timer": self._timer.to_payload(),
            "lastVerdict": self._last_verdict.to_payload() if self._last_verdict else None,
        }

    # ------------------------------------------------------------------
    # Loading and lifecycle

    async def load_competition(self, passkey: str) -> RoundWords:
        """Fetch and apply a competition's word lists.

        Run state is replaced only after the loader returned data that passed
        validation; any failure leaves the current run untouched.

        Raises:
            ValidationError: blank passkey, or a load already in flight
            NotFoundError: the loader has no competition for this passkey
            LoadFailure: loader I/O failed or returned malformed data
        """
        if self._loader is None:
            raise LoadFailure("no competition loader configured", kind="no_loader")
        if not isinstance(passkey, str) or not passkey.strip():
            raise ValidationError("passkey is required", kind="invalid_passkey")
        if self._loading:
            raise ValidationError("a competition load is already in progress", kind="load_in_progress")
        passkey = passkey.strip()

        self._loading = True
        try:
            data = await self._loader.load(passkey)
        except SpellingBeeError:
            raise
        except Exception as e:
            logger.warning("Loading competition %r failed: %s", passkey, e)
            self._emit("error", "Error loading competition. Please try again.")
            raise LoadFailure(f"Error loading competition: {e}", passkey=passkey) from e
        finally:
            self._loading = False

        if data is None:
            self._emit("error", "Competition not found.")
            raise NotFoundError(f"Competition not found: {passkey}", kind="competition_not_found")

        try:
            model = CompetitionModel.model_validate(data)
        except PydanticValidationError as e:
            logger.warning("Competition %r has malformed data: %s", passkey, e)
            self._emit("error", "Competition data is invalid.")
            raise LoadFailure(f"Invalid competition data: {e}", passkey=passkey) from e

        words = RoundWords.from_model(model)
        self._reset_run()
        self._words = words
        self._competition_name = model.competitionName
        logger.info(
            "Loaded competition %r with %d round(s)", model.competitionName, len(words)
        )
        self._emit("success", f"Loaded {model.competitionName}.")
        return words

    def reset(self) -> None:
        """Discard the run (new competition) while keeping the loaded word lists."""
        self._reset_run()
        logger.info("Contest reset")

    def close(self) -> None:
        """Teardown: cancel any pending countdown."""
        self._timer.close()

    def _reset_run(self) -> None:
        self._timer.close()
        self._roster.clear()
        self._history.clear()
        self._phase = "registration"
        self._current_round = 1
        self._frontier_round = 1
        self._champion_id = None
        self._last_verdict = None
        self._turn_speller_id = None

    # ------------------------------------------------------------------
    # Registration and turns

    def register(self, names: Iterable[str]) -> List[Competitor]:
        with self._reported():
            self._require_phase("registration")
            if names is None or isinstance(names, (str, bytes)):
                raise ValidationError("names must be a list of strings", kind="invalid_names")
            competitors = self._roster.register(list(names))

        self._history.clear()
        # Round 1 always has a snapshot so navigating back shows the original roster
        self._history.snapshot(1, self._roster)
        self._current_round = 1
        self._frontier_round = 1
        self._phase = "round_spelling"
        self._emit("info", "Round 1 - Spelling Time!")
        return competitors

    def select_speller(self, competitor_id: str) -> Competitor:
        with self._reported():
            self._require_phase("round_spelling")
            return self._roster.select_speller(competitor_id)

    def start_turn(self) -> Competitor:
        """Start the countdown for the selected speller, cancelling any earlier countdown."""
        with self._reported():
            self._require_phase("round_spelling")
            speller = self._roster.current_turn()
            if speller is None:
                raise ValidationError("Select a competitor before starting a turn.", kind="no_speller")
            if speller.is_eliminated:
                raise ValidationError(
                    f"{speller.name} has been eliminated and cannot spell",
                    kind="eliminated_competitor",
                )
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                raise ValidationError(
                    "turns can only be started from a running event loop",
                    kind="no_event_loop",
                ) from None
            self._timer.start()
        self._turn_speller_id = speller.id
        logger.info("Round %d: turn started for %s", self._current_round, speller.name)
        return speller

    def stop_turn(self) -> bool:
        return self._timer.stop()

    def set_turn_duration(self, seconds: int) -> None:
        with self._reported():
            self._timer.set_duration(seconds)

    def check_spelling(self, word_number: int, spelled: str) -> SpellingVerdict:
        """Judge one attempt against the current round's authoritative word."""
        with self._reported():
            self._require_phase("round_spelling")
            entry, correct = self._words.check(self._current_round, word_number, spelled)

        speller = self._roster.current_turn()
        self._timer.stop()
        self._roster.clear_turn()
        verdict = SpellingVerdict(
            round_number=self._current_round,
            word_number=entry.number,
            expected=entry.word,
            spelled=spelled,
            correct=correct,
            speller_id=speller.id if speller else None,
        )
        self._last_verdict = verdict
        logger.info(
            "Round %d word %d: %r -> %s",
            self._current_round,
            entry.number,
            spelled,
            "correct" if correct else "incorrect",
        )
        self._cues.cue("correct" if correct else "incorrect")
        return verdict

    def refresh(self) -> None:
        """Clear the current attempt: stop the countdown and forget the last verdict."""
        self._timer.stop()
        self._roster.clear_turn()
        self._last_verdict = None

    # ------------------------------------------------------------------
    # Round transitions

    def end_spelling(self) -> None:
        with self._reported():
            self._require_phase("round_spelling")
        self._timer.stop()
        self._roster.clear_turn()
        self._last_verdict = None
        self._phase = "round_review"
        logger.info("Round %d: spelling ended, reviewing winners", self._current_round)

    def confirm_winners(self, winner_ids: Iterable[str]) -> Phase:
        """Apply the organizer's winner selection for the current round.

        Returns:
            The phase after the confirmation
        """
        with self._reported():
            self._require_phase("round_review")
            if winner_ids is None or isinstance(winner_ids, (str, bytes)):
                raise ValidationError("winner ids must be a collection of ids", kind="invalid_winners")
            winners = set(winner_ids)
            reviewing = self.reviewing
            if not reviewing:
                # At the frontier only competitors still in the competition may advance
                for competitor_id in winners:
                    if self._roster.get(competitor_id).is_eliminated:
                        raise ValidationError(
                            "Only competitors still in the competition can advance.",
                            kind="eliminated_competitor",
                        )
            remaining = self._roster.apply_eliminations(winners)

        round_number = self._current_round
        self._history.snapshot(round_number, self._roster)

        if reviewing:
            self._phase = "round_spelling"
            logger.info("Round %d decision revised; %d remain", round_number, len(remaining))
            self._emit("info", f"Round {round_number} winners updated.")
        elif len(remaining) == 1:
            champion = remaining[0]
            self._timer.close()
            self._champion_id = champion.id
            self._phase = "finished"
            logger.info("Round %d: %s is the champion", round_number, champion.name)
            self._cues.cue("winner")
            self._emit("success", f"{champion.name} wins the competition!")
        else:
            self._current_round += 1
            self._frontier_round = self._current_round
            self._enter_frontier_round()
            logger.info(
                "Round %d confirmed; advancing to round %d with %d competitors",
                round_number,
                self._current_round,
                len(remaining),
            )
            self._emit("success", f"Advancing to Round {self._current_round}.")
        return self._phase

    def previous_round(self) -> bool:
        """Go back to review the prior round. Returns False if already at round 1."""
        with self._reported():
            self._require_phase("round_spelling", "round_review")
            if self._current_round <= 1:
                self._emit("info", "Already at the first round!")
                return False
            target = self._current_round - 1
            competitors = self._history.get(target)

        self._timer.stop()
        self._roster.restore(competitors)
        self._roster.clear_turn()
        self._last_verdict = None
        self._current_round = target
        self._phase = "round_review"
        logger.info("Reviewing round %d (frontier %d)", target, self._frontier_round)
        return True

    def next_round(self) -> bool:
        """Move forward: end spelling, step through stored rounds, or return to the frontier.

        Returns False (with a notification) when the current round's winners
        still have to be confirmed.
        """
        if self._phase == "round_spelling":
            self.end_spelling()
            return True

        with self._reported():
            self._require_phase("round_review")
            target = self._current_round + 1
            if target < self._frontier_round:
                competitors = self._history.get(target)
                enter_frontier = False
            elif target == self._frontier_round:
                # Start the frontier round from the latest decision for the round before it
                competitors = self._history.get(self._current_round)
                enter_frontier = True
            else:
                self._emit("error", f"Please confirm winners for Round {self._current_round} first.")
                return False

        self._roster.restore(competitors)
        self._roster.clear_turn()
        self._current_round = target
        if enter_frontier:
            self._enter_frontier_round()
        else:
            self._phase = "round_review"
        logger.info("Moved forward to round %d", target)
        return True

    def _enter_frontier_round(self) -> None:
        last_round = self._words.last_round
        if last_round and self._current_round > last_round:
            # No authored words left: go straight to selecting winners
            self._phase = "round_review"
            self._emit(
                "info",
                f"All rounds completed! Select the winners for Round {self._current_round}.",
            )
        else:
            self._phase = "round_spelling"

    # ------------------------------------------------------------------
    # Helpers

    def _on_time_up(self) -> None:
        speller = None
        if self._turn_speller_id in self._roster:
            speller = self._roster.get(self._turn_speller_id)
        if speller is not None:
            self._emit("error", f"Time's up for {speller.name}!")
        else:
            self._emit("error", "Time's up!")

    def _emit(self, level: NotificationLevel, message: str) -> None:
        self._notifications.notify(level, message)

    def _require_phase(self, *phases: Phase) -> None:
        if self._phase not in phases:
            raise ValidationError(
                f"not allowed while the contest is in {self._phase}", kind="invalid_phase"
            )

    @contextmanager
    def _reported(self) -> Iterator[None]:
        """Surface rejected operations to the organizer, then re-raise."""
        try:
            yield
        except SpellingBeeError as e:
            logger.warning("Rejected %s: %s", e.kind, e.message)
            self._emit("error", e.message)
            raise


def apply_command(contest: SpellingBeeContest, cmd: Dict[str, Any]) -> CommandOutcome:
    """Validate a command dict and apply it to ``contest``.

    Args:
        contest: The contest to drive
        cmd: Command dict with 'type' field and command-specific params

    Returns:
        CommandOutcome with the serialized state after the transition, the
        command enriched with resolved fields, and whether state changed

    Raises:
        ValidationError: malformed command or rejected transition
        NotFoundError: navigation to a round without a snapshot
    """
    try:
        validated = ValidatedCmd.model_validate(cmd)
    except PydanticValidationError as e:
        logger.warning(f"Command validation failed: {e}")
        raise ValidationError(f"Invalid command: {e}", kind="invalid_command") from e

    ctype = validated.type
    payload: Dict[str, Any] = dict(cmd)
    snapshot_required = True

    if ctype == "REGISTER":
        competitors = contest.register(validated.names or [])
        payload["competitorIds"] = [c.id for c in competitors]

    elif ctype == "SELECT_SPELLER":
        speller = contest.select_speller(validated.competitorId)
        payload["competitorName"] = speller.name

    elif ctype == "START_TURN":
        speller = contest.start_turn()
        payload["competitorId"] = speller.id
        payload["durationSeconds"] = contest.timer.duration_seconds

    elif ctype == "STOP_TURN":
        snapshot_required = contest.stop_turn()

    elif ctype == "SET_DURATION":
        seconds: Optional[int] = validated.durationSeconds
        if seconds is None:
            seconds = parse_timer_preset(validated.timerPreset)
        contest.set_turn_duration(seconds)
        payload["durationSeconds"] = seconds

    elif ctype == "CHECK_SPELLING":
        verdict = contest.check_spelling(validated.wordNumber, validated.spelling)
        payload["verdict"] = verdict.to_payload()

    elif ctype == "REFRESH":
        contest.refresh()

    elif ctype == "END_SPELLING":
        contest.end_spelling()

    elif ctype == "CONFIRM_WINNERS":
        phase = contest.confirm_winners(validated.winnerIds or [])
        payload["phase"] = phase
        champion = contest.champion
        payload["championId"] = champion.id if champion else None

    elif ctype == "PREVIOUS_ROUND":
        snapshot_required = contest.previous_round()

    elif ctype == "NEXT_ROUND":
        snapshot_required = contest.next_round()

    elif ctype == "RESET":
        contest.reset()

    return CommandOutcome(
        state=contest.to_state(), cmd_payload=payload, snapshot_required=snapshot_required
    )
