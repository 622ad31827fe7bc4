from .config import Settings, get_settings
from .contest import (
    CommandOutcome,
    CompetitionLoader,
    CueSink,
    LoggingNotificationSink,
    NotificationSink,
    NullCueSink,
    SpellingBeeContest,
    apply_command,
)
from .errors import LoadFailure, NotFoundError, SpellingBeeError, ValidationError
from .history import RoundHistory
from .roster import Competitor, Roster
from .timer import TurnTimer, format_seconds, parse_timer_preset
from .types import CommandPayload, CompetitionPayload, CompetitorPayload, RunState
from .validation import CompetitionModel, InputSanitizer, ValidatedCmd, parse_round_label
from .words import RoundWords, SpellingVerdict, WordEntry, is_correct_spelling

__all__ = [
    "CommandOutcome",
    "CommandPayload",
    "CompetitionLoader",
    "CompetitionModel",
    "CompetitionPayload",
    "Competitor",
    "CompetitorPayload",
    "CueSink",
    "InputSanitizer",
    "LoadFailure",
    "LoggingNotificationSink",
    "NotFoundError",
    "NotificationSink",
    "NullCueSink",
    "RoundHistory",
    "RoundWords",
    "Roster",
    "RunState",
    "Settings",
    "SpellingBeeContest",
    "SpellingBeeError",
    "SpellingVerdict",
    "TurnTimer",
    "ValidatedCmd",
    "ValidationError",
    "WordEntry",
    "apply_command",
    "format_seconds",
    "get_settings",
    "is_correct_spelling",
    "parse_round_label",
    "parse_timer_preset",
]
