"""
Input validation schemas using Pydantic v2
Validates commands and collaborator payloads at the core boundary
"""

import logging
import re
from typing import Dict, List, Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

_ROUND_LABEL_RE = re.compile(r"^\s*(?:round\s*)?(\d+)\s*$", re.IGNORECASE)

# ==================== VALIDATOR FUNCTIONS ====================


def parse_round_label(label: object) -> int:
    """Parse a free-form round label into a round number.

    Examples:
        - "Round 3" → 3
        - "round 12" → 12
        - "4" → 4
        - 2 → 2

    Raises:
        ValueError: if the label does not name a positive round number
    """
    if isinstance(label, bool):
        raise ValueError(f"invalid round label: {label!r}")
    if isinstance(label, int):
        number = label
    elif isinstance(label, str):
        match = _ROUND_LABEL_RE.match(label)
        if not match:
            raise ValueError(f"invalid round label: {label!r}")
        number = int(match.group(1))
    else:
        raise ValueError(f"invalid round label: {label!r}")
    if number < 1:
        raise ValueError(f"round number must be >= 1, got {number}")
    return number


class WordEntryModel(BaseModel):
    """One authored word for a round"""

    word: str = Field(..., min_length=1, max_length=255)
    number: Optional[int] = Field(None, ge=1)
    id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("word")
    @classmethod
    def validate_word(cls, v: str) -> str:
        v = v.strip()
        if len(v) == 0:
            raise ValueError("word cannot be empty")
        return v


class CompetitionModel(BaseModel):
    """Competition data as returned by a loader, with round labels parsed to ints"""

    competitionName: str = Field(..., min_length=1, max_length=255)
    rounds: Dict[int, List[WordEntryModel]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @field_validator("competitionName")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) == 0:
            raise ValueError("competitionName cannot be empty")
        return v

    @field_validator("rounds", mode="before")
    @classmethod
    def parse_round_labels(cls, v: object) -> object:
        """Map free-form round labels ("Round 1") to integer keys"""
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("rounds must be an object keyed by round label")

        parsed: Dict[int, object] = {}
        for label, words in v.items():
            number = parse_round_label(label)
            if number in parsed:
                raise ValueError(f"round {number} is defined more than once")
            parsed[number] = words
        return parsed


class ValidatedCmd(BaseModel):
    """Command model with per-type field requirements"""

    type: str = Field(..., min_length=1, max_length=50, description="Command type")

    # REGISTER
    names: Optional[List[str]] = Field(None, description="Competitor names")

    # SELECT_SPELLER
    competitorId: Optional[str] = Field(None, min_length=1, max_length=64)

    # SET_DURATION
    durationSeconds: Optional[int] = Field(
        None, ge=1, le=5999, description="Turn duration (1-5999 seconds)"
    )
    timerPreset: Optional[str] = Field(
        None, max_length=20, description="Turn duration as MM:SS"
    )

    # CHECK_SPELLING
    wordNumber: Optional[int] = Field(None, description="1-based word position")
    spelling: Optional[str] = Field(None, max_length=255)

    # CONFIRM_WINNERS
    winnerIds: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate command type is one of allowed types"""
        allowed_types = {
            "REGISTER",
            "SELECT_SPELLER",
            "START_TURN",
            "STOP_TURN",
            "SET_DURATION",
            "CHECK_SPELLING",
            "REFRESH",
            "END_SPELLING",
            "CONFIRM_WINNERS",
            "PREVIOUS_ROUND",
            "NEXT_ROUND",
            "RESET",
        }
        if v not in allowed_types:
            raise ValueError(f"type must be one of {allowed_types}, got {v}")
        return v

    @field_validator("timerPreset")
    @classmethod
    def validate_timer_preset(cls, v: Optional[str]) -> Optional[str]:
        """Validate timer preset format (MM:SS) and normalize to zero-padded format"""
        if v is None:
            return v

        v = v.strip()
        parts = v.split(":")
        if len(parts) != 2:
            raise ValueError("timerPreset must be MM:SS format")

        try:
            mins = int(parts[0])
            secs = int(parts[1])
        except ValueError:
            raise ValueError("timerPreset must be MM:SS format with valid numbers")

        if mins < 0 or mins > 99:
            raise ValueError("minutes must be 0-99")
        if secs < 0 or secs > 59:
            raise ValueError("seconds must be 0-59")

        normalized = f"{mins:02d}:{secs:02d}"
        logger.debug(f"Normalized timerPreset: {v} → {normalized}")
        return normalized

    @field_validator("winnerIds")
    @classmethod
    def validate_winner_ids(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        cleaned: List[str] = []
        for item in v:
            if not isinstance(item, str) or not item.strip():
                raise ValueError("winnerIds must contain non-empty strings")
            if item.strip() not in cleaned:
                cleaned.append(item.strip())
        return cleaned

    @model_validator(mode="after")
    def validate_command_fields(self) -> Self:
        """Validate required fields based on command type"""
        cmd_type = self.type

        if cmd_type == "REGISTER":
            if self.names is None:
                raise ValueError("REGISTER requires names")

        elif cmd_type == "SELECT_SPELLER":
            if self.competitorId is None:
                raise ValueError("SELECT_SPELLER requires competitorId")

        elif cmd_type == "SET_DURATION":
            if self.durationSeconds is None and self.timerPreset is None:
                raise ValueError("SET_DURATION requires durationSeconds or timerPreset")

        elif cmd_type == "CHECK_SPELLING":
            if self.wordNumber is None:
                raise ValueError("CHECK_SPELLING requires wordNumber")
            if self.spelling is None:
                raise ValueError("CHECK_SPELLING requires spelling")

        elif cmd_type == "CONFIRM_WINNERS":
            if self.winnerIds is None:
                raise ValueError("CONFIRM_WINNERS requires winnerIds")

        return self


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        # Strip whitespace
        value = value.strip()

        # Limit length
        value = value[:max_length]

        # Remove null bytes
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_competitor_name(name: str, max_length: int = 255) -> str:
        """Normalize a competitor display name; punctuation is kept as typed"""
        name = InputSanitizer.sanitize_string(name, max_length)

        # Remove control characters other than whitespace
        name = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", name)

        # Collapse internal runs of whitespace
        name = re.sub(r"\s+", " ", name)

        return name.strip()


# ==================== EXPORT ====================

__all__ = [
    "CompetitionModel",
    "InputSanitizer",
    "ValidatedCmd",
    "WordEntryModel",
    "parse_round_label",
]
