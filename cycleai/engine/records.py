"""Raw observations and cycle parameters consumed by the engine.

The host application (persistence store, device integrations) supplies these
records; the engine never mutates them.  Edits at the data layer replace a
record instead of changing it in place, so every record type is frozen.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Iterable, Sequence

from cycleai.engine.config_loader import EngineConfig, get_engine_config

logger = logging.getLogger("cycleai.engine.records")


# ---------- Enums ----------

class CyclePhase(str, Enum):
    menstrual = "menstrual"
    follicular = "follicular"
    ovulatory = "ovulatory"
    luteal = "luteal"


class FertilityStatus(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    peak = "peak"


class SymptomCategory(str, Enum):
    physical = "physical"
    emotional = "emotional"
    behavioral = "behavioral"
    reproductive = "reproductive"


class HormoneChannel(str, Enum):
    estrogen = "estrogen"
    progesterone = "progesterone"
    lh = "lh"
    fsh = "fsh"
    testosterone = "testosterone"
    cortisol = "cortisol"


class RecordKind(str, Enum):
    symptom = "symptom"
    hormone = "hormone"
    mood = "mood"


# ---------- Helpers ----------

def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through.

    Hosts may send offset-qualified and local timestamps in the same bundle.
    Naive values are taken to already be in UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_date(value: date | datetime) -> date:
    """Return the calendar date of a date or datetime, in UTC for aware values."""
    if isinstance(value, datetime):
        return as_naive_utc(value).date()
    return value


def by_moment(record) -> datetime:
    """Sort key for records with a ``date`` that may mix naive and aware values."""
    value = record.date
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return as_naive_utc(value)


# ---------- Cycle parameters ----------

@dataclass(frozen=True)
class CycleConfig:
    """The user's cycle parameters.

    Superseded rather than mutated: logging a new period start or editing
    settings produces a new CycleConfig.  When several exist, the one with
    the latest ``created_at`` wins.

    Attributes:
        average_cycle_length:  Cycle length in days (valid 21–35).
        average_period_length: Period length in days (valid 2–8).
        last_period_start:     First day of the most recent period, if known.
        created_at:            When this version of the config was created.
    """

    average_cycle_length: int = 28
    average_period_length: int = 5
    last_period_start: date | None = None
    created_at: datetime | None = None


@dataclass
class ValidationResult:
    """Outcome of validating a CycleConfig.

    Attributes:
        is_valid: True if no violations were found.
        errors:   Every violation as a human-readable message.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)


class InvalidCycleConfigError(ValueError):
    """Raised when an invalid CycleConfig reaches the cycle math layer."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid cycle configuration: " + "; ".join(self.errors))


def validate_cycle_config(
    config: CycleConfig, engine_config: EngineConfig | None = None
) -> ValidationResult:
    """Check a CycleConfig against the documented bounds.

    All violations are collected so a caller can display them at once.

    Args:
        config:        The cycle parameters to check.
        engine_config: Bounds source. Defaults to the global engine config.

    Returns:
        ValidationResult listing every violation.
    """
    bounds = (engine_config or get_engine_config()).cycle
    errors: list[str] = []

    cycle_length = config.average_cycle_length
    period_length = config.average_period_length

    if not bounds.min_cycle_days <= cycle_length <= bounds.max_cycle_days:
        errors.append(
            f"Cycle length should be between {bounds.min_cycle_days}-"
            f"{bounds.max_cycle_days} days (got {cycle_length})"
        )
    if not bounds.min_period_days <= period_length <= bounds.max_period_days:
        errors.append(
            f"Period length should be between {bounds.min_period_days}-"
            f"{bounds.max_period_days} days (got {period_length})"
        )
    errors.extend(e for e in structural_errors(config) if e not in errors)

    if errors:
        logger.debug("Cycle config rejected: %s", errors)
    return ValidationResult(is_valid=not errors, errors=errors)


def structural_errors(config: CycleConfig) -> list[str]:
    """Return the violations that make cycle math impossible.

    Unlike ``validate_cycle_config`` this ignores the typical-range bounds:
    a 40-day average derived from history is unusual but computable, and the
    insight engine reports it as an irregularity.
    """
    errors = []
    if config.average_cycle_length < 1:
        errors.append(f"Cycle length must be positive (got {config.average_cycle_length})")
    if config.average_period_length < 1:
        errors.append(f"Period length must be positive (got {config.average_period_length})")
    if config.average_period_length >= config.average_cycle_length:
        errors.append("Period length must be shorter than cycle length")
    return errors


def current_config(configs: Iterable[CycleConfig]) -> CycleConfig | None:
    """Return the most recently created config, or None if there are none.

    Configs without ``created_at`` sort before any dated one.
    """
    latest: CycleConfig | None = None
    for config in configs:
        if latest is None:
            latest = config
            continue
        if config.created_at is None:
            continue
        if latest.created_at is None:
            latest = config
        elif as_naive_utc(config.created_at) >= as_naive_utc(latest.created_at):
            latest = config
    return latest


def log_period_start(
    config: CycleConfig, start: date | datetime, now: datetime | None = None
) -> CycleConfig:
    """Return a new config superseding ``config`` with a new period start."""
    return dataclasses.replace(
        config,
        last_period_start=as_date(start),
        created_at=now or datetime.now(),
    )


# ---------- Observations ----------

@dataclass(frozen=True)
class SymptomRecord:
    """A single logged symptom.

    Attributes:
        date:      When the symptom was experienced.
        category:  Physical, emotional, behavioral or reproductive.
        name:      Symptom label, e.g. "Headache".
        severity:  1 (mild) – 5 (severe).
        notes:     Free-text notes.
        cycle_day: Cycle day at the time the record was created.
    """

    date: datetime
    category: SymptomCategory
    name: str
    severity: int
    notes: str | None = None
    cycle_day: int = 1


@dataclass(frozen=True)
class HormoneReading:
    """One hormone panel.  A channel value of 0 means "not measured"."""

    date: datetime
    estrogen: float = 0.0
    progesterone: float = 0.0
    lh: float = 0.0
    fsh: float = 0.0
    testosterone: float = 0.0
    cortisol: float = 0.0
    cycle_day: int = 1
    source: str = "manual"  # manual | lab | home | doctor
    test_type: str = "home"
    notes: str | None = None

    def value(self, channel: HormoneChannel | str) -> float:
        """Return the reading for one channel."""
        return float(getattr(self, HormoneChannel(channel).value))


@dataclass(frozen=True)
class MoodEntry:
    """A mood check-in.

    Attributes:
        date:          When the entry was made.
        mood:          Mood label (happy, anxious, calm, ...).
        energy_level:  1–10.
        stress_level:  1–10.
        sleep_quality: 1–10.
        notes:         Free-text notes.
        cycle_day:     Cycle day at the time of the entry.
    """

    date: datetime
    mood: str
    energy_level: int = 5
    stress_level: int = 5
    sleep_quality: int = 5
    notes: str | None = None
    cycle_day: int = 1


@dataclass(frozen=True)
class RecordBundle:
    """Recent records of every kind, as fetched by the host for one pass."""

    symptoms: Sequence[SymptomRecord] = ()
    hormones: Sequence[HormoneReading] = ()
    moods: Sequence[MoodEntry] = ()

    def by_kind(self, kind: RecordKind) -> Sequence:
        return {
            RecordKind.symptom: self.symptoms,
            RecordKind.hormone: self.hormones,
            RecordKind.mood: self.moods,
        }[RecordKind(kind)]
