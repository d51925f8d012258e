"""Reference dates, study windows, and constants."""

from dataclasses import dataclass, field
from datetime import date

# Daily panel calendar bounds
STUDY_START: date = date(2024, 1, 1)
STUDY_END: date = date(2024, 12, 31)

# Survival window (entry/exit times are day offsets from WINDOW_START)
WINDOW_START: date = date(2024, 1, 1)
WINDOW_END: date = date(2024, 12, 31)

# Maximum number of join/leave slots read per worker
MAX_SPELLS: int = 15

# Average Gregorian month length, used for tenure in months
DAYS_PER_MONTH: float = 30.4375

LOG_FORMAT: str = '%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s'


@dataclass(frozen=True)
class TenureReference:
    """A labelled instant at which tenure is evaluated.

    Open spells are closed at reference_date; every spell is then capped at
    cutoff_date (defaults to reference_date).
    """

    label: str
    reference_date: date
    cutoff_date: date | None = None

    @property
    def cutoff(self) -> date:
        return self.cutoff_date or self.reference_date


DEFAULT_TENURE_REFERENCES: tuple[TenureReference, ...] = (
    TenureReference('study_start', STUDY_START),
    TenureReference('study_end', STUDY_END),
)


@dataclass(frozen=True)
class StudyConfig:
    """Explicit configuration passed to every pipeline component."""

    study_start: date = STUDY_START
    study_end: date = STUDY_END
    window_start: date = WINDOW_START
    window_end: date = WINDOW_END
    tenure_references: tuple[TenureReference, ...] = field(default=DEFAULT_TENURE_REFERENCES)
    max_spells: int = MAX_SPELLS

    def __post_init__(self) -> None:
        if self.study_end < self.study_start:
            raise ValueError(f'study_end {self.study_end} precedes study_start {self.study_start}')
        if self.window_end <= self.window_start:
            raise ValueError(f'window_end {self.window_end} must be after window_start {self.window_start}')
        if self.max_spells < 1:
            raise ValueError(f'max_spells must be positive; got {self.max_spells}')

    @property
    def window_length(self) -> int:
        """Largest admissible exit_time in the survival table."""
        return (self.window_end - self.window_start).days
