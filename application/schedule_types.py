"""
Record types shared by the scorer, scheduler and validator
"""
from collections import defaultdict
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional

from application.time_utils import shift_type


DAYS_OF_WEEK = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
WEEKEND_DAYS = ('Saturday', 'Sunday')

ALLOWED_DURATIONS = (0.5, 0.75, 1.0)


def to_number(value, default=0.0) -> float:
    """Coerce a loosely typed numeric field, falling back to ``default``"""
    if value is None:
        return default
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        # NaN from pandas
        return default if value != value else float(value)
    text = str(value).strip().replace(',', '')
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    return default if number != number else number


def to_text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value != value:
        return ''
    return str(value).strip()


def split_teacher_name(teacher_name):
    """Split 'First Last Name' into ('First', 'Last Name')"""
    parts = to_text(teacher_name).split(' ')
    first = parts[0] if parts else ''
    last = ' '.join(parts[1:])
    return first, last


class InstructorTier(str, Enum):
    """Classification of an instructor for labor rules"""
    STANDARD = "standard"
    NEW = "new"
    PRIORITY = "priority"
    INACTIVE = "inactive"


class RuleStatus(str, Enum):
    """Result of a single policy rule"""
    ALLOW = "allow"
    DENY = "deny"                # hard rejection
    OVERRIDABLE = "overridable"  # blocked unless a human forces it
    WARN = "warn"                # accepted with a message


@dataclass(frozen=True)
class HistoricClassRecord:
    """One observed past class occurrence"""
    location: str
    day: str
    class_time: str
    class_format: str
    teacher_first_name: str
    teacher_last_name: str
    checked_in: float = 0.0
    participants: float = 0.0
    revenue: float = 0.0
    late_cancellations: float = 0.0
    non_paid: float = 0.0
    tips: float = 0.0

    @property
    def teacher_name(self) -> str:
        return f"{self.teacher_first_name} {self.teacher_last_name}".strip()

    @property
    def time_label(self) -> str:
        return self.class_time[:5]

    @classmethod
    def from_row(cls, row: dict) -> Optional['HistoricClassRecord']:
        """Build a record from a loosely typed row; None when identity fields are missing"""
        first = to_text(row.get('teacher_first_name'))
        last = to_text(row.get('teacher_last_name'))
        if not first and not last and row.get('teacher_name'):
            first, last = split_teacher_name(row.get('teacher_name'))

        record = cls(
            location=to_text(row.get('location')),
            day=to_text(row.get('day')),
            class_time=to_text(row.get('class_time')),
            class_format=to_text(row.get('class_format')),
            teacher_first_name=first,
            teacher_last_name=last,
            checked_in=to_number(row.get('checked_in')),
            participants=to_number(row.get('participants')),
            revenue=to_number(row.get('revenue')),
            late_cancellations=to_number(row.get('late_cancellations')),
            non_paid=to_number(row.get('non_paid')),
            tips=to_number(row.get('tips')),
        )
        if not (record.location and record.day and record.class_format
                and len(record.time_label) == 5 and record.teacher_name):
            return None
        return record


@dataclass(frozen=True)
class ScoreRecord:
    """Precomputed quality metrics for a slot, optionally per instructor"""
    location: str
    day: str
    class_time: str
    class_format: str
    teacher_name: str = ''
    adjusted_score: float = 0.0
    popularity: str = ''
    consistency: str = ''
    trainer_variance: float = 0.0
    observations: str = ''
    key: str = ''
    total_classes: float = 0.0
    avg_fill_rate: float = 0.0
    revenue_per_class: float = 0.0

    def matches(self, location, day, time, class_format, teacher=None) -> bool:
        if (self.location != location or self.day != day
                or self.class_format != class_format or time not in self.class_time):
            return False
        if teacher and self.teacher_name:
            return self.teacher_name == teacher
        return True


@dataclass(frozen=True)
class RankedCombination:
    """A scored class/location/day/time(/teacher) combination"""
    class_format: str
    location: str
    day: str
    time: str
    teacher: str
    avg_checked_in: float
    avg_revenue: float
    frequency: int
    adjusted_score: Optional[float] = None
    popularity: Optional[str] = None
    consistency: Optional[str] = None


@dataclass(frozen=True)
class ScheduledClassEntry:
    """A placed class. Edits replace the whole entry."""
    id: str
    day: str
    time: str
    location: str
    class_format: str
    teacher_first_name: str
    teacher_last_name: str
    duration: float = 1.0
    participants: Optional[int] = None
    revenue: Optional[int] = None
    is_top_performer: bool = False
    is_locked: bool = False
    is_private: bool = False
    is_hosted: bool = False
    client_details: Optional[str] = None
    cover_teacher: Optional[str] = None

    @property
    def teacher_name(self) -> str:
        return f"{self.teacher_first_name} {self.teacher_last_name}".strip()

    def with_changes(self, **changes) -> 'ScheduledClassEntry':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'day': self.day,
            'time': self.time,
            'location': self.location,
            'classFormat': self.class_format,
            'teacherFirstName': self.teacher_first_name,
            'teacherLastName': self.teacher_last_name,
            'duration': self.duration,
            'participants': self.participants,
            'revenue': self.revenue,
            'isTopPerformer': self.is_top_performer,
            'isLocked': self.is_locked,
            'isPrivate': self.is_private,
            'isHosted': self.is_hosted,
            'clientDetails': self.client_details,
            'coverTeacher': self.cover_teacher,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ScheduledClassEntry':
        """Accept both the camelCase JSON shape and snake_case keys"""
        def pick(camel, snake, default=None):
            if camel in data:
                return data[camel]
            return data.get(snake, default)

        participants = pick('participants', 'participants')
        revenue = pick('revenue', 'revenue')
        return cls(
            id=to_text(pick('id', 'id')),
            day=to_text(pick('day', 'day')),
            time=to_text(pick('time', 'time'))[:5],
            location=to_text(pick('location', 'location')),
            class_format=to_text(pick('classFormat', 'class_format')),
            teacher_first_name=to_text(pick('teacherFirstName', 'teacher_first_name')),
            teacher_last_name=to_text(pick('teacherLastName', 'teacher_last_name')),
            duration=to_number(pick('duration', 'duration'), default=1.0),
            participants=None if participants is None else int(round(to_number(participants))),
            revenue=None if revenue is None else int(round(to_number(revenue))),
            is_top_performer=bool(pick('isTopPerformer', 'is_top_performer', False)),
            is_locked=bool(pick('isLocked', 'is_locked', False)),
            is_private=bool(pick('isPrivate', 'is_private', False)),
            is_hosted=bool(pick('isHosted', 'is_hosted', False)),
            client_details=pick('clientDetails', 'client_details'),
            cover_teacher=pick('coverTeacher', 'cover_teacher'),
        )


@dataclass
class TeacherRunningState:
    """
    Per-instructor projection of a schedule.

    Always derived from entries; the scheduler updates it in place only for
    the duration of one pass.
    """
    weekly_hours: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    daily_hours: Dict[str, Dict[str, float]] = field(default_factory=lambda: defaultdict(lambda: defaultdict(float)))
    daily_count: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: defaultdict(int)))
    daily_location: Dict[str, Dict[str, str]] = field(default_factory=lambda: defaultdict(dict))
    daily_shift: Dict[str, Dict[str, Optional[str]]] = field(default_factory=lambda: defaultdict(dict))

    @classmethod
    def from_entries(cls, entries, teacher=None) -> 'TeacherRunningState':
        """Rebuild from entries, optionally only for one instructor"""
        state = cls()
        for entry in entries:
            if teacher is not None and entry.teacher_name != teacher:
                continue
            state.record(entry)
        return state

    def record(self, entry: ScheduledClassEntry):
        teacher = entry.teacher_name
        day = entry.day
        self.weekly_hours[teacher] += entry.duration
        self.daily_hours[teacher][day] += entry.duration
        self.daily_count[teacher][day] += 1
        self.daily_location[teacher].setdefault(day, entry.location)

        shift = shift_type(entry.time)
        shift = shift if shift in ('morning', 'evening') else None
        current = self.daily_shift[teacher].get(day, 'unset')
        if current == 'unset':
            self.daily_shift[teacher][day] = shift
        elif current != shift:
            self.daily_shift[teacher][day] = 'mixed'

    def hours_for(self, teacher) -> float:
        return self.weekly_hours.get(teacher, 0.0)

    def day_hours_for(self, teacher, day) -> float:
        return self.daily_hours.get(teacher, {}).get(day, 0.0)

    def day_count_for(self, teacher, day) -> int:
        return self.daily_count.get(teacher, {}).get(day, 0)

    def shift_for(self, teacher, day) -> Optional[str]:
        return self.daily_shift.get(teacher, {}).get(day)


@dataclass(frozen=True)
class Verdict:
    """Outcome of validating one proposed entry"""
    is_valid: bool
    error: Optional[str] = None
    warning: Optional[str] = None
    can_override: bool = False
    rule: Optional[str] = None

    def to_dict(self) -> dict:
        result = {'isValid': self.is_valid}
        if self.error:
            result['error'] = self.error
        if self.warning:
            result['warning'] = self.warning
        if self.can_override:
            result['canOverride'] = True
        elif not self.is_valid:
            result['canOverride'] = False
        return result


@dataclass
class AssemblyResult:
    """What a scheduler pass produced"""
    entries: List[ScheduledClassEntry]
    added: List[ScheduledClassEntry] = field(default_factory=list)
    qualifying_combinations: int = 0
    candidates_considered: int = 0
    skipped_by_rule: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    message: str = ''

    @property
    def nothing_qualified(self) -> bool:
        return self.qualifying_combinations == 0

    def to_dict(self) -> dict:
        return {
            'classes': [entry.to_dict() for entry in self.entries],
            'added': len(self.added),
            'qualifying_combinations': self.qualifying_combinations,
            'candidates_considered': self.candidates_considered,
            'skipped_by_rule': dict(self.skipped_by_rule),
            'message': self.message,
        }
