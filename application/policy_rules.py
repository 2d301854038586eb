"""
Business rules for placing a class.

Every rule looks at (schedule so far, candidate entry, running state, context)
and returns a RuleOutcome. Rules are independent necessary conditions, so the
evaluation order only decides which message is reported first.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import List, Optional

from application.schedule_types import InstructorTier, RuleStatus, TeacherRunningState
from application.time_utils import (
    fits_capacity, conflicts_with_instructor, consecutive_class_count,
    is_time_restricted, is_weekend, shift_type
)

# ==================== EDITABLE CONFIGURATION ====================

STANDARD_WEEKLY_CAP = 15.0
NEW_TEACHER_WEEKLY_CAP = 10.0
WEEKLY_CAP_WARNING_MARGIN = 2.0
PRIORITY_TEACHER_TARGET_HOURS = 12.0

DAILY_CLASS_LIMIT = 4
DAILY_HOURS_LIMIT = 4.0
CONSECUTIVE_LIMIT = 2

# Locations that only run cycle formats, and per-location forbidden formats
CYCLE_ONLY_LOCATIONS = ('Supreme HQ, Bandra',)
CYCLE_KEYWORDS = ('powercycle', 'power cycle')
FORMAT_DENY_LIST = {
    'Supreme HQ, Bandra': ('hiit', 'amped up'),
}

SUNDAY_CLASS_LIMITS = {
    'Kwality House, Kemps Corner': 5,
    'Supreme HQ, Bandra': 7,
    'Kenkere House': 6
}
DEFAULT_SUNDAY_LIMIT = 6

RECOVERY_BLOCKED_DAYS = ('Monday', 'Tuesday', 'Wednesday')

NEW_TEACHER_FORMATS = (
    'Studio Barre 57', 'Studio Barre 57 (Express)', 'Studio powerCycle',
    'Studio powerCycle (Express)', 'Studio Cardio Barre'
)

# ==================== END EDITABLE CONFIGURATION ====================


class InstructorDirectory:
    """
    Lookup from instructor identity to tier.

    Names are matched on the full name first, then on the first name, both
    case-insensitively. Inactive wins over new, new over priority.
    """

    def __init__(self, inactive=(), new=(), priority=()):
        self._tiers = {}
        for tier, names in ((InstructorTier.PRIORITY, priority),
                            (InstructorTier.NEW, new),
                            (InstructorTier.INACTIVE, inactive)):
            for name in names:
                self._tiers[self._normalize(name)] = tier

    @staticmethod
    def _normalize(name):
        return ' '.join(str(name or '').lower().split())

    @classmethod
    def from_config(cls, config):
        return cls(
            inactive=config.get('INACTIVE_TEACHERS', ()),
            new=config.get('NEW_TEACHERS', ()),
            priority=config.get('PRIORITY_TEACHERS', ()),
        )

    def tier_of(self, teacher_name) -> InstructorTier:
        full = self._normalize(teacher_name)
        if full in self._tiers:
            return self._tiers[full]
        first = full.split(' ')[0] if full else ''
        return self._tiers.get(first, InstructorTier.STANDARD)

    def is_inactive(self, teacher_name) -> bool:
        return self.tier_of(teacher_name) == InstructorTier.INACTIVE

    def is_new(self, teacher_name) -> bool:
        return self.tier_of(teacher_name) == InstructorTier.NEW

    def is_priority(self, teacher_name) -> bool:
        return self.tier_of(teacher_name) == InstructorTier.PRIORITY


def default_directory():
    from config import Config
    return InstructorDirectory(
        inactive=Config.INACTIVE_TEACHERS,
        new=Config.NEW_TEACHERS,
        priority=Config.PRIORITY_TEACHERS,
    )


@dataclass
class RuleContext:
    """Settings shared by all rules during one pass"""
    directory: InstructorDirectory = field(default_factory=default_directory)
    target_teacher_hours: float = STANDARD_WEEKLY_CAP
    respect_time_restrictions: bool = True
    sunday_limits: dict = field(default_factory=lambda: dict(SUNDAY_CLASS_LIMITS))

    def weekly_cap_for(self, teacher_name) -> float:
        if self.directory.is_new(teacher_name):
            return NEW_TEACHER_WEEKLY_CAP
        return self.target_teacher_hours


@dataclass(frozen=True)
class RuleOutcome:
    rule: str
    status: RuleStatus
    message: str = ''

    @property
    def passed(self):
        return self.status in (RuleStatus.ALLOW, RuleStatus.WARN)


def _allow(rule):
    return RuleOutcome(rule, RuleStatus.ALLOW)


# ==================== RULES ====================

def check_inactive_teacher(schedule, candidate, state, context):
    teacher = candidate.teacher_name
    if context.directory.is_inactive(teacher):
        return RuleOutcome('inactive_teacher', RuleStatus.DENY,
                           f"{teacher} is inactive and cannot be assigned to classes")
    return _allow('inactive_teacher')


def is_class_allowed_at_location(class_format, location):
    lower_format = class_format.lower()
    is_cycle = any(keyword in lower_format for keyword in CYCLE_KEYWORDS)

    if location in CYCLE_ONLY_LOCATIONS:
        if not is_cycle:
            return False
    elif is_cycle:
        return False

    return not any(word in lower_format for word in FORMAT_DENY_LIST.get(location, ()))


def check_format_location(schedule, candidate, state, context):
    if not is_class_allowed_at_location(candidate.class_format, candidate.location):
        return RuleOutcome('format_location', RuleStatus.DENY,
                           f"{candidate.class_format} is not offered at {candidate.location}")
    return _allow('format_location')


def check_time_restriction(schedule, candidate, state, context):
    if not context.respect_time_restrictions:
        return _allow('time_restriction')
    if is_time_restricted(candidate.time, candidate.day):
        if is_weekend(candidate.day):
            message = f"Weekend second shift classes must start at 4:00 PM or later (attempted: {candidate.time})"
        else:
            message = f"Weekday second shift classes must start at 5:00 PM or later (attempted: {candidate.time})"
        return RuleOutcome('time_restriction', RuleStatus.DENY, message)
    return _allow('time_restriction')


def check_studio_capacity(schedule, candidate, state, context):
    if not fits_capacity(schedule, candidate):
        return RuleOutcome('studio_capacity', RuleStatus.DENY,
                           f"Studio capacity exceeded at {candidate.location} for {candidate.day} {candidate.time}")
    return _allow('studio_capacity')


def check_instructor_conflict(schedule, candidate, state, context):
    if conflicts_with_instructor(schedule, candidate):
        return RuleOutcome('instructor_conflict', RuleStatus.DENY,
                           f"{candidate.teacher_name} is already teaching elsewhere or at an overlapping time on {candidate.day}")
    return _allow('instructor_conflict')


def check_consecutive_classes(schedule, candidate, state, context):
    teacher = candidate.teacher_name
    count = consecutive_class_count(schedule, teacher, candidate.day, candidate.time, candidate.duration)
    if count > CONSECUTIVE_LIMIT:
        return RuleOutcome('consecutive_classes', RuleStatus.DENY,
                           f"{teacher} would have {count} consecutive classes (max {CONSECUTIVE_LIMIT} allowed)")
    return _allow('consecutive_classes')


def check_daily_class_count(schedule, candidate, state, context):
    teacher = candidate.teacher_name
    current = state.day_count_for(teacher, candidate.day)
    if current >= DAILY_CLASS_LIMIT:
        return RuleOutcome('daily_class_count', RuleStatus.DENY,
                           f"{teacher} would have {current + 1} classes on {candidate.day} (max {DAILY_CLASS_LIMIT} allowed)")
    return _allow('daily_class_count')


def check_daily_hours(schedule, candidate, state, context):
    teacher = candidate.teacher_name
    hours = round(state.day_hours_for(teacher, candidate.day) + candidate.duration, 2)
    if hours > DAILY_HOURS_LIMIT:
        return RuleOutcome('daily_hours', RuleStatus.DENY,
                           f"{teacher} would teach {hours}h on {candidate.day} (max {DAILY_HOURS_LIMIT:g}h allowed)")
    return _allow('daily_hours')


def check_weekly_hours(schedule, candidate, state, context):
    teacher = candidate.teacher_name
    max_hours = context.weekly_cap_for(teacher)
    new_total = round(state.hours_for(teacher) + candidate.duration, 1)

    if new_total > max_hours:
        return RuleOutcome('weekly_hours', RuleStatus.OVERRIDABLE,
                           f"{teacher} would exceed {max_hours:g}h limit ({new_total}h total)")
    if new_total > max_hours - WEEKLY_CAP_WARNING_MARGIN:
        return RuleOutcome('weekly_hours', RuleStatus.WARN,
                           f"{teacher} approaching {max_hours:g}h limit ({new_total}h total)")
    return _allow('weekly_hours')


def check_sunday_limit(schedule, candidate, state, context):
    if candidate.day != 'Sunday':
        return _allow('sunday_limit')
    limit = context.sunday_limits.get(candidate.location, DEFAULT_SUNDAY_LIMIT)
    existing = sum(1 for cls in schedule if cls.location == candidate.location and cls.day == 'Sunday')
    if existing >= limit:
        return RuleOutcome('sunday_limit', RuleStatus.DENY,
                           f"{candidate.location} already has {existing} Sunday classes (max {limit})")
    return _allow('sunday_limit')


def check_recovery_days(schedule, candidate, state, context):
    if candidate.day in RECOVERY_BLOCKED_DAYS and 'recovery' in candidate.class_format.lower():
        return RuleOutcome('recovery_days', RuleStatus.DENY,
                           f"Recovery classes are not scheduled on {candidate.day}")
    return _allow('recovery_days')


# Cheapest and most disqualifying first
RULES = [
    check_inactive_teacher,
    check_format_location,
    check_time_restriction,
    check_studio_capacity,
    check_instructor_conflict,
    check_consecutive_classes,
    check_daily_class_count,
    check_daily_hours,
    check_weekly_hours,
    check_sunday_limit,
    check_recovery_days,
]


def evaluate_rules(schedule, candidate, state: Optional[TeacherRunningState] = None,
                   context: Optional[RuleContext] = None) -> List[RuleOutcome]:
    """
    Run the rule set against a candidate.

    Returns every outcome that is not a plain allow, stopping at the first
    hard denial. An empty list means unconditional acceptance.
    """
    context = context or RuleContext()
    if state is None:
        state = TeacherRunningState.from_entries(schedule, teacher=candidate.teacher_name)

    outcomes = []
    for rule in RULES:
        outcome = rule(schedule, candidate, state, context)
        if outcome.status == RuleStatus.ALLOW:
            continue
        outcomes.append(outcome)
        if outcome.status == RuleStatus.DENY:
            break
    return outcomes


def hard_denial(outcomes) -> Optional[RuleOutcome]:
    return next((o for o in outcomes if o.status == RuleStatus.DENY), None)


# ==================== ADVISORY POLICY ====================

def new_teacher_format_warning(candidate, directory):
    """New instructors are steered towards a short list of formats"""
    if directory.is_new(candidate.teacher_name) and candidate.class_format not in NEW_TEACHER_FORMATS:
        return f"{candidate.teacher_name} is a new trainer; {candidate.class_format} is outside their usual formats"
    return None


def split_shift_warning(candidate, state):
    """Warn when a class would give an instructor both a morning and an evening shift"""
    current = state.shift_for(candidate.teacher_name, candidate.day)
    shift = shift_type(candidate.time)
    if shift not in ('morning', 'evening'):
        return None
    if current == 'mixed' or (current in ('morning', 'evening') and current != shift):
        return f"{candidate.teacher_name} would work a split shift on {candidate.day}"
    return None


def priority_teacher_shortfall(entries, directory, target=PRIORITY_TEACHER_TARGET_HOURS):
    """Hours each scheduled priority instructor is short of their weekly target"""
    hours = defaultdict(float)
    for entry in entries:
        if directory.is_priority(entry.teacher_name):
            hours[entry.teacher_name] += entry.duration

    return {
        teacher: round(target - total, 1)
        for teacher, total in sorted(hours.items())
        if total < target
    }
