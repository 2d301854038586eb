import uuid
from collections import defaultdict
from dataclasses import dataclass, field, fields
from functools import cmp_to_key

from application.performance_scorer import (
    rank_combinations, compare_combinations, is_top_performer
)
from application.policy_rules import (
    RuleContext, InstructorDirectory, default_directory, evaluate_rules, hard_denial,
    split_shift_warning, NEW_TEACHER_WEEKLY_CAP, STANDARD_WEEKLY_CAP
)
from application.schedule_types import (
    AssemblyResult, RuleStatus, ScheduledClassEntry, TeacherRunningState,
    split_teacher_name, to_number
)


def class_duration(class_format):
    """Duration in hours derived from the class format name"""
    lower_format = class_format.lower()
    if 'express' in lower_format:
        return 0.75
    if 'recovery' in lower_format:
        return 0.5
    if 'foundations' in lower_format:
        return 0.75
    return 1.0


OPTION_ALIASES = {
    'prioritizeTopPerformers': 'prioritize_top_performers',
    'balanceShifts': 'balance_shifts',
    'optimizeTeacherHours': 'optimize_teacher_hours',
    'respectTimeRestrictions': 'respect_time_restrictions',
    'minimizeTrainersPerShift': 'minimize_trainers_per_shift',
    'optimizationType': 'optimization_type',
    'targetDay': 'target_day',
    'targetTeacherHours': 'target_teacher_hours',
    'fillEmptySlotsOnly': 'fill_empty_slots_only',
    'existingSchedule': 'existing_schedule',
    'strictTopClassesOnly': 'strict_top_classes_only',
    'lockedTeachers': 'locked_teachers',
}


def normalize_option_keys(data):
    """Map camelCase option keys to snake_case, dropping null values"""
    return {
        OPTION_ALIASES.get(key, key): value
        for key, value in (data or {}).items()
        if value is not None
    }


@dataclass
class SchedulerOptions:
    """Flat option set accepted by the scheduler"""
    prioritize_top_performers: bool = True
    balance_shifts: bool = False
    optimize_teacher_hours: bool = True
    respect_time_restrictions: bool = True
    minimize_trainers_per_shift: bool = True
    optimization_type: str = 'balanced'  # revenue | attendance | balanced
    iteration: int = 0
    target_day: str = None
    target_teacher_hours: float = STANDARD_WEEKLY_CAP
    fill_empty_slots_only: bool = False
    existing_schedule: list = field(default_factory=list)
    strict_top_classes_only: bool = True
    locked_teachers: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        """Build options from camelCase or snake_case keys; unknown keys are ignored"""
        known = {f.name for f in fields(cls)}
        values = {name: value for name, value in normalize_option_keys(data).items() if name in known}

        schedule = values.get('existing_schedule', [])
        values['existing_schedule'] = [
            entry if isinstance(entry, ScheduledClassEntry) else ScheduledClassEntry.from_dict(entry)
            for entry in schedule
        ]
        if 'target_teacher_hours' in values:
            values['target_teacher_hours'] = to_number(values['target_teacher_hours'], STANDARD_WEEKLY_CAP)
        if 'iteration' in values:
            values['iteration'] = int(to_number(values['iteration']))
        return cls(**values)


class StrictTopClassScheduler:
    """
    Strict Top Class Scheduler - places historically strong classes greedily

    Algorithm Overview:
    1. INIT: running state from the seed schedule (locked entries only when populating)
    2. SCORING: STRICT ranking of class/location/day/time combinations
    3. PLACEMENT_LOOP: walk the ranking once, placing each candidate that
       passes every policy rule; skipped candidates are never revisited
    4. DONE: return the accumulated schedule
    """

    # ==================== EDITABLE CONFIGURATION ====================

    STRICT_THRESHOLD = 5.0         # Avg checked-in a STRICT combination must exceed
    LOOSE_THRESHOLD = 5.0          # Inclusive floor when strict mode is switched off
    FILL_QUOTA = 5                 # New classes per fill-additional run
    FILL_HOURS_BUFFER = 0.5        # Instructors within this of their cap are not filled

    # ==================== END EDITABLE CONFIGURATION ====================

    PHASES = ('INIT', 'SCORING', 'PLACEMENT_LOOP', 'DONE')

    def __init__(self, historic_records, score_records=None, options=None,
                 config: dict = None, directory: InstructorDirectory = None, verbose=True):
        if config:
            for key, value in config.items():
                if hasattr(self, key.upper()):
                    setattr(self, key.upper(), value)

        if isinstance(options, dict):
            options = SchedulerOptions.from_dict(options)

        self.historic_records = list(historic_records)
        self.score_records = list(score_records or [])
        self.options = options or SchedulerOptions()
        self.directory = directory or default_directory()
        self.verbose = verbose
        self.phase = None

        self.context = RuleContext(
            directory=self.directory,
            target_teacher_hours=self.options.target_teacher_hours,
            respect_time_restrictions=self.options.respect_time_restrictions
        )

    def _log(self, message):
        if self.verbose:
            print(message)

    # ==================== ENTRY POINTS ====================

    def populate(self):
        """Build a schedule out of the STRICT ranking, keeping only locked entries of the existing one"""
        seed = self.locked_entries()
        self._log(f"STRICT TOP CLASS SCHEDULER - populate ({len(seed)} locked classes kept)")
        return self._run(seed=seed, quota=None, id_prefix='strict-top', load_balance=False)

    def fill_additional(self, existing_schedule=None):
        """Add up to FILL_QUOTA classes to an existing schedule without touching it"""
        seed = list(existing_schedule if existing_schedule is not None else self.options.existing_schedule)
        self._log(f"STRICT TOP CLASS SCHEDULER - fill {self.FILL_QUOTA} additional classes")
        return self._run(seed=seed, quota=self.FILL_QUOTA, id_prefix='fill-strict', load_balance=True)

    def locked_entries(self):
        return [entry for entry in self.options.existing_schedule if entry.is_locked]

    def seed_entries(self):
        """Entries a pass starts from under the current options"""
        if self.options.fill_empty_slots_only:
            return list(self.options.existing_schedule)
        return self.locked_entries()

    def run(self):
        """Dispatch on the fill_empty_slots_only option"""
        if self.options.fill_empty_slots_only:
            return self.fill_additional()
        return self.populate()

    # ==================== STATE MACHINE ====================

    def _run(self, seed, quota, id_prefix, load_balance):
        self.phase = 'INIT'
        entries = list(seed)
        state = TeacherRunningState.from_entries(entries)
        result = AssemblyResult(entries=entries)

        self.phase = 'SCORING'
        if self.options.strict_top_classes_only:
            candidates = rank_combinations(
                self.historic_records, self.score_records, strict=True,
                threshold=self.STRICT_THRESHOLD, directory=self.directory, verbose=self.verbose
            )
        else:
            candidates = rank_combinations(
                self.historic_records, self.score_records, strict=False,
                min_avg=self.LOOSE_THRESHOLD, directory=self.directory, verbose=self.verbose
            )

        result.qualifying_combinations = len(candidates)
        if not candidates:
            result.message = (f"No classes meet the strict criteria "
                              f"(avg checked-in > {self.STRICT_THRESHOLD:g} with historic data)")
            self._log(f"WARNING: {result.message}")
            self.phase = 'DONE'
            return result

        if load_balance:
            candidates = self._load_balanced(candidates, state)
            if not candidates:
                result.message = (f"No instructors on the schedule have spare hours for the "
                                  f"{result.qualifying_combinations} qualifying combinations")
                self._log(f"WARNING: {result.message}")
                self.phase = 'DONE'
                return result

        self.phase = 'PLACEMENT_LOOP'
        self._placement_loop(candidates, result, state, quota, id_prefix)

        self.phase = 'DONE'
        result.message = (f"Added {len(result.added)} classes from {result.qualifying_combinations} "
                          f"qualifying combinations ({len(result.entries)} total)")
        self._log(result.message)
        return result

    def _weekly_cap(self, teacher):
        if self.directory.is_new(teacher):
            return NEW_TEACHER_WEEKLY_CAP
        return self.options.target_teacher_hours

    def _load_balanced(self, candidates, state):
        """
        Keep instructors already on the schedule with room under their cap,
        preferring lower current hours when the ranking itself does not
        separate two candidates.
        """
        eligible = [
            c for c in candidates
            if c.teacher in state.weekly_hours
            and state.hours_for(c.teacher) < self._weekly_cap(c.teacher) - self.FILL_HOURS_BUFFER
        ]

        def compare(a, b):
            ranked = compare_combinations(a, b)
            if ranked:
                return ranked
            hours_a, hours_b = state.hours_for(a.teacher), state.hours_for(b.teacher)
            return (hours_a > hours_b) - (hours_a < hours_b)

        self._log(f"  {len(eligible)} of {len(candidates)} combinations have instructors with spare hours")
        return sorted(eligible, key=cmp_to_key(compare))

    def _placement_loop(self, candidates, result, state, quota, id_prefix):
        entries = result.entries
        locked_teachers = set(self.options.locked_teachers or [])
        taken_slots = {(cls.location, cls.day, cls.time) for cls in entries}

        for combo in candidates:
            if quota is not None and len(result.added) >= quota:
                break
            result.candidates_considered += 1

            if self.options.target_day and combo.day != self.options.target_day:
                result.skipped_by_rule['target_day'] += 1
                continue

            # One class per start time per location; locked entries pin their slot
            if (combo.location, combo.day, combo.time) in taken_slots:
                result.skipped_by_rule['slot_taken'] += 1
                continue

            if combo.teacher in locked_teachers:
                result.skipped_by_rule['teacher_locked'] += 1
                continue

            candidate = self._build_entry(combo, id_prefix)

            outcomes = evaluate_rules(entries, candidate, state, self.context)
            blocking = hard_denial(outcomes) or next(
                (o for o in outcomes if o.status == RuleStatus.OVERRIDABLE), None)
            if blocking:
                result.skipped_by_rule[blocking.rule] += 1
                continue

            if self.options.balance_shifts and split_shift_warning(candidate, state):
                result.skipped_by_rule['split_shift'] += 1
                continue

            entries.append(candidate)
            result.added.append(candidate)
            taken_slots.add((candidate.location, candidate.day, candidate.time))
            state.record(candidate)

            self._log(f"  Placed {candidate.class_format} with {candidate.teacher_name} at "
                      f"{candidate.location} on {candidate.day} {candidate.time} ({combo.avg_checked_in} avg)")

    def _build_entry(self, combo, id_prefix):
        first_name, last_name = split_teacher_name(combo.teacher)
        return ScheduledClassEntry(
            id=f"{id_prefix}-{self.options.iteration}-{uuid.uuid4().hex[:9]}",
            day=combo.day,
            time=combo.time,
            location=combo.location,
            class_format=combo.class_format,
            teacher_first_name=first_name,
            teacher_last_name=last_name,
            duration=class_duration(combo.class_format),
            participants=int(round(combo.avg_checked_in)),
            revenue=int(round(combo.avg_revenue)),
            is_top_performer=is_top_performer(combo)
        )


def summarize_schedule(entries):
    """Counts per day and per location for reporting"""
    by_day = defaultdict(int)
    by_location = defaultdict(int)
    for entry in entries:
        by_day[entry.day] += 1
        by_location[entry.location] += 1
    return {
        'total_classes': len(entries),
        'top_performers': sum(1 for entry in entries if entry.is_top_performer),
        'by_day': dict(by_day),
        'by_location': dict(by_location)
    }


def execute_populate_schedule(historic_records, score_records=None, options=None, config=None, directory=None):
    """Execute the strict populate pass"""
    scheduler = StrictTopClassScheduler(historic_records, score_records, options=options,
                                        config=config, directory=directory)
    return scheduler.populate()


def execute_fill_additional(historic_records, existing_schedule, score_records=None, options=None,
                            config=None, directory=None):
    """Execute the fill-additional pass on top of an existing schedule"""
    scheduler = StrictTopClassScheduler(historic_records, score_records, options=options,
                                        config=config, directory=directory)
    return scheduler.fill_additional(existing_schedule)
