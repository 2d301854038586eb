import pytest

from application.policy_rules import (
    InstructorDirectory, RuleContext, evaluate_rules, hard_denial,
    is_class_allowed_at_location, new_teacher_format_warning, split_shift_warning,
    priority_teacher_shortfall
)
from application.schedule_types import InstructorTier, RuleStatus, TeacherRunningState


def _week(make_entry, times=('07:00', '09:00'), skip=(), **overrides):
    """Classes for one instructor at the same times every day of the week"""
    days = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
    return [
        make_entry(day=day, time=time, **overrides)
        for day in days for time in times
        if (day, time) not in skip
    ]


def _statuses(outcomes):
    return {outcome.rule: outcome.status for outcome in outcomes}


class TestInstructorDirectory:

    def test_first_name_matches(self, directory):
        assert directory.tier_of('Nishanth Kumar') == InstructorTier.INACTIVE
        assert directory.tier_of('Kabir') == InstructorTier.NEW

    def test_similar_names_are_kept_apart(self, directory):
        assert directory.tier_of('Karan Bhatia') == InstructorTier.NEW
        assert directory.tier_of('Karanvir Bhatia') == InstructorTier.PRIORITY

    def test_unknown_is_standard(self, directory):
        assert directory.tier_of('Rohan Dahima') == InstructorTier.STANDARD
        assert directory.tier_of('') == InstructorTier.STANDARD

    def test_inactive_wins(self):
        directory = InstructorDirectory(inactive=['Mrigakshi'], priority=['Mrigakshi'])
        assert directory.is_inactive('Mrigakshi Jaiswal')
        assert not directory.is_priority('Mrigakshi Jaiswal')

    def test_case_and_spacing(self, directory):
        assert directory.is_priority('  anisha   SHAH ')

    def test_from_config(self):
        directory = InstructorDirectory.from_config({'NEW_TEACHERS': ['Pushyank']})
        assert directory.is_new('Pushyank Nahar')


class TestFormatLocation:

    def test_supreme_runs_cycle_only(self):
        assert is_class_allowed_at_location('Studio powerCycle', 'Supreme HQ, Bandra')
        assert not is_class_allowed_at_location('Studio Barre 57', 'Supreme HQ, Bandra')

    def test_cycle_not_elsewhere(self):
        assert not is_class_allowed_at_location('Studio powerCycle (Express)', 'Kenkere House')
        assert is_class_allowed_at_location('Studio Mat 57', 'Kenkere House')

    def test_rule_denies(self, make_entry, context):
        candidate = make_entry(location='Supreme HQ, Bandra', class_format='Studio HIIT')
        outcomes = evaluate_rules([], candidate, context=context)
        assert hard_denial(outcomes).rule == 'format_location'


class TestRules:

    def test_clean_candidate_has_no_outcomes(self, make_entry, context):
        assert evaluate_rules([], make_entry(), context=context) == []

    def test_inactive_instructor(self, make_entry, context):
        outcomes = evaluate_rules([], make_entry(teacher_first_name='Saniya'), context=context)
        denial = hard_denial(outcomes)
        assert denial.rule == 'inactive_teacher'
        assert 'inactive' in denial.message

    def test_weekday_afternoon_denied(self, make_entry, context):
        outcomes = evaluate_rules([], make_entry(time='16:00'), context=context)
        assert hard_denial(outcomes).rule == 'time_restriction'
        assert 'Weekday' in hard_denial(outcomes).message

    def test_weekday_evening_accepted(self, make_entry, context):
        assert evaluate_rules([], make_entry(time='17:00'), context=context) == []

    def test_weekend_band(self, make_entry, context):
        assert hard_denial(evaluate_rules([], make_entry(day='Saturday', time='15:00'), context=context))
        assert evaluate_rules([], make_entry(day='Saturday', time='16:00'), context=context) == []

    def test_time_restriction_can_be_switched_off(self, make_entry, directory):
        context = RuleContext(directory=directory, respect_time_restrictions=False)
        assert evaluate_rules([], make_entry(time='14:00'), context=context) == []

    def test_studio_capacity(self, make_entry, context):
        schedule = [
            make_entry(location='Kenkere House', teacher_first_name='Rohan'),
            make_entry(location='Kenkere House', teacher_first_name='Vivaran'),
        ]
        outcomes = evaluate_rules(schedule, make_entry(location='Kenkere House'), context=context)
        assert hard_denial(outcomes).rule == 'studio_capacity'

    def test_instructor_conflict(self, make_entry, context):
        schedule = [make_entry(time='09:00')]
        outcomes = evaluate_rules(schedule, make_entry(time='09:30', location='Kenkere House'), context=context)
        assert hard_denial(outcomes).rule == 'instructor_conflict'

    def test_consecutive_classes(self, make_entry, context):
        schedule = [make_entry(time='09:00'), make_entry(time='10:00')]
        outcomes = evaluate_rules(schedule, make_entry(time='11:00'), context=context)
        denial = hard_denial(outcomes)
        assert denial.rule == 'consecutive_classes'
        assert '3 consecutive' in denial.message

    def test_daily_class_count(self, make_entry, context):
        schedule = [make_entry(time=time) for time in ('07:00', '09:00', '17:00', '19:00')]
        outcomes = evaluate_rules(schedule, make_entry(time='11:00'), context=context)
        assert hard_denial(outcomes).rule == 'daily_class_count'

    def test_daily_hours(self, make_entry, context):
        schedule = [make_entry(time='07:00', duration=1.5), make_entry(time='09:00', duration=1.5)]
        outcomes = evaluate_rules(schedule, make_entry(time='17:00', duration=1.5), context=context)
        assert hard_denial(outcomes).rule == 'daily_hours'

    def test_weekly_hours_warning(self, make_entry, context):
        schedule = _week(make_entry, skip={('Sunday', '09:00')})
        outcomes = evaluate_rules(schedule, make_entry(day='Tuesday', time='17:00'), context=context)
        assert _statuses(outcomes) == {'weekly_hours': RuleStatus.WARN}
        assert 'approaching' in outcomes[0].message

    def test_weekly_hours_overridable(self, make_entry, context):
        schedule = _week(make_entry) + [make_entry(day='Monday', time='17:00')]
        outcomes = evaluate_rules(schedule, make_entry(day='Tuesday', time='17:00'), context=context)
        assert _statuses(outcomes) == {'weekly_hours': RuleStatus.OVERRIDABLE}
        assert hard_denial(outcomes) is None
        assert '16.0h total' in outcomes[0].message

    def test_new_instructor_has_lower_cap(self, make_entry, context):
        schedule = _week(make_entry, times=('07:00',), teacher_first_name='Kabir') + [
            make_entry(day=day, time='09:00', teacher_first_name='Kabir')
            for day in ('Monday', 'Tuesday', 'Wednesday')
        ]
        candidate = make_entry(day='Thursday', time='17:00', teacher_first_name='Kabir')
        outcomes = evaluate_rules(schedule, candidate, context=context)
        assert _statuses(outcomes) == {'weekly_hours': RuleStatus.OVERRIDABLE}

    def test_target_hours_raise_the_cap(self, make_entry, directory):
        context = RuleContext(directory=directory, target_teacher_hours=20)
        schedule = _week(make_entry) + [make_entry(day='Monday', time='17:00')]
        assert evaluate_rules(schedule, make_entry(day='Tuesday', time='17:00'), context=context) == []

    def test_sunday_limit(self, make_entry, context):
        schedule = [
            make_entry(day='Sunday', time=time, teacher_first_name=name)
            for time, name in (('07:00', 'A'), ('08:00', 'B'), ('09:00', 'C'), ('10:00', 'D'), ('11:00', 'E'))
        ]
        outcomes = evaluate_rules(schedule, make_entry(day='Sunday', time='18:00'), context=context)
        assert hard_denial(outcomes).rule == 'sunday_limit'

    @pytest.mark.parametrize('day', ['Monday', 'Tuesday', 'Wednesday'])
    def test_recovery_blocked_early_week(self, make_entry, context, day):
        candidate = make_entry(day=day, class_format='Studio Recovery', duration=0.5)
        assert hard_denial(evaluate_rules([], candidate, context=context)).rule == 'recovery_days'

    def test_recovery_allowed_later(self, make_entry, context):
        candidate = make_entry(day='Thursday', class_format='Studio Recovery', duration=0.5)
        assert evaluate_rules([], candidate, context=context) == []

    def test_evaluation_stops_at_first_denial(self, make_entry, context):
        candidate = make_entry(teacher_first_name='Nishanth', time='14:00')
        outcomes = evaluate_rules([], candidate, context=context)
        assert [o.rule for o in outcomes] == ['inactive_teacher']


class TestAdvisoryPolicy:

    def test_new_teacher_format_warning(self, make_entry, directory):
        assert new_teacher_format_warning(make_entry(teacher_first_name='Kabir', class_format='Studio FIT'), directory)
        assert new_teacher_format_warning(make_entry(teacher_first_name='Kabir'), directory) is None
        assert new_teacher_format_warning(make_entry(class_format='Studio FIT'), directory) is None

    def test_split_shift(self, make_entry):
        state = TeacherRunningState.from_entries([make_entry(time='07:00')])
        assert split_shift_warning(make_entry(time='18:00'), state)
        assert split_shift_warning(make_entry(time='10:00'), state) is None
        assert split_shift_warning(make_entry(day='Tuesday', time='18:00'), state) is None

    def test_priority_shortfall(self, make_entry, directory):
        entries = [make_entry(day=day) for day in ('Monday', 'Tuesday', 'Wednesday')]
        entries.append(make_entry(teacher_first_name='Rohan'))
        assert priority_teacher_shortfall(entries, directory) == {'Anisha Shah': 9.0}
