from application.policy_rules import (
    RuleContext, evaluate_rules, hard_denial, new_teacher_format_warning
)
from application.schedule_types import RuleStatus, TeacherRunningState, Verdict


def validate(existing, candidate, context: RuleContext = None) -> Verdict:
    """
    Check whether ``candidate`` may be added to ``existing``.

    Only the candidate instructor's running state is rebuilt. Any hard
    failure rejects outright. Exceeding the weekly cap rejects with
    ``can_override`` only when no hard rule fails, and approaching it
    accepts with a warning.
    """
    context = context or RuleContext()
    existing = [entry for entry in existing if entry.id != candidate.id or not candidate.id]
    state = TeacherRunningState.from_entries(existing, teacher=candidate.teacher_name)

    outcomes = evaluate_rules(existing, candidate, state, context)
    denial = hard_denial(outcomes)
    if denial:
        return Verdict(is_valid=False, error=denial.message, can_override=False, rule=denial.rule)

    warnings = []
    for outcome in outcomes:
        if outcome.status == RuleStatus.OVERRIDABLE:
            return Verdict(is_valid=False, error=outcome.message, can_override=True, rule=outcome.rule)
        warnings.append(outcome.message)

    format_warning = new_teacher_format_warning(candidate, context.directory)
    if format_warning:
        warnings.append(format_warning)

    return Verdict(is_valid=True, warning='; '.join(warnings) or None)


def validate_schedule(entries, context: RuleContext = None):
    """
    Re-check a whole schedule, each entry against the entries before it.

    Returns the (entry, verdict) pairs that fail.
    """
    context = context or RuleContext()
    accepted = []
    violations = []
    for entry in entries:
        verdict = validate(accepted, entry, context)
        if not verdict.is_valid:
            violations.append((entry, verdict))
        accepted.append(entry)
    return violations
