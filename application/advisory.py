"""Optional external schedule advisor with local fallback"""

from abc import ABC, abstractmethod
from typing import List

from application.enhanced_scheduler import StrictTopClassScheduler
from application.policy_rules import RuleContext
from application.schedule_types import AssemblyResult, ScheduledClassEntry
from application.schedule_validator import validate


class BaseScheduleAdvisor(ABC):
    """Abstract base class for schedule advisory providers"""

    @abstractmethod
    def recommend(self, historic_records, score_records, options) -> List[ScheduledClassEntry]:
        """Return a proposed schedule"""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if provider is available"""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider identifier"""
        pass


def _accept_recommendation(proposed, context, seed=None):
    """Keep proposed entries that pass the rules against the seed and those accepted before them"""
    result = AssemblyResult(entries=list(seed or []))
    for entry in proposed:
        result.qualifying_combinations += 1
        result.candidates_considered += 1
        verdict = validate(result.entries, entry, context)
        if not verdict.is_valid:
            result.skipped_by_rule[verdict.rule] += 1
            continue
        result.entries.append(entry)
        result.added.append(entry)
    return result


def generate_schedule_with_fallback(advisor, historic_records, score_records=None, options=None,
                                    config=None, directory=None):
    """
    Ask the advisor for a schedule, falling back to the local scheduler when
    no advisor is configured, it is unavailable, it fails, or it proposes nothing
    """
    scheduler = StrictTopClassScheduler(historic_records, score_records, options=options,
                                        config=config, directory=directory)

    if advisor is None:
        return scheduler.run()

    try:
        if not advisor.health_check():
            print(f"Advisor {advisor.provider_name} unavailable - using local scheduler")
            return scheduler.run()

        proposed = advisor.recommend(scheduler.historic_records, scheduler.score_records, scheduler.options)
    except Exception as e:
        print(f"Advisor {advisor.provider_name} failed: {e} - using local scheduler")
        return scheduler.run()

    if not proposed:
        print(f"Advisor {advisor.provider_name} returned no classes - using local scheduler")
        return scheduler.run()

    context = RuleContext(
        directory=scheduler.directory,
        target_teacher_hours=scheduler.options.target_teacher_hours,
        respect_time_restrictions=scheduler.options.respect_time_restrictions
    )
    result = _accept_recommendation(proposed, context, scheduler.seed_entries())
    result.message = (f"Accepted {len(result.added)} of {len(proposed)} classes "
                      f"proposed by {advisor.provider_name}")
    print(result.message)
    return result
