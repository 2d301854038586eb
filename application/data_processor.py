from datetime import datetime
from collections import defaultdict

from flask import current_app

from application.models import Instructor, HistoricClass, ClassScore, Schedule
from application.policy_rules import InstructorDirectory
from application.schedule_types import InstructorTier, DAYS_OF_WEEK


class DataDrivenProcessor:
    """
    Reads historic classes, score feed, instructor tiers and the active
    schedule from the database and packages them for the scheduler
    """

    def __init__(self, verbose=True):
        self.verbose = verbose
        self._log(f"Current Date and Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        self._log("DATA-DRIVEN PROCESSOR - DB DRIVEN")
        self._log("=" * 70)

    def _log(self, message):
        if self.verbose:
            print(message)

    def load_and_process_data(self):
        """Main data loading - everything from database"""
        self._log("Loading ALL data from database...")

        self._load_all_from_db()
        self.directory = self._build_directory()

        self._log(f"✓ Loaded {len(self.historic_records)} historic classes")
        self._log(f"✓ Loaded {len(self.score_records)} score rows")
        self._log(f"✓ Loaded {len(self.active_entries)} classes from the active schedule")

        return self._package_comprehensive_data()

    def _load_all_from_db(self):
        """Load all available data from database models"""
        self.historic_records = [row.to_record() for row in HistoricClass.query.all()]
        self.score_records = [row.to_record() for row in ClassScore.query.all()]
        self.instructors = Instructor.query.all()

        active = Schedule.query.filter_by(active=True).order_by(Schedule.date_created.desc()).first()
        self.active_schedule = active
        self.active_entries = [row.to_entry() for row in active.entries] if active else []

    def _build_directory(self):
        """Tiers from configuration, overridden by tiers stored on Instructor rows"""
        tiers = {
            InstructorTier.INACTIVE: list(current_app.config.get('INACTIVE_TEACHERS', [])),
            InstructorTier.NEW: list(current_app.config.get('NEW_TEACHERS', [])),
            InstructorTier.PRIORITY: list(current_app.config.get('PRIORITY_TEACHERS', [])),
        }
        for instructor in self.instructors:
            try:
                tier = InstructorTier(instructor.tier)
            except ValueError:
                self._log(f"  Unknown tier '{instructor.tier}' for {instructor.name}, treating as standard")
                continue
            if tier in tiers:
                tiers[tier].append(instructor.name)

        self._log(f"  ✓ Instructor tiers: {len(tiers[InstructorTier.INACTIVE])} inactive, "
                  f"{len(tiers[InstructorTier.NEW])} new, {len(tiers[InstructorTier.PRIORITY])} priority")
        return InstructorDirectory(
            inactive=tiers[InstructorTier.INACTIVE],
            new=tiers[InstructorTier.NEW],
            priority=tiers[InstructorTier.PRIORITY]
        )

    def _package_comprehensive_data(self):
        """Package all data comprehensively"""
        classes_by_day = defaultdict(int)
        for record in self.historic_records:
            classes_by_day[record.day] += 1

        all_locations = sorted({record.location for record in self.historic_records})
        all_teachers = sorted({record.teacher_name for record in self.historic_records})

        self._log("\nDATA-DRIVEN ANALYSIS:")
        self._log(f"  Locations in history: {len(all_locations)}")
        self._log(f"  Instructors in history: {len(all_teachers)}")
        for day in DAYS_OF_WEEK:
            if classes_by_day.get(day):
                self._log(f"    {day}: {classes_by_day[day]} historic classes")

        return {
            'historic_records': self.historic_records,
            'score_records': self.score_records,
            'directory': self.directory,
            'active_schedule_id': self.active_schedule.id if self.active_schedule else None,
            'existing_schedule': self.active_entries,

            'all_locations': all_locations,
            'all_teachers': all_teachers,
            'classes_by_day': dict(classes_by_day),
            'total_historic_classes': len(self.historic_records),
            'total_scores': len(self.score_records)
        }


def load_database_driven(verbose=True):
    """
    Load data using the data-driven processor from database

    Returns:
        Data package with historic records, scores, directory and active schedule
    """
    processor = DataDrivenProcessor(verbose=verbose)
    return processor.load_and_process_data()
