from application.data_processor import DataDrivenProcessor, load_database_driven
from application.models import Instructor, HistoricClass, ClassScore
from application.schedule_types import InstructorTier
from application.util import save_schedule_snapshot


def _historic(**overrides):
    values = dict(location='Kenkere House', day='Monday', class_time='07:30:00',
                  class_format='Studio Barre 57', teacher_first_name='Anisha', teacher_last_name='Shah',
                  checked_in=8, participants=10, revenue=4000, late_cancellations=0, non_paid=0, tips=0)
    values.update(overrides)
    return HistoricClass(**values)


def test_empty_database(db):
    data = load_database_driven(verbose=False)
    assert data['total_historic_classes'] == 0
    assert data['existing_schedule'] == []
    assert data['active_schedule_id'] is None


def test_packages_history_scores_and_schedule(db, make_entry):
    db.session.add_all([
        _historic(),
        _historic(day='Tuesday', teacher_first_name='Rohan', teacher_last_name='Dahima'),
        ClassScore(location='Kenkere House', day='Monday', class_time='07:30:00',
                   class_format='Studio Barre 57', adjusted_score=80),
    ])
    db.session.commit()
    schedule = save_schedule_snapshot([make_entry()], 'populate')

    data = load_database_driven(verbose=False)
    assert data['total_historic_classes'] == 2
    assert data['total_scores'] == 1
    assert data['all_teachers'] == ['Anisha Shah', 'Rohan Dahima']
    assert data['all_locations'] == ['Kenkere House']
    assert data['classes_by_day'] == {'Monday': 1, 'Tuesday': 1}
    assert data['active_schedule_id'] == schedule.id
    assert [entry.teacher_name for entry in data['existing_schedule']] == ['Anisha Shah']


def test_instructor_rows_extend_configured_tiers(db):
    db.session.add_all([
        Instructor(name='Pushyank Nahar', tier='inactive'),
        Instructor(name='Shruti Kulkarni', tier='new'),
        Instructor(name='Cauveri Vikrant', tier='unknown'),
    ])
    db.session.commit()

    processor = DataDrivenProcessor(verbose=False)
    directory = processor.load_and_process_data()['directory']
    assert directory.tier_of('Pushyank Nahar') == InstructorTier.INACTIVE
    assert directory.tier_of('Shruti Kulkarni') == InstructorTier.NEW
    # configured lists still apply
    assert directory.is_inactive('Nishanth')
    assert directory.is_priority('Cauveri Vikrant')
