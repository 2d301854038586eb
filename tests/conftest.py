"""
Pytest configuration and fixtures for the schedule engine tests.

This module provides shared fixtures for:
- Flask application with test configuration
- Database setup and teardown
- Record factories for historic rows and scheduled classes
- An instructor directory independent of the environment
"""
import itertools

import pytest

from application import create_app
from application import db as _db
from application.policy_rules import InstructorDirectory, RuleContext
from application.schedule_types import HistoricClassRecord, ScheduledClassEntry


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """
    Create application for the tests.

    Uses TestingConfig with in-memory SQLite database.
    """
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
        'WTF_CSRF_ENABLED': False,
        'GENERATED_SCHEDULES_FOLDER': str(tmp_path_factory.mktemp('generated_schedules')),
    })
    return app


@pytest.fixture(scope='function')
def db(app):
    """
    Create database for the tests.

    Creates all tables before each test function and drops them after.
    """
    with app.app_context():
        _db.drop_all()
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app, db):
    with app.test_client() as client:
        yield client


@pytest.fixture
def directory():
    return InstructorDirectory(
        inactive=['Nishanth', 'Saniya'],
        new=['Kabir', 'Karan'],
        priority=['Anisha', 'Karanvir'],
    )


@pytest.fixture
def context(directory):
    return RuleContext(directory=directory)


_ids = itertools.count(1)


def _build_entry(**overrides):
    """Build a scheduled class with sensible defaults"""
    values = {
        'id': f"test-{next(_ids)}",
        'day': 'Monday',
        'time': '09:00',
        'location': 'Kwality House, Kemps Corner',
        'class_format': 'Studio Barre 57',
        'teacher_first_name': 'Anisha',
        'teacher_last_name': 'Shah',
        'duration': 1.0,
    }
    values.update(overrides)
    return ScheduledClassEntry(**values)


def _build_record(**overrides):
    """Build a historic class row with sensible defaults"""
    values = {
        'location': 'Kwality House, Kemps Corner',
        'day': 'Monday',
        'class_time': '09:00:00',
        'class_format': 'Studio Barre 57',
        'teacher_first_name': 'Anisha',
        'teacher_last_name': 'Shah',
        'checked_in': 8,
        'participants': 10,
        'revenue': 4000,
        'late_cancellations': 1,
        'non_paid': 0,
        'tips': 0,
    }
    values.update(overrides)
    return HistoricClassRecord(**values)


def _build_history(counts, **overrides):
    """One historic row per checked-in count, all in the same slot"""
    return [_build_record(checked_in=count, **overrides) for count in counts]


@pytest.fixture
def make_entry():
    return _build_entry


@pytest.fixture
def make_record():
    return _build_record


@pytest.fixture
def make_history():
    return _build_history
