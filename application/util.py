from collections import defaultdict
from io import StringIO

import pandas as pd

from application import db
from application.models import HistoricClass, ClassScore, Schedule, ScheduledClass
from application.performance_scorer import historic_frame
from application.policy_rules import default_directory
from application.schedule_types import DAYS_OF_WEEK, to_number, to_text
from application.time_utils import end_time

SPECIALTY_MIN_AVG = 5.0
SPECIALTY_LIMIT = 5

HISTORIC_COLUMNS = {
    'Location': 'location',
    'Day of Week': 'day',
    'Class Time': 'class_time',
    'Cleaned Class': 'class_format',
    'Teacher First Name': 'teacher_first_name',
    'Teacher Last Name': 'teacher_last_name',
    'Checked In': 'checked_in',
    'Participants': 'participants',
    'Total Revenue': 'revenue',
    'Late Cancellations': 'late_cancellations',
    'Non Paid Customers': 'non_paid',
    'Tip': 'tips',
}

SCORE_COLUMNS = {
    'Location': 'location',
    'Day of Week': 'day',
    'Class Time': 'class_time',
    'Cleaned Class': 'class_format',
    'Trainer Name': 'teacher_name',
    'Adjusted Score': 'adjusted_score',
    'Popularity': 'popularity',
    'Consistency': 'consistency',
    'Trainer Variance': 'trainer_variance',
    'Observations': 'observations',
}

OPTIONAL_SCORE_COLUMNS = {
    'Key': 'key',
    'Total Classes': 'total_classes',
    'Avg Fill Rate (%)': 'avg_fill_rate',
    'Revenue Per Class': 'revenue_per_class',
}

# Location colour mapping
LOCATION_COLORS = {
    'Kwality House, Kemps Corner': '#FF6B6B',
    'Supreme HQ, Bandra': '#4ECDC4',
    'Kenkere House': '#45B7D1',
}


# =============================================================
# ======================== Aggregation ========================
# =============================================================

def teacher_hours(entries, directory=None):
    """Weekly hours per instructor, inactive instructors excluded"""
    directory = directory or default_directory()
    hours = defaultdict(float)
    for entry in entries:
        if directory.is_inactive(entry.teacher_name):
            continue
        hours[entry.teacher_name] = round(hours[entry.teacher_name] + entry.duration, 1)
    return dict(hours)


def class_format_counts(entries):
    counts = defaultdict(int)
    for entry in entries:
        counts[entry.class_format] += 1
    return dict(counts)


def class_formats_for_day(entries, day):
    return class_format_counts([entry for entry in entries if entry.day == day])


def teacher_specialties(records, teacher_name, directory=None):
    """Formats an instructor averages at least 5 checked-in for, best first, at most 5"""
    directory = directory or default_directory()
    if directory.is_inactive(teacher_name):
        return []

    df = historic_frame(records, directory, exclude_formats=False)
    if df.empty:
        return []

    df = df[df['teacher'] == teacher_name]
    if df.empty:
        return []

    averages = df.groupby('class_format', sort=False)['checked_in'].mean()
    averages = averages[averages >= SPECIALTY_MIN_AVG].sort_values(ascending=False, kind='stable')
    return list(averages.index[:SPECIALTY_LIMIT])


def format_schedule_for_display(entries):
    """Format schedule entries as JSON rows ordered by day and time"""
    day_order = {day: index for index, day in enumerate(DAYS_OF_WEEK)}

    formatted_classes = []
    for entry in entries:
        formatted_entry = entry.to_dict()
        formatted_entry.update({
            'teacherName': entry.teacher_name,
            'dayOrder': day_order.get(entry.day, 7),
            'endTime': end_time(entry.time, entry.duration),
            'color': LOCATION_COLORS.get(entry.location, '#95A5A6'),
        })
        formatted_classes.append(formatted_entry)

    # Sort by day and time
    formatted_classes.sort(key=lambda x: (x['dayOrder'], x['time']))

    return formatted_classes


def transform_schedule_for_excel(entries):
    """
    Group entries for the workbook export

    Expected format:
    {
        "Location": {
            "Day": [
                {"time": "07:00", "name": "Studio Barre 57", "teacher": "Anisha Shah", "duration": 1.0}
            ]
        }
    }
    """
    processed_data = {}
    for entry in sorted(entries, key=lambda e: (e.location, e.time)):
        location_data = processed_data.setdefault(entry.location, {})
        location_data.setdefault(entry.day, []).append({
            'time': entry.time,
            'name': entry.class_format,
            'teacher': entry.teacher_name,
            'duration': entry.duration,
        })
    return processed_data


# =============================================================
# ======================= CSV Ingestion =======================
# =============================================================

def _read_delimited(file):
    """Read a tab or comma separated upload, detecting the separator from the header"""
    content = file.read()
    if isinstance(content, bytes):
        content = content.decode('utf-8-sig')
    header = content.split('\n', 1)[0]
    sep = '\t' if '\t' in header else ','
    return pd.read_csv(StringIO(content), sep=sep, dtype=str, keep_default_na=False)


def _check_columns(df, required_columns):
    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        raise ValueError(f"Missing required columns: {', '.join(missing_columns)}")


def process_historic_file(file):
    """Process historic classes CSV file; replaces all stored history"""
    try:
        df = _read_delimited(file)
        df.columns = [str(col).strip() for col in df.columns]
        print(f"Loaded {len(df)} rows from historic classes CSV")

        if df.empty:
            raise ValueError("CSV file is empty")

        _check_columns(df, HISTORIC_COLUMNS.keys())

        with db.session.no_autoflush:
            deleted_count = db.session.query(HistoricClass).delete()
            print(f"Deleted {deleted_count} existing historic class records")

            processed_count = 0
            skipped_count = 0
            for _, row in df.iterrows():
                values = {field: row[column] for column, field in HISTORIC_COLUMNS.items()}

                identity = [to_text(values[key]) for key in
                            ('location', 'day', 'class_time', 'class_format', 'teacher_first_name')]
                if not all(identity):
                    skipped_count += 1
                    continue

                historic = HistoricClass(
                    location=to_text(values['location']),
                    day=to_text(values['day']),
                    class_time=to_text(values['class_time']),
                    class_format=to_text(values['class_format']),
                    teacher_first_name=to_text(values['teacher_first_name']),
                    teacher_last_name=to_text(values['teacher_last_name']),
                    checked_in=to_number(values['checked_in']),
                    participants=to_number(values['participants']),
                    revenue=to_number(values['revenue']),
                    late_cancellations=to_number(values['late_cancellations']),
                    non_paid=to_number(values['non_paid']),
                    tips=to_number(values['tips'])
                )
                db.session.add(historic)
                processed_count += 1

        if skipped_count:
            print(f"Skipped {skipped_count} rows with missing identity fields")
        return f"Processed {processed_count} historic class records"
    except Exception as e:
        print(f"Error in process_historic_file: {e}")
        raise


def process_scores_file(file):
    """Process class scores file (tab or comma separated); replaces all stored scores"""
    try:
        df = _read_delimited(file)
        df.columns = [str(col).strip() for col in df.columns]
        print(f"Loaded {len(df)} rows from class scores file")

        if df.empty:
            raise ValueError("CSV file is empty")

        _check_columns(df, SCORE_COLUMNS.keys())

        with db.session.no_autoflush:
            deleted_count = db.session.query(ClassScore).delete()
            print(f"Deleted {deleted_count} existing class score records")

            processed_count = 0
            dropped_count = 0
            for _, row in df.iterrows():
                adjusted_score = to_number(row['Adjusted Score'])
                if adjusted_score <= 0:
                    dropped_count += 1
                    continue

                extras = {
                    field: (to_text(row[column]) if field == 'key' else to_number(row[column]))
                    for column, field in OPTIONAL_SCORE_COLUMNS.items() if column in df.columns
                }

                score = ClassScore(
                    location=to_text(row['Location']),
                    day=to_text(row['Day of Week']),
                    class_time=to_text(row['Class Time']),
                    class_format=to_text(row['Cleaned Class']),
                    teacher_name=to_text(row['Trainer Name']),
                    adjusted_score=adjusted_score,
                    popularity=to_text(row['Popularity']),
                    consistency=to_text(row['Consistency']),
                    trainer_variance=to_number(row['Trainer Variance']),
                    observations=to_text(row['Observations']),
                    **extras
                )
                db.session.add(score)
                processed_count += 1

        if dropped_count:
            print(f"Dropped {dropped_count} rows without a positive adjusted score")
        return f"Processed {processed_count} class score records"
    except Exception as e:
        print(f"Error in process_scores_file: {e}")
        raise


# =============================================================
# ========================= Snapshots =========================
# =============================================================

def scheduler_config(app_config):
    """Scheduler class constants overridden from the app config"""
    return {
        'strict_threshold': app_config.get('SCHEDULER_STRICT_THRESHOLD', 5.0),
        'fill_quota': app_config.get('SCHEDULER_FILL_QUOTA', 5),
    }


def save_schedule_snapshot(entries, source):
    """Persist entries as a new active schedule"""
    Schedule.query.update({Schedule.active: False})
    db.session.flush()

    schedule = Schedule(active=True, source=source)
    db.session.add(schedule)
    db.session.flush()  # Ensure it is generated before it is used

    for entry in entries:
        row = ScheduledClass.from_entry(entry)
        row.schedule_id = schedule.id
        db.session.add(row)

    db.session.commit()
    return schedule
