import pandas as pd
import numpy as np
from functools import cmp_to_key

from application.policy_rules import default_directory
from application.schedule_types import RankedCombination

# ==================== EDITABLE CONFIGURATION ====================

STRICT_MIN_AVG_CHECKED_IN = 5.0  # STRICT keeps groups strictly above this
EXCLUDED_FORMAT_KEYWORDS = ('hosted', 'private')
TOP_PERFORMER_AVG = 6.0
TOP_PERFORMER_SCORE = 100

# ==================== END EDITABLE CONFIGURATION ====================

SLOT_KEYS = ['class_format', 'location', 'day', 'time']

HISTORIC_COLUMNS = [
    'location', 'day', 'time', 'class_format', 'teacher', 'checked_in',
    'participants', 'revenue', 'late_cancellations', 'non_paid', 'tips'
]


def historic_frame(records, directory=None, exclude_formats=True):
    """
    Build a DataFrame of usable historic rows: inactive instructors and
    hosted/private classes are dropped.
    """
    directory = directory or default_directory()

    df = pd.DataFrame([{
        'location': r.location,
        'day': r.day,
        'time': r.time_label,
        'class_format': r.class_format,
        'teacher': r.teacher_name,
        'checked_in': r.checked_in,
        'participants': r.participants,
        'revenue': r.revenue,
        'late_cancellations': r.late_cancellations,
        'non_paid': r.non_paid,
        'tips': r.tips
    } for r in records], columns=HISTORIC_COLUMNS)

    if df.empty:
        return df

    active = ~df['teacher'].map(directory.is_inactive).astype(bool)
    df = df[active]

    if exclude_formats:
        lower_format = df['class_format'].str.lower()
        for keyword in EXCLUDED_FORMAT_KEYWORDS:
            df = df[~lower_format.loc[df.index].str.contains(keyword, regex=False)]

    return df.reset_index(drop=True)


def _find_score(scores, location, day, time, class_format, teacher=None):
    for score in scores:
        if score.matches(location, day, time, class_format, teacher):
            return score
    return None


def compare_combinations(a, b):
    """Adjusted score first when both sides carry one, else average checked-in"""
    if a.adjusted_score and b.adjusted_score:
        return (b.adjusted_score > a.adjusted_score) - (b.adjusted_score < a.adjusted_score)
    return (b.avg_checked_in > a.avg_checked_in) - (b.avg_checked_in < a.avg_checked_in)


def rank_combinations(records, scores=None, strict=True, threshold=STRICT_MIN_AVG_CHECKED_IN,
                      min_avg=None, directory=None, verbose=True):
    """
    Rank historic class/location/day/time combinations.

    STRICT mode groups by slot only, picks the instructor with the largest
    share of checked-in clients as representative and keeps groups whose
    average checked-in count is above ``threshold``. The loose mode groups by
    instructor as well and applies ``min_avg`` as an inclusive floor when
    given.
    """
    scores = scores or []
    df = historic_frame(records, directory)

    if verbose:
        mode = 'STRICT' if strict else 'loose'
        print(f"Scoring {len(df)} active historic rows ({mode} mode)")

    if df.empty:
        return []

    group_keys = SLOT_KEYS if strict else SLOT_KEYS + ['teacher']

    grouped = df.groupby(group_keys, sort=False).agg(
        checked_in=('checked_in', 'sum'),
        revenue=('revenue', 'sum'),
        frequency=('checked_in', 'size')
    ).reset_index()

    if strict:
        teacher_totals = df.groupby(SLOT_KEYS + ['teacher'], sort=False)['checked_in'].sum().reset_index()
        best_idx = teacher_totals.groupby(SLOT_KEYS, sort=False)['checked_in'].idxmax()
        best = teacher_totals.loc[best_idx, SLOT_KEYS + ['teacher']]
        grouped = grouped.merge(best, on=SLOT_KEYS, how='left')

    grouped['avg_checked_in'] = np.round(grouped['checked_in'] / grouped['frequency'], 1)
    grouped['avg_revenue'] = grouped['revenue'] / grouped['frequency']

    if strict:
        grouped = grouped[grouped['avg_checked_in'] > threshold]
    elif min_avg is not None:
        grouped = grouped[grouped['avg_checked_in'] >= min_avg]

    combinations = []
    for row in grouped.itertuples(index=False):
        teacher = row.teacher if isinstance(row.teacher, str) else ''
        score = _find_score(scores, row.location, row.day, row.time, row.class_format,
                            None if strict else teacher)
        combinations.append(RankedCombination(
            class_format=row.class_format,
            location=row.location,
            day=row.day,
            time=row.time,
            teacher=teacher,
            avg_checked_in=float(row.avg_checked_in),
            avg_revenue=float(row.avg_revenue),
            frequency=int(row.frequency),
            adjusted_score=score.adjusted_score if score else None,
            popularity=score.popularity if score else None,
            consistency=score.consistency if score else None
        ))

    combinations.sort(key=cmp_to_key(compare_combinations))

    if verbose:
        print(f"{len(combinations)} combinations qualify")
        for index, combo in enumerate(combinations[:10], start=1):
            print(f"  {index}. {combo.class_format} at {combo.location} on {combo.day} {combo.time} "
                  f"with {combo.teacher}: {combo.avg_checked_in} avg (Score: {combo.adjusted_score or 'N/A'})")

    return combinations


def strict_top_classes(records, scores=None, threshold=STRICT_MIN_AVG_CHECKED_IN, directory=None, verbose=True):
    return rank_combinations(records, scores, strict=True, threshold=threshold,
                             directory=directory, verbose=verbose)


def is_top_performer(combination):
    if combination.avg_checked_in >= TOP_PERFORMER_AVG:
        return True
    return bool(combination.adjusted_score and combination.adjusted_score > TOP_PERFORMER_SCORE)


def slot_analysis(records, location, day, time, directory=None):
    """Detailed historic statistics for one location/day/time slot"""
    df = historic_frame(records, directory)
    if df.empty:
        return None

    df = df[(df['location'] == location) & (df['day'] == day) & (df['time'] == time[:5])]
    if df.empty:
        return None

    total_classes = len(df)
    total_checked_in = df['checked_in'].sum()
    total_participants = df['participants'].sum()
    total_revenue = df['revenue'].sum()
    total_late_cancels = df['late_cancellations'].sum()
    total_non_paid = df['non_paid'].sum()
    total_tips = df['tips'].sum()
    non_empty = df[df['checked_in'] > 0]

    avg_with_empty = round(total_checked_in / total_classes, 2)
    avg_without_empty = round(non_empty['checked_in'].mean(), 2) if len(non_empty) else 0
    revenue_per_class = round(total_revenue / total_classes, 2)

    fill_rate = round(total_checked_in / total_participants * 100, 2) if total_participants > 0 else 0
    revenue_per_seat = round(total_revenue / total_checked_in, 2) if total_checked_in > 0 else 0
    late_cancel_rate = round(total_late_cancels / total_participants * 100, 2) if total_participants > 0 else 0
    non_paid_rate = round(total_non_paid / total_participants * 100, 2) if total_participants > 0 else 0

    adjusted_score = round(
        avg_with_empty * 0.4
        + revenue_per_class / 100 * 0.3
        + (100 - late_cancel_rate) / 100 * 0.2
        + fill_rate / 100 * 0.1,
        2
    )

    teacher_stats = df.groupby('teacher', sort=False).agg(
        checked_in=('checked_in', 'sum'),
        revenue=('revenue', 'sum'),
        count=('checked_in', 'size')
    )
    teacher_stats['weighted_avg'] = np.round(
        teacher_stats['checked_in'] / teacher_stats['count'] * 0.6
        + teacher_stats['revenue'] / teacher_stats['count'] / 1000 * 0.4,
        2
    )
    top_teachers = teacher_stats.sort_values('weighted_avg', ascending=False, kind='stable').head(3)

    return {
        'total_classes': int(total_classes),
        'total_checked_in': float(total_checked_in),
        'total_participants': float(total_participants),
        'empty_classes': int(total_classes - len(non_empty)),
        'non_empty_classes': int(len(non_empty)),
        'avg_attendance_with_empty': float(avg_with_empty),
        'avg_attendance_without_empty': float(avg_without_empty),
        'total_revenue': float(total_revenue),
        'revenue_per_class': float(revenue_per_class),
        'avg_late_cancels': round(float(total_late_cancels) / total_classes, 2),
        'avg_non_paid_customers': round(float(total_non_paid) / total_classes, 2),
        'total_tips': float(total_tips),
        'tips_per_class': round(float(total_tips) / total_classes, 2),
        'avg_fill_rate': float(fill_rate),
        'revenue_per_seat': float(revenue_per_seat),
        'late_cancel_rate': float(late_cancel_rate),
        'non_paid_rate': float(non_paid_rate),
        'adjusted_score': float(adjusted_score),
        'top_teacher_recommendations': [{
            'teacher': teacher,
            'weighted_avg': float(row['weighted_avg']),
            'class_count': int(row['count'])
        } for teacher, row in top_teachers.iterrows()]
    }


def best_teacher_for_class(records, class_format, location, day, time, directory=None):
    """Instructor with the highest average checked-in for a class in a slot"""
    df = historic_frame(records, directory, exclude_formats=False)
    if df.empty:
        return None

    df = df[(df['class_format'] == class_format) & (df['location'] == location)
            & (df['day'] == day) & (df['time'] == time[:5])]
    if df.empty:
        return None

    averages = df.groupby('teacher', sort=False)['checked_in'].mean().round(1)
    return averages.sort_values(ascending=False, kind='stable').index[0]
