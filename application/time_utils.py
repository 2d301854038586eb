from datetime import datetime, timedelta

# ==================== STUDIO CONFIGURATION ====================

BUCKET_MINUTES = 15

# Parallel studios per location
STUDIO_CAPACITIES = {
    'Kwality House, Kemps Corner': 2,
    'Supreme HQ, Bandra': 3,
    'Kenkere House': 2
}

LOCATIONS = list(STUDIO_CAPACITIES.keys())

# Bookable 15 minute slots across the operating day
ALL_TIME_SLOTS = [f"{h:02d}:{m:02d}" for h in range(7, 21) for m in (0, 15, 30, 45)]

MORNING_SHIFT_START = 7
MORNING_SHIFT_END = 12
EVENING_SHIFT_START = 17
EVENING_SHIFT_END = 20

# ==================== END STUDIO CONFIGURATION ====================


def parse_time(time_str):
    """Parse the significant 'HH:MM' part of a class time"""
    return datetime.strptime(str(time_str).strip()[:5], '%H:%M')


def time_to_minutes(time_str):
    t = parse_time(time_str)
    return t.hour * 60 + t.minute


def add_minutes(time_str, minutes):
    """Add minutes to an 'HH:MM' time and return 'HH:MM'"""
    total = time_to_minutes(time_str) + int(round(minutes))
    return f"{total // 60:02d}:{total % 60:02d}"


def duration_minutes(duration_hours):
    """Duration in minutes rounded to the nearest bucket"""
    hours = float(duration_hours)
    return int(round(hours * 60 / BUCKET_MINUTES)) * BUCKET_MINUTES


def occupied_buckets(start_time, duration_hours):
    """Get all 15-minute buckets a class occupies, in order"""
    start = parse_time(start_time)
    end = start + timedelta(minutes=duration_minutes(duration_hours))

    buckets = []
    current = start
    while current < end:
        buckets.append(current.strftime('%H:%M'))
        current += timedelta(minutes=BUCKET_MINUTES)

    return buckets


def end_time(start_time, duration_hours):
    return add_minutes(start_time, duration_minutes(duration_hours))


def capacity_at(location):
    """Maximum parallel classes for a location"""
    return STUDIO_CAPACITIES.get(location, 1)


def fits_capacity(schedule, candidate):
    """Check a class can go into a studio at its location without exceeding capacity"""
    max_capacity = capacity_at(candidate.location)
    candidate_buckets = occupied_buckets(candidate.time, candidate.duration)

    same_slot = [
        cls for cls in schedule
        if cls.location == candidate.location and cls.day == candidate.day
    ]
    occupied = [set(occupied_buckets(cls.time, cls.duration)) for cls in same_slot]

    for bucket in candidate_buckets:
        in_use = sum(1 for buckets in occupied if bucket in buckets)
        if in_use >= max_capacity:
            return False

    return True


def conflicts_with_instructor(schedule, candidate):
    """Check overlapping time or a second location for the same instructor and day"""
    teacher = candidate.teacher_name
    candidate_buckets = set(occupied_buckets(candidate.time, candidate.duration))

    same_day = [
        cls for cls in schedule
        if cls.day == candidate.day and cls.teacher_name == teacher
    ]

    for cls in same_day:
        if candidate_buckets & set(occupied_buckets(cls.time, cls.duration)):
            return True

    # One location per day
    if same_day and same_day[0].location != candidate.location:
        return True

    return False


def shift_type(time_str):
    """Classify a start time as morning, evening or afternoon"""
    hour = parse_time(time_str).hour
    if MORNING_SHIFT_START <= hour < MORNING_SHIFT_END:
        return 'morning'
    if EVENING_SHIFT_START <= hour <= EVENING_SHIFT_END:
        return 'evening'
    return 'afternoon'


def consecutive_class_count(schedule, teacher, day, time, duration=1.0):
    """
    Longest run of back-to-back classes for an instructor on a day once a
    class at ``time`` is inserted. Classes are adjacent when one starts within
    15 minutes of the previous one ending.
    """
    day_classes = sorted(
        ((cls.time, cls.duration) for cls in schedule
         if cls.day == day and cls.teacher_name == teacher),
        key=lambda item: time_to_minutes(item[0])
    )
    if not day_classes:
        return 1

    day_classes.append((time, duration))
    day_classes.sort(key=lambda item: time_to_minutes(item[0]))

    longest = 1
    current = 1
    for i in range(1, len(day_classes)):
        prev_time, prev_duration = day_classes[i - 1]
        prev_end = time_to_minutes(prev_time) + duration_minutes(prev_duration)
        gap = abs(time_to_minutes(day_classes[i][0]) - prev_end)

        if gap <= BUCKET_MINUTES:
            current += 1
        else:
            longest = max(longest, current)
            current = 1

    return max(longest, current)


def is_weekend(day):
    return day in ('Saturday', 'Sunday')


def is_time_restricted(time_str, day):
    """Midday band: 12:00-16:59 on weekdays, 12:00-15:59 on weekends"""
    hour = parse_time(time_str).hour
    if is_weekend(day):
        return 12 <= hour < 16
    return 12 <= hour < 17


def available_time_slots(day):
    """Bookable start times for a day outside the restricted band"""
    return [slot for slot in ALL_TIME_SLOTS if not is_time_restricted(slot, day)]
