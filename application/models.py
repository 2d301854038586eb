from application import db
from datetime import datetime

from application.schedule_types import HistoricClassRecord, ScoreRecord, ScheduledClassEntry

# =============================================================
# ======================== Instructors ========================
# =============================================================

class Instructor(db.Model):
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    tier = db.Column(db.String(16), nullable=False, default='standard')  # standard | new | priority | inactive

# =============================================================
# ====================== Uploaded History =====================
# =============================================================

class HistoricClass(db.Model):
    __tablename__ = 'historic_class'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    location = db.Column(db.String(64), nullable=False)
    day = db.Column(db.String(10), nullable=False)
    class_time = db.Column(db.String(16), nullable=False)
    class_format = db.Column(db.String(64), nullable=False)
    teacher_first_name = db.Column(db.String(32), nullable=False)
    teacher_last_name = db.Column(db.String(32), nullable=False, default='')
    checked_in = db.Column(db.Float, nullable=False, default=0)
    participants = db.Column(db.Float, nullable=False, default=0)
    revenue = db.Column(db.Float, nullable=False, default=0)
    late_cancellations = db.Column(db.Float, nullable=False, default=0)
    non_paid = db.Column(db.Float, nullable=False, default=0)
    tips = db.Column(db.Float, nullable=False, default=0)

    def to_record(self):
        return HistoricClassRecord(
            location=self.location,
            day=self.day,
            class_time=self.class_time,
            class_format=self.class_format,
            teacher_first_name=self.teacher_first_name,
            teacher_last_name=self.teacher_last_name or '',
            checked_in=self.checked_in or 0,
            participants=self.participants or 0,
            revenue=self.revenue or 0,
            late_cancellations=self.late_cancellations or 0,
            non_paid=self.non_paid or 0,
            tips=self.tips or 0
        )

class ClassScore(db.Model):
    __tablename__ = 'class_score'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    location = db.Column(db.String(64), nullable=False)
    day = db.Column(db.String(10), nullable=False)
    class_time = db.Column(db.String(16), nullable=False)
    class_format = db.Column(db.String(64), nullable=False)
    teacher_name = db.Column(db.String(64), nullable=False, default='')
    adjusted_score = db.Column(db.Float, nullable=False)
    popularity = db.Column(db.String(32), nullable=True)
    consistency = db.Column(db.String(32), nullable=True)
    trainer_variance = db.Column(db.Float, nullable=True)
    observations = db.Column(db.String(256), nullable=True)
    key = db.Column(db.String(256), nullable=True)
    total_classes = db.Column(db.Float, nullable=True)
    avg_fill_rate = db.Column(db.Float, nullable=True)
    revenue_per_class = db.Column(db.Float, nullable=True)

    def to_record(self):
        return ScoreRecord(
            location=self.location,
            day=self.day,
            class_time=self.class_time,
            class_format=self.class_format,
            teacher_name=self.teacher_name or '',
            adjusted_score=self.adjusted_score,
            popularity=self.popularity or '',
            consistency=self.consistency or '',
            trainer_variance=self.trainer_variance or 0,
            observations=self.observations or '',
            key=self.key or '',
            total_classes=self.total_classes or 0,
            avg_fill_rate=self.avg_fill_rate or 0,
            revenue_per_class=self.revenue_per_class or 0
        )

# =============================================================
# ===================== Generated Schedule ====================
# =============================================================

class Schedule(db.Model):
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    active = db.Column(db.Boolean, nullable=False, default=False)
    source = db.Column(db.String(16), nullable=False, default='populate')  # populate | fill | manual
    date_created = db.Column(db.DateTime, nullable=False, default=datetime.now)

    entries = db.relationship('ScheduledClass', back_populates='schedule', cascade='all, delete-orphan')


class ScheduledClass(db.Model):
    __tablename__ = 'scheduled_class'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    entry_id = db.Column(db.String(64), nullable=False)
    day = db.Column(db.String(10), nullable=False)
    time = db.Column(db.String(5), nullable=False)
    location = db.Column(db.String(64), nullable=False)
    class_format = db.Column(db.String(64), nullable=False)
    teacher_first_name = db.Column(db.String(32), nullable=False)
    teacher_last_name = db.Column(db.String(32), nullable=False, default='')
    duration = db.Column(db.Float, nullable=False, default=1.0)
    participants = db.Column(db.Integer, nullable=True)
    revenue = db.Column(db.Integer, nullable=True)
    is_top_performer = db.Column(db.Boolean, nullable=False, default=False)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    is_hosted = db.Column(db.Boolean, nullable=False, default=False)
    client_details = db.Column(db.String(256), nullable=True)
    cover_teacher = db.Column(db.String(64), nullable=True)

    schedule_id = db.Column(db.Integer, db.ForeignKey('schedule.id'), nullable=False)
    schedule = db.relationship('Schedule', back_populates='entries')

    __table_args__ = (
        db.UniqueConstraint('schedule_id', 'entry_id', name='unique_entry'),
    )

    @classmethod
    def from_entry(cls, entry):
        return cls(
            entry_id=entry.id,
            day=entry.day,
            time=entry.time,
            location=entry.location,
            class_format=entry.class_format,
            teacher_first_name=entry.teacher_first_name,
            teacher_last_name=entry.teacher_last_name,
            duration=entry.duration,
            participants=entry.participants,
            revenue=entry.revenue,
            is_top_performer=entry.is_top_performer,
            is_locked=entry.is_locked,
            is_private=entry.is_private,
            is_hosted=entry.is_hosted,
            client_details=entry.client_details,
            cover_teacher=entry.cover_teacher
        )

    def to_entry(self):
        return ScheduledClassEntry(
            id=self.entry_id,
            day=self.day,
            time=self.time,
            location=self.location,
            class_format=self.class_format,
            teacher_first_name=self.teacher_first_name,
            teacher_last_name=self.teacher_last_name or '',
            duration=self.duration,
            participants=self.participants,
            revenue=self.revenue,
            is_top_performer=self.is_top_performer,
            is_locked=self.is_locked,
            is_private=self.is_private,
            is_hosted=self.is_hosted,
            client_details=self.client_details,
            cover_teacher=self.cover_teacher
        )
