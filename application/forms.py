from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed
from wtforms.fields import IntegerField, FloatField, SelectField, BooleanField, SubmitField
from wtforms.validators import NumberRange, AnyOf

from application.schedule_types import DAYS_OF_WEEK

OPTIMIZATION_TYPES = ['revenue', 'attendance', 'balanced']


class AssemblerOptionsForm(FlaskForm):
    """Options accepted by the populate and fill endpoints (JSON bodies, no CSRF)"""

    class Meta:
        csrf = False

    prioritize_top_performers = BooleanField("Prioritize Top Performers", default=True)
    balance_shifts = BooleanField("Balance Shifts", default=False,
                                  description="Skip classes that would give an instructor a split shift")
    optimize_teacher_hours = BooleanField("Optimize Teacher Hours", default=True)
    respect_time_restrictions = BooleanField("Respect Time Restrictions", default=True,
                                             description="Keep classes out of the midday band")
    minimize_trainers_per_shift = BooleanField("Minimize Trainers Per Shift", default=True)
    fill_empty_slots_only = BooleanField("Fill Empty Slots Only", default=False)
    strict_top_classes_only = BooleanField("Strict Top Classes Only", default=True)

    optimization_type = SelectField(
        "Optimization Type",
        choices=[(value, value.title()) for value in OPTIMIZATION_TYPES],
        default='balanced'
    )
    target_day = SelectField(
        "Target Day",
        choices=[('', 'All days')] + [(day, day) for day in DAYS_OF_WEEK],
        default=''
    )
    iteration = IntegerField("Iteration", validators=[NumberRange(min=0)], default=0)
    target_teacher_hours = FloatField(
        "Target Teacher Hours",
        validators=[NumberRange(min=1, max=40)],
        default=15,
        description="Weekly cap for standard instructors"
    )

    def to_options(self):
        """Flat options dict for the scheduler"""
        return {
            'prioritize_top_performers': self.prioritize_top_performers.data,
            'balance_shifts': self.balance_shifts.data,
            'optimize_teacher_hours': self.optimize_teacher_hours.data,
            'respect_time_restrictions': self.respect_time_restrictions.data,
            'minimize_trainers_per_shift': self.minimize_trainers_per_shift.data,
            'fill_empty_slots_only': self.fill_empty_slots_only.data,
            'strict_top_classes_only': self.strict_top_classes_only.data,
            'optimization_type': self.optimization_type.data,
            'target_day': self.target_day.data or None,
            'iteration': self.iteration.data,
            'target_teacher_hours': self.target_teacher_hours.data,
        }


class DataUploadForm(FlaskForm):

    class Meta:
        csrf = False

    historic_file = FileField(
        'Historic Classes CSV',
        validators=[FileAllowed(['csv'], 'CSV files only!')]
    )
    scores_file = FileField(
        'Class Scores CSV',
        validators=[FileAllowed(['csv', 'tsv', 'txt'], 'CSV or TSV files only!')]
    )
    submit = SubmitField('Upload Files')


class InstructorTierForm(FlaskForm):

    class Meta:
        csrf = False

    tier = SelectField(
        'Tier',
        choices=[('standard', 'Standard'), ('new', 'New'), ('priority', 'Priority'), ('inactive', 'Inactive')],
        validators=[AnyOf(['standard', 'new', 'priority', 'inactive'])]
    )
