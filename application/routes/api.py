from flask import Blueprint, request, jsonify, send_file, current_app
from application import db
from application.forms import AssemblerOptionsForm, DataUploadForm, InstructorTierForm
from application.models import Instructor, Schedule, ScheduledClass

from application.advisory import generate_schedule_with_fallback
from application.data_processor import load_database_driven
from application.enhanced_scheduler import execute_fill_additional, normalize_option_keys, summarize_schedule
from application.performance_scorer import slot_analysis, best_teacher_for_class
from application.policy_rules import RuleContext, priority_teacher_shortfall
from application.schedule_types import ScheduledClassEntry, DAYS_OF_WEEK
from application.schedule_validator import validate, validate_schedule
from application.time_utils import ALL_TIME_SLOTS, duration_minutes
from application.util import (
    format_schedule_for_display, process_historic_file, process_scores_file, teacher_hours,
    class_format_counts, class_formats_for_day, teacher_specialties, transform_schedule_for_excel,
    save_schedule_snapshot, scheduler_config
)

import uuid
from math import ceil

from io import BytesIO
from openpyxl import Workbook
from openpyxl.styles import PatternFill, Alignment, Font
from openpyxl.utils import get_column_letter

api_bp = Blueprint('apis', __name__, url_prefix='/api')


def _options_form(payload):
    options = normalize_option_keys(payload)
    options.setdefault('target_teacher_hours', current_app.config.get('SCHEDULER_TARGET_TEACHER_HOURS', 15))
    return AssemblerOptionsForm(formdata=None, data=options)


def _rule_context(directory, options=None):
    options = options or {}
    return RuleContext(
        directory=directory,
        target_teacher_hours=options.get('target_teacher_hours',
                                         current_app.config.get('SCHEDULER_TARGET_TEACHER_HOURS', 15)),
        respect_time_restrictions=options.get('respect_time_restrictions', True)
    )


def _active_schedule():
    return Schedule.query.filter(Schedule.active == True).order_by(Schedule.date_created.desc()).first()


def _active_entries():
    schedule = _active_schedule()
    return [row.to_entry() for row in schedule.entries] if schedule else []


def _entries_from_payload(items):
    return [ScheduledClassEntry.from_dict(item) for item in items or []]


def _parse_entry(data):
    """Build an entry from a request body, rejecting incomplete ones"""
    entry = ScheduledClassEntry.from_dict(data)
    missing = [name for name, value in (('day', entry.day), ('time', entry.time), ('location', entry.location),
                                        ('classFormat', entry.class_format),
                                        ('teacherFirstName', entry.teacher_first_name)) if not value]
    if missing:
        raise ValueError(f"Missing fields: {', '.join(missing)}")
    if entry.day not in DAYS_OF_WEEK:
        raise ValueError(f"Invalid day: {entry.day}")
    if entry.time not in ALL_TIME_SLOTS:
        raise ValueError(f"Invalid time: {entry.time}")
    if not entry.id:
        entry = entry.with_changes(id=f"manual-{uuid.uuid4().hex[:9]}")
    return entry


##########
# UPLOAD #
##########

def _upload(field_name, processor_func):
    form = DataUploadForm()
    if not form.validate_on_submit():
        return jsonify({'success': False, 'message': 'Form validation failed', 'errors': form.errors}), 400

    field = getattr(form, field_name)
    if not field.data or not getattr(field.data, 'filename', None):
        return jsonify({'success': False, 'message': 'No file was uploaded'}), 400

    try:
        print(f"Processing {field_name}: {field.data.filename}")
        field.data.seek(0)
        result = processor_func(field.data)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"Error processing {field.data.filename}")
        return jsonify({'success': False, 'message': f'Error processing file: {str(e)}'}), 500

    return jsonify({'success': True, 'message': result, 'filename': field.data.filename})


@api_bp.route('/upload/historic', methods=['POST'])
def upload_historic():
    return _upload('historic_file', process_historic_file)


@api_bp.route('/upload/scores', methods=['POST'])
def upload_scores():
    return _upload('scores_file', process_scores_file)


############
# SCHEDULE #
############

@api_bp.route('/schedule/populate', methods=['POST'])
def populate_schedule():
    """Build a new schedule from the strict top classes and make it active"""
    payload = request.get_json(silent=True) or {}
    form = _options_form(payload)
    if not form.validate():
        return jsonify({'error': form.errors}), 400

    try:
        data = load_database_driven()
        if data['total_historic_classes'] == 0:
            return jsonify({
                'success': False,
                'message': 'Insufficient data for scheduling',
                'error': 'Upload historic classes first'
            }), 400

        options = form.to_options()
        options['fill_empty_slots_only'] = False
        options['existing_schedule'] = [entry for entry in data['existing_schedule'] if entry.is_locked]
        options['locked_teachers'] = payload.get('lockedTeachers', payload.get('locked_teachers', []))

        result = generate_schedule_with_fallback(
            current_app.extensions.get('schedule_advisor'),
            data['historic_records'], data['score_records'],
            options=options, config=scheduler_config(current_app.config), directory=data['directory']
        )
        schedule = save_schedule_snapshot(result.entries, 'populate')

        return jsonify({
            'success': True,
            'schedule_id': schedule.id,
            'statistics': summarize_schedule(result.entries),
            **result.to_dict()
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Error generating schedule")
        return jsonify({
            'success': False,
            'message': 'Something went wrong.',
            'error': str(e)
        }), 500


@api_bp.route('/schedule/fill', methods=['POST'])
def fill_schedule():
    """Add top classes to the given (or active) schedule without changing it"""
    payload = request.get_json(silent=True) or {}
    form = _options_form(payload)
    if not form.validate():
        return jsonify({'error': form.errors}), 400

    try:
        data = load_database_driven()
        if 'existingSchedule' in payload or 'existing_schedule' in payload:
            existing = _entries_from_payload(payload.get('existingSchedule', payload.get('existing_schedule')))
        else:
            existing = data['existing_schedule']

        options = form.to_options()
        options['locked_teachers'] = payload.get('lockedTeachers', payload.get('locked_teachers', []))

        result = execute_fill_additional(
            data['historic_records'], existing, data['score_records'],
            options=options, config=scheduler_config(current_app.config), directory=data['directory']
        )
        schedule = save_schedule_snapshot(result.entries, 'fill')

        return jsonify({
            'success': True,
            'schedule_id': schedule.id,
            'statistics': summarize_schedule(result.entries),
            **result.to_dict()
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Error filling schedule")
        return jsonify({
            'success': False,
            'message': 'Something went wrong.',
            'error': str(e)
        }), 500


@api_bp.route('/schedule/validate', methods=['POST'])
def validate_class():
    payload = request.get_json(silent=True) or {}
    if not payload.get('candidate'):
        return jsonify({'error': 'No candidate provided'}), 400

    data = load_database_driven(verbose=False)
    if 'existing' in payload:
        existing = _entries_from_payload(payload['existing'])
    else:
        existing = data['existing_schedule']

    candidate = ScheduledClassEntry.from_dict(payload['candidate'])
    verdict = validate(existing, candidate, _rule_context(data['directory'], normalize_option_keys(payload)))
    return jsonify(verdict.to_dict())


@api_bp.route('/schedule', methods=['GET'])
def get_schedule():
    schedule = _active_schedule()
    if not schedule:
        return jsonify({
            'success': False,
            'message': 'No active schedule found.'
        }), 404

    data = load_database_driven(verbose=False)
    entries = [row.to_entry() for row in schedule.entries]
    violations = validate_schedule(entries, _rule_context(data['directory']))

    return jsonify({
        'id': schedule.id,
        'date_created': schedule.date_created.isoformat(),
        'source': schedule.source,
        'classes': format_schedule_for_display(entries),
        'teacher_hours': teacher_hours(entries, data['directory']),
        'violations': [{'id': entry.id, **verdict.to_dict()} for entry, verdict in violations]
    })


@api_bp.route('/schedule', methods=['DELETE'])
def clear_schedule():
    schedule = _active_schedule()
    if schedule:
        ScheduledClass.query.filter_by(schedule_id=schedule.id).delete()
        db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Cleared the active schedule.'
    }), 200


@api_bp.route('/schedule/classes', methods=['POST'])
def add_class():
    """Add one class to the active schedule; weekly-cap rejections can be overridden"""
    payload = request.get_json(silent=True) or {}
    try:
        entry = _parse_entry(payload)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    schedule = _active_schedule()
    if schedule and ScheduledClass.query.filter_by(schedule_id=schedule.id, entry_id=entry.id).first():
        return jsonify({'error': f'Class {entry.id} already exists; update it instead'}), 409

    data = load_database_driven(verbose=False)
    verdict = validate(data['existing_schedule'], entry, _rule_context(data['directory']))
    if not verdict.is_valid and not (verdict.can_override and payload.get('override')):
        return jsonify(verdict.to_dict()), 409

    if not schedule:
        schedule = save_schedule_snapshot([], 'manual')

    row = ScheduledClass.from_entry(entry)
    row.schedule_id = schedule.id
    db.session.add(row)
    db.session.commit()

    return jsonify({
        'success': True,
        'class': entry.to_dict(),
        'verdict': verdict.to_dict()
    }), 201


@api_bp.route('/schedule/classes/<entry_id>', methods=['PUT'])
def update_class(entry_id):
    schedule = _active_schedule()
    row = ScheduledClass.query.filter_by(schedule_id=schedule.id, entry_id=entry_id).first() if schedule else None
    if not row:
        return jsonify({'error': 'Class not found'}), 404

    payload = request.get_json(silent=True) or {}
    try:
        entry = _parse_entry({**row.to_entry().to_dict(), **payload, 'id': entry_id})
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    data = load_database_driven(verbose=False)
    verdict = validate(data['existing_schedule'], entry, _rule_context(data['directory']))
    if not verdict.is_valid and not (verdict.can_override and payload.get('override')):
        return jsonify(verdict.to_dict()), 409

    updated = ScheduledClass.from_entry(entry)
    for column in ScheduledClass.__table__.columns.keys():
        if column in ('id', 'schedule_id'):
            continue
        setattr(row, column, getattr(updated, column))
    db.session.commit()

    return jsonify({
        'success': True,
        'class': entry.to_dict(),
        'verdict': verdict.to_dict()
    }), 200


@api_bp.route('/schedule/classes/<entry_id>', methods=['DELETE'])
def delete_class(entry_id):
    schedule = _active_schedule()
    row = ScheduledClass.query.filter_by(schedule_id=schedule.id, entry_id=entry_id).first() if schedule else None
    if not row:
        return jsonify({'error': 'Class not found'}), 404

    db.session.delete(row)
    db.session.commit()

    return '', 204


@api_bp.route('/schedule/history', methods=['GET'])
def get_schedule_history():
    results_per_page = int(request.args.get('results', 20))
    page = int(request.args.get('page', 1))

    total_count = Schedule.query.count()
    max_pages = max(1, ceil(total_count / results_per_page)) if results_per_page > 0 else 1

    if not 1 <= results_per_page <= 100:
        return jsonify({
            'success': False,
            'message': 'Invalid results per page. Must be between 1 and 100.'
        }), 400

    if not 1 <= page <= max_pages:
        return jsonify({
            'success': False,
            'message': f'Invalid page. Must be between 1 and {max_pages}'
        }), 400

    schedules = Schedule.query \
        .order_by(Schedule.date_created.desc(), Schedule.id.desc()) \
        .offset((page - 1) * results_per_page) \
        .limit(results_per_page) \
        .all()

    return jsonify({
        'results': [{
            'id': schedule.id,
            'date_created': schedule.date_created.isoformat(),
            'active': bool(schedule.active),
            'source': schedule.source,
            'class_count': len(schedule.entries)
        } for schedule in schedules],
        'page': page,
        'max_pages': max_pages,
        'total_count': total_count
    }), 200


@api_bp.route('/schedule/<int:id>/activate', methods=['POST'])
def set_active_schedule(id):
    schedule = Schedule.query.get_or_404(id)
    Schedule.query.update({Schedule.active: False})
    db.session.flush()

    schedule.active = True
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Updated active schedule.'
    }), 200


###########
# REPORTS #
###########

@api_bp.route('/reports/teacher-hours', methods=['GET'])
def report_teacher_hours():
    data = load_database_driven(verbose=False)
    entries = data['existing_schedule']
    return jsonify({
        'teacher_hours': teacher_hours(entries, data['directory']),
        'priority_shortfall': priority_teacher_shortfall(entries, data['directory'])
    })


@api_bp.route('/reports/class-counts', methods=['GET'])
def report_class_counts():
    entries = _active_entries()
    day = request.args.get('day')
    if day:
        if day not in DAYS_OF_WEEK:
            return jsonify({'error': f'Invalid day: {day}'}), 400
        return jsonify({'day': day, 'counts': class_formats_for_day(entries, day)})
    return jsonify({'counts': class_format_counts(entries)})


@api_bp.route('/reports/teacher-specialties/<name>', methods=['GET'])
def report_teacher_specialties(name):
    data = load_database_driven(verbose=False)
    return jsonify({
        'teacher': name,
        'specialties': teacher_specialties(data['historic_records'], name, data['directory'])
    })


@api_bp.route('/reports/slot-analysis', methods=['GET'])
def report_slot_analysis():
    location = request.args.get('location')
    day = request.args.get('day')
    time = request.args.get('time')
    if not location or not day or not time:
        return jsonify({'error': 'location, day and time are required'}), 400

    data = load_database_driven(verbose=False)
    analysis = slot_analysis(data['historic_records'], location, day, time, data['directory'])
    if analysis is None:
        return jsonify({'error': 'No historic data for this slot'}), 404

    class_format = request.args.get('classFormat')
    if class_format:
        analysis['best_teacher'] = best_teacher_for_class(
            data['historic_records'], class_format, location, day, time, data['directory']
        )
    return jsonify(analysis)


###############
# INSTRUCTORS #
###############

@api_bp.route('/instructors', methods=['GET'])
def get_instructors():
    instructors = Instructor.query.order_by(Instructor.name).all()
    return jsonify([{
        'id': instructor.id,
        'name': instructor.name,
        'tier': instructor.tier
    } for instructor in instructors])


@api_bp.route('/instructors/<name>', methods=['PUT'])
def update_instructor(name):
    form = InstructorTierForm(formdata=None, data=request.get_json(silent=True) or {})
    if not form.validate():
        return jsonify({'error': form.errors}), 400

    instructor = Instructor.query.filter_by(name=name).first()
    if not instructor:
        instructor = Instructor(name=name)
        db.session.add(instructor)
    instructor.tier = form.tier.data
    db.session.commit()

    return jsonify({'id': instructor.id, 'name': instructor.name, 'tier': instructor.tier}), 200


##########
# EXPORT #
##########

@api_bp.route("/export-excel", methods=["POST"])
def export_excel():
    payload = request.get_json(silent=True) or {}
    if 'classes' in payload:
        entries = _entries_from_payload(payload['classes'])
    else:
        entries = _active_entries()

    if not entries:
        return jsonify(error="No classes to export"), 400

    FORMAT_COLORS = {
        "barre":     "F4CCCC",
        "cycle":     "9FC5E8",
        "mat":       "D9EAD3",
        "strength":  "FCE5CD",
        "hiit":      "F6B26B",
        "recovery":  "C2E7DA",
        "fit":       "FFF2CC"
    }

    def color_for(class_format):
        lower_format = class_format.lower()
        for keyword, color in FORMAT_COLORS.items():
            if keyword in lower_format:
                return color
        return "FFFFFF"

    data = transform_schedule_for_excel(entries)

    wb = Workbook()
    wb.remove(wb.active)

    for location, days in data.items():
        ws = wb.create_sheet(title=location.replace(',', '')[:31])

        # 1) Header row: day names
        ws.cell(row=1, column=1, value="Time").font = Font(bold=True)
        for col, day in enumerate(DAYS_OF_WEEK, start=2):
            hdr = ws.cell(row=1, column=col, value=day)
            hdr.font = Font(bold=True)
            hdr.alignment = Alignment(horizontal="center")

        # 2) Time labels in col A
        for i, lbl in enumerate(ALL_TIME_SLOTS, start=2):
            ws.cell(row=i, column=1, value=lbl)

        # 3) Classes at their start row; parallel studios share the cell
        for col, day in enumerate(DAYS_OF_WEEK, start=2):
            by_time = {}
            for session in days.get(day, []):
                by_time.setdefault(session['time'], []).append(session)

            for start, sessions in by_time.items():
                if start not in ALL_TIME_SLOTS:
                    current_app.logger.warning(f"Skipped class outside the grid at {location} {day} {start}")
                    continue
                row = ALL_TIME_SLOTS.index(start) + 2
                cell = ws.cell(row=row, column=col, value="\n".join(
                    f"{s['name']} - {s['teacher']} ({duration_minutes(s['duration'])} min)" for s in sessions
                ))
                cell.fill = PatternFill("solid", fgColor="00" + color_for(sessions[0]['name']))
                cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
                ws.row_dimensions[row].height = 15 * len(sessions)

        # 4) Layout tweaks
        ws.column_dimensions["A"].width = 10
        for i in range(2, 2 + len(DAYS_OF_WEEK)):
            ws.column_dimensions[get_column_letter(i)].width = 30
        ws.freeze_panes = "B2"

    # 5) Return file
    out = BytesIO()
    wb.save(out)
    out.seek(0)
    return send_file(
        out,
        as_attachment=True,
        download_name="schedule.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
