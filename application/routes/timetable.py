from flask import Blueprint, request, jsonify, send_file, current_app
from application import db
from application.data_processor import load_database_driven
from application.time_utils import end_time
from application.util import format_schedule_for_display, save_schedule_snapshot, scheduler_config
import pandas as pd
from datetime import datetime
import os

timetable_bp = Blueprint('timetable', __name__, url_prefix='/timetable')

@timetable_bp.route('/generate-schedule', methods=['POST'])
def generate_schedule():
    """Generate a complete schedule from the database and save it as CSV"""
    try:
        print("Starting schedule generation from database...")

        # Load data from database
        data = load_database_driven()

        # Execute scheduling algorithm
        from application.enhanced_scheduler import execute_populate_schedule, summarize_schedule
        options = dict(request.get_json(silent=True) or {})
        options.pop('existingSchedule', None)
        options['existing_schedule'] = [entry for entry in data['existing_schedule'] if entry.is_locked]
        results = execute_populate_schedule(
            data['historic_records'], data['score_records'], options=options,
            config=scheduler_config(current_app.config), directory=data['directory']
        )
        schedule = save_schedule_snapshot(results.entries, 'populate')

        # Convert to display format
        display_schedule = convert_to_display_format(results.entries)

        # Save to CSV
        csv_filename = save_schedule_to_csv(display_schedule)

        return jsonify({
            'success': True,
            'message': results.message or 'Schedule generated successfully',
            'schedule_id': schedule.id,
            'statistics': summarize_schedule(results.entries),
            'csv_filename': csv_filename,
            'schedule_preview': format_schedule_for_display(results.entries)[:10]  # First 10 entries for preview
        })

    except Exception as e:
        db.session.rollback()
        error_msg = f"Error generating schedule: {str(e)}"
        current_app.logger.exception(error_msg)

        return jsonify({
            'success': False,
            'message': error_msg,
            'error': str(e)
        }), 500

@timetable_bp.route('/download-schedule/<filename>')
def download_schedule(filename):
    """Download generated schedule CSV"""
    folder = current_app.config.get('GENERATED_SCHEDULES_FOLDER', 'generated_schedules')
    file_path = os.path.join(os.path.abspath(folder), os.path.basename(filename))
    if os.path.exists(file_path):
        return send_file(file_path, as_attachment=True, download_name=os.path.basename(filename))
    return jsonify({'error': 'File not found'}), 404

def convert_to_display_format(entries):
    """Convert scheduler output to display format"""
    display_schedule = []

    for entry in entries:
        display_entry = {
            'Location': entry.location,
            'Day': entry.day,
            'Time': f"{entry.time} - {end_time(entry.time, entry.duration)}",
            'Class': entry.class_format,
            'Teacher': entry.teacher_name,
            'Duration': f"{int(round(entry.duration * 60))} min",
            'Expected Participants': entry.participants,
            'Expected Revenue': entry.revenue,
            'Top Performer': 'Yes' if entry.is_top_performer else 'No',
            'Locked': 'Yes' if entry.is_locked else 'No',
            'Cover Teacher': entry.cover_teacher or '',

            # Additional fields for sorting and filtering
            'Start Time': entry.time,
            'ID': entry.id
        }

        display_schedule.append(display_entry)

    return display_schedule

def save_schedule_to_csv(schedule):
    """Save schedule to CSV file"""
    folder = current_app.config.get('GENERATED_SCHEDULES_FOLDER', 'generated_schedules')
    os.makedirs(folder, exist_ok=True)

    # Generate filename with timestamp
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
    filename = f'class_schedule_{timestamp}.csv'
    filepath = os.path.join(folder, filename)

    df = pd.DataFrame(schedule)

    # Reorder columns for better readability
    column_order = [
        'Location', 'Day', 'Time', 'Class', 'Teacher', 'Duration',
        'Expected Participants', 'Expected Revenue', 'Top Performer', 'Locked', 'Cover Teacher'
    ]

    # Select only the columns that exist
    available_columns = [col for col in column_order if col in df.columns]
    df_ordered = df[available_columns] if available_columns else df

    df_ordered.to_csv(filepath, index=False)

    print(f"Schedule saved to: {filepath}")
    return filename
