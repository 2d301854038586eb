from application import create_app
from application.models import Schedule
from application.util import teacher_hours, class_format_counts
import pandas as pd



def main(path='schedule_export.xlsx'):
    app = create_app()
    with app.app_context():
        schedule = Schedule.query.filter_by(active=True).order_by(Schedule.date_created.desc()).first()
        if not schedule:
            print("No active schedule to export")
            return

        entries = [row.to_entry() for row in schedule.entries]

        class_df = pd.DataFrame([{
            'id': entry.id,
            'location': entry.location,
            'day': entry.day,
            'time': entry.time,
            'class_format': entry.class_format,
            'teacher': entry.teacher_name,
            'duration': entry.duration,
            'participants': entry.participants,
            'revenue': entry.revenue,
            'top_performer': int(entry.is_top_performer),
            'locked': int(entry.is_locked)
        } for entry in entries])

        hours_df = pd.DataFrame(sorted(teacher_hours(entries).items()), columns=['teacher', 'hours'])
        counts_df = pd.DataFrame(sorted(class_format_counts(entries).items()), columns=['class_format', 'count'])

        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            class_df.to_excel(writer, sheet_name='Classes', index=False)
            hours_df.to_excel(writer, sheet_name='Teacher Hours', index=False)
            counts_df.to_excel(writer, sheet_name='Class Counts', index=False)

        print(f"Exported {len(entries)} classes from schedule {schedule.id} to {path}")



if __name__ == '__main__':
    main()
