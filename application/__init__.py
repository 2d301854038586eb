from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from config import config, DevelopmentConfig

db = SQLAlchemy()

def create_app(config_name='default', advisor=None):
    app = Flask(__name__)
    app.config.from_object(config.get(config_name, DevelopmentConfig))

    db.init_app(app)

    # Optional BaseScheduleAdvisor; the local scheduler is used when None
    app.extensions['schedule_advisor'] = advisor

    with app.app_context():
        from .models import Instructor, HistoricClass, ClassScore, Schedule, ScheduledClass
        db.create_all()
        db.session.commit()

    from application.routes.api import api_bp
    from application.routes.timetable import timetable_bp

    app.register_blueprint(api_bp)
    app.register_blueprint(timetable_bp)

    return app
