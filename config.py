from dotenv import load_dotenv
import os
import sys
from datetime import timedelta

load_dotenv()

def get_appdata_dir(app_name="StudioSchedulerApp"):
    # Check if running as a PyInstaller bundle
    if getattr(sys, 'frozen', False):
        appdata_path = os.path.join(os.path.dirname(sys.executable), f"{app_name}_Data")
    else:
        if os.name == 'nt':  # Windows
            base_dir = os.getenv('APPDATA', os.path.expanduser('~\\AppData\\Roaming'))
        else:  # Linux and macOS
            base_dir = os.getenv('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
        appdata_path = os.path.join(base_dir, app_name)

    os.makedirs(appdata_path, exist_ok=True)
    return appdata_path

def _name_list(env_key, default):
    """Read a comma separated list of instructor names from the environment"""
    raw = os.environ.get(env_key)
    if not raw:
        return list(default)
    return [name.strip() for name in raw.split(',') if name.strip()]

class Config:
    """Base configuration class"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # File upload settings
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB
    UPLOAD_FOLDER = 'uploads'
    GENERATED_SCHEDULES_FOLDER = 'generated_schedules'

    # Session settings
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)

    # Scheduling engine
    SCHEDULER_STRICT_THRESHOLD = float(os.environ.get('SCHEDULER_STRICT_THRESHOLD', 5.0))
    SCHEDULER_FILL_QUOTA = int(os.environ.get('SCHEDULER_FILL_QUOTA', 5))
    SCHEDULER_TARGET_TEACHER_HOURS = float(os.environ.get('SCHEDULER_TARGET_TEACHER_HOURS', 15))

    # Instructor classification (first names or full names)
    INACTIVE_TEACHERS = _name_list('INACTIVE_TEACHERS', ['Nishanth', 'Saniya'])
    NEW_TEACHERS = _name_list('NEW_TEACHERS', ['Kabir', 'Simonelle', 'Karan'])
    PRIORITY_TEACHERS = _name_list('PRIORITY_TEACHERS', [
        'Anisha', 'Vivaran', 'Mrigakshi', 'Pranjali', 'Atulan', 'Cauveri',
        'Rohan', 'Reshma', 'Richard', 'Karanvir'
    ])

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = True  # Show SQL queries in development

    # SQLite for development
    SQLALCHEMY_DATABASE_URI = f'sqlite:///database.db'

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    appdata_path = get_appdata_dir()
    SQLALCHEMY_DATABASE_URI = f'sqlite:///{os.path.join(appdata_path, "database.db")}'
    GENERATED_SCHEDULES_FOLDER = os.path.join(appdata_path, 'generated_schedules')

class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'  # In-memory database for testing

# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
