import sys

from application import create_app, db
from application.models import Instructor
from application.util import process_historic_file, process_scores_file
from config import Config

def instructor_tiers():
    """(name, tier) pairs seeded from the configured instructor lists"""
    tiers = {}
    for tier, names in (('priority', Config.PRIORITY_TEACHERS),
                        ('new', Config.NEW_TEACHERS),
                        ('inactive', Config.INACTIVE_TEACHERS)):
        for name in names:
            tiers[name] = tier
    return sorted(tiers.items())

def main(historic_path=None, scores_path=None):
    app = create_app()
    with app.app_context():
        db.drop_all()
        db.create_all()

        print("Creating instructor tiers...")
        for name, tier in instructor_tiers():
            db.session.add(Instructor(name=name, tier=tier))

        if historic_path:
            print(f"Loading historic classes from {historic_path}...")
            with open(historic_path, 'rb') as file:
                print(process_historic_file(file))

        if scores_path:
            print(f"Loading class scores from {scores_path}...")
            with open(scores_path, 'rb') as file:
                print(process_scores_file(file))

        db.session.commit()

if __name__ == '__main__':
    main(*sys.argv[1:3])
