"""
Seed the database with the canonical document types, templates and
clauses defined in documents/*.yml.

Safe to run repeatedly: existing rows are kept, empty templates are
repaired, nothing is duplicated.

Usage:
    python seed_templates.py
    flask --app app seed-templates
"""

import logging

from app import create_app
from models import db
from services.contracts import TemplateStore

logger = logging.getLogger(__name__)


def seed_database(app=None):
    app = app or create_app()
    with app.app_context():
        db.create_all()
        summary = TemplateStore.seed_definitions()
        logger.info(f"Seed complete: {summary}")
        return summary


if __name__ == '__main__':
    summary = seed_database()
    print("Template seed finished:")
    for key, count in summary.items():
        print(f"  {key}: {count}")
