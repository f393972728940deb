import logging

import click
from flask import Flask

from config import Config
from models import db
from services.contracts import TemplateDefinitionLoader, TemplateStore


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Initialize extensions
    db.init_app(app)

    # Fail fast on broken template definitions
    TemplateDefinitionLoader.load_all()

    @app.cli.command('seed-templates')
    def seed_templates_command():
        """Create missing document types, templates and clauses."""
        db.create_all()
        summary = TemplateStore.seed_definitions()
        click.echo(
            f"Seeded templates: {summary['types_created']} type(s), "
            f"{summary['templates_created']} template(s), "
            f"{summary['clauses_created']} clause(s), "
            f"{summary['templates_repaired']} repaired"
        )

    return app


app = create_app()

if __name__ == '__main__':
    with app.app_context():
        db.create_all()
        TemplateStore.seed_definitions()
