"""
Shared fixtures: an application bound to an in-memory database, with
and without the canonical templates seeded.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app
from config import TestConfig
from models import db
from services.contracts import TemplateDefinitionLoader, TemplateStore


@pytest.fixture
def app():
    """Application with empty tables."""
    TemplateDefinitionLoader.clear()
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seeded(app):
    """Application with every canonical template seeded."""
    return TemplateStore.seed_definitions()


@pytest.fixture
def rental_data():
    """Flat rental record as handed over by the rentals screen."""
    return {
        'client_name': 'Maria da Silva',
        'client_cpf': '12345678900',
        'client_cnh': '01234567890',
        'client_address': 'Rua das Flores',
        'client_number': '120',
        'client_neighborhood': 'Pituba',
        'client_city': 'Salvador',
        'client_state': 'ba',
        'client_cep': '41810000',
        'client_marital_status': 'solteira',
        'client_profession': 'entregadora',
        'franchisee_name': 'Moto Locadora Salvador LTDA',
        'franchisee_cnpj': '12345678000190',
        'franchisee_address': 'Av. Tancredo Neves',
        'franchisee_neighborhood': 'Caminho das Árvores',
        'franchisee_city': 'Salvador',
        'franchisee_cep': '41820020',
        'motorcycle_brand': 'Honda',
        'motorcycle_model': 'CG 160 Start',
        'motorcycle_plate': 'abc1d23',
        'motorcycle_year': 2024,
        'motorcycle_color': 'Vermelha',
        'motorcycle_chassi': '9c2kc2200pr000001',
        'motorcycle_renavam': '01234567891',
        'plan_name': 'Plano Mensal',
        'start_date': '2025-01-15',
        'end_date': '2025-02-14',
        'daily_rate': 45,
        'total_amount': 1350,
        'deposit_value': 700,
    }
