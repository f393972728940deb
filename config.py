import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Environment
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///contracts.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Placeholder handling: strict raises on unknown {{names}}, lenient leaves them
    PLACEHOLDER_STRICT = os.getenv('PLACEHOLDER_STRICT', 'True').lower() == 'true'

    # Document settings
    DOCUMENT_TIMEZONE = os.getenv('DOCUMENT_TIMEZONE', 'America/Sao_Paulo')
    DOCUMENT_EXPIRY_DAYS = int(os.getenv('DOCUMENT_EXPIRY_DAYS', 7))
    DEFAULT_NUMBER_PREFIX = os.getenv('DEFAULT_NUMBER_PREFIX', 'CONT')

    # Defaults used when the rental data leaves a field empty
    DEFAULT_STATE = os.getenv('DEFAULT_STATE', 'BA')
    DEFAULT_COMPANY_NAME = os.getenv('DEFAULT_COMPANY_NAME', 'Locadora de Motocicletas')
    DEFAULT_CONTRACT_CITY = os.getenv('DEFAULT_CONTRACT_CITY', 'Salvador')
    DEFAULT_DEPOSIT_VALUE = float(os.getenv('DEFAULT_DEPOSIT_VALUE', 700.00))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    PLACEHOLDER_STRICT = True
    LOG_LEVEL = 'WARNING'
