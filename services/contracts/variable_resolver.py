"""
Variable Resolver

Turns rental data into the flat placeholder bag used by clause text.

The source may be a flat dict ({'client_name': ...}), a nested dict
({'client': {'name': ...}}) or any object exposing the same attributes
(e.g. a SQLAlchemy row). Each placeholder lists the source paths it can
be read from; the first non-empty one wins.

Source path syntax:
    client_name             -> source['client_name']
    client.name             -> source['client'].name
    drivers[0].cpf          -> source['drivers'][0].cpf

Resolution is total: a bad or missing value degrades to its default or
to "" with a logged warning, never to an exception.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pytz
from flask import current_app, has_app_context

from config import Config
from .transforms import apply_transform, to_decimal

logger = logging.getLogger(__name__)


# (placeholder, source paths, transform, config key or literal default)
FIELD_TABLE = [
    # Franchisee (LOCADORA)
    ('franchisee_name', ('franchisee_name', 'franchisee.company_name', 'franchisee.name'), 'trim', 'cfg:DEFAULT_COMPANY_NAME'),
    ('franchisee_cnpj', ('franchisee_cnpj', 'franchisee.cnpj'), 'cnpj', None),
    ('franchisee_address', ('franchisee_address', 'franchisee.address'), 'trim', None),
    ('franchisee_number', ('franchisee_number', 'franchisee.address_number', 'franchisee.number'), 'trim', 'S/N'),
    ('franchisee_neighborhood', ('franchisee_neighborhood', 'franchisee.neighborhood'), 'trim', None),
    ('franchisee_city', ('franchisee_city', 'franchisee.city'), 'trim', None),
    ('franchisee_state', ('franchisee_state', 'franchisee.state'), 'uppercase', 'cfg:DEFAULT_STATE'),
    ('franchisee_cep', ('franchisee_cep', 'franchisee.cep'), 'cep', None),
    ('franchisee_phone', ('franchisee_phone', 'franchisee.phone'), 'phone', None),

    # Client (LOCATÁRIO)
    ('client_name', ('client_name', 'client.full_name', 'client.name'), 'trim', None),
    ('client_cpf', ('client_cpf', 'client_document', 'client.cpf', 'client.document'), 'cpf', None),
    ('client_rg', ('client_rg', 'client.rg'), 'trim', None),
    ('client_address', ('client_address', 'client.address'), 'trim', None),
    ('client_number', ('client_number', 'client.address_number', 'client.number'), 'trim', None),
    ('client_neighborhood', ('client_neighborhood', 'client.neighborhood'), 'trim', None),
    ('client_city', ('client_city', 'client.city'), 'trim', None),
    ('client_state', ('client_state', 'client.state'), 'uppercase', 'cfg:DEFAULT_STATE'),
    ('client_cep', ('client_cep', 'client.cep'), 'cep', None),
    ('client_phone', ('client_phone', 'client.phone'), 'phone', None),
    ('client_email', ('client_email', 'client.email'), 'trim', None),
    ('client_cnh', ('client_cnh', 'client.cnh'), 'trim', None),
    ('client_cnh_category', ('client_cnh_category', 'client.cnh_category'), 'uppercase', None),
    ('client_cnh_expiry', ('client_cnh_expiry', 'client.cnh_expiry'), 'date', None),
    ('client_marital_status', ('client_marital_status', 'client.marital_status'), 'trim', None),
    ('client_profession', ('client_profession', 'client.profession'), 'trim', None),

    # Vehicle
    ('motorcycle_brand', ('motorcycle_brand', 'motorcycle.brand', 'vehicle.brand'), 'trim', None),
    ('motorcycle_model', ('motorcycle_model', 'motorcycle.model', 'vehicle.model'), 'trim', None),
    ('motorcycle_plate', ('motorcycle_plate', 'motorcycle.plate', 'vehicle.plate'), 'uppercase', None),
    ('motorcycle_year', ('motorcycle_year', 'motorcycle.year', 'vehicle.year'), 'none', None),
    ('motorcycle_color', ('motorcycle_color', 'motorcycle.color', 'vehicle.color'), 'trim', None),
    ('motorcycle_chassi', ('motorcycle_chassi', 'motorcycle.chassi', 'vehicle.chassi'), 'uppercase', None),
    ('motorcycle_renavam', ('motorcycle_renavam', 'motorcycle.renavam', 'vehicle.renavam'), 'trim', None),

    # Rental terms
    ('plan_name', ('plan_name', 'plan.name'), 'trim', None),
    ('start_date', ('start_date', 'rental.start_date'), 'date', None),
    ('end_date', ('end_date', 'rental.end_date'), 'date', None),
    ('contract_city', ('contract_city', 'city.name'), 'trim', 'cfg:DEFAULT_CONTRACT_CITY'),
]

# Money fields kept as numbers plus their *_text / *_written forms
AMOUNT_FIELDS = [
    ('daily_rate', ('daily_rate', 'rental.daily_rate', 'plan.daily_rate'), None),
    ('total_amount', ('total_amount', 'rental.total_amount'), None),
    ('deposit_value', ('deposit_value', 'rental.deposit_value', 'plan.deposit_value'), 'cfg:DEFAULT_DEPOSIT_VALUE'),
]


def config_value(key: str) -> Any:
    """Read a setting from the active app, falling back to the Config class."""
    if has_app_context():
        return current_app.config.get(key, getattr(Config, key, None))
    return getattr(Config, key, None)


def document_timezone():
    name = config_value('DOCUMENT_TIMEZONE') or 'America/Sao_Paulo'
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown DOCUMENT_TIMEZONE '{name}', using America/Sao_Paulo")
        return pytz.timezone('America/Sao_Paulo')


def local_now(now: datetime = None) -> datetime:
    """
    `now` as an aware datetime in the document timezone.

    Naive datetimes are taken to be UTC.
    """
    if now is None:
        now = datetime.utcnow()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(document_timezone())


def format_document_number(prefix: str = None, now: datetime = None, millis: int = None) -> str:
    """
    Build a document number: <PREFIX>-<YEAR>-<EPOCH_MILLIS>.

    Example:
        CONT-2025-1736950000123
    """
    prefix = prefix or config_value('DEFAULT_NUMBER_PREFIX') or 'CONT'
    moment = local_now(now)
    if millis is None:
        millis = int(moment.timestamp() * 1000)
    return f"{prefix}-{moment.year}-{millis}"


class VariableResolver:
    """
    Builds the flat placeholder bag for one rental.

    Usage:
        variables = VariableResolver.resolve(rental_row, prefix='RECIBO',
                                             template_variables=template.variables)
        text = substitute(clause.content, variables)
    """

    BRACKET_PATTERN = re.compile(r'^([a-zA-Z_][a-zA-Z0-9_]*)\[(\d+)\]$')

    @classmethod
    def resolve(
        cls,
        source: Any,
        prefix: str = None,
        template_variables: Optional[Iterable[str]] = None,
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Resolve every known placeholder from `source`.

        Args:
            source: Dict or object carrying rental, client, vehicle and
                franchisee data
            prefix: Number prefix used when building contract_number
            template_variables: Names the template declares; any left
                unresolved are set to ""
            now: Clock override for contract_date / contract_number

        Returns:
            Dict of placeholder name -> str, int or float
        """
        source = source if source is not None else {}
        variables: Dict[str, Any] = {}

        for name, paths, transform, default in FIELD_TABLE:
            variables[name] = cls._resolve_field(name, source, paths, transform, default)

        for name, paths, default in AMOUNT_FIELDS:
            cls._resolve_amount(variables, name, source, paths, default)

        cls._resolve_contract_fields(variables, source, prefix, now)

        # Pass through extra flat keys the table does not know about
        if isinstance(source, dict):
            for key, value in source.items():
                if key not in variables and isinstance(value, (str, int, float)) \
                        and not isinstance(value, bool):
                    variables[key] = value

        for name in template_variables or []:
            if name not in variables or variables[name] is None:
                variables[name] = ""

        return variables

    # =========================================================================
    # FIELDS
    # =========================================================================

    @classmethod
    def _default(cls, default: Any) -> Any:
        if isinstance(default, str) and default.startswith('cfg:'):
            return config_value(default[4:])
        return default

    @classmethod
    def _first_value(cls, source: Any, paths: Iterable[str]) -> Any:
        for path in paths:
            value = cls.resolve_path(path, source)
            if value is not None and value != '':
                return value
        return None

    @classmethod
    def _resolve_field(cls, name, source, paths, transform, default) -> str:
        raw = cls._first_value(source, paths)
        value = apply_transform(raw, transform) if raw is not None else ''
        if value == '':
            fallback = cls._default(default)
            return '' if fallback is None else str(fallback)
        return value

    @classmethod
    def _resolve_amount(cls, variables, name, source, paths, default) -> None:
        raw = cls._first_value(source, paths)
        amount = to_decimal(raw)
        if amount is None:
            if raw is not None:
                logger.warning(f"Ignoring non-numeric {name}: {raw!r}")
            amount = to_decimal(cls._default(default))

        if amount is None:
            variables[name] = 0
            variables[f'{name}_text'] = ''
            variables[f'{name}_written'] = ''
            return

        variables[name] = float(amount)
        variables[f'{name}_text'] = apply_transform(amount, 'currency')
        variables[f'{name}_written'] = apply_transform(amount, 'amount_in_words')

    @classmethod
    def _resolve_contract_fields(cls, variables, source, prefix, now) -> None:
        moment = local_now(now)

        contract_date = cls._first_value(source, ('contract_date',))
        if contract_date is None:
            contract_date = moment.date()
        variables['contract_date'] = apply_transform(contract_date, 'date')
        variables['contract_date_long'] = apply_transform(contract_date, 'date_long')

        existing_number = cls._first_value(source, ('contract_number', 'document_number'))
        if existing_number is not None:
            variables['contract_number'] = str(existing_number)
        else:
            variables['contract_number'] = format_document_number(prefix, moment)

    # =========================================================================
    # SOURCE PATHS
    # =========================================================================

    @classmethod
    def resolve_path(cls, source_path: str, source: Any) -> Any:
        """
        Resolve a source path against `source`.

        Returns:
            The resolved value, or None if any step is missing
        """
        if not source_path:
            return None

        current = source
        for part in cls._parse_path(source_path):
            if current is None:
                return None
            current = cls._get_value(current, part)
        return current

    @classmethod
    def _parse_path(cls, path: str) -> List[str]:
        """
        Parse a source path into parts.

        Examples:
            "client.name" -> ["client", "name"]
            "drivers[0].cpf" -> ["drivers[0]", "cpf"]
        """
        parts = []
        current = ""
        in_bracket = False

        for char in path:
            if char == '[':
                in_bracket = True
                current += char
            elif char == ']':
                in_bracket = False
                current += char
            elif char == '.' and not in_bracket:
                if current:
                    parts.append(current)
                current = ""
            else:
                current += char

        if current:
            parts.append(current)

        return parts

    @classmethod
    def _get_value(cls, obj: Any, part: str) -> Any:
        bracket_match = cls.BRACKET_PATTERN.match(part)
        if bracket_match:
            collection = cls._get_attr_or_key(obj, bracket_match.group(1))
            index = int(bracket_match.group(2))
            if collection is None:
                return None
            if hasattr(collection, 'all'):
                collection = collection.all()
            if isinstance(collection, (list, tuple)) and 0 <= index < len(collection):
                return collection[index]
            return None

        if part == 'full_name':
            return cls._get_full_name(obj)

        return cls._get_attr_or_key(obj, part)

    @classmethod
    def _get_attr_or_key(cls, obj: Any, key: str) -> Any:
        """Get a value by dict key or attribute."""
        if isinstance(obj, dict):
            return obj.get(key)

        try:
            value = getattr(obj, key, None)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Could not read '{key}' from {type(obj).__name__}: {e}")
            return None
        if callable(value) and not isinstance(value, type):
            try:
                return value()
            except TypeError:
                return value
        return value

    @classmethod
    def _get_full_name(cls, obj: Any) -> Optional[str]:
        """full_name from first_name / last_name, or a plain name."""
        first = cls._get_attr_or_key(obj, 'first_name') or ''
        last = cls._get_attr_or_key(obj, 'last_name') or ''
        full = f"{first} {last}".strip()
        if full:
            return full
        return cls._get_attr_or_key(obj, 'full_name') if isinstance(obj, dict) else None
