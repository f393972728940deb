"""
Field Transforms

Functions that turn raw business values into the formatted strings
substituted into clause text. Each transform is registered by name
and can be referenced from the resolver's field table.

All transforms follow Brazilian conventions:
    1234.5        -> "R$ 1.234,50"         (currency)
    1234.5        -> "mil duzentos e trinta e quatro reais e cinquenta centavos"
    "2025-01-15"  -> "15/01/2025"           (date)
"""

import logging
import re
from datetime import datetime, date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Type alias for transform functions
TransformFunc = Callable[[Any], str]

MONTHS_PT = [
    'janeiro', 'fevereiro', 'março', 'abril', 'maio', 'junho',
    'julho', 'agosto', 'setembro', 'outubro', 'novembro', 'dezembro',
]

UNITS = [
    'zero', 'um', 'dois', 'três', 'quatro', 'cinco', 'seis', 'sete', 'oito', 'nove',
    'dez', 'onze', 'doze', 'treze', 'quatorze', 'quinze', 'dezesseis', 'dezessete',
    'dezoito', 'dezenove',
]
TENS = ['', '', 'vinte', 'trinta', 'quarenta', 'cinquenta', 'sessenta', 'setenta',
        'oitenta', 'noventa']
HUNDREDS = ['', 'cento', 'duzentos', 'trezentos', 'quatrocentos', 'quinhentos',
            'seiscentos', 'setecentos', 'oitocentos', 'novecentos']

# (singular, plural) per group of three digits, lowest first
SCALES = [('', ''), ('mil', 'mil'), ('milhão', 'milhões'), ('bilhão', 'bilhões')]

DATE_INPUT_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%Y-%m-%dT%H:%M:%S", "%d-%m-%Y"]


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a money-like value into a Decimal.

    Accepts numbers and strings such as "1234.56", "1.234,56" or "1,234.56",
    with or without an "R$" prefix. Returns None when unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = str(value).replace('R$', '').replace(' ', '').strip()
    if not text:
        return None
    if ',' in text and '.' in text:
        # Whichever separator comes last marks the decimals
        if text.rfind(',') > text.rfind('.'):
            text = text.replace('.', '').replace(',', '.')
        else:
            text = text.replace(',', '')
    elif ',' in text:
        text = text.replace(',', '.')
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def _format_br_number(amount: Decimal) -> str:
    """1234.5 -> "1.234,50"."""
    quantized = amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    us = f"{quantized:,.2f}"
    return us.replace(',', '_').replace('.', ',').replace('_', '.')


def transform_currency(value: Any) -> str:
    """
    Format a number as Brazilian currency.

    Examples:
        700 -> "R$ 700,00"
        1234.5 -> "R$ 1.234,50"
        "1.234,50" -> "R$ 1.234,50"
    """
    amount = to_decimal(value)
    if amount is None:
        if value not in (None, ''):
            logger.warning(f"Could not format as currency: {value}")
        return str(value) if value else ""
    return f"R$ {_format_br_number(amount)}"


def transform_number_br(value: Any) -> str:
    """Format a number with pt-BR separators and no currency symbol."""
    amount = to_decimal(value)
    if amount is None:
        return str(value) if value else ""
    return _format_br_number(amount)


def _below_thousand(n: int) -> str:
    if n == 100:
        return 'cem'
    words = []
    hundreds, rest = divmod(n, 100)
    if hundreds:
        words.append(HUNDREDS[hundreds])
    if rest:
        if rest < 20:
            words.append(UNITS[rest])
        else:
            tens, units = divmod(rest, 10)
            words.append(TENS[tens] + (f" e {UNITS[units]}" if units else ''))
    return ' e '.join(words)


def number_to_words(n: int) -> str:
    """
    Spell out a non-negative integer in Portuguese.

    Examples:
        1 -> "um"
        1100 -> "mil e cem"
        2534 -> "dois mil quinhentos e trinta e quatro"
    """
    if n == 0:
        return UNITS[0]

    groups = []
    while n:
        n, group = divmod(n, 1000)
        groups.append(group)
    if len(groups) > len(SCALES):
        raise ValueError("number too large to spell out")

    parts = []
    for index in range(len(groups) - 1, -1, -1):
        group = groups[index]
        if not group:
            continue
        singular, plural = SCALES[index]
        if index == 1 and group == 1:
            words = 'mil'
        elif index == 0:
            words = _below_thousand(group)
        else:
            scale = singular if group == 1 else plural
            words = f"{_below_thousand(group)} {scale}"
        parts.append((group, words))

    text = parts[0][1]
    for group, words in parts[1:]:
        joiner = ' e ' if group < 100 or group % 100 == 0 else ' '
        text = f"{text}{joiner}{words}"
    return text


def transform_amount_in_words(value: Any) -> str:
    """
    Spell out a money amount in reais and centavos.

    Examples:
        700 -> "setecentos reais"
        1.01 -> "um real e um centavo"
        1000000 -> "um milhão de reais"
    """
    amount = to_decimal(value)
    if amount is None:
        return ""

    amount = abs(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    reais = int(amount)
    centavos = int((amount - reais) * 100)

    try:
        parts = []
        if reais:
            currency = 'real' if reais == 1 else 'reais'
            words = number_to_words(reais)
            if reais >= 1_000_000 and reais % 1_000_000 == 0:
                currency = f"de {currency}"
            parts.append(f"{words} {currency}")
        if centavos:
            unit = 'centavo' if centavos == 1 else 'centavos'
            parts.append(f"{number_to_words(centavos)} {unit}")
    except ValueError:
        logger.warning(f"Could not spell out amount: {value}")
        return transform_currency(value)

    if not parts:
        return "zero reais"
    return ' e '.join(parts)


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # Drop fractional seconds / timezone suffixes from ISO timestamps
        if 'T' in text:
            text = re.sub(r'(\.\d+)?(Z|[+-]\d{2}:?\d{2})?$', '', text)
        for fmt in DATE_INPUT_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    return None


def transform_date(value: Any) -> str:
    """
    Format a date as dd/mm/yyyy.

    Examples:
        "2025-01-15" -> "15/01/2025"
        date(2025, 1, 15) -> "15/01/2025"
        "15/01/2025" -> "15/01/2025"
    """
    if value is None:
        return ""
    parsed = _parse_date(value)
    if parsed is None:
        if str(value).strip():
            logger.warning(f"Could not parse date: {value}")
        return str(value)
    return parsed.strftime("%d/%m/%Y")


def transform_date_long(value: Any) -> str:
    """
    Format a date in long Portuguese form.

    Examples:
        "2025-01-15" -> "15 de janeiro de 2025"
    """
    if value is None:
        return ""
    parsed = _parse_date(value)
    if parsed is None:
        return str(value)
    return f"{parsed.day} de {MONTHS_PT[parsed.month - 1]} de {parsed.year}"


def _digits(value: Any) -> str:
    return re.sub(r'\D', '', str(value))


def transform_cpf(value: Any) -> str:
    """"12345678900" -> "123.456.789-00"."""
    if value is None:
        return ""
    digits = _digits(value)
    if len(digits) == 11:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    return str(value)


def transform_cnpj(value: Any) -> str:
    """"12345678000190" -> "12.345.678/0001-90"."""
    if value is None:
        return ""
    digits = _digits(value)
    if len(digits) == 14:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return str(value)


def transform_cep(value: Any) -> str:
    """"40000000" -> "40000-000"."""
    if value is None:
        return ""
    digits = _digits(value)
    if len(digits) == 8:
        return f"{digits[:5]}-{digits[5:]}"
    return str(value)


def transform_phone(value: Any) -> str:
    """
    Format a Brazilian phone number.

    Examples:
        "71999998888" -> "(71) 99999-8888"
        "7133334444" -> "(71) 3333-4444"
    """
    if value is None:
        return ""
    digits = _digits(value)
    if len(digits) == 13 and digits.startswith('55'):
        digits = digits[2:]
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return str(value)


def transform_uppercase(value: Any) -> str:
    """Convert to uppercase."""
    if value is None:
        return ""
    return str(value).upper()


def transform_titlecase(value: Any) -> str:
    """Convert to title case."""
    if value is None:
        return ""
    return str(value).title()


def transform_trim(value: Any) -> str:
    """Trim whitespace."""
    if value is None:
        return ""
    return str(value).strip()


def transform_none(value: Any) -> str:
    """No transformation - just convert to string."""
    if value is None:
        return ""
    return str(value)


# Registry of available transforms
TRANSFORMS: Dict[str, TransformFunc] = {
    'currency': transform_currency,
    'number_br': transform_number_br,
    'amount_in_words': transform_amount_in_words,
    'date': transform_date,
    'date_long': transform_date_long,
    'cpf': transform_cpf,
    'cnpj': transform_cnpj,
    'cep': transform_cep,
    'phone': transform_phone,
    'uppercase': transform_uppercase,
    'titlecase': transform_titlecase,
    'trim': transform_trim,
    'none': transform_none,
}


def get_transform(name: str) -> Optional[TransformFunc]:
    """Get a transform function by name."""
    return TRANSFORMS.get(name)


def apply_transform(value: Any, transform_name: Optional[str]) -> str:
    """
    Apply a named transform to a value.

    If transform_name is None or not found, returns str(value).
    Never raises: a failing transform falls back to str(value).
    """
    if value is None:
        return ""

    if not transform_name:
        return str(value)

    transform_func = get_transform(transform_name)
    if not transform_func:
        logger.warning(f"Unknown transform: {transform_name}")
        return str(value)

    try:
        return transform_func(value)
    except (ValueError, TypeError, ArithmeticError) as e:
        logger.warning(f"Transform '{transform_name}' failed for {value!r}: {e}")
        return str(value)


def register_transform(name: str, func: TransformFunc) -> None:
    """
    Register a custom transform function.

    Use this to add new transforms without modifying this file:
        from services.contracts.transforms import register_transform
        register_transform('plate', my_plate_formatter)
    """
    TRANSFORMS[name] = func
    logger.debug(f"Registered transform: {name}")
