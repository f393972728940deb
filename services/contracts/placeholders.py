"""
Placeholder Substitution

Replaces {{identifier}} tokens in clause text with resolved variables.

Identifiers are case-sensitive and made of letters, digits and
underscores. Values are coerced with str(); None becomes "".

Two modes:
    strict  - any identifier missing from the variable bag raises
              UnresolvedVariable (default for legal documents)
    lenient - missing identifiers are left in the text untouched
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from flask import current_app, has_app_context

from .types import PLACEHOLDER_PATTERN
from .exceptions import UnresolvedVariable

logger = logging.getLogger(__name__)


def find_placeholders(text: str) -> List[str]:
    """Unique placeholder names in order of first appearance."""
    names = []
    for name in PLACEHOLDER_PATTERN.findall(text or ''):
        if name not in names:
            names.append(name)
    return names


def missing_placeholders(text: str, variables: Mapping[str, Any]) -> List[str]:
    """Placeholders in `text` that have no entry in `variables`."""
    return [name for name in find_placeholders(text) if name not in variables]


def is_strict_default() -> bool:
    """Strict mode setting from the app config, strict when no app is active."""
    if has_app_context():
        return bool(current_app.config.get('PLACEHOLDER_STRICT', True))
    return True


def substitute(
    text: str,
    variables: Mapping[str, Any],
    strict: Optional[bool] = None,
    template_name: str = None
) -> str:
    """
    Substitute every known placeholder in `text`.

    Args:
        text: Clause content containing {{placeholders}}
        variables: Flat resolved variable bag
        strict: Override the configured mode (None = use config)
        template_name: Used in error and log messages

    Returns:
        Text with placeholders replaced

    Raises:
        UnresolvedVariable: strict mode and at least one name is missing
    """
    if not text:
        return ''

    if strict is None:
        strict = is_strict_default()

    missing = missing_placeholders(text, variables)
    if missing:
        if strict:
            raise UnresolvedVariable(missing, template_name=template_name)
        logger.warning(
            f"Leaving unresolved placeholder(s) {missing} in "
            f"'{template_name or 'document'}'"
        )

    def _replace(match):
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        value = variables[name]
        return '' if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def substitute_all(
    texts: List[str],
    variables: Dict[str, Any],
    strict: Optional[bool] = None,
    template_name: str = None
) -> List[str]:
    """
    Substitute a batch of texts, reporting every missing name at once.

    In strict mode the error lists the union of missing placeholders
    across all texts rather than stopping at the first clause.
    """
    if strict is None:
        strict = is_strict_default()

    if strict:
        missing = []
        for text in texts:
            for name in missing_placeholders(text, variables):
                if name not in missing:
                    missing.append(name)
        if missing:
            raise UnresolvedVariable(missing, template_name=template_name)

    return [substitute(text, variables, strict=strict, template_name=template_name)
            for text in texts]
