"""${name} placeholder substitution and discovery.

Both directions walk the action structurally (dataclass fields, dicts, lists,
tuples) and only ever look inside string values.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Dict, List, Mapping, TypeVar

from planforge.errors import UnresolvedVariableError

VARIABLE_PATTERN = re.compile(r"\$\{([^}]+)\}")

T = TypeVar("T")


def resolve_variables(text: str, variables: Mapping[str, str]) -> str:
    """Replace every ``${name}`` in ``text`` with its binding.

    Raises:
        UnresolvedVariableError: A referenced name has no binding
    """
    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            raise UnresolvedVariableError(name)
        return str(variables[name])

    return VARIABLE_PATTERN.sub(_sub, text)


def _resolve_value(value: Any, variables: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return resolve_variables(value, variables)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        changes = {
            f.name: _resolve_value(getattr(value, f.name), variables)
            for f in dataclasses.fields(value)
        }
        return dataclasses.replace(value, **changes)
    if isinstance(value, dict):
        return {k: _resolve_value(v, variables) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_value(v, variables) for v in value]
    if isinstance(value, tuple):
        return tuple(_resolve_value(v, variables) for v in value)
    return value


def resolve_action_variables(action: T, variables: Mapping[str, str]) -> T:
    """Return a copy of ``action`` with all placeholders substituted."""
    return _resolve_value(action, variables)


def _collect(value: Any, found: List[str]) -> None:
    if isinstance(value, str):
        for name in VARIABLE_PATTERN.findall(value):
            if name not in found:
                found.append(name)
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            _collect(getattr(value, f.name), found)
    elif isinstance(value, dict):
        for v in value.values():
            _collect(v, found)
    elif isinstance(value, (list, tuple)):
        for v in value:
            _collect(v, found)


def find_variable_references(action: Any) -> List[str]:
    """Placeholder names referenced anywhere in ``action``, first-seen order."""
    found: List[str] = []
    _collect(action, found)
    return found


def describe_bindings(variables: Dict[str, str]) -> str:
    return ", ".join(f"{k}={v}" for k, v in sorted(variables.items())) or "(none)"
