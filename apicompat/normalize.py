"""Rewrite function metadata into a comparison-stable form.

Only fields that clients demonstrably do not observe are touched: type tokens
were renamed (``Dictionary`` -> ``Dict``) and parameterized arrays
(``ArrayOf(...)``) were introduced without breaking any client, parameter
names are not part of the call signature, and deprecation timing is tracked
separately from the signature.
"""

from __future__ import annotations

import re
from dataclasses import replace
from types import MappingProxyType

from apicompat.model import Function, Parameter

NAMESPACE_PREFIX = "nvim_"
ARRAY_TYPE = "Array"
ARRAY_OF_PREFIX = "ArrayOf("

TYPE_RENAMES = MappingProxyType(
    {
        "Dictionary": "Dict",
    }
)

# renames apply inside composite tokens too, e.g. DictionaryOf(LuaRef)
_RENAME_PATTERN = re.compile(r"\b(" + "|".join(re.escape(name) for name in TYPE_RENAMES) + r")")


def canonical_type(token: str) -> str:
    token = _RENAME_PATTERN.sub(lambda match: TYPE_RENAMES[match.group(1)], token)
    if token.startswith(ARRAY_OF_PREFIX):
        return ARRAY_TYPE
    return token


def normalize_parameter(parameter: Parameter) -> Parameter:
    ptype, _ = parameter
    return (canonical_type(ptype), "")


def normalize_function(function: Function, *, namespace_prefix: str = NAMESPACE_PREFIX) -> Function:
    method = function.method
    if not function.name.startswith(namespace_prefix):
        method = None
    return replace(
        function,
        return_type=canonical_type(function.return_type),
        deprecated_since=None,
        parameters=tuple(normalize_parameter(parameter) for parameter in function.parameters),
        method=method,
    )
