"""Variable scopes and template resolution.

Templates use double curly braces::

    {{baseUrl}}/users/{{userId}}
    {{faker.person.fullName()}}
    {{faker.internet.email({ firstName: 'Jeanne' })}}

Unknown variables and malformed dynamic-data calls are left verbatim so that
unresolved templates remain visible in the outgoing request.
"""

import ast
import re
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, List, Optional

from awsm_http.dynamic_data import DEFAULT_LOCALE, DataGenerator, get_generator, to_text
from awsm_http.utils import logger


TOKEN_PATTERN = re.compile(r"\{\{(.+?)\}\}")

CALL_PATTERN = re.compile(
    r"^(?:faker\.)?(?P<category>[A-Za-z]\w*)\.(?P<method>[A-Za-z]\w*)\((?P<args>.*)\)$",
    re.DOTALL,
)

# String literals, or identifiers optionally followed by a colon (object keys)
_LITERAL_TOKEN = re.compile(
    r"""(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")"""
    r"""|(?P<ident>[A-Za-z_$][\w$]*)(?P<colon>\s*:)?"""
)

_JS_CONSTANTS = {
    "true": "True",
    "false": "False",
    "null": "None",
    "undefined": "None",
    "True": "True",
    "False": "False",
    "None": "None",
}


class VariableScope(Mapping):
    """Immutable key -> value mapping used for one resolution pass.

    Build it with :meth:`from_layers` so disabled entries are dropped before
    precedence is applied; a disabled entry never hides a lower layer.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping] = None):
        self._values: Dict[str, str] = {str(k): to_text(v) for k, v in (values or {}).items()}

    @classmethod
    def from_layers(cls, *layers: Iterable[Any]) -> "VariableScope":
        """Merge layers of variable rows, lowest precedence first.

        Each layer is an iterable of rows with ``key``, ``value`` and
        ``enabled`` attributes (or a plain mapping, treated as all enabled).
        """
        values: Dict[str, str] = {}
        for layer in layers:
            if layer is None:
                continue
            if isinstance(layer, Mapping):
                values.update({str(k): to_text(v) for k, v in layer.items() if k})
                continue
            for row in layer:
                if not getattr(row, "enabled", True) or not row.key:
                    continue
                values[row.key] = row.value
        return cls(values)

    def merged(self, overrides: Optional[Mapping]) -> "VariableScope":
        """New scope with ``overrides`` taking precedence."""
        values = dict(self._values)
        values.update({str(k): to_text(v) for k, v in (overrides or {}).items()})
        return VariableScope(values)

    def changes_from(self, base: Mapping) -> Dict[str, str]:
        """Entries that are new or differ compared to ``base``."""
        return {k: v for k, v in self._values.items() if base.get(k) != v}

    def to_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"VariableScope({self._values!r})"


def parse_call_arguments(text: str) -> Any:
    """Parse the argument of a dynamic-data call.

    Accepts nothing, a single scalar, or a JS-style object literal with bare
    or quoted keys. Only literals are accepted; nothing is evaluated.

    Raises:
        ValueError: if the argument is not a supported literal
    """
    text = text.strip()
    if not text:
        return None

    def rewrite(match: re.Match) -> str:
        if match.group("string") is not None:
            return match.group("string")
        ident = match.group("ident")
        if match.group("colon"):
            return f"{ident!r}:"
        if ident in _JS_CONSTANTS:
            return _JS_CONSTANTS[ident]
        raise ValueError(f"unexpected identifier '{ident}'")

    literal = _LITERAL_TOKEN.sub(rewrite, text)
    try:
        value = ast.literal_eval(literal)
    except (SyntaxError, ValueError) as e:
        raise ValueError(f"invalid argument: {text}") from e
    if isinstance(value, (list, tuple, set)):
        raise ValueError("only a single object or scalar argument is supported")
    return value


def _evaluate_call(expression: str, generator: DataGenerator) -> Optional[str]:
    match = CALL_PATTERN.match(expression)
    if not match:
        return None
    try:
        argument = parse_call_arguments(match.group("args"))
        args = () if argument is None else (argument,)
        value = generator.call(match.group("category"), match.group("method"), *args)
    except Exception as e:
        logger.debug(f"Unresolvable dynamic data expression '{expression}': {e}")
        return None
    return to_text(value)


def resolve(
    text: str,
    scope: Mapping,
    locale: str = DEFAULT_LOCALE,
    generator: Optional[DataGenerator] = None,
) -> str:
    """Replace ``{{...}}`` tokens in ``text``.

    Args:
        text: Template text
        scope: Variable values (already filtered for enabled entries)
        locale: Locale for dynamic data when no generator is given
        generator: Dynamic data generator to use

    Returns:
        Resolved text. Unknown keys and malformed calls stay verbatim.
    """
    if not isinstance(text, str) or "{{" not in text:
        return text

    def replace(match: re.Match) -> str:
        nonlocal generator
        expression = match.group(1).strip()
        if expression in scope:
            return to_text(scope[expression])
        if "(" in expression:
            if generator is None:
                generator = get_generator(locale)
            value = _evaluate_call(expression, generator)
            if value is not None:
                return value
        return match.group(0)

    return TOKEN_PATTERN.sub(replace, text)


def find_variables(text: str) -> List[str]:
    """Names of plain variables referenced by ``text``, in order of appearance."""
    if not isinstance(text, str):
        return []
    names = []
    for match in TOKEN_PATTERN.finditer(text):
        expression = match.group(1).strip()
        if "(" not in expression and expression not in names:
            names.append(expression)
    return names
