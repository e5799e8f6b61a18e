"""Predicate format parsing and evaluation.

Predicates are written in a small format language::

    age >= 18 AND name BEGINSWITH[c] 'a'
    status IN {'active', 'pending'} OR NOT archived == YES
    price BETWEEN {%@, %@}
    owner.id == $owner

The format is parsed once into a tree of nodes; evaluating the predicate
walks that tree against a record (attribute access) or a row (mapping
access).
"""

import re
import unicodedata
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import structlog

from ..exceptions import PredicateSyntaxError
from .sorting import value_for_key_path
from .tokenizer import Token, TokenKind, tokenize

logger = structlog.get_logger(__name__)

Bindings = Dict[str, Any]

_KEYWORD_OPERATORS = {"BEGINSWITH", "ENDSWITH", "CONTAINS", "LIKE", "MATCHES", "IN", "BETWEEN"}
_SYMBOL_OPERATORS = {
    "==": "==",
    "=": "==",
    "!=": "!=",
    "<>": "!=",
    "<": "<",
    "<=": "<=",
    "=<": "<=",
    ">": ">",
    ">=": ">=",
    "=>": ">=",
}
_LITERAL_KEYWORDS = {
    "TRUE": True,
    "YES": True,
    "FALSE": False,
    "NO": False,
    "NIL": None,
    "NULL": None,
}
_RESERVED = (
    _KEYWORD_OPERATORS
    | set(_LITERAL_KEYWORDS)
    | {"AND", "OR", "NOT", "TRUEPREDICATE", "FALSEPREDICATE"}
)


# --------------------------------------------------------------------------
# Operands
# --------------------------------------------------------------------------


class KeyPath:
    """Operand resolved against the evaluated object."""

    def __init__(self, path: str) -> None:
        self.path = path

    def resolve(self, obj: Any, bindings: Bindings) -> Any:
        if self.path == "SELF":
            return obj
        return value_for_key_path(obj, self.path)

    def __repr__(self) -> str:
        return self.path


class Literal:
    """Constant operand."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def resolve(self, obj: Any, bindings: Bindings) -> Any:
        return self.value

    def __repr__(self) -> str:
        if self.value is None:
            return "NIL"
        if isinstance(self.value, bool):
            return "YES" if self.value else "NO"
        return repr(self.value)


class Variable:
    """``$name`` operand bound through substitutions."""

    def __init__(self, name: str) -> None:
        self.name = name

    def resolve(self, obj: Any, bindings: Bindings) -> Any:
        if self.name not in bindings:
            logger.warning("predicate_unbound_variable", variable=self.name)
            raise PredicateSyntaxError(f"no substitution for variable ${self.name}")
        return bindings[self.name]

    def __repr__(self) -> str:
        return f"${self.name}"


class Aggregate:
    """``{a, b, ...}`` operand."""

    def __init__(self, items: List[Any]) -> None:
        self.items = items

    def resolve(self, obj: Any, bindings: Bindings) -> List[Any]:
        return [item.resolve(obj, bindings) for item in self.items]

    def __repr__(self) -> str:
        return "{" + ", ".join(repr(item) for item in self.items) + "}"


# --------------------------------------------------------------------------
# Nodes
# --------------------------------------------------------------------------


def _fold(value: Any, case_insensitive: bool, diacritic_insensitive: bool) -> Any:
    if not isinstance(value, str):
        return value
    if diacritic_insensitive:
        value = "".join(
            ch for ch in unicodedata.normalize("NFKD", value) if not unicodedata.combining(ch)
        )
    if case_insensitive:
        value = value.casefold()
    return value


def _like_to_regex(pattern: str) -> str:
    parts = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return "".join(parts)


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def compile_pattern(pattern: str, case_insensitive: bool = False) -> "re.Pattern[str]":
    """Compile a MATCHES pattern; ``[c]`` maps to ``re.IGNORECASE``."""
    return re.compile(pattern, re.IGNORECASE if case_insensitive else 0)


class Comparison:
    """``left <operator>[flags] right``."""

    def __init__(self, left: Any, operator: str, right: Any, flags: str = "") -> None:
        self.left = left
        self.operator = operator
        self.right = right
        self.flags = flags
        self.pattern: Optional["re.Pattern[str]"] = None
        if operator == "MATCHES" and isinstance(right, Literal) and isinstance(right.value, str):
            self.pattern = compile_pattern(right.value, self.case_insensitive)

    @property
    def case_insensitive(self) -> bool:
        return "c" in self.flags

    @property
    def diacritic_insensitive(self) -> bool:
        return "d" in self.flags

    def evaluate(self, obj: Any, bindings: Bindings) -> bool:
        left = self.left.resolve(obj, bindings)
        right = self.right.resolve(obj, bindings)
        return self._compare(left, right)

    def _norm(self, value: Any) -> Any:
        if _is_collection(value):
            return [self._norm(item) for item in value]
        return _fold(value, self.case_insensitive, self.diacritic_insensitive)

    def _compare(self, left: Any, right: Any) -> bool:
        op = self.operator
        if op == "MATCHES":
            return self._matches(left, right)
        left, right = self._norm(left), self._norm(right)

        if op == "==":
            return left == right
        if op == "!=":
            return left != right

        if op in ("<", "<=", ">", ">="):
            if left is None or right is None:
                return False
            try:
                if op == "<":
                    return left < right
                if op == "<=":
                    return left <= right
                if op == ">":
                    return left > right
                return left >= right
            except TypeError:
                return False

        if op == "BEGINSWITH":
            return isinstance(left, str) and isinstance(right, str) and left.startswith(right)
        if op == "ENDSWITH":
            return isinstance(left, str) and isinstance(right, str) and left.endswith(right)
        if op == "CONTAINS":
            if isinstance(left, str) and isinstance(right, str):
                return right in left
            if _is_collection(left):
                return right in left
            return False
        if op == "LIKE":
            if not (isinstance(left, str) and isinstance(right, str)):
                return False
            return re.fullmatch(_like_to_regex(right), left, re.DOTALL) is not None
        if op == "IN":
            if _is_collection(right):
                return left in right
            if isinstance(right, str) and isinstance(left, str):
                return left in right
            return False
        if op == "BETWEEN":
            if not (_is_collection(right) and len(right) == 2) or left is None:
                return False
            low, high = right
            try:
                return low <= left <= high
            except TypeError:
                return False

        raise PredicateSyntaxError(f"unsupported operator {op}")

    def _matches(self, left: Any, right: Any) -> bool:
        # Only the value is folded; the pattern keeps escapes such as \D
        if not (isinstance(left, str) and isinstance(right, str)):
            return False
        pattern = self.pattern
        if pattern is None:
            try:
                pattern = compile_pattern(right, self.case_insensitive)
            except re.error as e:
                logger.warning("predicate_invalid_pattern", pattern=right, error=str(e))
                raise PredicateSyntaxError(f"invalid MATCHES pattern {right!r}: {e}") from e
        left = _fold(left, False, self.diacritic_insensitive)
        return pattern.fullmatch(left) is not None

    def __repr__(self) -> str:
        flags = f"[{self.flags}]" if self.flags else ""
        return f"{self.left!r} {self.operator}{flags} {self.right!r}"


class And:
    def __init__(self, children: List[Any]) -> None:
        self.children = children

    def evaluate(self, obj: Any, bindings: Bindings) -> bool:
        return all(child.evaluate(obj, bindings) for child in self.children)

    def __repr__(self) -> str:
        return "(" + " AND ".join(repr(c) for c in self.children) + ")"


class Or:
    def __init__(self, children: List[Any]) -> None:
        self.children = children

    def evaluate(self, obj: Any, bindings: Bindings) -> bool:
        return any(child.evaluate(obj, bindings) for child in self.children)

    def __repr__(self) -> str:
        return "(" + " OR ".join(repr(c) for c in self.children) + ")"


class Not:
    def __init__(self, child: Any) -> None:
        self.child = child

    def evaluate(self, obj: Any, bindings: Bindings) -> bool:
        return not self.child.evaluate(obj, bindings)

    def __repr__(self) -> str:
        return f"NOT {self.child!r}"


class Constant:
    def __init__(self, value: bool) -> None:
        self.value = value

    def evaluate(self, obj: Any, bindings: Bindings) -> bool:
        return self.value

    def __repr__(self) -> str:
        return "TRUEPREDICATE" if self.value else "FALSEPREDICATE"


class CallableNode:
    def __init__(self, func: Callable[[Any], Any]) -> None:
        self.func = func

    def evaluate(self, obj: Any, bindings: Bindings) -> bool:
        return bool(self.func(obj))

    def __repr__(self) -> str:
        return f"<callable {getattr(self.func, '__name__', repr(self.func))}>"


# --------------------------------------------------------------------------
# Parser
# --------------------------------------------------------------------------


class PredicateParser:
    """Recursive descent parser producing a node tree."""

    def __init__(self, source: str, arguments: Sequence[Any] = ()) -> None:
        self.source = source
        self.tokens = tokenize(source)
        self.token_pos = 0
        self.arguments = list(arguments)
        self.argument_pos = 0

    # Token operations

    def current(self) -> Token:
        return self.tokens[self.token_pos]

    def consume(self) -> Token:
        token = self.current()
        if token.kind is not TokenKind.END:
            self.token_pos += 1
        return token

    def error(self, message: str, token: Optional[Token] = None) -> PredicateSyntaxError:
        token = token or self.current()
        logger.warning(
            "predicate_syntax_error",
            predicate=self.source,
            position=token.position,
            error=message,
        )
        return PredicateSyntaxError(message, self.source, token.position)

    def expect(self, text: str) -> Token:
        token = self.current()
        if token.text != text:
            found = token.text or "end of input"
            raise self.error(f"expected '{text}' but found '{found}'")
        return self.consume()

    def at_keyword(self, *words: str) -> bool:
        token = self.current()
        return token.kind is TokenKind.IDENT and token.text.upper() in words

    def at_symbol(self, *symbols: str) -> bool:
        token = self.current()
        return token.kind in (TokenKind.OPERATOR, TokenKind.PUNCT) and token.text in symbols

    # Grammar

    def parse(self) -> Any:
        if self.current().kind is TokenKind.END:
            raise self.error("empty predicate")
        node = self.parse_or()
        if self.current().kind is not TokenKind.END:
            raise self.error(f"unexpected '{self.current().text}'")
        if self.argument_pos < len(self.arguments):
            logger.warning(
                "predicate_unused_arguments",
                predicate=self.source,
                arguments=len(self.arguments),
                placeholders=self.argument_pos,
            )
            raise PredicateSyntaxError(
                f"{len(self.arguments)} arguments given but only {self.argument_pos} placeholders used",
                self.source,
            )
        return node

    def parse_or(self) -> Any:
        children = [self.parse_and()]
        while self.at_keyword("OR") or self.at_symbol("||"):
            self.consume()
            children.append(self.parse_and())
        return children[0] if len(children) == 1 else Or(children)

    def parse_and(self) -> Any:
        children = [self.parse_not()]
        while self.at_keyword("AND") or self.at_symbol("&&"):
            self.consume()
            children.append(self.parse_not())
        return children[0] if len(children) == 1 else And(children)

    def parse_not(self) -> Any:
        if self.at_keyword("NOT") or self.at_symbol("!"):
            self.consume()
            return Not(self.parse_not())
        return self.parse_primary()

    def parse_primary(self) -> Any:
        if self.at_symbol("("):
            self.consume()
            node = self.parse_or()
            self.expect(")")
            return node
        if self.at_keyword("TRUEPREDICATE"):
            self.consume()
            return Constant(True)
        if self.at_keyword("FALSEPREDICATE"):
            self.consume()
            return Constant(False)
        return self.parse_comparison()

    def parse_comparison(self) -> Comparison:
        left = self.parse_operand()
        operator = self.parse_operator()
        flags = self.parse_flags()
        right_token = self.current()
        right = self.parse_operand()
        if operator == "BETWEEN" and not (isinstance(right, Aggregate) and len(right.items) == 2) \
                and not isinstance(right, (Variable, Literal)):
            raise self.error("BETWEEN needs a two element aggregate")
        try:
            return Comparison(left, operator, right, flags)
        except re.error as e:
            raise self.error(f"invalid MATCHES pattern: {e}", right_token) from e

    def parse_operator(self) -> str:
        token = self.current()
        if token.kind is TokenKind.OPERATOR and token.text in _SYMBOL_OPERATORS:
            self.consume()
            return _SYMBOL_OPERATORS[token.text]
        if token.kind is TokenKind.IDENT and token.text.upper() in _KEYWORD_OPERATORS:
            self.consume()
            return token.text.upper()
        found = token.text or "end of input"
        raise self.error(f"expected comparison operator but found '{found}'")

    def parse_flags(self) -> str:
        if not self.at_symbol("["):
            return ""
        self.consume()
        token = self.consume()
        flags = token.text.lower()
        if token.kind is not TokenKind.IDENT or not flags or set(flags) - {"c", "d"}:
            raise self.error(f"invalid comparison options '{token.text}'", token)
        self.expect("]")
        return flags

    def parse_operand(self) -> Any:
        token = self.current()
        if token.kind in (TokenKind.NUMBER, TokenKind.STRING):
            self.consume()
            return Literal(token.value)
        if token.kind is TokenKind.PLACEHOLDER:
            self.consume()
            if self.argument_pos >= len(self.arguments):
                raise self.error("not enough arguments for %@ placeholders", token)
            value = self.arguments[self.argument_pos]
            self.argument_pos += 1
            return Literal(value)
        if token.kind is TokenKind.VARIABLE:
            self.consume()
            return Variable(token.value)
        if self.at_symbol("{"):
            return self.parse_aggregate()
        if token.kind is TokenKind.IDENT:
            word = token.text.upper()
            if word in _LITERAL_KEYWORDS:
                self.consume()
                return Literal(_LITERAL_KEYWORDS[word])
            if word in _RESERVED:
                raise self.error(f"unexpected keyword '{token.text}'")
            self.consume()
            return KeyPath(token.text)
        found = token.text or "end of input"
        raise self.error(f"expected value or key path but found '{found}'")

    def parse_aggregate(self) -> Aggregate:
        self.expect("{")
        items: List[Any] = []
        if not self.at_symbol("}"):
            items.append(self.parse_operand())
            while self.at_symbol(","):
                self.consume()
                items.append(self.parse_operand())
        self.expect("}")
        return Aggregate(items)


# --------------------------------------------------------------------------
# Public API
# --------------------------------------------------------------------------


class Predicate:
    """
    A reusable filter over records.

    Build from a format string, from keyword equalities, or from a callable,
    then combine with ``&``, ``|`` and ``~``. Evaluate by calling it.
    """

    def __init__(self, format_string: str, *arguments: Any) -> None:
        """
        Parse a predicate format string.

        Args:
            format_string: Predicate in the format language
            *arguments: Values for ``%@`` placeholders, in order

        Raises:
            PredicateSyntaxError: If the format cannot be parsed
        """
        self._node = PredicateParser(format_string, arguments).parse()
        self._bindings: Bindings = {}
        self.format_string = format_string
        logger.debug("predicate_parsed", predicate=format_string, tree=repr(self._node))

    @classmethod
    def _from_node(cls, node: Any, bindings: Optional[Bindings] = None) -> "Predicate":
        predicate = cls.__new__(cls)
        predicate._node = node
        predicate._bindings = dict(bindings or {})
        predicate.format_string = repr(node)
        return predicate

    @classmethod
    def where(cls, **equalities: Any) -> "Predicate":
        """Predicate matching when every key path equals the given value.

        A double underscore in a keyword name stands for a dot, so
        ``where(address__city="Oslo")`` compares ``address.city``.
        """
        if not equalities:
            return cls._from_node(Constant(True))
        children = [
            Comparison(KeyPath(key.replace("__", ".")), "==", Literal(value))
            for key, value in equalities.items()
        ]
        return cls._from_node(children[0] if len(children) == 1 else And(children))

    @classmethod
    def from_callable(cls, func: Callable[[Any], Any]) -> "Predicate":
        """Wrap a plain ``record -> bool`` function."""
        return cls._from_node(CallableNode(func))

    @classmethod
    def coerce(cls, value: Union["Predicate", str, Callable[[Any], Any]]) -> "Predicate":
        """Turn a predicate, format string or callable into a Predicate."""
        if isinstance(value, Predicate):
            return value
        if isinstance(value, str):
            return cls(value)
        if callable(value):
            return cls.from_callable(value)
        raise TypeError(f"cannot use {type(value).__name__} as a predicate")

    def with_substitutions(self, mapping: Optional[Mapping] = None, **bindings: Any) -> "Predicate":
        """Return a copy with ``$variables`` bound."""
        merged = dict(self._bindings)
        if mapping:
            merged.update(mapping)
        merged.update(bindings)
        return self._from_node(self._node, merged)

    def evaluate(self, obj: Any) -> bool:
        return bool(self._node.evaluate(obj, self._bindings))

    __call__ = evaluate

    def filter(self, objects: Any) -> List[Any]:
        return [obj for obj in objects if self.evaluate(obj)]

    def _combine(self, other: Any, node_type: type) -> "Predicate":
        other = Predicate.coerce(other)
        bindings = {**self._bindings, **other._bindings}
        return self._from_node(node_type([self._node, other._node]), bindings)

    def __and__(self, other: Any) -> "Predicate":
        return self._combine(other, And)

    def __or__(self, other: Any) -> "Predicate":
        return self._combine(other, Or)

    def __invert__(self) -> "Predicate":
        return self._from_node(Not(self._node), self._bindings)

    def __repr__(self) -> str:
        return f"Predicate({self.format_string!r})"
