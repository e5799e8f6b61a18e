"""Tokenization for predicate format strings."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List

import structlog

from ..exceptions import PredicateSyntaxError

logger = structlog.get_logger(__name__)


class TokenKind(Enum):
    """Kinds of predicate tokens."""

    NUMBER = "number"
    STRING = "string"
    IDENT = "ident"
    OPERATOR = "operator"
    PUNCT = "punct"
    PLACEHOLDER = "placeholder"
    VARIABLE = "variable"
    END = "end"


@dataclass(frozen=True)
class Token:
    """A single lexical token and where it started."""

    kind: TokenKind
    text: str
    position: int
    value: object = None


_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<placeholder>%@)
  | (?P<variable>\$[A-Za-z_]\w*)
  | (?P<ident>[A-Za-z_@][\w@]*(?:\.[A-Za-z_@][\w@]*)*)
  | (?P<operator>==|!=|<>|<=|>=|=<|=>|&&|\|\||[=<>!])
  | (?P<punct>[(){}\[\],])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}


def _unescape(body: str) -> str:
    out = []
    chars = iter(body)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(_ESCAPES.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


def tokenize(source: str) -> List[Token]:
    """
    Split a predicate format string into tokens.

    Args:
        source: Predicate format string

    Returns:
        Tokens, always terminated by an END token

    Raises:
        PredicateSyntaxError: On characters that start no valid token
    """
    tokens: List[Token] = []
    position = 0
    while position < len(source):
        match = _TOKEN_PATTERN.match(source, position)
        if match is None:
            logger.warning("predicate_unexpected_character", predicate=source, position=position)
            raise PredicateSyntaxError(
                f"unexpected character {source[position]!r}", source, position
            )
        kind_name = match.lastgroup
        text = match.group(0)
        if kind_name == "number":
            value: object = float(text) if any(c in text for c in ".eE") else int(text)
            tokens.append(Token(TokenKind.NUMBER, text, position, value))
        elif kind_name == "string":
            tokens.append(Token(TokenKind.STRING, text, position, _unescape(text[1:-1])))
        elif kind_name == "variable":
            tokens.append(Token(TokenKind.VARIABLE, text, position, text[1:]))
        elif kind_name != "ws":
            tokens.append(Token(TokenKind[kind_name.upper()], text, position))
        position = match.end()

    tokens.append(Token(TokenKind.END, "", len(source)))
    return tokens
