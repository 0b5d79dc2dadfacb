from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenKind(Enum):
    NUMBER = "number"
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    DOUBLE_SLASH = "//"
    PERCENT = "%"
    EQUAL_EQUAL = "=="
    NOT_EQUAL = "!="
    GREATER = ">"
    GREATER_EQUAL = ">="
    LESS = "<"
    LESS_EQUAL = "<="
    LPAREN = "("
    RPAREN = ")"
    SET_START = "{"
    SET_END = "}"
    ANNOTATION_START = "["
    ANNOTATION_END = "]"
    ANNOTATION_TEXT = "annotation text"
    COMMA = ","
    DICE = "d"
    DICE_PERCENT = "d%"
    KEEP = "k"
    DROP = "p"
    REROLL = "rr"
    REROLL_ONCE = "ro"
    REROLL_ADD = "ra"
    EXPLODE = "!"
    MIN = "mi"
    MAX = "ma"
    SELECTOR_HIGH = "h"
    SELECTOR_LOW = "l"
    EOF = "end of input"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: float | str | None = None

    def __str__(self) -> str:
        if self.kind is TokenKind.NUMBER:
            return f"number {self.value:g}"
        if self.kind is TokenKind.ANNOTATION_TEXT:
            return f"annotation text {self.value!r}"
        if self.kind is TokenKind.EOF:
            return "end of input"
        return f"'{self.kind.value}'"


EOF_TOKEN = Token(TokenKind.EOF)

# Longest-match table, checked before single characters.
DOUBLE_CHAR_TOKENS: dict[str, TokenKind] = {
    "//": TokenKind.DOUBLE_SLASH,
    "==": TokenKind.EQUAL_EQUAL,
    "!=": TokenKind.NOT_EQUAL,
    ">=": TokenKind.GREATER_EQUAL,
    "<=": TokenKind.LESS_EQUAL,
    "rr": TokenKind.REROLL,
    "ro": TokenKind.REROLL_ONCE,
    "ra": TokenKind.REROLL_ADD,
    "mi": TokenKind.MIN,
    "ma": TokenKind.MAX,
    "d%": TokenKind.DICE_PERCENT,
}

SINGLE_CHAR_TOKENS: dict[str, TokenKind] = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "%": TokenKind.PERCENT,
    ">": TokenKind.GREATER,
    "<": TokenKind.LESS,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.SET_START,
    "}": TokenKind.SET_END,
    "[": TokenKind.ANNOTATION_START,
    "]": TokenKind.ANNOTATION_END,
    ",": TokenKind.COMMA,
    "d": TokenKind.DICE,
    "k": TokenKind.KEEP,
    "p": TokenKind.DROP,
    "e": TokenKind.EXPLODE,
    "!": TokenKind.EXPLODE,
    "h": TokenKind.SELECTOR_HIGH,
    "l": TokenKind.SELECTOR_LOW,
}
