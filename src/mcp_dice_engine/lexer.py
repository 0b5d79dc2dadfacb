from __future__ import annotations

from enum import Enum
from typing import Iterator

from .errors import LexerError
from .tokens import DOUBLE_CHAR_TOKENS, EOF_TOKEN, SINGLE_CHAR_TOKENS, Token, TokenKind


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


class LexerMode(Enum):
    NORMAL = "normal"
    # Entered right after '[': text up to the next ']' is one token.
    ANNOTATION = "annotation"


class Lexer:
    """Pull-based tokenizer for dice notation.

    Tokens are produced one at a time by :meth:`next_token`; once the input is
    exhausted every further call returns an ``EOF`` token.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.mode = LexerMode.NORMAL

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.kind is TokenKind.EOF:
                return

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        return self.text[idx] if idx < len(self.text) else ""

    def _skip_whitespace(self) -> None:
        while not self._at_end() and self.text[self.pos].isspace():
            self.pos += 1

    def next_token(self) -> Token:
        if self.mode is LexerMode.ANNOTATION:
            return self._annotation_text()

        self._skip_whitespace()
        if self._at_end():
            return EOF_TOKEN

        kind = DOUBLE_CHAR_TOKENS.get(self.text[self.pos : self.pos + 2])
        if kind is not None:
            self.pos += 2
            return Token(kind)

        c = self._peek()
        kind = SINGLE_CHAR_TOKENS.get(c)
        if kind is not None:
            self.pos += 1
            if kind is TokenKind.ANNOTATION_START:
                self.mode = LexerMode.ANNOTATION
            return Token(kind)

        if _is_digit(c) or (c == "." and _is_digit(self._peek(1))):
            return self._number()

        if c == "=":
            raise LexerError(f"Unexpected '=' at position {self.pos}. Did you mean '=='?")
        raise LexerError(f"Unexpected character {c!r} at position {self.pos}")

    def _annotation_text(self) -> Token:
        end = self.text.find("]", self.pos)
        if end < 0:
            raise LexerError(
                f"Unterminated annotation starting at position {self.pos}; missing closing ']'"
            )
        text = self.text[self.pos : end].strip()
        self.pos = end
        self.mode = LexerMode.NORMAL
        return Token(TokenKind.ANNOTATION_TEXT, text)

    def _number(self) -> Token:
        start = self.pos
        seen_dot = False

        while not self._at_end():
            c = self._peek()
            if _is_digit(c):
                self.pos += 1
            elif c == "." and not seen_dot:
                if not _is_digit(self._peek(1)):
                    raise LexerError(f"Invalid decimal literal starting at position {start}")
                seen_dot = True
                self.pos += 1
            else:
                break

        literal = self.text[start : self.pos]
        try:
            value = float(literal)
        except ValueError:
            raise LexerError(f"Failed to parse number literal {literal!r}") from None
        return Token(TokenKind.NUMBER, value)


def tokenize(text: str) -> list[Token]:
    """Tokenize the whole input, including the trailing EOF token."""

    return list(Lexer(text))
