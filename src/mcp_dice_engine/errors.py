from __future__ import annotations


class DiceError(ValueError):
    """User-facing errors raised while lexing, parsing or evaluating notation.

    The string form carries a stable bracketed code, e.g.
    ``[PARSER_ERROR] Unexpected trailing input: number 3``.
    """

    code = "DICE_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"[{self.code}] {message}")


class LexerError(DiceError):
    code = "LEXER_ERROR"


class ParserError(DiceError):
    code = "PARSER_ERROR"


class EvaluationError(DiceError):
    code = "EVALUATION_ERROR"
