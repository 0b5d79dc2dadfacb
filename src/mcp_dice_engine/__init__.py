"""Dice-notation engine: parse, evaluate and roll tabletop dice expressions."""

from .dice import explain, roll, roll_from_text
from .errors import DiceError, EvaluationError, LexerError, ParserError
from .evaluator import EvalConfig, Evaluator, RandomSource, evaluate
from .parser import format_expression, parse
from .results import (
    AnnotatedResult,
    BinaryResult,
    DiceRoll,
    DieAdjustment,
    DieResult,
    EvalResult,
    LiteralResult,
    SetElement,
    SetRoll,
    UnaryResult,
)

__all__ = [
    "AnnotatedResult",
    "BinaryResult",
    "DiceError",
    "DiceRoll",
    "DieAdjustment",
    "DieResult",
    "EvalConfig",
    "EvalResult",
    "EvaluationError",
    "Evaluator",
    "LexerError",
    "LiteralResult",
    "ParserError",
    "RandomSource",
    "SetElement",
    "SetRoll",
    "UnaryResult",
    "evaluate",
    "explain",
    "format_expression",
    "parse",
    "roll",
    "roll_from_text",
]
