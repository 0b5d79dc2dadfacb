from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal as TypingLiteral, TypeAlias


class UnaryOperator(Enum):
    PLUS = "+"
    MINUS = "-"


class BinaryOperator(Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    INT_DIVIDE = "//"
    MODULO = "%"
    EQUAL = "=="
    NOT_EQUAL = "!="
    GREATER = ">"
    GREATER_EQUAL = ">="
    LESS = "<"
    LESS_EQUAL = "<="


COMPARISON_OPERATORS = frozenset(
    {
        BinaryOperator.EQUAL,
        BinaryOperator.NOT_EQUAL,
        BinaryOperator.GREATER,
        BinaryOperator.GREATER_EQUAL,
        BinaryOperator.LESS,
        BinaryOperator.LESS_EQUAL,
    }
)


class SelectorKind(Enum):
    LITERAL = ""
    HIGHEST = "h"
    LOWEST = "l"
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    EQUAL_TO = "=="
    NOT_EQUAL = "!="


class SetOperator(Enum):
    KEEP = "keep"
    DROP = "drop"
    REROLL = "reroll"
    REROLL_ONCE = "reroll_once"
    REROLL_ADD = "reroll_add"
    EXPLODE = "explode"
    # Reserved: no notation produces these and the evaluator rejects them.
    EXPLODE_COMPOUND = "explode_compound"
    EXPLODE_PENETRATE = "explode_penetrate"
    PENETRATE = "penetrate"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    COUNT_SUCCESS = "count_success"
    COUNT_FAILURE = "count_failure"


# Notation keyword for each operator that has one.
SET_OPERATOR_SYMBOLS: dict[SetOperator, str] = {
    SetOperator.KEEP: "k",
    SetOperator.DROP: "p",
    SetOperator.REROLL: "rr",
    SetOperator.REROLL_ONCE: "ro",
    SetOperator.REROLL_ADD: "ra",
    SetOperator.EXPLODE: "e",
    SetOperator.MINIMUM: "mi",
    SetOperator.MAXIMUM: "ma",
}


PERCENT: TypingLiteral["%"] = "%"


@dataclass(frozen=True)
class Literal:
    value: float


@dataclass(frozen=True)
class Unary:
    operator: UnaryOperator
    operand: Node


@dataclass(frozen=True)
class Binary:
    operator: BinaryOperator
    left: Node
    right: Node


@dataclass(frozen=True)
class Dice:
    """``XdY`` or ``Xd%``. ``quantity`` of ``None`` means one die."""

    quantity: Node | None
    size: Node | TypingLiteral["%"]

    @property
    def percentile(self) -> bool:
        return self.size == PERCENT


@dataclass(frozen=True)
class Selector:
    kind: SelectorKind
    target: Node


@dataclass(frozen=True)
class SetOperation:
    operator: SetOperator
    selectors: tuple[Selector, ...]


@dataclass(frozen=True)
class Set:
    elements: tuple[Node, ...]
    operations: tuple[SetOperation, ...] = ()


@dataclass(frozen=True)
class DiceWithOps:
    dice: Dice
    operations: tuple[SetOperation, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.dice, Dice):
            raise TypeError(f"DiceWithOps must wrap a Dice node, not {type(self.dice).__name__}")


@dataclass(frozen=True)
class Annotation:
    text: str


@dataclass(frozen=True)
class Annotated:
    expr: Node
    annotations: tuple[Annotation, ...]


Node: TypeAlias = Literal | Unary | Binary | Dice | Set | DiceWithOps | Annotated
