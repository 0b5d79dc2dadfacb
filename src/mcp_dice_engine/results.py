from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from .models import Annotation, BinaryOperator, SetOperation, UnaryOperator


DieOrigin: TypeAlias = Literal["original", "reroll_add", "explosion"]
AdjustmentKind: TypeAlias = Literal["minimum", "maximum"]


@dataclass(frozen=True)
class DieAdjustment:
    kind: AdjustmentKind
    threshold: float
    previous: float


@dataclass
class DieResult:
    """One die position in a pool.

    ``rolls`` holds every value the position has been rolled to, in order;
    ``value`` is the current value, which differs from ``rolls[-1]`` only when
    a minimum/maximum clamp was applied.
    """

    value: float
    rolls: list[float] = field(default_factory=list)
    kept: bool = True
    dropped: bool = False
    origin: DieOrigin = "original"
    adjustments: list[DieAdjustment] = field(default_factory=list)

    @classmethod
    def rolled(cls, value: float, origin: DieOrigin = "original") -> DieResult:
        return cls(value=value, rolls=[value], origin=origin)

    def reroll(self, value: float) -> None:
        self.rolls.append(value)
        self.value = value

    def clamp(self, kind: AdjustmentKind, threshold: float) -> None:
        self.adjustments.append(DieAdjustment(kind=kind, threshold=threshold, previous=self.value))
        self.value = threshold


@dataclass
class LiteralResult:
    total: float


@dataclass
class UnaryResult:
    total: float
    operator: UnaryOperator
    operand: EvalResult


@dataclass
class BinaryResult:
    total: float
    operator: BinaryOperator
    left: EvalResult
    right: EvalResult


@dataclass
class DiceRoll:
    total: float
    quantity: int
    size: int
    dice: list[DieResult]
    operations: tuple[SetOperation, ...] = ()
    percentile: bool = False

    @property
    def kept(self) -> list[DieResult]:
        return [die for die in self.dice if die.kept]


@dataclass
class SetElement:
    value: EvalResult
    kept: bool = True
    dropped: bool = False


@dataclass
class SetRoll:
    total: float
    elements: list[SetElement]
    operations: tuple[SetOperation, ...] = ()


@dataclass
class AnnotatedResult:
    total: float
    expr: EvalResult
    annotations: tuple[Annotation, ...]


EvalResult: TypeAlias = (
    LiteralResult | UnaryResult | BinaryResult | DiceRoll | SetRoll | AnnotatedResult
)
