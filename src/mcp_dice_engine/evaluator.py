from __future__ import annotations

import logging
import math
import secrets
from dataclasses import dataclass
from typing import Callable, Protocol

from .errors import EvaluationError
from .models import (
    Annotated,
    Binary,
    BinaryOperator,
    Dice,
    DiceWithOps,
    Literal,
    Node,
    Selector,
    SelectorKind,
    Set,
    SetOperation,
    SetOperator,
    Unary,
    UnaryOperator,
)
from .results import (
    AnnotatedResult,
    BinaryResult,
    DiceRoll,
    DieResult,
    EvalResult,
    LiteralResult,
    SetElement,
    SetRoll,
    UnaryResult,
)


logger = logging.getLogger(__name__)

EPSILON = 1e-9
DEFAULT_MAX_ROLLS = 1000


class RandomSource(Protocol):
    """Anything that can draw a uniform integer from an inclusive range.

    ``random.Random`` and ``secrets.SystemRandom`` both qualify.
    """

    def randint(self, a: int, b: int) -> int: ...


@dataclass(frozen=True)
class EvalConfig:
    max_rolls: int = DEFAULT_MAX_ROLLS

    def __post_init__(self) -> None:
        if self.max_rolls < 0:
            raise ValueError(f"max_rolls must be non-negative, got {self.max_rolls}")


_default_rng: RandomSource = secrets.SystemRandom()


def _divide(left: float, right: float) -> float:
    # IEEE semantics: Python raises ZeroDivisionError where floats give inf/nan.
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _int_divide(left: float, right: float) -> float:
    quotient = _divide(left, right)
    if not math.isfinite(quotient):
        return quotient
    return float(math.trunc(quotient))


def _modulo(left: float, right: float) -> float:
    if right == 0 or math.isinf(left):
        return math.nan
    return math.fmod(left, right)


_BINARY_OPERATIONS: dict[BinaryOperator, Callable[[float, float], float]] = {
    BinaryOperator.ADD: lambda a, b: a + b,
    BinaryOperator.SUBTRACT: lambda a, b: a - b,
    BinaryOperator.MULTIPLY: lambda a, b: a * b,
    BinaryOperator.DIVIDE: _divide,
    BinaryOperator.INT_DIVIDE: _int_divide,
    BinaryOperator.MODULO: _modulo,
    BinaryOperator.EQUAL: lambda a, b: float(a == b),
    BinaryOperator.NOT_EQUAL: lambda a, b: float(a != b),
    BinaryOperator.GREATER: lambda a, b: float(a > b),
    BinaryOperator.GREATER_EQUAL: lambda a, b: float(a >= b),
    BinaryOperator.LESS: lambda a, b: float(a < b),
    BinaryOperator.LESS_EQUAL: lambda a, b: float(a <= b),
}


def _value_predicate(kind: SelectorKind, target: float) -> Callable[[float], bool]:
    if kind is SelectorKind.GREATER_THAN:
        return lambda value: value > target
    if kind is SelectorKind.GREATER_THAN_OR_EQUAL:
        return lambda value: value >= target
    if kind is SelectorKind.LESS_THAN:
        return lambda value: value < target
    if kind is SelectorKind.LESS_THAN_OR_EQUAL:
        return lambda value: value <= target
    if kind is SelectorKind.NOT_EQUAL:
        return lambda value: abs(value - target) > EPSILON
    # LITERAL and EQUAL_TO both match by value.
    return lambda value: abs(value - target) <= EPSILON


def _as_count(value: float, context: str) -> int:
    if not math.isfinite(value):
        raise EvaluationError(f"{context} must be a finite number, found {value}")
    if value < 0:
        raise EvaluationError(f"{context} must be non-negative")
    if abs(round(value) - value) > EPSILON:
        raise EvaluationError(f"{context} must be an integer, found {value}")
    return int(round(value))


def _as_face_count(value: float) -> int:
    if not math.isfinite(value):
        raise EvaluationError(f"die size must be a finite number, found {value}")
    if value <= 0:
        raise EvaluationError("die size must be positive")
    if abs(round(value) - value) > EPSILON:
        raise EvaluationError(f"die size must be an integer, found {value}")
    return int(round(value))


@dataclass(frozen=True)
class _DieSpec:
    low: int
    high: int
    scale: int = 1


class Evaluator:
    """Walks an AST once, rolling dice against a shared roll budget.

    An evaluator holds per-evaluation state (the roll counter); create a new
    one for every evaluation.
    """

    def __init__(self, rng: RandomSource, config: EvalConfig) -> None:
        self.rng = rng
        self.config = config
        self.rolls = 0

    def evaluate(self, node: Node) -> EvalResult:
        if isinstance(node, Literal):
            return LiteralResult(total=node.value)
        if isinstance(node, Unary):
            operand = self.evaluate(node.operand)
            total = operand.total if node.operator is UnaryOperator.PLUS else -operand.total
            return UnaryResult(total=total, operator=node.operator, operand=operand)
        if isinstance(node, Binary):
            left = self.evaluate(node.left)
            right = self.evaluate(node.right)
            total = _BINARY_OPERATIONS[node.operator](left.total, right.total)
            return BinaryResult(total=total, operator=node.operator, left=left, right=right)
        if isinstance(node, Dice):
            return self._evaluate_dice(node, ())
        if isinstance(node, DiceWithOps):
            return self._evaluate_dice(node.dice, node.operations)
        if isinstance(node, Set):
            return self._evaluate_set(node)
        if isinstance(node, Annotated):
            expr = self.evaluate(node.expr)
            return AnnotatedResult(total=expr.total, expr=expr, annotations=node.annotations)
        raise EvaluationError(f"Unknown node type: {type(node).__name__}")

    def _roll(self, spec: _DieSpec) -> float:
        if self.rolls >= self.config.max_rolls:
            raise EvaluationError(
                f"Exceeded maximum number of rolls ({self.config.max_rolls})"
            )
        self.rolls += 1
        return float(self.rng.randint(spec.low, spec.high) * spec.scale)

    def _evaluate_dice(self, dice: Dice, operations: tuple[SetOperation, ...]) -> DiceRoll:
        quantity = 1
        if dice.quantity is not None:
            quantity = _as_count(self.evaluate(dice.quantity).total, "dice quantity")

        if dice.percentile:
            spec = _DieSpec(low=0, high=9, scale=10)
            size = 10
        else:
            size = _as_face_count(self.evaluate(dice.size).total)
            spec = _DieSpec(low=1, high=size)

        pool = [DieResult.rolled(self._roll(spec)) for _ in range(quantity)]
        for operation in operations:
            self._apply_dice_operation(pool, spec, operation)

        for die in pool:
            die.dropped = not die.kept
        return DiceRoll(
            total=float(sum(die.value for die in pool if die.kept)),
            quantity=quantity,
            size=size,
            dice=pool,
            operations=operations,
            percentile=dice.percentile,
        )

    def _apply_dice_operation(
        self, pool: list[DieResult], spec: _DieSpec, operation: SetOperation
    ) -> None:
        operator = operation.operator
        selectors = operation.selectors

        if operator is SetOperator.KEEP:
            selected = set(self._select_dice(pool, selectors))
            for idx, die in enumerate(pool):
                if die.kept and idx not in selected:
                    die.kept = False

        elif operator is SetOperator.DROP:
            for idx in self._select_dice(pool, selectors):
                pool[idx].kept = False

        elif operator is SetOperator.REROLL:
            while selected := self._select_dice(pool, selectors):
                for idx in selected:
                    pool[idx].reroll(self._roll(spec))

        elif operator is SetOperator.REROLL_ONCE:
            for idx in self._select_dice(pool, selectors):
                pool[idx].reroll(self._roll(spec))

        elif operator is SetOperator.REROLL_ADD:
            for _ in self._select_dice(pool, selectors):
                pool.append(DieResult.rolled(self._roll(spec), origin="reroll_add"))

        elif operator is SetOperator.EXPLODE:
            queue = self._select_dice(pool, selectors)
            cursor = 0
            while cursor < len(queue):
                cursor += 1
                pool.append(DieResult.rolled(self._roll(spec), origin="explosion"))
                new_idx = len(pool) - 1
                if new_idx in self._select_dice(pool, selectors):
                    queue.append(new_idx)

        elif operator in (SetOperator.MINIMUM, SetOperator.MAXIMUM):
            self._apply_clamp(pool, operation)

        else:
            raise EvaluationError(
                f"Set operation {operator.value!r} is not supported in the evaluator"
            )

    def _apply_clamp(self, pool: list[DieResult], operation: SetOperation) -> None:
        minimum = operation.operator is SetOperator.MINIMUM
        name = "Minimum" if minimum else "Maximum"
        if not operation.selectors:
            raise EvaluationError(f"{name} operation requires a selector")

        first = operation.selectors[0]
        if first.kind is not SelectorKind.LITERAL:
            if minimum:
                raise EvaluationError("selector target must be positive")
            raise EvaluationError("selector target must be a literal value")
        threshold = self.evaluate(first.target).total
        if minimum and not threshold > 0:
            raise EvaluationError("selector target must be positive")

        if len(operation.selectors) > 1:
            affected = self._select_dice(pool, operation.selectors[1:])
        else:
            affected = [idx for idx, die in enumerate(pool) if die.kept]

        for idx in affected:
            die = pool[idx]
            if minimum and die.value < threshold:
                die.clamp("minimum", threshold)
            elif not minimum and die.value > threshold:
                die.clamp("maximum", threshold)

    def _evaluate_set(self, node: Set) -> SetRoll:
        elements = [SetElement(value=self.evaluate(element)) for element in node.elements]

        keep_started = False
        for operation in node.operations:
            if operation.operator is SetOperator.KEEP:
                selected = self._select(
                    [element.value.total for element in elements],
                    [True] * len(elements),
                    operation.selectors,
                )
                # Chained keeps accumulate: "kh1kl1" keeps both ends.
                if not keep_started:
                    for element in elements:
                        element.kept = False
                    keep_started = True
                for idx in selected:
                    elements[idx].kept = True
            elif operation.operator is SetOperator.DROP:
                selected = self._select(
                    [element.value.total for element in elements],
                    [element.kept for element in elements],
                    operation.selectors,
                )
                for idx in selected:
                    elements[idx].kept = False
            else:
                raise EvaluationError(
                    f"Set operation {operation.operator.value!r} is not supported for sets"
                )

        for element in elements:
            element.dropped = not element.kept
        return SetRoll(
            total=float(sum(element.value.total for element in elements if element.kept)),
            elements=elements,
            operations=node.operations,
        )

    def _select_dice(self, pool: list[DieResult], selectors: tuple[Selector, ...]) -> list[int]:
        return self._select(
            [die.value for die in pool],
            [die.kept for die in pool],
            selectors,
        )

    def _select(
        self,
        values: list[float],
        eligible: list[bool],
        selectors: tuple[Selector, ...],
    ) -> list[int]:
        """Union of every selector's matches as sorted, de-duplicated indices."""

        candidates = [idx for idx, ok in enumerate(eligible) if ok]
        selected: set[int] = set()
        for selector in selectors:
            target = self.evaluate(selector.target).total
            if selector.kind in (SelectorKind.HIGHEST, SelectorKind.LOWEST):
                count = _as_count(target, "selector")
                ordered = sorted(
                    candidates,
                    key=lambda idx: values[idx],
                    reverse=selector.kind is SelectorKind.HIGHEST,
                )
                selected.update(ordered[:count])
            else:
                matches = _value_predicate(selector.kind, target)
                selected.update(idx for idx in candidates if matches(values[idx]))
        return sorted(selected)


def evaluate(
    node: Node,
    config: EvalConfig | None = None,
    rng: RandomSource | None = None,
) -> EvalResult:
    """Evaluate an AST.

    ``config`` defaults to ``EvalConfig()`` (1000 rolls) and ``rng`` to a
    process-wide ``secrets.SystemRandom``. Raises EvaluationError.
    """

    evaluator = Evaluator(
        rng if rng is not None else _default_rng,
        config if config is not None else EvalConfig(),
    )
    result = evaluator.evaluate(node)
    logger.debug("Evaluated expression: total=%s rolls=%d", result.total, evaluator.rolls)
    return result
