from __future__ import annotations

import random
import secrets
import uuid
from datetime import datetime, timezone
from typing import Any

from .evaluator import EvalConfig, RandomSource, evaluate
from .models import Annotated, Binary, Dice, DiceWithOps, Literal, Node, Set, SetOperation, Unary
from .parser import format_expression, format_operations, parse
from .results import (
    AnnotatedResult,
    BinaryResult,
    DiceRoll,
    DieResult,
    EvalResult,
    LiteralResult,
    SetRoll,
    UnaryResult,
)


def roll(
    text: str,
    config: EvalConfig | None = None,
    rng: RandomSource | None = None,
) -> EvalResult:
    """Parse then evaluate. Raises DiceError for invalid input."""

    return evaluate(parse(text), config=config, rng=rng)


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _rng_source_name(rng: RandomSource) -> str:
    if isinstance(rng, secrets.SystemRandom):
        return "secrets.SystemRandom"
    if isinstance(rng, random.Random):
        return "random.Random"
    return type(rng).__name__


def _number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def _die_label(die: DieResult) -> str:
    label = ">".join(str(_number(v)) for v in die.rolls)
    if die.adjustments:
        label = f"{label}->{_number(die.value)}*"
    if die.dropped:
        label = f"~{label}~"
    return label


def _dice_notation(roll_: DiceRoll) -> str:
    size = "%" if roll_.percentile else str(roll_.size)
    return f"{roll_.quantity}d{size}{format_operations(roll_.operations)}"


def _collect_explanations(result: EvalResult, parts: list[str]) -> None:
    if isinstance(result, DiceRoll):
        labels = ", ".join(_die_label(die) for die in result.dice)
        parts.append(f"{_dice_notation(result)}: [{labels}] => {_number(result.total)}")
    elif isinstance(result, SetRoll):
        for element in result.elements:
            _collect_explanations(element.value, parts)
        if result.operations:
            kept = ", ".join(
                str(_number(e.value.total)) if e.kept else f"~{_number(e.value.total)}~"
                for e in result.elements
            )
            parts.append(f"set {format_operations(result.operations)}: [{kept}] => {_number(result.total)}")
    elif isinstance(result, UnaryResult):
        _collect_explanations(result.operand, parts)
    elif isinstance(result, BinaryResult):
        _collect_explanations(result.left, parts)
        _collect_explanations(result.right, parts)
    elif isinstance(result, AnnotatedResult):
        _collect_explanations(result.expr, parts)


def explain(result: EvalResult) -> str:
    """One-line trace of every dice group in evaluation order.

    Dropped dice are wrapped in ``~``, reroll histories are joined with ``>``
    and clamped dice end in ``*``.
    """

    parts: list[str] = []
    _collect_explanations(result, parts)
    total = f"=> {_number(result.total)}"
    return f"{'; '.join(parts)} {total}" if parts else total


def _operations_to_dict(operations: tuple[SetOperation, ...]) -> list[dict[str, Any]]:
    return [
        {
            "operator": operation.operator.value,
            "selectors": [
                {"kind": selector.kind.name.lower(), "target": node_to_dict(selector.target)}
                for selector in operation.selectors
            ],
        }
        for operation in operations
    ]


def node_to_dict(node: Node) -> dict[str, Any]:
    if isinstance(node, Literal):
        return {"type": "literal", "value": node.value}
    if isinstance(node, Unary):
        return {"type": "unary", "operator": node.operator.value, "operand": node_to_dict(node.operand)}
    if isinstance(node, Binary):
        return {
            "type": "binary",
            "operator": node.operator.value,
            "left": node_to_dict(node.left),
            "right": node_to_dict(node.right),
        }
    if isinstance(node, Dice):
        return {
            "type": "dice",
            "quantity": None if node.quantity is None else node_to_dict(node.quantity),
            "size": "%" if node.percentile else node_to_dict(node.size),
        }
    if isinstance(node, DiceWithOps):
        return {
            "type": "dice_with_ops",
            "dice": node_to_dict(node.dice),
            "operations": _operations_to_dict(node.operations),
        }
    if isinstance(node, Set):
        return {
            "type": "set",
            "elements": [node_to_dict(element) for element in node.elements],
            "operations": _operations_to_dict(node.operations),
        }
    if isinstance(node, Annotated):
        return {
            "type": "annotated",
            "expr": node_to_dict(node.expr),
            "annotations": [annotation.text for annotation in node.annotations],
        }
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def result_to_dict(result: EvalResult) -> dict[str, Any]:
    if isinstance(result, LiteralResult):
        return {"type": "literal", "total": result.total}
    if isinstance(result, UnaryResult):
        return {
            "type": "unary",
            "total": result.total,
            "operator": result.operator.value,
            "operand": result_to_dict(result.operand),
        }
    if isinstance(result, BinaryResult):
        return {
            "type": "binary",
            "total": result.total,
            "operator": result.operator.value,
            "left": result_to_dict(result.left),
            "right": result_to_dict(result.right),
        }
    if isinstance(result, DiceRoll):
        return {
            "type": "dice",
            "total": result.total,
            "quantity": result.quantity,
            "size": "%" if result.percentile else result.size,
            "operations": _operations_to_dict(result.operations),
            "dice": [
                {
                    "value": die.value,
                    "rolls": list(die.rolls),
                    "kept": die.kept,
                    "dropped": die.dropped,
                    "origin": die.origin,
                    "adjustments": [
                        {"kind": adj.kind, "threshold": adj.threshold, "previous": adj.previous}
                        for adj in die.adjustments
                    ],
                }
                for die in result.dice
            ],
        }
    if isinstance(result, SetRoll):
        return {
            "type": "set",
            "total": result.total,
            "operations": _operations_to_dict(result.operations),
            "elements": [
                {"value": result_to_dict(e.value), "kept": e.kept, "dropped": e.dropped}
                for e in result.elements
            ],
        }
    if isinstance(result, AnnotatedResult):
        return {
            "type": "annotated",
            "total": result.total,
            "expr": result_to_dict(result.expr),
            "annotations": [annotation.text for annotation in result.annotations],
        }
    raise TypeError(f"Unknown result type: {type(result).__name__}")


def roll_from_text(
    text: str,
    config: EvalConfig | None = None,
    rng: RandomSource | None = None,
) -> dict[str, Any]:
    """Parse, validate, then roll. Raises DiceError for invalid input."""

    node = parse(text)
    rng = rng if rng is not None else secrets.SystemRandom()
    result = evaluate(node, config=config, rng=rng)

    return {
        "request_id": uuid.uuid4().hex,
        "timestamp": _now_utc_iso(),
        "input": text,
        "normalized_expression": format_expression(node),
        "rng": {
            "source": _rng_source_name(rng),
            "nonce": str(uuid.uuid4()),
        },
        "total": result.total,
        "detail": result_to_dict(result),
        "explanation": explain(result),
    }
