import pytest

from mcp_dice_engine.models import (
    PERCENT,
    Annotated,
    Annotation,
    Binary,
    BinaryOperator as B,
    Dice,
    DiceWithOps,
    Literal,
    Selector,
    SelectorKind as S,
    Set,
    SetOperation,
    SetOperator as Op,
    Unary,
    UnaryOperator as U,
)
from mcp_dice_engine.parser import parse


def lit(value):
    return Literal(float(value))


def dice(quantity, size):
    return Dice(None if quantity is None else lit(quantity), PERCENT if size == "%" else lit(size))


def op(operator, *selectors):
    return SetOperation(operator, tuple(Selector(kind, target) for kind, target in selectors))


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("42", lit(42)),
        ("4d6", dice(4, 6)),
        ("d20", dice(None, 20)),
        ("d%", dice(None, "%")),
        ("2d%", dice(2, "%")),
        ("(1, 2)", Set((lit(1), lit(2)))),
        ("(1,)", Set((lit(1),))),
        ("()", Set(())),
        ("(1 + 2)", Binary(B.ADD, lit(1), lit(2))),
        ("((1d6))", dice(1, 6)),
        (
            "(1 + 2) * 3",
            Binary(B.MULTIPLY, Binary(B.ADD, lit(1), lit(2)), lit(3)),
        ),
        (
            "1 + 2 * 3",
            Binary(B.ADD, lit(1), Binary(B.MULTIPLY, lit(2), lit(3))),
        ),
        (
            "10 - 4 - 3",
            Binary(B.SUBTRACT, Binary(B.SUBTRACT, lit(10), lit(4)), lit(3)),
        ),
        (
            "7 // 2 % 3",
            Binary(B.MODULO, Binary(B.INT_DIVIDE, lit(7), lit(2)), lit(3)),
        ),
        (
            "1 == 2 == 3",
            Binary(B.EQUAL, Binary(B.EQUAL, lit(1), lit(2)), lit(3)),
        ),
        (
            "1 + 2 >= 3",
            Binary(B.GREATER_EQUAL, Binary(B.ADD, lit(1), lit(2)), lit(3)),
        ),
        ("--1", Unary(U.MINUS, Unary(U.MINUS, lit(1)))),
        (
            "-1d6 + +2",
            Binary(B.ADD, Unary(U.MINUS, dice(1, 6)), Unary(U.PLUS, lit(2))),
        ),
        (
            "4d6kh3",
            DiceWithOps(dice(4, 6), (op(Op.KEEP, (S.HIGHEST, lit(3))),)),
        ),
        (
            "4d6k1k2",
            DiceWithOps(
                dice(4, 6),
                (op(Op.KEEP, (S.LITERAL, lit(1))), op(Op.KEEP, (S.LITERAL, lit(2)))),
            ),
        ),
        (
            "4d6kh1l1",
            DiceWithOps(dice(4, 6), (op(Op.KEEP, (S.HIGHEST, lit(1)), (S.LOWEST, lit(1))),)),
        ),
        (
            "d6k-1",
            DiceWithOps(dice(None, 6), (op(Op.KEEP, (S.LITERAL, Unary(U.MINUS, lit(1)))),)),
        ),
        (
            "4d6kh1d4",
            DiceWithOps(dice(4, 6), (op(Op.KEEP, (S.HIGHEST, dice(1, 4))),)),
        ),
        (
            "4d6k>=(2+1)",
            DiceWithOps(
                dice(4, 6),
                (op(Op.KEEP, (S.GREATER_THAN_OR_EQUAL, Binary(B.ADD, lit(2), lit(1)))),),
            ),
        ),
        (
            "1d20rr<3ro==1ra!=2e>5mi2ma5p<=1",
            DiceWithOps(
                dice(1, 20),
                (
                    op(Op.REROLL, (S.LESS_THAN, lit(3))),
                    op(Op.REROLL_ONCE, (S.EQUAL_TO, lit(1))),
                    op(Op.REROLL_ADD, (S.NOT_EQUAL, lit(2))),
                    op(Op.EXPLODE, (S.GREATER_THAN, lit(5))),
                    op(Op.MINIMUM, (S.LITERAL, lit(2))),
                    op(Op.MAXIMUM, (S.LITERAL, lit(5))),
                    op(Op.DROP, (S.LESS_THAN_OR_EQUAL, lit(1))),
                ),
            ),
        ),
        ("1d6!6", DiceWithOps(dice(1, 6), (op(Op.EXPLODE, (S.LITERAL, lit(6))),))),
        # A bare grouped dice pool keeps its modifiers instead of becoming a set.
        ("(4d6)kh3", DiceWithOps(dice(4, 6), (op(Op.KEEP, (S.HIGHEST, lit(3))),))),
        (
            "((10d6kh5)kl2)kh1",
            DiceWithOps(
                dice(10, 6),
                (
                    op(Op.KEEP, (S.HIGHEST, lit(5))),
                    op(Op.KEEP, (S.LOWEST, lit(2))),
                    op(Op.KEEP, (S.HIGHEST, lit(1))),
                ),
            ),
        ),
        ("(1)k1", Set((lit(1),), (op(Op.KEEP, (S.LITERAL, lit(1))),))),
        (
            "(1d4, 2+2, 3d6kl1)kh1",
            Set(
                (
                    dice(1, 4),
                    Binary(B.ADD, lit(2), lit(2)),
                    DiceWithOps(dice(3, 6), (op(Op.KEEP, (S.LOWEST, lit(1))),)),
                ),
                (op(Op.KEEP, (S.HIGHEST, lit(1))),),
            ),
        ),
        ("3d6 [fire]", Annotated(dice(3, 6), (Annotation("fire"),))),
        (
            "4d6kh3[str][fire]",
            Annotated(
                DiceWithOps(dice(4, 6), (op(Op.KEEP, (S.HIGHEST, lit(3))),)),
                (Annotation("str"), Annotation("fire")),
            ),
        ),
        (
            "((1 + 2)[inner])[outer]",
            Annotated(Binary(B.ADD, lit(1), lit(2)), (Annotation("inner"), Annotation("outer"))),
        ),
        # Selectors are greedy: a following "+ 2" is one more selector.
        (
            "4d6kh3 + 2",
            DiceWithOps(
                dice(4, 6),
                (op(Op.KEEP, (S.HIGHEST, lit(3)), (S.LITERAL, Unary(U.PLUS, lit(2)))),),
            ),
        ),
        (
            "(4d6kh3) + 2",
            Binary(B.ADD, DiceWithOps(dice(4, 6), (op(Op.KEEP, (S.HIGHEST, lit(3))),)), lit(2)),
        ),
    ],
)
def test_parse_acceptance(text, expected):
    assert parse(text) == expected


def test_nested_dice_in_selector_do_not_take_modifiers():
    node = parse("4d6k(1d4)")
    (operation,) = node.operations
    assert operation.selectors[0].target == dice(1, 4)


def test_dice_with_ops_requires_dice():
    with pytest.raises(TypeError):
        DiceWithOps(lit(1), ())
