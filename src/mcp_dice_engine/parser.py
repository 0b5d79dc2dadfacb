from __future__ import annotations

import dataclasses
import math
from decimal import Decimal

from .errors import ParserError
from .lexer import Lexer
from .models import (
    COMPARISON_OPERATORS,
    SET_OPERATOR_SYMBOLS,
    Annotated,
    Annotation,
    Binary,
    BinaryOperator,
    Dice,
    DiceWithOps,
    Literal,
    Node,
    PERCENT,
    Selector,
    SelectorKind,
    Set,
    SetOperation,
    SetOperator,
    Unary,
    UnaryOperator,
)
from .tokens import Token, TokenKind


_COMPARISON_TOKENS: dict[TokenKind, BinaryOperator] = {
    TokenKind.EQUAL_EQUAL: BinaryOperator.EQUAL,
    TokenKind.NOT_EQUAL: BinaryOperator.NOT_EQUAL,
    TokenKind.GREATER: BinaryOperator.GREATER,
    TokenKind.GREATER_EQUAL: BinaryOperator.GREATER_EQUAL,
    TokenKind.LESS: BinaryOperator.LESS,
    TokenKind.LESS_EQUAL: BinaryOperator.LESS_EQUAL,
}

_ADDITIVE_TOKENS: dict[TokenKind, BinaryOperator] = {
    TokenKind.PLUS: BinaryOperator.ADD,
    TokenKind.MINUS: BinaryOperator.SUBTRACT,
}

_MULTIPLICATIVE_TOKENS: dict[TokenKind, BinaryOperator] = {
    TokenKind.STAR: BinaryOperator.MULTIPLY,
    TokenKind.SLASH: BinaryOperator.DIVIDE,
    TokenKind.DOUBLE_SLASH: BinaryOperator.INT_DIVIDE,
    TokenKind.PERCENT: BinaryOperator.MODULO,
}

_UNARY_TOKENS: dict[TokenKind, UnaryOperator] = {
    TokenKind.PLUS: UnaryOperator.PLUS,
    TokenKind.MINUS: UnaryOperator.MINUS,
}

_MODIFIER_TOKENS: dict[TokenKind, SetOperator] = {
    TokenKind.KEEP: SetOperator.KEEP,
    TokenKind.DROP: SetOperator.DROP,
    TokenKind.REROLL: SetOperator.REROLL,
    TokenKind.REROLL_ONCE: SetOperator.REROLL_ONCE,
    TokenKind.REROLL_ADD: SetOperator.REROLL_ADD,
    TokenKind.EXPLODE: SetOperator.EXPLODE,
    TokenKind.MIN: SetOperator.MINIMUM,
    TokenKind.MAX: SetOperator.MAXIMUM,
}

_SELECTOR_TOKENS: dict[TokenKind, SelectorKind] = {
    TokenKind.SELECTOR_HIGH: SelectorKind.HIGHEST,
    TokenKind.SELECTOR_LOW: SelectorKind.LOWEST,
    TokenKind.GREATER: SelectorKind.GREATER_THAN,
    TokenKind.GREATER_EQUAL: SelectorKind.GREATER_THAN_OR_EQUAL,
    TokenKind.LESS: SelectorKind.LESS_THAN,
    TokenKind.LESS_EQUAL: SelectorKind.LESS_THAN_OR_EQUAL,
    TokenKind.EQUAL_EQUAL: SelectorKind.EQUAL_TO,
    TokenKind.NOT_EQUAL: SelectorKind.NOT_EQUAL,
}

_SELECTOR_VALUE_START = frozenset(
    {
        TokenKind.PLUS,
        TokenKind.MINUS,
        TokenKind.NUMBER,
        TokenKind.LPAREN,
        TokenKind.DICE,
        TokenKind.DICE_PERCENT,
    }
)

_DICE_MARKERS = frozenset({TokenKind.DICE, TokenKind.DICE_PERCENT})

# Bounds both parser recursion and the depth of the finished tree, which the
# evaluator and formatter walk recursively.
MAX_NESTING_DEPTH = 100


def _children(node: Node) -> list[Node]:
    if isinstance(node, Unary):
        return [node.operand]
    if isinstance(node, Binary):
        return [node.left, node.right]
    if isinstance(node, Dice):
        children = [] if node.quantity is None else [node.quantity]
        if not node.percentile:
            children.append(node.size)
        return children
    if isinstance(node, (DiceWithOps, Set)):
        children = [node.dice] if isinstance(node, DiceWithOps) else list(node.elements)
        for operation in node.operations:
            children.extend(selector.target for selector in operation.selectors)
        return children
    if isinstance(node, Annotated):
        return [node.expr]
    return []


def tree_depth(node: Node) -> int:
    """Longest root-to-leaf path, counted in nodes."""

    deepest = 0
    stack = [(node, 1)]
    while stack:
        current, depth = stack.pop()
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in _children(current))
    return deepest


class Parser:
    """Recursive-descent parser with a single token of lookahead.

    Every ``_parse_*`` method takes ``in_selector``: inside a selector target
    no modifiers or annotations are attached, so ``4d6kh1d4`` gives the
    selector the target ``1d4`` rather than letting it grab outer modifiers.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.lexer = Lexer(text)
        self.current: Token = self.lexer.next_token()
        self.depth = 0

    def _eat(self, expected: TokenKind) -> Token:
        token = self.current
        if token.kind is not expected:
            raise ParserError(f"Expected '{expected.value}', got {token} in '{self.text}'")
        self.current = self.lexer.next_token()
        return token

    def _check(self, kind: TokenKind) -> bool:
        return self.current.kind is kind

    def _too_deep(self) -> ParserError:
        return ParserError(
            f"Expression nested too deeply (limit {MAX_NESTING_DEPTH}) in '{self.text}'"
        )

    def _descend(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise self._too_deep()

    def parse(self) -> Node:
        node = self._parse_comparison(in_selector=False)
        if not self._check(TokenKind.EOF):
            raise ParserError(f"Unexpected trailing input: {self.current} in '{self.text}'")
        # Long operator chains nest without parser recursion.
        if tree_depth(node) > MAX_NESTING_DEPTH:
            raise self._too_deep()
        return node

    def _parse_comparison(self, in_selector: bool) -> Node:
        node = self._parse_additive(in_selector)
        while self.current.kind in _COMPARISON_TOKENS:
            operator = _COMPARISON_TOKENS[self._eat(self.current.kind).kind]
            node = Binary(operator, node, self._parse_additive(in_selector))
        return node

    def _parse_additive(self, in_selector: bool) -> Node:
        node = self._parse_multiplicative(in_selector)
        while self.current.kind in _ADDITIVE_TOKENS:
            operator = _ADDITIVE_TOKENS[self._eat(self.current.kind).kind]
            node = Binary(operator, node, self._parse_multiplicative(in_selector))
        return node

    def _parse_multiplicative(self, in_selector: bool) -> Node:
        node = self._parse_unary(in_selector)
        while self.current.kind in _MULTIPLICATIVE_TOKENS:
            operator = _MULTIPLICATIVE_TOKENS[self._eat(self.current.kind).kind]
            node = Binary(operator, node, self._parse_unary(in_selector))
        return node

    def _parse_unary(self, in_selector: bool) -> Node:
        if self.current.kind in _UNARY_TOKENS:
            operator = _UNARY_TOKENS[self._eat(self.current.kind).kind]
            self._descend()
            node = Unary(operator, self._parse_unary(in_selector))
            self.depth -= 1
            return node
        return self._parse_postfix(in_selector)

    def _parse_postfix(self, in_selector: bool) -> Node:
        node = self._parse_atom(in_selector)
        if in_selector:
            return node
        node = self._parse_modifiers(node)
        return self._parse_annotations(node)

    def _parse_atom(self, in_selector: bool) -> Node:
        kind = self.current.kind
        if kind is TokenKind.NUMBER:
            return self._parse_number_or_dice()
        if kind in _DICE_MARKERS:
            return self._parse_dice(None)
        if kind is TokenKind.LPAREN:
            return self._parse_parenthesized_or_set(in_selector)
        if kind is TokenKind.ANNOTATION_START:
            raise ParserError(
                f"Unexpected annotation start; annotations must follow an expression in '{self.text}'"
            )
        raise ParserError(f"Unexpected token {self.current} in '{self.text}'")

    def _parse_number_or_dice(self) -> Node:
        literal = Literal(self._eat(TokenKind.NUMBER).value)
        if self.current.kind in _DICE_MARKERS:
            return self._parse_dice(literal)
        return literal

    def _parse_dice(self, quantity: Node | None) -> Dice:
        if self._check(TokenKind.DICE_PERCENT):
            self._eat(TokenKind.DICE_PERCENT)
            return Dice(quantity, PERCENT)

        self._eat(TokenKind.DICE)
        if not self._check(TokenKind.NUMBER):
            raise ParserError(
                f"Expected die size after 'd', found {self.current} in '{self.text}'"
            )
        return Dice(quantity, Literal(self._eat(TokenKind.NUMBER).value))

    def _parse_parenthesized_or_set(self, in_selector: bool) -> Node:
        self._eat(TokenKind.LPAREN)
        if self._check(TokenKind.RPAREN):
            self._eat(TokenKind.RPAREN)
            return Set(elements=())

        self._descend()
        elements = [self._parse_comparison(in_selector)]
        is_set = False
        while self._check(TokenKind.COMMA):
            is_set = True
            self._eat(TokenKind.COMMA)
            if self._check(TokenKind.RPAREN):
                break
            elements.append(self._parse_comparison(in_selector))
        self._eat(TokenKind.RPAREN)
        self.depth -= 1

        # "(1)k1" is a one-element set, but "(4d6)kh3" keeps its dice pool.
        modifiers_follow = self.current.kind in _MODIFIER_TOKENS
        first_is_dice = isinstance(elements[0], (Dice, DiceWithOps))
        if is_set or (modifiers_follow and not first_is_dice):
            return Set(elements=tuple(elements))
        return elements[0]

    def _parse_modifiers(self, node: Node) -> Node:
        operations: list[SetOperation] = []
        while self.current.kind in _MODIFIER_TOKENS:
            operator = _MODIFIER_TOKENS[self._eat(self.current.kind).kind]
            operations.append(SetOperation(operator, self._parse_selector_list(operator)))

        if not operations:
            return node

        if isinstance(node, Dice):
            return DiceWithOps(dice=node, operations=tuple(operations))
        if isinstance(node, (DiceWithOps, Set)):
            return dataclasses.replace(node, operations=node.operations + tuple(operations))
        raise ParserError(
            f"Set operations can only be applied to dice or sets, not {type(node).__name__} "
            f"in '{self.text}'"
        )

    def _is_selector_start(self) -> bool:
        kind = self.current.kind
        return kind in _SELECTOR_TOKENS or kind in _SELECTOR_VALUE_START

    def _parse_selector_list(self, operator: SetOperator) -> tuple[Selector, ...]:
        if not self._is_selector_start():
            symbol = SET_OPERATOR_SYMBOLS.get(operator, operator.value)
            raise ParserError(f"Expected selector after '{symbol}' in '{self.text}'")

        selectors: list[Selector] = []
        while self._is_selector_start():
            selectors.append(self._parse_selector())
        return tuple(selectors)

    def _parse_selector(self) -> Selector:
        kind = SelectorKind.LITERAL
        if self.current.kind in _SELECTOR_TOKENS:
            kind = _SELECTOR_TOKENS[self._eat(self.current.kind).kind]

        if self.current.kind not in _SELECTOR_VALUE_START:
            label = kind.value or "selector"
            raise ParserError(f"Expected selector target after '{label}' in '{self.text}'")
        return Selector(kind, self._parse_selector_value())

    def _parse_selector_value(self) -> Node:
        kind = self.current.kind
        if kind in _UNARY_TOKENS:
            operator = _UNARY_TOKENS[self._eat(kind).kind]
            self._descend()
            node = Unary(operator, self._parse_selector_value())
            self.depth -= 1
            return node
        if kind is TokenKind.NUMBER:
            return self._parse_number_or_dice()
        if kind in _DICE_MARKERS:
            return self._parse_dice(None)

        self._eat(TokenKind.LPAREN)
        if self._check(TokenKind.RPAREN):
            raise ParserError(f"Empty parentheses are not valid selector targets in '{self.text}'")
        self._descend()
        expr = self._parse_comparison(in_selector=True)
        self._eat(TokenKind.RPAREN)
        self.depth -= 1
        return expr

    def _parse_annotations(self, node: Node) -> Node:
        annotations: list[Annotation] = []
        while self._check(TokenKind.ANNOTATION_START):
            self._eat(TokenKind.ANNOTATION_START)
            if not self._check(TokenKind.ANNOTATION_TEXT):
                raise ParserError(
                    f"Expected annotation text, found {self.current} in '{self.text}'"
                )
            text = self._eat(TokenKind.ANNOTATION_TEXT).value
            self._eat(TokenKind.ANNOTATION_END)
            annotations.append(Annotation(text))

        if not annotations:
            return node
        if isinstance(node, Annotated):
            return Annotated(node.expr, node.annotations + tuple(annotations))
        return Annotated(node, tuple(annotations))


def parse(text: str) -> Node:
    """Parse dice notation into an AST. Raises LexerError or ParserError."""

    return Parser(text).parse()


# Binding strength used when rendering; higher binds tighter.
_PRECEDENCE: dict[BinaryOperator, int] = {
    **{op: 1 for op in COMPARISON_OPERATORS},
    BinaryOperator.ADD: 2,
    BinaryOperator.SUBTRACT: 2,
    BinaryOperator.MULTIPLY: 3,
    BinaryOperator.DIVIDE: 3,
    BinaryOperator.INT_DIVIDE: 3,
    BinaryOperator.MODULO: 3,
}


def _format_number(value: float) -> str:
    if not math.isfinite(value):
        return repr(value)
    if value == int(value):
        return str(int(value))
    # Positional only: "1e-05" would lex as an explode modifier.
    return format(Decimal(repr(value)), "f")


def _has_trailing_selectors(node: Node) -> bool:
    return isinstance(node, (DiceWithOps, Set)) and bool(node.operations)


def _format_operand(node: Node, min_precedence: int) -> str:
    text = format_expression(node)
    if isinstance(node, Binary) and _PRECEDENCE[node.operator] < min_precedence:
        return f"({text})"
    # An operator after "4d6kh3" would be read as another selector.
    if _has_trailing_selectors(node):
        return f"({text})"
    return text


def _format_postfix_base(node: Node) -> str:
    text = format_expression(node)
    if isinstance(node, (Binary, Unary)):
        return f"({text})"
    return text


_NUMBER_START = frozenset("0123456789.d")


def _format_selector_target(node: Node) -> str:
    if isinstance(node, (Literal, Dice)):
        return format_expression(node)
    if isinstance(node, Unary):
        return f"{node.operator.value}{_format_selector_target(node.operand)}"
    return f"({format_expression(node)})"


def format_operations(operations: tuple[SetOperation, ...]) -> str:
    chunks: list[str] = []
    for operation in operations:
        chunks.append(SET_OPERATOR_SYMBOLS.get(operation.operator, f"<{operation.operator.value}>"))
        for selector in operation.selectors:
            target = _format_selector_target(selector.target)
            # "k1" followed by "2" or "d4" would read back as one selector.
            if (
                selector.kind is SelectorKind.LITERAL
                and chunks[-1][-1].isdigit()
                and target[0] in _NUMBER_START
            ):
                target = f"({target})"
            chunks.append(selector.kind.value + target)
    return "".join(chunks)


def format_expression(node: Node) -> str:
    """Render an AST back into canonical notation.

    Trees produced by :func:`parse` re-parse to an equal tree.
    """

    if isinstance(node, Literal):
        return _format_number(node.value)
    if isinstance(node, Unary):
        return f"{node.operator.value}{_format_postfix_base(node.operand)}"
    if isinstance(node, Binary):
        precedence = _PRECEDENCE[node.operator]
        left = _format_operand(node.left, precedence)
        right = _format_operand(node.right, precedence + 1)
        return f"{left} {node.operator.value} {right}"
    if isinstance(node, Dice):
        quantity = "" if node.quantity is None else _format_postfix_base(node.quantity)
        size = "%" if node.percentile else _format_postfix_base(node.size)
        return f"{quantity}d{size}"
    if isinstance(node, DiceWithOps):
        return format_expression(node.dice) + format_operations(node.operations)
    if isinstance(node, Set):
        elements = [format_expression(element) for element in node.elements]
        inner = f"{elements[0]}," if len(elements) == 1 else ", ".join(elements)
        return f"({inner}){format_operations(node.operations)}"
    if isinstance(node, Annotated):
        groups = "".join(f"[{annotation.text}]" for annotation in node.annotations)
        return _format_postfix_base(node.expr) + groups
    raise TypeError(f"Unknown node type: {type(node).__name__}")
