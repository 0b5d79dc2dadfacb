import pytest

from mcp_dice_engine.errors import LexerError
from mcp_dice_engine.lexer import Lexer, LexerMode, tokenize
from mcp_dice_engine.tokens import Token, TokenKind as K


def kinds(text):
    return [token.kind for token in tokenize(text)]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("4d6kh3", [K.NUMBER, K.DICE, K.NUMBER, K.KEEP, K.SELECTOR_HIGH, K.NUMBER, K.EOF]),
        (
            "3d%kh1 // 2",
            [K.NUMBER, K.DICE_PERCENT, K.KEEP, K.SELECTOR_HIGH, K.NUMBER, K.DOUBLE_SLASH, K.NUMBER, K.EOF],
        ),
        ("1d20rr<20", [K.NUMBER, K.DICE, K.NUMBER, K.REROLL, K.LESS, K.NUMBER, K.EOF]),
        ("ro ra mi ma", [K.REROLL_ONCE, K.REROLL_ADD, K.MIN, K.MAX, K.EOF]),
        ("1d6!=2", [K.NUMBER, K.DICE, K.NUMBER, K.NOT_EQUAL, K.NUMBER, K.EOF]),
        ("e!", [K.EXPLODE, K.EXPLODE, K.EOF]),
        ("p l h", [K.DROP, K.SELECTOR_LOW, K.SELECTOR_HIGH, K.EOF]),
        (">= <= > < ==", [K.GREATER_EQUAL, K.LESS_EQUAL, K.GREATER, K.LESS, K.EQUAL_EQUAL, K.EOF]),
        ("(1,){}", [K.LPAREN, K.NUMBER, K.COMMA, K.RPAREN, K.SET_START, K.SET_END, K.EOF]),
        ("+-*/%", [K.PLUS, K.MINUS, K.STAR, K.SLASH, K.PERCENT, K.EOF]),
        ("   ", [K.EOF]),
    ],
)
def test_token_kinds(text, expected):
    assert kinds(text) == expected


@pytest.mark.parametrize(
    ("text", "value"),
    [("42", 42.0), ("2.25", 2.25), (".5", 0.5), ("007", 7.0)],
)
def test_number_literals(text, value):
    assert tokenize(text) == [Token(K.NUMBER, value), Token(K.EOF)]


def test_second_decimal_point_starts_a_new_number():
    assert tokenize("1.2.3") == [Token(K.NUMBER, 1.2), Token(K.NUMBER, 0.3), Token(K.EOF)]


def test_annotation_text_is_verbatim_and_trimmed():
    assert tokenize("1d6[  fire  damage ]") == [
        Token(K.NUMBER, 1.0),
        Token(K.DICE),
        Token(K.NUMBER, 6.0),
        Token(K.ANNOTATION_START),
        Token(K.ANNOTATION_TEXT, "fire  damage"),
        Token(K.ANNOTATION_END),
        Token(K.EOF),
    ]


def test_annotation_text_keeps_operator_characters():
    tokens = tokenize("[kh3 + d%]")
    assert tokens[1] == Token(K.ANNOTATION_TEXT, "kh3 + d%")


def test_empty_annotation():
    assert tokenize("[]")[1] == Token(K.ANNOTATION_TEXT, "")


def test_lexer_switches_modes_around_annotations():
    lexer = Lexer("[x]")
    assert lexer.mode is LexerMode.NORMAL
    lexer.next_token()
    assert lexer.mode is LexerMode.ANNOTATION
    lexer.next_token()
    assert lexer.mode is LexerMode.NORMAL


def test_eof_is_repeated():
    lexer = Lexer("1")
    lexer.next_token()
    assert lexer.next_token().kind is K.EOF
    assert lexer.next_token().kind is K.EOF


@pytest.mark.parametrize(
    ("text", "match"),
    [
        ("3.", "Invalid decimal literal starting at position 0"),
        ("1 + 2.x", "Invalid decimal literal starting at position 4"),
        ("1 = 1", r"Unexpected '=' at position 2\. Did you mean '=='\?"),
        ("1 + $", "Unexpected character '\\$' at position 4"),
        ("1d6[fire", "Unterminated annotation"),
        ("1d6[", "Unterminated annotation"),
        ("x", "Unexpected character 'x' at position 0"),
    ],
)
def test_lexer_errors(text, match):
    with pytest.raises(LexerError, match=match) as exc:
        tokenize(text)
    assert str(exc.value).startswith("[LEXER_ERROR]")
