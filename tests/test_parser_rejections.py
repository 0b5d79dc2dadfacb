import pytest

from mcp_dice_engine.errors import DiceError, LexerError, ParserError
from mcp_dice_engine.parser import parse


@pytest.mark.parametrize(
    ("text", "match"),
    [
        ("", "Unexpected token end of input"),
        ("1 2", "Unexpected trailing input: number 2"),
        ("(1, 2", "Expected '\\)', got end of input"),
        ("4d6k", "Expected selector after 'k'"),
        ("4d6kh", "Expected selector target after 'h'"),
        ("4d6k()", "Empty parentheses are not valid selector targets"),
        ("4dk", "Expected die size after 'd'"),
        ("3kh1", "can only be applied to dice or sets"),
        ("(1 + 2)[x]kh1", "Unexpected trailing input"),
        ("[fire]", "annotations must follow an expression"),
        ("{1}", "Unexpected token '\\{'"),
        ("1 +", "Unexpected token end of input"),
        ("h3", "Unexpected token 'h'"),
    ],
)
def test_parse_rejections(text, match):
    with pytest.raises(ParserError, match=match) as exc:
        parse(text)
    assert str(exc.value).startswith("[PARSER_ERROR]")


def test_parser_errors_quote_the_source():
    with pytest.raises(ParserError) as exc:
        parse("4d6k")
    assert exc.value.message == "Expected selector after 'k' in '4d6k'"


@pytest.mark.parametrize("text", ["3.", "1d6[fire", "2 = 2"])
def test_lexer_errors_surface_through_parse(text):
    with pytest.raises(LexerError):
        parse(text)


def test_all_errors_are_dice_errors():
    for text in ["3.", "4d6k"]:
        with pytest.raises(DiceError):
            parse(text)


@pytest.mark.parametrize(
    "text",
    [
        "(" * 200 + "1" + ")" * 200,
        "-" * 1200 + "1",
        "1" + " + 1" * 150,
        "4d6k(" + "-" * 150 + "1)",
        "(" * 60 + "-" * 60 + "1" + ")" * 60,
    ],
)
def test_deep_nesting_is_rejected(text):
    with pytest.raises(ParserError, match="nested too deeply"):
        parse(text)


@pytest.mark.parametrize(
    "text",
    [
        "(" * 50 + "1d6" + ")" * 50,
        "-" * 99 + "1",
        "1" + " + 1" * 99,
    ],
)
def test_nesting_up_to_the_limit_parses(text):
    parse(text)
