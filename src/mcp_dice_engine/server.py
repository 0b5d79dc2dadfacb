from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import settings
from .dice import node_to_dict, roll_from_text
from .errors import DiceError
from .parser import format_expression, parse


logger = logging.getLogger(__name__)

mcp = FastMCP("mcp-dice-engine")

# One source per server process so a configured seed gives a reproducible session.
_rng = settings.make_rng()


@mcp.tool()
def roll_dice(text: str) -> dict[str, Any]:
    """Roll dice written in tabletop notation, e.g. '4d6kh3' or '(1d20, 1d20)kh1 + 5'.

    Input: text (string)
    Output: structured JSON with the total, every die rolled and an explanation

    Raises a hard error (exception) on invalid input.
    """

    try:
        return roll_from_text(text, config=settings.eval_config(), rng=_rng)
    except DiceError as e:
        logger.info("Rejected roll %r: %s", text, e)
        # Fail-fast: surface stable error codes in the message.
        raise ValueError(str(e)) from None


@mcp.tool()
def parse_dice(text: str) -> dict[str, Any]:
    """Parse dice notation without rolling and return its syntax tree."""

    try:
        node = parse(text)
    except DiceError as e:
        logger.info("Rejected expression %r: %s", text, e)
        raise ValueError(str(e)) from None
    return {
        "input": text,
        "normalized_expression": format_expression(node),
        "ast": node_to_dict(node),
    }


def run() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    # Default transport is stdio, which works well for MCP clients.
    mcp.run()


if __name__ == "__main__":
    run()
