"""Formula tokenizer for CalcFields.

Scans formula text left to right into a flat token stream. The scan never
fails: formulas are end-user configuration, so unknown characters are
dropped and an unterminated string runs to the end of the input.
"""

from dataclasses import dataclass
from enum import Enum

# Names recognised as FUNCTION tokens when immediately followed by "("
FUNCTION_NAMES = frozenset(
    {
        "SUM",
        "AVG",
        "COUNT",
        "MIN",
        "MAX",
        "DAYS_SINCE",
        "DAYS_BETWEEN",
        "MONTHS_SINCE",
        "HOURS_SINCE",
        "IF",
        "CASE",
        "COALESCE",
        "ABS",
        "ROUND",
        "FLOOR",
        "CEIL",
    }
)

AGGREGATE_FUNCTIONS = frozenset({"SUM", "AVG", "COUNT", "MIN", "MAX"})

DATE_FUNCTIONS = frozenset({"DAYS_SINCE", "DAYS_BETWEEN", "MONTHS_SINCE", "HOURS_SINCE"})

OPERATOR_CHARS = "+-*/%"
COMPARISON_CHARS = "><=!"


class TokenType(str, Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    FIELD = "FIELD"
    OPERATOR = "OPERATOR"
    COMPARISON = "COMPARISON"
    FUNCTION = "FUNCTION"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str | float


def _parse_number(text: str) -> float:
    """Parse a run of digits and dots the way a lenient float parser would.

    "1.5.2" reads as 1.5; a lone "." reads as 0.
    """
    head, dot, rest = text.partition(".")
    fraction = rest.split(".", 1)[0]
    candidate = f"{head or '0'}{dot}{fraction}"
    if candidate.endswith("."):
        candidate += "0"
    return float(candidate)


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _is_ident_start(char: str) -> bool:
    return char == "_" or ("a" <= char <= "z") or ("A" <= char <= "Z")


def _is_ident_char(char: str) -> bool:
    return _is_ident_start(char) or _is_digit(char)


def tokenize(formula: str) -> list[Token]:
    """
    Split a formula into tokens.

    Args:
        formula: Formula source text

    Returns:
        Token list; empty for blank input
    """
    tokens: list[Token] = []
    length = len(formula)
    i = 0

    while i < length:
        char = formula[i]

        if char.isspace():
            i += 1
            continue

        if _is_digit(char) or char == ".":
            start = i
            while i < length and (_is_digit(formula[i]) or formula[i] == "."):
                i += 1
            tokens.append(Token(TokenType.NUMBER, _parse_number(formula[start:i])))
            continue

        if char in ("'", '"'):
            end = formula.find(char, i + 1)
            if end == -1:
                end = length
            tokens.append(Token(TokenType.STRING, formula[i + 1 : end]))
            i = end + 1
            continue

        if char in OPERATOR_CHARS:
            tokens.append(Token(TokenType.OPERATOR, char))
            i += 1
            continue

        if char in COMPARISON_CHARS:
            op = char
            if i + 1 < length and formula[i + 1] == "=":
                op += "="
                i += 1
            tokens.append(Token(TokenType.COMPARISON, op))
            i += 1
            continue

        if char == "(":
            tokens.append(Token(TokenType.LPAREN, "("))
            i += 1
            continue
        if char == ")":
            tokens.append(Token(TokenType.RPAREN, ")"))
            i += 1
            continue
        if char == ",":
            tokens.append(Token(TokenType.COMMA, ","))
            i += 1
            continue

        if _is_ident_start(char):
            start = i
            while i < length and _is_ident_char(formula[i]):
                i += 1
            ident = formula[start:i]
            upper = ident.upper()
            if i < length and formula[i] == "(" and upper in FUNCTION_NAMES:
                tokens.append(Token(TokenType.FUNCTION, upper))
            else:
                tokens.append(Token(TokenType.FIELD, ident))
            continue

        # Unknown character
        i += 1

    return tokens


def extract_field_references(formula: str) -> list[str]:
    """Return every FIELD token value in a formula, in order of appearance."""
    return [str(t.value) for t in tokenize(formula) if t.type == TokenType.FIELD]
