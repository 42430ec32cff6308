"""Formula parser for CalcFields.

Parses a token stream into an AST with a recursive-descent parser.

Precedence, lowest first:
    comparison   > < >= <= = == != !
    additive     + -
    multiplicative  * / %
    unary        - +
    primary      number, string, field, function call, ( expression )

Binary operators are left-associative. Function arguments are split on
commas that sit directly inside the call's own parentheses, so the comma
in ``SUM(IF(x, 1, 0))`` belongs to IF.
"""

from dataclasses import dataclass
from typing import Any

from calcfields.core.exceptions import FormulaSyntaxError, NestingDepthError
from calcfields.formula.tokenizer import Token, TokenType, tokenize

DEFAULT_MAX_DEPTH = 32

# Canonical spelling of each comparison operator
COMPARISON_ALIASES = {
    "=": "=",
    "==": "=",
    "!": "!=",
    "!=": "!=",
    ">": ">",
    ">=": ">=",
    "<": "<",
    "<=": "<=",
}


# AST Node types
@dataclass(frozen=True)
class NumberNode:
    value: float


@dataclass(frozen=True)
class StringNode:
    value: str


@dataclass(frozen=True)
class NullNode:
    """An empty function argument, e.g. the middle of ``IF(a,,b)``."""


@dataclass(frozen=True)
class FieldRefNode:
    field_name: str


@dataclass(frozen=True)
class FunctionCallNode:
    name: str
    arguments: tuple[Any, ...]


@dataclass(frozen=True)
class BinaryOpNode:
    operator: str
    left: Any
    right: Any


@dataclass(frozen=True)
class UnaryOpNode:
    operator: str
    operand: Any


class _TokenStream:
    """Cursor over a token list for a single parse."""

    def __init__(self, formula: str, tokens: list[Token], max_depth: int):
        self.formula = formula
        self.tokens = tokens
        self.pos = 0
        self.depth = 0
        self.max_depth = max_depth

    def peek(self) -> Token | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def at(self, token_type: TokenType, *values: str) -> bool:
        token = self.peek()
        if token is None or token.type != token_type:
            return False
        return not values or token.value in values

    def enter(self) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise NestingDepthError(self.formula, self.max_depth)

    def leave(self) -> None:
        self.depth -= 1

    def error(self, message: str) -> FormulaSyntaxError:
        return FormulaSyntaxError(self.formula, message)


class FormulaParser:
    """
    Parser for CalcFields formulas.

    Parses formula strings into an AST that can be evaluated. A missing
    closing parenthesis at the end of the input closes the open group;
    any other malformed input raises FormulaSyntaxError.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth

    def parse(self, formula: str) -> Any:
        """
        Parse a formula string into an AST.

        Args:
            formula: Formula string to parse

        Returns:
            AST root node, or None for a formula with no tokens

        Raises:
            FormulaSyntaxError: If the formula cannot be parsed
            NestingDepthError: If the formula nests deeper than max_depth
        """
        return self.parse_tokens(tokenize(formula), formula)

    def parse_tokens(self, tokens: list[Token], formula: str = "") -> Any:
        """Parse an already tokenized formula."""
        if not tokens:
            return None

        stream = _TokenStream(formula, tokens, self.max_depth)
        node = self._expression(stream)
        token = stream.peek()
        if token is not None:
            raise stream.error(f"Unexpected {_describe(token)}")
        return node

    def validate(self, formula: str) -> tuple[bool, str | None]:
        """
        Validate formula syntax.

        Args:
            formula: Formula string to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            self.parse(formula)
            return True, None
        except FormulaSyntaxError as e:
            return False, e.message

    # ==========================================================================
    # Grammar rules
    # ==========================================================================

    def _expression(self, stream: _TokenStream) -> Any:
        left = self._additive(stream)
        while stream.at(TokenType.COMPARISON):
            operator = COMPARISON_ALIASES[str(stream.advance().value)]
            right = self._additive(stream)
            left = BinaryOpNode(operator, left, right)
        return left

    def _additive(self, stream: _TokenStream) -> Any:
        left = self._multiplicative(stream)
        while stream.at(TokenType.OPERATOR, "+", "-"):
            operator = str(stream.advance().value)
            right = self._multiplicative(stream)
            left = BinaryOpNode(operator, left, right)
        return left

    def _multiplicative(self, stream: _TokenStream) -> Any:
        left = self._unary(stream)
        while stream.at(TokenType.OPERATOR, "*", "/", "%"):
            operator = str(stream.advance().value)
            right = self._unary(stream)
            left = BinaryOpNode(operator, left, right)
        return left

    def _unary(self, stream: _TokenStream) -> Any:
        # Signs are folded iteratively so "-----x" cannot exhaust the stack
        negate = False
        while stream.at(TokenType.OPERATOR, "+", "-"):
            if stream.advance().value == "-":
                negate = not negate
        operand = self._primary(stream)
        return UnaryOpNode("-", operand) if negate else operand

    def _primary(self, stream: _TokenStream) -> Any:
        token = stream.peek()
        if token is None:
            raise stream.error("Unexpected end of formula")

        if token.type == TokenType.NUMBER:
            stream.advance()
            return NumberNode(float(token.value))

        if token.type == TokenType.STRING:
            stream.advance()
            return StringNode(str(token.value))

        if token.type == TokenType.FIELD:
            stream.advance()
            return FieldRefNode(str(token.value))

        if token.type == TokenType.FUNCTION:
            return self._function_call(stream)

        if token.type == TokenType.LPAREN:
            stream.advance()
            stream.enter()
            node = self._expression(stream)
            self._close(stream)
            stream.leave()
            return node

        raise stream.error(f"Unexpected {_describe(token)}")

    def _function_call(self, stream: _TokenStream) -> FunctionCallNode:
        name = str(stream.advance().value)
        # The tokenizer only emits FUNCTION when "(" follows
        stream.advance()
        stream.enter()

        arguments: list[Any] = []
        while True:
            token = stream.peek()
            if token is None or token.type == TokenType.RPAREN:
                # Trailing empty argument is dropped: IF(a, b,) has two
                break
            if token.type == TokenType.COMMA:
                stream.advance()
                arguments.append(NullNode())
                continue

            if self._at_wildcard(stream):
                # COUNT(*) reads as COUNT("*")
                stream.advance()
                arguments.append(StringNode("*"))
            else:
                arguments.append(self._expression(stream))
            if stream.at(TokenType.COMMA):
                stream.advance()
                continue
            break

        self._close(stream)
        stream.leave()
        return FunctionCallNode(name, tuple(arguments))

    def _at_wildcard(self, stream: _TokenStream) -> bool:
        if not stream.at(TokenType.OPERATOR, "*"):
            return False
        following = stream.tokens[stream.pos + 1] if stream.pos + 1 < len(stream.tokens) else None
        return following is None or following.type in (TokenType.RPAREN, TokenType.COMMA)

    def _close(self, stream: _TokenStream) -> None:
        token = stream.peek()
        if token is None:
            return
        if token.type != TokenType.RPAREN:
            raise stream.error(f"Expected ')' but found {_describe(token)}")
        stream.advance()


def _describe(token: Token) -> str:
    if token.type in (TokenType.FIELD, TokenType.FUNCTION, TokenType.STRING):
        return f"{token.type.value.lower()} '{token.value}'"
    if token.type == TokenType.NUMBER:
        return f"number {token.value:g}"
    return f"'{token.value}'"

