"""Sandboxed evaluator for custom scoring formulas.

Organizers write formulas such as::

    isUpset ? currentPoints + rankingDifference / 10 : currentPoints
    max(basePoints, round(currentPoints * 1.2))
    Math.floor(currentPoints * Math.sqrt(rankingDifference + 1))

The text is tokenized and parsed into a small syntax tree by a
recursive-descent parser, then evaluated over a fixed set of variables and
math functions. Nothing is ever handed to the host interpreter, so a formula
can only compute a number.

Grammar (lowest to highest precedence)::

    conditional    := logical_or ("?" conditional ":" conditional)?
    logical_or     := logical_and ("||" logical_and)*
    logical_and    := equality ("&&" equality)*
    equality       := comparison (("==" | "!=" | "===" | "!==") comparison)*
    comparison     := additive (("<" | "<=" | ">" | ">=") additive)*
    additive       := multiplicative (("+" | "-") multiplicative)*
    multiplicative := unary (("*" | "/" | "%") unary)*
    unary          := ("-" | "+" | "!") unary | power
    power          := call ("**" unary)?
    call           := primary ("(" arguments? ")")?
    primary        := NUMBER | NAME ("." NAME)? | "(" conditional ")"
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import NamedTuple, Union

from ttscore import config
from ttscore.logging import get_logger
from ttscore.scoring.models import ScoringContext
from ttscore.scoring.rounding import round_half_up

log = get_logger(__name__)

Value = Union[float, bool]

VARIABLES = (
    "basePoints",
    "winnerRanking",
    "loserRanking",
    "rankingDifference",
    "isUpset",
    "currentPoints",
)


class FormulaError(ValueError):
    """Raised when a custom formula cannot be parsed or evaluated."""


# ---------------------------------------------------------------------------
# Functions and constants
# ---------------------------------------------------------------------------


def _sign(x: float) -> float:
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return x


def _log(x: float) -> float:
    if x <= 0:
        raise FormulaError("Math.log requires a positive argument")
    return math.log(x)


class _Function(NamedTuple):
    call: Callable[..., float]
    min_args: int
    max_args: int | None  # None = variadic


_HELPERS = {
    "min": _Function(min, 1, None),
    "max": _Function(max, 1, None),
    "round": _Function(round_half_up, 1, 1),
    "pow": _Function(math.pow, 2, 2),
    "abs": _Function(abs, 1, 1),
}

_MATH_FUNCTIONS = {
    **_HELPERS,
    "floor": _Function(math.floor, 1, 1),
    "ceil": _Function(math.ceil, 1, 1),
    "trunc": _Function(math.trunc, 1, 1),
    "sign": _Function(_sign, 1, 1),
    "sqrt": _Function(math.sqrt, 1, 1),
    "cbrt": _Function(lambda x: math.copysign(abs(x) ** (1 / 3), x), 1, 1),
    "exp": _Function(math.exp, 1, 1),
    "log": _Function(_log, 1, 1),
    "log2": _Function(math.log2, 1, 1),
    "log10": _Function(math.log10, 1, 1),
    "sin": _Function(math.sin, 1, 1),
    "cos": _Function(math.cos, 1, 1),
    "tan": _Function(math.tan, 1, 1),
    "asin": _Function(math.asin, 1, 1),
    "acos": _Function(math.acos, 1, 1),
    "atan": _Function(math.atan, 1, 1),
    "atan2": _Function(math.atan2, 2, 2),
    "sinh": _Function(math.sinh, 1, 1),
    "cosh": _Function(math.cosh, 1, 1),
    "tanh": _Function(math.tanh, 1, 1),
    "asinh": _Function(math.asinh, 1, 1),
    "acosh": _Function(math.acosh, 1, 1),
    "atanh": _Function(math.atanh, 1, 1),
    "expm1": _Function(math.expm1, 1, 1),
    "log1p": _Function(math.log1p, 1, 1),
    "hypot": _Function(math.hypot, 1, None),
}

_MATH_CONSTANTS = {
    "PI": math.pi,
    "E": math.e,
    "LN2": math.log(2),
    "LN10": math.log(10),
    "LOG2E": 1 / math.log(2),
    "LOG10E": 1 / math.log(10),
    "SQRT2": math.sqrt(2),
    "SQRT1_2": math.sqrt(0.5),
}

_LITERALS = {"true": True, "false": False}


# ---------------------------------------------------------------------------
# Syntax tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Constant:
    value: Value


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Conditional:
    test: Node
    body: Node
    orelse: Node


@dataclass(frozen=True)
class Call:
    name: str
    function: _Function
    args: tuple[Node, ...]


Node = Union[Constant, Variable, Unary, Binary, Conditional, Call]


@dataclass(frozen=True)
class _FunctionRef:
    """A function name seen by the parser before its argument list."""
    name: str
    function: _Function


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
    |(?P<op>===|!==|\*\*|==|!=|<=|>=|&&|\|\||[-+*/%<>!?:(),.])
    """,
    re.VERBOSE,
)


class Token(NamedTuple):
    kind: str  # "number", "name", "op" or "end"
    text: str
    pos: int


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise FormulaError(f"Unexpected character {text[pos]!r} at position {pos}")
        tokens.append(Token(match.lastgroup, match.group(), pos))
        pos = match.end()
    tokens.append(Token("end", "", len(text)))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    """Recursive-descent parser enforcing node-count and depth limits."""

    _EQUALITY = ("==", "!=", "===", "!==")
    _COMPARISON = ("<", "<=", ">", ">=")

    def __init__(self, tokens: list[Token], max_nodes: int, max_depth: int):
        self.tokens = tokens
        self.index = 0
        self.max_nodes = max_nodes
        self.max_depth = max_depth
        self.nodes = 0
        self.depth = 0

    def parse(self) -> Node:
        node = self._conditional()
        token = self._peek()
        if token.kind != "end":
            raise FormulaError(f"Unexpected {token.text!r} at position {token.pos}")
        return node

    # Helpers

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _accept(self, *ops: str) -> str | None:
        token = self._peek()
        if token.kind == "op" and token.text in ops:
            self.index += 1
            return token.text
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            token = self._peek()
            found = token.text or "end of formula"
            raise FormulaError(f"Expected {op!r} at position {token.pos}, found {found!r}")

    def _node(self, node: Node) -> Node:
        self.nodes += 1
        if self.nodes > self.max_nodes:
            raise FormulaError(f"Formula is too complex (more than {self.max_nodes} elements)")
        return node

    @contextmanager
    def _nested(self) -> Iterator[None]:
        self.depth += 1
        try:
            if self.depth > self.max_depth:
                raise FormulaError(f"Formula is nested too deeply (more than {self.max_depth} levels)")
            yield
        finally:
            self.depth -= 1

    def _binary_chain(self, operand: Callable[[], Node], ops: tuple[str, ...]) -> Node:
        left = operand()
        while (op := self._accept(*ops)) is not None:
            left = self._node(Binary(op, left, operand()))
        return left

    # Grammar rules

    def _conditional(self) -> Node:
        with self._nested():
            test = self._logical_or()
            if self._accept("?") is None:
                return test
            body = self._conditional()
            self._expect(":")
            orelse = self._conditional()
            return self._node(Conditional(test, body, orelse))

    def _logical_or(self) -> Node:
        return self._binary_chain(self._logical_and, ("||",))

    def _logical_and(self) -> Node:
        return self._binary_chain(self._equality, ("&&",))

    def _equality(self) -> Node:
        return self._binary_chain(self._comparison, self._EQUALITY)

    def _comparison(self) -> Node:
        return self._binary_chain(self._additive, self._COMPARISON)

    def _additive(self) -> Node:
        return self._binary_chain(self._multiplicative, ("+", "-"))

    def _multiplicative(self) -> Node:
        return self._binary_chain(self._unary, ("*", "/", "%"))

    def _unary(self) -> Node:
        op = self._accept("-", "+", "!")
        if op is None:
            return self._power()
        with self._nested():
            return self._node(Unary(op, self._unary()))

    def _power(self) -> Node:
        base = self._call()
        if self._accept("**") is None:
            return base
        # Right-associative: 2 ** 3 ** 2 == 2 ** 9
        with self._nested():
            return self._node(Binary("**", base, self._unary()))

    def _call(self) -> Node:
        token = self._peek()
        primary = self._primary()
        if self._accept("(") is None:
            if isinstance(primary, _FunctionRef):
                raise FormulaError(f"Function {primary.name!r} must be called")
            return primary

        if not isinstance(primary, _FunctionRef):
            raise FormulaError(f"{token.text!r} at position {token.pos} is not a function")

        args: list[Node] = []
        if self._accept(")") is None:
            args.append(self._conditional())
            while self._accept(",") is not None:
                args.append(self._conditional())
            self._expect(")")

        function = primary.function
        if len(args) < function.min_args or (
            function.max_args is not None and len(args) > function.max_args
        ):
            raise FormulaError(f"Wrong number of arguments for {primary.name!r}: {len(args)}")
        return self._node(Call(primary.name, function, tuple(args)))

    def _primary(self) -> Node | _FunctionRef:
        token = self._advance()

        if token.kind == "number":
            return self._node(Constant(float(token.text)))

        if token.kind == "name":
            return self._name(token)

        if token.kind == "op" and token.text == "(":
            node = self._conditional()
            self._expect(")")
            return node

        found = token.text or "end of formula"
        raise FormulaError(f"Unexpected {found!r} at position {token.pos}")

    def _name(self, token: Token) -> Node | _FunctionRef:
        name = token.text

        if name in _LITERALS:
            return self._node(Constant(_LITERALS[name]))
        if name in VARIABLES:
            return self._node(Variable(name))
        if name in _HELPERS:
            return _FunctionRef(name, _HELPERS[name])

        if name == "Math":
            self._expect(".")
            member = self._advance()
            if member.kind != "name":
                raise FormulaError(f"Expected a Math member at position {member.pos}")
            if member.text in _MATH_CONSTANTS:
                return self._node(Constant(_MATH_CONSTANTS[member.text]))
            if member.text in _MATH_FUNCTIONS:
                return _FunctionRef(f"Math.{member.text}", _MATH_FUNCTIONS[member.text])
            raise FormulaError(f"Unknown Math member {member.text!r}")

        raise FormulaError(f"Unknown variable {name!r}")


@lru_cache(maxsize=config.FORMULA_CACHE_SIZE)
def compile_formula(
    text: str,
    max_length: int = config.FORMULA_MAX_LENGTH,
    max_nodes: int = config.FORMULA_MAX_NODES,
    max_depth: int = config.FORMULA_MAX_DEPTH,
) -> Node:
    """Parse formula text into an immutable syntax tree.

    Raises:
        FormulaError: If the text is empty, too long, too complex or invalid
    """
    text = text.strip()
    if not text:
        raise FormulaError("Formula is empty")
    if len(text) > max_length:
        raise FormulaError(f"Formula is too long ({len(text)} > {max_length} characters)")
    return _Parser(tokenize(text), max_nodes, max_depth).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _truthy(value: Value) -> bool:
    return bool(value) and not (isinstance(value, float) and math.isnan(value))


def _number(value: Value) -> float:
    return float(value)


def _strict_equal(left: Value, right: Value) -> bool:
    return isinstance(left, bool) == isinstance(right, bool) and left == right


def _divide(left: float, right: float) -> float:
    if right == 0:
        raise FormulaError("Division by zero")
    return left / right


def _remainder(left: float, right: float) -> float:
    if right == 0:
        raise FormulaError("Division by zero")
    # Sign follows the dividend, as organizers expect from -7 % 3 == -1.
    return math.fmod(left, right)


_ARITHMETIC: dict[str, Callable[[float, float], Value]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _divide,
    "%": _remainder,
    "**": math.pow,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}


def _evaluate_node(node: Node, variables: dict[str, Value]) -> Value:
    if isinstance(node, Constant):
        return node.value

    if isinstance(node, Variable):
        return variables[node.name]

    if isinstance(node, Unary):
        operand = _evaluate_node(node.operand, variables)
        if node.op == "!":
            return not _truthy(operand)
        if node.op == "-":
            return -_number(operand)
        return _number(operand)

    if isinstance(node, Conditional):
        if _truthy(_evaluate_node(node.test, variables)):
            return _evaluate_node(node.body, variables)
        return _evaluate_node(node.orelse, variables)

    if isinstance(node, Call):
        args = [_number(_evaluate_node(arg, variables)) for arg in node.args]
        return float(node.function.call(*args))

    # Binary
    left = _evaluate_node(node.left, variables)
    if node.op == "&&":
        return _evaluate_node(node.right, variables) if _truthy(left) else left
    if node.op == "||":
        return left if _truthy(left) else _evaluate_node(node.right, variables)

    right = _evaluate_node(node.right, variables)
    if node.op == "===":
        return _strict_equal(left, right)
    if node.op == "!==":
        return not _strict_equal(left, right)
    return _ARITHMETIC[node.op](_number(left), _number(right))


class FormulaEvaluator:
    """Evaluates custom scoring formulas within configurable complexity limits."""

    def __init__(
        self,
        max_length: int = config.FORMULA_MAX_LENGTH,
        max_nodes: int = config.FORMULA_MAX_NODES,
        max_depth: int = config.FORMULA_MAX_DEPTH,
    ):
        self.max_length = max_length
        self.max_nodes = max_nodes
        self.max_depth = max_depth

    def compile(self, formula: str) -> Node:
        return compile_formula(formula, self.max_length, self.max_nodes, self.max_depth)

    def evaluate(self, formula: str, context: ScoringContext, current_points: float) -> float:
        """Evaluate a formula for one match.

        Args:
            formula: Formula text
            context: Rankings and base points of the match being scored
            current_points: Winner points before the formula is applied

        Returns:
            The formula result, floored at 0

        Raises:
            FormulaError: On any parse or evaluation failure, or when the
                result is not a finite number
        """
        tree = self.compile(formula)
        variables: dict[str, Value] = {
            "basePoints": float(context.base_points),
            "winnerRanking": float(context.winner_ranking),
            "loserRanking": float(context.loser_ranking),
            "rankingDifference": float(context.ranking_difference),
            "isUpset": context.is_upset,
            "currentPoints": float(current_points),
        }

        try:
            result = _evaluate_node(tree, variables)
        except FormulaError:
            raise
        except (ArithmeticError, ValueError) as exc:
            raise FormulaError(f"Math error: {exc}") from exc

        if isinstance(result, bool) or not math.isfinite(result):
            raise FormulaError("Formula must return a valid number")

        log.debug("Custom formula evaluated", formula=formula, result=result)
        return max(0.0, result)

    def validate(self, formula: str) -> list[str]:
        """Return the problems found in a formula (empty if valid)."""
        try:
            self.compile(formula)
        except FormulaError as exc:
            return [str(exc)]
        return []


_evaluator_instance: FormulaEvaluator | None = None


def get_formula_evaluator() -> FormulaEvaluator:
    """Get or create the shared formula evaluator."""
    global _evaluator_instance

    if _evaluator_instance is None:
        _evaluator_instance = FormulaEvaluator()

    return _evaluator_instance


def evaluate(formula: str, context: ScoringContext, current_points: float) -> float:
    """Evaluate a custom formula with the shared evaluator."""
    return get_formula_evaluator().evaluate(formula, context, current_points)


def validate_formula(formula: str) -> list[str]:
    """Validate a custom formula with the shared evaluator."""
    return get_formula_evaluator().validate(formula)
