"""
expr.py - Parser and syntax tree for GitHub Actions expressions

This module turns the text inside a ``${{ ... }}`` marker into an immutable
expression tree, and locates such markers inside arbitrary source text.

Grammar, lowest precedence first::

    expr       := or_expr
    or_expr    := and_expr ("||" and_expr)*
    and_expr   := eq_expr ("&&" eq_expr)*
    eq_expr    := cmp_expr (("==" | "!=") cmp_expr)*
    cmp_expr   := unary (("<" | "<=" | ">" | ">=") unary)*
    unary      := "!" unary | primary
    primary    := literal | "(" expr ")" | call postfix* | IDENT postfix*
    call       := IDENT "(" [expr ("," expr)*] ")"
    postfix    := "." IDENT | "." "*" | "[" "*" "]" | "[" expr "]"
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union


class ExpressionError(ValueError):
    """Exception raised when an expression cannot be parsed"""

    def __init__(self, message: str, text: str, position: int) -> None:
        super().__init__(f"{message} at position {position} in {text!r}")
        self.text = text
        self.position = position


class BinOpKind(Enum):
    """Binary operators, as written in source"""

    OR = "||"
    AND = "&&"
    EQ = "=="
    NEQ = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


class UnOpKind(Enum):
    """Unary operators, as written in source"""

    NOT = "!"


@dataclass(frozen=True)
class Number:
    value: float

    def render(self) -> str:
        if math.isinf(self.value):
            return "1e999" if self.value > 0 else "-1e999"
        if self.value.is_integer() and abs(self.value) < 1e16:
            return str(int(self.value))
        return repr(self.value)


@dataclass(frozen=True)
class String:
    value: str

    def render(self) -> str:
        return "'" + self.value.replace("'", "''") + "'"


@dataclass(frozen=True)
class Boolean:
    value: bool

    def render(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Null:
    def render(self) -> str:
        return "null"


@dataclass(frozen=True)
class Star:
    """The ``*`` wildcard, as in ``foo.*.bar`` or ``foo[*]``"""

    def render(self) -> str:
        return "*"


@dataclass(frozen=True)
class Identifier:
    name: str

    def render(self) -> str:
        return self.name


@dataclass(frozen=True)
class Index:
    """A bracketed subscript; its base is the preceding context components"""

    expr: "Expr"

    def render(self) -> str:
        return f"[{self.expr.render()}]"


@dataclass(frozen=True)
class Call:
    func: str
    args: Tuple["Expr", ...] = ()

    def render(self) -> str:
        return f"{self.func}({', '.join(arg.render() for arg in self.args)})"


@dataclass(frozen=True)
class Context:
    """
    A context reference such as ``github.event.issue.title``

    ``components`` holds the head (an ``Identifier``, a ``Call`` or a
    parenthesized expression) followed by ``Identifier``, ``Star`` and
    ``Index`` parts. ``raw`` is the normalized source form of the whole
    reference.
    """

    raw: str
    components: Tuple["Expr", ...]

    @classmethod
    def from_components(cls, components: List["Expr"]) -> "Context":
        """
        Build a context, computing its normalized text

        Args:
            components: Head followed by member and index components

        Returns:
            Context node
        """
        head = components[0]
        raw = head.render()
        if not isinstance(head, (Identifier, Call, BinOp)):
            raw = f"({raw})"
        for component in components[1:]:
            if isinstance(component, Index):
                raw += component.render()
            else:
                raw += "." + component.render()
        return cls(raw=raw, components=tuple(components))

    def child_of(self, parent: str) -> bool:
        """
        Check whether this context is ``parent`` or lives beneath it

        Context names are case-insensitive, so ``GITHUB.REF`` is a child
        of ``github``.

        Args:
            parent: Dotted context name, e.g. ``secrets`` or ``github.event``

        Returns:
            True if this context is the parent or one of its members
        """
        raw = self.raw.lower()
        parent = parent.lower()
        if raw == parent:
            return True
        return raw.startswith(parent) and raw[len(parent)] in ".["

    def render(self) -> str:
        return self.raw


@dataclass(frozen=True)
class BinOp:
    lhs: "Expr"
    op: BinOpKind
    rhs: "Expr"

    def render(self) -> str:
        return f"({self.lhs.render()} {self.op.value} {self.rhs.render()})"


@dataclass(frozen=True)
class UnOp:
    op: UnOpKind
    expr: "Expr"

    def render(self) -> str:
        return f"{self.op.value}{self.expr.render()}"


Expr = Union[Number, String, Boolean, Null, Star, Identifier, Index, Call, Context, BinOp, UnOp]


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>[+-]?(?:0[xX][0-9a-fA-F]+|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?))
  | (?P<string>'(?:[^']|'')*')
  | (?P<ident>[A-Za-z_][A-Za-z0-9_-]*)
  | (?P<op>==|!=|<=|>=|&&|\|\||[<>!()\[\].,*])
    """,
    re.VERBOSE,
)

_KEYWORDS = {"true", "false", "null"}

_EQ_OPS = {"==": BinOpKind.EQ, "!=": BinOpKind.NEQ}
_CMP_OPS = {
    "<": BinOpKind.LT,
    "<=": BinOpKind.LE,
    ">": BinOpKind.GT,
    ">=": BinOpKind.GE,
}


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(text: str) -> List[_Token]:
    tokens = []
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            raise ExpressionError(f"unexpected character {text[position]!r}", text, position)
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), position))
        position = match.end()
    tokens.append(_Token("eof", "", len(text)))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list"""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def _peek(self) -> _Token:
        return self.tokens[self.pos]

    def _advance(self) -> _Token:
        token = self.tokens[self.pos]
        if token.kind != "eof":
            self.pos += 1
        return token

    def _at_op(self, *ops: str) -> bool:
        token = self._peek()
        return token.kind == "op" and token.text in ops

    def _expect_op(self, op: str) -> _Token:
        token = self._peek()
        if not self._at_op(op):
            raise self._error(f"expected {op!r}", token)
        return self._advance()

    def _error(self, message: str, token: _Token) -> ExpressionError:
        found = token.text or "end of input"
        return ExpressionError(f"{message}, found {found!r}", self.text, token.position)

    def parse(self) -> Expr:
        expr = self._or()
        token = self._peek()
        if token.kind != "eof":
            raise self._error("unexpected trailing input", token)
        return expr

    def _or(self) -> Expr:
        lhs = self._and()
        while self._at_op("||"):
            self._advance()
            lhs = BinOp(lhs, BinOpKind.OR, self._and())
        return lhs

    def _and(self) -> Expr:
        lhs = self._eq()
        while self._at_op("&&"):
            self._advance()
            lhs = BinOp(lhs, BinOpKind.AND, self._eq())
        return lhs

    def _eq(self) -> Expr:
        lhs = self._cmp()
        while self._at_op(*_EQ_OPS):
            op = _EQ_OPS[self._advance().text]
            lhs = BinOp(lhs, op, self._cmp())
        return lhs

    def _cmp(self) -> Expr:
        lhs = self._unary()
        while self._at_op(*_CMP_OPS):
            op = _CMP_OPS[self._advance().text]
            lhs = BinOp(lhs, op, self._unary())
        return lhs

    def _unary(self) -> Expr:
        if self._at_op("!"):
            self._advance()
            return UnOp(UnOpKind.NOT, self._unary())
        return self._primary()

    def _primary(self) -> Expr:
        token = self._peek()

        if token.kind == "number":
            self._advance()
            return Number(_parse_number(token.text))

        if token.kind == "string":
            self._advance()
            return String(token.text[1:-1].replace("''", "'"))

        if token.kind == "op" and token.text == "(":
            self._advance()
            expr = self._or()
            self._expect_op(")")
            components = self._postfix()
            if not components:
                return expr
            if isinstance(expr, Context):
                return Context.from_components(list(expr.components) + components)
            return Context.from_components([expr] + components)

        if token.kind == "ident":
            self._advance()
            lowered = token.text.lower()
            if lowered in _KEYWORDS:
                if lowered == "null":
                    return Null()
                return Boolean(lowered == "true")

            head: Expr
            if self._at_op("("):
                head = self._call(token.text)
            else:
                head = Identifier(token.text)

            components = [head] + self._postfix()
            if len(components) == 1 and isinstance(head, Call):
                return head
            return Context.from_components(components)

        raise self._error("expected an expression", token)

    def _call(self, func: str) -> Call:
        self._expect_op("(")
        args: List[Expr] = []
        if not self._at_op(")"):
            args.append(self._or())
            while self._at_op(","):
                self._advance()
                args.append(self._or())
        self._expect_op(")")
        return Call(func, tuple(args))

    def _postfix(self) -> List[Expr]:
        components: List[Expr] = []
        while True:
            if self._at_op("."):
                self._advance()
                token = self._peek()
                if token.kind == "ident":
                    self._advance()
                    components.append(Identifier(token.text))
                elif self._at_op("*"):
                    self._advance()
                    components.append(Star())
                else:
                    raise self._error("expected a property name after '.'", token)
            elif self._at_op("["):
                self._advance()
                if self._at_op("*"):
                    self._advance()
                    components.append(Index(Star()))
                else:
                    components.append(Index(self._or()))
                self._expect_op("]")
            else:
                return components


def _parse_number(text: str) -> float:
    sign = -1.0 if text.startswith("-") else 1.0
    body = text.lstrip("+-")
    if body[:2].lower() == "0x":
        return sign * float(int(body, 16))
    return sign * float(body)


def parse(text: str) -> Expr:
    """
    Parse the bare text of an expression (without ``${{ }}``)

    Args:
        text: Expression source

    Returns:
        The expression tree

    Raises:
        ExpressionError: If the text is not a valid expression
    """
    try:
        return _Parser(text).parse()
    except RecursionError:
        raise ExpressionError("expression is nested too deeply", text, 0)


@dataclass(frozen=True)
class ExplicitExpr:
    """An expression in its ``${{ ... }}`` form"""

    raw: str

    @classmethod
    def from_curly(cls, text: str) -> Optional["ExplicitExpr"]:
        """
        Wrap text that is exactly one fenced expression

        Args:
            text: Candidate text, e.g. ``${{ github.workspace }}``

        Returns:
            ExplicitExpr or None if the text is not fenced
        """
        text = text.strip()
        if not text.startswith("${{") or not text.endswith("}}") or len(text) < 5:
            return None
        return cls(text)

    def as_curly(self) -> str:
        return self.raw

    def as_bare(self) -> str:
        return self.raw[3:-2].strip()

    def parse(self) -> Expr:
        return parse(self.as_bare())


def extract_expressions(text: str) -> List[Tuple[ExplicitExpr, Tuple[int, int]]]:
    """
    Find every ``${{ ... }}`` expression in a block of text

    A ``}}`` inside a quoted string does not close the expression. Extraction
    stops at the first unterminated expression.

    Args:
        text: Text to scan

    Returns:
        List of (expression, (start, end)) pairs in source order
    """
    found = []
    cursor = 0
    while True:
        start = text.find("${{", cursor)
        if start == -1:
            break

        end = None
        in_string = False
        i = start + 3
        while i < len(text):
            char = text[i]
            if char == "'":
                in_string = not in_string
            elif not in_string and text.startswith("}}", i):
                end = i + 2
                break
            i += 1

        if end is None:
            break

        found.append((ExplicitExpr(text[start:end]), (start, end)))
        cursor = end

    return found
