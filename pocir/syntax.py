"""Syntax tree nodes consumed by the IR builder."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Union


class TypeNameKind(enum.Enum):
    INT = "int"
    FLOAT = "float"
    CHAR = "char"
    BOOL = "bool"
    VOID = "void"
    CUSTOM = "custom"


@dataclass
class TypeName:
    kind: TypeNameKind
    name: str | None = None


@dataclass
class PointerType:
    target: "TypeNode"


@dataclass
class ArrayType:
    """An array type; ``size`` is the size expression, or None when unsized."""

    element: "TypeNode"
    size: Optional["Expression"] = None


@dataclass
class IntLiteral:
    value: int


@dataclass
class FloatLiteral:
    value: float


@dataclass
class CharLiteral:
    """A character literal holding the already decoded character."""

    value: str


@dataclass
class BoolLiteral:
    value: bool


@dataclass
class StringLiteral:
    """A string literal holding its source text, quotes and escapes included."""

    value: str


@dataclass
class Identifier:
    name: str


@dataclass
class ArrayAccess:
    base: "Expression"
    indices: list["Expression"] = field(default_factory=list)


class UnaryKind(enum.Enum):
    NEGATE = "-"
    NOT = "!"
    ADDRESS_OF = "&"
    DEREF = "*"


@dataclass
class Unary:
    op: UnaryKind
    operand: "Expression"


class BinaryKind(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    AND = "&&"
    OR = "||"
    GT = ">"
    LT = "<"
    LTE = "<="
    GTE = ">="
    EQ = "=="
    NEQ = "!="


@dataclass
class Binary:
    op: BinaryKind
    left: "Expression"
    right: "Expression"


@dataclass
class Call:
    callee: "Expression"
    args: list["Expression"] = field(default_factory=list)


@dataclass
class ArrayLiteral:
    elements: list["Expression"] = field(default_factory=list)


class AssignKind(enum.Enum):
    SET = "="
    ADD = "+="
    SUB = "-="


@dataclass
class Assign:
    target: "Expression"
    value: "Expression"
    op: AssignKind = AssignKind.SET


@dataclass
class VarDecl:
    name: str
    declared_type: "TypeNode"
    initializer: Optional["Expression"] = None


@dataclass
class Param:
    name: str
    declared_type: "TypeNode"


@dataclass
class FuncDecl:
    """A function; extern declarations have no body."""

    name: str
    params: list[Param]
    return_type: "TypeNode"
    body: Optional["Block"] = None
    is_extern: bool = False


@dataclass
class Block:
    items: list["Statement"] = field(default_factory=list)


@dataclass
class If:
    condition: "Expression"
    then_branch: Block
    else_branch: Block | None = None


@dataclass
class While:
    condition: "Expression"
    body: Block


@dataclass
class For:
    init: Optional["Statement"]
    condition: Optional["Expression"]
    update: Optional["Statement"]
    body: Block


@dataclass
class Break:
    pass


@dataclass
class Continue:
    pass


@dataclass
class Return:
    value: Optional["Expression"] = None


@dataclass
class ExprStmt:
    expression: "Expression"


@dataclass
class Program:
    items: list[Union[VarDecl, FuncDecl]] = field(default_factory=list)


TypeNode = Union[TypeName, PointerType, ArrayType]
Expression = Union[
    IntLiteral,
    FloatLiteral,
    CharLiteral,
    BoolLiteral,
    StringLiteral,
    Identifier,
    ArrayAccess,
    Unary,
    Binary,
    Call,
    ArrayLiteral,
]
Statement = Union[VarDecl, Assign, If, While, For, Break, Continue, Return, ExprStmt, Expression]


def _children(node: object) -> Iterable[object]:
    match node:
        case Program(items=items) | Block(items=items):
            return items
        case VarDecl():
            return (node.initializer,)
        case FuncDecl():
            return (node.body,)
        case If():
            return (node.condition, node.then_branch, node.else_branch)
        case While():
            return (node.condition, node.body)
        case For():
            return (node.init, node.condition, node.update, node.body)
        case Return():
            return (node.value,)
        case ExprStmt():
            return (node.expression,)
        case Assign():
            return (node.target, node.value)
        case Binary():
            return (node.left, node.right)
        case Unary():
            return (node.operand,)
        case Call():
            return (node.callee, *node.args)
        case ArrayAccess():
            return (node.base, *node.indices)
        case ArrayLiteral():
            return node.elements
        case _:
            return ()


def string_literals(node: object) -> Iterator[StringLiteral]:
    """Yield every string literal reachable from ``node`` in source order."""
    if node is None:
        return
    if isinstance(node, StringLiteral):
        yield node
        return
    for child in _children(node):
        yield from string_literals(child)