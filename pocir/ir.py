"""Intermediate representation: types, operands, instructions, blocks, functions and modules."""

from __future__ import annotations

import enum
from dataclasses import InitVar, dataclass, field
from types import MappingProxyType
from typing import ClassVar, Mapping, Union


class TypeKind(enum.Enum):
    """Kinds of IR types."""

    VOID = "void"
    INT = "int"
    FLOAT = "float"
    CHAR = "char"
    BOOL = "bool"
    POINTER = "pointer"
    ARRAY = "array"


@dataclass(frozen=True)
class IRType:
    """An IR type; pointers and arrays carry an element type, arrays an optional size."""

    kind: TypeKind
    element: IRType | None = None
    size: int | None = None

    @property
    def has_array_size(self) -> bool:
        return self.size is not None


def pointer_to(element: IRType | None) -> IRType:
    """Return the pointer type whose target is ``element``."""
    return IRType(TypeKind.POINTER, element)


def array_of(element: IRType | None, size: int | None = None) -> IRType:
    """Return an array type of ``element``; ``size`` of None means unsized."""
    if size is not None and size < 0:
        raise ValueError(f"array size must not be negative, got {size}")
    return IRType(TypeKind.ARRAY, element, size)


LiteralValue = Union[bool, int, float, str]


@dataclass(frozen=True, eq=False)
class Literal:
    """A constant value: an integer, float, string or boolean."""

    value: LiteralValue

    def __post_init__(self) -> None:
        if not isinstance(self.value, (bool, int, float, str)):
            raise TypeError(f"unsupported literal value: {self.value!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Literal):
            return NotImplemented
        return type(self.value) is type(other.value) and self.value == other.value

    def __hash__(self) -> int:
        return hash((type(self.value), self.value))


class OperandKind(enum.Enum):
    """Where an operand's value comes from."""

    LOCAL = "local"
    PARAM = "param"
    GLOBAL = "global"
    LITERAL = "literal"
    BLOCK = "block"


@dataclass(frozen=True)
class Operand:
    """An instruction operand: a numbered local, parameter, global or block, or a literal."""

    kind: OperandKind
    type: IRType | None = None
    id: int = 0
    literal: Literal | None = None


def local(type_: IRType | None, local_id: int) -> Operand:
    return Operand(OperandKind.LOCAL, type_, local_id)


def param(type_: IRType | None, param_id: int) -> Operand:
    return Operand(OperandKind.PARAM, type_, param_id)


def global_ref(type_: IRType | None, global_id: int) -> Operand:
    return Operand(OperandKind.GLOBAL, type_, global_id)


def literal(type_: IRType | None, value: Literal | LiteralValue | None) -> Operand:
    """Return a literal operand; a raw value is wrapped, None stands for a null constant."""
    if value is not None and not isinstance(value, Literal):
        value = Literal(value)
    return Operand(OperandKind.LITERAL, type_, literal=value)


def block_ref(block_id: int) -> Operand:
    return Operand(OperandKind.BLOCK, None, block_id)


@dataclass
class IRValue:
    """The result of lowering an expression: a value, an address, or nothing."""

    type: IRType | None = None
    value: Operand | None = None
    address: Operand | None = None

    @property
    def has_value(self) -> bool:
        return self.value is not None

    @property
    def has_address(self) -> bool:
        return self.address is not None


class Opcode(enum.Enum):
    """Instruction opcodes."""

    CONST = "const"
    GLOBAL_ADDR = "global_addr"
    ALLOCA = "alloca"
    LOAD = "load"
    STORE = "store"
    GEP = "gep"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    AND = "and"
    OR = "or"
    CMP_EQ = "cmp_eq"
    CMP_NE = "cmp_ne"
    CMP_LT = "cmp_lt"
    CMP_LE = "cmp_le"
    CMP_GT = "cmp_gt"
    CMP_GE = "cmp_ge"
    NEG = "neg"
    NOT = "not"
    BR = "br"
    COND_BR = "cond_br"
    RET = "ret"
    CALL = "call"
    CAST = "cast"


_TERMINATORS = frozenset({Opcode.RET, Opcode.BR, Opcode.COND_BR})
_BINARY_OPCODES = frozenset(
    {
        Opcode.ADD,
        Opcode.SUB,
        Opcode.MUL,
        Opcode.DIV,
        Opcode.AND,
        Opcode.OR,
        Opcode.CMP_EQ,
        Opcode.CMP_NE,
        Opcode.CMP_LT,
        Opcode.CMP_LE,
        Opcode.CMP_GT,
        Opcode.CMP_GE,
    }
)
_UNARY_OPCODES = frozenset({Opcode.NEG, Opcode.NOT})


@dataclass(kw_only=True)
class Instruction:
    """Base of all instructions; ``result_id`` is set when the instruction yields a value."""

    opcode: ClassVar[Opcode]
    result_id: int | None = None
    result_type: IRType | None = None

    @property
    def has_result(self) -> bool:
        return self.result_id is not None

    def is_terminator(self) -> bool:
        return self.opcode in _TERMINATORS


@dataclass(kw_only=True)
class Alloca(Instruction):
    opcode: ClassVar[Opcode] = Opcode.ALLOCA
    allocated_type: IRType


@dataclass(kw_only=True)
class Load(Instruction):
    opcode: ClassVar[Opcode] = Opcode.LOAD
    address: Operand


@dataclass(kw_only=True)
class Store(Instruction):
    opcode: ClassVar[Opcode] = Opcode.STORE
    address: Operand
    value: Operand


@dataclass(kw_only=True)
class Gep(Instruction):
    opcode: ClassVar[Opcode] = Opcode.GEP
    base: Operand
    indices: list[Operand] = field(default_factory=list)


@dataclass(kw_only=True)
class BinaryOp(Instruction):
    opcode: Opcode
    left: Operand
    right: Operand

    def __post_init__(self) -> None:
        if self.opcode not in _BINARY_OPCODES:
            raise ValueError(f"{self.opcode} is not a binary opcode")


@dataclass(kw_only=True)
class UnaryOp(Instruction):
    opcode: Opcode
    operand: Operand

    def __post_init__(self) -> None:
        if self.opcode not in _UNARY_OPCODES:
            raise ValueError(f"{self.opcode} is not a unary opcode")


@dataclass(kw_only=True)
class Branch(Instruction):
    opcode: ClassVar[Opcode] = Opcode.BR
    target_block_id: int


@dataclass(kw_only=True)
class CondBranch(Instruction):
    opcode: ClassVar[Opcode] = Opcode.COND_BR
    condition: Operand
    then_block_id: int
    else_block_id: int


@dataclass(kw_only=True)
class Ret(Instruction):
    opcode: ClassVar[Opcode] = Opcode.RET
    value: Operand | None = None


@dataclass(kw_only=True)
class Call(Instruction):
    opcode: ClassVar[Opcode] = Opcode.CALL
    callee: str
    args: list[Operand] = field(default_factory=list)


@dataclass(kw_only=True)
class Cast(Instruction):
    opcode: ClassVar[Opcode] = Opcode.CAST
    value: Operand
    target_type: IRType


@dataclass(eq=False)
class BasicBlock:
    """A numbered, straight-line sequence of instructions."""

    id: int
    instructions: list[Instruction] = field(default_factory=list)

    def append(self, instruction: Instruction) -> None:
        self.instructions.append(instruction)

    def has_terminator(self) -> bool:
        return bool(self.instructions) and self.instructions[-1].is_terminator()


@dataclass
class Parameter:
    name: str
    type: IRType


class SymbolKind(enum.Enum):
    LOCAL = "local"
    GLOBAL = "global"
    FUNCTION = "function"


@dataclass(frozen=True)
class Symbol:
    """A named entity: a local stack slot, a global, or a function."""

    name: str
    kind: SymbolKind
    type: IRType | None
    id: int = 0
    param_types: tuple[IRType, ...] = ()


class Scope:
    """A table of symbols that falls back on its parent for lookups."""

    def __init__(self, parent: Scope | None = None) -> None:
        self.parent = parent
        self._symbols: dict[str, Symbol] = {}

    @property
    def symbols(self) -> Mapping[str, Symbol]:
        return MappingProxyType(self._symbols)

    def declare(self, symbol: Symbol) -> None:
        """Add ``symbol``; a name may be declared only once per scope."""
        if symbol.name in self._symbols:
            raise ValueError(f"symbol '{symbol.name}' is already declared in this scope")
        self._symbols[symbol.name] = symbol

    def lookup(self, name: str) -> Symbol | None:
        scope: Scope | None = self
        while scope is not None:
            found = scope._symbols.get(name)
            if found is not None:
                return found
            scope = scope.parent
        return None


@dataclass(eq=False)
class Function:
    """A function definition with its own scope, blocks and id counters."""

    name: str
    return_type: IRType
    parent_scope: InitVar[Scope | None] = None
    params: list[Parameter] = field(default_factory=list)
    blocks: list[BasicBlock] = field(default_factory=list)
    scope: Scope = field(init=False)
    next_local_id: int = field(default=1, init=False)
    next_block_id: int = field(default=1, init=False)

    def __post_init__(self, parent_scope: Scope | None) -> None:
        self.scope = Scope(parent_scope)

    def reserve_local_id(self) -> int:
        local_id = self.next_local_id
        self.next_local_id += 1
        return local_id

    def reserve_block_id(self) -> int:
        block_id = self.next_block_id
        self.next_block_id += 1
        return block_id

    def new_block(self) -> BasicBlock:
        """Create a block with a fresh id; it is not yet part of the function."""
        return BasicBlock(self.reserve_block_id())

    def append_block(self, block: BasicBlock) -> None:
        self.blocks.append(block)


@dataclass(eq=False)
class Global:
    """A module-level variable or constant."""

    name: str
    id: int
    type: IRType
    initializer: Literal | None = None
    is_constant: bool = False
    storage_global_id: int | None = None

    @property
    def has_storage_global(self) -> bool:
        return self.storage_global_id is not None


@dataclass(eq=False)
class Module:
    """A compilation unit: globals, function definitions and the global scope."""

    globals: list[Global] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    global_scope: Scope = field(default_factory=Scope)

    def next_global_id(self) -> int:
        return len(self.globals) + 1

    def add_global(self, global_: Global) -> None:
        self.globals.append(global_)

    def add_function(self, function: Function) -> None:
        self.functions.append(function)