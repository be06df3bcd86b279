"""Helpers shared by the lowering passes: type conversion, string decoding and instruction emission."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Sequence

from . import syntax
from .ir import (
    Alloca,
    BasicBlock,
    BinaryOp,
    Branch,
    CondBranch,
    Function,
    Gep,
    Instruction,
    IRType,
    IRValue,
    Literal,
    LiteralValue,
    Load,
    Module,
    Opcode,
    Operand,
    Scope,
    Store,
    TypeKind,
    UnaryOp,
    array_of,
    local,
    pointer_to,
)
from .ir import literal as literal_operand

__all__ = [
    "LoweringError",
    "unquote_string",
    "string_literal_length",
    "type_from_ast",
    "array_depth",
    "infer_array_type",
    "literal_value",
    "LoopTarget",
    "Emitter",
    "Alloca",
]


class LoweringError(Exception):
    """Raised when a syntax tree cannot be lowered to IR."""


_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "0": "\0",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


def _is_quoted(value: str) -> bool:
    return len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'"


def unquote_string(value: str) -> str:
    """Strip matching quotes from ``value`` and decode its escape sequences.

    Text that is not quoted is returned unchanged. A backslash directly before
    the closing quote is kept as it is; an unknown escape yields the escaped
    character itself.
    """
    if not _is_quoted(value):
        return value

    body = value[1:-1]
    decoded: list[str] = []
    chars = iter(enumerate(body))
    for index, char in chars:
        if char == "\\" and index + 1 < len(body):
            _, escaped = next(chars)
            decoded.append(_ESCAPES.get(escaped, escaped))
        else:
            decoded.append(char)
    return "".join(decoded)


def string_literal_length(value: str | None) -> int:
    """Return the length of a literal's source text without its quotes; escapes are not decoded."""
    if value is None:
        return 0
    return len(value) - 2 if _is_quoted(value) else len(value)


_SCALAR_KINDS = {
    syntax.TypeNameKind.INT: TypeKind.INT,
    syntax.TypeNameKind.FLOAT: TypeKind.FLOAT,
    syntax.TypeNameKind.CHAR: TypeKind.CHAR,
    syntax.TypeNameKind.BOOL: TypeKind.BOOL,
    syntax.TypeNameKind.VOID: TypeKind.VOID,
}


def type_from_ast(node: syntax.TypeNode | None) -> IRType:
    """Convert a syntax-tree type into an IR type."""
    match node:
        case syntax.PointerType(target=target):
            return pointer_to(type_from_ast(target))
        case syntax.ArrayType(element=element, size=size):
            # A sized array over an unsized one, as in Array<int>[3], names one dimension.
            if size is not None and isinstance(element, syntax.ArrayType) and element.size is None:
                element = element.element
            element_type = type_from_ast(element)
            if isinstance(size, syntax.IntLiteral):
                return array_of(element_type, size.value)
            return array_of(element_type)
        case syntax.TypeName(kind=kind):
            scalar = _SCALAR_KINDS.get(kind)
            if scalar is None:
                raise LoweringError(f"type '{node.name or kind.value}' has no IR representation")
            return IRType(scalar)
        case _:
            raise LoweringError(f"not a type node: {node!r}")


def array_depth(type_: IRType | None) -> int:
    """Return how many array levels are nested in ``type_``."""
    depth = 0
    while type_ is not None and type_.kind is TypeKind.ARRAY:
        depth += 1
        type_ = type_.element
    return depth


def infer_array_type(declared: IRType, literal: object) -> IRType:
    """Give the array dimensions of ``declared`` the sizes of an array literal."""
    if declared.kind is not TypeKind.ARRAY or not isinstance(literal, syntax.ArrayLiteral):
        return declared

    elements = literal.elements
    if (
        declared.element is not None
        and declared.element.kind is TypeKind.ARRAY
        and elements
        and isinstance(elements[0], syntax.ArrayLiteral)
    ):
        element_type = infer_array_type(declared.element, elements[0])
    else:
        element_type = declared.element

    if element_type is None:
        raise LoweringError("array type has no element type")
    return array_of(element_type, len(elements))


def literal_value(kind: TypeKind, value: Literal | LiteralValue) -> IRValue:
    """Return a value holding a constant of type ``kind``."""
    if value is None:
        raise LoweringError("literal value is missing")
    type_ = IRType(kind)
    return IRValue(type=type_, value=literal_operand(type_, value))


@dataclass(frozen=True)
class LoopTarget:
    """The blocks that ``break`` and ``continue`` jump to inside a loop."""

    break_target: BasicBlock
    continue_target: BasicBlock


class Emitter:
    """Appends instructions to the current block of the current function."""

    def __init__(self, module: Module) -> None:
        self.module = module
        self.current_function: Function | None = None
        self.current_block: BasicBlock | None = None
        self.current_scope: Scope = module.global_scope
        self._loops: list[LoopTarget] = []

    @contextmanager
    def loop(self, break_target: BasicBlock, continue_target: BasicBlock) -> Iterator[LoopTarget]:
        """Make the given blocks the innermost loop's targets for the duration of the block."""
        target = LoopTarget(break_target, continue_target)
        self._loops.append(target)
        try:
            yield target
        finally:
            self._loops.pop()

    def current_loop(self) -> LoopTarget | None:
        return self._loops[-1] if self._loops else None

    def append(self, instruction: Instruction) -> None:
        if self.current_block is None:
            raise LoweringError("no block to append instructions to")
        self.current_block.append(instruction)

    def block_terminated(self) -> bool:
        return self.current_block is not None and self.current_block.has_terminator()

    def reserve_result(self) -> int:
        if self.current_function is None:
            raise LoweringError("no function to number results in")
        return self.current_function.reserve_local_id()

    @staticmethod
    def _require_type(type_: IRType | None) -> IRType:
        if type_ is None:
            raise LoweringError("instruction result has no type")
        return type_

    def emit_load(self, address: Operand, value_type: IRType | None) -> IRValue:
        value_type = self._require_type(value_type)
        result_id = self.reserve_result()
        self.append(Load(result_id=result_id, result_type=value_type, address=address))
        return IRValue(type=value_type, value=local(value_type, result_id))

    def emit_binary(self, opcode: Opcode, left: Operand, right: Operand, type_: IRType | None) -> IRValue:
        type_ = self._require_type(type_)
        instruction = BinaryOp(opcode=opcode, left=left, right=right)
        instruction.result_id = self.reserve_result()
        instruction.result_type = type_
        self.append(instruction)
        return IRValue(type=type_, value=local(type_, instruction.result_id))

    def emit_unary(self, opcode: Opcode, operand: Operand, type_: IRType | None) -> IRValue:
        type_ = self._require_type(type_)
        instruction = UnaryOp(opcode=opcode, operand=operand)
        instruction.result_id = self.reserve_result()
        instruction.result_type = type_
        self.append(instruction)
        return IRValue(type=type_, value=local(type_, instruction.result_id))

    def emit_gep(self, base: Operand, indices: Sequence[Operand], result_type: IRType | None) -> IRValue:
        """Emit an address computation; the result is an address of ``result_type``."""
        result_type = self._require_type(result_type)
        pointer_type = pointer_to(result_type)
        result_id = self.reserve_result()
        self.append(Gep(result_id=result_id, result_type=pointer_type, base=base, indices=list(indices)))
        return IRValue(type=result_type, address=local(pointer_type, result_id))

    def emit_store(self, address: Operand, value: Operand) -> None:
        self.append(Store(address=address, value=value))

    def emit_branch(self, target: BasicBlock) -> None:
        self.append(Branch(target_block_id=target.id))

    def emit_cond_branch(self, condition: Operand, then_block: BasicBlock, else_block: BasicBlock) -> None:
        self.append(
            CondBranch(condition=condition, then_block_id=then_block.id, else_block_id=else_block.id)
        )