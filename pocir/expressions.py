"""Lowering of expressions to IR values and addresses."""

from __future__ import annotations

from .ir import (
    Call,
    Global,
    IRType,
    IRValue,
    Literal,
    Opcode,
    SymbolKind,
    TypeKind,
    array_of,
    global_ref,
    literal,
    local,
    pointer_to,
)
from .lowering import (
    Emitter,
    LoweringError,
    literal_value,
    string_literal_length,
    unquote_string,
)
from . import syntax

__all__ = ["ExpressionLowering"]


_ARITHMETIC = {
    syntax.BinaryKind.ADD: Opcode.ADD,
    syntax.BinaryKind.SUB: Opcode.SUB,
    syntax.BinaryKind.MUL: Opcode.MUL,
    syntax.BinaryKind.DIV: Opcode.DIV,
}

_BOOLEAN = {
    syntax.BinaryKind.AND: Opcode.AND,
    syntax.BinaryKind.OR: Opcode.OR,
    syntax.BinaryKind.GT: Opcode.CMP_GT,
    syntax.BinaryKind.LT: Opcode.CMP_LT,
    syntax.BinaryKind.LTE: Opcode.CMP_LE,
    syntax.BinaryKind.GTE: Opcode.CMP_GE,
    syntax.BinaryKind.EQ: Opcode.CMP_EQ,
    syntax.BinaryKind.NEQ: Opcode.CMP_NE,
}


def _int_literal(value: int):
    return literal(IRType(TypeKind.INT), value)


class ExpressionLowering(Emitter):
    """Turns expression nodes into instructions in the current block."""

    def add_string_storage(self, value: str) -> int:
        """Add a private constant global holding the decoded string; return its id."""
        global_id = self.module.next_global_id()
        decoded = unquote_string(value)
        storage = Global(
            name=f".str.{global_id}",
            id=global_id,
            type=array_of(IRType(TypeKind.CHAR), len(decoded) + 1),
            initializer=Literal(decoded),
            is_constant=True,
        )
        self.module.add_global(storage)
        return global_id

    # Addresses

    def _lower_identifier(self, node: syntax.Identifier) -> IRValue:
        symbol = self.current_scope.lookup(node.name)
        if symbol is None or symbol.type is None:
            raise LoweringError(f"unknown identifier '{node.name}'")

        if symbol.kind is SymbolKind.LOCAL and symbol.type.kind is TypeKind.POINTER:
            return IRValue(type=symbol.type.element, address=local(symbol.type, symbol.id))

        if symbol.kind is SymbolKind.GLOBAL:
            return IRValue(type=symbol.type, address=global_ref(pointer_to(symbol.type), symbol.id))

        raise LoweringError(f"'{node.name}' does not name a storage location")

    def _lower_array_access(self, node: syntax.ArrayAccess) -> IRValue:
        base = self.lower_lvalue(node.base)
        if base.address is None or base.type is None or base.type.kind is not TypeKind.ARRAY or not node.indices:
            raise LoweringError("indexed expression is not an addressable array")

        indices = [_int_literal(0)]
        current: IRType | None = base.type
        for index in node.indices:
            if current is None or current.kind is not TypeKind.ARRAY or current.element is None:
                raise LoweringError("too many indices for array type")
            index_value = self.lower_rvalue(index)
            if index_value.value is None:
                raise LoweringError("array index has no value")
            indices.append(index_value.value)
            current = current.element

        return self.emit_gep(base.address, indices, current)

    def lower_lvalue(self, node: object) -> IRValue:
        """Lower ``node`` to the address it designates."""
        match node:
            case syntax.Identifier():
                return self._lower_identifier(node)
            case syntax.ArrayAccess():
                return self._lower_array_access(node)
            case syntax.Unary(op=syntax.UnaryKind.DEREF, operand=operand):
                pointer = self.lower_rvalue(operand)
                if (
                    pointer.value is None
                    or pointer.type is None
                    or pointer.type.kind is not TypeKind.POINTER
                    or pointer.type.element is None
                ):
                    raise LoweringError("dereferenced expression is not a pointer")
                return IRValue(type=pointer.type.element, address=pointer.value)
            case _:
                raise LoweringError(f"expression is not assignable: {node!r}")

    # Values

    def _lower_string(self, node: syntax.StringLiteral) -> IRValue:
        global_id = self.add_string_storage(node.value)
        char_type = IRType(TypeKind.CHAR)
        array_type = array_of(char_type, string_literal_length(node.value) + 1)
        base = global_ref(pointer_to(array_type), global_id)
        address = self.emit_gep(base, [_int_literal(0), _int_literal(0)], char_type)
        return IRValue(type=pointer_to(char_type), value=address.address)

    def _load_from(self, address: IRValue) -> IRValue:
        if address.address is None or address.type is None:
            raise LoweringError("expression has no address to load from")
        return self.emit_load(address.address, address.type)

    def _lower_unary(self, node: syntax.Unary) -> IRValue:
        if node.op is syntax.UnaryKind.ADDRESS_OF:
            addressed = self.lower_lvalue(node.operand)
            if addressed.address is None or addressed.address.type is None:
                raise LoweringError("operand of '&' has no address")
            return IRValue(type=addressed.address.type, value=addressed.address)

        if node.op is syntax.UnaryKind.DEREF:
            return self._load_from(self.lower_lvalue(node))

        operand = self.lower_rvalue(node.operand)
        if operand.value is None:
            raise LoweringError("unary operand has no value")

        if node.op is syntax.UnaryKind.NOT:
            return self.emit_unary(Opcode.NOT, operand.value, IRType(TypeKind.BOOL))
        if node.op is syntax.UnaryKind.NEGATE:
            return self.emit_unary(Opcode.NEG, operand.value, operand.type)
        raise LoweringError(f"unsupported unary operator {node.op}")

    def _lower_call(self, node: syntax.Call) -> IRValue:
        if not isinstance(node.callee, syntax.Identifier):
            raise LoweringError("only named functions can be called")
        name = node.callee.name
        callee = self.module.global_scope.lookup(name)
        if callee is None:
            raise LoweringError(f"call to unknown function '{name}'")

        args = []
        for arg in node.args:
            value = self.lower_rvalue(arg)
            if value.value is None:
                raise LoweringError(f"argument to '{name}' has no value")
            args.append(value.value)

        instruction = Call(callee=name, args=args)
        returns_value = callee.type is not None and callee.type.kind is not TypeKind.VOID
        if returns_value:
            instruction.result_id = self.reserve_result()
            instruction.result_type = callee.type
        self.append(instruction)

        if returns_value:
            return IRValue(type=callee.type, value=local(callee.type, instruction.result_id))
        return IRValue()

    def _lower_pointer_arithmetic(self, op: syntax.BinaryKind, left: IRValue, right: IRValue) -> IRValue:
        if left.type is None or left.type.kind is not TypeKind.POINTER or left.type.element is None:
            raise LoweringError("pointer arithmetic needs a typed pointer")

        offset = right.value
        if op is syntax.BinaryKind.SUB:
            negated = self.emit_binary(Opcode.SUB, _int_literal(0), right.value, IRType(TypeKind.INT))
            offset = negated.value

        address = self.emit_gep(left.value, [offset], left.type.element)
        return IRValue(type=address.address.type, value=address.address)

    def _lower_binary(self, node: syntax.Binary) -> IRValue:
        left = self.lower_rvalue(node.left)
        right = self.lower_rvalue(node.right)
        if left.value is None or right.value is None or left.type is None:
            raise LoweringError("binary operand has no value")

        if node.op in (syntax.BinaryKind.ADD, syntax.BinaryKind.SUB) and left.type.kind is TypeKind.POINTER:
            return self._lower_pointer_arithmetic(node.op, left, right)

        if node.op in _ARITHMETIC:
            return self.emit_binary(_ARITHMETIC[node.op], left.value, right.value, left.type)
        if node.op in _BOOLEAN:
            return self.emit_binary(_BOOLEAN[node.op], left.value, right.value, IRType(TypeKind.BOOL))
        raise LoweringError(f"unsupported binary operator {node.op}")

    def lower_rvalue(self, node: object) -> IRValue:
        """Lower ``node`` to the value it computes; a void call yields an empty value."""
        match node:
            case syntax.IntLiteral(value=value):
                return literal_value(TypeKind.INT, value)
            case syntax.FloatLiteral(value=value):
                return literal_value(TypeKind.FLOAT, float(value))
            case syntax.CharLiteral(value=value):
                if len(value) != 1:
                    raise LoweringError(f"character literal must hold one character, got {value!r}")
                return literal_value(TypeKind.CHAR, ord(value))
            case syntax.BoolLiteral(value=value):
                return literal_value(TypeKind.BOOL, bool(value))
            case syntax.StringLiteral():
                return self._lower_string(node)
            case syntax.Identifier():
                return self._load_from(self._lower_identifier(node))
            case syntax.ArrayAccess():
                return self._load_from(self._lower_array_access(node))
            case syntax.Unary():
                return self._lower_unary(node)
            case syntax.Call():
                return self._lower_call(node)
            case syntax.Binary():
                return self._lower_binary(node)
            case _:
                raise LoweringError(f"cannot lower expression: {node!r}")