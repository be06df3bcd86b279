"""Lowering of statements, declarations and control flow to IR."""

from __future__ import annotations

from typing import Sequence

from . import syntax
from .expressions import ExpressionLowering
from .ir import (
    Alloca,
    Function,
    IRType,
    Opcode,
    Operand,
    Parameter,
    Ret,
    Scope,
    Symbol,
    SymbolKind,
    TypeKind,
    literal,
    local,
    param,
    pointer_to,
)
from .lowering import LoweringError, infer_array_type, type_from_ast

__all__ = ["StatementLowering"]


_STATEMENT_TYPES = (
    syntax.VarDecl,
    syntax.Assign,
    syntax.If,
    syntax.While,
    syntax.For,
    syntax.Break,
    syntax.Continue,
    syntax.Return,
    syntax.ExprStmt,
)


def _int_literal(value: int) -> Operand:
    return literal(IRType(TypeKind.INT), value)


def _declare(scope: Scope, symbol: Symbol) -> None:
    try:
        scope.declare(symbol)
    except ValueError as error:
        raise LoweringError(str(error)) from error


class StatementLowering(ExpressionLowering):
    """Turns statement nodes into instructions and blocks of the current function."""

    def materialize_parameter(self, function: Function, parameter: Parameter, index: int) -> None:
        """Copy parameter ``index`` into a stack slot and bind its name to that slot."""
        pointer_type = pointer_to(parameter.type)
        slot_id = self.reserve_result()
        _declare(function.scope, Symbol(parameter.name, SymbolKind.LOCAL, pointer_type, slot_id))
        self.append(Alloca(result_id=slot_id, result_type=pointer_type, allocated_type=parameter.type))
        self.emit_store(local(pointer_type, slot_id), param(parameter.type, index + 1))

    # Declarations and assignments

    def _store_array_elements(
        self,
        base: Operand,
        array_type: IRType,
        literal_node: syntax.ArrayLiteral,
        path: Sequence[int],
    ) -> None:
        for position, element in enumerate(literal_node.elements):
            element_path = (*path, position)
            if isinstance(element, syntax.ArrayLiteral):
                inner = array_type.element
                if inner is None or inner.kind is not TypeKind.ARRAY:
                    raise LoweringError("nested array literal does not match the array type")
                self._store_array_elements(base, inner, element, element_path)
                continue

            indices = [_int_literal(0), *(_int_literal(index) for index in element_path)]
            slot = self.emit_gep(base, indices, array_type.element)
            initializer = self.lower_rvalue(element)
            if initializer.value is None:
                raise LoweringError("array element has no value")
            self.emit_store(slot.address, initializer.value)

    def _lower_var_decl(self, node: syntax.VarDecl) -> None:
        value_type = type_from_ast(node.declared_type)
        initializer = node.initializer
        is_array_literal = isinstance(initializer, syntax.ArrayLiteral)

        if is_array_literal and value_type.kind is TypeKind.ARRAY and not value_type.has_array_size:
            value_type = infer_array_type(value_type, initializer)

        pointer_type = pointer_to(value_type)
        slot_id = self.reserve_result()
        _declare(self.current_scope, Symbol(node.name, SymbolKind.LOCAL, pointer_type, slot_id))
        self.append(Alloca(result_id=slot_id, result_type=pointer_type, allocated_type=value_type))

        if initializer is None:
            return
        slot = local(pointer_type, slot_id)
        if is_array_literal and value_type.kind is TypeKind.ARRAY:
            self._store_array_elements(slot, value_type, initializer, ())
            return

        value = self.lower_rvalue(initializer)
        if value.value is None:
            raise LoweringError(f"initializer of '{node.name}' has no value")
        self.emit_store(slot, value.value)

    def _lower_assign(self, node: syntax.Assign) -> None:
        target = self.lower_lvalue(node.target)
        if target.address is None or target.type is None:
            raise LoweringError("assignment target has no address")

        if node.op is syntax.AssignKind.SET:
            rhs = self.lower_rvalue(node.value)
            if rhs.value is None:
                raise LoweringError("assigned expression has no value")
            self.emit_store(target.address, rhs.value)
            return

        current = self.emit_load(target.address, target.type)
        value = self.lower_rvalue(node.value)
        if value.value is None:
            raise LoweringError("assigned expression has no value")
        opcode = Opcode.ADD if node.op is syntax.AssignKind.ADD else Opcode.SUB
        computed = self.emit_binary(opcode, current.value, value.value, current.type)
        target_again = self.lower_lvalue(node.target)
        self.emit_store(target_again.address, computed.value)

    def _lower_return(self, node: syntax.Return) -> None:
        if node.value is None:
            self.append(Ret())
            return
        value = self.lower_rvalue(node.value)
        if value.value is None:
            raise LoweringError("returned expression has no value")
        self.append(Ret(value=value.value))

    # Control flow

    def _lower_block(self, block: syntax.Block | None) -> None:
        if block is None:
            return
        for item in block.items:
            self.lower_statement(item)

    def _lower_loose(self, node: object) -> None:
        """Lower a for-loop header part, which may be a statement or a bare expression."""
        if node is None:
            return
        if isinstance(node, _STATEMENT_TYPES):
            self.lower_statement(node)
        else:
            self.lower_rvalue(node)

    def _branch_unless_terminated(self, target) -> None:
        if not self.block_terminated():
            self.emit_branch(target)

    def _lower_if(self, node: syntax.If) -> None:
        function = self.current_function
        then_block, else_block, end_block = (function.new_block() for _ in range(3))
        for block in (then_block, else_block, end_block):
            function.append_block(block)

        condition = self.lower_rvalue(node.condition)
        if condition.value is None:
            raise LoweringError("if condition has no value")
        self.emit_cond_branch(condition.value, then_block, else_block)

        self.current_block = then_block
        self._lower_block(node.then_branch)
        self._branch_unless_terminated(end_block)

        self.current_block = else_block
        self._lower_block(node.else_branch)
        self._branch_unless_terminated(end_block)

        self.current_block = end_block

    def _lower_while(self, node: syntax.While) -> None:
        function = self.current_function
        cond_block, body_block, end_block = (function.new_block() for _ in range(3))
        for block in (cond_block, body_block, end_block):
            function.append_block(block)

        self._branch_unless_terminated(cond_block)

        self.current_block = cond_block
        condition = self.lower_rvalue(node.condition)
        if condition.value is None:
            raise LoweringError("while condition has no value")
        self.emit_cond_branch(condition.value, body_block, end_block)

        with self.loop(end_block, cond_block):
            self.current_block = body_block
            self._lower_block(node.body)
        self._branch_unless_terminated(cond_block)

        self.current_block = end_block

    def _lower_for(self, node: syntax.For) -> None:
        saved_scope = self.current_scope
        self.current_scope = Scope(saved_scope)
        try:
            self._lower_loose(node.init)

            function = self.current_function
            cond_block, body_block, update_block, end_block = (function.new_block() for _ in range(4))
            for block in (cond_block, body_block, update_block, end_block):
                function.append_block(block)

            self._branch_unless_terminated(cond_block)

            self.current_block = cond_block
            if node.condition is not None:
                condition = self.lower_rvalue(node.condition)
                if condition.value is None:
                    raise LoweringError("for condition has no value")
                self.emit_cond_branch(condition.value, body_block, end_block)
            else:
                self.emit_branch(body_block)

            with self.loop(end_block, update_block):
                self.current_block = body_block
                self._lower_block(node.body)
            self._branch_unless_terminated(update_block)

            self.current_block = update_block
            self._lower_loose(node.update)
            self._branch_unless_terminated(cond_block)

            self.current_block = end_block
        finally:
            self.current_scope = saved_scope

    def _lower_break(self) -> None:
        target = self.current_loop()
        if target is None:
            raise LoweringError("'break' outside of a loop")
        self.emit_branch(target.break_target)

    def _lower_continue(self) -> None:
        target = self.current_loop()
        if target is None:
            raise LoweringError("'continue' outside of a loop")
        self.emit_branch(target.continue_target)

    def lower_statement(self, node: object) -> None:
        """Lower one statement into the current block; other nodes are ignored."""
        match node:
            case syntax.VarDecl():
                self._lower_var_decl(node)
            case syntax.Assign():
                self._lower_assign(node)
            case syntax.If():
                self._lower_if(node)
            case syntax.While():
                self._lower_while(node)
            case syntax.For():
                self._lower_for(node)
            case syntax.Break():
                self._lower_break()
            case syntax.Continue():
                self._lower_continue()
            case syntax.Return():
                self._lower_return(node)
            case syntax.ExprStmt(expression=expression):
                self.lower_rvalue(expression)
            case _:
                pass