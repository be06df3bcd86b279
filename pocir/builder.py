"""Building an IR module from a whole program."""

from __future__ import annotations

from . import syntax
from .ir import (
    Function,
    Global,
    IRType,
    Literal,
    Module,
    Parameter,
    Ret,
    Symbol,
    SymbolKind,
    TypeKind,
    literal,
)
from .lowering import LoweringError, type_from_ast, unquote_string
from .statements import StatementLowering

__all__ = ["ModuleBuilder", "build_module"]


def _global_initializer(node: object) -> Literal | None:
    """Return the constant a global starts with, or None when it is zero-initialised."""
    match node:
        case syntax.IntLiteral(value=value):
            return Literal(int(value))
        case syntax.FloatLiteral(value=value):
            return Literal(float(value))
        case syntax.StringLiteral(value=value):
            return Literal(unquote_string(value))
        case syntax.BoolLiteral(value=value):
            return Literal(bool(value))
        case _:
            return None


class ModuleBuilder(StatementLowering):
    """Lowers a program into a module: globals and signatures first, then function bodies."""

    def __init__(self, module: Module | None = None) -> None:
        super().__init__(module if module is not None else Module())

    def build(self, program: syntax.Program) -> Module:
        """Lower ``program`` into the builder's module and return it."""
        definitions: list[tuple[syntax.FuncDecl, Function]] = []
        for item in program.items:
            match item:
                case syntax.VarDecl():
                    self._predeclare_global(item)
                case syntax.FuncDecl(is_extern=True):
                    self._predeclare_extern(item)
                case syntax.FuncDecl():
                    definitions.append((item, self._predeclare_function(item)))

        for string in syntax.string_literals(program):
            self.add_string_storage(string.value)

        for node, function in definitions:
            self._lower_function_body(node, function)
        return self.module

    def _declare_global_symbol(self, symbol: Symbol) -> None:
        try:
            self.module.global_scope.declare(symbol)
        except ValueError as error:
            raise LoweringError(str(error)) from error

    def _predeclare_global(self, node: syntax.VarDecl) -> None:
        type_ = type_from_ast(node.declared_type)
        global_id = self.module.next_global_id()
        global_ = Global(node.name, global_id, type_, _global_initializer(node.initializer))
        if isinstance(node.initializer, syntax.StringLiteral):
            global_.storage_global_id = self.add_string_storage(node.initializer.value)
        self.module.add_global(global_)
        self._declare_global_symbol(Symbol(node.name, SymbolKind.GLOBAL, type_, global_id))

    @staticmethod
    def _param_types(node: syntax.FuncDecl) -> tuple[IRType, ...]:
        return tuple(type_from_ast(p.declared_type) for p in node.params)

    def _predeclare_function(self, node: syntax.FuncDecl) -> Function:
        return_type = type_from_ast(node.return_type)
        params = [Parameter(p.name, type_from_ast(p.declared_type)) for p in node.params]
        function = Function(node.name, return_type, self.module.global_scope, params=params)
        self._declare_global_symbol(
            Symbol(
                node.name,
                SymbolKind.FUNCTION,
                return_type,
                param_types=tuple(p.type for p in params),
            )
        )
        self.module.add_function(function)
        return function

    def _predeclare_extern(self, node: syntax.FuncDecl) -> None:
        return_type = type_from_ast(node.return_type)
        self._declare_global_symbol(
            Symbol(node.name, SymbolKind.FUNCTION, return_type, param_types=self._param_types(node))
        )

    def _emit_default_return(self) -> None:
        return_type = self.current_function.return_type
        if return_type is None or return_type.kind is TypeKind.VOID:
            self.append(Ret())
            return
        match return_type.kind:
            case TypeKind.INT | TypeKind.CHAR:
                value = literal(IRType(return_type.kind), 0)
            case TypeKind.BOOL:
                value = literal(IRType(TypeKind.BOOL), False)
            case TypeKind.FLOAT:
                value = literal(IRType(TypeKind.FLOAT), 0.0)
            case _:
                value = literal(return_type, None)
        self.append(Ret(value=value))

    def _lower_function_body(self, node: syntax.FuncDecl, function: Function) -> None:
        if node.body is None:
            raise LoweringError(f"function '{node.name}' has no body")
        self.current_function = function
        self.current_scope = function.scope
        entry = function.new_block()
        function.append_block(entry)
        self.current_block = entry

        for index, parameter in enumerate(function.params):
            self.materialize_parameter(function, parameter, index)
        for statement in node.body.items:
            self.lower_statement(statement)

        if not self.block_terminated():
            self._emit_default_return()


def build_module(program: syntax.Program) -> Module:
    """Lower ``program`` into a new IR module."""
    return ModuleBuilder().build(program)