import pytest

from pocir import syntax
from pocir.expressions import ExpressionLowering
from pocir.ir import (
    BinaryOp,
    Call,
    Function,
    Gep,
    IRType,
    Literal,
    Load,
    Module,
    Opcode,
    Symbol,
    SymbolKind,
    TypeKind,
    UnaryOp,
    array_of,
    global_ref,
    literal,
    local,
    pointer_to,
)
from pocir.lowering import LoweringError

INT = IRType(TypeKind.INT)
CHAR = IRType(TypeKind.CHAR)
BOOL = IRType(TypeKind.BOOL)
VOID = IRType(TypeKind.VOID)


def make_lowering():
    module = Module()
    function = Function("main", INT, module.global_scope)
    module.add_function(function)
    lowering = ExpressionLowering(module)
    lowering.current_function = function
    block = function.new_block()
    function.append_block(block)
    lowering.current_block = block
    lowering.current_scope = function.scope
    return lowering, function, block


def declare_local(function, name, value_type):
    slot = function.reserve_local_id()
    function.scope.declare(Symbol(name, SymbolKind.LOCAL, pointer_to(value_type), slot))
    return slot


def test_add_string_storage_creates_constant_global():
    lowering, _, _ = make_lowering()
    global_id = lowering.add_string_storage('"hi"')
    assert global_id == 1
    storage = lowering.module.globals[0]
    assert storage.name == ".str.1"
    assert storage.type == array_of(CHAR, 3)
    assert storage.initializer == Literal("hi")
    assert storage.is_constant


def test_add_string_storage_decodes_escapes_and_numbers_sequentially():
    lowering, _, _ = make_lowering()
    lowering.add_string_storage('"x"')
    second = lowering.add_string_storage('"a\\n"')
    assert second == 2
    assert lowering.module.globals[1].initializer == Literal("a\n")
    assert lowering.module.globals[1].type == array_of(CHAR, 3)


def test_int_literal_needs_no_instructions():
    lowering, _, block = make_lowering()
    value = lowering.lower_rvalue(syntax.IntLiteral(5))
    assert value.value == literal(INT, 5)
    assert value.type == INT
    assert block.instructions == []


def test_char_literal_becomes_character_code():
    lowering, _, _ = make_lowering()
    value = lowering.lower_rvalue(syntax.CharLiteral("\0"))
    assert value.value.literal == Literal(0)
    assert value.type == CHAR


def test_bool_and_float_literals():
    lowering, _, _ = make_lowering()
    assert lowering.lower_rvalue(syntax.BoolLiteral(True)).value.literal == Literal(True)
    assert lowering.lower_rvalue(syntax.FloatLiteral(1.5)).value.literal == Literal(1.5)


def test_local_identifier_is_loaded_from_its_slot():
    lowering, function, block = make_lowering()
    slot = declare_local(function, "x", INT)
    value = lowering.lower_rvalue(syntax.Identifier("x"))
    load = block.instructions[-1]
    assert isinstance(load, Load)
    assert load.address == local(pointer_to(INT), slot)
    assert value.value == local(INT, load.result_id)
    assert value.type == INT


def test_global_identifier_address():
    lowering, _, _ = make_lowering()
    lowering.module.global_scope.declare(Symbol("g", SymbolKind.GLOBAL, INT, 1))
    address = lowering.lower_lvalue(syntax.Identifier("g"))
    assert address.address == global_ref(pointer_to(INT), 1)
    assert address.type == INT


def test_unknown_identifier_raises():
    lowering, _, _ = make_lowering()
    with pytest.raises(LoweringError):
        lowering.lower_rvalue(syntax.Identifier("missing"))


def test_array_access_emits_gep_then_load():
    lowering, function, block = make_lowering()
    slot = declare_local(function, "arr", array_of(INT, 3))
    value = lowering.lower_rvalue(syntax.ArrayAccess(syntax.Identifier("arr"), [syntax.IntLiteral(1)]))
    gep, load = block.instructions
    assert isinstance(gep, Gep)
    assert gep.base == local(pointer_to(array_of(INT, 3)), slot)
    assert gep.indices == [literal(INT, 0), literal(INT, 1)]
    assert gep.result_type == pointer_to(INT)
    assert isinstance(load, Load)
    assert value.type == INT


def test_multi_index_access_walks_nested_arrays():
    lowering, function, block = make_lowering()
    declare_local(function, "grid", array_of(array_of(INT, 3), 2))
    node = syntax.ArrayAccess(syntax.Identifier("grid"), [syntax.IntLiteral(1), syntax.IntLiteral(2)])
    address = lowering.lower_lvalue(node)
    gep = block.instructions[-1]
    assert gep.indices == [literal(INT, 0), literal(INT, 1), literal(INT, 2)]
    assert address.type == INT


def test_too_many_indices_raise():
    lowering, function, _ = make_lowering()
    declare_local(function, "arr", array_of(INT, 3))
    node = syntax.ArrayAccess(syntax.Identifier("arr"), [syntax.IntLiteral(0), syntax.IntLiteral(0)])
    with pytest.raises(LoweringError):
        lowering.lower_rvalue(node)


def test_indexing_non_array_raises():
    lowering, function, _ = make_lowering()
    declare_local(function, "x", INT)
    with pytest.raises(LoweringError):
        lowering.lower_rvalue(syntax.ArrayAccess(syntax.Identifier("x"), [syntax.IntLiteral(0)]))


def test_string_literal_points_at_first_character():
    lowering, _, block = make_lowering()
    value = lowering.lower_rvalue(syntax.StringLiteral('"hi"'))
    gep = block.instructions[-1]
    assert gep.base == global_ref(pointer_to(array_of(CHAR, 3)), 1)
    assert gep.indices == [literal(INT, 0), literal(INT, 0)]
    assert value.type == pointer_to(CHAR)
    assert value.value == local(pointer_to(CHAR), gep.result_id)
    assert len(lowering.module.globals) == 1


def test_address_of_yields_slot_without_instructions():
    lowering, function, block = make_lowering()
    slot = declare_local(function, "x", INT)
    value = lowering.lower_rvalue(syntax.Unary(syntax.UnaryKind.ADDRESS_OF, syntax.Identifier("x")))
    assert value.value == local(pointer_to(INT), slot)
    assert value.type == pointer_to(INT)
    assert block.instructions == []


def test_dereference_loads_pointer_then_target():
    lowering, function, block = make_lowering()
    declare_local(function, "p", pointer_to(INT))
    value = lowering.lower_rvalue(syntax.Unary(syntax.UnaryKind.DEREF, syntax.Identifier("p")))
    first, second = block.instructions
    assert first.result_type == pointer_to(INT)
    assert second.result_type == INT
    assert second.address == local(pointer_to(INT), first.result_id)
    assert value.type == INT


def test_dereference_lvalue_addresses_pointer_target():
    lowering, function, _ = make_lowering()
    declare_local(function, "p", pointer_to(INT))
    address = lowering.lower_lvalue(syntax.Unary(syntax.UnaryKind.DEREF, syntax.Identifier("p")))
    assert address.type == INT
    assert address.address.type == pointer_to(INT)


def test_dereference_of_non_pointer_raises():
    lowering, function, _ = make_lowering()
    declare_local(function, "x", INT)
    with pytest.raises(LoweringError):
        lowering.lower_rvalue(syntax.Unary(syntax.UnaryKind.DEREF, syntax.Identifier("x")))


def test_literal_is_not_assignable():
    lowering, _, _ = make_lowering()
    with pytest.raises(LoweringError):
        lowering.lower_lvalue(syntax.IntLiteral(1))


def test_not_and_negate():
    lowering, _, block = make_lowering()
    not_value = lowering.lower_rvalue(syntax.Unary(syntax.UnaryKind.NOT, syntax.BoolLiteral(True)))
    neg_value = lowering.lower_rvalue(syntax.Unary(syntax.UnaryKind.NEGATE, syntax.IntLiteral(3)))
    not_instr, neg_instr = block.instructions
    assert isinstance(not_instr, UnaryOp)
    assert not_instr.opcode is Opcode.NOT
    assert not_value.type == BOOL
    assert neg_instr.opcode is Opcode.NEG
    assert neg_instr.operand == literal(INT, 3)
    assert neg_value.type == INT


def test_call_with_result():
    lowering, _, block = make_lowering()
    lowering.module.global_scope.declare(Symbol("add", SymbolKind.FUNCTION, INT, param_types=(INT, INT)))
    node = syntax.Call(syntax.Identifier("add"), [syntax.IntLiteral(1), syntax.IntLiteral(2)])
    value = lowering.lower_rvalue(node)
    call = block.instructions[-1]
    assert isinstance(call, Call)
    assert call.callee == "add"
    assert call.args == [literal(INT, 1), literal(INT, 2)]
    assert call.result_type == INT
    assert value.value == local(INT, call.result_id)


def test_void_call_has_no_value():
    lowering, _, block = make_lowering()
    lowering.module.global_scope.declare(Symbol("printInt", SymbolKind.FUNCTION, VOID, param_types=(INT,)))
    value = lowering.lower_rvalue(syntax.Call(syntax.Identifier("printInt"), [syntax.IntLiteral(1)]))
    assert not value.has_value
    assert not block.instructions[-1].has_result


def test_call_to_unknown_function_raises():
    lowering, _, _ = make_lowering()
    with pytest.raises(LoweringError):
        lowering.lower_rvalue(syntax.Call(syntax.Identifier("nowhere")))


@pytest.mark.parametrize(
    "kind, opcode, result_kind",
    [
        (syntax.BinaryKind.ADD, Opcode.ADD, TypeKind.INT),
        (syntax.BinaryKind.SUB, Opcode.SUB, TypeKind.INT),
        (syntax.BinaryKind.MUL, Opcode.MUL, TypeKind.INT),
        (syntax.BinaryKind.DIV, Opcode.DIV, TypeKind.INT),
        (syntax.BinaryKind.GT, Opcode.CMP_GT, TypeKind.BOOL),
        (syntax.BinaryKind.LT, Opcode.CMP_LT, TypeKind.BOOL),
        (syntax.BinaryKind.LTE, Opcode.CMP_LE, TypeKind.BOOL),
        (syntax.BinaryKind.GTE, Opcode.CMP_GE, TypeKind.BOOL),
        (syntax.BinaryKind.EQ, Opcode.CMP_EQ, TypeKind.BOOL),
        (syntax.BinaryKind.NEQ, Opcode.CMP_NE, TypeKind.BOOL),
        (syntax.BinaryKind.AND, Opcode.AND, TypeKind.BOOL),
        (syntax.BinaryKind.OR, Opcode.OR, TypeKind.BOOL),
    ],
)
def test_binary_operators(kind, opcode, result_kind):
    lowering, _, block = make_lowering()
    value = lowering.lower_rvalue(syntax.Binary(kind, syntax.IntLiteral(4), syntax.IntLiteral(2)))
    instruction = block.instructions[-1]
    assert isinstance(instruction, BinaryOp)
    assert instruction.opcode is opcode
    assert instruction.left == literal(INT, 4)
    assert value.type == IRType(result_kind)


def test_pointer_addition_uses_gep():
    lowering, function, block = make_lowering()
    declare_local(function, "p", pointer_to(INT))
    node = syntax.Binary(syntax.BinaryKind.ADD, syntax.Identifier("p"), syntax.IntLiteral(2))
    value = lowering.lower_rvalue(node)
    gep = block.instructions[-1]
    assert isinstance(gep, Gep)
    assert gep.indices == [literal(INT, 2)]
    assert value.type == pointer_to(INT)
    assert value.value == local(pointer_to(INT), gep.result_id)


def test_pointer_subtraction_negates_offset():
    lowering, function, block = make_lowering()
    declare_local(function, "p", pointer_to(INT))
    node = syntax.Binary(syntax.BinaryKind.SUB, syntax.Identifier("p"), syntax.IntLiteral(1))
    lowering.lower_rvalue(node)
    negate, gep = block.instructions[-2:]
    assert isinstance(negate, BinaryOp)
    assert negate.opcode is Opcode.SUB
    assert negate.left == literal(INT, 0)
    assert negate.right == literal(INT, 1)
    assert gep.indices == [local(INT, negate.result_id)]