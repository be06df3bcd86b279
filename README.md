# pocir

`pocir` turns the syntax tree of a small, statically typed, C-like language into
an SSA-style intermediate representation. The result is a module of globals and
functions. Each function is a list of basic blocks, and each block holds typed
instructions.

## What it covers

- Scalar types (`int`, `float`, `char`, `bool`, `void`), pointers, and sized or
  unsized arrays. When an unsized array is declared with an array literal, its
  length comes from that literal.
- Globals with literal initializers. A global with a string initializer also
  gets its own private constant storage global. Every string literal in the
  program is given such storage.
- Function definitions and `extern` function declarations. Each parameter is
  copied into a stack slot, with an `Alloca` followed by a `Store`.
- Expressions: arithmetic, comparisons, logical `&&` / `||`, unary `-` and `!`,
  address-of and dereference, pointer addition and subtraction (lowered to
  `Gep`), multi-index array access, calls, and string literals.
- Statements: local declarations, including nested array literals, which are
  stored one element at a time. Also `=`, `+=` and `-=`; `if` / `else`; `while`;
  `for`, where the init part gets its own scope; `break` / `continue`; returns;
  and expression statements.
- If the last block of a function has no terminator, the function gets a
  default return: zero for `int`/`char`, `False` for `bool`, `0.0` for `float`,
  a null constant for other value types, and a bare return for `void`.

## Usage

Build the tree from the node classes in `pocir.syntax`, then pass it to
`pocir.builder.build_module`:

```python
from pocir import syntax as ast
from pocir.builder import build_module

int_t = ast.TypeName(ast.TypeNameKind.INT)
program = ast.Program([
    ast.FuncDecl(
        name="sum",
        params=[ast.Param("a", int_t), ast.Param("b", int_t)],
        return_type=int_t,
        body=ast.Block([
            ast.Return(ast.Binary(ast.BinaryKind.ADD,
                                  ast.Identifier("a"),
                                  ast.Identifier("b"))),
        ]),
    ),
])

module = build_module(program)
function = module.functions[0]
for block in function.blocks:
    for instruction in block.instructions:
        print(instruction)
```

`build_module` returns a `pocir.ir.Module` with these fields:

- `globals`: the global variables and the string storage globals.
- `functions`: the functions defined in the program. Extern declarations do not
  appear here.
- `global_scope`: a `pocir.ir.Scope` that holds every global, function and extern
  symbol. Query it with `module.global_scope.lookup(name)`.

`pocir.builder.ModuleBuilder` does the same job. You can also pass it an
existing `Module` to build into.

The package has these modules:

- `pocir.ir`: the data model. It covers types (`IRType`, `pointer_to`,
  `array_of`), operands, the instruction classes (`Alloca`, `Load`, `Store`,
  `Gep`, `BinaryOp`, `UnaryOp`, `Branch`, `CondBranch`, `Ret`, `Call`, `Cast`),
  and `BasicBlock`, `Function`, `Global`, `Scope` and `Module`.
- `pocir.syntax`: the syntax tree nodes, and `string_literals`, which walks a
  tree and yields its string literals.
- `pocir.lowering`: shared helpers (`type_from_ast`, `unquote_string`,
  `infer_array_type`, and others) and the `Emitter` that appends instructions.
- `pocir.expressions`, `pocir.statements`: lowering of expressions and of
  statements.
- `pocir.builder`: whole-program lowering.

If a construct cannot be lowered, the builder raises
`pocir.lowering.LoweringError`. Examples include a `break` outside a loop, a
call to an unknown function, an unknown identifier, and a type name with no IR
representation.

## What it does not do

- It does not read source text. There is no lexer and no parser, so the tree
  must be built in Python.
- It does not check types or other semantic rules. It assumes the tree is
  already valid, and it reports only what keeps lowering from going ahead.
- It does not write the IR out as text or machine code. You inspect the module
  as Python objects.
- It has no command-line program.

## Running the tests

```
pip install -e ".[test]"
pytest
```