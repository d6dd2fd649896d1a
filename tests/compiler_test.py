from ast_nodes import BinaryOp, NumberLiteral, VariableRef, Conditional
from bytecode import BytecodeProgram, Op
from compiler import Compiler, compile_tree, slot_for
from errors import CompileError
from parser import parse_source


def compile_source(text, capacity=None):
    root = parse_source(text)
    if capacity is None:
        return compile_tree(root)
    return compile_tree(root, capacity=capacity)


def expect_compile_error(fn, kind):
    try:
        fn()
    except CompileError as e:
        if e.kind != kind:
            raise AssertionError(f"Expected {kind}, got {e.kind}: {e}")
        return e
    raise AssertionError(f"Expected {kind}, compilation succeeded")


def test_post_order_arithmetic():
    bc = compile_source("2+3*4")
    want = [
        Op.PUSH_IMMEDIATE, 2,
        Op.PUSH_IMMEDIATE, 3,
        Op.PUSH_IMMEDIATE, 4,
        Op.MUL,
        Op.ADD,
        Op.HALT,
    ]
    if bc.cells != want:
        raise AssertionError(f"Expected {want}, got {bc.cells}")


def test_every_operator_maps_to_an_opcode():
    bc = compile_source("a+b-c*d/e")
    ops = [cell for cell in bc.cells if cell in (Op.ADD, Op.SUB, Op.MUL, Op.DIV)]
    if ops != [Op.ADD, Op.MUL, Op.DIV, Op.SUB]:
        raise AssertionError(f"Unexpected operator order: {ops}")


def test_program_ends_with_halt():
    for text in ("1", "x", "if (1) then 2 else 3", "(1+2)*3"):
        bc = compile_source(text)
        if bc.cells[-1] != Op.HALT:
            raise AssertionError(f"{text!r}: program does not end with HALT: {bc.cells}")


def test_conditional_holes_are_patched():
    bc = compile_source("if (1) then 5 else 9")
    want = [
        Op.PUSH_IMMEDIATE, 1,
        Op.JUMP_IF_ZERO, 4,     # -> 8, the else branch
        Op.PUSH_IMMEDIATE, 5,
        Op.JUMP, 2,             # -> 10, the end
        Op.PUSH_IMMEDIATE, 9,
        Op.HALT,
    ]
    if bc.cells != want:
        raise AssertionError(f"Expected {want}, got {bc.cells}")


def test_disassembly_shows_jump_targets():
    lines = compile_source("if (1) then 5 else 9").disassemble()
    if "0002  JUMP_IF_ZERO +4 -> 0008" not in lines:
        raise AssertionError(f"Missing conditional jump in {lines}")
    if "0006  JUMP +2 -> 0010" not in lines:
        raise AssertionError(f"Missing end jump in {lines}")
    if lines[-1] != "0010  HALT":
        raise AssertionError(f"Expected HALT last, got {lines[-1]}")


def test_slot_policy_uses_first_letter_case_folded():
    cases = {"a": 0, "apple": 0, "Ant": 0, "b": 1, "Zed": 25, "z9": 25, "_x": 0, "__": 0}
    for name, want in cases.items():
        got = slot_for(name)
        if got != want:
            raise AssertionError(f"slot_for({name!r}): expected {want}, got {got}")


def test_variable_fetch_uses_slot():
    bc = compile_source("apple + Banana")
    want = [Op.FETCH_GLOBAL, 0, Op.FETCH_GLOBAL, 1, Op.ADD, Op.HALT]
    if bc.cells != want:
        raise AssertionError(f"Expected {want}, got {bc.cells}")


def test_line_per_cell():
    bc = compile_source("1 +\n2")
    if len(bc.lines) != len(bc.cells):
        raise AssertionError("Expected one source line per cell")
    if bc.lines[2:4] != [2, 2]:
        raise AssertionError(f"Expected the second literal on line 2, got {bc.lines}")


def test_code_buffer_overflow():
    # 1+2 needs 6 cells including HALT
    compile_source("1+2", capacity=6)
    expect_compile_error(lambda: compile_source("1+2", capacity=5), "CodeBufferOverflow")
    expect_compile_error(lambda: compile_source("1+2", capacity=0), "CodeBufferOverflow")


def test_large_program_overflows_default_capacity():
    text = "+".join(["(1+1+1+1)"] * 200)
    expect_compile_error(lambda: compile_source(text), "CodeBufferOverflow")


def test_long_chain_overflows_without_recursing():
    text = "+".join(["1"] * 1500)
    err = expect_compile_error(lambda: compile_source(text), "CodeBufferOverflow")
    if err.line != 1:
        raise AssertionError(f"Expected line 1, got {err.line}")


def test_long_chain_compiles_with_room():
    # 5000 literals, 4999 ADDs, HALT
    bc = compile_source("+".join(["1"] * 5000), capacity=20000)
    if len(bc) != 15000:
        raise AssertionError(f"Expected 15000 cells, got {len(bc)}")
    if bc.cells[:5] != [Op.PUSH_IMMEDIATE, 1, Op.PUSH_IMMEDIATE, 1, Op.ADD]:
        raise AssertionError(f"Unexpected prefix {bc.cells[:5]}")
    if bc.cells[-2:] != [Op.ADD, Op.HALT]:
        raise AssertionError(f"Unexpected suffix {bc.cells[-2:]}")


def test_unknown_node():
    expect_compile_error(lambda: Compiler().compile("not a node"), "UnknownNode")


def test_unknown_operator():
    node = BinaryOp("%", NumberLiteral(1), NumberLiteral(2))
    expect_compile_error(lambda: Compiler().compile(node), "UnknownOperator")


def test_conditional_without_else_is_rejected():
    node = Conditional(NumberLiteral(1), VariableRef("x"))
    node.line = 3
    err = expect_compile_error(lambda: Compiler().compile(node), "MissingElse")
    if err.line != 3:
        raise AssertionError(f"Expected line 3, got {err.line}")


def test_emit_checks_operand_count():
    bc = BytecodeProgram()
    expect_compile_error(lambda: bc.emit(Op.PUSH_IMMEDIATE), "BadOperands")
    expect_compile_error(lambda: bc.emit(Op.ADD, 1), "BadOperands")
    expect_compile_error(lambda: bc.emit_jump(Op.ADD), "BadOperands")


def test_patch_rejects_out_of_range_target():
    bc = BytecodeProgram()
    hole = bc.emit_jump(Op.JUMP)
    expect_compile_error(lambda: bc.patch(hole, 10), "BadJumpTarget")
    bc.patch(hole, 2)
    if bc.cells[hole] != 0:
        raise AssertionError(f"Expected displacement 0, got {bc.cells[hole]}")


if __name__ == "__main__":
    for name, fn in list(globals().items()):
        if name.startswith("test_"):
            fn()
    print("ok")
