from functools import partial

from ast_nodes import BinaryOp, NumberLiteral, VariableRef, Conditional
from bytecode import BytecodeProgram, Op, CODE_MAX
from errors import CompileError

GLOBAL_SLOTS = 26


def slot_for(name):
    """Map an identifier to its global slot.

    Only the first character counts, case-folded: ``apple``, ``a`` and ``Ant``
    all share slot 0. A first character outside a-z (only ``_`` can occur)
    aliases to slot 0 as well.
    """
    i = ord(name[0].lower()) - ord("a") if name else -1
    if i < 0 or i >= GLOBAL_SLOTS:
        return 0
    return i


class Compiler:
    def __init__(self, capacity=CODE_MAX):
        self.bc = BytecodeProgram(capacity)

    def compile(self, root):
        # entry point
        self.compile_expr(root)
        self.bc.emit(Op.HALT, line=getattr(root, "line", None))
        return self.bc

    # -------- expressions --------
    def compile_expr(self, root):
        # post-order walk on an explicit work list of nodes and deferred
        # emit steps; no Python recursion, however deep the tree
        work = [root]
        while work:
            item = work.pop()
            if callable(item):
                item()
                continue
            match item:
                case BinaryOp(op, left, right):
                    opcode = self.binary_op_to_opcode(op, item.line)
                    work.append(partial(self.bc.emit, opcode, line=item.line))
                    work.append(right)
                    work.append(left)
                case NumberLiteral(value):
                    self.bc.emit(Op.PUSH_IMMEDIATE, value, line=item.line)
                case VariableRef(name):
                    self.bc.emit(Op.FETCH_GLOBAL, slot_for(name), line=item.line)
                case Conditional():
                    work.extend(reversed(self.conditional_steps(item)))
                case _:
                    raise CompileError(
                        "UnknownNode",
                        f"Unknown expression node: {item.__class__.__name__}",
                        line=getattr(item, "line", None),
                    )

    def conditional_steps(self, node):
        if node.else_branch is None:
            raise CompileError("MissingElse", "conditional has no else branch", line=node.line)

        holes = {}

        # skip the then branch when zero (patched below)
        def branch():
            holes["jz"] = self.bc.emit_jump(Op.JUMP_IF_ZERO, line=node.line)

        # jump over the else branch, which starts right after this jump
        def skip_else():
            holes["jmp"] = self.bc.emit_jump(Op.JUMP, line=node.line)
            self.bc.patch(holes["jz"], len(self.bc))

        # end of the conditional
        def end():
            self.bc.patch(holes["jmp"], len(self.bc))

        # condition leaves its value on the stack for the first jump
        return [node.condition, branch, node.then_branch, skip_else, node.else_branch, end]

    def binary_op_to_opcode(self, op, line=None):
        mapping = {
            "+": Op.ADD,
            "-": Op.SUB,
            "*": Op.MUL,
            "/": Op.DIV,
        }
        if op not in mapping:
            raise CompileError("UnknownOperator", f"Unknown operator: {op}", line=line)
        return mapping[op]


def compile_tree(root, capacity=CODE_MAX):
    return Compiler(capacity).compile(root)
