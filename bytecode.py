from enum import IntEnum

from errors import CompileError

CODE_MAX = 2048  # maximum compiled size, in cells

# cells hold signed 32-bit words
WORD_BITS = 32
WORD_MAX = 2 ** (WORD_BITS - 1) - 1


class Op(IntEnum):
    HALT = 0
    FETCH_GLOBAL = 1
    STORE_GLOBAL = 2
    PUSH_IMMEDIATE = 3
    DROP = 4
    ADD = 5
    SUB = 6
    MUL = 7
    DIV = 8
    LESS_THAN = 9
    JUMP_IF_ZERO = 10
    JUMP_IF_NOT_ZERO = 11
    JUMP = 12


# number of operand cells following each opcode
OPERAND_COUNT = {
    Op.HALT: 0,
    Op.FETCH_GLOBAL: 1,
    Op.STORE_GLOBAL: 1,
    Op.PUSH_IMMEDIATE: 1,
    Op.DROP: 0,
    Op.ADD: 0,
    Op.SUB: 0,
    Op.MUL: 0,
    Op.DIV: 0,
    Op.LESS_THAN: 0,
    Op.JUMP_IF_ZERO: 1,
    Op.JUMP_IF_NOT_ZERO: 1,
    Op.JUMP: 1,
}

JUMPS = (Op.JUMP_IF_ZERO, Op.JUMP_IF_NOT_ZERO, Op.JUMP)

HOLE = 0  # placeholder displacement until patched


class BytecodeProgram:
    def __init__(self, capacity=CODE_MAX):
        self.capacity = capacity
        self.cells = []   # opcodes and their operands, flat
        self.lines = []   # source line per cell (None when unknown), aligned with cells

    def __len__(self):
        return len(self.cells)

    def _put(self, value, line):
        if len(self.cells) >= self.capacity:
            raise CompileError(
                "CodeBufferOverflow",
                f"program does not fit in {self.capacity} cells",
                line=line,
            )
        self.cells.append(int(value))
        self.lines.append(line)

    def emit(self, opcode, *operands, line=None):
        # returns the cell index of the opcode
        if len(operands) != OPERAND_COUNT[opcode]:
            raise CompileError(
                "BadOperands",
                f"{Op(opcode).name} takes {OPERAND_COUNT[opcode]} operand(s), got {len(operands)}",
                line=line,
            )
        pos = len(self.cells)
        self._put(opcode, line)
        for operand in operands:
            self._put(operand, line)
        return pos

    def emit_jump(self, opcode, line=None):
        # returns the hole: index of the displacement cell still to be patched
        if opcode not in JUMPS:
            raise CompileError("BadOperands", f"{Op(opcode).name} is not a jump", line=line)
        pos = self.emit(opcode, HOLE, line=line)
        return pos + 1

    def patch(self, hole, target):
        # displacement is relative to the cell after the operand
        if not 0 <= target <= len(self.cells):
            raise CompileError("BadJumpTarget", f"jump target {target} outside program")
        self.cells[hole] = target - (hole + 1)

    def instructions(self):
        # yields (pc, opcode, operands); stops at the first unknown opcode
        pc = 0
        while pc < len(self.cells):
            try:
                opcode = Op(self.cells[pc])
            except ValueError:
                yield pc, None, [self.cells[pc]]
                return
            count = OPERAND_COUNT[opcode]
            yield pc, opcode, self.cells[pc + 1 : pc + 1 + count]
            pc += 1 + count

    def disassemble(self):
        out = []
        for pc, opcode, operands in self.instructions():
            if opcode is None:
                out.append(f"{pc:04d}  ??? {operands[0]}")
                continue
            text = f"{pc:04d}  {opcode.name}"
            if opcode in JUMPS and operands:
                disp = operands[0]
                target = pc + 2 + disp
                text += f" {disp:+d} -> {target:04d}"
            elif operands:
                text += " " + " ".join(str(v) for v in operands)
            out.append(text)
        return out
