import sys

from bytecode import Op, OPERAND_COUNT, WORD_BITS, WORD_MAX
from compiler import GLOBAL_SLOTS, slot_for
from errors import ExprError, ExprRuntimeError

STACK_MAX = 128


def to_word(value):
    # wrap to signed 32-bit, two's complement
    value &= (1 << WORD_BITS) - 1
    if value > WORD_MAX:
        value -= 1 << WORD_BITS
    return value


def trunc_div(a, b):
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return q


class VM:
    def __init__(self, bytecode_program, presets=None, trace=False, stack_max=STACK_MAX):
        self.code = list(bytecode_program.cells)
        self.lines = list(getattr(bytecode_program, "lines", [None] * len(self.code)))

        self.stack_max = stack_max
        self.pc = 0                           # program counter (cell index)
        self.stack = []                       # operand stack
        self.globals = [0] * GLOBAL_SLOTS     # one slot per letter a-z
        self.halted = False
        self.result = None

        self.trace_enabled = trace
        self.fault_pc = 0   # pc of the instruction being executed

        if presets:
            for key, value in presets.items():
                self.set_global(key, value)

    def set_global(self, key, value):
        index = slot_for(key) if isinstance(key, str) else key
        self.check_slot(index)
        self.globals[index] = to_word(int(value))

    def fail(self, kind, message):
        line = None
        if 0 <= self.fault_pc < len(self.lines):
            line = self.lines[self.fault_pc]
        raise ExprRuntimeError(kind, message, pc=self.fault_pc, line=line)

    def check_slot(self, index):
        if not isinstance(index, int) or index < 0 or index >= GLOBAL_SLOTS:
            self.fail("BadSlot", f"global slot {index} out of range")

    def fetch(self):
        if self.pc < 0 or self.pc >= len(self.code):
            self.fail("ProgramCounterOutOfBounds", f"pc {self.pc} outside program of {len(self.code)} cells")
        value = self.code[self.pc]
        self.pc += 1
        return value

    def push(self, value):
        if len(self.stack) >= self.stack_max:
            self.fail("StackOverflow", f"operand stack exceeds {self.stack_max} entries")
        self.stack.append(value)

    def pop(self):
        if not self.stack:
            self.fail("StackUnderflow", "Stack underflow")
        return self.stack.pop()

    def step(self) -> bool:
        if self.halted:
            return True

        self.fault_pc = self.pc
        raw = self.fetch()
        try:
            opcode = Op(raw)
        except ValueError:
            self.fail("UnknownOpcode", f"Unknown opcode: {raw}")

        operands = [self.fetch() for _ in range(OPERAND_COUNT[opcode])]

        if self.trace_enabled:
            parts = [f"TRACE pc={self.fault_pc:04d}", opcode.name]
            parts.extend(str(v) for v in operands)
            parts.append(f"stack={len(self.stack)}")
            print(" ".join(parts), file=sys.stderr)

        if opcode == Op.HALT:
            self.result = self.pop()
            self.halted = True
            return True

        if opcode == Op.FETCH_GLOBAL:
            self.check_slot(operands[0])
            self.push(self.globals[operands[0]])
            return False

        if opcode == Op.STORE_GLOBAL:
            self.check_slot(operands[0])
            self.globals[operands[0]] = self.pop()
            return False

        if opcode == Op.PUSH_IMMEDIATE:
            self.push(to_word(operands[0]))
            return False

        if opcode == Op.DROP:
            self.pop()
            return False

        if opcode in (Op.ADD, Op.SUB, Op.MUL, Op.DIV, Op.LESS_THAN):
            b = self.pop()
            a = self.pop()
            if opcode == Op.ADD:
                self.push(to_word(a + b))
            elif opcode == Op.SUB:
                self.push(to_word(a - b))
            elif opcode == Op.MUL:
                self.push(to_word(a * b))
            elif opcode == Op.DIV:
                if b == 0:
                    self.fail("DivideByZero", "division by zero")
                self.push(to_word(trunc_div(a, b)))
            else:
                self.push(1 if a < b else 0)
            return False

        if opcode == Op.JUMP_IF_ZERO:
            if self.pop() == 0:
                self.pc += operands[0]
            return False

        if opcode == Op.JUMP_IF_NOT_ZERO:
            if self.pop() != 0:
                self.pc += operands[0]
            return False

        # only Op.JUMP remains
        self.pc += operands[0]
        return False

    def run(self):
        try:
            while True:
                halted = self.step()
                if halted:
                    break
        except ExprError:
            raise
        except Exception as e:
            raise ExprRuntimeError("InternalError", str(e), pc=self.fault_pc) from e
        return self.result
