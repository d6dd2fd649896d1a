from errors import ParseError

BINARY_OPS = ("+", "-", "*", "/")


class ASTNode:
    # Optional source line (1-based). Parser sets this.
    line: int | None = None


class BinaryOp(ASTNode):
    __match_args__ = ("op", "left", "right")

    def __init__(self, op, left, right):
        self.op = op          # one of BINARY_OPS
        self.left = left
        self.right = right

    def __repr__(self):
        return f"BinaryOp({self.op!r}, {self.left!r}, {self.right!r})"


class NumberLiteral(ASTNode):
    __match_args__ = ("value",)

    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"NumberLiteral({self.value!r})"


class VariableRef(ASTNode):
    __match_args__ = ("name",)

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"VariableRef({self.name!r})"


class Conditional(ASTNode):
    __match_args__ = ("condition", "then_branch", "else_branch")

    def __init__(self, condition, then_branch, else_branch=None):
        self.condition = condition
        self.then_branch = then_branch
        self.else_branch = else_branch  # ASTNode | None

    def __repr__(self):
        return f"Conditional({self.condition!r}, {self.then_branch!r}, {self.else_branch!r})"


def dump(node) -> str:
    """Render a tree as an s-expression, e.g. ``(+ 2 (* 3 4))``."""
    if not isinstance(node, ASTNode):
        raise TypeError(f"not an AST node: {node!r}")
    out = []
    work = [node]   # nodes still to render, and literal text in between
    while work:
        item = work.pop()
        if isinstance(item, str):
            out.append(item)
            continue
        match item:
            case BinaryOp(op, left, right):
                work.extend([")", right, " ", left, f"({op} "])
            case NumberLiteral(value):
                out.append(str(value))
            case VariableRef(name):
                out.append(name)
            case Conditional(condition, then_branch, None):
                work.extend([")", then_branch, " ", condition, "(if "])
            case Conditional(condition, then_branch, else_branch):
                work.extend([")", else_branch, " ", then_branch, " ", condition, "(if "])
            case _:
                raise TypeError(f"not an AST node: {item!r}")
    return "".join(out)


def same_shape(a, b) -> bool:
    """Structural equality; source lines are ignored."""
    pairs = [(a, b)]
    while pairs:
        a, b = pairs.pop()
        match a, b:
            case BinaryOp(), BinaryOp():
                if a.op != b.op:
                    return False
                pairs.append((a.left, b.left))
                pairs.append((a.right, b.right))
            case NumberLiteral(), NumberLiteral():
                if a.value != b.value:
                    return False
            case VariableRef(), VariableRef():
                if a.name != b.name:
                    return False
            case Conditional(), Conditional():
                if (a.else_branch is None) != (b.else_branch is None):
                    return False
                pairs.append((a.condition, b.condition))
                pairs.append((a.then_branch, b.then_branch))
                if a.else_branch is not None:
                    pairs.append((a.else_branch, b.else_branch))
            case _:
                return False
    return True


# ---------- dump reader ----------

def _dump_tokens(text):
    # yields (atom, offset); parens are atoms of their own
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch in "()":
            yield ch, i + 1
            i += 1
            continue
        start = i
        while i < n and not text[i].isspace() and text[i] not in "()":
            i += 1
        yield text[start:i], start + 1


class _DumpReader:
    def __init__(self, text):
        self.atoms = list(_dump_tokens(text))
        self.pos = 0

    def error(self, message):
        offset = self.atoms[self.pos][1] if self.pos < len(self.atoms) else None
        raise ParseError("MalformedDump", message, line=1, offset=offset)

    def peek(self):
        if self.pos >= len(self.atoms):
            return None
        return self.atoms[self.pos][0]

    def take(self):
        atom = self.peek()
        if atom is None:
            self.error("unexpected end of dump")
        self.pos += 1
        return atom

    def node(self):
        atom = self.take()
        if atom == "(":
            head = self.take()
            if head in BINARY_OPS:
                node = BinaryOp(head, self.node(), self.node())
            elif head == "if":
                condition = self.node()
                then_branch = self.node()
                else_branch = None
                if self.peek() != ")":
                    else_branch = self.node()
                node = Conditional(condition, then_branch, else_branch)
            else:
                self.pos -= 1
                self.error(f"unknown form {head!r}")
            if self.take() != ")":
                self.pos -= 1
                self.error("expected ')'")
            return node
        if atom == ")":
            self.pos -= 1
            self.error("unexpected ')'")
        if all(ch in "0123456789" for ch in atom):
            return NumberLiteral(int(atom))
        return VariableRef(atom)


def read_dump(text):
    """Parse the output of :func:`dump` back into a tree."""
    reader = _DumpReader(text)
    try:
        node = reader.node()
    except RecursionError:
        raise ParseError("NestingTooDeep", "dump nested too deeply", line=1) from None
    if reader.peek() is not None:
        reader.error("trailing content after dump")
    return node
