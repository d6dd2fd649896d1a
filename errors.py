class ExprError(Exception):
    tier = "Error"

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def location(self) -> str:
        return ""

    def format(self) -> str:
        loc = self.location()
        if loc:
            return f"{self.tier} error: {self.kind}: {self.message} ({loc})"
        return f"{self.tier} error: {self.kind}: {self.message}"

    def __str__(self) -> str:
        return self.format()


class ParseError(ExprError):
    tier = "Parse"

    def __init__(self, kind: str, message: str, line: int | None = None, offset: int | None = None):
        super().__init__(kind, message)
        self.line = line
        self.offset = offset

    def location(self) -> str:
        if self.line is None:
            return ""
        if self.offset is None:
            return f"line {self.line}"
        return f"line {self.line}, offset {self.offset}"


class CompileError(ExprError):
    tier = "Compile"

    def __init__(self, kind: str, message: str, line: int | None = None):
        super().__init__(kind, message)
        self.line = line

    def location(self) -> str:
        if self.line is None:
            return ""
        return f"line {self.line}"


class ExprRuntimeError(ExprError):
    tier = "Runtime"

    def __init__(self, kind: str, message: str, pc: int | None = None, line: int | None = None):
        super().__init__(kind, message)
        self.pc = pc
        self.line = line

    def location(self) -> str:
        parts = []
        if self.pc is not None:
            parts.append(f"pc={self.pc:04d}")
        if self.line is not None:
            parts.append(f"line {self.line}")
        return ", ".join(parts)
