import sys

from bytecode import WORD_MAX
from errors import ParseError

IDENT_MAX = 63           # identifier buffer capacity, in characters

WHITESPACE = " \t\r\n\v\f"
DIGITS = "0123456789"
IDENT_START = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_"
IDENT_CHARS = IDENT_START + DIGITS

KEYWORDS = {
    "if": "IF",
    "then": "THEN",
    "else": "ELSE",
}

SINGLE_CHAR_TOKENS = {
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "(": "LPAREN",
    ")": "RPAREN",
}


class Token:
    __slots__ = ("type", "value", "line", "offset")

    def __init__(self, type, value=None, line=1, offset=1):
        object.__setattr__(self, "type", type)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "line", line)
        object.__setattr__(self, "offset", offset)

    def __setattr__(self, name, value):
        raise AttributeError("Token is immutable")

    def __repr__(self):
        if self.value is not None:
            return f"{self.type}({self.value})"
        return f"{self.type}"


class Lexer:
    def __init__(self, text, trace=False):
        self.text = text
        self.pos = 0
        self.current_char = text[0] if text else None
        self.line = 1
        self.offset = 1
        self.trace = trace

        self.error_state = None   # first ParseError raised; sticky
        self.token = None
        self.next()

    def advance(self):
        # track line/offset based on current_char before moving
        if self.current_char == "\n":
            self.line += 1
            self.offset = 1
        else:
            self.offset += 1
        self.pos += 1
        if self.pos >= len(self.text):
            self.current_char = None
        else:
            self.current_char = self.text[self.pos]

    def error(self, kind, message, line=None, offset=None):
        err = ParseError(
            kind,
            message,
            line=self.line if line is None else line,
            offset=self.offset if offset is None else offset,
        )
        if self.error_state is None:
            self.error_state = err
        self.token = Token("EOF", line=self.line, offset=self.offset)
        raise err

    def current(self):
        # once an error happened every query reports end of input
        if self.error_state is not None:
            return Token("EOF", line=self.line, offset=self.offset)
        return self.token

    def skip_whitespace(self):
        while self.current_char is not None and self.current_char in WHITESPACE:
            self.advance()

    def read_number(self):
        start_line, start_offset = self.line, self.offset
        value = 0
        while self.current_char is not None and self.current_char in DIGITS:
            value = value * 10 + (ord(self.current_char) - ord("0"))
            if value > WORD_MAX:
                self.error(
                    "NumericOverflow",
                    f"number literal exceeds {WORD_MAX}",
                    line=start_line,
                    offset=start_offset,
                )
            self.advance()
        return Token("NUMBER", value, line=start_line, offset=start_offset)

    def read_identifier(self):
        start_line, start_offset = self.line, self.offset
        chars = []
        while self.current_char is not None and self.current_char in IDENT_CHARS:
            if len(chars) >= IDENT_MAX:
                self.error("IdentifierTooLong", f"identifier longer than {IDENT_MAX} characters")
            chars.append(self.current_char)
            self.advance()

        result = "".join(chars)
        if result in KEYWORDS:
            return Token(KEYWORDS[result], line=start_line, offset=start_offset)
        return Token("IDENT", result, line=start_line, offset=start_offset)

    def scan(self):
        self.skip_whitespace()

        if self.current_char is None:
            return Token("EOF", line=self.line, offset=self.offset)

        if self.current_char in DIGITS:
            return self.read_number()

        if self.current_char in IDENT_START:
            return self.read_identifier()

        if self.current_char in SINGLE_CHAR_TOKENS:
            tok = Token(SINGLE_CHAR_TOKENS[self.current_char], line=self.line, offset=self.offset)
            self.advance()
            return tok

        self.error("UnknownToken", f"unknown character {self.current_char!r}")

    def next(self):
        if self.error_state is not None:
            return self.current()

        self.token = self.scan()
        if self.trace:
            print(f"TRACE token {self.token!r} line={self.token.line} ofs={self.token.offset}", file=sys.stderr)
        return self.token

    def tokens(self):
        # drain the remaining input
        out = [self.current()]
        while out[-1].type != "EOF":
            out.append(self.next())
        return out
