from ast_nodes import BinaryOp, NumberLiteral, VariableRef, Conditional
from lexer import Lexer

MAX_NESTING = 100  # parenthesised and if levels, each costs a few Python frames


class Parser:
    def __init__(self, lexer):
        self.lexer = lexer
        self.depth = 0

    @property
    def current_token(self):
        return self.lexer.current()

    # move to next token, but only if it matches what we expect
    def eat(self, token_type, kind="UnexpectedToken", message=None):
        if self.current_token.type != token_type:
            self.error_here(kind, message or f"expected {token_type}, got {self.current_token.type}")
        self.lexer.next()

    def error_here(self, kind, message):
        tok = self.current_token
        self.lexer.error(kind, message, line=tok.line, offset=tok.offset)

    def starts_factor(self):
        return self.current_token.type in ("IDENT", "NUMBER", "LPAREN")

    def enter(self):
        # called on the token opening a nested level
        if self.depth >= MAX_NESTING:
            self.error_here("NestingTooDeep", f"expression nested deeper than {MAX_NESTING} levels")
        self.depth += 1

    # ---------- TOP LEVEL ----------
    def parse(self):
        node = self.expr()
        if self.current_token.type != "EOF":
            self.error_here("TrailingGarbage", f"trailing garbage: {self.current_token!r}")
        return node

    # ---------- EXPRESSIONS ----------
    # expr -> if_expr | expr_term
    def expr(self):
        if self.current_token.type == "IF":
            return self.if_expr()
        return self.expr_term()

    # if_expr -> IF ( expr ) THEN expr ELSE expr
    def if_expr(self):
        tok = self.current_token
        self.enter()
        self.eat("IF")
        self.eat("LPAREN", "MissingParenthesis", "expected '(' after if")
        condition = self.expr()
        self.eat("RPAREN", "MissingParenthesis", "missing parenthesis after if condition")
        self.eat("THEN", "MissingKeyword", "expected 'then'")
        then_branch = self.expr()

        # a branch without else would leave the operand stack unbalanced
        if self.current_token.type != "ELSE":
            self.error_here("MissingElse", "if expression requires an else branch")
        self.eat("ELSE")
        else_branch = self.expr()

        node = Conditional(condition, then_branch, else_branch)
        node.line = tok.line
        self.depth -= 1
        return node

    # expr_term -> term ((+|-) term)*
    def expr_term(self):
        node = self.term()

        while self.current_token.type in ("PLUS", "MINUS"):
            op_token = self.current_token
            self.lexer.next()
            right = self.operand(op_token, self.term)
            node = BinaryOp(self.op_token_to_text(op_token.type), node, right)
            node.line = op_token.line

        return node

    # term -> factor ((*|/) factor)*
    def term(self):
        node = self.factor()

        while self.current_token.type in ("STAR", "SLASH"):
            op_token = self.current_token
            self.lexer.next()
            right = self.operand(op_token, self.factor)
            node = BinaryOp(self.op_token_to_text(op_token.type), node, right)
            node.line = op_token.line

        return node

    def operand(self, op_token, parse_fn):
        if not self.starts_factor():
            op = self.op_token_to_text(op_token.type)
            self.error_here("MissingOperand", f"missing operand after '{op}'")
        return parse_fn()

    # factor -> IDENT | NUMBER | ( expr )
    def factor(self):
        tok = self.current_token

        if tok.type == "NUMBER":
            self.lexer.next()
            node = NumberLiteral(tok.value)
            node.line = tok.line
            return node

        if tok.type == "IDENT":
            self.lexer.next()
            node = VariableRef(tok.value)
            node.line = tok.line
            return node

        if tok.type == "LPAREN":
            self.enter()
            self.lexer.next()
            node = self.expr()
            self.eat("RPAREN", "MissingParenthesis", "missing parenthesis")
            self.depth -= 1
            return node

        if tok.type == "EOF":
            self.error_here("MissingFactor", "unexpected end of input, expected identifier or number")
        self.error_here("MissingFactor", f"missing identifier or number, got {tok.type}")

    # ---------- HELPERS ----------
    def op_token_to_text(self, op_type):
        mapping = {
            "PLUS": "+",
            "MINUS": "-",
            "STAR": "*",
            "SLASH": "/",
        }
        return mapping[op_type]


def parse_source(text, trace=False):
    """Lex and parse one complete expression, returning the root node."""
    return Parser(Lexer(text, trace=trace)).parse()
