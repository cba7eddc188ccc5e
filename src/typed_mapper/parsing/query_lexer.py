"""Lexer for query expressions (order_by clauses and their operands)."""

import re

import ply.lex as lex

# String literal escapes; any other escaped character stands for itself
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


class QueryLexer:
    """Lexer for tokenizing query expressions."""

    # Reserved keywords
    reserved = {
        "true": "TRUE",
        "false": "FALSE",
        "nil": "NIL",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "FLOAT",
        "INTEGER",
        "STRING",
        "CARET",
        "COLON",
        "COMMA",
        "DOT",
        "LPAREN",
        "RPAREN",
        "LBRACKET",
        "RBRACKET",
    ] + list(reserved.values())

    # Simple tokens
    t_CARET = r"\^"
    t_COLON = r":"
    t_COMMA = r","
    t_DOT = r"\."
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"

    # Ignored characters
    t_ignore = " \t"

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def t_FLOAT(self, t: lex.LexToken) -> lex.LexToken:
        r"-?\d+\.\d+(?:[eE][+-]?\d+)?"
        t.value = float(t.value)
        return t

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"-?\d+"
        t.value = int(t.value)
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r'"([^"\\]|\\.)*"'
        # Remove quotes and handle escapes
        t.value = _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), t.value[1:-1])
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value, "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
