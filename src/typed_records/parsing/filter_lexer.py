"""Lexer for the record filter query language."""

from __future__ import annotations

import re

import ply.lex as lex


class FilterLexer:
    """Lexer for tokenizing filter queries."""

    # Reserved keywords
    reserved = {
        "where": "WHERE",
        "and": "AND",
        "or": "OR",
        "contains": "CONTAINS",
        "starts": "STARTS",
        "ends": "ENDS",
        "with": "WITH",
        "in": "IN",
        "sort": "SORT",
        "by": "BY",
        "asc": "ASC",
        "desc": "DESC",
        "true": "TRUE",
        "false": "FALSE",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "NUMBER",
        "STRING",
        "EQ",
        "NEQ",
        "LT",
        "LTE",
        "GT",
        "GTE",
        "LPAREN",
        "RPAREN",
        "COMMA",
    ] + list(reserved.values())

    t_EQ = r"==?"
    t_NEQ = r"!="
    t_LTE = r"<="
    t_LT = r"<"
    t_GTE = r">="
    t_GT = r">"
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_COMMA = r","

    t_ignore = " \t\r\n"

    _ESCAPE = re.compile(r"\\(.)")

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"-?\d+(?:\.\d+)?"
        t.value = float(t.value) if "." in t.value else int(t.value)
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r'"([^"\\]|\\.)*"|\'([^\'\\]|\\.)*\''
        # Remove quotes and unescape
        t.value = self._ESCAPE.sub(r"\1", t.value[1:-1])
        return t

    def t_BACKTICK_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"`[^`]+`"
        # Always an identifier, even when it spells a keyword
        t.value = t.value[1:-1]
        t.type = "IDENTIFIER"
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        # Keywords are case-insensitive
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.lexer.input(data)
        tokens = []
        while True:
            tok = self.lexer.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens

