"""Imp Parser — LL(1) recursive-descent parser.

Parses a token stream into the Imp AST. A program is a list of statements,
left-folded into nested Sequences; an empty program is Skip.

  x = e;          store assignment
  x = new e;      heap allocation
  *x = e;         heap update
  x = &y;         alias x to the location held by y
  if e { ... } else { ... }
  while e { ... }
  skip;
  { ... }         block

Expression precedence, loosest first: &&, <=, +, then prefix ! (or ~).
"""

from __future__ import annotations

from typing import Optional

from implang.lexer import Token, TokenType, tokenize
from implang.ast_nodes import (
    Nat, Bool,
    Expr, StoreRead, HeapRead, Const, NatAdd, NatLeq, BoolAnd, BoolNot,
    Statement, StoreAssign, HeapNew, HeapUpdate, HeapAlias,
    Conditional, While, Skip, sequence_of,
)
from implang.errors import SourceLocation, syntax_error, CompileError


class Parser:
    """LL(1) recursive-descent parser for Imp."""

    def __init__(self, tokens: list[Token], filename: str = "<stdin>"):
        self.tokens = tokens
        self.pos = 0
        self.filename = filename

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self) -> TokenType:
        return self._current().type

    def _loc(self) -> SourceLocation:
        return self._current().location

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, tt: TokenType) -> Token:
        tok = self._current()
        if tok.type != tt:
            raise CompileError(syntax_error(
                f"Expected {tt.name}, got {tok.type.name} ('{tok.value}')",
                tok.location,
            ))
        return self._advance()

    def _match(self, tt: TokenType) -> Optional[Token]:
        if self._peek() == tt:
            return self._advance()
        return None

    # -------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------

    def parse(self) -> Statement:
        stmts: list[Statement] = []
        while self._peek() != TokenType.EOF:
            stmts.append(self._parse_statement())
        return sequence_of(stmts)

    def _parse_block(self) -> Statement:
        self._expect(TokenType.LBRACE)
        stmts: list[Statement] = []
        while self._peek() != TokenType.RBRACE:
            if self._peek() == TokenType.EOF:
                raise CompileError(syntax_error("Unterminated block", self._loc()))
            stmts.append(self._parse_statement())
        self._expect(TokenType.RBRACE)
        return sequence_of(stmts)

    def _parse_statement(self) -> Statement:
        tt = self._peek()
        if tt == TokenType.IDENT:
            return self._parse_assignment()
        elif tt == TokenType.STAR:
            self._advance()
            name = self._expect(TokenType.IDENT).value
            self._expect(TokenType.ASSIGN)
            expr = self._parse_expr()
            self._expect(TokenType.SEMICOLON)
            return HeapUpdate(name, expr)
        elif tt == TokenType.IF:
            self._advance()
            guard = self._parse_expr()
            then_branch = self._parse_block()
            self._expect(TokenType.ELSE)
            else_branch = self._parse_block()
            return Conditional(guard, then_branch, else_branch)
        elif tt == TokenType.WHILE:
            self._advance()
            guard = self._parse_expr()
            body = self._parse_block()
            return While(guard, body)
        elif tt == TokenType.SKIP:
            self._advance()
            self._expect(TokenType.SEMICOLON)
            return Skip()
        elif tt == TokenType.LBRACE:
            return self._parse_block()
        else:
            raise CompileError(syntax_error(
                f"Expected statement (assignment, *x =, if, while, skip, block), "
                f"got '{self._current().value}'",
                self._loc(),
            ))

    def _parse_assignment(self) -> Statement:
        name = self._expect(TokenType.IDENT).value
        self._expect(TokenType.ASSIGN)
        if self._match(TokenType.NEW):
            stmt: Statement = HeapNew(name, self._parse_expr())
        elif self._match(TokenType.AMP):
            stmt = HeapAlias(name, self._expect(TokenType.IDENT).value)
        else:
            stmt = StoreAssign(name, self._parse_expr())
        self._expect(TokenType.SEMICOLON)
        return stmt

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def _parse_expr(self) -> Expr:
        return self._parse_and()

    def _parse_and(self) -> Expr:
        left = self._parse_leq()
        while self._match(TokenType.AND):
            left = BoolAnd(left, self._parse_leq())
        return left

    def _parse_leq(self) -> Expr:
        left = self._parse_add()
        while self._match(TokenType.LTE):
            left = NatLeq(left, self._parse_add())
        return left

    def _parse_add(self) -> Expr:
        left = self._parse_unary()
        while self._match(TokenType.PLUS):
            left = NatAdd(left, self._parse_unary())
        return left

    def _parse_unary(self) -> Expr:
        if self._match(TokenType.NOT):
            return BoolNot(self._parse_unary())
        return self._parse_atom()

    def _parse_atom(self) -> Expr:
        tok = self._current()
        if tok.type == TokenType.INT_LIT:
            self._advance()
            return Const(Nat(int(tok.value)))
        if tok.type == TokenType.MINUS:
            self._advance()
            return Const(Nat(-int(self._expect(TokenType.INT_LIT).value)))
        if tok.type == TokenType.TRUE:
            self._advance()
            return Const(Bool(True))
        if tok.type == TokenType.FALSE:
            self._advance()
            return Const(Bool(False))
        if tok.type == TokenType.IDENT:
            self._advance()
            return StoreRead(tok.value)
        if tok.type == TokenType.STAR:
            self._advance()
            return HeapRead(self._expect(TokenType.IDENT).value)
        if tok.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expr()
            self._expect(TokenType.RPAREN)
            return expr
        raise CompileError(syntax_error(
            f"Expected expression, got '{tok.value or tok.type.name}'",
            tok.location,
        ))


def parse(source: str, filename: str = "<stdin>") -> Statement:
    """Parse Imp source text into a Statement."""
    tokens = tokenize(source, filename)
    return Parser(tokens, filename).parse()


def parse_expr(source: str, filename: str = "<stdin>") -> Expr:
    """Parse a single Imp expression."""
    parser = Parser(tokenize(source, filename), filename)
    expr = parser._parse_expr()
    parser._expect(TokenType.EOF)
    return expr
