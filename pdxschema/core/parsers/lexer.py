"""Tokenizer for Clausewitz save text."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from pdxschema.core.exceptions import ParseError


class TokenType(str, Enum):
    OPEN = "{"
    CLOSE = "}"
    EQUALS = "="
    QUOTED = "quoted"
    BARE = "bare"
    EOF = "end of input"


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str  # unescaped contents for QUOTED, raw text otherwise
    offset: int

    @property
    def is_scalar(self) -> bool:
        return self.type in (TokenType.QUOTED, TokenType.BARE)

    def describe(self) -> str:
        if self.type == TokenType.EOF:
            return "end of input"
        if self.type == TokenType.QUOTED:
            return f'"{self.text}"'
        return f"'{self.text}'"


_WHITESPACE = re.compile(r"\s+")
_BARE = re.compile(r'[^\s{}="#]+')
_BOM = "\ufeff"


class Lexer:
    """Splits save text into tokens.

    Whitespace and ``#`` line comments (outside quotes) are skipped. The lexer
    never classifies scalars; that is the reader's job.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 1 if text.startswith(_BOM) else 0
        self._peeked: Optional[Token] = None

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next()
            yield token
            if token.type == TokenType.EOF:
                return

    def peek(self) -> Token:
        if self._peeked is None:
            self._peeked = self._scan()
        return self._peeked

    def next(self) -> Token:
        if self._peeked is not None:
            token, self._peeked = self._peeked, None
            return token
        return self._scan()

    def _skip_trivia(self) -> None:
        text = self.text
        while self.pos < len(text):
            match = _WHITESPACE.match(text, self.pos)
            if match:
                self.pos = match.end()
                continue
            if text[self.pos] == "#":
                newline = text.find("\n", self.pos)
                self.pos = len(text) if newline < 0 else newline + 1
                continue
            break

    def _scan(self) -> Token:
        self._skip_trivia()
        text = self.text
        start = self.pos
        if start >= len(text):
            return Token(TokenType.EOF, "", start)

        char = text[start]
        if char == "{":
            self.pos += 1
            return Token(TokenType.OPEN, char, start)
        if char == "}":
            self.pos += 1
            return Token(TokenType.CLOSE, char, start)
        if char == "=":
            self.pos += 1
            return Token(TokenType.EQUALS, char, start)
        if char == '"':
            return self._scan_quoted(start)

        match = _BARE.match(text, start)
        # _BARE matches any character that is not trivia or punctuation handled above
        self.pos = match.end()
        return Token(TokenType.BARE, match.group(0), start)

    def _scan_quoted(self, start: int) -> Token:
        text = self.text
        pos = start + 1
        chunks: list[str] = []
        chunk_start = pos
        while pos < len(text):
            char = text[pos]
            if char == "\\" and pos + 1 < len(text) and text[pos + 1] in '"\\':
                chunks.append(text[chunk_start:pos])
                chunks.append(text[pos + 1])
                pos += 2
                chunk_start = pos
                continue
            if char == '"':
                chunks.append(text[chunk_start:pos])
                self.pos = pos + 1
                return Token(TokenType.QUOTED, "".join(chunks), start)
            pos += 1
        raise ParseError(start, "Unterminated quoted string", text)
