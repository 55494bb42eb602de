"""Reader that turns save text into a document tree.

The grammar is ambiguous at block level: ``{ ... }`` may be an object, an
array of scalars or an array of blocks. The reader collects the entries of a
block first and decides its shape when the block closes.
"""

import logging
import re
import uuid
from datetime import date
from typing import Optional

from pdxschema.core.exceptions import ParseError
from pdxschema.core.parsers.lexer import Lexer, Token, TokenType
from pdxschema.models.document import Array, Node, Object, Scalar, ScalarKind

logger = logging.getLogger(__name__)

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1

_INTEGER = re.compile(r"[+-]?\d+\Z")
_FLOAT = re.compile(r"[+-]?(\d+\.\d*|\.\d+)\Z")
_DATE = re.compile(r"(\d{1,4})\.(\d{1,2})\.(\d{1,2})\Z")
_GUID = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\Z"
)


def classify_bare(text: str) -> Scalar:
    """Classify an unquoted token: yes/no, int32, int64, float, else identifier."""
    if text == "yes":
        return Scalar(ScalarKind.BOOL, text, True)
    if text == "no":
        return Scalar(ScalarKind.BOOL, text, False)
    if _INTEGER.match(text):
        number = int(text)
        if INT32_MIN <= number <= INT32_MAX:
            return Scalar(ScalarKind.INT32, text, number)
        if INT64_MIN <= number <= INT64_MAX:
            return Scalar(ScalarKind.INT64, text, number)
        return Scalar(ScalarKind.IDENTIFIER, text, text)
    if _FLOAT.match(text):
        return Scalar(ScalarKind.FLOAT, text, float(text))
    return Scalar(ScalarKind.IDENTIFIER, text, text)


def classify_quoted(text: str) -> Scalar:
    """Classify quoted text: date, guid, else string."""
    match = _DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return Scalar(ScalarKind.DATE, text, date(year, month, day))
        except ValueError:
            pass  # out-of-range date parts, keep as plain text
    if _GUID.match(text):
        return Scalar(ScalarKind.GUID, text, uuid.UUID(text))
    return Scalar(ScalarKind.STRING, text, text)


def scalar_from_token(token: Token) -> Scalar:
    if token.type == TokenType.QUOTED:
        return classify_quoted(token.text)
    return classify_bare(token.text)


class _Block:
    """An open ``{`` waiting for its ``}``."""

    __slots__ = ("key", "offset", "entries")

    def __init__(self, key: Optional[str], offset: int):
        self.key = key  # key in the parent, None when the block is an array item
        self.offset = offset
        self.entries: list[tuple[Optional[str], Node]] = []

    def build(self) -> Node:
        if all(key is not None for key, _ in self.entries):
            return Object(tuple(self.entries))  # also covers the empty block
        if all(key is None for key, _ in self.entries):
            return Array(tuple(node for _, node in self.entries))
        # Mixed block: keyed entries become single-property objects
        items = []
        for key, node in self.entries:
            items.append(node if key is None else Object(((key, node),)))
        return Array(tuple(items))


class SaveReader:
    """Parses one save text. Not reusable across texts."""

    def __init__(self, text: str):
        self.text = text
        self.lexer = Lexer(text)

    def read(self) -> Object:
        root = _Block(None, 0)
        stack: list[_Block] = []
        lexer = self.lexer

        while True:
            token = lexer.next()
            block = stack[-1] if stack else root

            if token.type == TokenType.EOF:
                if stack:
                    raise self._error(stack[-1].offset, "Unbalanced braces: '{' is never closed")
                break

            if token.type == TokenType.CLOSE:
                if not stack:
                    raise self._error(token.offset, "Unbalanced braces: unexpected '}'")
                closed = stack.pop()
                parent = stack[-1] if stack else root
                parent.entries.append((closed.key, closed.build()))
                continue

            if token.type == TokenType.EQUALS:
                raise self._error(token.offset, "Unexpected '=' where a key or value is expected")

            if token.type == TokenType.OPEN:
                if not stack:
                    raise self._error(token.offset, "Unexpected '{' where a key is expected")
                if lexer.peek().type == TokenType.EQUALS:
                    raise self._error(lexer.peek().offset, "A block cannot be used as a key")
                stack.append(_Block(None, token.offset))
                continue

            # Scalar token: either a key (followed by '=') or a bare value
            if lexer.peek().type == TokenType.EQUALS:
                lexer.next()
                self._read_value(token.text, token, block, stack)
                continue

            if not stack:
                raise self._error(
                    token.offset, f"Expected '=' after key {token.describe()}"
                )
            block.entries.append((None, scalar_from_token(token)))

        return Object(tuple(root.entries))

    def _read_value(self, key: str, key_token: Token, block: _Block, stack: list[_Block]) -> None:
        value = self.lexer.next()
        if value.type == TokenType.OPEN:
            stack.append(_Block(key, value.offset))
        elif value.is_scalar:
            block.entries.append((key, scalar_from_token(value)))
        else:
            raise self._error(
                value.offset,
                f"Expected a value after '=' for key {key_token.describe()}, found {value.describe()}",
            )

    def _error(self, offset: int, message: str) -> ParseError:
        logger.debug(f"Parse failure at offset {offset}: {message}")
        return ParseError(offset, message, self.text)
