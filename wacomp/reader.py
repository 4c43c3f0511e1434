"""Byte-level reading of the component binary format."""

from __future__ import annotations

from typing import Callable, List, TypeVar

T = TypeVar("T")


class ParseError(ValueError):
    """Raised when binary input is malformed or ends too early."""


class Reader:
    """Cursor over a bytes buffer with LEB128 and name decoding."""

    def __init__(self, data) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def position(self) -> int:
        """Offset of the next unread byte."""
        return self._pos

    def __len__(self) -> int:
        return len(self._data) - self._pos

    def at_end(self) -> bool:
        """True when every byte has been consumed."""
        return self._pos >= len(self._data)

    def read_byte(self) -> int:
        """Consume and return one byte."""
        if self.at_end():
            raise ParseError("unexpected end of data")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def peek_byte(self) -> int:
        """Return the next byte without consuming it."""
        if self.at_end():
            raise ParseError("unexpected end of data")
        return self._data[self._pos]

    def read_bytes(self, n: int) -> bytes:
        """Consume exactly ``n`` bytes."""
        if n < 0:
            raise ParseError(f"invalid byte count: {n}")
        end = self._pos + n
        if end > len(self._data):
            raise ParseError("unexpected end of data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def read_rest(self) -> bytes:
        """Consume and return every remaining byte."""
        chunk = self._data[self._pos:]
        self._pos = len(self._data)
        return chunk

    def _read_leb(self, limit: int, label: str) -> tuple:
        result = 0
        shift = 0
        while True:
            if shift >= limit:
                raise ParseError(f"{label} LEB128 too long")
            byte = self.read_byte()
            result |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                return result, shift, byte

    def read_u32(self) -> int:
        """Read an unsigned LEB128 integer truncated to 32 bits."""
        result, _, _ = self._read_leb(35, "u32")
        return result & 0xFFFFFFFF

    def read_s32(self) -> int:
        """Read a signed LEB128 integer as a 32-bit value."""
        return self._read_signed(35, 32, "s32")

    def read_s64(self) -> int:
        """Read a signed LEB128 integer as a 64-bit value."""
        return self._read_signed(70, 64, "s64")

    def _read_signed(self, limit: int, bits: int, label: str) -> int:
        result, shift, last = self._read_leb(limit, label)
        mask = (1 << bits) - 1
        if shift < bits and last & 0x40:
            result |= -1 << shift
        result &= mask
        if result >> (bits - 1):
            result -= 1 << bits
        return result

    def read_name(self) -> str:
        """Read a length-prefixed UTF-8 name."""
        try:
            length = self.read_u32()
        except ParseError as exc:
            raise ParseError(f"failed to read name length: {exc}") from exc
        try:
            raw = self.read_bytes(length)
        except ParseError as exc:
            raise ParseError(f"failed to read name bytes: {exc}") from exc
        return raw.decode("utf-8", errors="surrogateescape")

    def _read_versioned_name(self, kind: str) -> str:
        try:
            discriminator = self.read_byte()
        except ParseError as exc:
            raise ParseError(
                f"failed to read {kind} name discriminator: {exc}"
            ) from exc
        if discriminator == 0x00:
            return self.read_name()
        if discriminator == 0x01:
            name = self.read_name()
            try:
                self.read_name()
            except ParseError as exc:
                raise ParseError(f"failed to read version suffix: {exc}") from exc
            return name
        raise ParseError(
            f"invalid {kind} name discriminator: 0x{discriminator:02x}"
        )

    def read_import_name(self) -> str:
        """Read an import name; a version suffix is read and dropped."""
        return self._read_versioned_name("import")

    def read_export_name(self) -> str:
        """Read an export name; a version suffix is read and dropped."""
        return self._read_versioned_name("export")

    def read_vec(self, read_element: Callable[[], T]) -> List[T]:
        """Read a count-prefixed vector, calling ``read_element`` per item."""
        try:
            count = self.read_u32()
        except ParseError as exc:
            raise ParseError(f"failed to read vector count: {exc}") from exc
        items: List[T] = []
        for index in range(count):
            try:
                items.append(read_element())
            except ParseError as exc:
                raise ParseError(
                    f"failed to read vector element {index}: {exc}"
                ) from exc
        return items