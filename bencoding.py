"""
This module decodes bencoded data into a tree of typed values.

What is Bencoding?
Bencoding is the encoding used by BitTorrent for storing and transmitting data.

It supports four types of data:
1. Integers: Represented as 'i' followed by the integer value and 'e' to end.
    - i.e i<integer_value>e, for eg, i42e represents the integer 42.
2. Byte Strings: Represented as the length of the string followed by ':' and the string itself.
    - i.e <length>:<string>, for eg, 4:spam represents the string "spam".
3. Lists: Represented as 'l' followed by the bencoded elements and 'e' to end.
    - i.e l<element1><element2>e, for eg, l4:spam4:eggse represents the list ["spam", "eggs"].
4. Dictionaries: Represented as 'd' followed by the bencoded key-value pairs and 'e' to end.
    - i.e d<key1><value1><key2><value2>e, for eg, d3:bar4:spam3:cati42ee represents
    the dictionary {'bar': 'spam', 'cat': 42}.

Every decoded element becomes one of BString, BInteger, BList or BDictionary.
Byte strings are not copied out of the input: a BString holds a memoryview slice
of the buffer that was handed to the decoder, so the buffer must not be mutated
while the decoded values are in use.

The grammar also says that integers have no leading zeros (other than i0e), that
i-0e is invalid and that dictionary keys appear in sorted order. Plenty of
encoders in the wild get this wrong, so these rules are only checked when the
decoder is created with strict=True.
"""
import logging
import re
from functools import total_ordering
from typing import Tuple, Union

MAX_DEPTH = 256 # Maximum nesting of lists and dictionaries accepted by the decoder

INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1

_LENIENT_INTEGER = re.compile(rb'[+-]?[0-9]+')
_CANONICAL_INTEGER = re.compile(rb'0|-?[1-9][0-9]*')

Buffer = Union[bytes, bytearray, memoryview]


class DecodeError(ValueError):
    """
    Raised when the input is not well formed bencode.
    `position` is the offset in the input where decoding gave up.
    """
    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at position {position}")
        self.reason = message
        self.position = position


class TrailingDataError(DecodeError):
    """
    Raised when a complete document was decoded but bytes are left over after it.
    """


class NestingTooDeepError(DecodeError):
    """
    Raised when lists and dictionaries are nested deeper than the decoder allows.
    """


class BencodeValue:
    """
    Base class of the four kinds of decoded values.
    """
    __slots__ = ()
    kind = 'value'

    def to_python(self):
        """
        Convert the value into plain python objects (bytes, int, list and dict).
        """
        raise NotImplementedError()


@total_ordering
class BString(BencodeValue):
    """
    A bencoded byte string.
    The content is an opaque sequence of bytes, it is not necessarily valid UTF-8.
    Comparison and hashing are done on the raw bytes.
    """
    __slots__ = ('_view',)
    kind = 'string'

    def __init__(self, content: Buffer):
        if isinstance(content, str):
            raise TypeError("BString requires bytes, not str")
        if isinstance(content, memoryview):
            self._view = content
        else:
            self._view = memoryview(bytes(content))

    @property
    def content(self) -> bytes:
        return self._view.tobytes()

    def decode(self, encoding: str = 'utf-8') -> str:
        """
        Decode the bytes as text, raises UnicodeDecodeError on invalid data.
        """
        return str(self._view, encoding)

    def to_python(self) -> bytes:
        return self.content

    def __bytes__(self):
        return self.content

    def __len__(self):
        return len(self._view)

    def __eq__(self, other):
        if isinstance(other, BString):
            return self._view == other._view
        if isinstance(other, (bytes, bytearray)):
            return self._view == other
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, BString):
            return self.content < other.content
        if isinstance(other, (bytes, bytearray)):
            return self.content < bytes(other)
        return NotImplemented

    def __hash__(self):
        return hash(self.content)

    def __repr__(self):
        return f"BString({self.content!r})"


class BInteger(BencodeValue):
    """
    A bencoded integer, limited to the signed 64 bit range.
    """
    __slots__ = ('value',)
    kind = 'integer'

    def __init__(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("BInteger requires an int")
        self.value = value

    def to_python(self) -> int:
        return self.value

    def __int__(self):
        return self.value

    def __eq__(self, other):
        if isinstance(other, BInteger):
            return self.value == other.value
        return NotImplemented

    def __hash__(self):
        return hash(self.value)

    def __repr__(self):
        return f"BInteger({self.value})"


class BList(BencodeValue):
    """
    A bencoded list, the order of the items is preserved.
    """
    __slots__ = ('items',)
    kind = 'list'
    __hash__ = None

    def __init__(self, items=()):
        self.items = tuple(items)

    def to_python(self) -> list:
        return [item.to_python() for item in self.items]

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def __eq__(self, other):
        if isinstance(other, BList):
            return self.items == other.items
        return NotImplemented

    def __repr__(self):
        return f"BList({list(self.items)!r})"


class BDictionary(BencodeValue):
    """
    A bencoded dictionary, mapping BString keys to values.

    Keys can be looked up either with a BString or with plain bytes.
    `raw` is the slice of the input holding the complete encoding of the dictionary
    (from the 'd' to the closing 'e'), it is None for dictionaries built by hand.
    It is what the info hash of a torrent is computed from.
    """
    __slots__ = ('entries', 'raw')
    kind = 'dictionary'
    __hash__ = None

    def __init__(self, entries=None, raw: memoryview = None):
        self.entries = {}
        for key, value in (entries or {}).items():
            if not isinstance(key, BString):
                key = BString(key)
            self.entries[key] = value
        self.raw = raw

    def get(self, key, default=None):
        return self.entries.get(key, default)

    def keys(self):
        return self.entries.keys()

    def values(self):
        return self.entries.values()

    def items(self):
        return self.entries.items()

    def to_python(self) -> dict:
        return {key.content: value.to_python() for key, value in self.entries.items()}

    def __getitem__(self, key):
        return self.entries[key]

    def __contains__(self, key):
        return key in self.entries

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    def __eq__(self, other):
        if isinstance(other, BDictionary):
            return self.entries == other.entries
        return NotImplemented

    def __repr__(self):
        return f"BDictionary({self.entries!r})"


class Decoder:
    """
    This class is used to decode bencoded data.

    The decoder keeps a cursor into the input and walks it with a recursive descent
    parser, each element kind has its own method which leaves the cursor right after
    the element it consumed.

    - strict: also enforce the canonical form rules (integers without leading zeros
      and no -0, byte string lengths without leading zeros, dictionary keys sorted
      and unique).
    - max_depth: how deeply lists and dictionaries may be nested.
    """
    def __init__(self, data: Buffer, strict: bool = False, max_depth: int = MAX_DEPTH):
        if isinstance(data, memoryview):
            data = data.tobytes()
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("Decoder expects bytes, bytearray or memoryview")
        self.data = data
        self.view = memoryview(data)
        self.strict = strict
        self.max_depth = max_depth
        self.i = 0 # current cursor position

    def decode(self) -> BencodeValue:
        """
        Decode a complete document, there must be nothing left after the top-level element.
        """
        value, remaining = self.decode_next()
        if remaining:
            raise TrailingDataError(
                f"{len(remaining)} bytes of trailing data after the top-level element", self.i)
        logging.debug(f"Decoded bencoded document of {len(self.data)} bytes")
        return value

    def decode_next(self) -> Tuple[BencodeValue, memoryview]:
        """
        Decode the element at the cursor and return it together with the bytes that
        were not consumed.
        """
        value = self._decode_value(0)
        return value, self.view[self.i:]

    def _decode_value(self, depth: int) -> BencodeValue:
        if self.i >= len(self.data):
            raise DecodeError("Unexpected end of data, expected an element", self.i)

        c = self.data[self.i:self.i + 1]
        if c == b'i':
            return self._decode_integer()
        elif c == b'l':
            return self._decode_list(depth + 1)
        elif c == b'd':
            return self._decode_dictionary(depth + 1)
        elif c.isdigit():
            return self._decode_string()
        else:
            raise DecodeError(f"Unrecognized element tag {c!r}", self.i)

    def _decode_string(self) -> BString:
        """
        Format: <length>:<bytes>
        """
        colon = self.data.find(b':', self.i)
        if colon == -1:
            raise DecodeError("Missing ':' after byte string length", self.i)

        length_bytes = bytes(self.data[self.i:colon])
        if not length_bytes.isdigit():
            raise DecodeError(f"Invalid byte string length {length_bytes!r}", self.i)
        if self.strict and length_bytes.startswith(b'0') and len(length_bytes) > 1:
            raise DecodeError(f"Leading zeros in byte string length {length_bytes!r}", self.i)

        try:
            length = int(length_bytes)
        except ValueError as e:
            raise DecodeError(f"Byte string length of {len(length_bytes)} digits is too long", self.i) from e
        start = colon + 1
        end = start + length
        if end > len(self.data):
            raise DecodeError(
                f"Byte string length {length} exceeds the {len(self.data) - start} bytes available",
                self.i)

        self.i = end
        return BString(self.view[start:end])

    def _decode_integer(self) -> BInteger:
        """
        Format: i<integer>e
        """
        start = self.i
        end = self.data.find(b'e', start + 1)
        if end == -1:
            raise DecodeError("Unterminated integer", start)

        numeral = bytes(self.data[start + 1:end])
        pattern = _CANONICAL_INTEGER if self.strict else _LENIENT_INTEGER
        if not pattern.fullmatch(numeral):
            raise DecodeError(f"Invalid integer {numeral!r}", start)

        try:
            value = int(numeral)
        except ValueError as e:
            raise DecodeError(f"Integer of {len(numeral)} digits does not fit in 64 bits", start) from e
        if not INT64_MIN <= value <= INT64_MAX:
            raise DecodeError(f"Integer {numeral!r} does not fit in 64 bits", start)

        self.i = end + 1
        return BInteger(value)

    def _decode_list(self, depth: int) -> BList:
        """
        Format: l<item1><item2>...e
        """
        self._check_depth(depth)
        start = self.i
        self.i += 1 # skip 'l'

        items = []
        while True:
            if self.i >= len(self.data):
                raise DecodeError("Unterminated list", start)
            if self.data[self.i:self.i + 1] == b'e':
                self.i += 1
                return BList(items)
            items.append(self._decode_value(depth))

    def _decode_dictionary(self, depth: int) -> BDictionary:
        """
        Format: d<key1><value1><key2><value2>...e
        """
        self._check_depth(depth)
        start = self.i
        self.i += 1 # skip 'd'

        entries = {}
        previous_key = None
        while True:
            if self.i >= len(self.data):
                raise DecodeError("Unterminated dictionary", start)
            if self.data[self.i:self.i + 1] == b'e':
                self.i += 1
                return BDictionary(entries, raw=self.view[start:self.i])

            # keys must be byte strings
            key_position = self.i
            if not self.data[self.i:self.i + 1].isdigit():
                raise DecodeError("Dictionary key must be a byte string", key_position)
            key = self._decode_string()

            if self.strict and previous_key is not None:
                if key == previous_key:
                    raise DecodeError(f"Duplicate dictionary key {key.content!r}", key_position)
                if key < previous_key:
                    raise DecodeError(f"Dictionary key {key.content!r} is out of order", key_position)
            previous_key = key

            entries[key] = self._decode_value(depth)

    def _check_depth(self, depth: int):
        if depth > self.max_depth:
            raise NestingTooDeepError(
                f"Input is nested deeper than {self.max_depth} levels", self.i)


def decode(data: Buffer, strict: bool = False,
           max_depth: int = MAX_DEPTH) -> Tuple[BencodeValue, memoryview]:
    """
    Decode one element from the start of `data`.
    Returns the decoded value and a memoryview of whatever follows it.
    """
    return Decoder(data, strict=strict, max_depth=max_depth).decode_next()


def decode_all(data: Buffer, strict: bool = False, max_depth: int = MAX_DEPTH) -> BencodeValue:
    """
    Decode a complete bencoded document, trailing bytes raise TrailingDataError.
    """
    return Decoder(data, strict=strict, max_depth=max_depth).decode()
