from hashlib import sha1
from collections import namedtuple
from typing import List, Optional
import logging
from bencoding import BDictionary, BInteger, BList, BString, decode_all

PIECE_HASH_LENGTH = 20 # Each piece is identified by a 20 byte SHA1 hash


class MetainfoError(ValueError):
    """
    Raised when a decoded document does not match the metainfo (.torrent) schema.
    `field` is the dotted name of the offending field, e.g. info.files[0].path
    """
    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class MissingFieldError(MetainfoError):
    def __init__(self, field: str):
        super().__init__(field, "required field is missing")


class WrongTypeError(MetainfoError):
    def __init__(self, field: str, expected: str, actual: str):
        super().__init__(field, f"expected a {expected}, got a {actual}")
        self.expected = expected
        self.actual = actual


class InvalidFieldError(MetainfoError):
    """
    The field has the right type but its content is not acceptable,
    for eg. a name which is not valid UTF-8 or a negative length.
    """


class FilesInfo(namedtuple('FilesInfo', ['length', 'path'])):
    """
    A single file of a multi-file torrent.
    - length: the length of the file in bytes.
    - path: the subdirectory names followed by the file name, never empty.
    """
    __slots__ = ()

    def __new__(cls, length: int, path: List[str]):
        if not path:
            raise MetainfoError('path', "a file path needs at least one segment")
        return super().__new__(cls, length, list(path))

    @classmethod
    def _make(cls, iterable):
        # _replace goes through _make, so both keep the path check
        return cls(*iterable)

    @property
    def name(self) -> str:
        return self.path[-1]


class Info(namedtuple('Info', ['name', 'piece_length', 'pieces', 'length', 'files'])):
    """
    The info dictionary of a torrent.

    In the single file case `length` is the size of the file and `name` is the file name.
    In the multi file case `files` lists the files and `name` is the directory they go in.
    Exactly one of `length` and `files` is set, anything else raises MetainfoError.
    """
    __slots__ = ()

    def __new__(cls, name: str, piece_length: int, pieces: bytes,
                length: Optional[int] = None, files: Optional[List[FilesInfo]] = None):
        if (length is None) == (files is None):
            raise MetainfoError('info', "exactly one of 'length' and 'files' must be present")
        if not isinstance(pieces, (bytes, bytearray, memoryview)):
            raise TypeError("Info pieces must be bytes")
        if files is not None:
            files = list(files)
        return super().__new__(cls, name, piece_length, bytes(pieces), length, files)

    @classmethod
    def _make(cls, iterable):
        return cls(*iterable)

    @property
    def multi_file(self) -> bool:
        return self.files is not None

    @property
    def total_length(self) -> int:
        """
        returns the total size of the torrent in bytes.
        """
        if self.multi_file:
            return sum(f.length for f in self.files)
        return self.length

    @property
    def piece_hashes(self) -> List[bytes]:
        """
        the info pieces is a string containing the SHA1 hashes of each piece in the torrent.
        Each hash is 20 bytes long, this returns them as a list in piece order.
        """
        return [self.pieces[offset:offset + PIECE_HASH_LENGTH]
                for offset in range(0, len(self.pieces), PIECE_HASH_LENGTH)]

    @property
    def num_pieces(self) -> int:
        return len(self.pieces) // PIECE_HASH_LENGTH


class Torrent(namedtuple('Torrent', ['announce', 'info', 'info_hash', 'announce_list',
                                     'comment', 'created_by', 'creation_date'],
                         defaults=(None, None, None, None, None))):
    """
    This class represents the metadata of a torrent file.

    - announce: the URL of the tracker.
    - info: the Info describing the name, pieces and file layout.
    - info_hash: SHA1 of the info dictionary exactly as it was encoded, it identifies
      the torrent to trackers and peers. None when the info dictionary was not decoded
      from a buffer.
    - announce_list, comment, created_by, creation_date: optional fields, None when absent.
    """
    __slots__ = ()

    @property
    def multi_file(self) -> bool:
        return self.info.multi_file

    @property
    def total_size(self) -> int:
        return self.info.total_length

    def __str__(self):
        return 'Name: {0}\n' \
               'Total length: {1}\n' \
               'Files: {2}\n' \
               'Announce URL: {3}\n' \
               'Hash: {4}'.format(self.info.name,
                                  self.info.total_length,
                                  len(self.info.files) if self.multi_file else 1,
                                  self.announce,
                                  self.info_hash.hex() if self.info_hash else None)


def _lookup(dictionary: BDictionary, key: bytes, field: str, required: bool = True):
    value = dictionary.get(key)
    if value is None and required:
        raise MissingFieldError(field)
    return value


def _expect(value, value_type, field: str):
    if not isinstance(value, value_type):
        actual = getattr(value, 'kind', type(value).__name__)
        raise WrongTypeError(field, value_type.kind, actual)
    return value


def _text(value, field: str) -> str:
    _expect(value, BString, field)
    try:
        return value.decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidFieldError(field, "invalid UTF-8 bytes") from e


def _count(value, field: str) -> int:
    """
    A byte count, integers below zero are rejected.
    """
    number = _expect(value, BInteger, field).value
    if number < 0:
        raise InvalidFieldError(field, f"must not be negative, got {number}")
    return number


def _parse_files(files) -> List[FilesInfo]:
    result = []
    for index, entry in enumerate(_expect(files, BList, 'info.files')):
        field = f'info.files[{index}]'
        _expect(entry, BDictionary, field)

        length = _count(_lookup(entry, b'length', f'{field}.length'), f'{field}.length')

        segments = _expect(_lookup(entry, b'path', f'{field}.path'), BList, f'{field}.path')
        if len(segments) == 0:
            raise InvalidFieldError(f'{field}.path', "path must have at least one segment")
        path = [_text(segment, f'{field}.path[{i}]') for i, segment in enumerate(segments)]

        result.append(FilesInfo(length=length, path=path))
    return result


def _parse_info(info: BDictionary, strict: bool) -> Info:
    name = _text(_lookup(info, b'name', 'info.name'), 'info.name')

    piece_length = _count(_lookup(info, b'piece length', 'info.piece length'), 'info.piece length')
    if strict and piece_length == 0:
        raise InvalidFieldError('info.piece length', "must be positive")

    pieces = _expect(_lookup(info, b'pieces', 'info.pieces'), BString, 'info.pieces').content
    if len(pieces) % PIECE_HASH_LENGTH:
        if strict:
            raise InvalidFieldError(
                'info.pieces', f"length {len(pieces)} is not a multiple of {PIECE_HASH_LENGTH}")
        logging.warning(f"pieces of {name!r} is {len(pieces)} bytes, "
                        f"not a multiple of {PIECE_HASH_LENGTH}")

    # files is only looked at when length is absent
    length = _lookup(info, b'length', 'info.length', required=False)
    if length is not None:
        if b'files' in info:
            logging.warning(f"{name!r} has both 'length' and 'files', treating it as a single file torrent")
        return Info(name, piece_length, pieces, length=_count(length, 'info.length'))

    files = _parse_files(_lookup(info, b'files', 'info.files'))
    return Info(name, piece_length, pieces, files=files)


def _parse_announce_list(value) -> List[List[str]]:
    tiers = []
    for index, tier in enumerate(_expect(value, BList, 'announce-list')):
        field = f'announce-list[{index}]'
        tiers.append([_text(url, f'{field}[{i}]') for i, url in enumerate(_expect(tier, BList, field))])
    return tiers


def project(value, strict: bool = False) -> Torrent:
    """
    Build a Torrent out of a decoded metainfo dictionary.

    The root must be a dictionary holding the announce URL and the info dictionary.
    Checking that nothing trails the root element is up to the caller, parse_torrent
    does that. With strict=True a zero piece length and a pieces string whose length is
    not a multiple of 20 are rejected too.
    """
    root = _expect(value, BDictionary, '<root>')

    announce = _text(_lookup(root, b'announce', 'announce'), 'announce')
    info_dict = _expect(_lookup(root, b'info', 'info'), BDictionary, 'info')
    info = _parse_info(info_dict, strict)
    info_hash = sha1(info_dict.raw).digest() if info_dict.raw is not None else None

    announce_list = _lookup(root, b'announce-list', 'announce-list', required=False)
    if announce_list is not None:
        announce_list = _parse_announce_list(announce_list)

    comment = _lookup(root, b'comment', 'comment', required=False)
    if comment is not None:
        comment = _text(comment, 'comment')

    created_by = _lookup(root, b'created by', 'created by', required=False)
    if created_by is not None:
        created_by = _text(created_by, 'created by')

    creation_date = _lookup(root, b'creation date', 'creation date', required=False)
    if creation_date is not None:
        creation_date = _expect(creation_date, BInteger, 'creation date').value

    logging.debug(f"Parsed torrent {info.name!r} announcing to {announce}")
    return Torrent(announce, info, info_hash, announce_list, comment, created_by, creation_date)


def parse_torrent(data, strict: bool = False) -> Torrent:
    """
    Decode the contents of a .torrent file and build the Torrent out of it.
    Raises DecodeError (TrailingDataError for bytes after the root element) or MetainfoError.
    """
    return project(decode_all(data, strict=strict), strict=strict)
