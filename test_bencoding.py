import bencodepy
import pytest
from bencoding import (BDictionary, BInteger, BList, BString, DecodeError, Decoder, MAX_DEPTH,
                       NestingTooDeepError, TrailingDataError, decode, decode_all)


def test_integer():
    value, rest = decode(b"i56e")
    assert value == BInteger(56)
    assert rest == b""


def test_negative_and_zero_integers():
    assert decode_all(b"i-3e") == BInteger(-3)
    assert decode_all(b"i0e") == BInteger(0)


def test_string():
    value, rest = decode(b"3:foo")
    assert value == BString(b"foo")
    assert rest == b""


def test_empty_string():
    assert decode_all(b"0:") == BString(b"")


def test_string_is_a_view_of_the_input():
    data = b"4:spam"
    value = decode_all(data)
    assert value._view.obj is data
    assert bytes(value) == b"spam"


def test_string_may_hold_invalid_utf8():
    value = decode_all(b"2:\xff\xfe")
    assert value.content == b"\xff\xfe"
    with pytest.raises(UnicodeDecodeError):
        value.decode()


def test_list():
    value, rest = decode(b"l3:foo3:bare")
    assert rest == b""
    assert value == BList([BString(b"foo"), BString(b"bar")])


def test_empty_list_and_dictionary():
    assert decode_all(b"le") == BList()
    assert decode_all(b"de") == BDictionary()


def test_simple_dictionary():
    value, rest = decode(b"d1:a3:fooe")
    assert rest == b""
    assert value == BDictionary({b"a": BString(b"foo")})


def test_dictionary_with_two_keys():
    value = decode_all(b"d1:a3:foo4:mike6:angelae")
    assert value == BDictionary({b"a": BString(b"foo"), b"mike": BString(b"angela")})
    assert value[b"mike"] == b"angela"
    assert value[BString(b"a")] == BString(b"foo")


def test_complex_dictionary():
    value, rest = decode(b"d3:foo3:bar4:listl6:angela5:jamesee")
    assert rest == b""
    assert value == BDictionary({
        b"foo": BString(b"bar"),
        b"list": BList([BString(b"angela"), BString(b"james")]),
    })


def test_dictionary_records_its_raw_encoding():
    value = decode_all(b"d4:infod1:xi1eee")
    assert bytes(value[b"info"].raw) == b"d1:xi1ee"
    assert bytes(value.raw) == b"d4:infod1:xi1eee"


def test_remaining_bytes_are_returned():
    value, rest = decode(b"i1ei2e")
    assert value == BInteger(1)
    assert rest == b"i2e"
    assert decode(rest) == (BInteger(2), b"")


def test_decoder_accepts_bytearray_and_memoryview():
    assert decode_all(bytearray(b"l1:ae")) == BList([BString(b"a")])
    assert decode_all(memoryview(b"xxi7e")[2:]) == BInteger(7)


def test_decoder_rejects_str():
    with pytest.raises(TypeError):
        Decoder("i1e")


def test_decoding_twice_gives_equal_trees():
    data = b"d3:foo3:bar4:listl6:angela5:jamesee"
    assert decode_all(data) == decode_all(data)


def test_values_of_different_kinds_are_not_equal():
    assert BInteger(1) != BString(b"1")
    assert BList() != BDictionary()
    assert BList([BInteger(1)]) != BList([BString(b"1")])


@pytest.mark.parametrize("n", [0, 1, -1, 42, -42, 2 ** 31, 2 ** 63 - 1, -2 ** 63])
def test_canonical_integers_round_trip(n):
    assert decode(bencodepy.encode(n)) == (BInteger(n), b"")
    assert decode(bencodepy.encode(n), strict=True) == (BInteger(n), b"")


def test_agrees_with_reference_decoder():
    document = bencodepy.encode({
        b"announce": b"http://tracker.example.com:6969/announce",
        b"info": {
            b"name": b"example.txt",
            b"piece length": 262144,
            b"pieces": bytes(range(40)),
            b"files": [{b"length": 5, b"path": [b"a", b"b.txt"]}],
        },
        b"list": [1, -2, [b"nested"], {}],
    })
    assert decode_all(document).to_python() == bencodepy.decode(document)


@pytest.mark.parametrize("data", [
    b"5:ab",    # truncated string
    b"3foo",    # missing ':'
    b"3x:foo",  # non numeric length
    b"i56",     # unterminated integer
    b"ie",      # empty integer
    b"i5x6e",   # non numeric integer
    b"i1.5e",
    b"l3:foo",  # unterminated list
    b"d1:a3:foo",  # unterminated dictionary
    b"d1:a",    # dictionary key without a value
    b"di1e3:fooe",  # integer key
    b"x",       # unknown tag
    b"",
])
def test_malformed_input(data):
    with pytest.raises(DecodeError):
        decode(data)


def test_truncated_string_error_position():
    with pytest.raises(DecodeError) as exc_info:
        decode(b"l5:abe")
    assert exc_info.value.position == 1
    assert "exceeds" in str(exc_info.value)


def test_integer_out_of_64_bit_range():
    with pytest.raises(DecodeError):
        decode(b"i9223372036854775808e")
    with pytest.raises(DecodeError):
        decode(b"i-9223372036854775809e")


def test_trailing_data():
    with pytest.raises(TrailingDataError) as exc_info:
        decode_all(b"d1:a3:fooeextra")
    assert exc_info.value.position == 10
    # decode itself leaves the extra bytes to the caller
    assert decode(b"d1:a3:fooeextra")[1] == b"extra"


def test_lenient_integers():
    assert decode_all(b"i03e") == BInteger(3)
    assert decode_all(b"i-0e") == BInteger(0)
    assert decode_all(b"i+5e") == BInteger(5)


@pytest.mark.parametrize("data", [b"i03e", b"i-0e", b"i+5e", b"i-03e", b"i00e"])
def test_strict_integers(data):
    with pytest.raises(DecodeError):
        decode(data, strict=True)


def test_strict_string_length():
    assert decode_all(b"03:foo") == BString(b"foo")
    with pytest.raises(DecodeError):
        decode(b"03:foo", strict=True)


def test_unsorted_keys_only_rejected_in_strict_mode():
    data = b"d1:bi1e1:ai2ee"
    assert decode_all(data) == BDictionary({b"a": BInteger(2), b"b": BInteger(1)})
    with pytest.raises(DecodeError, match="out of order"):
        decode(data, strict=True)


def test_duplicate_keys():
    data = b"d1:ai1e1:ai2ee"
    assert decode_all(data) == BDictionary({b"a": BInteger(2)})
    with pytest.raises(DecodeError, match="Duplicate"):
        decode(data, strict=True)


def test_keys_compare_as_raw_bytes():
    # 0xff sorts after every ASCII byte
    assert decode_all(b"d1:ai1e1:\xffi2ee", strict=True)[b"\xff"] == BInteger(2)


def test_nesting_limit():
    assert decode_all(b"l" * 10 + b"e" * 10, max_depth=10) == decode_all(b"l" * 10 + b"e" * 10)
    with pytest.raises(NestingTooDeepError):
        decode(b"l" * 10 + b"e" * 10, max_depth=9)
    with pytest.raises(NestingTooDeepError):
        decode(b"d1:a" * 5 + b"i1e" + b"e" * 5, max_depth=4)


def test_default_nesting_limit():
    depth = MAX_DEPTH
    assert len(decode_all(b"l" * depth + b"e" * depth)) == 1
    with pytest.raises(NestingTooDeepError):
        decode(b"l" * 100000)


def test_empty_buffer():
    with pytest.raises(DecodeError, match="Unexpected end of data") as exc_info:
        decode(b"")
    assert exc_info.value.position == 0


def test_very_long_integer_is_a_decode_error():
    with pytest.raises(DecodeError, match="does not fit in 64 bits"):
        decode(b"i" + b"9" * 5000 + b"e")
    with pytest.raises(DecodeError):
        decode(b"i-" + b"1" * 5000 + b"e")


def test_very_long_string_length_is_a_decode_error():
    with pytest.raises(DecodeError):
        decode(b"9" * 5000 + b":x")
    with pytest.raises(DecodeError):
        decode(b"l" + b"9" * 5000 + b":xe")
