"""Tests for bucket id computation and decoding."""
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from bucket_index.identifier import (
    bucket_id_from_file_id,
    bucket_id_str,
    get_bucket_id,
    hash_keys,
    is_bucket_file_id,
    java_list_hash,
    java_string_hash,
    new_bucket_file_id_prefix,
)
from model import BucketEncodingError, RecordKey


def test_java_string_hash_known_values():
    """Test string hash matches the JVM values."""
    assert java_string_hash("") == 0
    assert java_string_hash("abc") == 96354
    assert java_string_hash("hello") == 99162322
    # Overflows to Integer.MIN_VALUE
    assert java_string_hash("polygenelubricants") == -2147483648


def test_java_string_hash_uses_utf16_units():
    """Test non-BMP characters hash as surrogate pairs."""
    # U+1F600 -> 0xD83D 0xDE00
    assert java_string_hash("\U0001F600") == 0xD83D * 31 + 0xDE00


def test_java_list_hash():
    """Test list hash, including null elements."""
    assert java_list_hash([]) == 1
    assert java_list_hash(["abc"]) == 31 + 96354
    assert java_list_hash([None]) == 31


def test_get_bucket_id_simple_keys():
    """Test simple record keys route as single-element lists."""
    assert get_bucket_id("a", ["id"], 4) == 0
    assert get_bucket_id("b", ["id"], 4) == 1
    assert get_bucket_id("c", ["id"], 4) == 2
    assert get_bucket_id("d", ["id"], 4) == 3


def test_get_bucket_id_masks_sign_bit():
    """Test negative hashes are masked before the modulo."""
    # list hash = 31 + MIN_VALUE = 0x8000001F -> masked to 31
    assert get_bucket_id("polygenelubricants", [], 8) == 31 % 8


def test_get_bucket_id_complex_keys():
    """Test complex keys hash the index key fields in order."""
    assert hash_keys("id:b,ts:5", ["id"]) == ["b"]
    assert hash_keys("id:b,ts:5", ["ts", "id"]) == ["5", "b"]
    assert get_bucket_id("id:b,ts:5", ["id"], 4) == get_bucket_id("b", ["id"], 4)
    # Missing field contributes a null
    assert hash_keys("ts:5", ["id"]) == [None]
    assert get_bucket_id("ts:5", ["id"], 4) == 31 % 4


def test_get_bucket_id_accepts_record_key():
    """Test RecordKey and raw strings route the same."""
    assert get_bucket_id(RecordKey("b", "2024-01-01"), ["id"], 4) == get_bucket_id("b", ["id"], 4)


def test_get_bucket_id_deterministic_and_in_range():
    """Test purity and range over random keys."""
    rng = random.Random(7)
    for _ in range(500):
        key = "".join(rng.choice("abcdefghijklmnopqrstuvwxyz0123456789:,") for _ in range(rng.randint(0, 20)))
        num_buckets = rng.randint(1, 64)
        bucket = get_bucket_id(key, ["id", "ts"], num_buckets)
        assert 0 <= bucket < num_buckets
        assert get_bucket_id(key, ["id", "ts"], num_buckets) == bucket


def test_get_bucket_id_rejects_non_positive_buckets():
    """Test bucket count validation."""
    with pytest.raises(ValueError):
        get_bucket_id("a", ["id"], 0)


def test_bucket_id_from_file_id():
    """Test decoding bucket ids from file ids."""
    assert bucket_id_from_file_id("00000003-5f1c-4c4e-9a3e-1f0e6c1a2b3c-0") == 3
    assert bucket_id_from_file_id("00000127") == 127


@pytest.mark.parametrize("file_id", ["", "abc", "0000003-x", "0000000a-x", "00000003x", None])
def test_bucket_id_from_file_id_malformed(file_id):
    """Test malformed file ids raise a decoding error."""
    with pytest.raises(BucketEncodingError):
        bucket_id_from_file_id(file_id)


def test_new_bucket_file_id_prefix_round_trip():
    """Test generated prefixes decode to their bucket id."""
    file_id = new_bucket_file_id_prefix(42)
    assert file_id.startswith(bucket_id_str(42))
    assert is_bucket_file_id(file_id)
    assert bucket_id_from_file_id(file_id) == 42
    assert len(file_id) == 36
