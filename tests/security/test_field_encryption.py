import base64

import pytest

from helperkit.security.encryption import (
    FieldEncryptor,
    bulk_decrypt,
    bulk_encrypt,
    decrypt_field,
    encode_key,
    encrypt_field,
    load_key,
)
from helperkit.security.encryption.field_encryption import (
    MIN_BLOB_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
)
from helperkit.utils.error_handler import (
    IntegrityError,
    InvalidKeyError,
    KeyedTransformError,
)


def _raw(blob: str) -> bytes:
    return base64.urlsafe_b64decode(blob + "=" * (-len(blob) % 4))


def _text(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


@pytest.mark.parametrize(
    "plaintext",
    [
        "x",
        "my$ecretValue123",
        "héllo wörld",
        "日本語テキスト",
        "emoji 🔐🚀",
        "a" * 4096,
    ],
)
def test_round_trip(key, plaintext):
    blob = encrypt_field(plaintext, key)
    assert blob != plaintext
    assert decrypt_field(blob, key) == plaintext


def test_blob_layout_is_nonce_ciphertext_tag(key, fixed_random):
    plaintext = "héllo"
    blob = encrypt_field(plaintext, key, random_source=fixed_random)
    raw = _raw(blob)

    assert "=" not in blob
    assert "+" not in blob and "/" not in blob
    assert len(raw) == NONCE_SIZE + len(plaintext.encode("utf-8")) + TAG_SIZE
    assert raw[:NONCE_SIZE] == b"\x01" * NONCE_SIZE
    assert fixed_random.calls == 1


def test_deterministic_nonce_gives_identical_blob(key, fixed_random):
    first = encrypt_field("same", key, random_source=fixed_random)
    second = encrypt_field("same", key, random_source=fixed_random)
    assert first == second


def test_fresh_nonce_per_encryption(key):
    first = encrypt_field("same plaintext", key)
    second = encrypt_field("same plaintext", key)

    assert first != second
    assert _raw(first)[:NONCE_SIZE] != _raw(second)[:NONCE_SIZE]
    assert decrypt_field(first, key) == "same plaintext"
    assert decrypt_field(second, key) == "same plaintext"


def test_absence_short_circuits_to_none(key):
    assert encrypt_field("", key) is None
    assert encrypt_field(None, key) is None
    assert encrypt_field("value", b"") is None
    assert encrypt_field("value", None) is None
    assert decrypt_field("", key) is None
    assert decrypt_field(None, key) is None
    assert decrypt_field("c29tZQ", b"") is None


@pytest.mark.parametrize("bad_key", [b"short", b"k" * 16, b"k" * 33])
def test_wrong_key_length_is_misuse(bad_key):
    with pytest.raises(InvalidKeyError):
        encrypt_field("value", bad_key)
    with pytest.raises(InvalidKeyError):
        decrypt_field("c29tZQ", bad_key)


def test_invalid_key_error_is_value_error():
    with pytest.raises(ValueError):
        encrypt_field("value", b"short")


def test_string_key_is_rejected():
    with pytest.raises(InvalidKeyError):
        encrypt_field("value", "k" * 32)


def test_non_string_plaintext_raises_type_error(key):
    with pytest.raises(TypeError):
        encrypt_field({"nested": "value"}, key)


@pytest.mark.parametrize("value", [{}, [], 0, False])
def test_empty_non_text_plaintext_is_not_absence(key, value):
    with pytest.raises(TypeError):
        encrypt_field(value, key)


@pytest.mark.parametrize("value", [{}, []])
def test_empty_non_text_blob_is_integrity_error(key, value):
    with pytest.raises(IntegrityError):
        decrypt_field(value, key)



def test_wrong_key_is_integrity_error(key, other_key):
    blob = encrypt_field("secret", key)
    with pytest.raises(IntegrityError):
        decrypt_field(blob, other_key)


@pytest.mark.parametrize("region", ["nonce", "ciphertext", "tag"])
def test_single_bit_flip_is_detected(key, region):
    blob = encrypt_field("tamper target", key)
    raw = bytearray(_raw(blob))
    index = {
        "nonce": 0,
        "ciphertext": NONCE_SIZE + 2,
        "tag": len(raw) - 1,
    }[region]

    for bit in range(8):
        tampered = bytearray(raw)
        tampered[index] ^= 1 << bit
        with pytest.raises(IntegrityError):
            decrypt_field(_text(bytes(tampered)), key)


def test_every_ciphertext_byte_is_authenticated(key):
    blob = encrypt_field("abcdef", key)
    raw = _raw(blob)
    for index in range(len(raw)):
        tampered = bytearray(raw)
        tampered[index] ^= 0x80
        with pytest.raises(IntegrityError):
            decrypt_field(_text(bytes(tampered)), key)


def test_truncated_blob_is_integrity_error(key):
    too_short = _text(b"\x00" * (MIN_BLOB_SIZE - 1))
    with pytest.raises(IntegrityError):
        decrypt_field(too_short, key)


def test_minimum_size_blob_with_bad_tag_is_integrity_error(key):
    with pytest.raises(IntegrityError):
        decrypt_field(_text(b"\x00" * MIN_BLOB_SIZE), key)


def test_invalid_base64_is_integrity_error(key):
    with pytest.raises(IntegrityError):
        decrypt_field("not*valid*base64!", key)


def test_integrity_error_is_not_absence(key, other_key):
    blob = encrypt_field("value", key)
    try:
        result = decrypt_field(blob, other_key)
    except IntegrityError:
        result = "raised"
    assert result == "raised"


def test_load_key_accepts_text_form(key):
    assert load_key(encode_key(key)) == key
    assert load_key(key) == key


def test_load_key_rejects_garbage():
    with pytest.raises(InvalidKeyError):
        load_key("@@@not-base64@@@")
    with pytest.raises(InvalidKeyError):
        load_key(encode_key(b"k" * 32)[:-4])


def test_load_key_accepts_legacy_32_character_secret():
    secret = "0123456789abcdef0123456789abcdef"
    assert load_key(secret) == secret.encode()

    enc = FieldEncryptor(secret)
    blob = enc.encrypt("value")
    assert decrypt_field(blob, secret.encode()) == "value"



def test_field_encryptor_round_trip(key):
    enc = FieldEncryptor(encode_key(key))
    token = enc.encrypt("my$ecretValue123")
    assert token != "my$ecretValue123"
    assert enc.decrypt(token) == "my$ecretValue123"
    assert decrypt_field(token, key) == "my$ecretValue123"


def test_field_encryptor_generates_ephemeral_key_in_test_env(monkeypatch):
    from helperkit.core.config import settings

    monkeypatch.setattr(settings, "FIELD_ENCRYPTION_KEY", None)
    with pytest.warns(RuntimeWarning):
        enc = FieldEncryptor()
    assert enc.decrypt(enc.encrypt("value")) == "value"


@pytest.mark.asyncio
async def test_bulk_round_trip(key):
    record = {"a": "x", "b": "y", "c": "z"}

    encrypted = await bulk_encrypt(record, key)
    assert set(encrypted) == {"a", "b", "c"}
    assert all(value != record[name] for name, value in encrypted.items())

    decrypted = await bulk_decrypt(encrypted, key)
    assert decrypted == record


@pytest.mark.asyncio
async def test_bulk_empty_field_maps_to_none(key):
    encrypted = await bulk_encrypt({"name": "Ada", "nickname": ""}, key)
    assert encrypted["nickname"] is None
    decrypted = await bulk_decrypt(encrypted, key)
    assert decrypted == {"name": "Ada", "nickname": None}


@pytest.mark.asyncio
async def test_bulk_nested_value_fails_with_key(key):
    with pytest.raises(KeyedTransformError) as excinfo:
        await bulk_encrypt({"ok": "x", "nested": {"inner": "y"}}, key)

    assert excinfo.value.key == "nested"
    assert isinstance(excinfo.value.cause, TypeError)


@pytest.mark.asyncio
@pytest.mark.parametrize("empty", [{}, []])
async def test_bulk_empty_nested_value_is_not_dropped(key, empty):
    with pytest.raises(KeyedTransformError) as excinfo:
        await bulk_encrypt({"ok": "x", "nested": empty}, key)

    assert excinfo.value.key == "nested"
    assert isinstance(excinfo.value.cause, TypeError)



@pytest.mark.asyncio
async def test_bulk_decrypt_tampered_field_names_key(key):
    encrypted = await bulk_encrypt({"email": "a@example.com", "phone": "555"}, key)
    raw = bytearray(_raw(encrypted["phone"]))
    raw[-1] ^= 0x01
    encrypted["phone"] = _text(bytes(raw))

    with pytest.raises(KeyedTransformError) as excinfo:
        await bulk_decrypt(encrypted, key)

    assert excinfo.value.key == "phone"
    assert isinstance(excinfo.value.__cause__, IntegrityError)


@pytest.mark.asyncio
async def test_field_encryptor_bulk(key, fixed_random):
    enc = FieldEncryptor(key, random_source=fixed_random)
    encrypted = await enc.bulk_encrypt({"a": "1", "b": "2"})
    assert fixed_random.calls == 2
    assert await enc.bulk_decrypt(encrypted) == {"a": "1", "b": "2"}
