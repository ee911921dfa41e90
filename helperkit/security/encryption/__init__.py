from .field_encryption import (
    FieldEncryptor,
    RandomSource,
    SystemRandomSource,
    bulk_decrypt,
    bulk_encrypt,
    decrypt_field,
    decrypt_field_async,
    encode_key,
    encrypt_field,
    encrypt_field_async,
    generate_key,
    load_key,
)

__all__ = [
    "FieldEncryptor",
    "RandomSource",
    "SystemRandomSource",
    "bulk_decrypt",
    "bulk_encrypt",
    "decrypt_field",
    "decrypt_field_async",
    "encode_key",
    "encrypt_field",
    "encrypt_field_async",
    "generate_key",
    "load_key",
]
