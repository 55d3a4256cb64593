import pytest
from nacl.signing import SigningKey

from hearth.core.security import (
    generate_private_key,
    load_signing_key,
    public_address,
    sign_bytes,
    verify_bytes,
)


def test_sign_and_verify_round_trip() -> None:
    key = generate_private_key()
    signature = sign_bytes(b"msg", key)
    assert len(signature) == 128
    assert verify_bytes(b"msg", signature, public_address(key)) is True
    assert verify_bytes(b"other", signature, public_address(key)) is False


def test_verify_rejects_bad_inputs() -> None:
    """verify_bytes returns False rather than raising on invalid hex."""
    assert verify_bytes(b"msg", "zz", "aa") is False
    assert verify_bytes(b"msg", "zz", "00" * 32) is False


def test_load_signing_key_accepts_all_forms() -> None:
    key = SigningKey.generate()
    seed = key.encode()
    assert load_signing_key(key) is key
    assert load_signing_key(seed).encode() == seed
    assert load_signing_key(seed.hex()).encode() == seed
    assert load_signing_key("0x" + seed.hex()).encode() == seed


@pytest.mark.parametrize("material", ["abc", "zz" * 32, b"short"])
def test_load_signing_key_rejects_bad_material(material) -> None:
    with pytest.raises(ValueError):
        load_signing_key(material)
