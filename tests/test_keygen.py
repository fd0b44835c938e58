import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from pki_engine import utils
from pki_engine.exceptions import EntropyUnavailableError, UnsupportedAlgorithmError, WeakKeyError
from pki_engine.keygen import KeyPairGenerator, check_public_key_strength, keygen
from pki_engine.models import KeyAlgorithm, KeyPair


# ==== Génération RSA ====

def test_generate_rsa_2048(rsa_root_key):
    assert rsa_root_key.algorithm is KeyAlgorithm.RSA
    assert rsa_root_key.parameters == 2048
    assert rsa_root_key.private_key.key_size == 2048
    assert rsa_root_key.public_key.public_numbers().e == 65537
    assert rsa_root_key.matches()


@pytest.mark.parametrize("key_size", [512, 1024, 2047])
def test_rsa_below_minimum_is_weak(key_size):
    with pytest.raises(WeakKeyError) as exc_info:
        keygen.generate("rsa", key_size)
    assert exc_info.value.field == "parameters"


def test_rsa_above_maximum_is_unsupported():
    with pytest.raises(UnsupportedAlgorithmError):
        keygen.generate("rsa", 32768)


def test_rsa_size_must_be_an_integer():
    with pytest.raises(UnsupportedAlgorithmError):
        keygen.generate("rsa", "big")


# ==== Génération ECC ====

@pytest.mark.parametrize("curve,expected", [
    ("secp256r1", "secp256r1"),
    ("P-384", "secp384r1"),
    ("prime256v1", "secp256r1"),
])
def test_generate_ec_approved_curves(curve, expected):
    key_pair = keygen.generate("ec", curve)
    assert key_pair.algorithm is KeyAlgorithm.EC
    assert key_pair.parameters == expected
    assert isinstance(key_pair.private_key, ec.EllipticCurvePrivateKey)


def test_generate_ec_defaults_to_p256():
    assert keygen.generate("ecc").parameters == "secp256r1"


@pytest.mark.parametrize("curve", ["secp256k1", "brainpoolP256r1", "secp192r1"])
def test_unapproved_curve_is_weak(curve):
    with pytest.raises(WeakKeyError):
        keygen.generate("ec", curve)


@pytest.mark.parametrize("algorithm", ["dsa", "ed25519", ""])
def test_unknown_algorithm(algorithm):
    with pytest.raises(UnsupportedAlgorithmError):
        keygen.generate(algorithm)


# ==== Entropie ====

def test_entropy_failure_is_fatal(monkeypatch):
    def broken(nbytes=32):
        raise OSError("getrandom indisponible")

    monkeypatch.setattr(utils.secrets, "token_bytes", broken)
    with pytest.raises(EntropyUnavailableError):
        keygen.generate("ec")


def test_progress_bar_generation():
    key_pair = KeyPairGenerator(show_progress=True).generate("ec", "secp384r1")
    assert key_pair.parameters == "secp384r1"


# ==== KeyPair ====

def test_private_key_never_in_repr(rsa_root_key):
    text = repr(rsa_root_key)
    assert "private_key" not in text
    assert "public_key" not in text
    assert "2048" in text


def test_two_generations_differ():
    first = keygen.generate("ec")
    second = keygen.generate("ec")
    assert first != second
    assert first.public_key_der != second.public_key_der


def test_mismatched_pair_detected(rsa_root_key, rsa_leaf_key):
    broken = KeyPair(
        rsa_root_key.algorithm,
        rsa_root_key.parameters,
        rsa_root_key.private_key,
        rsa_leaf_key.public_key
    )
    assert not broken.matches()
    assert rsa_root_key.matches()


def test_key_identifier_is_sha1_length(ec_root_key):
    assert len(ec_root_key.key_identifier) == 20


# ==== Politique sur clés étrangères ====

def test_check_public_key_strength():
    weak = rsa.generate_private_key(public_exponent=65537, key_size=1024)
    with pytest.raises(WeakKeyError):
        check_public_key_strength(weak.public_key())

    bad_curve = ec.generate_private_key(ec.SECP256K1())
    with pytest.raises(WeakKeyError):
        check_public_key_strength(bad_curve.public_key())

    check_public_key_strength(ec.generate_private_key(ec.SECP521R1()).public_key())
