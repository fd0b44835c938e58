import pytest

from pki_engine.csr import CSRBuilder, csr_builder
from pki_engine.exceptions import InvalidSANError, KeyMismatchError
from pki_engine.models import BasicConstraints, ExtendedKeyUsage, KeyPair, SANEntry


def test_csr_carries_subject_key_and_sans(server_csr, server_subject, rsa_leaf_key):
    assert server_csr.subject == server_subject
    assert server_csr.public_key_der == rsa_leaf_key.public_key_der
    assert server_csr.requested_extensions.subject_alt_names == (
        SANEntry.dns("mynginx.com"),
        SANEntry.dns("*.mynginx.com"),
        SANEntry.ip("68.183.142.158"),
    )
    assert server_csr.requested_extensions.basic_constraints is None


def test_csr_signature_proves_possession(server_csr):
    assert server_csr.to_x509().is_signature_valid


def test_csr_with_ec_key(ec_leaf_key, server_subject):
    csr = csr_builder.build_request(ec_leaf_key, server_subject, ["IP:10.0.0.1"])
    assert csr.to_x509().is_signature_valid
    assert csr.requested_extensions.subject_alt_names == (SANEntry.ip("10.0.0.1"),)


def test_csr_may_request_extensions_the_signer_will_override(ec_leaf_key, server_subject):
    csr = csr_builder.build_request(
        ec_leaf_key,
        server_subject,
        ["mynginx.com"],
        request_ca=True,
        extended_key_usage=[ExtendedKeyUsage.CLIENT_AUTH, "code_signing"]
    )
    requested = csr.requested_extensions
    assert requested.basic_constraints == BasicConstraints(ca=True)
    assert requested.extended_key_usage == (ExtendedKeyUsage.CLIENT_AUTH, ExtendedKeyUsage.CODE_SIGNING)


def test_csr_without_sans(ec_leaf_key, server_subject):
    csr = CSRBuilder(hash_algorithm="sha384").build_request(ec_leaf_key, server_subject)
    assert csr.requested_extensions.subject_alt_names == ()


def test_csr_invalid_san_propagates(ec_leaf_key, server_subject):
    with pytest.raises(InvalidSANError):
        csr_builder.build_request(ec_leaf_key, server_subject, ["bad_host!"])


def test_csr_key_mismatch(ec_leaf_key, ec_root_key, server_subject):
    broken = KeyPair(ec_leaf_key.algorithm, "secp256r1", ec_leaf_key.private_key, ec_root_key.public_key)
    with pytest.raises(KeyMismatchError):
        csr_builder.build_request(broken, server_subject, ["mynginx.com"])
