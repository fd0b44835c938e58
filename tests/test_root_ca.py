from datetime import timedelta

import pytest

from pki_engine import utils
from pki_engine.exceptions import InvalidSubjectError, KeyMismatchError, ValidityRangeError
from pki_engine.models import ErrorKind, KeyPair, KeyUsage, Subject, Validity
from pki_engine.policy import RootPolicy
from pki_engine.root_ca import RootCAIssuer, root_ca_issuer, validate_root
from pki_engine.verifier import chain_verifier


# ==== Certificat racine ====

def test_root_is_self_issued_ca(root_pair, root_subject):
    key_pair, root = root_pair
    assert root.subject == root_subject
    assert root.issuer_subject == root_subject
    assert root.is_self_issued
    assert root.is_ca
    assert root.extensions.basic_constraints.path_length == 0
    assert root.extensions.key_usage == frozenset({KeyUsage.KEY_CERT_SIGN, KeyUsage.CRL_SIGN})
    assert root.extensions.extended_key_usage == ()


def test_root_key_identifiers(root_pair):
    key_pair, root = root_pair
    assert root.extensions.subject_key_identifier == key_pair.key_identifier
    assert root.extensions.authority_key_identifier == key_pair.key_identifier
    assert root.public_key_der == key_pair.public_key_der


def test_root_serial_is_positive_and_bounded(root_pair):
    _, root = root_pair
    assert 0 < root.serial_number < (1 << 159)


def test_root_signature_algorithm(rsa_root, ec_root):
    assert rsa_root.signature_algorithm == "sha256WithRSAEncryption"
    assert ec_root.signature_algorithm == "ecdsa-with-SHA256"


def test_root_self_chain_is_valid(root_pair):
    _, root = root_pair
    assert chain_verifier.verify(root, root).valid
    assert validate_root(root).valid


def test_root_validity_is_kept_to_the_second(ec_root_key, root_subject):
    start = utils.now_utc()
    root = root_ca_issuer.issue_root(ec_root_key, root_subject, Validity.for_days(30, start=start))
    assert root.validity.not_before == start
    assert root.validity.not_after == start + timedelta(days=30)


def test_root_with_stronger_hash(ec_root_key, root_subject):
    issuer = RootCAIssuer(RootPolicy(hash_algorithm="sha384"))
    root = issuer.issue_root_for_days(ec_root_key, root_subject, 365)
    assert root.signature_algorithm == "ecdsa-with-SHA384"


# ==== Erreurs ====

def test_root_lifetime_capped(ec_root_key, root_subject):
    with pytest.raises(ValidityRangeError):
        root_ca_issuer.issue_root(ec_root_key, root_subject, Validity.for_days(7301))


def test_empty_validity_rejected_at_construction():
    now = utils.now_utc()
    with pytest.raises(ValidityRangeError):
        Validity(now, now)
    with pytest.raises(ValidityRangeError):
        Validity(now, now - timedelta(seconds=1))


def test_mismatched_root_key(rsa_root_key, rsa_leaf_key, root_subject):
    broken = KeyPair(rsa_root_key.algorithm, 2048, rsa_root_key.private_key, rsa_leaf_key.public_key)
    with pytest.raises(KeyMismatchError):
        root_ca_issuer.issue_root(broken, root_subject, Validity.for_days(365))


def test_root_subject_revalidated(ec_root_key):
    with pytest.raises(InvalidSubjectError):
        root_ca_issuer.issue_root(ec_root_key, Subject(common_name=""), Validity.for_days(365))


# ==== validate_root ====

def test_leaf_is_not_a_valid_root(server_certificate):
    result = validate_root(server_certificate)
    assert not result.valid
    assert ErrorKind.ROOT_NOT_CA in result.reasons
    assert ErrorKind.ISSUER_MISMATCH in result.reasons
