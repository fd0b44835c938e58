import pytest

from pki_engine.exceptions import InvalidSANError, PolicyViolationError, UnsupportedAlgorithmError
from pki_engine.models import BasicConstraints, ExtendedKeyUsage, ExtensionSet, KeyUsage, SANEntry
from pki_engine.policy import RootPolicy, SigningPolicy, enforce_leaf_extensions, root_extensions


# ==== SigningPolicy ====

def test_signing_policy_defaults():
    policy = SigningPolicy()
    assert policy.key_usage == frozenset({KeyUsage.DIGITAL_SIGNATURE, KeyUsage.KEY_ENCIPHERMENT})
    assert policy.extended_key_usage == (ExtendedKeyUsage.SERVER_AUTH,)
    assert policy.leaf_validity_days == 825
    assert policy.hash_algorithm == "sha256"


def test_signing_policy_coerces_names():
    policy = SigningPolicy(key_usage={"digital_signature"}, extended_key_usage=["server_auth", "client_auth"])
    assert policy.key_usage == frozenset({KeyUsage.DIGITAL_SIGNATURE})
    assert policy.extended_key_usage == (ExtendedKeyUsage.SERVER_AUTH, ExtendedKeyUsage.CLIENT_AUTH)


@pytest.mark.parametrize("kwargs", [
    {"key_usage": {KeyUsage.KEY_CERT_SIGN}},
    {"key_usage": {KeyUsage.DIGITAL_SIGNATURE, KeyUsage.CRL_SIGN}},
    {"key_usage": frozenset()},
    {"key_usage": {"teleport"}},
    {"extended_key_usage": ["any"]},
    {"leaf_validity_days": 0},
])
def test_signing_policy_violations(kwargs):
    with pytest.raises(PolicyViolationError):
        SigningPolicy(**kwargs)


def test_signing_policy_rejects_weak_hash():
    with pytest.raises(UnsupportedAlgorithmError):
        SigningPolicy(hash_algorithm="md5")


# ==== RootPolicy ====

@pytest.mark.parametrize("kwargs", [{"max_lifetime_days": 0}, {"path_length": -1}])
def test_root_policy_violations(kwargs):
    with pytest.raises(PolicyViolationError):
        RootPolicy(**kwargs)


def test_root_extensions():
    extensions = root_extensions(b"\x01" * 20, RootPolicy(path_length=1))
    assert extensions.basic_constraints == BasicConstraints(ca=True, path_length=1)
    assert extensions.key_usage == frozenset({KeyUsage.KEY_CERT_SIGN, KeyUsage.CRL_SIGN})
    assert extensions.subject_key_identifier == extensions.authority_key_identifier == b"\x01" * 20


# ==== enforce_leaf_extensions ====

def test_requested_ca_and_usages_are_overridden():
    requested = ExtensionSet(
        basic_constraints=BasicConstraints(ca=True, path_length=3),
        key_usage=frozenset({KeyUsage.KEY_CERT_SIGN, KeyUsage.CRL_SIGN}),
        extended_key_usage=(ExtendedKeyUsage.CODE_SIGNING,),
        subject_alt_names=(SANEntry.dns("MyNginx.com."), SANEntry.ip("68.183.142.158")),
        authority_key_identifier=b"forged",
        subject_key_identifier=b"forged",
    )
    effective = enforce_leaf_extensions(requested, SigningPolicy(), b"leaf-ski", b"root-ski")

    assert effective.basic_constraints == BasicConstraints(ca=False)
    assert not effective.is_ca
    assert effective.key_usage == SigningPolicy().key_usage
    assert effective.extended_key_usage == (ExtendedKeyUsage.SERVER_AUTH,)
    assert effective.subject_alt_names == (SANEntry.dns("mynginx.com"), SANEntry.ip("68.183.142.158"))
    assert effective.subject_key_identifier == b"leaf-ski"
    assert effective.authority_key_identifier == b"root-ski"


def test_enforcement_is_pure():
    requested = ExtensionSet(subject_alt_names=(SANEntry.dns("a.example.com"),))
    policy = SigningPolicy()
    assert enforce_leaf_extensions(requested, policy) == enforce_leaf_extensions(requested, policy)
    assert requested.basic_constraints is None


@pytest.mark.parametrize("name", ["bad_host.example.com", "evil\n.mynginx.com"])
def test_requested_sans_are_revalidated(name):
    requested = ExtensionSet(subject_alt_names=(SANEntry.dns(name),))
    with pytest.raises(InvalidSANError):
        enforce_leaf_extensions(requested, SigningPolicy())
