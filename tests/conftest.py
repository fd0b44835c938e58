"""
Fixtures partagées: clés et racines générées une seule fois par session
"""

import pytest

from pki_engine.csr import csr_builder
from pki_engine.keygen import keygen
from pki_engine.models import Validity
from pki_engine.root_ca import root_ca_issuer
from pki_engine.signer import CertificateSigner
from pki_engine.subject import subject_builder

SERVER_SANS = ["mynginx.com", "*.mynginx.com", "68.183.142.158"]


@pytest.fixture(scope="session")
def root_subject():
    return subject_builder.build({
        "CN": "Test Root CA",
        "O": "PKI Project",
        "OU": "Certificate Authority",
        "C": "CM",
        "ST": "Adamaoua",
        "L": "Ngaoundere",
    })


@pytest.fixture(scope="session")
def server_subject():
    return subject_builder.build({"CN": "mynginx.com", "O": "PKI Project", "C": "CM"})


# ==== Clés ====

@pytest.fixture(scope="session")
def rsa_root_key():
    return keygen.generate("rsa", 2048)


@pytest.fixture(scope="session")
def ec_root_key():
    return keygen.generate("ec", "secp256r1")


@pytest.fixture(scope="session")
def rsa_leaf_key():
    return keygen.generate("rsa", 2048)


@pytest.fixture(scope="session")
def ec_leaf_key():
    return keygen.generate("ec", "P-256")


# ==== Racines ====

@pytest.fixture(scope="session")
def rsa_root(rsa_root_key, root_subject):
    return root_ca_issuer.issue_root(rsa_root_key, root_subject, Validity.for_days(3650))


@pytest.fixture(scope="session")
def ec_root(ec_root_key, root_subject):
    return root_ca_issuer.issue_root(ec_root_key, root_subject, Validity.for_days(3650))


@pytest.fixture(params=["rsa", "ec"])
def root_pair(request):
    """(clé, certificat) de la racine, pour chaque algorithme"""
    algorithm = request.param
    return (
        request.getfixturevalue(f"{algorithm}_root_key"),
        request.getfixturevalue(f"{algorithm}_root"),
    )


# ==== Certificats serveur ====

@pytest.fixture(scope="session")
def server_csr(rsa_leaf_key, server_subject):
    return csr_builder.build_request(rsa_leaf_key, server_subject, SERVER_SANS)


@pytest.fixture(scope="session")
def server_certificate(server_csr, rsa_root_key, rsa_root):
    return CertificateSigner().sign(server_csr, rsa_root_key, rsa_root)
