"""
PKI Engine - Moteur d'émission de certificats
==============================================

Une Root CA locale et l'émission de certificats serveur TLS, en Python avec:
- Génération de clés RSA et ECC
- Distinguished Names et Subject Alternative Names validés
- Root CA auto-signée, CSR et signature sous politique d'extensions
- Vérification de chaîne (signature, dates, contraintes, nom d'hôte)
- Sérialisation PEM / DER

Modules principaux:
- config: Configuration globale
- utils: Fonctions utilitaires
- keygen: Génération de clés cryptographiques
- subject: DN et SAN
- root_ca: Émission de la Root CA
- csr: Construction des CSR
- signer: Signature des certificats finaux
- verifier: Vérification de chaîne
- serialization: Encodage PEM / DER

Auteur: PKI Project Team
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "PKI Project Team"

# Imports principaux
from . import config
from . import utils
from .exceptions import (
    PKIError,
    WeakKeyError,
    EntropyUnavailableError,
    InvalidSubjectError,
    InvalidSANError,
    KeyMismatchError,
    ProofOfPossessionError,
    ValidityRangeError,
    PolicyViolationError,
    UnsupportedAlgorithmError,
    SerializationError,
)
from .models import (
    KeyAlgorithm,
    KeyPair,
    Subject,
    SANType,
    SANEntry,
    Validity,
    KeyUsage,
    ExtendedKeyUsage,
    BasicConstraints,
    ExtensionSet,
    CertificateRequest,
    Certificate,
    ErrorKind,
    VerificationResult,
)
from .keygen import KeyPairGenerator, keygen
from .subject import SubjectBuilder, subject_builder
from .policy import RootPolicy, SigningPolicy, enforce_leaf_extensions
from .serials import SerialNumberAllocator, SerialRegistry
from .root_ca import RootCAIssuer, root_ca_issuer, validate_root
from .csr import CSRBuilder, csr_builder
from .signer import CertificateSigner, certificate_signer
from .verifier import ChainVerifier, chain_verifier, hostname_matches
from .authority import RootAuthority, IssuedCertificate, create_root_authority, issue_server_certificate

# Exports
__all__ = [
    'config',
    'utils',
    'PKIError',
    'WeakKeyError',
    'EntropyUnavailableError',
    'InvalidSubjectError',
    'InvalidSANError',
    'KeyMismatchError',
    'ProofOfPossessionError',
    'ValidityRangeError',
    'PolicyViolationError',
    'UnsupportedAlgorithmError',
    'SerializationError',
    'KeyAlgorithm',
    'KeyPair',
    'Subject',
    'SANType',
    'SANEntry',
    'Validity',
    'KeyUsage',
    'ExtendedKeyUsage',
    'BasicConstraints',
    'ExtensionSet',
    'CertificateRequest',
    'Certificate',
    'ErrorKind',
    'VerificationResult',
    'KeyPairGenerator',
    'keygen',
    'SubjectBuilder',
    'subject_builder',
    'RootPolicy',
    'SigningPolicy',
    'enforce_leaf_extensions',
    'SerialNumberAllocator',
    'SerialRegistry',
    'RootCAIssuer',
    'root_ca_issuer',
    'validate_root',
    'CSRBuilder',
    'csr_builder',
    'CertificateSigner',
    'certificate_signer',
    'ChainVerifier',
    'chain_verifier',
    'hostname_matches',
    'RootAuthority',
    'IssuedCertificate',
    'create_root_authority',
    'issue_server_certificate',
]
