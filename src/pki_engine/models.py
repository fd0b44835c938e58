"""
Modèles de données pour le moteur PKI
Classes immuables représentant les entités manipulées par l'émission et la vérification
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple, FrozenSet, Union, Iterable
from cryptography import x509
from cryptography.x509.oid import NameOID, ExtendedKeyUsageOID, SignatureAlgorithmOID
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa, ec

from . import utils
from .exceptions import UnsupportedAlgorithmError, ValidityRangeError

logger = logging.getLogger(__name__)

# Types de clés supportés
PrivateKeyTypes = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
PublicKeyTypes = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]


def public_key_der(public_key: PublicKeyTypes) -> bytes:
    """Encode une clé publique en DER (SubjectPublicKeyInfo)"""
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )


# ============================================
# 🔑 CLÉS
# ============================================

class KeyAlgorithm(str, Enum):
    """Algorithmes de clés asymétriques supportés"""
    RSA = "rsa"
    EC = "ec"

    @classmethod
    def parse(cls, value: Union[str, "KeyAlgorithm"]) -> "KeyAlgorithm":
        if isinstance(value, cls):
            return value
        aliases = {"rsa": cls.RSA, "ec": cls.EC, "ecc": cls.EC, "ecdsa": cls.EC}
        try:
            return aliases[str(value).strip().lower()]
        except KeyError:
            raise UnsupportedAlgorithmError(
                f"Type de clé non supporté: {value}. Utilisez 'rsa' ou 'ec'.",
                field="algorithm"
            ) from None


@dataclass(frozen=True, eq=False)
class KeyPair:
    """
    Paire de clés asymétriques

    La clé privée n'apparaît jamais dans repr(): elle ne peut sortir que par
    serialization.encode_private_key.
    """
    algorithm: KeyAlgorithm
    parameters: Union[int, str]
    private_key: PrivateKeyTypes = field(repr=False)
    public_key: PublicKeyTypes = field(repr=False)

    @classmethod
    def from_private_key(cls, private_key: PrivateKeyTypes) -> "KeyPair":
        """Construit une paire à partir d'une clé privée chargée"""
        if isinstance(private_key, rsa.RSAPrivateKey):
            return cls(KeyAlgorithm.RSA, private_key.key_size, private_key, private_key.public_key())
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            return cls(KeyAlgorithm.EC, private_key.curve.name, private_key, private_key.public_key())
        raise UnsupportedAlgorithmError(
            f"Type de clé privée non supporté: {type(private_key).__name__}",
            field="private_key"
        )

    @property
    def public_key_der(self) -> bytes:
        return public_key_der(self.public_key)

    @property
    def fingerprint(self) -> str:
        """Empreinte SHA-256 de la clé publique"""
        return utils.calculate_fingerprint(self.public_key_der)

    @property
    def key_identifier(self) -> bytes:
        """Identifiant de clé (RFC 5280, méthode 1: SHA-1 de la clé publique)"""
        return x509.SubjectKeyIdentifier.from_public_key(self.public_key).digest

    def matches(self) -> bool:
        """True si la clé publique correspond bien à la clé privée"""
        return public_key_der(self.private_key.public_key()) == self.public_key_der

    def _private_der(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return (
            self.algorithm == other.algorithm
            and self.parameters == other.parameters
            and self.public_key_der == other.public_key_der
            and self._private_der() == other._private_der()
        )

    def __hash__(self) -> int:
        return hash((self.algorithm, self.parameters, self.public_key_der))


# ============================================
# 👤 SUJET ET SAN
# ============================================

# Ordre d'encodage des attributs du DN (du plus général au plus précis)
_SUBJECT_OIDS = (
    ("country", NameOID.COUNTRY_NAME),
    ("state", NameOID.STATE_OR_PROVINCE_NAME),
    ("locality", NameOID.LOCALITY_NAME),
    ("organization", NameOID.ORGANIZATION_NAME),
    ("organizational_unit", NameOID.ORGANIZATIONAL_UNIT_NAME),
    ("common_name", NameOID.COMMON_NAME),
)

SUBJECT_FIELDS = tuple(name for name, _ in _SUBJECT_OIDS)


@dataclass(frozen=True)
class Subject:
    """
    Distinguished Name (DN) X.509
    Seul le common_name est obligatoire (validé par SubjectBuilder)
    """
    common_name: str
    organization: Optional[str] = None
    organizational_unit: Optional[str] = None
    locality: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in SUBJECT_FIELDS}

    def to_x509_name(self) -> x509.Name:
        attributes = [
            x509.NameAttribute(oid, getattr(self, name))
            for name, oid in _SUBJECT_OIDS
            if getattr(self, name)
        ]
        return x509.Name(attributes)

    @classmethod
    def from_x509_name(cls, name: x509.Name) -> "Subject":
        values = {}
        for field_name, oid in _SUBJECT_OIDS:
            attributes = name.get_attributes_for_oid(oid)
            values[field_name] = str(attributes[0].value) if attributes else None
        values["common_name"] = values["common_name"] or ""
        return cls(**values)

    def to_string(self) -> str:
        """Convertit le DN en chaîne RFC4514"""
        return self.to_x509_name().rfc4514_string()


class SANType(str, Enum):
    DNS = "DNS"
    IP = "IP"


@dataclass(frozen=True)
class SANEntry:
    """
    Entrée Subject Alternative Name: DNSName(str) | IPAddress(octets)
    La valeur IP est conservée sous sa forme textuelle canonique
    """
    kind: SANType
    value: str

    @classmethod
    def dns(cls, name: str) -> "SANEntry":
        return cls(SANType.DNS, name)

    @classmethod
    def ip(cls, address) -> "SANEntry":
        return cls(SANType.IP, str(ipaddress.ip_address(address)))

    @property
    def ip_address(self) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
        if self.kind is not SANType.IP:
            raise TypeError(f"{self} n'est pas une adresse IP")
        return ipaddress.ip_address(self.value)

    @property
    def packed(self) -> bytes:
        return self.ip_address.packed

    def to_x509(self) -> x509.GeneralName:
        if self.kind is SANType.IP:
            return x509.IPAddress(self.ip_address)
        return x509.DNSName(self.value)

    @classmethod
    def from_x509(cls, general_name: x509.GeneralName) -> Optional["SANEntry"]:
        """Convertit un GeneralName; None pour les types non gérés (URI, e-mail...)"""
        if isinstance(general_name, x509.DNSName):
            return cls.dns(general_name.value)
        if isinstance(general_name, x509.IPAddress):
            return cls.ip(general_name.value)
        return None

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"


# ============================================
# 📅 VALIDITÉ
# ============================================

@dataclass(frozen=True)
class Validity:
    """
    Fenêtre de validité en UTC, à la seconde près
    Invariant: not_before < not_after
    """
    not_before: datetime
    not_after: datetime

    def __post_init__(self):
        object.__setattr__(self, "not_before", utils.to_utc(self.not_before))
        object.__setattr__(self, "not_after", utils.to_utc(self.not_after))
        if self.not_after <= self.not_before:
            raise ValidityRangeError(
                f"not_after ({self.not_after.isoformat()}) doit être strictement "
                f"postérieur à not_before ({self.not_before.isoformat()})",
                field="not_after"
            )

    @classmethod
    def for_days(cls, days: int, start: Optional[datetime] = None) -> "Validity":
        """Fenêtre de `days` jours démarrant à `start` (défaut: maintenant)"""
        not_before = utils.to_utc(start) if start is not None else utils.now_utc()
        return cls(not_before, not_before + timedelta(days=days))

    @property
    def lifetime(self) -> timedelta:
        return self.not_after - self.not_before

    def contains(self, instant: datetime) -> bool:
        instant = utils.to_utc(instant)
        return self.not_before <= instant <= self.not_after


# ============================================
# 🧩 EXTENSIONS X.509
# ============================================

class KeyUsage(str, Enum):
    """Bits de l'extension KeyUsage (noms identiques à x509.KeyUsage)"""
    DIGITAL_SIGNATURE = "digital_signature"
    CONTENT_COMMITMENT = "content_commitment"
    KEY_ENCIPHERMENT = "key_encipherment"
    DATA_ENCIPHERMENT = "data_encipherment"
    KEY_AGREEMENT = "key_agreement"
    KEY_CERT_SIGN = "key_cert_sign"
    CRL_SIGN = "crl_sign"


class ExtendedKeyUsage(str, Enum):
    SERVER_AUTH = "server_auth"
    CLIENT_AUTH = "client_auth"
    CODE_SIGNING = "code_signing"
    EMAIL_PROTECTION = "email_protection"
    TIME_STAMPING = "time_stamping"
    OCSP_SIGNING = "ocsp_signing"

    @property
    def oid(self) -> x509.ObjectIdentifier:
        return _EKU_OIDS[self]


_EKU_OIDS = {
    ExtendedKeyUsage.SERVER_AUTH: ExtendedKeyUsageOID.SERVER_AUTH,
    ExtendedKeyUsage.CLIENT_AUTH: ExtendedKeyUsageOID.CLIENT_AUTH,
    ExtendedKeyUsage.CODE_SIGNING: ExtendedKeyUsageOID.CODE_SIGNING,
    ExtendedKeyUsage.EMAIL_PROTECTION: ExtendedKeyUsageOID.EMAIL_PROTECTION,
    ExtendedKeyUsage.TIME_STAMPING: ExtendedKeyUsageOID.TIME_STAMPING,
    ExtendedKeyUsage.OCSP_SIGNING: ExtendedKeyUsageOID.OCSP_SIGNING,
}

_EKU_BY_OID = {oid: usage for usage, oid in _EKU_OIDS.items()}


@dataclass(frozen=True)
class BasicConstraints:
    ca: bool
    path_length: Optional[int] = None


@dataclass(frozen=True)
class ExtensionSet:
    """
    Ensemble d'extensions d'un certificat ou d'une demande
    """
    basic_constraints: Optional[BasicConstraints] = None
    key_usage: FrozenSet[KeyUsage] = frozenset()
    extended_key_usage: Tuple[ExtendedKeyUsage, ...] = ()
    subject_alt_names: Tuple[SANEntry, ...] = ()
    authority_key_identifier: Optional[bytes] = None
    subject_key_identifier: Optional[bytes] = None

    @property
    def is_ca(self) -> bool:
        return self.basic_constraints is not None and self.basic_constraints.ca

    @classmethod
    def from_x509_extensions(cls, extensions: x509.Extensions) -> "ExtensionSet":
        """
        Lit les extensions gérées par le moteur depuis un objet cryptography

        Args:
            extensions: Extensions d'un certificat ou d'un CSR

        Returns:
            ExtensionSet: Extensions reconnues (les autres sont ignorées)
        """
        def _get(ext_class):
            try:
                return extensions.get_extension_for_class(ext_class).value
            except x509.ExtensionNotFound:
                return None

        values = {}

        bc = _get(x509.BasicConstraints)
        if bc is not None:
            values["basic_constraints"] = BasicConstraints(ca=bc.ca, path_length=bc.path_length)

        ku = _get(x509.KeyUsage)
        if ku is not None:
            values["key_usage"] = frozenset(
                usage for usage in KeyUsage if getattr(ku, usage.value)
            )

        eku = _get(x509.ExtendedKeyUsage)
        if eku is not None:
            usages = []
            for oid in eku:
                if oid in _EKU_BY_OID:
                    usages.append(_EKU_BY_OID[oid])
                else:
                    logger.debug("ExtendedKeyUsage ignoré: %s", oid.dotted_string)
            values["extended_key_usage"] = tuple(usages)

        san = _get(x509.SubjectAlternativeName)
        if san is not None:
            entries = (SANEntry.from_x509(name) for name in san)
            values["subject_alt_names"] = tuple(entry for entry in entries if entry is not None)

        aki = _get(x509.AuthorityKeyIdentifier)
        if aki is not None:
            values["authority_key_identifier"] = aki.key_identifier

        ski = _get(x509.SubjectKeyIdentifier)
        if ski is not None:
            values["subject_key_identifier"] = ski.digest

        return cls(**values)

    def apply_to(self, builder):
        """
        Ajoute les extensions à un CertificateBuilder ou CertificateSigningRequestBuilder

        BasicConstraints et KeyUsage sont critiques, les autres non.
        """
        if self.basic_constraints is not None:
            builder = builder.add_extension(
                x509.BasicConstraints(
                    ca=self.basic_constraints.ca,
                    path_length=self.basic_constraints.path_length if self.basic_constraints.ca else None
                ),
                critical=True
            )

        if self.key_usage:
            builder = builder.add_extension(key_usage_to_x509(self.key_usage), critical=True)

        if self.extended_key_usage:
            builder = builder.add_extension(
                x509.ExtendedKeyUsage([usage.oid for usage in self.extended_key_usage]),
                critical=False
            )

        if self.subject_alt_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([entry.to_x509() for entry in self.subject_alt_names]),
                critical=False
            )

        if self.subject_key_identifier is not None:
            builder = builder.add_extension(
                x509.SubjectKeyIdentifier(self.subject_key_identifier),
                critical=False
            )

        if self.authority_key_identifier is not None:
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier(
                    key_identifier=self.authority_key_identifier,
                    authority_cert_issuer=None,
                    authority_cert_serial_number=None
                ),
                critical=False
            )

        return builder


def key_usage_to_x509(usages: Iterable[KeyUsage]) -> x509.KeyUsage:
    """Convertit un ensemble de KeyUsage en extension cryptography"""
    flags = {usage.value: False for usage in KeyUsage}
    for usage in usages:
        flags[KeyUsage(usage).value] = True
    return x509.KeyUsage(encipher_only=False, decipher_only=False, **flags)


# ============================================
# 📜 CSR ET CERTIFICATS
# ============================================

_SIGNATURE_ALGORITHM_NAMES = {
    SignatureAlgorithmOID.RSA_WITH_SHA256: "sha256WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "sha384WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "sha512WithRSAEncryption",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ecdsa-with-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ecdsa-with-SHA384",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "ecdsa-with-SHA512",
}


def signature_algorithm_name(oid: x509.ObjectIdentifier) -> str:
    return _SIGNATURE_ALGORITHM_NAMES.get(oid, oid.dotted_string)


@dataclass(frozen=True)
class CertificateRequest:
    """
    Demande de certificat (CSR)
    Sa signature ne prouve que la possession de la clé privée: aucune valeur de confiance
    """
    subject: Subject
    public_key_der: bytes = field(repr=False)
    requested_extensions: ExtensionSet
    der: bytes = field(repr=False)

    @classmethod
    def from_x509(cls, csr: x509.CertificateSigningRequest) -> "CertificateRequest":
        return cls(
            subject=Subject.from_x509_name(csr.subject),
            public_key_der=public_key_der(csr.public_key()),
            requested_extensions=ExtensionSet.from_x509_extensions(csr.extensions),
            der=csr.public_bytes(serialization.Encoding.DER)
        )

    def to_x509(self) -> x509.CertificateSigningRequest:
        return x509.load_der_x509_csr(self.der)

    def public_key(self) -> PublicKeyTypes:
        return serialization.load_der_public_key(self.public_key_der)


@dataclass(frozen=True)
class Certificate:
    """
    Certificat X.509 signé

    Toujours construit en relisant l'encodage DER signé: chaque champ est
    exactement ce que porte l'encodage.
    """
    subject: Subject
    issuer_subject: Subject
    public_key_der: bytes = field(repr=False)
    serial_number: int
    validity: Validity
    extensions: ExtensionSet
    signature: bytes = field(repr=False)
    signature_algorithm: str
    der: bytes = field(repr=False)

    @classmethod
    def from_x509(cls, cert: x509.Certificate) -> "Certificate":
        return cls(
            subject=Subject.from_x509_name(cert.subject),
            issuer_subject=Subject.from_x509_name(cert.issuer),
            public_key_der=public_key_der(cert.public_key()),
            serial_number=cert.serial_number,
            validity=Validity(cert.not_valid_before_utc, cert.not_valid_after_utc),
            extensions=ExtensionSet.from_x509_extensions(cert.extensions),
            signature=cert.signature,
            signature_algorithm=signature_algorithm_name(cert.signature_algorithm_oid),
            der=cert.public_bytes(serialization.Encoding.DER)
        )

    def to_x509(self) -> x509.Certificate:
        return x509.load_der_x509_certificate(self.der)

    def public_key(self) -> PublicKeyTypes:
        return serialization.load_der_public_key(self.public_key_der)

    @property
    def is_self_issued(self) -> bool:
        return self.subject == self.issuer_subject

    @property
    def is_ca(self) -> bool:
        return self.extensions.is_ca

    @property
    def fingerprint(self) -> str:
        """Empreinte SHA-256 du certificat"""
        return utils.calculate_fingerprint(self.der)


# ============================================
# 🔍 RÉSULTAT DE VÉRIFICATION
# ============================================

class ErrorKind(str, Enum):
    """Motifs d'échec de la vérification de chaîne"""
    SIGNATURE_INVALID = "signature_invalid"
    ISSUER_MISMATCH = "issuer_mismatch"
    AUTHORITY_KEY_MISMATCH = "authority_key_mismatch"
    LEAF_NOT_YET_VALID = "leaf_not_yet_valid"
    LEAF_EXPIRED = "leaf_expired"
    ROOT_NOT_YET_VALID = "root_not_yet_valid"
    ROOT_EXPIRED = "root_expired"
    ROOT_NOT_CA = "root_not_ca"
    LEAF_IS_CA = "leaf_is_ca"
    HOSTNAME_MISMATCH = "hostname_mismatch"

    @property
    def description(self) -> str:
        return _ERROR_DESCRIPTIONS[self]


_ERROR_DESCRIPTIONS = {
    ErrorKind.SIGNATURE_INVALID: "La signature du certificat ne se vérifie pas avec la clé de la racine",
    ErrorKind.ISSUER_MISMATCH: "L'émetteur du certificat n'est pas le sujet de la racine",
    ErrorKind.AUTHORITY_KEY_MISMATCH: "L'AuthorityKeyIdentifier ne correspond pas à la clé de la racine",
    ErrorKind.LEAF_NOT_YET_VALID: "Le certificat n'est pas encore valide",
    ErrorKind.LEAF_EXPIRED: "Le certificat a expiré",
    ErrorKind.ROOT_NOT_YET_VALID: "La racine n'est pas encore valide",
    ErrorKind.ROOT_EXPIRED: "La racine a expiré",
    ErrorKind.ROOT_NOT_CA: "La racine n'a pas BasicConstraints CA=TRUE",
    ErrorKind.LEAF_IS_CA: "Le certificat final a BasicConstraints CA=TRUE",
    ErrorKind.HOSTNAME_MISMATCH: "Aucun SAN ne correspond au nom d'hôte demandé",
}


@dataclass(frozen=True)
class VerificationResult:
    """
    Résultat de ChainVerifier.verify
    Un échec est un résultat attendu: l'appelant teste `.valid`
    """
    valid: bool
    reasons: Tuple[ErrorKind, ...] = ()

    @classmethod
    def from_reasons(cls, reasons: Iterable[ErrorKind]) -> "VerificationResult":
        reasons = tuple(reasons)
        return cls(valid=not reasons, reasons=reasons)


__all__ = [
    'PrivateKeyTypes',
    'PublicKeyTypes',
    'public_key_der',
    'KeyAlgorithm',
    'KeyPair',
    'SUBJECT_FIELDS',
    'Subject',
    'SANType',
    'SANEntry',
    'Validity',
    'KeyUsage',
    'ExtendedKeyUsage',
    'BasicConstraints',
    'ExtensionSet',
    'key_usage_to_x509',
    'signature_algorithm_name',
    'CertificateRequest',
    'Certificate',
    'ErrorKind',
    'VerificationResult'
]
