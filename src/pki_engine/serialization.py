"""
Sérialisation PEM / DER
Clés privées (PKCS#8), CSR, certificats et chaînes complètes (fullchain)
"""

import logging
from typing import Iterable, List, Optional, Union
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .exceptions import SerializationError
from .models import Certificate, CertificateRequest, KeyPair, PublicKeyTypes

logger = logging.getLogger(__name__)

Password = Optional[Union[str, bytes]]

_PEM_MARKER = b"-----BEGIN"
_ENCODINGS = {
    "pem": serialization.Encoding.PEM,
    "der": serialization.Encoding.DER,
}


def _encoding(name: str) -> serialization.Encoding:
    try:
        return _ENCODINGS[name.lower()]
    except KeyError:
        raise SerializationError(
            f"Encodage non supporté: {name}. Utilisez 'pem' ou 'der'.",
            field="encoding"
        ) from None


def _password_bytes(password: Password) -> Optional[bytes]:
    if not password:
        return None
    if isinstance(password, str):
        return password.encode()
    return bytes(password)


def _as_bytes(data: Union[str, bytes]) -> bytes:
    if isinstance(data, str):
        return data.encode("ascii", errors="replace")
    return bytes(data)


def _is_pem(data: bytes) -> bool:
    return data.lstrip().startswith(_PEM_MARKER)


# ============================================
# 🔑 CLÉS
# ============================================

def encode_private_key(key_pair: KeyPair, password: Password = None, encoding: str = "pem") -> bytes:
    """
    Encode la clé privée au format PKCS#8

    Args:
        key_pair: Paire de clés
        password: Mot de passe de chiffrement (optionnel, BestAvailableEncryption)
        encoding: "pem" ou "der"

    Returns:
        bytes: Clé privée encodée
    """
    password_bytes = _password_bytes(password)
    if password_bytes:
        encryption = serialization.BestAvailableEncryption(password_bytes)
    else:
        encryption = serialization.NoEncryption()
        logger.debug("Clé privée encodée sans chiffrement (%s)", key_pair.fingerprint)

    return key_pair.private_key.private_bytes(
        encoding=_encoding(encoding),
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption
    )


def decode_private_key(data: Union[str, bytes], password: Password = None) -> KeyPair:
    """
    Décode une clé privée PEM ou DER et reconstruit la paire de clés

    Raises:
        SerializationError: Données illisibles, mot de passe absent ou incorrect
        UnsupportedAlgorithmError: Type de clé autre que RSA / EC
    """
    data = _as_bytes(data)
    password_bytes = _password_bytes(password)

    try:
        if _is_pem(data):
            private_key = serialization.load_pem_private_key(data, password=password_bytes)
        else:
            private_key = serialization.load_der_private_key(data, password=password_bytes)
    except TypeError as e:
        # Mot de passe fourni pour une clé en clair, ou manquant pour une clé chiffrée
        raise SerializationError(f"Mot de passe incohérent avec la clé: {e}", field="password") from None
    except (ValueError, UnsupportedAlgorithm) as e:
        raise SerializationError(
            f"Clé privée illisible (mot de passe incorrect ou clé corrompue): {e}",
            field="private_key"
        ) from None

    return KeyPair.from_private_key(private_key)


def encode_public_key(public_key: Union[KeyPair, PublicKeyTypes], encoding: str = "pem") -> bytes:
    """Encode une clé publique (SubjectPublicKeyInfo)"""
    if isinstance(public_key, KeyPair):
        public_key = public_key.public_key
    return public_key.public_bytes(
        encoding=_encoding(encoding),
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )


def decode_public_key(data: Union[str, bytes]) -> PublicKeyTypes:
    data = _as_bytes(data)
    try:
        if _is_pem(data):
            return serialization.load_pem_public_key(data)
        return serialization.load_der_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise SerializationError(f"Clé publique illisible: {e}", field="public_key") from None


# ============================================
# 📝 CSR
# ============================================

def encode_csr(csr: CertificateRequest, encoding: str = "pem") -> bytes:
    if _encoding(encoding) is serialization.Encoding.DER:
        return csr.der
    return csr.to_x509().public_bytes(serialization.Encoding.PEM)


def decode_csr(data: Union[str, bytes]) -> CertificateRequest:
    """
    Décode un CSR PEM ou DER

    La signature n'est pas vérifiée ici: c'est le rôle du signataire.
    """
    data = _as_bytes(data)
    try:
        if _is_pem(data):
            csr = x509.load_pem_x509_csr(data)
        else:
            csr = x509.load_der_x509_csr(data)
        return CertificateRequest.from_x509(csr)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise SerializationError(f"CSR illisible: {e}", field="csr") from None


# ============================================
# 📜 CERTIFICATS
# ============================================

def encode_certificate(certificate: Certificate, encoding: str = "pem") -> bytes:
    if _encoding(encoding) is serialization.Encoding.DER:
        return certificate.der
    return certificate.to_x509().public_bytes(serialization.Encoding.PEM)


def decode_certificate(data: Union[str, bytes]) -> Certificate:
    """Décode un certificat PEM ou DER"""
    data = _as_bytes(data)
    try:
        if _is_pem(data):
            cert = x509.load_pem_x509_certificate(data)
        else:
            cert = x509.load_der_x509_certificate(data)
        return Certificate.from_x509(cert)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise SerializationError(f"Certificat illisible: {e}", field="certificate") from None


def encode_chain(certificates: Iterable[Certificate]) -> bytes:
    """
    Concatène des certificats PEM, du certificat final vers la racine
    (format "fullchain" attendu par Nginx)
    """
    return b"".join(encode_certificate(cert) for cert in certificates)


def decode_chain(data: Union[str, bytes]) -> List[Certificate]:
    """Décode une suite de certificats PEM, ordre du fichier conservé"""
    data = _as_bytes(data)
    try:
        certs = x509.load_pem_x509_certificates(data)
        return [Certificate.from_x509(cert) for cert in certs]
    except (ValueError, UnsupportedAlgorithm) as e:
        raise SerializationError(f"Chaîne de certificats illisible: {e}", field="chain") from None


__all__ = [
    'encode_private_key',
    'decode_private_key',
    'encode_public_key',
    'decode_public_key',
    'encode_csr',
    'decode_csr',
    'encode_certificate',
    'decode_certificate',
    'encode_chain',
    'decode_chain'
]
