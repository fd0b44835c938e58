"""
Chain Verifier
Vérifie la relation racine → certificat final (signature, dates, contraintes, nom d'hôte)
"""

import ipaddress
import logging
from datetime import datetime
from typing import Iterable, List, Optional
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from . import utils
from .models import Certificate, ErrorKind, SANEntry, SANType, VerificationResult

logger = logging.getLogger(__name__)


def _verify_signature(leaf: Certificate, root: Certificate) -> bool:
    """Vérifie la signature du TBS du certificat final avec la clé publique de la racine"""
    cert = leaf.to_x509()
    public_key = root.public_key()
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(
                cert.signature,
                cert.tbs_certificate_bytes,
                padding.PKCS1v15(),
                cert.signature_hash_algorithm
            )
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(
                cert.signature,
                cert.tbs_certificate_bytes,
                ec.ECDSA(cert.signature_hash_algorithm)
            )
        else:
            return False
    except (InvalidSignature, UnsupportedAlgorithm, TypeError, ValueError):
        return False
    return True


# ============================================
# 🌐 CORRESPONDANCE DE NOM D'HÔTE
# ============================================

def _match_dns(pattern: str, hostname: str) -> bool:
    pattern = pattern.rstrip(".").lower()
    hostname = hostname.rstrip(".").lower()

    if not pattern.startswith("*."):
        return pattern == hostname

    # Le joker couvre exactement un label, jamais zéro ni plusieurs
    host_label, sep, host_rest = hostname.partition(".")
    return bool(sep) and bool(host_label) and host_rest == pattern[2:]


def hostname_matches(sans: Iterable[SANEntry], hostname: str) -> bool:
    """
    Teste si un nom d'hôte (DNS ou adresse IP) est couvert par une liste de SAN

    Un nom d'hôte qui se lit comme une adresse IP ne correspond qu'aux entrées IP.
    Aucun repli sur le Common Name.
    """
    text = hostname.strip().strip("[]")
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        address = None

    for san in sans:
        if address is not None:
            if san.kind is SANType.IP and san.ip_address == address:
                return True
        elif san.kind is SANType.DNS:
            host = text
            if not host.isascii():
                try:
                    host = host.encode("idna").decode("ascii")
                except UnicodeError:
                    return False
            if _match_dns(san.value, host):
                return True
    return False


# ============================================
# 🔗 VÉRIFICATION DE CHAÎNE
# ============================================

class ChainVerifier:
    """
    Vérification d'une chaîne à deux niveaux (racine → certificat final)

    Toutes les vérifications sont évaluées et tous les échecs sont rapportés.
    Un échec n'est jamais une exception.
    """

    def verify(
            self,
            leaf: Certificate,
            root: Certificate,
            hostname: Optional[str] = None,
            at_time: Optional[datetime] = None
    ) -> VerificationResult:
        """
        Vérifie un certificat final contre une racine de confiance

        Args:
            leaf: Certificat à vérifier
            root: Certificat de la racine
            hostname: Nom d'hôte ou adresse IP attendu (optionnel)
            at_time: Instant de vérification (défaut: maintenant)

        Returns:
            VerificationResult: valid + liste des ErrorKind en échec
        """
        at_time = utils.to_utc(at_time) if at_time is not None else utils.now_utc()
        reasons: List[ErrorKind] = []

        if not _verify_signature(leaf, root):
            reasons.append(ErrorKind.SIGNATURE_INVALID)

        if leaf.issuer_subject != root.subject:
            reasons.append(ErrorKind.ISSUER_MISMATCH)

        leaf_aki = leaf.extensions.authority_key_identifier
        root_ski = root.extensions.subject_key_identifier
        if leaf_aki is not None and root_ski is not None and leaf_aki != root_ski:
            reasons.append(ErrorKind.AUTHORITY_KEY_MISMATCH)

        if at_time < leaf.validity.not_before:
            reasons.append(ErrorKind.LEAF_NOT_YET_VALID)
        elif at_time > leaf.validity.not_after:
            reasons.append(ErrorKind.LEAF_EXPIRED)

        if at_time < root.validity.not_before:
            reasons.append(ErrorKind.ROOT_NOT_YET_VALID)
        elif at_time > root.validity.not_after:
            reasons.append(ErrorKind.ROOT_EXPIRED)

        if not root.is_ca:
            reasons.append(ErrorKind.ROOT_NOT_CA)

        # verify(root, root): la racine est son propre certificat final
        if leaf.is_ca and leaf.der != root.der:
            reasons.append(ErrorKind.LEAF_IS_CA)

        if hostname is not None and not hostname_matches(leaf.extensions.subject_alt_names, hostname):
            reasons.append(ErrorKind.HOSTNAME_MISMATCH)

        result = VerificationResult.from_reasons(reasons)
        logger.debug(
            "Vérification de %s (SN: %X): %s",
            leaf.subject.to_string(),
            leaf.serial_number,
            "valide" if result.valid else ", ".join(reason.value for reason in result.reasons)
        )
        return result


chain_verifier = ChainVerifier()

__all__ = ['ChainVerifier', 'chain_verifier', 'hostname_matches']
