"""
Root CA (Certificate Authority) Issuer
Construit et auto-signe le certificat de l'autorité racine
"""

import logging
from datetime import timedelta
from typing import Optional
from cryptography import x509

from . import config, utils
from .exceptions import KeyMismatchError, ValidityRangeError
from .models import KeyPair, KeyUsage, Subject, Validity, Certificate, ErrorKind, VerificationResult
from .policy import RootPolicy, root_extensions
from .subject import subject_builder

logger = logging.getLogger(__name__)


class RootCAIssuer:
    """
    Émetteur de la Root CA (certificat auto-signé, issuer == subject)
    """

    def __init__(self, policy: Optional[RootPolicy] = None):
        """
        Args:
            policy: Politique de la racine (défaut: RootPolicy())
        """
        self.policy = policy or RootPolicy()

    # ============================================
    # 👑 CRÉATION ROOT CA
    # ============================================

    def issue_root(self, key_pair: KeyPair, subject: Subject, validity: Validity) -> Certificate:
        """
        Construit un certificat X.509v3 auto-signé pour la Root CA

        Args:
            key_pair: Paire de clés de la racine
            subject: Distinguished Name (sujet = émetteur)
            validity: Fenêtre de validité

        Returns:
            Certificate: Certificat racine signé

        Raises:
            ValidityRangeError: Fenêtre vide ou plus longue que policy.max_lifetime_days
            KeyMismatchError: La paire de clés est incohérente
            InvalidSubjectError: DN invalide
        """
        if validity.not_after <= validity.not_before:
            raise ValidityRangeError("not_after doit être postérieur à not_before", field="not_after")

        max_lifetime = timedelta(days=self.policy.max_lifetime_days)
        if validity.lifetime > max_lifetime:
            raise ValidityRangeError(
                f"Durée de vie de la racine ({validity.lifetime.days} jours) supérieure "
                f"au maximum autorisé ({self.policy.max_lifetime_days} jours)",
                field="validity"
            )

        if not key_pair.matches():
            raise KeyMismatchError(
                "La clé publique de la paire ne correspond pas à sa clé privée",
                field="key_pair"
            )

        subject = subject_builder.build(subject)
        name = subject.to_x509_name()
        serial_number = utils.generate_serial_number()

        # Sujet = émetteur pour une Root CA
        cert_builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key_pair.public_key)
            .serial_number(serial_number)
            .not_valid_before(validity.not_before)
            .not_valid_after(validity.not_after)
        )

        # Extensions X.509v3: BasicConstraints, KeyUsage, SKI, AKI
        extensions = root_extensions(key_pair.key_identifier, self.policy)
        cert_builder = extensions.apply_to(cert_builder)

        # Auto-signature avec la clé privée de la racine
        signed = cert_builder.sign(
            private_key=key_pair.private_key,
            algorithm=utils.get_hash_algorithm(self.policy.hash_algorithm)
        )
        certificate = Certificate.from_x509(signed)

        logger.info(
            "Root CA émise: %s (SN: %X, jusqu'au %s)",
            subject.to_string(), serial_number, utils.format_datetime(certificate.validity.not_after)
        )
        return certificate

    def issue_root_for_days(
            self,
            key_pair: KeyPair,
            subject: Subject,
            validity_days: Optional[int] = None
    ) -> Certificate:
        """Raccourci: validité de `validity_days` jours à partir de maintenant"""
        if validity_days is None:
            validity_days = config.get_validity_period("root_ca")
        return self.issue_root(key_pair, subject, Validity.for_days(validity_days))


# ============================================
# 🔍 VALIDATION ROOT CA
# ============================================

def validate_root(certificate: Certificate) -> VerificationResult:
    """
    Vérifie qu'un certificat peut servir de racine d'émission:
    auto-émis, BasicConstraints CA=TRUE et KeyUsage keyCertSign

    Returns:
        VerificationResult: ISSUER_MISMATCH si issuer != subject,
            ROOT_NOT_CA si CA ou keyCertSign manque
    """
    checks = []
    if not certificate.is_self_issued:
        checks.append(ErrorKind.ISSUER_MISMATCH)
    if not certificate.is_ca:
        checks.append(ErrorKind.ROOT_NOT_CA)
    elif certificate.extensions.key_usage and KeyUsage.KEY_CERT_SIGN not in certificate.extensions.key_usage:
        checks.append(ErrorKind.ROOT_NOT_CA)
    return VerificationResult.from_reasons(checks)


root_ca_issuer = RootCAIssuer()

__all__ = ['RootCAIssuer', 'root_ca_issuer', 'validate_root']
