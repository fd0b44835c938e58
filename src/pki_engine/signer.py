"""
Certificate Signer
Signe les CSR avec la clé de la Root CA et produit les certificats finaux
"""

import logging
from typing import Optional
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm

from . import utils
from .exceptions import (
    KeyMismatchError, PolicyViolationError, ProofOfPossessionError, ValidityRangeError
)
from .keygen import check_public_key_strength
from .models import (
    Certificate, CertificateRequest, ExtensionSet, KeyPair, Subject, Validity, public_key_der
)
from .policy import SigningPolicy, enforce_leaf_extensions
from .root_ca import validate_root
from .serials import SerialRegistry
from .subject import subject_builder

logger = logging.getLogger(__name__)


class CertificateSigner:
    """
    Émetteur de certificats finaux

    La racine (clé + certificat) est passée explicitement à chaque appel.
    Le seul état partagé est le registre des allocateurs de numéros de série.
    """

    def __init__(self, registry: Optional[SerialRegistry] = None):
        self.registry = registry or SerialRegistry()

    def sign(
            self,
            csr: CertificateRequest,
            root_key_pair: KeyPair,
            root_certificate: Certificate,
            policy: Optional[SigningPolicy] = None,
            validity: Optional[Validity] = None
    ) -> Certificate:
        """
        Signe un CSR

        Args:
            csr: Demande du client
            root_key_pair: Paire de clés de la racine
            root_certificate: Certificat de la racine
            policy: Politique d'émission (défaut: SigningPolicy())
            validity: Fenêtre demandée (défaut: policy.leaf_validity_days à partir de maintenant)

        Returns:
            Certificate: Certificat final signé par la racine

        Raises:
            ProofOfPossessionError: La signature du CSR est invalide
            WeakKeyError: La clé du CSR est trop faible
            KeyMismatchError: La clé de la racine ne correspond pas à son certificat
            PolicyViolationError: Le certificat racine ne peut pas signer
            ValidityRangeError: Fenêtre vide une fois bornée par la racine
            InvalidSubjectError / InvalidSANError: DN ou SAN du CSR invalide
        """
        policy = policy or SigningPolicy()

        # 1. Preuve de possession: tout le reste est relu depuis le DER vérifié
        request = self._load_verified_request(csr)
        leaf_public_key = request.public_key()
        check_public_key_strength(leaf_public_key)

        if not root_key_pair.matches() or root_key_pair.public_key_der != root_certificate.public_key_der:
            raise KeyMismatchError(
                "La clé privée fournie ne correspond pas au certificat racine",
                field="root_key_pair"
            )

        root_check = validate_root(root_certificate)
        if not root_check.valid:
            raise PolicyViolationError(
                "Le certificat racine n'est pas une racine auto-émise autorisée à signer ("
                + ", ".join(reason.value for reason in root_check.reasons) + ")",
                field="root_certificate"
            )

        subject = subject_builder.build(Subject.from_x509_name(request.subject))

        # 2. Extensions imposées par la politique
        root_key_identifier = (
            root_certificate.extensions.subject_key_identifier or root_key_pair.key_identifier
        )
        extensions = enforce_leaf_extensions(
            ExtensionSet.from_x509_extensions(request.extensions),
            policy,
            subject_key_identifier=x509.SubjectKeyIdentifier.from_public_key(leaf_public_key).digest,
            authority_key_identifier=root_key_identifier
        )

        # 3. Numéro de série propre à la racine
        serial_number = self.registry.allocator_for(root_key_identifier).allocate()

        # 4. Validité bornée par celle de la racine
        validity = self._clamp_validity(validity, policy, root_certificate)

        root_x509 = root_certificate.to_x509()
        cert_builder = (
            x509.CertificateBuilder()
            .subject_name(subject.to_x509_name())
            .issuer_name(root_x509.subject)
            .public_key(leaf_public_key)
            .serial_number(serial_number)
            .not_valid_before(validity.not_before)
            .not_valid_after(validity.not_after)
        )
        cert_builder = extensions.apply_to(cert_builder)

        # 5. Signature par la clé de la racine
        signed = cert_builder.sign(
            private_key=root_key_pair.private_key,
            algorithm=utils.get_hash_algorithm(policy.hash_algorithm)
        )
        certificate = Certificate.from_x509(signed)

        logger.info(
            "Certificat émis: %s (SN: %X, SAN: %s, jusqu'au %s)",
            subject.to_string(),
            serial_number,
            ", ".join(str(san) for san in extensions.subject_alt_names) or "-",
            utils.format_datetime(certificate.validity.not_after)
        )
        return certificate

    @staticmethod
    def _load_verified_request(csr: CertificateRequest) -> x509.CertificateSigningRequest:
        try:
            request = x509.load_der_x509_csr(csr.der)
        except ValueError as e:
            raise ProofOfPossessionError(f"CSR illisible: {e}", field="csr") from None

        try:
            signature_ok = request.is_signature_valid
        except (ValueError, UnsupportedAlgorithm) as e:
            raise ProofOfPossessionError(f"Signature du CSR invérifiable: {e}", field="csr") from None

        if not signature_ok:
            raise ProofOfPossessionError(
                "La signature du CSR ne correspond pas à sa clé publique",
                field="csr"
            )

        if public_key_der(request.public_key()) != csr.public_key_der:
            raise ProofOfPossessionError(
                "La clé publique du CSR ne correspond pas à son encodage signé",
                field="csr"
            )
        return request

    @staticmethod
    def _clamp_validity(
            requested: Optional[Validity],
            policy: SigningPolicy,
            root_certificate: Certificate
    ) -> Validity:
        if requested is None:
            requested = Validity.for_days(policy.leaf_validity_days)

        root_not_after = root_certificate.validity.not_after
        not_after = min(requested.not_after, root_not_after)
        if not_after <= requested.not_before:
            raise ValidityRangeError(
                "La fenêtre de validité demandée est vide une fois bornée par la racine "
                f"(racine valide jusqu'au {utils.format_datetime(root_not_after)})",
                field="validity"
            )
        if not_after != requested.not_after:
            logger.warning(
                "Validité ramenée au %s (fin de validité de la racine)",
                utils.format_datetime(not_after)
            )
        return Validity(requested.not_before, not_after)


certificate_signer = CertificateSigner()

__all__ = ['CertificateSigner', 'certificate_signer']
