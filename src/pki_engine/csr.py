"""
CSR Builder
Construit les demandes de certificat (Certificate Signing Request)
"""

import logging
from typing import Iterable, Optional
from cryptography import x509

from . import config, utils
from .exceptions import KeyMismatchError
from .models import (
    BasicConstraints, CertificateRequest, ExtendedKeyUsage, ExtensionSet, KeyPair, Subject
)
from .subject import subject_builder, SANInput

logger = logging.getLogger(__name__)


class CSRBuilder:
    """
    Assemble et auto-signe un CSR avec la clé du demandeur
    (preuve de possession uniquement, aucune valeur de confiance)
    """

    def __init__(self, hash_algorithm: str = config.DEFAULT_HASH_ALGORITHM):
        self.hash_algorithm = hash_algorithm

    def build_request(
            self,
            key_pair: KeyPair,
            subject: Subject,
            requested_sans: Iterable[SANInput] = (),
            *,
            request_ca: bool = False,
            extended_key_usage: Optional[Iterable[ExtendedKeyUsage]] = None
    ) -> CertificateRequest:
        """
        Construit un CSR

        Args:
            key_pair: Paire de clés du demandeur
            subject: Distinguished Name demandé
            requested_sans: Noms DNS / adresses IP demandés
            request_ca: Demander BasicConstraints CA=TRUE (toujours refusé par le signataire)
            extended_key_usage: ExtendedKeyUsage demandés (remplacés par la politique)

        Returns:
            CertificateRequest: Demande signée par la clé du demandeur

        Raises:
            InvalidSANError: Entrée SAN invalide
            InvalidSubjectError: DN invalide
            KeyMismatchError: La clé publique ne correspond pas à la clé privée
        """
        if not key_pair.matches():
            raise KeyMismatchError(
                "La clé publique embarquée ne correspond pas à la clé privée de signature",
                field="key_pair"
            )

        subject = subject_builder.build(subject)
        sans = subject_builder.build_san_list(requested_sans)

        requested = ExtensionSet(
            basic_constraints=BasicConstraints(ca=True) if request_ca else None,
            extended_key_usage=tuple(ExtendedKeyUsage(usage) for usage in (extended_key_usage or ())),
            subject_alt_names=sans
        )

        csr_builder = x509.CertificateSigningRequestBuilder().subject_name(subject.to_x509_name())
        csr_builder = requested.apply_to(csr_builder)

        csr = csr_builder.sign(key_pair.private_key, utils.get_hash_algorithm(self.hash_algorithm))
        request = CertificateRequest.from_x509(csr)

        logger.info(
            "CSR construit pour %s (%d SAN, clé %s)",
            subject.to_string(), len(sans), key_pair.fingerprint
        )
        return request


csr_builder = CSRBuilder()

__all__ = ['CSRBuilder', 'csr_builder']
