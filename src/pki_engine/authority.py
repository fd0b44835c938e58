"""
Workflow d'émission
Enchaîne génération de clés, DN, Root CA, CSR et signature pour un serveur web
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Tuple, Union

from . import config
from .exceptions import InvalidSANError
from .keygen import KeyPairGenerator
from .models import Certificate, CertificateRequest, KeyPair, Subject, Validity
from .policy import RootPolicy, SigningPolicy
from .root_ca import RootCAIssuer
from .csr import csr_builder
from .signer import CertificateSigner, certificate_signer
from .subject import subject_builder, SANInput

logger = logging.getLogger(__name__)

SubjectInput = Union[Mapping[str, str], Subject]


@dataclass(frozen=True)
class RootAuthority:
    """
    Autorité racine: paire de clés + certificat auto-signé
    Valeur explicite passée à chaque émission (aucun singleton global)
    """
    key_pair: KeyPair
    certificate: Certificate

    @property
    def subject(self) -> Subject:
        return self.certificate.subject

    @property
    def key_identifier(self) -> bytes:
        """Clé des allocateurs de numéros de série (SKI de la racine)"""
        return self.certificate.extensions.subject_key_identifier or self.key_pair.key_identifier


@dataclass(frozen=True)
class IssuedCertificate:
    """Résultat d'une émission serveur"""
    key_pair: KeyPair
    request: CertificateRequest
    certificate: Certificate
    root_certificate: Certificate

    @property
    def chain(self) -> Tuple[Certificate, Certificate]:
        """Chaîne complète: certificat final puis racine"""
        return self.certificate, self.root_certificate


# ============================================
# 👑 ROOT CA
# ============================================

def create_root_authority(
        subject: SubjectInput,
        algorithm: str = "rsa",
        parameters: Optional[Union[int, str]] = None,
        validity_days: Optional[int] = None,
        policy: Optional[RootPolicy] = None,
        generator: Optional[KeyPairGenerator] = None
) -> RootAuthority:
    """
    Crée une Root CA complète (clé + certificat auto-signé)

    Args:
        subject: DN de la racine
        algorithm: "rsa" ou "ec"
        parameters: Taille RSA (défaut: 4096) ou nom de courbe
        validity_days: Durée de validité (défaut: config.VALIDITY_PERIODS["root_ca"])
        policy: Politique de la racine
        generator: Générateur de clés (défaut: sans barre de progression)

    Returns:
        RootAuthority: Paire de clés et certificat de la racine
    """
    generator = generator or KeyPairGenerator()
    if parameters is None and str(algorithm).lower() == "rsa":
        parameters = config.RSA_KEY_SIZES["strong"]

    root_subject = subject_builder.build(subject)
    key_pair = generator.generate(algorithm, parameters)
    certificate = RootCAIssuer(policy).issue_root_for_days(key_pair, root_subject, validity_days)

    logger.info("Autorité racine prête: %s", certificate.subject.to_string())
    return RootAuthority(key_pair=key_pair, certificate=certificate)


# ============================================
# 🖥️ CERTIFICATS SERVEUR
# ============================================

def issue_server_certificate(
        authority: RootAuthority,
        hostnames: Iterable[SANInput],
        subject: Optional[SubjectInput] = None,
        algorithm: str = "rsa",
        parameters: Optional[Union[int, str]] = None,
        policy: Optional[SigningPolicy] = None,
        validity: Optional[Validity] = None,
        generator: Optional[KeyPairGenerator] = None,
        signer: Optional[CertificateSigner] = None
) -> IssuedCertificate:
    """
    Émet un certificat serveur TLS signé par la racine

    Args:
        authority: Racine émettrice
        hostnames: Noms DNS et adresses IP à couvrir (au moins un)
        subject: DN du serveur (défaut: CN = premier nom, O = celui de la racine)
        algorithm: "rsa" ou "ec"
        parameters: Taille RSA (défaut: 2048) ou nom de courbe
        policy: Politique de signature
        validity: Fenêtre demandée (bornée par la racine)
        generator: Générateur de clés
        signer: Signataire (défaut: instance du module, allocateurs partagés)

    Returns:
        IssuedCertificate: Clé, CSR, certificat et racine
    """
    generator = generator or KeyPairGenerator()
    signer = signer or certificate_signer

    sans = subject_builder.build_san_list(hostnames)
    if not sans:
        raise InvalidSANError("Au moins un nom d'hôte ou une adresse IP est requis", field="san")

    if subject is None:
        subject = {
            "common_name": sans[0].value,
            "organization": authority.subject.organization,
            "country": authority.subject.country,
        }
    server_subject = subject_builder.build(subject)

    if parameters is None and str(algorithm).lower() == "rsa":
        parameters = config.RSA_KEY_SIZES["minimum"]
    key_pair = generator.generate(algorithm, parameters)

    request = csr_builder.build_request(key_pair, server_subject, sans)
    certificate = signer.sign(request, authority.key_pair, authority.certificate, policy, validity)

    return IssuedCertificate(
        key_pair=key_pair,
        request=request,
        certificate=certificate,
        root_certificate=authority.certificate
    )


__all__ = ['RootAuthority', 'IssuedCertificate', 'create_root_authority', 'issue_server_certificate']
