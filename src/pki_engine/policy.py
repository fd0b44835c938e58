"""
Politiques d'émission
Configuration explicite de la Root CA et des certificats finaux, et application
des extensions imposées (fonction pure, testable sans signer)
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from . import config
from . import utils
from .exceptions import PolicyViolationError
from .models import BasicConstraints, ExtendedKeyUsage, ExtensionSet, KeyUsage
from .subject import subject_builder


def _usages_from_config(cert_type: str, key: str, enum_class) -> tuple:
    return tuple(enum_class(name) for name in config.EXTENSIONS_CONFIG[cert_type].get(key, ()))


@dataclass(frozen=True)
class RootPolicy:
    """
    Politique de la Root CA

    Attributes:
        max_lifetime_days: Durée de vie maximale acceptée
        path_length: pathLenConstraint de BasicConstraints (0: pas d'intermédiaire)
        hash_algorithm: Algorithme de hachage de l'auto-signature
    """
    max_lifetime_days: int = config.MAX_ROOT_LIFETIME_DAYS
    path_length: Optional[int] = config.EXTENSIONS_CONFIG["root_ca"]["basic_constraints"]["path_length"]
    hash_algorithm: str = config.DEFAULT_HASH_ALGORITHM

    def __post_init__(self):
        if self.max_lifetime_days <= 0:
            raise PolicyViolationError("max_lifetime_days doit être positif", field="max_lifetime_days")
        if self.path_length is not None and self.path_length < 0:
            raise PolicyViolationError("path_length ne peut pas être négatif", field="path_length")
        utils.get_hash_algorithm(self.hash_algorithm)

    @property
    def key_usage(self) -> FrozenSet[KeyUsage]:
        return frozenset(_usages_from_config("root_ca", "key_usage", KeyUsage))


@dataclass(frozen=True)
class SigningPolicy:
    """
    Politique appliquée à chaque certificat final signé par la racine

    Attributes:
        key_usage: KeyUsage imposé (ni keyCertSign ni cRLSign)
        extended_key_usage: ExtendedKeyUsage imposé (serverAuth par défaut)
        leaf_validity_days: Durée de vie quand l'appelant ne fournit pas de Validity
        hash_algorithm: Algorithme de hachage de la signature
    """
    key_usage: FrozenSet[KeyUsage] = field(
        default_factory=lambda: frozenset(_usages_from_config("server", "key_usage", KeyUsage))
    )
    extended_key_usage: Tuple[ExtendedKeyUsage, ...] = field(
        default_factory=lambda: _usages_from_config("server", "extended_key_usage", ExtendedKeyUsage)
    )
    leaf_validity_days: int = config.get_validity_period("server")
    hash_algorithm: str = config.DEFAULT_HASH_ALGORITHM

    def __post_init__(self):
        try:
            key_usage = frozenset(KeyUsage(usage) for usage in self.key_usage)
            extended_key_usage = tuple(dict.fromkeys(ExtendedKeyUsage(usage) for usage in self.extended_key_usage))
        except ValueError as e:
            raise PolicyViolationError(f"Usage de clé inconnu: {e}", field="key_usage") from None

        object.__setattr__(self, "key_usage", key_usage)
        object.__setattr__(self, "extended_key_usage", extended_key_usage)

        if KeyUsage.KEY_CERT_SIGN in key_usage or KeyUsage.CRL_SIGN in key_usage:
            raise PolicyViolationError(
                "Un certificat final ne peut pas porter keyCertSign ou cRLSign",
                field="key_usage"
            )
        if not key_usage:
            raise PolicyViolationError("key_usage ne peut pas être vide", field="key_usage")
        if self.leaf_validity_days <= 0:
            raise PolicyViolationError("leaf_validity_days doit être positif", field="leaf_validity_days")
        utils.get_hash_algorithm(self.hash_algorithm)


# ============================================
# 🛡️ APPLICATION DES EXTENSIONS
# ============================================

def root_extensions(key_identifier: bytes, policy: RootPolicy) -> ExtensionSet:
    """Extensions d'une Root CA: CA=TRUE, keyCertSign + cRLSign, SKI = AKI"""
    return ExtensionSet(
        basic_constraints=BasicConstraints(ca=True, path_length=policy.path_length),
        key_usage=policy.key_usage,
        subject_key_identifier=key_identifier,
        authority_key_identifier=key_identifier
    )


def enforce_leaf_extensions(
        requested: ExtensionSet,
        policy: SigningPolicy,
        subject_key_identifier: Optional[bytes] = None,
        authority_key_identifier: Optional[bytes] = None
) -> ExtensionSet:
    """
    Calcule les extensions effectives d'un certificat final

    Ce qui vient de la demande est ignoré, sauf la liste de SAN qui est
    re-validée entrée par entrée. CA=FALSE est toujours imposé.

    Args:
        requested: Extensions demandées dans le CSR
        policy: Politique de signature
        subject_key_identifier: SKI de la clé du certificat final
        authority_key_identifier: SKI de la racine

    Returns:
        ExtensionSet: Extensions à inscrire dans le certificat

    Raises:
        InvalidSANError: Une entrée SAN du CSR est invalide
    """
    return ExtensionSet(
        basic_constraints=BasicConstraints(ca=False, path_length=None),
        key_usage=policy.key_usage,
        extended_key_usage=policy.extended_key_usage,
        subject_alt_names=subject_builder.build_san_list(requested.subject_alt_names),
        subject_key_identifier=subject_key_identifier,
        authority_key_identifier=authority_key_identifier
    )


__all__ = ['RootPolicy', 'SigningPolicy', 'root_extensions', 'enforce_leaf_extensions']
