"""
Générateur de paires de clés (RSA et ECC)
Applique la politique de taille minimale et de courbes approuvées
"""

import logging
from typing import Optional, Union
from cryptography.exceptions import InternalError
from cryptography.hazmat.primitives.asymmetric import rsa, ec
from tqdm import tqdm

from . import config
from . import utils
from .exceptions import WeakKeyError, EntropyUnavailableError, UnsupportedAlgorithmError
from .models import KeyAlgorithm, KeyPair, PublicKeyTypes

logger = logging.getLogger(__name__)

# Courbes approuvées
_CURVES = {
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1
}


def resolve_curve_name(curve_name: str) -> str:
    """
    Retourne le nom canonique d'une courbe approuvée

    Args:
        curve_name: Nom ou alias (ex: "P-256", "prime256v1")

    Raises:
        WeakKeyError: Si la courbe n'appartient pas à l'ensemble approuvé
    """
    wanted = str(curve_name).strip().lower()
    for canonical, aliases in config.APPROVED_CURVES.items():
        if wanted in aliases:
            return canonical
    raise WeakKeyError(
        f"Courbe ECC non approuvée: {curve_name}. "
        f"Courbes autorisées: {list(config.APPROVED_CURVES.keys())}",
        field="parameters"
    )


def check_rsa_key_size(key_size: int) -> None:
    """
    Vérifie la taille d'une clé RSA

    Raises:
        WeakKeyError: Si la clé fait moins de config.RSA_MIN_KEY_SIZE bits
        UnsupportedAlgorithmError: Si la taille dépasse config.RSA_MAX_KEY_SIZE
    """
    if isinstance(key_size, bool) or not isinstance(key_size, int):
        raise UnsupportedAlgorithmError(
            f"Taille de clé RSA invalide: {key_size!r}", field="parameters"
        )
    if key_size < config.RSA_MIN_KEY_SIZE:
        raise WeakKeyError(
            f"Clé RSA de {key_size} bits refusée: minimum {config.RSA_MIN_KEY_SIZE} bits",
            field="parameters"
        )
    if key_size > config.RSA_MAX_KEY_SIZE:
        raise UnsupportedAlgorithmError(
            f"Clé RSA de {key_size} bits non supportée: maximum {config.RSA_MAX_KEY_SIZE} bits",
            field="parameters"
        )


def check_public_key_strength(public_key: PublicKeyTypes) -> None:
    """
    Applique la politique de clés à une clé publique reçue (ex: clé d'un CSR)

    Raises:
        WeakKeyError: Clé RSA trop courte ou courbe non approuvée
        UnsupportedAlgorithmError: Type de clé non géré (DSA, Ed25519...)
    """
    if isinstance(public_key, rsa.RSAPublicKey):
        check_rsa_key_size(public_key.key_size)
    elif isinstance(public_key, ec.EllipticCurvePublicKey):
        resolve_curve_name(public_key.curve.name)
    else:
        raise UnsupportedAlgorithmError(
            f"Type de clé publique non supporté: {type(public_key).__name__}",
            field="public_key"
        )


class KeyPairGenerator:
    """
    Classe pour générer les paires de clés RSA et ECC
    Aucune nouvelle tentative en cas d'échec: une clé faible ou non aléatoire est fatale
    """

    def __init__(self, show_progress: bool = False):
        self.show_progress = show_progress

    # ============================================
    # 🔐 GÉNÉRATION
    # ============================================

    def generate(
            self,
            algorithm: Union[str, KeyAlgorithm],
            parameters: Optional[Union[int, str]] = None
    ) -> KeyPair:
        """
        Génère une paire de clés

        Args:
            algorithm: "rsa" ou "ec" (alias "ecc", "ecdsa")
            parameters: Taille en bits pour RSA, nom de courbe pour EC
                (défaut: 3072 bits / secp256r1)

        Returns:
            KeyPair: Paire de clés générée

        Raises:
            WeakKeyError: Taille RSA < 2048 ou courbe non approuvée
            EntropyUnavailableError: Source d'aléa indisponible
            UnsupportedAlgorithmError: Algorithme inconnu
        """
        algorithm = KeyAlgorithm.parse(algorithm)

        if algorithm is KeyAlgorithm.RSA:
            key_size = config.RSA_KEY_SIZES["standard"] if parameters is None else parameters
            check_rsa_key_size(key_size)
            key_pair = self._generate(
                f"RSA {key_size}",
                lambda: rsa.generate_private_key(
                    public_exponent=config.RSA_PUBLIC_EXPONENT,
                    key_size=key_size
                )
            )
        else:
            curve_name = resolve_curve_name(parameters or "secp256r1")
            key_pair = self._generate(
                f"ECC {curve_name}",
                lambda: ec.generate_private_key(_CURVES[curve_name]())
            )

        logger.info(
            "Paire de clés %s (%s) générée, empreinte %s",
            key_pair.algorithm.value, key_pair.parameters, key_pair.fingerprint
        )
        return key_pair

    def generate_rsa(self, key_size: int = 3072) -> KeyPair:
        return self.generate(KeyAlgorithm.RSA, key_size)

    def generate_ecc(self, curve_name: str = "secp256r1") -> KeyPair:
        return self.generate(KeyAlgorithm.EC, curve_name)

    def _generate(self, label: str, factory) -> KeyPair:
        utils.ensure_entropy()

        try:
            if self.show_progress:
                with tqdm(total=100, desc=label, bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt}") as pbar:
                    private_key = factory()
                    pbar.update(100)
            else:
                private_key = factory()
        except InternalError as e:
            raise EntropyUnavailableError(f"Échec du générateur aléatoire OpenSSL: {e}") from e

        return KeyPair.from_private_key(private_key)


# ============================================
# 🎯 INSTANCE PAR DÉFAUT
# ============================================

keygen = KeyPairGenerator()

__all__ = [
    'KeyPairGenerator',
    'keygen',
    'resolve_curve_name',
    'check_rsa_key_size',
    'check_public_key_strength'
]
