"""
Exceptions du moteur PKI

Deux familles:
- les erreurs fatales (WeakKeyError, EntropyUnavailableError): une violation de
  politique ou une source d'aléa défaillante, jamais réessayées;
- les erreurs d'entrée (sous-classes de ValueError): l'appelant corrige ses
  paramètres et relance l'opération.

Un échec de vérification de chaîne n'est PAS une exception: voir
VerificationResult dans models.py.
"""

from typing import Optional


class PKIError(Exception):
    """
    Erreur de base du moteur PKI

    Args:
        message: Description lisible de l'erreur
        field: Nom du champ ou de l'entrée fautive (optionnel)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def __str__(self) -> str:
        if self.field:
            return f"{self.message} (champ: {self.field})"
        return self.message


# ============================================
# 💀 ERREURS FATALES
# ============================================

class WeakKeyError(PKIError):
    """Clé trop faible ou courbe non approuvée"""


class EntropyUnavailableError(PKIError):
    """Le générateur aléatoire du système est indisponible"""


# ============================================
# ✏️ ERREURS D'ENTRÉE
# ============================================

class InvalidSubjectError(PKIError, ValueError):
    """Distinguished Name invalide (CN vide, caractère interdit, champ trop long)"""


class InvalidSANError(PKIError, ValueError):
    """Entrée Subject Alternative Name invalide (nom DNS ou adresse IP)"""


class KeyMismatchError(PKIError, ValueError):
    """La clé publique ne correspond pas à la clé privée"""


class ProofOfPossessionError(PKIError, ValueError):
    """La signature du CSR ne se vérifie pas avec sa propre clé publique"""


class ValidityRangeError(PKIError, ValueError):
    """Période de validité vide, négative ou trop longue"""


class PolicyViolationError(PKIError, ValueError):
    """Politique d'émission invalide ou émetteur qui n'est pas une CA"""


class UnsupportedAlgorithmError(PKIError, ValueError):
    """Algorithme de clé ou de hachage non supporté"""


class SerializationError(PKIError, ValueError):
    """Données PEM/DER illisibles ou mot de passe incorrect"""


__all__ = [
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
    'SerializationError'
]
