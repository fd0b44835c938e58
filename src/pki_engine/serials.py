"""
Allocation des numéros de série

Un numéro = préfixe aléatoire de 64 bits propre à l'allocateur, suivi d'un
compteur monotone de 64 bits. Le compteur est protégé par un verrou: deux
appels concurrents ne reçoivent jamais le même numéro.
"""

import logging
import secrets
import threading
from typing import Dict, Optional

from . import utils

logger = logging.getLogger(__name__)

_COUNTER_BITS = 64
_PREFIX_BITS = 64


class SerialNumberAllocator:
    """
    Allocateur atomique et sans réutilisation

    Args:
        prefix: Préfixe à reprendre (état persisté), aléatoire sinon
        last_counter: Dernière valeur de compteur déjà émise
    """

    def __init__(self, prefix: Optional[int] = None, last_counter: int = 0):
        if prefix is None:
            utils.ensure_entropy()
            prefix = secrets.randbits(_PREFIX_BITS - 1) | (1 << (_PREFIX_BITS - 2))
        if not 0 < prefix < (1 << _PREFIX_BITS):
            raise ValueError(f"Préfixe de numéro de série invalide: {prefix}")
        if not 0 <= last_counter < (1 << _COUNTER_BITS) - 1:
            raise ValueError(f"Compteur de numéro de série invalide: {last_counter}")

        self._prefix = prefix
        self._counter = last_counter
        self._lock = threading.Lock()

    @property
    def prefix(self) -> int:
        return self._prefix

    @property
    def last_counter(self) -> int:
        with self._lock:
            return self._counter

    def allocate(self) -> int:
        """Réserve et retourne le prochain numéro de série"""
        with self._lock:
            if self._counter >= (1 << _COUNTER_BITS) - 1:
                raise OverflowError("Compteur de numéros de série épuisé")
            self._counter += 1
            counter = self._counter
        return (self._prefix << _COUNTER_BITS) | counter

    def export_state(self) -> Dict[str, int]:
        """État à persister pour reprendre l'allocation après redémarrage"""
        with self._lock:
            return {"prefix": self._prefix, "last_counter": self._counter}

    @classmethod
    def from_state(cls, state: Dict[str, int]) -> "SerialNumberAllocator":
        return cls(prefix=int(state["prefix"]), last_counter=int(state["last_counter"]))


class SerialRegistry:
    """
    Un allocateur par racine, indexé par son SubjectKeyIdentifier
    """

    def __init__(self):
        self._allocators: Dict[bytes, SerialNumberAllocator] = {}
        self._lock = threading.Lock()

    def allocator_for(self, key_identifier: bytes) -> SerialNumberAllocator:
        with self._lock:
            allocator = self._allocators.get(key_identifier)
            if allocator is None:
                allocator = SerialNumberAllocator()
                self._allocators[key_identifier] = allocator
                logger.debug("Nouvel allocateur de numéros de série pour la racine %s",
                             utils.bytes_to_hex(key_identifier))
            return allocator

    def register(self, key_identifier: bytes, allocator: SerialNumberAllocator) -> None:
        """Installe un allocateur restauré pour une racine"""
        with self._lock:
            self._allocators[key_identifier] = allocator


__all__ = ['SerialNumberAllocator', 'SerialRegistry']
