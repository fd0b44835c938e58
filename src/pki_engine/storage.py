"""
Stockage des clés et certificats sur disque (format PEM)
Utilisé par la CLI: le moteur d'émission ne touche jamais au système de fichiers
"""

import json
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from . import config, serialization, utils
from .models import Certificate, CertificateRequest, KeyPair

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _write(filepath: PathLike, data: bytes, permissions: int) -> Path:
    filepath = Path(filepath)
    utils.ensure_directory(filepath.parent)

    # Le mode est posé à la création et avant l'écriture, même si le fichier existait
    fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, 'O_BINARY', 0), permissions)
    with os.fdopen(fd, 'wb') as f:
        if os.name != 'nt':
            os.fchmod(f.fileno(), permissions)
        f.write(data)

    logger.debug("Fichier écrit: %s (%d octets, mode %o)", filepath, len(data), permissions)
    return filepath


def _read(filepath: PathLike) -> bytes:
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Fichier introuvable: {filepath}")

    with open(filepath, 'rb') as f:
        return f.read()


# ============================================
# 💾 ÉCRITURE
# ============================================

def write_private_key(key_pair: KeyPair, filepath: PathLike, password: Optional[str] = None) -> Path:
    """
    Sauvegarde une clé privée PKCS#8 (PEM) avec chiffrement optionnel

    Permissions restrictives (600 = rw-------)
    """
    if not password:
        logger.warning("Clé privée NON chiffrée (pas de mot de passe): %s", filepath)
    data = serialization.encode_private_key(key_pair, password)
    return _write(filepath, data, config.PRIVATE_KEY_PERMISSIONS)


def write_certificate(certificate: Certificate, filepath: PathLike) -> Path:
    """Sauvegarde un certificat PEM (644 = rw-r--r--)"""
    return _write(filepath, serialization.encode_certificate(certificate), config.CERT_PERMISSIONS)


def write_csr(csr: CertificateRequest, filepath: PathLike) -> Path:
    return _write(filepath, serialization.encode_csr(csr), config.CERT_PERMISSIONS)


def write_chain(certificates: Iterable[Certificate], filepath: PathLike) -> Path:
    """Sauvegarde une chaîne complète (certificat final puis racine)"""
    return _write(filepath, serialization.encode_chain(certificates), config.CERT_PERMISSIONS)


# ============================================
# 📂 LECTURE
# ============================================

def read_private_key(filepath: PathLike, password: Optional[str] = None) -> KeyPair:
    """
    Charge une clé privée PEM ou DER

    Raises:
        FileNotFoundError: Si le fichier n'existe pas
        SerializationError: Mot de passe incorrect ou clé corrompue
    """
    return serialization.decode_private_key(_read(filepath), password)


def read_certificate(filepath: PathLike) -> Certificate:
    return serialization.decode_certificate(_read(filepath))


def read_csr(filepath: PathLike) -> CertificateRequest:
    return serialization.decode_csr(_read(filepath))


def read_chain(filepath: PathLike) -> List[Certificate]:
    return serialization.decode_chain(_read(filepath))


# ============================================
# 🔢 ÉTAT DES NUMÉROS DE SÉRIE
# ============================================

LOCK_TIMEOUT_SECONDS = 30.0


@contextmanager
def exclusive_lock(filepath: PathLike, timeout: float = LOCK_TIMEOUT_SECONDS) -> Iterator[None]:
    """
    Verrou exclusif inter-processus associé à un fichier (<fichier>.lock)

    Unix: flock() sur le fichier verrou. Windows: création exclusive du fichier
    verrou, supprimé à la sortie.

    Raises:
        TimeoutError: Verrou toujours tenu après `timeout` secondes (Windows)
    """
    lock_path = Path(f"{filepath}.lock")
    utils.ensure_directory(lock_path.parent)

    if os.name != 'nt':
        import fcntl

        with open(lock_path, 'a+') as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        return

    deadline = time.monotonic() + timeout
    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            os.close(fd)
            break
        except FileExistsError:
            if time.monotonic() > deadline:
                raise TimeoutError(f"Verrou toujours tenu: {lock_path}") from None
            time.sleep(0.05)
    try:
        yield
    finally:
        os.unlink(lock_path)


def read_serial_state(filepath: PathLike) -> Optional[Dict[str, int]]:
    """État de l'allocateur de numéros de série, None si jamais sauvegardé"""
    filepath = Path(filepath)
    if not filepath.exists():
        return None
    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)


def write_serial_state(state: Dict[str, int], filepath: PathLike) -> Path:
    """
    Sauvegarde atomique de l'état (fichier temporaire puis os.replace)

    Un lecteur voit toujours soit l'ancien état complet, soit le nouveau.
    """
    filepath = Path(filepath)
    utils.ensure_directory(filepath.parent)
    tmp_path = filepath.with_name(filepath.name + ".tmp")

    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(state, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, filepath)

    logger.debug("État des numéros de série sauvegardé: %s (compteur %d)", filepath, state["last_counter"])
    return filepath


__all__ = [
    'write_private_key',
    'write_certificate',
    'write_csr',
    'write_chain',
    'read_private_key',
    'read_certificate',
    'read_csr',
    'read_chain',
    'exclusive_lock',
    'read_serial_state',
    'write_serial_state',
    'LOCK_TIMEOUT_SECONDS'
]
