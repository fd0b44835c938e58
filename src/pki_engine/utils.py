"""
Fonctions utilitaires pour le moteur PKI
"""

import os
import hashlib
import logging
import secrets
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional
from cryptography.hazmat.primitives import hashes
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from rich import box

from . import config
from .exceptions import EntropyUnavailableError, UnsupportedAlgorithmError

# Console Rich pour l'affichage
console = Console()


# ============================================
# 🔐 FONCTIONS CRYPTOGRAPHIQUES
# ============================================

def ensure_entropy(nbytes: int = 32) -> bytes:
    """
    Vérifie que le générateur aléatoire du système répond

    Args:
        nbytes: Nombre d'octets à tirer

    Returns:
        bytes: Octets aléatoires tirés pendant la vérification

    Raises:
        EntropyUnavailableError: Si l'OS ne fournit pas d'aléa
    """
    try:
        return secrets.token_bytes(nbytes)
    except (OSError, NotImplementedError) as e:
        raise EntropyUnavailableError(f"Source d'entropie du système indisponible: {e}") from e


def generate_serial_number(bits: int = config.SERIAL_NUMBER_BITS) -> int:
    """
    Génère un numéro de série aléatoire pour un certificat
    Utilise un générateur cryptographiquement sécurisé (RFC 5280: positif, 20 octets max)

    Returns:
        int: Numéro de série non nul
    """
    ensure_entropy()
    serial = 0
    while serial == 0:
        serial = secrets.randbits(bits)
    return serial


def get_hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """
    Retourne l'algorithme de hachage cryptography correspondant à un nom

    Args:
        name: Nom de l'algorithme ('sha256', 'sha384', 'sha512')

    Raises:
        UnsupportedAlgorithmError: Si l'algorithme n'est pas autorisé
    """
    algorithms = {
        "sha256": hashes.SHA256,
        "sha384": hashes.SHA384,
        "sha512": hashes.SHA512
    }
    key = (name or "").lower().replace("-", "")
    if key not in config.HASH_ALGORITHMS or key not in algorithms:
        raise UnsupportedAlgorithmError(
            f"Algorithme de hachage non supporté: {name}. "
            f"Valeurs autorisées: {list(config.HASH_ALGORITHMS)}",
            field="hash_algorithm"
        )
    return algorithms[key]()


def calculate_fingerprint(der_bytes: bytes, algorithm: str = "sha256") -> str:
    """
    Calcule l'empreinte (fingerprint) d'un objet encodé en DER

    Args:
        der_bytes: Encodage DER (certificat, clé publique, CSR)
        algorithm: Algorithme de hachage ('sha256' ou 'sha1')

    Returns:
        str: Empreinte au format hexadécimal avec séparateurs (ex: "A1:B2:C3:...")
    """
    if algorithm.lower() == "sha256":
        hash_obj = hashlib.sha256(der_bytes)
    elif algorithm.lower() == "sha1":
        hash_obj = hashlib.sha1(der_bytes)
    else:
        raise ValueError(f"Algorithme non supporté: {algorithm}")

    return bytes_to_hex(hash_obj.digest())


# ============================================
# 📅 GESTION DES DATES
# ============================================

def now_utc() -> datetime:
    """
    Retourne la date/heure actuelle en UTC avec timezone, à la seconde près
    (précision des dates X.509)
    """
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_utc(dt: datetime) -> datetime:
    """
    Normalise une date en UTC à la seconde près
    Une date naïve est considérée comme déjà exprimée en UTC
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def format_datetime(dt: datetime, fmt: str = "%Y-%m-%d %H:%M:%S UTC") -> str:
    """Formate une date/heure en chaîne"""
    return dt.strftime(fmt)


# ============================================
# 📁 GESTION DES FICHIERS
# ============================================

def ensure_directory(path: Path) -> None:
    """Crée un répertoire et ses parents s'ils n'existent pas"""
    path.mkdir(parents=True, exist_ok=True)


def set_file_permissions(filepath: Path, permissions: int) -> None:
    """
    Définit les permissions d'un fichier (Unix uniquement)
    Sur Windows, cette fonction ne fait rien

    Args:
        filepath: Chemin du fichier
        permissions: Permissions en octal (ex: 0o600 pour rw-------)
    """
    if os.name != 'nt':  # Pas Windows
        os.chmod(filepath, permissions)


# ============================================
# 📊 LOGS
# ============================================

def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure le logger du paquet avec un handler Rich

    Args:
        level: Niveau de log (défaut: config.LOG_LEVEL)
    """
    package_logger = logging.getLogger("pki_engine")
    package_logger.setLevel((level or config.LOG_LEVEL).upper())

    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter(config.LOG_FORMAT, datefmt=config.LOG_DATE_FORMAT))
        package_logger.addHandler(handler)


# ============================================
# 🎨 AFFICHAGE CLI AVEC RICH
# ============================================

def print_success(message: str) -> None:
    """Affiche un message de succès avec symbole et couleur verte"""
    color = config.CLI_COLORS["success"]
    console.print(f"[{color}]{config.CLI_SYMBOLS['success']} {message}[/{color}]")


def print_error(message: str) -> None:
    """Affiche un message d'erreur avec symbole et couleur rouge"""
    color = config.CLI_COLORS["error"]
    console.print(f"[{color}]{config.CLI_SYMBOLS['error']} {message}[/{color}]")


def print_warning(message: str) -> None:
    """Affiche un avertissement avec symbole et couleur jaune"""
    color = config.CLI_COLORS["warning"]
    console.print(f"[{color}]{config.CLI_SYMBOLS['warning']} {message}[/{color}]")


def print_info(message: str) -> None:
    """Affiche une information avec symbole et couleur cyan"""
    color = config.CLI_COLORS["info"]
    console.print(f"[{color}]{config.CLI_SYMBOLS['info']} {message}[/{color}]")


def print_header(title: str) -> None:
    """
    Affiche un en-tête stylisé avec bordure

    Args:
        title: Titre à afficher
    """
    console.print()
    console.print(Panel.fit(
        f"[{config.CLI_COLORS['header']}]{title}[/{config.CLI_COLORS['header']}]",
        border_style="magenta",
        box=box.DOUBLE
    ))
    console.print()


def create_table(title: str, columns: list) -> Table:
    """
    Crée une table Rich stylisée prête à être remplie

    Args:
        title: Titre de la table
        columns: Liste des noms de colonnes

    Returns:
        Table: Table Rich
    """
    table = Table(
        title=title,
        title_style="bold cyan",
        border_style="blue",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )

    for col in columns:
        table.add_column(col)

    return table


def display_cert_info(cert) -> None:
    """
    Affiche les informations d'un certificat (models.Certificate) de manière formatée

    Args:
        cert: Certificat à afficher
    """
    table = create_table(f"{config.CLI_SYMBOLS['cert']} Informations du certificat", ["Champ", "Valeur"])

    table.add_row("Sujet", f"[cyan]{cert.subject.to_string()}[/cyan]")
    table.add_row("Émetteur", f"[yellow]{cert.issuer_subject.to_string()}[/yellow]")
    table.add_row("N° Série", f"[green]{cert.serial_number:X}[/green]")
    table.add_row("Valide de", format_datetime(cert.validity.not_before))
    table.add_row("Valide jusqu'à", format_datetime(cert.validity.not_after))

    constraints = cert.extensions.basic_constraints
    table.add_row("CA", "oui" if constraints is not None and constraints.ca else "non")

    if cert.extensions.subject_alt_names:
        sans = ", ".join(str(entry) for entry in cert.extensions.subject_alt_names)
        table.add_row("SAN", sans)

    if cert.extensions.subject_key_identifier:
        table.add_row("SKI", f"[dim]{bytes_to_hex(cert.extensions.subject_key_identifier)}[/dim]")

    table.add_row("Algorithme", cert.signature_algorithm)
    table.add_row("Empreinte SHA-256", f"[dim]{cert.fingerprint}[/dim]")

    console.print(table)


# ============================================
# 🔄 CONVERSION
# ============================================

def bytes_to_hex(data: bytes, separator: str = ":") -> str:
    """
    Convertit des bytes en chaîne hexadécimale

    Args:
        data: Données binaires
        separator: Séparateur entre octets (ex: ":")

    Returns:
        str: Chaîne hexadécimale (ex: "A1:B2:C3")
    """
    hex_str = data.hex().upper()
    if separator:
        return separator.join(hex_str[i:i + 2] for i in range(0, len(hex_str), 2))
    return hex_str


# ============================================
# 🎨 EXPORTS
# ============================================

__all__ = [
    # Crypto
    'ensure_entropy', 'generate_serial_number', 'get_hash_algorithm', 'calculate_fingerprint',

    # Dates
    'now_utc', 'to_utc', 'format_datetime',

    # Fichiers
    'ensure_directory', 'set_file_permissions',

    # Logs
    'setup_logging',

    # Affichage CLI
    'print_success', 'print_error', 'print_warning', 'print_info', 'print_header',
    'create_table', 'display_cert_info',

    # Conversion
    'bytes_to_hex',

    # Console Rich
    'console'
]
