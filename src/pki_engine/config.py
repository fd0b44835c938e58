"""
Configuration globale du moteur PKI
Contient toutes les constantes et paramètres par défaut du projet
"""

# ============================================
# 🔐 PARAMÈTRES CRYPTOGRAPHIQUES
# ============================================

# Taille minimale d'une clé RSA (en dessous: WeakKeyError)
RSA_MIN_KEY_SIZE = 2048

# Taille maximale acceptée (au-delà: algorithme non supporté)
RSA_MAX_KEY_SIZE = 16384

# Tailles de clés RSA usuelles
RSA_KEY_SIZES = {
    "minimum": 2048,
    "standard": 3072,  # Recommandé
    "strong": 4096  # Root CA
}

# Exposant public RSA (standard)
RSA_PUBLIC_EXPONENT = 65537

# Courbes ECC approuvées (nom canonique -> alias acceptés)
APPROVED_CURVES = {
    "secp256r1": ("secp256r1", "p-256", "p256", "prime256v1"),  # NIST P-256 (recommandé)
    "secp384r1": ("secp384r1", "p-384", "p384"),  # NIST P-384
    "secp521r1": ("secp521r1", "p-521", "p521")  # NIST P-521
}

# Algorithmes de hachage autorisés pour signer
HASH_ALGORITHMS = ("sha256", "sha384", "sha512")

# Algorithme de hachage par défaut
DEFAULT_HASH_ALGORITHM = "sha256"

# Taille des numéros de série (RFC 5280: 20 octets max, entier positif)
SERIAL_NUMBER_BITS = 159

# ============================================
# 📜 PARAMÈTRES DES CERTIFICATS X.509
# ============================================

# Durées de validité par défaut (en jours)
VALIDITY_PERIODS = {
    "root_ca": 3650,  # 10 ans
    "server": 825  # ~2 ans (conforme aux standards modernes)
}

# Durée de vie maximale d'une Root CA (garde-fou contre les racines de plusieurs décennies)
MAX_ROOT_LIFETIME_DAYS = 7300

# Root CA sans intermédiaire: elle ne signe que des certificats finaux
ROOT_PATH_LENGTH = 0

# Extensions X.509 par type de certificat
EXTENSIONS_CONFIG = {
    "root_ca": {
        "basic_constraints": {"ca": True, "path_length": ROOT_PATH_LENGTH},
        "key_usage": ["key_cert_sign", "crl_sign"],
    },
    "server": {
        "basic_constraints": {"ca": False},
        "key_usage": ["digital_signature", "key_encipherment"],
        "extended_key_usage": ["server_auth"],
    }
}

# Bornes supérieures des champs du DN (RFC 5280, annexe A)
DN_FIELD_MAX_LENGTHS = {
    "country": 2,
    "state": 128,
    "locality": 128,
    "organization": 64,
    "organizational_unit": 64,
    "common_name": 64
}

# Limites DNS (RFC 1035)
DNS_LABEL_MAX_LENGTH = 63
DNS_NAME_MAX_LENGTH = 253

# ============================================
# 📊 PARAMÈTRES DE LOGS
# ============================================

LOG_LEVEL = "INFO"
LOG_FORMAT = "%(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ============================================
# 🔒 SÉCURITÉ
# ============================================

# Permissions des fichiers (Unix)
PRIVATE_KEY_PERMISSIONS = 0o600  # rw------- (propriétaire seulement)
CERT_PERMISSIONS = 0o644  # rw-r--r-- (lecture publique)
DIR_PERMISSIONS = 0o755  # rwxr-xr-x

# Noms de fichiers produits par la CLI
FILE_NAMES = {
    "root_key": "root_ca_key.pem",
    "root_cert": "root_ca_cert.pem",
    "server_key": "{name}_key.pem",
    "server_csr": "{name}.csr",
    "server_cert": "{name}_cert.pem",
    "server_chain": "{name}_fullchain.pem",
    "serial_state": "serial_state.json"
}

# ============================================
# 🎨 PARAMÈTRES D'AFFICHAGE CLI
# ============================================

# Couleurs pour Rich
CLI_COLORS = {
    "success": "green",
    "error": "red",
    "warning": "yellow",
    "info": "cyan",
    "header": "magenta bold",
    "cert": "blue",
    "key": "yellow"
}

# Symboles pour l'affichage
CLI_SYMBOLS = {
    "success": "✓",
    "error": "✗",
    "warning": "⚠",
    "info": "ℹ",
    "cert": "📜",
    "key": "🔑",
    "root": "👑",
    "server": "🖥️"
}


def get_validity_period(cert_type: str) -> int:
    """
    Retourne la période de validité en jours pour un type de certificat

    Args:
        cert_type: Type de certificat (root_ca, server)

    Returns:
        int: Nombre de jours de validité
    """
    return VALIDITY_PERIODS.get(cert_type, VALIDITY_PERIODS["server"])


# ============================================
# 🚀 EXPORTS
# ============================================

__all__ = [
    # Paramètres crypto
    'RSA_MIN_KEY_SIZE', 'RSA_MAX_KEY_SIZE', 'RSA_KEY_SIZES', 'RSA_PUBLIC_EXPONENT',
    'APPROVED_CURVES', 'HASH_ALGORITHMS', 'DEFAULT_HASH_ALGORITHM', 'SERIAL_NUMBER_BITS',

    # Certificats
    'VALIDITY_PERIODS', 'MAX_ROOT_LIFETIME_DAYS', 'ROOT_PATH_LENGTH', 'EXTENSIONS_CONFIG',
    'DN_FIELD_MAX_LENGTHS', 'DNS_LABEL_MAX_LENGTH', 'DNS_NAME_MAX_LENGTH',

    # Logs
    'LOG_LEVEL', 'LOG_FORMAT', 'LOG_DATE_FORMAT',

    # Sécurité
    'PRIVATE_KEY_PERMISSIONS', 'CERT_PERMISSIONS', 'DIR_PERMISSIONS', 'FILE_NAMES',

    # Interface CLI
    'CLI_COLORS', 'CLI_SYMBOLS',

    # Fonctions utilitaires
    'get_validity_period'
]
