"""
Subject Builder
Construit et valide les Distinguished Names et les listes de SAN
"""

import ipaddress
import re
import unicodedata
from typing import Iterable, Mapping, Tuple, Union

from . import config
from .exceptions import InvalidSubjectError, InvalidSANError
from .models import Subject, SANEntry, SANType, SUBJECT_FIELDS

# Alias acceptés pour les champs du DN (notation OpenSSL)
_FIELD_ALIASES = {
    "cn": "common_name",
    "o": "organization",
    "ou": "organizational_unit",
    "l": "locality",
    "st": "state",
    "c": "country",
}

_LDH_LABEL = re.compile(r"[a-z0-9](?:[a-z0-9-]*[a-z0-9])?")
_HOSTNAME_CHARS = re.compile(r"[a-z0-9.*-]+")

SANInput = Union[SANEntry, str, ipaddress.IPv4Address, ipaddress.IPv6Address]


class SubjectBuilder:
    """
    Validation et normalisation des DN et des Subject Alternative Names
    """

    # ============================================
    # 👤 DISTINGUISHED NAME
    # ============================================

    def build(self, fields: Union[Mapping[str, str], Subject]) -> Subject:
        """
        Construit un Subject validé

        Args:
            fields: Dictionnaire des champs (noms longs ou alias CN/O/OU/L/ST/C)
                ou Subject existant à re-valider

        Returns:
            Subject: DN normalisé

        Raises:
            InvalidSubjectError: CN manquant, champ inconnu, caractère de contrôle,
                valeur trop longue ou code pays invalide
        """
        if isinstance(fields, Subject):
            fields = fields.as_dict()

        values = {}
        for key, raw in fields.items():
            name = _FIELD_ALIASES.get(key.lower(), key.lower())
            if name not in SUBJECT_FIELDS:
                raise InvalidSubjectError(f"Champ de DN inconnu: {key}", field=key)
            if name in values:
                raise InvalidSubjectError(f"Champ de DN en double: {key}", field=name)
            values[name] = self._normalize_value(name, raw)

        if not values.get("common_name"):
            raise InvalidSubjectError("Le Common Name (CN) est obligatoire", field="common_name")

        country = values.get("country")
        if country is not None:
            country = country.upper()
            if len(country) != 2 or not country.isascii() or not country.isalpha():
                raise InvalidSubjectError(
                    "Le code pays doit contenir exactement 2 lettres (ISO 3166-1 alpha-2)",
                    field="country"
                )
            values["country"] = country

        return Subject(**values)

    @staticmethod
    def _normalize_value(name: str, raw) -> Union[str, None]:
        if raw is None:
            return None

        value = " ".join(str(raw).split())
        if not value:
            return None

        for char in value:
            if unicodedata.category(char) in ("Cc", "Cf", "Cs", "Co", "Cn"):
                raise InvalidSubjectError(
                    f"Caractère interdit ({char!r}) dans le champ {name}", field=name
                )

        max_length = config.DN_FIELD_MAX_LENGTHS[name]
        if len(value) > max_length:
            raise InvalidSubjectError(
                f"Le champ {name} dépasse {max_length} caractères", field=name
            )

        return value

    # ============================================
    # 🌐 SUBJECT ALTERNATIVE NAMES
    # ============================================

    def build_san_list(self, entries: Iterable[SANInput]) -> Tuple[SANEntry, ...]:
        """
        Valide et dédoublonne une liste de SAN

        Args:
            entries: SANEntry, adresses ipaddress, "DNS:nom", "IP:adresse" ou
                chaînes nues (une chaîne qui se lit comme une IP devient une entrée IP)

        Returns:
            tuple: Entrées normalisées, ordre de première apparition conservé

        Raises:
            InvalidSANError: Nom d'hôte ou adresse IP mal formé
        """
        result = []
        seen = set()

        for entry in entries or ():
            san = self.parse_san(entry)
            if san not in seen:
                seen.add(san)
                result.append(san)

        return tuple(result)

    def parse_san(self, entry: SANInput) -> SANEntry:
        """Convertit et valide une entrée SAN unique"""
        if isinstance(entry, SANEntry):
            if entry.kind is SANType.IP:
                return self._parse_ip(entry.value)
            return SANEntry.dns(normalize_hostname(entry.value))

        if isinstance(entry, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            return SANEntry.ip(entry)

        if not isinstance(entry, str):
            raise InvalidSANError(f"Entrée SAN de type non supporté: {entry!r}", field="san")

        text = entry.strip()
        prefix, sep, rest = text.partition(":")
        if sep and prefix.upper() == "DNS":
            return SANEntry.dns(normalize_hostname(rest.strip()))
        if sep and prefix.upper() in ("IP", "IP ADDRESS"):
            return self._parse_ip(rest.strip())

        try:
            return SANEntry.ip(text)
        except ValueError:
            return SANEntry.dns(normalize_hostname(text))

    @staticmethod
    def _parse_ip(text: str) -> SANEntry:
        try:
            return SANEntry.ip(text.strip("[]"))
        except ValueError:
            raise InvalidSANError(f"Adresse IP invalide: {text!r}", field="san") from None


def normalize_hostname(hostname: str) -> str:
    """
    Valide un nom DNS et le ramène à sa forme canonique (A-label, minuscules)

    Un unique '*' est autorisé comme label le plus à gauche.

    Raises:
        InvalidSANError: Nom vide, label vide ou > 63 octets, nom > 253 octets,
            caractère hors LDH, tiret en début/fin de label, joker mal placé
    """
    if not isinstance(hostname, str) or not hostname.strip():
        raise InvalidSANError("Nom DNS vide", field="san")

    name = hostname.strip().rstrip(".").lower()

    if not name.isascii():
        try:
            name = name.encode("idna").decode("ascii")
        except UnicodeError:
            raise InvalidSANError(f"Nom DNS international invalide: {hostname!r}", field="san") from None

    if not _HOSTNAME_CHARS.fullmatch(name):
        raise InvalidSANError(f"Caractère interdit dans le nom DNS {hostname!r}", field="san")

    if len(name) > config.DNS_NAME_MAX_LENGTH:
        raise InvalidSANError(
            f"Nom DNS trop long ({len(name)} > {config.DNS_NAME_MAX_LENGTH}): {hostname!r}",
            field="san"
        )

    labels = name.split(".")
    for index, label in enumerate(labels):
        if label == "*" and index == 0 and len(labels) > 1:
            continue
        if not label:
            raise InvalidSANError(f"Label vide dans le nom DNS {hostname!r}", field="san")
        if len(label) > config.DNS_LABEL_MAX_LENGTH:
            raise InvalidSANError(
                f"Label de plus de {config.DNS_LABEL_MAX_LENGTH} octets dans {hostname!r}",
                field="san"
            )
        if not _LDH_LABEL.fullmatch(label):
            raise InvalidSANError(f"Nom DNS invalide: {hostname!r}", field="san")

    # "999.1.1.1" n'est ni une IP ni un nom d'hôte
    if labels[-1].isdigit():
        raise InvalidSANError(f"Nom DNS avec TLD numérique: {hostname!r}", field="san")

    return name


subject_builder = SubjectBuilder()

__all__ = ['SubjectBuilder', 'subject_builder', 'normalize_hostname', 'SANInput']
