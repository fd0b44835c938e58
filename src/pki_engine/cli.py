"""
Interface en ligne de commande
pki-engine init-root | issue | verify | show
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import __version__, config, storage, utils
from .authority import RootAuthority, create_root_authority, issue_server_certificate
from .exceptions import PKIError
from .keygen import KeyPairGenerator
from .models import ErrorKind, Validity
from .policy import RootPolicy, SigningPolicy
from .serials import SerialNumberAllocator, SerialRegistry
from .signer import CertificateSigner
from .verifier import chain_verifier

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


def _key_parameters(args) -> Optional[object]:
    if args.key_type == "rsa":
        return args.key_size
    return args.curve


def _add_key_arguments(parser: argparse.ArgumentParser, default_size: int) -> None:
    parser.add_argument("--key-type", choices=["rsa", "ec"], default="rsa")
    parser.add_argument("--key-size", type=int, default=default_size, help="Taille clé RSA (bits) si rsa")
    parser.add_argument("--curve", default="secp256r1", help="Courbe si ec (secp256r1, secp384r1, secp521r1)")


def _add_subject_arguments(parser: argparse.ArgumentParser, default_cn: Optional[str]) -> None:
    parser.add_argument("--cn", default=default_cn, help="Common Name")
    parser.add_argument("--org", help="Organisation (O)")
    parser.add_argument("--ou", help="Unité organisationnelle (OU)")
    parser.add_argument("--country", help="Code pays ISO (C), ex: CM")
    parser.add_argument("--state", help="État / province (ST)")
    parser.add_argument("--locality", help="Ville (L)")


def _subject_fields(args) -> dict:
    return {
        "common_name": args.cn,
        "organization": args.org,
        "organizational_unit": args.ou,
        "country": args.country,
        "state": args.state,
        "locality": args.locality,
    }


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Date invalide (ISO 8601 attendu): {value}") from None


# ============================================
# 🔢 ÉTAT DES NUMÉROS DE SÉRIE
# ============================================

def _reserve_serial(root_dir: Path, authority: RootAuthority) -> CertificateSigner:
    """
    Réserve sur disque le prochain numéro de série puis prépare le signataire

    Chargement, réservation et sauvegarde se font sous verrou exclusif: deux
    commandes `issue` concurrentes sur la même racine obtiennent des numéros
    distincts. Un numéro réservé puis non utilisé (échec de signature) est perdu,
    jamais réémis.
    """
    state_path = root_dir / config.FILE_NAMES["serial_state"]
    with storage.exclusive_lock(state_path):
        state = storage.read_serial_state(state_path)
        allocator = SerialNumberAllocator.from_state(state) if state else SerialNumberAllocator()

        reserved = SerialNumberAllocator.from_state(allocator.export_state())
        reserved.allocate()
        storage.write_serial_state(reserved.export_state(), state_path)

    registry = SerialRegistry()
    registry.register(authority.key_identifier, allocator)
    return CertificateSigner(registry)


# ============================================
# 👑 COMMANDES
# ============================================

def cmd_init_root(args) -> int:
    utils.print_header(f"{config.CLI_SYMBOLS['root']} Création de la Root CA")

    out_dir = Path(args.out_dir)
    utils.ensure_directory(out_dir)
    utils.set_file_permissions(out_dir, config.DIR_PERMISSIONS)

    key_path = out_dir / config.FILE_NAMES["root_key"]
    cert_path = out_dir / config.FILE_NAMES["root_cert"]
    if key_path.exists() and not args.force:
        utils.print_error(f"Une Root CA existe déjà dans {out_dir} (utilisez --force pour l'écraser)")
        return EXIT_ERROR

    authority = create_root_authority(
        _subject_fields(args),
        algorithm=args.key_type,
        parameters=_key_parameters(args),
        validity_days=args.days,
        policy=RootPolicy(hash_algorithm=args.hash),
        generator=KeyPairGenerator(show_progress=args.progress)
    )

    storage.write_private_key(authority.key_pair, key_path, args.password)
    storage.write_certificate(authority.certificate, cert_path)

    utils.print_success(f"Clé privée sauvegardée: {key_path}")
    utils.print_success(f"Certificat racine sauvegardé: {cert_path}")
    utils.display_cert_info(authority.certificate)
    return EXIT_OK


def cmd_issue(args) -> int:
    utils.print_header(f"{config.CLI_SYMBOLS['server']} Émission d'un certificat serveur")

    root_dir = Path(args.root_dir)
    authority = RootAuthority(
        key_pair=storage.read_private_key(root_dir / config.FILE_NAMES["root_key"], args.root_password),
        certificate=storage.read_certificate(root_dir / config.FILE_NAMES["root_cert"])
    )

    validity = Validity.for_days(args.days) if args.days else None
    policy = SigningPolicy(hash_algorithm=args.hash)
    signer = _reserve_serial(root_dir, authority)

    subject = _subject_fields(args) if args.cn else None
    issued = issue_server_certificate(
        authority,
        args.hostnames,
        subject=subject,
        algorithm=args.key_type,
        parameters=_key_parameters(args),
        policy=policy,
        validity=validity,
        generator=KeyPairGenerator(show_progress=args.progress),
        signer=signer
    )

    out_dir = Path(args.out_dir)
    name = args.name or issued.certificate.subject.common_name.replace("*", "wildcard")
    paths = {
        "key": storage.write_private_key(
            issued.key_pair, out_dir / config.FILE_NAMES["server_key"].format(name=name), args.key_password
        ),
        "csr": storage.write_csr(issued.request, out_dir / config.FILE_NAMES["server_csr"].format(name=name)),
        "cert": storage.write_certificate(
            issued.certificate, out_dir / config.FILE_NAMES["server_cert"].format(name=name)
        ),
        "chain": storage.write_chain(issued.chain, out_dir / config.FILE_NAMES["server_chain"].format(name=name)),
    }

    for label, path in paths.items():
        utils.print_success(f"{label}: {path}")
    utils.display_cert_info(issued.certificate)
    return EXIT_OK


def cmd_verify(args) -> int:
    leaf = storage.read_chain(args.certificate)[0]
    root = storage.read_certificate(args.root)
    result = chain_verifier.verify(leaf, root, hostname=args.hostname, at_time=args.at)

    table = utils.create_table(f"{config.CLI_SYMBOLS['cert']} Vérification de la chaîne", ["Contrôle", "Résultat"])
    for kind in ErrorKind:
        if kind is ErrorKind.HOSTNAME_MISMATCH and args.hostname is None:
            continue
        failed = kind in result.reasons
        status = (
            f"[{config.CLI_COLORS['error']}]{config.CLI_SYMBOLS['error']} {kind.description}"
            f"[/{config.CLI_COLORS['error']}]"
            if failed else
            f"[{config.CLI_COLORS['success']}]{config.CLI_SYMBOLS['success']}[/{config.CLI_COLORS['success']}]"
        )
        table.add_row(kind.value, status)
    utils.console.print(table)

    if result.valid:
        utils.print_success(f"Certificat valide: {leaf.subject.to_string()}")
        return EXIT_OK

    utils.print_error(f"Certificat invalide: {', '.join(reason.value for reason in result.reasons)}")
    return EXIT_INVALID


def cmd_show(args) -> int:
    for certificate in storage.read_chain(args.certificate):
        utils.display_cert_info(certificate)
    return EXIT_OK


# ============================================
# 🧭 PARSER
# ============================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pki-engine",
        description="Moteur d'émission PKI: Root CA locale et certificats serveur TLS"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Niveau de log (DEBUG, INFO, WARNING...)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_root = subparsers.add_parser("init-root", help="Créer une Root CA (clé + certificat auto-signé)")
    init_root.add_argument("--out-dir", default="pki/root_ca", help="Répertoire de sortie de la Root CA")
    _add_subject_arguments(init_root, default_cn="PKI Engine Root CA")
    _add_key_arguments(init_root, default_size=config.RSA_KEY_SIZES["strong"])
    init_root.add_argument("--days", type=int, default=config.get_validity_period("root_ca"), help="Validité (jours)")
    init_root.add_argument("--hash", choices=config.HASH_ALGORITHMS, default=config.DEFAULT_HASH_ALGORITHM)
    init_root.add_argument("--password", help="Mot de passe pour chiffrer la clé Root (optionnel)")
    init_root.add_argument("--force", action="store_true", help="Écraser une Root CA existante")
    init_root.add_argument("--progress", action="store_true", help="Barre de progression pendant la génération")
    init_root.set_defaults(func=cmd_init_root)

    issue = subparsers.add_parser("issue", help="Émettre un certificat serveur signé par la Root CA")
    issue.add_argument("hostnames", nargs="+", help="Noms DNS et/ou adresses IP du serveur")
    issue.add_argument("--root-dir", default="pki/root_ca", help="Répertoire de la Root CA")
    issue.add_argument("--root-password", help="Mot de passe de la clé Root")
    issue.add_argument("--out-dir", default="pki/servers", help="Répertoire de sortie")
    issue.add_argument("--name", help="Préfixe des fichiers (défaut: CN)")
    _add_subject_arguments(issue, default_cn=None)
    _add_key_arguments(issue, default_size=config.RSA_KEY_SIZES["minimum"])
    issue.add_argument("--days", type=int, help="Validité (jours, bornée par la Root CA)")
    issue.add_argument("--hash", choices=config.HASH_ALGORITHMS, default=config.DEFAULT_HASH_ALGORITHM)
    issue.add_argument("--key-password", help="Mot de passe pour chiffrer la clé serveur (optionnel)")
    issue.add_argument("--progress", action="store_true", help="Barre de progression pendant la génération")
    issue.set_defaults(func=cmd_issue)

    verify = subparsers.add_parser("verify", help="Vérifier un certificat contre la Root CA")
    verify.add_argument("certificate", help="Certificat (ou fullchain) à vérifier")
    verify.add_argument("--root", required=True, help="Certificat de la Root CA")
    verify.add_argument("--hostname", help="Nom d'hôte ou adresse IP attendu")
    verify.add_argument("--at", type=_parse_datetime, help="Instant de vérification (ISO 8601, défaut: maintenant)")
    verify.set_defaults(func=cmd_verify)

    show = subparsers.add_parser("show", help="Afficher le détail d'un certificat")
    show.add_argument("certificate", help="Certificat ou fichier fullchain PEM")
    show.set_defaults(func=cmd_show)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    utils.setup_logging(args.log_level)

    try:
        return args.func(args)
    except PKIError as e:
        utils.print_error(f"{type(e).__name__}: {e}")
        return EXIT_ERROR
    except (FileNotFoundError, TimeoutError) as e:
        utils.print_error(str(e))
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
