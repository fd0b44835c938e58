import json
import os
import stat
from concurrent.futures import ThreadPoolExecutor

import pytest

from pki_engine import config, storage
from pki_engine.authority import RootAuthority
from pki_engine.cli import EXIT_ERROR, EXIT_INVALID, EXIT_OK, _reserve_serial, main


@pytest.fixture(scope="module")
def pki_dirs(tmp_path_factory):
    base = tmp_path_factory.mktemp("pki")
    root_dir = base / "root_ca"
    servers_dir = base / "servers"

    code = main([
        "init-root",
        "--out-dir", str(root_dir),
        "--cn", "CLI Root CA",
        "--org", "PKI Project",
        "--country", "CM",
        "--key-size", "2048",
        "--password", "RootCAPassword123!",
    ])
    assert code == EXIT_OK

    code = main([
        "issue", "mynginx.com", "*.mynginx.com", "68.183.142.158",
        "--root-dir", str(root_dir),
        "--root-password", "RootCAPassword123!",
        "--out-dir", str(servers_dir),
        "--name", "mynginx",
        "--key-type", "ec",
    ])
    assert code == EXIT_OK
    return root_dir, servers_dir


# ==== init-root ====

def test_init_root_files(pki_dirs):
    root_dir, _ = pki_dirs
    key_path = root_dir / config.FILE_NAMES["root_key"]
    cert_path = root_dir / config.FILE_NAMES["root_cert"]

    root = storage.read_certificate(cert_path)
    assert root.is_ca
    assert root.subject.common_name == "CLI Root CA"
    assert storage.read_private_key(key_path, "RootCAPassword123!").public_key_der == root.public_key_der
    if os.name != "nt":
        assert stat.S_IMODE(key_path.stat().st_mode) == 0o600


def test_init_root_refuses_to_overwrite(pki_dirs):
    root_dir, _ = pki_dirs
    assert main(["init-root", "--out-dir", str(root_dir), "--key-type", "ec"]) == EXIT_ERROR


# ==== issue ====

def test_issue_files(pki_dirs):
    root_dir, servers_dir = pki_dirs
    for key in ("server_key", "server_csr", "server_cert", "server_chain"):
        assert (servers_dir / config.FILE_NAMES[key].format(name="mynginx")).exists()

    chain = storage.read_chain(servers_dir / "mynginx_fullchain.pem")
    assert len(chain) == 2
    assert chain[1] == storage.read_certificate(root_dir / config.FILE_NAMES["root_cert"])


def test_serial_state_is_persisted(pki_dirs):
    root_dir, servers_dir = pki_dirs
    state_path = root_dir / config.FILE_NAMES["serial_state"]
    with open(state_path, encoding="utf-8") as f:
        state = json.load(f)

    leaf = storage.read_certificate(servers_dir / "mynginx_cert.pem")
    assert leaf.serial_number == (state["prefix"] << 64) | state["last_counter"]


def _init_ec_root(base):
    root_dir = base / "root_ca"
    assert main(["init-root", "--out-dir", str(root_dir), "--cn", "Serial Root CA", "--key-type", "ec"]) == EXIT_OK
    return root_dir


def test_successive_issues_get_distinct_serials(tmp_path):
    root_dir = _init_ec_root(tmp_path)
    for name in ("first", "second"):
        code = main([
            "issue", "mynginx.com",
            "--root-dir", str(root_dir),
            "--out-dir", str(tmp_path / "servers"),
            "--name", name,
            "--key-type", "ec",
        ])
        assert code == EXIT_OK

    first = storage.read_certificate(tmp_path / "servers" / "first_cert.pem")
    second = storage.read_certificate(tmp_path / "servers" / "second_cert.pem")
    assert first.serial_number != second.serial_number
    assert first.serial_number >> 64 == second.serial_number >> 64


def test_concurrent_reservations_from_same_state(tmp_path):
    root_dir = _init_ec_root(tmp_path)
    authority = RootAuthority(
        key_pair=storage.read_private_key(root_dir / config.FILE_NAMES["root_key"]),
        certificate=storage.read_certificate(root_dir / config.FILE_NAMES["root_cert"])
    )

    def reserve_and_allocate(_):
        signer = _reserve_serial(root_dir, authority)
        return signer.registry.allocator_for(authority.key_identifier).allocate()

    with ThreadPoolExecutor(max_workers=8) as pool:
        serials = list(pool.map(reserve_and_allocate, range(32)))

    assert len(set(serials)) == 32
    state = storage.read_serial_state(root_dir / config.FILE_NAMES["serial_state"])
    assert state["last_counter"] == 32
    assert max(serials) == (state["prefix"] << 64) | 32


def test_issue_invalid_hostname(pki_dirs, tmp_path):
    root_dir, _ = pki_dirs
    code = main([
        "issue", "bad_host!",
        "--root-dir", str(root_dir),
        "--root-password", "RootCAPassword123!",
        "--out-dir", str(tmp_path),
        "--key-type", "ec",
    ])
    assert code == EXIT_ERROR


def test_issue_wrong_root_password(pki_dirs, tmp_path):
    root_dir, _ = pki_dirs
    code = main([
        "issue", "mynginx.com",
        "--root-dir", str(root_dir),
        "--root-password", "nope",
        "--out-dir", str(tmp_path),
        "--key-type", "ec",
    ])
    assert code == EXIT_ERROR


# ==== verify / show ====

def test_verify_ok(pki_dirs):
    root_dir, servers_dir = pki_dirs
    code = main([
        "verify", str(servers_dir / "mynginx_fullchain.pem"),
        "--root", str(root_dir / config.FILE_NAMES["root_cert"]),
        "--hostname", "www.mynginx.com",
    ])
    assert code == EXIT_OK


@pytest.mark.parametrize("extra", [["--hostname", "evil.com"], ["--at", "2000-01-01T00:00:00"]])
def test_verify_invalid(pki_dirs, extra):
    root_dir, servers_dir = pki_dirs
    code = main([
        "verify", str(servers_dir / "mynginx_cert.pem"),
        "--root", str(root_dir / config.FILE_NAMES["root_cert"]),
    ] + extra)
    assert code == EXIT_INVALID


def test_verify_missing_file(pki_dirs, tmp_path):
    root_dir, _ = pki_dirs
    code = main(["verify", str(tmp_path / "absent.pem"), "--root", str(root_dir / config.FILE_NAMES["root_cert"])])
    assert code == EXIT_ERROR


def test_show(pki_dirs, capsys):
    _, servers_dir = pki_dirs
    assert main(["show", str(servers_dir / "mynginx_fullchain.pem")]) == EXIT_OK
    assert "mynginx.com" in capsys.readouterr().out
