import os
import stat

import pytest

from pki_engine import storage
from pki_engine.exceptions import SerializationError

posix_only = pytest.mark.skipif(os.name == "nt", reason="permissions Unix")


def _mode(path):
    return stat.S_IMODE(path.stat().st_mode)


@posix_only
def test_private_key_written_owner_only(tmp_path, ec_leaf_key):
    path = storage.write_private_key(ec_leaf_key, tmp_path / "keys" / "server_key.pem", password="secret")
    assert _mode(path) == 0o600
    assert storage.read_private_key(path, password="secret") == ec_leaf_key


@posix_only
def test_certificate_world_readable(tmp_path, rsa_root):
    path = storage.write_certificate(rsa_root, tmp_path / "root_ca_cert.pem")
    assert _mode(path) == 0o644
    assert storage.read_certificate(path) == rsa_root


def test_csr_and_chain_files(tmp_path, server_csr, server_certificate, rsa_root):
    csr_path = storage.write_csr(server_csr, tmp_path / "server.csr")
    chain_path = storage.write_chain([server_certificate, rsa_root], tmp_path / "fullchain.pem")

    assert storage.read_csr(csr_path) == server_csr
    assert storage.read_chain(chain_path) == [server_certificate, rsa_root]
    assert storage.read_certificate(chain_path) == server_certificate


@posix_only
def test_private_key_replaces_readable_file(tmp_path, ec_leaf_key):
    path = tmp_path / "server_key.pem"
    path.write_bytes(b"old")
    os.chmod(path, 0o644)

    storage.write_private_key(ec_leaf_key, path, password="secret")
    assert _mode(path) == 0o600
    assert storage.read_private_key(path, password="secret") == ec_leaf_key


@posix_only
def test_private_key_mode_ignores_umask(tmp_path, ec_leaf_key):
    previous = os.umask(0)
    try:
        path = storage.write_private_key(ec_leaf_key, tmp_path / "server_key.pem", password="secret")
    finally:
        os.umask(previous)
    assert _mode(path) == 0o600


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        storage.read_certificate(tmp_path / "absent.pem")


def test_wrong_password_on_disk(tmp_path, ec_leaf_key):
    path = storage.write_private_key(ec_leaf_key, tmp_path / "key.pem", password="secret")
    with pytest.raises(SerializationError):
        storage.read_private_key(path, password="other")


# ==== État des numéros de série ====

def test_serial_state_round_trip(tmp_path):
    path = tmp_path / "serial_state.json"
    assert storage.read_serial_state(path) is None

    storage.write_serial_state({"prefix": 7, "last_counter": 3}, path)
    assert storage.read_serial_state(path) == {"prefix": 7, "last_counter": 3}
    assert not (tmp_path / "serial_state.json.tmp").exists()


def test_exclusive_lock_releases(tmp_path):
    path = tmp_path / "serial_state.json"
    with storage.exclusive_lock(path):
        pass
    with storage.exclusive_lock(path):
        storage.write_serial_state({"prefix": 1, "last_counter": 0}, path)
    assert storage.read_serial_state(path)["prefix"] == 1
