# ledger_election/operations/backup_manager.py
# Encrypted election snapshots with integrity file (SHA-256)

import os, time, json, hashlib, secrets, pathlib, logging
from typing import Dict, Any
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

NONCE_SIZE = 12


def _key_from_hex(key_hex: str) -> bytes:
    # 64-hex chars (32 bytes) key. Example: os.urandom(32).hex()
    if not key_hex or len(key_hex) != 64:
        raise ValueError("BACKUP_AES256_KEY (64 hex chars) is required")
    return bytes.fromhex(key_hex)


def _sha256_file(path: str) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def perform_backup(snapshot: Dict[str, Any], outdir: str, key_hex: str) -> Dict:
    """
    Serialises an election snapshot to JSON, encrypts it with AES-256-GCM,
    writes a .sha256 integrity file and a manifest, and returns the manifest.
    """
    key = _key_from_hex(key_hex)
    pathlib.Path(outdir).mkdir(parents=True, exist_ok=True)
    ts = time.strftime("%Y%m%d-%H%M%S")

    plaintext = json.dumps(snapshot, sort_keys=True).encode()
    # Encrypt with AES-256-GCM (random 12B nonce)
    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)

    enc_name = f"election-{ts}-{secrets.token_hex(4)}.json.aes"
    enc_path = os.path.join(outdir, enc_name)
    with open(enc_path, "wb") as f:
        f.write(nonce + ciphertext)  # nonce (12B) + ciphertext+tag

    # Integrity file
    sha = _sha256_file(enc_path)
    sha_path = enc_path + ".sha256"
    with open(sha_path, "w") as f:
        f.write(f"{sha}  {os.path.basename(enc_path)}\n")

    # Minimal immutable behaviour: mark read-only (portable)
    os.chmod(enc_path, 0o440)

    meta = {
        "backup_file": enc_path,
        "sha256_file": sha_path,
        "bytes_encrypted": len(ciphertext),
        "events": len(snapshot.get("events", [])),
        "created_at": ts,
    }
    with open(enc_path + ".json", "w") as f:
        json.dump(meta, f, indent=2)

    logger.info("Election backup created: %s", enc_path)
    return meta


def restore_backup(enc_path: str, key_hex: str) -> Dict[str, Any]:
    """
    Checks the .sha256 integrity file, decrypts the backup and returns the
    snapshot. Raises ValueError on a checksum mismatch; a wrong key or
    tampered ciphertext raises cryptography's InvalidTag.
    """
    key = _key_from_hex(key_hex)
    with open(enc_path + ".sha256", "r") as f:
        expected = f.read().split()[0]
    if _sha256_file(enc_path) != expected:
        raise ValueError(f"Checksum mismatch for {enc_path}")

    with open(enc_path, "rb") as f:
        blob = f.read()
    plaintext = AESGCM(key).decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], None)
    return json.loads(plaintext)
