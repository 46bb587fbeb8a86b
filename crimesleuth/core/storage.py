import os
import hashlib
import logging
import uuid
from pathlib import Path
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from .config import settings

logger = logging.getLogger(__name__)


def storage_dir() -> Path:
    path = Path(settings.storage_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of data"""
    return hashlib.sha256(data).hexdigest()


def generate_safe_filename() -> str:
    """Generate a safe random filename"""
    return f"{uuid.uuid4()}.bin"


def store_file(plaintext: bytes) -> tuple[str, str]:
    """
    Encrypt file data using AES-256-GCM and write it to the store
    Returns: (cipher_filename, sha256_hex)
    """
    sha256_hex = compute_sha256(plaintext)

    # Generate random nonce (12 bytes for GCM)
    nonce = os.urandom(12)
    encryptor = Cipher(algorithms.AES(settings.aes_key), modes.GCM(nonce)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()

    # File format: nonce(12) + ciphertext + tag(16)
    cipher_filename = generate_safe_filename()
    with open(storage_dir() / cipher_filename, "wb") as f:
        f.write(nonce + ciphertext + encryptor.tag)

    logger.info("Stored encrypted blob %s (%d bytes)", cipher_filename, len(plaintext))
    return cipher_filename, sha256_hex


def read_file(cipher_filename: str) -> bytes:
    """
    Decrypt file data using AES-256-GCM
    Returns: plaintext bytes
    """
    cipher_path = storage_dir() / cipher_filename

    if not cipher_path.exists():
        raise FileNotFoundError(f"Encrypted file not found: {cipher_filename}")

    with open(cipher_path, "rb") as f:
        encrypted_data = f.read()

    nonce = encrypted_data[:12]
    tag = encrypted_data[-16:]
    ciphertext = encrypted_data[12:-16]

    decryptor = Cipher(algorithms.AES(settings.aes_key), modes.GCM(nonce, tag)).decryptor()
    return decryptor.update(ciphertext) + decryptor.finalize()


def delete_file(cipher_filename: str) -> None:
    """Remove a stored blob; raises OSError if it cannot be removed"""
    cipher_path = storage_dir() / cipher_filename
    if not cipher_path.exists():
        raise FileNotFoundError(f"Encrypted file not found: {cipher_filename}")
    cipher_path.unlink()
    logger.info("Deleted encrypted blob %s", cipher_filename)
