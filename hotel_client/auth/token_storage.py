"""
Credential storage for the Hotel Dashboard API client.

This module persists the access/refresh token pair using the system keyring,
or an encrypted file when no keyring is usable. The pair is always stored as a
single record so readers never see tokens from two different sessions.
"""

import os
import json
import logging
import tempfile
import threading
from datetime import datetime
from typing import Optional, Dict, Any
from pathlib import Path

import keyring
from cryptography.fernet import Fernet, InvalidToken

from hotel_shared.exceptions import CredentialStoreError
from hotel_shared.interfaces import ICredentialStore
from hotel_shared.models import CredentialPair

logger = logging.getLogger(__name__)


CREDENTIALS_KEY = "credentials"
ENCRYPTION_KEY_NAME = "encryption_key"


class MemoryTokenStorage(ICredentialStore):
    """Credential store that lives only as long as the process."""

    def __init__(self, pair: Optional[CredentialPair] = None):
        self._pair = pair
        self._lock = threading.Lock()

    def get(self) -> Optional[CredentialPair]:
        with self._lock:
            return self._pair

    def set(self, access_token: str, refresh_token: str) -> None:
        pair = CredentialPair(access_token=access_token, refresh_token=refresh_token)
        with self._lock:
            self._pair = pair

    def remove(self) -> None:
        with self._lock:
            self._pair = None


class SecureTokenStorage(ICredentialStore):
    """
    Secure storage for the credential pair.

    Uses the system keyring when available, falls back to Fernet-encrypted
    file storage. The encryption key is kept in the keyring when possible,
    otherwise in a private key file beside the token file.
    """

    def __init__(
        self,
        service_name: str = "hotel-dashboard",
        storage_dir: Optional[str] = None,
        use_keyring: bool = True
    ):
        self.service_name = service_name
        self.keyring_available = use_keyring and self._check_keyring_availability()
        self.storage_path = self._get_storage_path(storage_dir)
        self.key_path = self.storage_path.with_name('credentials.key')

        self._encryption_key: Optional[bytes] = None
        self._lock = threading.RLock()

        logger.info(f"Token storage initialized (keyring: {self.keyring_available})")

    def _check_keyring_availability(self) -> bool:
        """Check if system keyring is usable with a write/read/delete round trip."""
        try:
            test_key = f"{self.service_name}_test"
            keyring.set_password(self.service_name, test_key, "test")
            result = keyring.get_password(self.service_name, test_key)
            keyring.delete_password(self.service_name, test_key)
            return result == "test"
        except Exception as e:
            logger.debug(f"Keyring not available: {e}")
            return False

    def _get_storage_path(self, storage_dir: Optional[str]) -> Path:
        """Get path for encrypted file storage."""
        if storage_dir:
            config_dir = Path(storage_dir)
        else:
            xdg_config = os.environ.get('XDG_CONFIG_HOME')
            if xdg_config:
                config_dir = Path(xdg_config) / 'hotel-dashboard'
            else:
                config_dir = Path.home() / '.config' / 'hotel-dashboard'

        return config_dir / 'credentials.enc'

    def _get_encryption_key(self) -> bytes:
        """Get or create encryption key for file storage."""
        if self._encryption_key:
            return self._encryption_key

        if self.keyring_available:
            try:
                stored_key = keyring.get_password(self.service_name, ENCRYPTION_KEY_NAME)
                if stored_key:
                    self._encryption_key = stored_key.encode()
                    return self._encryption_key
            except Exception as e:
                logger.warning(f"Failed to get encryption key from keyring: {e}")
        elif self.key_path.exists():
            self._encryption_key = self.key_path.read_bytes().strip()
            return self._encryption_key

        key = Fernet.generate_key()

        if self.keyring_available:
            try:
                keyring.set_password(self.service_name, ENCRYPTION_KEY_NAME, key.decode())
            except Exception as e:
                logger.warning(f"Failed to store encryption key in keyring: {e}")
        else:
            self._write_private_file(self.key_path, key)

        self._encryption_key = key
        return key

    def _write_private_file(self, path: Path, data: bytes) -> None:
        """Atomically replace a file, readable only by the current user."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.chmod(temp_path, 0o600)
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def _encrypt_data(self, data: str) -> bytes:
        """Encrypt data for file storage."""
        return Fernet(self._get_encryption_key()).encrypt(data.encode())

    def _decrypt_data(self, encrypted_data: bytes) -> str:
        """Decrypt data from file storage."""
        return Fernet(self._get_encryption_key()).decrypt(encrypted_data).decode()

    def get(self) -> Optional[CredentialPair]:
        """
        Retrieve the stored credential pair.

        Returns:
            The pair, or None if nothing usable is stored
        """
        with self._lock:
            try:
                if self.keyring_available:
                    record = self._read_keyring()
                else:
                    record = self._read_file()
            except Exception as e:
                logger.error(f"Failed to retrieve credentials: {e}")
                return None

        if not record:
            return None

        try:
            return CredentialPair(
                access_token=record['access_token'],
                refresh_token=record['refresh_token']
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed credential record: {e}")
            return None

    def set(self, access_token: str, refresh_token: str) -> None:
        """
        Store the credential pair as one record.

        Args:
            access_token: Access token
            refresh_token: Refresh token issued with it

        Raises:
            CredentialStoreError: If the pair could not be written
        """
        pair = CredentialPair(access_token=access_token, refresh_token=refresh_token)
        record = pair.to_dict()
        record['stored_at'] = datetime.now().isoformat()

        with self._lock:
            try:
                if self.keyring_available:
                    keyring.set_password(self.service_name, CREDENTIALS_KEY, json.dumps(record))
                else:
                    self._write_private_file(self.storage_path, self._encrypt_data(json.dumps(record)))
            except Exception as e:
                logger.error(f"Failed to store credentials: {e}")
                raise CredentialStoreError(f"Failed to store credentials: {e}", cause=e)

        logger.info("Credentials stored securely")

    def remove(self) -> None:
        """
        Remove the stored credential pair.

        Raises:
            CredentialStoreError: If stored credentials exist but could not be removed
        """
        with self._lock:
            try:
                if self.keyring_available:
                    self._remove_keyring()
                elif self.storage_path.exists():
                    self.storage_path.unlink()
            except Exception as e:
                logger.error(f"Failed to remove credentials: {e}")
                raise CredentialStoreError(f"Failed to remove credentials: {e}", cause=e)

        logger.info("Stored credentials removed")

    def _read_keyring(self) -> Optional[Dict[str, Any]]:
        """Get the credential record from the system keyring."""
        value = keyring.get_password(self.service_name, CREDENTIALS_KEY)
        if value:
            return json.loads(value)
        return None

    def _remove_keyring(self) -> None:
        """Remove the credential record from the system keyring."""
        if keyring.get_password(self.service_name, CREDENTIALS_KEY) is not None:
            keyring.delete_password(self.service_name, CREDENTIALS_KEY)

    def _read_file(self) -> Optional[Dict[str, Any]]:
        """Get the credential record from the encrypted file."""
        if not self.storage_path.exists():
            return None

        try:
            return json.loads(self._decrypt_data(self.storage_path.read_bytes()))
        except InvalidToken:
            logger.warning("Credential file could not be decrypted; treating as absent")
            return None


def create_token_storage(config) -> ICredentialStore:
    """
    Create the credential store selected by configuration.

    Args:
        config: ClientConfiguration instance

    Returns:
        Credential store for the configured backend
    """
    backend = config.get_credential_backend()

    if backend == 'memory':
        return MemoryTokenStorage()

    storage = SecureTokenStorage(
        service_name=config.get_service_name(),
        storage_dir=config.get_storage_dir(),
        use_keyring=backend == 'keyring'
    )

    if backend == 'keyring' and not storage.keyring_available:
        logger.warning("System keyring unavailable, using encrypted file storage")

    return storage

