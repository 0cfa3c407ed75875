"""Admin credentials: Argon2 password hashing, verification and provisioning."""

import os
import secrets
import string
from pathlib import Path
from typing import Optional

from argon2 import PasswordHasher, extract_parameters
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from simple_docker_manager.config import Settings
from simple_docker_manager.utils import get_logger
from simple_docker_manager.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

GENERATED_PASSWORD_LENGTH = 24
PASSWORD_ALPHABET = string.ascii_letters + string.digits

DEFAULT_PASSWORD_FILE = ".sdm_password"

# Volume-friendly locations tried, in order, when running inside a container
CONTAINER_PASSWORD_FILES = (
    "/data/sdm_password",
    "/config/sdm_password",
    "/app/data/sdm_password",
    "/var/lib/sdm/password",
)

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """
    Hash a password with Argon2id.

    The result embeds algorithm, salt and cost parameters.

    Args:
        password: Plaintext password

    Returns:
        Encoded hash string ($argon2id$...)
    """
    return _hasher.hash(password)


def generate_password() -> str:
    """Generate a random 24-character alphanumeric password."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(GENERATED_PASSWORD_LENGTH))


def _running_in_container() -> bool:
    return (
        "KUBERNETES_SERVICE_HOST" in os.environ
        or "DOCKER_CONTAINER" in os.environ
        or "container" in os.environ
        or Path("/.dockerenv").exists()
    )


def resolve_password_file(settings: Settings) -> Path:
    """
    Decide where the generated password lives.

    Args:
        settings: Application settings

    Returns:
        Password file path
    """
    if settings.password_file:
        return Path(settings.password_file)

    if _running_in_container():
        for candidate in CONTAINER_PASSWORD_FILES:
            parent = Path(candidate).parent
            try:
                parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                continue
            return Path(candidate)

    return Path(DEFAULT_PASSWORD_FILE)


def load_password_from_file(path: Path) -> Optional[str]:
    """
    Read a previously saved password.

    Args:
        path: Password file

    Returns:
        The password, or None if the file is missing, unreadable or empty
    """
    if not path.exists():
        return None

    try:
        password = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning("Failed to read password file", extra={"path": str(path), "error": str(e)})
        return None

    return password or None


def save_password_to_file(path: Path, password: str) -> None:
    """
    Write a password readable and writable by the owner only.

    Args:
        path: Password file
        password: Plaintext password

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(password)
    # O_CREAT's mode is ignored for a pre-existing file
    os.chmod(path, 0o600)

    logger.info("Password saved with owner-only permissions", extra={"path": str(path)})


class CredentialManager:
    """Holds the single admin account and checks passwords against it."""

    def __init__(self, username: str, password_hash: Optional[str] = None) -> None:
        """
        Initialize credential manager.

        Args:
            username: Admin username
            password_hash: Argon2 hash; None means every password is rejected
        """
        self.username = username
        self._password_hash = password_hash

    @property
    def password_hash(self) -> Optional[str]:
        return self._password_hash

    def set_password_hash(self, password_hash: str) -> None:
        """
        Backfill the hash once during provisioning.

        Raises:
            ConfigurationError: If a hash is already set
        """
        if self._password_hash is not None:
            raise ConfigurationError("Password hash is already configured")
        self._password_hash = password_hash

    def verify(self, password: str) -> bool:
        """
        Check a plaintext password against the stored hash.

        Args:
            password: Plaintext password

        Returns:
            True if it matches; False on mismatch or when no hash is set
        """
        if not self._password_hash:
            return False

        try:
            return _hasher.verify(self._password_hash, password)
        except VerifyMismatchError:
            return False
        except (VerificationError, InvalidHashError) as e:
            logger.error("Password verification failed", extra={"error": str(e)})
            return False

    def authenticate(self, username: str, password: str) -> bool:
        """
        Check a login attempt.

        The hash is verified even for an unknown username, so both kinds of
        failure take the same time and produce the same result.

        Args:
            username: Submitted username
            password: Submitted password

        Returns:
            True if both match
        """
        password_ok = self.verify(password)
        if username == self.username and password_ok:
            return True

        logger.warning("Failed login attempt", extra={"username": username})
        return False


def provision_credentials(settings: Settings) -> CredentialManager:
    """
    Build the credential manager at startup.

    The first configured source wins: plaintext password, then a
    pre-computed hash, then the saved password file, then a newly
    generated password written to that file.

    Args:
        settings: Application settings

    Returns:
        CredentialManager with a hash set

    Raises:
        ConfigurationError: If the configured hash is not a valid Argon2 hash
    """
    credentials = CredentialManager(settings.auth_username)

    if settings.auth_password:
        credentials.set_password_hash(hash_password(settings.auth_password))
        logger.info("Using configured password", extra={"username": settings.auth_username})
        return credentials

    if settings.auth_password_hash:
        try:
            extract_parameters(settings.auth_password_hash)
        except InvalidHashError as e:
            raise ConfigurationError(f"SDM_AUTH_PASSWORD_HASH is not a valid Argon2 hash: {e}")
        credentials.set_password_hash(settings.auth_password_hash)
        logger.info("Using configured password hash", extra={"username": settings.auth_username})
        return credentials

    password_file = resolve_password_file(settings)

    saved_password = load_password_from_file(password_file)
    if saved_password:
        credentials.set_password_hash(hash_password(saved_password))
        logger.info(
            "Using saved password",
            extra={"username": settings.auth_username, "path": str(password_file)},
        )
        return credentials

    generated = generate_password()
    credentials.set_password_hash(hash_password(generated))
    try:
        save_password_to_file(password_file, generated)
    except OSError as e:
        logger.error(
            "Failed to save generated password; set SDM_AUTH_PASSWORD to sign in",
            extra={"path": str(password_file), "error": str(e)},
        )
    else:
        logger.warning(
            "Generated a new admin password; read it from the password file "
            "or set SDM_AUTH_PASSWORD",
            extra={"username": settings.auth_username, "path": str(password_file)},
        )

    return credentials
