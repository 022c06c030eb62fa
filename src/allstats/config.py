"""
Configuration for All Stats.
"""
import hashlib
import logging
import os
import secrets
import warnings
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Passkey security constants
MIN_PASSKEY_LENGTH = 16

ENV_PREFIX = "ALLSTATS_"


class PasskeyTooShortError(ValueError):
    """Raised when a passkey doesn't meet minimum length requirements."""
    pass


def validate_passkey_strength(passkey: str) -> None:
    """Validate passkey meets security requirements.

    Raises:
        PasskeyTooShortError: If passkey is shorter than MIN_PASSKEY_LENGTH
    """
    if len(passkey) < MIN_PASSKEY_LENGTH:
        raise PasskeyTooShortError(
            f"Passkey must be at least {MIN_PASSKEY_LENGTH} characters. "
            f"Got {len(passkey)} characters."
        )


def hash_passkey(passkey: str, validate: bool = True) -> str:
    """Hash a passkey using PBKDF2-SHA256.

    Returns a string in format: pbkdf2:iterations:salt_hex:hash_hex

    Use this function to generate a hashed passkey for the config:

        from allstats.config import hash_passkey
        print(hash_passkey("your-secret-passkey"))

    Args:
        passkey: The plaintext passkey to hash
        validate: If True, validate passkey meets minimum length requirements

    Raises:
        PasskeyTooShortError: If validate=True and passkey is too short
    """
    if validate:
        validate_passkey_strength(passkey)

    salt = os.urandom(16)
    iterations = 100_000
    dk = hashlib.pbkdf2_hmac("sha256", passkey.encode(), salt, iterations)
    return f"pbkdf2:{iterations}:{salt.hex()}:{dk.hex()}"


def verify_passkey(stored: str, provided: str) -> bool:
    """Verify a passkey using timing-safe comparison.

    Handles both hashed (pbkdf2:...) and legacy plaintext passkeys.
    """
    if stored.startswith("pbkdf2:"):
        try:
            _, iterations_str, salt_hex, hash_hex = stored.split(":")
            iterations = int(iterations_str)
            salt = bytes.fromhex(salt_hex)
            expected_hash = bytes.fromhex(hash_hex)

            dk = hashlib.pbkdf2_hmac("sha256", provided.encode(), salt, iterations)
            return secrets.compare_digest(dk, expected_hash)
        except (ValueError, TypeError):
            return False
    else:
        return secrets.compare_digest(stored.encode(), provided.encode())


@dataclass
class StatsConfig:
    """Configuration for a stats API instance."""

    # Required
    d1_database_id: str
    cf_account_id: str
    cf_api_token: str

    # Websites this instance may report on (empty = any)
    website_ids: list[str] = field(default_factory=list)

    # Optional authentication
    passkey: str | None = None

    # Query behaviour
    default_limit: int = 10
    query_timeout_seconds: float = 30.0

    # Re-rank combined languages by merged count instead of first-seen order
    sort_languages: bool = False

    @property
    def has_auth(self) -> bool:
        """Check if any authentication is configured."""
        return bool(self.passkey)

    def can_view_website(self, website_id: str) -> bool:
        return not self.website_ids or website_id in self.website_ids

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.default_limit < 0:
            raise ValueError(f"default_limit must be >= 0, got {self.default_limit}")
        if self.query_timeout_seconds <= 0:
            raise ValueError(
                f"query_timeout_seconds must be > 0, got {self.query_timeout_seconds}"
            )
        self._validate_passkey()

    def _validate_passkey(self) -> None:
        """Warn about plaintext or short passkeys."""
        if not self.passkey:
            return

        if self.passkey.startswith("pbkdf2:"):
            logger.debug("Using hashed passkey")
        else:
            warnings.warn(
                "Using plaintext passkey is deprecated. "
                "Use hash_passkey() to generate a hashed passkey:\n"
                "  from allstats.config import hash_passkey\n"
                "  print(hash_passkey('your-passkey'))",
                DeprecationWarning,
                stacklevel=3
            )
            if len(self.passkey) < MIN_PASSKEY_LENGTH:
                logger.warning(
                    f"Passkey is shorter than recommended {MIN_PASSKEY_LENGTH} characters"
                )

    @property
    def is_passkey_hashed(self) -> bool:
        """Check if the passkey is properly hashed."""
        return bool(self.passkey and self.passkey.startswith("pbkdf2:"))

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "StatsConfig":
        """Build config from ALLSTATS_* environment variables.

        Required: ALLSTATS_D1_DATABASE_ID, ALLSTATS_CF_ACCOUNT_ID,
        ALLSTATS_CF_API_TOKEN. WEBSITE_IDS is comma separated.
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str | None = None) -> str | None:
            return env.get(f"{ENV_PREFIX}{name}", default)

        missing = [
            name for name in ("D1_DATABASE_ID", "CF_ACCOUNT_ID", "CF_API_TOKEN")
            if not get(name)
        ]
        if missing:
            raise ValueError(
                "Missing required settings: "
                + ", ".join(f"{ENV_PREFIX}{name}" for name in missing)
            )

        website_ids = [w.strip() for w in (get("WEBSITE_IDS") or "").split(",") if w.strip()]

        return cls(
            d1_database_id=get("D1_DATABASE_ID"),
            cf_account_id=get("CF_ACCOUNT_ID"),
            cf_api_token=get("CF_API_TOKEN"),
            website_ids=website_ids,
            passkey=get("PASSKEY") or None,
            default_limit=int(get("DEFAULT_LIMIT", "10")),
            query_timeout_seconds=float(get("QUERY_TIMEOUT_SECONDS", "30")),
            sort_languages=(get("SORT_LANGUAGES", "") or "").lower() in ("1", "true", "yes"),
        )
