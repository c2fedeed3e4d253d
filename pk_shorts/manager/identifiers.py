"""
Identifier generation and custom-identifier validation for pk-shorts.

Provided strategies:
- StandardStrategy: 8 random bytes -> base64url -> first 8 characters
- SecureStrategy:   16 random bytes -> base64url, padding dropped,
                    "-" -> "x" and "_" -> "y", first 16 characters

Both draw from `secrets.token_bytes` (CSPRNG). Neither checks uniqueness;
LinkStore probes the bucket and asks for another candidate on collision.

The secure substitution folds "-" onto "x" and "_" onto "y", so those two
letters are twice as likely as the rest. Stored secure identifiers depend on
this exact mapping, so it stays as is.

Custom identifiers:
- 3..50 characters from [A-Za-z0-9_-], case preserved
- may not equal a reserved route word (case-insensitive)

Requested identifiers are modelled as a tagged variant consumed by
LinkStore.create:

    RequestedIdentifier = Custom(identifier) | Generated(strength)
"""

import base64
import re
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Type, Union

from ..errors import CustomIdValidationError, ValidationErrorKind

STANDARD_LENGTH = 8
SECURE_LENGTH = 16
SECURE_RANDOM_BYTES = 16

MIN_CUSTOM_LENGTH = 3
MAX_CUSTOM_LENGTH = 50
RESERVED_IDENTIFIERS = frozenset({"api", "admin", "health", "static", "assets", "js", "css"})

URL_SAFE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
_CUSTOM_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
_SECURE_SUBSTITUTIONS = str.maketrans({"-": "x", "_": "y"})


class Strength(str, Enum):
    STANDARD = "standard"
    SECURE = "secure"


def _urlsafe(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


class BaseStrategy(ABC):
    """Abstract base for identifier generation strategies."""

    @abstractmethod
    def generate(self) -> str:
        """Return one random candidate identifier."""
        raise NotImplementedError


@dataclass(frozen=True)
class StandardStrategy(BaseStrategy):
    """Short, convenient identifiers over the full base64url alphabet."""
    length: int = STANDARD_LENGTH

    def generate(self) -> str:
        # one random byte per output character leaves the encoding long enough to truncate
        return _urlsafe(secrets.token_bytes(self.length))[: self.length]


@dataclass(frozen=True)
class SecureStrategy(BaseStrategy):
    """
    Longer identifiers meant to resist enumeration.

    16 bytes encode to 22 significant characters; "-" and "_" are remapped
    rather than stripped so the output never comes up short.
    """
    length: int = SECURE_LENGTH
    random_bytes: int = SECURE_RANDOM_BYTES

    def generate(self) -> str:
        encoded = _urlsafe(secrets.token_bytes(self.random_bytes))
        encoded = encoded.rstrip("=").translate(_SECURE_SUBSTITUTIONS)
        return encoded[: self.length]


STRATEGY_REGISTRY: Dict[Strength, Type[BaseStrategy]] = {
    Strength.STANDARD: StandardStrategy,
    Strength.SECURE: SecureStrategy,
}


class IdentifierGenerator:
    """
    Stateless facade over the registered strategies.

    LinkStore takes one of these as an injected dependency; tests pass a
    generator built from scripted strategies to force collisions.
    """

    def __init__(self, strategies: Optional[Dict[Strength, BaseStrategy]] = None):
        self.strategies: Dict[Strength, BaseStrategy] = {
            strength: cls() for strength, cls in STRATEGY_REGISTRY.items()
        }
        if strategies:
            self.strategies.update(strategies)

    def generate(self, strength: Strength) -> str:
        return self.strategies[Strength(strength)].generate()

    def generate_standard(self) -> str:
        return self.generate(Strength.STANDARD)

    def generate_secure(self) -> str:
        return self.generate(Strength.SECURE)

    @staticmethod
    def validate_custom(identifier: str) -> None:
        validate_custom(identifier)


def validate_custom(identifier: str) -> None:
    """
    Check a caller-chosen identifier.

    Rules are applied in order: length, character set, reserved words.

    Raises:
        CustomIdValidationError: With `kind` set to the first rule that failed.
    """
    if len(identifier) < MIN_CUSTOM_LENGTH:
        raise CustomIdValidationError(
            identifier,
            ValidationErrorKind.TOO_SHORT,
            f"custom ID must be at least {MIN_CUSTOM_LENGTH} characters long",
        )
    if len(identifier) > MAX_CUSTOM_LENGTH:
        raise CustomIdValidationError(
            identifier,
            ValidationErrorKind.TOO_LONG,
            f"custom ID must be no more than {MAX_CUSTOM_LENGTH} characters long",
        )
    if not _CUSTOM_PATTERN.fullmatch(identifier):
        raise CustomIdValidationError(
            identifier,
            ValidationErrorKind.INVALID_CHARACTER,
            "custom ID can only contain letters, numbers, dashes, and underscores",
        )
    if identifier.lower() in RESERVED_IDENTIFIERS:
        raise CustomIdValidationError(
            identifier,
            ValidationErrorKind.RESERVED,
            f"'{identifier}' is a reserved word and cannot be used as a custom ID",
        )


_default_generator = IdentifierGenerator()


def generate_standard() -> str:
    return _default_generator.generate_standard()


def generate_secure() -> str:
    return _default_generator.generate_secure()


# ---------------------------------------------------------------------
# Requested identifier variant
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Custom:
    """Store the link under exactly this identifier or fail."""
    identifier: str


@dataclass(frozen=True)
class Generated:
    """Pick a free random identifier of the given strength."""
    strength: Strength = Strength.STANDARD


RequestedIdentifier = Union[Custom, Generated]


def requested_identifier(custom_id: Optional[str] = None, secure: bool = False) -> RequestedIdentifier:
    """
    Build the variant from loose request fields.

    A custom id that is empty after stripping means "generate one"; `secure`
    is ignored when a custom id is given.
    """
    custom_id = (custom_id or "").strip()
    if custom_id:
        return Custom(custom_id)
    return Generated(Strength.SECURE if secure else Strength.STANDARD)
