"""
LinkStore module for pk-shorts.

Responsibilities:
    - Create links under a custom or freshly generated identifier
    - Guarantee no two live records share an identifier
    - Resolve, count clicks, delete, and list links

Design notes:
    - The storage backend is injected; there is no module-level handle.
    - Every read-check-write runs inside one `storage.update()` block.
      Backends allow a single writer at a time, so two concurrent creates
      can never both see the same key as free.
    - Generated identifiers are retried inside that same transaction until
      a free key turns up. The candidate space (64^8 and up) makes repeat
      collisions vanishingly rare; `max_attempts` only guards against a
      broken generator.
    - Custom identifiers are never substituted: a taken one is an error.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..errors import (
    AlreadyExistsError,
    CustomIdValidationError,
    InvalidCustomIdError,
    LinkNotFoundError,
    StorageError,
)
from ..manager.identifiers import (
    Custom,
    Generated,
    IdentifierGenerator,
    RequestedIdentifier,
    Strength,
    validate_custom,
)
from ..models import Link, utcnow
from .base import BaseStorage, BucketTransaction

log = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 10_000


class LinkStore:
    """Durable, uniquely keyed storage of link records."""

    def __init__(
        self,
        storage: BaseStorage,
        generator: Optional[IdentifierGenerator] = None,
        max_attempts: int = MAX_GENERATION_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            storage (BaseStorage): Transactional bucket backend.
            generator (Optional[IdentifierGenerator]): Candidate source for generated ids.
            max_attempts (int): Upper bound on candidates tried per create.
            clock (Callable): Source of `created_at` timestamps.
        """
        self.storage = storage
        self.generator = generator or IdentifierGenerator()
        self.max_attempts = max_attempts
        self.clock = clock

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    def _claim_generated(self, tx: BucketTransaction, strength: Strength) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.generator.generate(strength)
            if tx.get(candidate) is None:
                return candidate
            log.debug("Identifier collision on %r (attempt %d, %s)", candidate, attempt, strength.value)
        raise StorageError(f"no free {strength.value} identifier after {self.max_attempts} attempts")

    @staticmethod
    def _load(tx: BucketTransaction, identifier: str) -> Link:
        data = tx.get(identifier)
        if data is None:
            raise LinkNotFoundError(identifier)
        return Link.from_bytes(data)

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def create(self, destination: str, requested: RequestedIdentifier) -> str:
        """
        Persist a new link and return the identifier actually used.

        Rules:
            - Custom(identifier): validate, then fail if the key is taken.
            - Generated(strength): draw candidates of that strength until
              one is free. The result may differ from the first candidate.

        Raises:
            InvalidCustomIdError: Custom identifier failed validation.
            AlreadyExistsError: Custom identifier is already stored.
            StorageError: Backend failure or lock timeout.
        """
        if isinstance(requested, Custom):
            try:
                validate_custom(requested.identifier)
            except CustomIdValidationError as exc:
                raise InvalidCustomIdError(exc.identifier, exc.kind, str(exc)) from exc
        elif not isinstance(requested, Generated):
            raise TypeError(f"unsupported identifier request: {requested!r}")

        with self.storage.update() as tx:
            if isinstance(requested, Custom):
                identifier = requested.identifier
                if tx.get(identifier) is not None:
                    raise AlreadyExistsError(identifier)
            else:
                identifier = self._claim_generated(tx, requested.strength)

            link = Link(identifier=identifier, destination=destination, created_at=self.clock())
            tx.put(identifier, link.to_bytes())

        log.info("Created link %r -> %s", identifier, destination)
        return identifier

    def get_link(self, identifier: str) -> Link:
        """Return the full record. Raises LinkNotFoundError."""
        with self.storage.view() as tx:
            return self._load(tx, identifier)

    def get(self, identifier: str) -> str:
        """Return the destination for `identifier`. Raises LinkNotFoundError."""
        return self.get_link(identifier).destination

    def increment_clicks(self, identifier: str) -> bool:
        """
        Add one click to a record.

        Returns:
            bool: False if the record does not exist (nothing is written).

        Raises:
            StorageError: Backend failure; absence is not an error.
        """
        with self.storage.update() as tx:
            try:
                link = self._load(tx, identifier)
            except LinkNotFoundError:
                return False
            tx.put(identifier, link.with_click().to_bytes())
        return True

    def delete(self, identifier: str) -> None:
        """Remove a record. Raises LinkNotFoundError if it was already gone."""
        with self.storage.update() as tx:
            if tx.get(identifier) is None:
                raise LinkNotFoundError(identifier)
            tx.delete(identifier)
        log.info("Deleted link %r", identifier)

    def list_all(self) -> List[Link]:
        """Every record from one snapshot, in ascending identifier order."""
        with self.storage.view() as tx:
            return [Link.from_bytes(data) for _, data in tx.items()]

    def close(self) -> None:
        self.storage.close()
