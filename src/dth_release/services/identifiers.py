"""Load ids, PINs and verification tokens."""

import secrets
import uuid
from typing import Callable, Optional

import structlog

from ..errors import GenerationExhausted

logger = structlog.get_logger(__name__)


class IdentifierGenerator:
    """
    Produces identifiers for new loads.

    - Load ids: ``PREFIX + 6 uppercase hex``, checked against the store
    - PINs: 6 random digits, scoped to one load, no uniqueness check
    - Tokens: random UUID4, the only public lookup key
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        prefix: str = "DTH-",
        max_attempts: int = 5,
        pin_length: int = 6,
    ):
        self.exists = exists
        self.prefix = prefix
        self.max_attempts = max_attempts
        self.pin_length = pin_length

    def generate_load_id(self) -> str:
        """Generate a load id not yet present in the store."""
        for attempt in range(1, self.max_attempts + 1):
            candidate = f"{self.prefix}{secrets.token_hex(3).upper()}"
            if not self.exists(candidate):
                return candidate
            logger.warning("load_id_collision", load_id=candidate, attempt=attempt)

        raise GenerationExhausted(
            f"Could not generate a unique load id after {self.max_attempts} attempts"
        )

    def generate_pin(self, length: Optional[int] = None) -> str:
        """Uniform draw from [100000, 999999], truncated to ``length``."""
        if length is None:
            length = self.pin_length
        if not 1 <= length <= 6:
            raise ValueError(f"PIN length must be between 1 and 6, got {length}")
        return str(100000 + secrets.randbelow(900000))[:length]

    @staticmethod
    def generate_token() -> str:
        return str(uuid.uuid4())
