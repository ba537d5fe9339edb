"""
Identifier Generation Tests

Load ids must be unique and bounded in retries, PINs must be six digits
without a leading zero, and tokens must be random UUIDs.
"""

import re
import uuid

import pytest

from dth_release.errors import GenerationExhausted
from dth_release.services import IdentifierGenerator

LOAD_ID_PATTERN = re.compile(r"^DTH-[0-9A-F]{6}$")


class TestLoadIds:
    """Load id format and collision handling"""

    def test_format(self):
        """Load ids are the prefix followed by six uppercase hex characters"""
        generator = IdentifierGenerator(exists=lambda candidate: False)

        for _ in range(50):
            load_id = generator.generate_load_id()
            assert LOAD_ID_PATTERN.match(load_id), f"Unexpected load id format: {load_id}"

    def test_retries_on_collision(self):
        """Colliding candidates are skipped until a free one is found"""
        seen = []

        def exists(candidate):
            seen.append(candidate)
            return len(seen) < 3

        load_id = IdentifierGenerator(exists=exists).generate_load_id()

        assert len(seen) == 3, f"Expected 3 lookups, got {len(seen)}"
        assert load_id == seen[-1]

    def test_exhaustion_is_bounded(self):
        """A store where every id exists fails after max_attempts, never loops forever"""
        calls = []

        def exists(candidate):
            calls.append(candidate)
            return True

        generator = IdentifierGenerator(exists=exists, max_attempts=5)

        with pytest.raises(GenerationExhausted):
            generator.generate_load_id()
        assert len(calls) == 5

    def test_custom_prefix(self):
        generator = IdentifierGenerator(exists=lambda candidate: False, prefix="ACME-")
        assert generator.generate_load_id().startswith("ACME-")


class TestPins:
    """PIN range and length"""

    def test_six_digits_no_leading_zero(self):
        """PINs are drawn from 100000..999999"""
        generator = IdentifierGenerator(exists=lambda candidate: False)

        for _ in range(500):
            pin = generator.generate_pin()
            assert len(pin) == 6 and pin.isdigit(), f"Bad PIN: {pin}"
            assert 100000 <= int(pin) <= 999999

    def test_truncated_length(self):
        generator = IdentifierGenerator(exists=lambda candidate: False, pin_length=4)
        assert len(generator.generate_pin()) == 4
        assert len(generator.generate_pin(2)) == 2

    def test_explicit_length_is_not_replaced_by_default(self):
        """An out-of-range explicit length is rejected, never swapped for the default"""
        generator = IdentifierGenerator(exists=lambda candidate: False)

        for length in (0, 7, -1):
            with pytest.raises(ValueError):
                generator.generate_pin(length)


class TestTokens:
    def test_tokens_are_random_uuid4(self):
        tokens = {IdentifierGenerator.generate_token() for _ in range(100)}

        assert len(tokens) == 100, "Tokens must not repeat"
        for token in tokens:
            assert uuid.UUID(token).version == 4
