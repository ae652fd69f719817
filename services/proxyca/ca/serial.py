"""Random certificate serial numbers.

Uniqueness is probabilistic: four independent 32-bit blocks from the OS
CSPRNG give a 128-bit serial, so collisions over the lifetime of one
authority are negligible. No registry of issued serials is kept.
"""

import secrets

SERIAL_BLOCKS = 4
BLOCK_BITS = 32


def next_serial() -> int:
    """Return a positive 128-bit serial number."""
    while True:
        serial = 0
        for _ in range(SERIAL_BLOCKS):
            serial = (serial << BLOCK_BITS) | secrets.randbits(BLOCK_BITS)
        # X.509 serials must be positive
        if serial:
            return serial


class SerialAllocator:
    """Serial source handed to the root authority and the leaf issuer."""

    def next(self) -> int:
        return next_serial()
