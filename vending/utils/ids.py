"""
Short, human-presentable transaction ids.

Ids look like ``TX7KQ2M9ZC4A``: a fixed prefix followed by
TRANSACTION_ID_RANDOM_LENGTH characters drawn uniformly (``secrets``) from
A-Z0-9. That is 36**10, about 3.7e15 possible ids. The collision budget is
under 1e-3 for one million stored ids (collision_probability(10**6) is
about 1.4e-4).

Generation does not check the store. A duplicate surfaces as a primary-key
IntegrityError on insert, and the caller retries with a fresh id (see
TransactionService.create).
"""

import math
import secrets
import string

TRANSACTION_ID_PREFIX = "TX"
TRANSACTION_ID_ALPHABET = string.ascii_uppercase + string.digits
TRANSACTION_ID_RANDOM_LENGTH = 10
TRANSACTION_ID_MAX_LENGTH = 20


def generate_transaction_id(
    prefix: str = TRANSACTION_ID_PREFIX,
    length: int = TRANSACTION_ID_RANDOM_LENGTH,
) -> str:
    if len(prefix) + length > TRANSACTION_ID_MAX_LENGTH:
        raise ValueError(
            f"Transaction ids are limited to {TRANSACTION_ID_MAX_LENGTH} characters."
        )
    suffix = "".join(secrets.choice(TRANSACTION_ID_ALPHABET) for _ in range(length))
    return prefix + suffix


def id_space_size(length: int = TRANSACTION_ID_RANDOM_LENGTH) -> int:
    return len(TRANSACTION_ID_ALPHABET) ** length


def collision_probability(count: int, length: int = TRANSACTION_ID_RANDOM_LENGTH) -> float:
    """Birthday-bound probability of at least one duplicate among `count` ids."""
    if count < 2:
        return 0.0
    space = id_space_size(length)
    return -math.expm1(-count * (count - 1) / (2 * space))
