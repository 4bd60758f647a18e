"""Random identifiers for executions and error reports."""

import secrets
import string

ID_LENGTH = 21

# Docker container names accept [a-zA-Z0-9_.-]; lowercase keeps labels uniform
EXECUTION_ID_ALPHABET = string.ascii_lowercase + string.digits
REQUEST_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


def generate_nanoid(length: int = ID_LENGTH, alphabet: str = REQUEST_ID_ALPHABET) -> str:
    """Generate a nanoid-style ID from ``alphabet`` using the OS CSPRNG."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_execution_id() -> str:
    """ID embedded in container names and labels."""
    return generate_nanoid(ID_LENGTH, EXECUTION_ID_ALPHABET)


def generate_request_id() -> str:
    """Generate a request ID for error tracking."""
    return generate_nanoid(ID_LENGTH)
