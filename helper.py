import secrets
import uuid

# Excludes I, O, 0 and 1 so codes can be read out loud
SESSION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def to_camel_case(snake_str: str) -> str:
    parts = snake_str.split('_')
    return parts[0] + ''.join(x.title() for x in parts[1:])


def generate_id() -> str:
    return str(uuid.uuid4())


def generate_session_code(length: int = 6) -> str:
    """Short, human-readable join code for sharing a session."""
    return ''.join(secrets.choice(SESSION_CODE_ALPHABET) for _ in range(length))
