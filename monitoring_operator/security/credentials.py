"""Generated credentials for managed components."""
import base64
import re
import secrets

from ..errors import CredentialError

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]+")

# Random bytes drawn per requested character
OVERSAMPLING = 3


def generate_password(length: int) -> str:
    """
    Generate a password of exactly `length` letters and digits.

    Random bytes are base64 encoded and stripped of non-alphanumeric
    characters; more bytes are drawn until enough characters survive.
    """
    if length < 1:
        raise CredentialError(f"Password length must be at least 1, got {length}")
    password = ""
    while len(password) < length:
        try:
            raw = secrets.token_bytes(length * OVERSAMPLING)
        except OSError as e:
            raise CredentialError(f"Random source failed: {e}") from e
        password += _NON_ALPHANUMERIC.sub("", base64.b64encode(raw).decode("ascii"))
    return password[:length]
