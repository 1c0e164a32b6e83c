"""
Secret Generator — random passwords from selectable character classes.

Every selected class contributes at least one character, so a generated
secret always satisfies the classes it was asked for.
"""
import secrets
import string

from .conf import (
    AMBIGUOUS_CHARS,
    GENERATOR_DEFAULT_LENGTH,
    GENERATOR_MAX_LENGTH,
    GENERATOR_MIN_LENGTH,
)
from .exceptions import ValidationError

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def _pool(chars: str, exclude_ambiguous: bool) -> str:
    if exclude_ambiguous:
        return "".join(c for c in chars if c not in AMBIGUOUS_CHARS)
    return chars


def generate_secret(
    length: int = GENERATOR_DEFAULT_LENGTH,
    *,
    upper: bool = True,
    lower: bool = True,
    digits: bool = True,
    symbols: bool = True,
    exclude_ambiguous: bool = True,
) -> str:
    """Generate a random secret with the ``secrets`` CSPRNG.

    Args:
        length: Number of characters, between 8 and 50.
        upper, lower, digits, symbols: Character classes to draw from.
        exclude_ambiguous: Drop brackets, quotes and other look-alike symbols.

    Raises:
        ValidationError: Length out of range or no character class selected.
    """
    if not GENERATOR_MIN_LENGTH <= length <= GENERATOR_MAX_LENGTH:
        raise ValidationError(
            f"Length must be between {GENERATOR_MIN_LENGTH} and "
            f"{GENERATOR_MAX_LENGTH}",
            field="length",
        )
    selected = (
        (upper, UPPERCASE), (lower, LOWERCASE), (digits, DIGITS), (symbols, SYMBOLS),
    )
    pools = [_pool(chars, exclude_ambiguous) for wanted, chars in selected if wanted]
    if not pools:
        raise ValidationError("Select at least one character set", field="charset")
    chars = [secrets.choice(p) for p in pools]
    alphabet = "".join(pools)
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    # Fisher-Yates so the guaranteed characters are not always first
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)
