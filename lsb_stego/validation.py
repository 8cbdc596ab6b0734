from lsb_stego.errors import InvalidKey, InvalidDepth

MAX_KEY_LENGTH = 25
VALID_DEPTHS = (1, 2, 3, 4)


def validate_key(key: str) -> None:
    if key is None or len(key) == 0:
        raise InvalidKey("stego key cannot be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidKey(f"stego key cannot exceed {MAX_KEY_LENGTH} characters, got {len(key)}")


def validate_depth(n_lsb) -> None:
    # bool is an int subclass; True must not pass as depth 1
    if isinstance(n_lsb, bool) or not isinstance(n_lsb, int) or n_lsb not in VALID_DEPTHS:
        raise InvalidDepth(f"n_lsb must be between 1 and 4, got {n_lsb!r}")
