import re

from puzzz.errors import ValidationError

ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'
MAX_NAME_LENGTH = 50
MAX_INPUT_LENGTH = 1000

_ROOM_CODE_RE = re.compile(r'^[A-Z0-9]{%d}$' % ROOM_CODE_LENGTH)
_UNSAFE_CHARS_RE = re.compile(r'[<>"`\';&]')


def normalize_room_code(code) -> str:
    """Uppercase and validate a human-typed room code."""
    cleaned = (code or '').strip().upper()
    if not _ROOM_CODE_RE.match(cleaned):
        raise ValidationError(f'Room code must be {ROOM_CODE_LENGTH} letters or digits')
    return cleaned


def validate_player_name(name) -> str:
    trimmed = (name or '').strip()
    if not trimmed:
        raise ValidationError('Player name is required')
    if len(trimmed) > MAX_NAME_LENGTH:
        raise ValidationError(f'Player name must be at most {MAX_NAME_LENGTH} characters')
    if _UNSAFE_CHARS_RE.search(trimmed):
        raise ValidationError('Player name contains invalid characters')
    return trimmed


def sanitize_input(text, limit: int = MAX_INPUT_LENGTH) -> str:
    """Strip markup-significant characters from free-text answers."""
    return _UNSAFE_CHARS_RE.sub('', str(text or '')).strip()[:limit]
