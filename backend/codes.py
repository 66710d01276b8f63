"""Friend code generation."""
import logging
import secrets

from .config import DEFAULT_CODE_ALPHABET
from .errors import StorageError

log = logging.getLogger('potencia.codes')


def generate_code(alphabet: str = DEFAULT_CODE_ALPHABET, length: int = 6) -> str:
    return ''.join(secrets.choice(alphabet) for _ in range(length))


async def issue_unique_code(store, alphabet: str = DEFAULT_CODE_ALPHABET,
                            length: int = 6, attempts: int = 10) -> str:
    """Draw codes until one is not yet used by any stored user.

    The check is advisory: another request may still claim the same code before
    our insert lands, in which case the store's unique index rejects the insert.
    """
    for _ in range(attempts):
        code = generate_code(alphabet, length)
        if await store.find_by_code(code) is None:
            return code
        log.debug('code %s already issued, drawing again', code)
    log.error('no free friend code after %d attempts', attempts)
    raise StorageError('could not allocate a friend code')
