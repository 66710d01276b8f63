"""Runtime settings, read from the environment (and a local .env file)."""
import os
import string
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

DEFAULT_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(',') if o.strip()]


@dataclass(frozen=True)
class Settings:
    mongo_url: str = 'mongodb://localhost:27017'
    mongo_db: str = 'potencia'
    identity_backend: str = 'mongo'     # 'mongo' or 'memory'
    host: str = '0.0.0.0'
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: ['*'])
    static_dir: str = 'public'
    code_alphabet: str = DEFAULT_CODE_ALPHABET
    code_length: int = 6
    code_attempts: int = 10
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, dotenv: bool = True) -> 'Settings':
        if dotenv:
            load_dotenv()
        env = os.environ
        return cls(
            mongo_url=env.get('MONGODB_URI', 'mongodb://localhost:27017'),
            mongo_db=env.get('MONGODB_DB', 'potencia'),
            identity_backend=env.get('IDENTITY_BACKEND', 'mongo').lower(),
            host=env.get('HOST', '0.0.0.0'),
            port=int(env.get('PORT', '3000')),
            cors_origins=_split_origins(env.get('CORS_ORIGINS', '*')),
            static_dir=env.get('STATIC_DIR', 'public'),
            code_alphabet=env.get('CODE_ALPHABET', DEFAULT_CODE_ALPHABET),
            code_length=int(env.get('CODE_LENGTH', '6')),
            code_attempts=int(env.get('CODE_ATTEMPTS', '10')),
            log_level=env.get('LOG_LEVEL', 'INFO').upper(),
        )
