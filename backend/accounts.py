# Account REST endpoints: register with a password, login, delete.
import asyncio
import logging

import bcrypt
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from .codes import issue_unique_code
from .errors import DuplicateUserError, NotFoundError, StorageError, ValidationError
from .models import Credentials, DeleteAccountRequest, clean_username

log = logging.getLogger('potencia.accounts')

MIN_PASSWORD_LENGTH = 4
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

router = APIRouter(prefix='/api')


def get_store(request: Request):
    return request.app.state.store


def get_settings(request: Request):
    return request.app.state.settings


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=10)).decode('utf-8')


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


def password_too_long(password: str) -> bool:
    return len(password.encode('utf-8')) > MAX_PASSWORD_BYTES


def _fail(status: int, message: str) -> JSONResponse:
    return JSONResponse({'success': False, 'message': message}, status_code=status)


@router.post('/register')
async def register(body: Credentials, store=Depends(get_store), settings=Depends(get_settings)):
    try:
        username = clean_username(body.username)
    except ValidationError as e:
        return _fail(400, e.message)
    if len(body.password) < MIN_PASSWORD_LENGTH:
        return _fail(400, f'password must be at least {MIN_PASSWORD_LENGTH} characters')
    if password_too_long(body.password):
        return _fail(400, f'password must be at most {MAX_PASSWORD_BYTES} bytes')
    if await store.find_by_username(username) is not None:
        return _fail(409, 'username already exists')

    password_hash = await asyncio.to_thread(hash_password, body.password)
    for _ in range(settings.code_attempts):
        code = await issue_unique_code(store, settings.code_alphabet,
                                       settings.code_length, settings.code_attempts)
        try:
            await store.create(username, code, password_hash)
        except DuplicateUserError as e:
            if e.field == 'username':
                return _fail(409, 'username already exists')
            log.debug('code %s claimed meanwhile, drawing again', code)
        else:
            log.info('account %s registered', username)
            return JSONResponse({'success': True, 'message': 'user created'}, status_code=201)
    raise StorageError('could not allocate a friend code')


@router.post('/login')
async def login(body: Credentials, store=Depends(get_store)):
    user = await store.find_by_username(body.username.strip())
    if user is None or not user.password_hash or password_too_long(body.password):
        return _fail(401, 'wrong username or password')
    if not await asyncio.to_thread(check_password, body.password, user.password_hash):
        return _fail(401, 'wrong username or password')
    log.info('account %s logged in', user.username)
    return {'success': True, 'user': {'username': user.username, 'code': user.code}}


@router.post('/delete-account')
async def delete_account(body: DeleteAccountRequest, store=Depends(get_store)):
    if not await store.delete(body.username.strip()):
        raise NotFoundError('no user with that name')
    log.info('account %s deleted', body.username.strip())
    return {'success': True, 'message': 'account deleted, you can register again'}
