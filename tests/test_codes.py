import pytest

from backend import codes
from backend.errors import StorageError


def test_generate_code_uses_alphabet_and_length():
    code = codes.generate_code('AB', 10)
    assert len(code) == 10
    assert set(code) <= {'A', 'B'}


def test_default_code_is_six_upper_alphanumerics():
    code = codes.generate_code()
    assert len(code) == 6
    assert code.isalnum() and code == code.upper()


@pytest.mark.asyncio
async def test_issue_unique_code_skips_taken_codes(store, monkeypatch):
    await store.create('ana', 'AAAAAA')
    draws = iter(['AAAAAA', 'AAAAAA', 'BBBBBB'])
    monkeypatch.setattr(codes, 'generate_code', lambda alphabet, length: next(draws))

    assert await codes.issue_unique_code(store) == 'BBBBBB'


@pytest.mark.asyncio
async def test_issue_unique_code_gives_up(store, monkeypatch):
    await store.create('ana', 'AAAAAA')
    monkeypatch.setattr(codes, 'generate_code', lambda alphabet, length: 'AAAAAA')

    with pytest.raises(StorageError, match='could not allocate'):
        await codes.issue_unique_code(store, attempts=3)
