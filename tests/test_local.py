import os
import stat

import pytest

from fsadapters.exceptions import StorageConfigurationError, StorageError
from fsadapters.local import AsyncLocalAdapter


def mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


def test_root_is_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    adapter = AsyncLocalAdapter('storage')
    assert adapter.root == str(tmp_path / 'storage') + '/'
    assert adapter.apply_prefix('test/1.txt') == str(tmp_path / 'storage' / 'test' / '1.txt')


@pytest.mark.asyncio
async def test_write_creates_root_and_parents(tmp_path):
    adapter = AsyncLocalAdapter(str(tmp_path / 'storage'))
    await adapter.write('test/nested/1.txt', 'test')
    assert (tmp_path / 'storage' / 'test' / 'nested' / '1.txt').read_text() == 'test'


@pytest.mark.asyncio
async def test_write_fails_when_root_cannot_be_created(tmp_path):
    (tmp_path / 'blocker').write_text('file')
    adapter = AsyncLocalAdapter(str(tmp_path / 'blocker' / 'storage'))
    with pytest.raises(StorageError):
        await adapter.write('test/1.txt', 'test')


@pytest.mark.asyncio
async def test_visibility_maps_to_permissions(local_adapter):
    await local_adapter.write('test/1.txt', 'test', {'visibility': 'private'})
    location = local_adapter.apply_prefix('test/1.txt')
    assert mode(location) == 0o600

    await local_adapter.set_visibility('test/1.txt', 'public')
    assert mode(location) == 0o644


@pytest.mark.asyncio
async def test_directory_visibility(local_adapter):
    entry = await local_adapter.create_dir('secret', {'visibility': 'private'})
    assert entry.visibility == 'private'
    location = local_adapter.apply_prefix('secret')
    assert mode(location) == 0o700
    assert (await local_adapter.get_visibility('secret')).visibility == 'private'

    await local_adapter.set_visibility('secret', 'public')
    assert mode(location) == 0o755


@pytest.mark.asyncio
async def test_custom_permissions(tmp_path):
    adapter = AsyncLocalAdapter(str(tmp_path / 'storage'), permissions={'file': {'public': 0o640}})
    assert adapter.permissions['file'] == {'public': 0o640, 'private': 0o600}
    await adapter.write('1.txt', 'test', {'visibility': 'public'})
    assert mode(adapter.apply_prefix('1.txt')) == 0o640


@pytest.mark.asyncio
async def test_rename_into_blocked_destination_keeps_source(local_adapter):
    await local_adapter.write('blocker', 'file')
    await local_adapter.write('test/1.txt', 'test')
    assert await local_adapter.rename('test/1.txt', 'blocker/1.txt') is False
    assert await local_adapter.has('test/1.txt')


@pytest.mark.asyncio
async def test_delete_dir_on_file_fails(local_adapter):
    await local_adapter.write('test/1.txt', 'test')
    assert await local_adapter.delete_dir('test/1.txt') is False
    assert await local_adapter.has('test/1.txt')


@pytest.mark.asyncio
async def test_listing_reads_real_directories(local_adapter):
    await local_adapter.write('a/b/c.txt', 'abc')
    os.makedirs(local_adapter.apply_prefix('a/empty'))
    result = await local_adapter.list_contents('a', recursive=True)
    assert [entry.path for entry in result] == ['a/b', 'a/b/c.txt', 'a/empty']
    assert all(entry.timestamp is not None for entry in result)


@pytest.mark.asyncio
async def test_read_stream_iterates_chunks(local_adapter):
    await local_adapter.write('data.bin', b'x' * 10)
    reader = await local_adapter.read_stream('data.bin')
    reader.chunk_size = 4
    async with reader as stream:
        assert [len(chunk) async for chunk in stream] == [4, 4, 2]


@pytest.mark.asyncio
async def test_write_stream_from_file_object(local_adapter, tmp_path):
    source = tmp_path / 'source.bin'
    source.write_bytes(b'payload')
    with open(source, 'rb') as f:
        entry = await local_adapter.write_stream('copy.bin', f)
    assert entry.size == 7
    assert (await local_adapter.read('copy.bin')).contents == 'payload'


@pytest.mark.asyncio
async def test_connect(tmp_path):
    async with AsyncLocalAdapter.connect(str(tmp_path)) as adapter:
        assert isinstance(adapter, AsyncLocalAdapter)
        assert adapter.root == str(tmp_path) + '/'


@pytest.mark.asyncio
async def test_from_yaml(tmp_path):
    config = tmp_path / 'local.yaml'
    config.write_text(
        f'root: {tmp_path / "storage"}\n'
        'permissions:\n'
        '  file:\n'
        "    public: '0640'\n"
        '  dir:\n'
        '    private: 0750\n'
    )
    async with AsyncLocalAdapter.from_yaml(str(config)) as adapter:
        assert isinstance(adapter, AsyncLocalAdapter)
        assert adapter.root == str(tmp_path / 'storage') + '/'
        assert adapter.permissions['file']['public'] == 0o640
        assert adapter.permissions['dir']['private'] == 0o750
        assert adapter.permissions['dir']['public'] == 0o755


def test_from_yaml_requires_root(tmp_path):
    config = tmp_path / 'local.yaml'
    config.write_text('permissions: {}\n')
    with pytest.raises(StorageConfigurationError):
        AsyncLocalAdapter.from_yaml(str(config))


@pytest.mark.asyncio
async def test_copy_onto_directory_fails(local_adapter):
    await local_adapter.write('test/1.txt', 'test')
    await local_adapter.create_dir('target')
    assert await local_adapter.copy('test/1.txt', 'target') is False
    assert await local_adapter.copy('test/1.txt', 'other/') is False
    assert (await local_adapter.get_metadata('target')).type == 'dir'
    assert await local_adapter.list_contents('target') == []
    assert not await local_adapter.has('other/1.txt')


@pytest.mark.asyncio
async def test_copy_keeps_permission_bits(local_adapter):
    await local_adapter.write('test/1.txt', 'test', {'visibility': 'private'})
    assert await local_adapter.copy('test/1.txt', 'copy/1.txt')
    assert mode(local_adapter.apply_prefix('copy/1.txt')) == 0o600
