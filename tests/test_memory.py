import pytest

from fsadapters.memory import AsyncMemoryAdapter


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        AsyncMemoryAdapter(page_size=0)


def test_instances_do_not_share_objects():
    first = AsyncMemoryAdapter()
    second = AsyncMemoryAdapter()
    first.objects['key'] = None
    assert second.objects == {}


@pytest.mark.asyncio
async def test_keys_are_prefixed(memory_adapter):
    await memory_adapter.write('test/1.txt', 'test')
    await memory_adapter.create_dir('x')
    assert sorted(memory_adapter.objects) == ['unittest/test/1.txt', 'unittest/x/']


@pytest.mark.asyncio
async def test_listing_pages_through_common_prefixes():
    adapter = AsyncMemoryAdapter(page_size=1)
    for name in ('a/1.txt', 'a/2.txt', 'b/1.txt', 'c.txt'):
        await adapter.write(name, name)
    result = await adapter.list_contents()
    assert [(entry.path, entry.type) for entry in result] == [('a', 'dir'), ('b', 'dir'), ('c.txt', 'file')]


@pytest.mark.asyncio
async def test_write_config_sets_content_type_and_metadata(memory_adapter):
    await memory_adapter.write('data', 'test', {'ContentType': 'application/json', 'Metadata': {'owner': 'qa'}})
    entry = await memory_adapter.get_metadata('data')
    assert entry.mimetype == 'application/json'
    assert entry.metadata == {'owner': 'qa'}


@pytest.mark.asyncio
async def test_emulated_directory_visibility(memory_adapter):
    await memory_adapter.write('a/b.txt', 'b')
    assert (await memory_adapter.get_visibility('a')).visibility == 'private'
    assert await memory_adapter.set_visibility('a', 'public') is False


@pytest.mark.asyncio
async def test_placeholder_directory_visibility(memory_adapter):
    await memory_adapter.create_dir('a', {'visibility': 'public'})
    assert (await memory_adapter.get_visibility('a')).visibility == 'public'


@pytest.mark.asyncio
async def test_read_stream_is_a_snapshot(memory_adapter):
    await memory_adapter.write('test/1.txt', 'before')
    reader = await memory_adapter.read_stream('test/1.txt')
    await memory_adapter.write('test/1.txt', 'after')
    async with reader as stream:
        assert await stream.read() == b'before'


@pytest.mark.asyncio
async def test_rename_with_failed_copy_keeps_source(object_store, monkeypatch):
    async def failed_copy(path, newpath):
        return False

    await object_store.write('test/1.txt', 'test')
    monkeypatch.setattr(object_store, 'copy', failed_copy)
    assert await object_store.rename('test/1.txt', 'test/2.txt') is False
    assert await object_store.has('test/1.txt')
