import datetime

import pytest

from fsadapters.s3 import S3_FIELD_MAP
from fsadapters.utils.normalize import FieldMap, Normalizer, decode_contents, read_body, to_timestamp
from fsadapters.utils.prefix import PathPrefixer
from tests.fakes import FakeStreamingBody

MODIFIED = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)


@pytest.fixture
def normalizer():
    return Normalizer(S3_FIELD_MAP, PathPrefixer('unittest'))


def test_to_timestamp():
    assert to_timestamp(MODIFIED) == 1704067200
    assert to_timestamp('2024-01-01T00:00:00Z') == 1704067200
    assert to_timestamp(1704067200.75) == 1704067200
    assert to_timestamp('yesterday') is None
    assert to_timestamp(None) is None


def test_decode_contents_keeps_binary():
    assert decode_contents(b'test') == 'test'
    assert decode_contents(b'\xff\xfe') == b'\xff\xfe'


@pytest.mark.asyncio
async def test_read_body_closes_stream():
    body = FakeStreamingBody(b'test')
    assert await read_body(body) == 'test'
    assert body.closed


@pytest.mark.asyncio
async def test_normalize_object_with_body(normalizer):
    body = FakeStreamingBody(b'test')
    entry = await normalizer.normalize({
        'Key': 'unittest/test/1.txt',
        'Body': body,
        'ContentLength': 4,
        'LastModified': MODIFIED,
        'ContentType': 'text/plain',
    })
    assert entry.path == 'test/1.txt'
    assert entry.type == 'file'
    assert entry.contents == 'test'
    assert entry.size == 4
    assert entry.timestamp == 1704067200
    assert entry.mimetype == 'text/plain'
    assert entry.dirname == 'test'
    assert body.closed


@pytest.mark.asyncio
async def test_normalize_listing_item_has_no_contents(normalizer):
    entry = await normalizer.normalize({'Key': 'unittest/test2/test.txt', 'Size': 7, 'LastModified': MODIFIED})
    assert entry.path == 'test2/test.txt'
    assert entry.size == 7
    assert entry.contents is None


@pytest.mark.asyncio
async def test_normalize_trailing_separator_is_directory(normalizer):
    entry = await normalizer.normalize({'Prefix': 'unittest/test2/test31/'})
    assert entry.type == 'dir'
    assert entry.path == 'test2/test31'
    assert entry.size is None
    assert entry.contents is None


@pytest.mark.asyncio
async def test_normalize_explicit_path_wins(normalizer):
    entry = await normalizer.normalize({'Key': 'elsewhere/1.txt', 'ContentLength': 0}, 'test/1.txt')
    assert entry.path == 'test/1.txt'


@pytest.mark.asyncio
async def test_normalize_defaults_size_to_zero(normalizer):
    entry = await normalizer.normalize({'Key': 'unittest/empty.txt', 'Body': ''})
    assert entry.size == 0
    assert entry.contents == ''


@pytest.mark.asyncio
async def test_result_map_ignores_unknown_targets():
    normalizer = Normalizer(
        FieldMap(key_fields=('name',), result_map={'etag': 'checksum', 'mime': 'mimetype'}),
        PathPrefixer()
    )
    entry = await normalizer.normalize({'name': 'a.bin', 'etag': 'abc', 'mime': 'application/x-test'})
    assert entry.mimetype == 'application/x-test'
    assert not hasattr(entry, 'checksum')
