import pytest

from fsadapters.local import AsyncLocalAdapter
from fsadapters.memory import AsyncMemoryAdapter
from fsadapters.s3 import AsyncS3Adapter
from tests.fakes import FakeS3Client

PAGE_SIZE = 2


@pytest.fixture
def s3_client():
    return FakeS3Client(page_size=PAGE_SIZE)


@pytest.fixture
def local_adapter(tmp_path):
    return AsyncLocalAdapter(str(tmp_path / 'storage'))


@pytest.fixture
def memory_adapter():
    return AsyncMemoryAdapter('unittest', page_size=PAGE_SIZE)


@pytest.fixture
def s3_adapter(s3_client):
    return AsyncS3Adapter(s3_client, 'bucket', 'unittest')


@pytest.fixture(params=['local', 'memory', 's3'])
def adapter(request):
    return request.getfixturevalue(f'{request.param}_adapter')


@pytest.fixture(params=['memory', 's3'])
def object_store(request):
    return request.getfixturevalue(f'{request.param}_adapter')
