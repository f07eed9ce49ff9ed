import io
import logging
import time
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field, replace
from typing import Any, Literal, Optional, Union

from fsadapters.adapter import AsyncAdapter
from fsadapters.utils.emulate import emulate_directories
from fsadapters.utils.entry import Entry, Visibility, make_entry
from fsadapters.utils.mime import guess_mimetype
from fsadapters.utils.normalize import FieldMap, Normalizer
from fsadapters.utils.stream import DEFAULT_CHUNK_SIZE, iter_chunks

logger = logging.getLogger(__name__)

MEMORY_FIELD_MAP = FieldMap(
    key_fields=('key', 'prefix'),
    timestamp_fields=('last_modified',),
    size_fields=('size',),
    body_fields=('body',),
    result_map={
        'content_type': 'mimetype',
        'metadata': 'metadata',
    },
)


@dataclass
class MemoryObject:
    body: bytes
    last_modified: float
    content_type: str
    visibility: Visibility = 'private'
    metadata: dict[str, Any] = field(default_factory=dict)

    def response(self, key: str, with_body: bool = False) -> dict[str, Any]:
        response = {
            'key': key,
            'size': len(self.body),
            'last_modified': self.last_modified,
            'content_type': self.content_type,
            'metadata': self.metadata or None,
        }
        if with_body:
            response['body'] = self.body
        return response


class AsyncMemoryReader(AbstractAsyncContextManager[Any]):
    """Stream reader over a snapshot of a memory object.

    Attributes
    ----------
    data : bytes
        Object body at the time the stream was opened.
    chunk_size : int
        Chunk size used when iterating.
    """

    def __init__(self, data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.data = data
        self.chunk_size = chunk_size
        self.stream: Optional[io.BytesIO] = None

    async def __aenter__(self) -> 'AsyncMemoryReader':
        self.stream = io.BytesIO(self.data)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.stream is not None:
            self.stream.close()

    async def read(self, chunk: Optional[int] = None) -> bytes:
        return self.stream.read(-1 if chunk is None else chunk)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            data = await self.read(self.chunk_size)
            if not data:
                return
            yield data


class AsyncMemoryAdapter(AsyncAdapter):
    """Async in-process object store adapter.

    Keys live in a flat dictionary owned by the instance, with the same
    semantics as an S3 bucket: no directory entities, ``dir/`` placeholders,
    paged prefix listing and per-object visibility.

    Attributes
    ----------
    page_size : int, default=1000
        Max keys and common prefixes returned per listing page.
    """

    meta_options = (
        'CacheControl',
        'ContentType',
        'ContentEncoding',
        'ContentDisposition',
        'Metadata',
    )

    def __init__(self, prefix: str = '', page_size: int = 1000) -> None:
        super().__init__(prefix)
        if page_size < 1:
            raise ValueError('page_size must be a positive integer')
        self.page_size = page_size
        self.objects: dict[str, MemoryObject] = {}
        self.normalizer = Normalizer(MEMORY_FIELD_MAP, self.prefixer)

    async def write(
        self,
        path: str,
        contents: Union[str, bytes],
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        data = contents.encode('utf-8') if isinstance(contents, str) else bytes(contents)
        obj = self._put(path, data, config)
        response = obj.response(self.apply_prefix(path))
        response['body'] = contents
        entry = await self.normalizer.normalize(response, path)
        visibility = self.visibility_from_config(config)
        return replace(entry, visibility=visibility) if visibility else entry

    async def read(self, path: str) -> Union[Entry, Literal[False]]:
        key = self.apply_prefix(path)
        if path.endswith('/') or key not in self.objects:
            return False
        return await self.normalizer.normalize(self.objects[key].response(key, with_body=True), path)

    async def read_stream(self, path: str) -> Union[AsyncMemoryReader, Literal[False]]:
        key = self.apply_prefix(path)
        if path.endswith('/') or key not in self.objects:
            return False
        return AsyncMemoryReader(self.objects[key].body)

    async def write_stream(
        self,
        path: str,
        resource: Any,
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        buffer = bytearray()
        async for chunk in iter_chunks(resource):
            buffer += chunk
        obj = self._put(path, bytes(buffer), config)
        entry = await self.normalizer.normalize(obj.response(self.apply_prefix(path)), path)
        visibility = self.visibility_from_config(config)
        return replace(entry, visibility=visibility) if visibility else entry

    async def delete(self, path: str) -> bool:
        key = self.apply_prefix(path)
        if path.endswith('/') or key not in self.objects:
            return False
        del self.objects[key]
        return True

    async def has(self, path: str) -> bool:
        key = self.apply_prefix(path)
        if not path.endswith('/') and key in self.objects:
            return True
        return self._directory_exists(key)

    async def copy(self, path: str, newpath: str) -> bool:
        source = self.objects.get(self.apply_prefix(path))
        if path.endswith('/') or source is None:
            return False
        self.objects[self.apply_prefix(newpath)] = replace(
            source,
            last_modified=time.time(),
            metadata=dict(source.metadata)
        )
        return True

    async def list_contents(self, directory: str = '', recursive: bool = False) -> list[Entry]:
        prefix = self.apply_prefix(directory.rstrip('/') + '/')
        responses = []
        async for page in self._iter_pages(prefix, delimiter=None if recursive else '/'):
            responses.extend(page['contents'])
            responses.extend({'prefix': common} for common in page['common_prefixes'])
        entries = [await self.normalizer.normalize(response) for response in responses]
        return emulate_directories(entries, directory, recursive)

    async def get_metadata(self, path: str) -> Union[Entry, Literal[False]]:
        key = self.apply_prefix(path)
        if not path.endswith('/') and key in self.objects:
            return await self.normalizer.normalize(self.objects[key].response(key), path)
        if self._directory_exists(key):
            placeholder = self.objects.get(key.rstrip('/') + '/')
            return make_entry(path, 'dir', timestamp=int(placeholder.last_modified) if placeholder else None)
        return False

    async def get_mimetype(self, path: str) -> Union[Entry, Literal[False]]:
        metadata = await self.get_metadata(path)
        if not metadata or metadata.is_dir:
            return False
        return replace(metadata, mimetype=metadata.mimetype or guess_mimetype(metadata.path))

    async def get_visibility(self, path: str) -> Union[Entry, Literal[False]]:
        metadata = await self.get_metadata(path)
        if not metadata:
            return False
        obj = self.objects.get(self._object_key(metadata))
        return replace(metadata, visibility=obj.visibility if obj else 'private')

    async def set_visibility(self, path: str, visibility: Visibility) -> Union[Entry, Literal[False]]:
        self.check_visibility(visibility)
        metadata = await self.get_metadata(path)
        if not metadata:
            return False
        obj = self.objects.get(self._object_key(metadata))
        if obj is None:
            logger.warning("Emulated directory '%s' has no object to hold a visibility", path)
            return False
        obj.visibility = visibility
        return replace(metadata, visibility=visibility)

    async def create_dir(
        self,
        path: str,
        config: Optional[Mapping[str, Any]] = None
    ) -> Union[Entry, Literal[False]]:
        if not path.strip('/'):
            return make_entry('', 'dir')
        obj = self._put(path.rstrip('/') + '/', b'', config)
        return make_entry(
            path,
            'dir',
            timestamp=int(obj.last_modified),
            visibility=self.visibility_from_config(config)
        )

    async def delete_dir(self, path: str) -> bool:
        prefix = self.apply_prefix(path.rstrip('/') + '/')
        async for page in self._iter_pages(prefix):
            for response in page['contents']:
                self.objects.pop(response['key'], None)
        return True

    def _put(self, path: str, data: bytes, config: Optional[Mapping[str, Any]]) -> MemoryObject:
        options = self.options_from_config(config)
        obj = MemoryObject(
            body=data,
            last_modified=time.time(),
            content_type=options.get('ContentType') or guess_mimetype(path),
            visibility=self.visibility_from_config(config) or 'private',
            metadata=dict(options.get('Metadata') or {}),
        )
        self.objects[self.apply_prefix(path)] = obj
        return obj

    def _object_key(self, entry: Entry) -> str:
        return self.apply_prefix(entry.path + '/' if entry.is_dir else entry.path)

    def _directory_exists(self, key: str) -> bool:
        prefix = key.rstrip('/') + '/' if key.rstrip('/') else ''
        return any(name.startswith(prefix) for name in self.objects)

    def _iter_items(self, prefix: str, delimiter: Optional[str]) -> Iterator[tuple[str, Optional[MemoryObject]]]:
        last_common = None
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            cut = key.find(delimiter, len(prefix)) if delimiter else -1
            if cut < 0:
                yield key, self.objects[key]
                continue
            common = key[:cut + 1]
            if common != last_common:
                last_common = common
                yield common, None

    async def _list_page(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        token: Optional[str] = None
    ) -> dict[str, Any]:
        items = [item for item in self._iter_items(prefix, delimiter) if token is None or item[0] > token]
        page = items[:self.page_size]
        truncated = len(items) > self.page_size
        return {
            'contents': [obj.response(name) for name, obj in page if obj is not None],
            'common_prefixes': [name for name, obj in page if obj is None],
            'next_token': page[-1][0] if truncated else None,
        }

    async def _iter_pages(self, prefix: str, delimiter: Optional[str] = None) -> AsyncIterator[dict[str, Any]]:
        token = None
        while True:
            page = await self._list_page(prefix, delimiter, token)
            logger.debug("Listed %d keys under '%s'", len(page['contents']), prefix)
            yield page
            token = page['next_token']
            if token is None:
                return
