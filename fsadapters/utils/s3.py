import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from typing import Any, Optional, Union

import aiofiles.tempfile

from fsadapters.utils.stream import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

MAX_PARTS = 10000


class S3Object(AbstractAsyncContextManager[Any]):
    """Context bound to a single object of a bucket.

    Attributes
    ----------
    client : Any
        Aiobotocore S3 client.
    bucket : str
        Bucket holding the object.
    key : str
        Object key, prefix included.
    """

    def __init__(self, client: Any, bucket: str, key: str) -> None:
        self.client = client
        self.bucket = bucket
        self.key = key

    @property
    def location(self) -> dict[str, str]:
        return {'Bucket': self.bucket, 'Key': self.key}


class AsyncMultipartWriter(S3Object):
    """Uploads an object part by part.

    The upload is completed on a clean exit once the store confirms every
    part, and aborted otherwise.

    Attributes
    ----------
    params : dict[str, Any], optional
        Extra ``create_multipart_upload`` parameters.
    size : int
        Bytes sent so far.
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        key: str,
        params: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(client, bucket, key)
        self.params = params or {}
        self.size = 0
        self.upload_id: Optional[str] = None
        self.parts: list[dict[str, Any]] = []

    async def __aenter__(self) -> 'AsyncMultipartWriter':
        response = await self.client.create_multipart_upload(**self.location, **self.params)
        self.upload_id = response['UploadId']
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            await self.abort()
            return
        listed = await self.client.list_parts(**self.location, UploadId=self.upload_id)
        received = len(listed.get('Parts', []))
        if received != len(self.parts):
            await self.abort()
            raise RuntimeError(f"Upload of '{self.key}' aborted: {len(self.parts)} parts sent, {received} received")
        await self.client.complete_multipart_upload(
            **self.location,
            UploadId=self.upload_id,
            MultipartUpload={'Parts': sorted(self.parts, key=lambda part: part['PartNumber'])}
        )

    async def abort(self) -> None:
        logger.debug("Aborting multipart upload of '%s/%s'", self.bucket, self.key)
        await self.client.abort_multipart_upload(**self.location, UploadId=self.upload_id)

    async def write(self, data: bytes, part_num: Optional[int] = None) -> None:
        if not isinstance(data, bytes):
            raise ValueError('multipart writer accepts bytes only')
        if part_num is None:
            part_num = len(self.parts) + 1
        if not 1 <= part_num <= MAX_PARTS:
            raise ValueError(f'part_num must be an integer between 1 and {MAX_PARTS}')
        response = await self.client.upload_part(
            **self.location,
            UploadId=self.upload_id,
            PartNumber=part_num,
            Body=data
        )
        self.size += len(data)
        self.parts.append({'PartNumber': part_num, 'ETag': response['ETag']})


class AsyncSinglepartWriter(S3Object):
    """Spools writes to a temporary file and uploads them with one request.

    Nothing is uploaded when the block raises.
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        key: str,
        params: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(client, bucket, key)
        self.params = params or {}
        self.size = 0
        self.spool: Any = None

    async def __aenter__(self) -> 'AsyncSinglepartWriter':
        self.spool = await aiofiles.tempfile.TemporaryFile('w+b')
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if exc_type is None:
                await self.spool.seek(0)
                body = await self.spool.read()
                await self.client.put_object(**self.location, Body=body, **self.params)
        finally:
            await self.spool.close()

    async def write(self, data: Union[str, bytes]) -> None:
        chunk = data.encode('utf-8') if isinstance(data, str) else data
        await self.spool.write(chunk)
        self.size += len(chunk)


class AsyncS3Reader(S3Object):
    """Streams an object body; the body is released on exit.

    Attributes
    ----------
    chunk_size : int
        Chunk size used when iterating.
    """

    def __init__(self, client: Any, bucket: str, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(client, bucket, key)
        self.chunk_size = chunk_size
        self.body: Any = None

    async def __aenter__(self) -> 'AsyncS3Reader':
        response = await self.client.get_object(**self.location)
        self.body = response['Body']
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.body is not None:
            self.body.close()

    async def read(self, size: Optional[int] = None) -> bytes:
        return await self.body.read(size)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(self.chunk_size)
            if not chunk:
                return
            yield chunk
