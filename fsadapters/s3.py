import logging
from collections.abc import AsyncGenerator, AsyncIterator, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Any, Literal, Optional, Union

import aioboto3
import yaml
from botocore.exceptions import BotoCoreError, ClientError

from fsadapters.adapter import AsyncAdapter
from fsadapters.exceptions import (
    StorageConfigurationError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
)
from fsadapters.utils.emulate import emulate_directories
from fsadapters.utils.entry import Entry, Visibility, make_entry
from fsadapters.utils.mime import guess_mimetype
from fsadapters.utils.normalize import FieldMap, Normalizer
from fsadapters.utils.s3 import AsyncMultipartWriter, AsyncS3Reader, AsyncSinglepartWriter
from fsadapters.utils.stream import iter_chunks

logger = logging.getLogger(__name__)

PUBLIC_GRANT_URI = 'http://acs.amazonaws.com/groups/global/AllUsers'

DEFAULT_PART_SIZE = 1024 * 1024 * 16

S3_FIELD_MAP = FieldMap(
    key_fields=('Key', 'Prefix'),
    timestamp_fields=('LastModified',),
    size_fields=('ContentLength', 'Size'),
    body_fields=('Body',),
    result_map={
        'ContentType': 'mimetype',
        'Metadata': 'metadata',
    },
)

_NOT_FOUND_CODES = frozenset(['404', 'NoSuchKey', 'NotFound'])
_ACCESS_DENIED_CODES = frozenset(['403', 'AccessDenied'])


def _error_code(ex: Exception) -> str:
    if isinstance(ex, ClientError):
        return str(ex.response.get('Error', {}).get('Code', ''))
    return ''


def _is_not_found(ex: Exception) -> bool:
    return _error_code(ex) in _NOT_FOUND_CODES


def _storage_error(ex: Exception, path: str) -> StorageError:
    code = _error_code(ex)
    if code in _NOT_FOUND_CODES:
        return StorageFileNotFoundError(f"No such file: '{path}'", path)
    if code in _ACCESS_DENIED_CODES:
        return StoragePermissionError(f"Access to '{path}' denied", path)
    return StorageError(f"S3 request for '{path}' failed: {ex}", path)


class AsyncS3Adapter(AsyncAdapter):
    """Async S3 adapter.

    Directories do not exist in the key space: they are represented by
    zero-byte ``dir/`` placeholder objects or emulated from the keys of their
    descendants.

    Attributes
    ----------
    client : Any
        Aioboto3 S3 client, already configured.
    bucket : str
        S3 bucket.
    options : dict[str, Any], optional
        Default upload parameters, filtered by ``meta_options``.
    """

    meta_options = (
        'CacheControl',
        'Expires',
        'StorageClass',
        'ServerSideEncryption',
        'Metadata',
        'ACL',
        'ContentType',
        'ContentEncoding',
        'ContentDisposition',
        'ContentLength',
        'Tagging',
        'WebsiteRedirectLocation',
        'SSEKMSKeyId',
    )

    def __init__(
        self,
        client: Any,
        bucket: str,
        prefix: str = '',
        options: Optional[Mapping[str, Any]] = None
    ) -> None:
        super().__init__(prefix)
        self.client = client
        self.bucket = bucket
        self.options = dict(options or {})
        self.normalizer = Normalizer(S3_FIELD_MAP, self.prefixer)

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        bucket: str,
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: Optional[str] = None,
        prefix: str = '',
        options: Optional[Mapping[str, Any]] = None
    ) -> AsyncGenerator['AsyncS3Adapter', None]:
        """Connects to S3.

        Yields
        -------
        AsyncS3Adapter
            Class instance
        """
        async with aioboto3.Session().client(
                's3', endpoint_url=endpoint_url,
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                region_name=region_name
        ) as client:
            yield cls(client, bucket, prefix, options)

    @classmethod
    def from_yaml(cls, path: str) -> AbstractAsyncContextManager['AsyncS3Adapter']:
        """Creates connection context from configuration path.

        Parameters
        ----------
        path : str
            path to configuration file, holding ``connect`` arguments.

        Returns
        -------
        AbstractAsyncContextManager[AsyncS3Adapter]
            Context yielding the connected instance.
        """
        with open(path) as f:
            config = yaml.safe_load(f) or {}
        if 'bucket' not in config:
            raise StorageConfigurationError("Configuration file must contain 'bucket' field", path)
        return cls.connect(**config)

    def get_bucket(self) -> str:
        return self.bucket

    def set_bucket(self, bucket: str) -> None:
        self.bucket = bucket

    def get_client(self) -> Any:
        return self.client

    async def write(
        self,
        path: str,
        contents: Union[str, bytes],
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        return await self._upload(path, contents, config)

    async def read(self, path: str) -> Union[Entry, Literal[False]]:
        if path.endswith('/'):
            return False
        key = self.apply_prefix(path)
        try:
            response = await self.client.get_object(Bucket=self.bucket, Key=key)
            return await self.normalizer.normalize(response, path)
        except (ClientError, BotoCoreError) as ex:
            if _is_not_found(ex):
                return False
            raise _storage_error(ex, path) from ex

    async def read_stream(self, path: str) -> Union[AsyncS3Reader, Literal[False]]:
        if path.endswith('/'):
            return False
        key = self.apply_prefix(path)
        if not await self._head(key, path):
            return False
        return AsyncS3Reader(self.client, bucket=self.bucket, key=key)

    async def write_stream(
        self,
        path: str,
        resource: Any,
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        config = config or {}
        key = self.apply_prefix(path)
        params = self._put_params(path, config)
        params.pop('ContentLength', None)
        writer: Union[AsyncMultipartWriter, AsyncSinglepartWriter]
        try:
            if config.get('multipart'):
                part_size = int(config.get('part_size', DEFAULT_PART_SIZE))
                writer = AsyncMultipartWriter(self.client, bucket=self.bucket, key=key, params=params)
                async with writer:
                    buffer = bytearray()
                    async for chunk in iter_chunks(resource):
                        buffer += chunk
                        while len(buffer) >= part_size:
                            await writer.write(bytes(buffer[:part_size]))
                            del buffer[:part_size]
                    if buffer or writer.size == 0:
                        await writer.write(bytes(buffer))
            else:
                writer = AsyncSinglepartWriter(self.client, bucket=self.bucket, key=key, params=params)
                async with writer:
                    async for chunk in iter_chunks(resource):
                        await writer.write(chunk)
        except (ClientError, BotoCoreError, RuntimeError) as ex:
            raise _storage_error(ex, path) from ex
        entry = await self.normalizer.normalize(
            {'Key': key, 'ContentLength': writer.size, 'ContentType': params.get('ContentType')},
            path
        )
        visibility = self.visibility_from_config(config)
        return replace(entry, visibility=visibility) if visibility else entry

    async def delete(self, path: str) -> bool:
        if path.endswith('/'):
            return False
        key = self.apply_prefix(path)
        try:
            await self.client.head_object(Bucket=self.bucket, Key=key)
            await self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as ex:
            if not _is_not_found(ex):
                logger.warning("Unable to delete '%s': %s", path, ex)
            return False
        return True

    async def has(self, path: str) -> bool:
        key = self.apply_prefix(path)
        if not path.endswith('/'):
            try:
                await self.client.head_object(Bucket=self.bucket, Key=key)
                return True
            except (ClientError, BotoCoreError) as ex:
                if not _is_not_found(ex):
                    logger.warning("Unable to check '%s': %s", path, ex)
        return await self._directory_exists(key)

    async def copy(self, path: str, newpath: str) -> bool:
        if path.endswith('/'):
            return False
        source = self.apply_prefix(path)
        params: dict[str, Any] = {
            'Bucket': self.bucket,
            'Key': self.apply_prefix(newpath),
            'CopySource': {'Bucket': self.bucket, 'Key': source},
            'MetadataDirective': 'COPY',
        }
        if await self._get_visibility(source) == 'public':
            params['ACL'] = 'public-read'
        try:
            await self.client.copy_object(**params)
        except (ClientError, BotoCoreError) as ex:
            logger.warning("Unable to copy '%s' to '%s': %s", path, newpath, ex)
            return False
        return True

    async def list_contents(self, directory: str = '', recursive: bool = False) -> list[Entry]:
        prefix = self.apply_prefix(directory.rstrip('/') + '/')
        responses = []
        try:
            async for page in self._iter_pages(prefix, delimiter=None if recursive else '/'):
                responses.extend(page.get('Contents', []))
                responses.extend(page.get('CommonPrefixes', []))
        except (ClientError, BotoCoreError) as ex:
            raise _storage_error(ex, directory) from ex
        entries = [await self.normalizer.normalize(response) for response in responses]
        return emulate_directories(entries, directory, recursive)

    async def get_metadata(self, path: str) -> Union[Entry, Literal[False]]:
        key = self.apply_prefix(path)
        if not path.endswith('/'):
            response = await self._head(key, path)
            if response:
                return await self.normalizer.normalize(response, path)
        if await self._directory_exists(key):
            return make_entry(path, 'dir')
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
        visibility = await self._get_visibility(self._object_key(metadata))
        return replace(metadata, visibility=visibility or 'private')

    async def set_visibility(self, path: str, visibility: Visibility) -> Union[Entry, Literal[False]]:
        self.check_visibility(visibility)
        metadata = await self.get_metadata(path)
        if not metadata:
            return False
        try:
            await self.client.put_object_acl(
                Bucket=self.bucket,
                Key=self._object_key(metadata),
                ACL='public-read' if visibility == 'public' else 'private'
            )
        except (ClientError, BotoCoreError) as ex:
            logger.warning("Unable to set visibility of '%s': %s", path, ex)
            return False
        return replace(metadata, visibility=visibility)

    async def create_dir(
        self,
        path: str,
        config: Optional[Mapping[str, Any]] = None
    ) -> Union[Entry, Literal[False]]:
        if not path.strip('/'):
            return make_entry('', 'dir')
        try:
            return await self._upload(path.rstrip('/') + '/', '', config)
        except StorageError as ex:
            logger.warning("Unable to create directory '%s': %s", path, ex)
            return False

    async def delete_dir(self, path: str) -> bool:
        prefix = self.apply_prefix(path.rstrip('/') + '/')
        try:
            async for page in self._iter_pages(prefix):
                objects = [{'Key': item['Key']} for item in page.get('Contents', [])]
                if not objects:
                    continue
                response = await self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={'Objects': objects, 'Quiet': True}
                )
                if response.get('Errors'):
                    logger.warning("Unable to delete %d objects under '%s'", len(response['Errors']), path)
                    return False
        except (ClientError, BotoCoreError) as ex:
            logger.warning("Unable to delete directory '%s': %s", path, ex)
            return False
        return True

    async def _upload(
        self,
        path: str,
        contents: Union[str, bytes],
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        key = self.apply_prefix(path)
        data = contents.encode('utf-8') if isinstance(contents, str) else contents
        params = self._put_params(path, config)
        params['ContentLength'] = len(data)
        try:
            await self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **params)
        except (ClientError, BotoCoreError) as ex:
            raise _storage_error(ex, path) from ex
        entry = await self.normalizer.normalize(
            {'Body': contents, 'Key': key, 'ContentLength': len(data), 'ContentType': params['ContentType']},
            path
        )
        visibility = self.visibility_from_config(config)
        return replace(entry, visibility=visibility) if visibility else entry

    def _put_params(self, path: str, config: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        params: dict[str, Any] = {'ContentType': guess_mimetype(path)}
        params.update(self.options_from_config(self.options))
        params.update(self.options_from_config(config))
        visibility = self.visibility_from_config(config)
        if visibility is not None:
            params['ACL'] = 'public-read' if visibility == 'public' else 'private'
        return params

    def _object_key(self, entry: Entry) -> str:
        return self.apply_prefix(entry.path + '/' if entry.is_dir else entry.path)

    async def _head(self, key: str, path: str) -> Optional[dict[str, Any]]:
        try:
            return await self.client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as ex:
            if _is_not_found(ex):
                return None
            raise _storage_error(ex, path) from ex

    async def _get_visibility(self, key: str) -> Optional[Visibility]:
        try:
            response = await self.client.get_object_acl(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as ex:
            if _is_not_found(ex):
                return None
            logger.warning("Reporting default visibility for '%s': %s", key, ex)
            return 'private'
        for grant in response.get('Grants', []):
            grantee = grant.get('Grantee', {})
            if grantee.get('URI') == PUBLIC_GRANT_URI and grant.get('Permission') == 'READ':
                return 'public'
        return 'private'

    async def _directory_exists(self, key: str) -> bool:
        prefix = key.rstrip('/') + '/' if key.rstrip('/') else ''
        try:
            response = await self.client.list_objects_v2(Bucket=self.bucket, Prefix=prefix, MaxKeys=1)
        except (ClientError, BotoCoreError) as ex:
            logger.warning("Unable to list '%s': %s", prefix, ex)
            return False
        return bool(response.get('Contents') or response.get('CommonPrefixes'))

    async def _iter_pages(self, prefix: str, delimiter: Optional[str] = None) -> AsyncIterator[dict[str, Any]]:
        params: dict[str, Any] = {'Bucket': self.bucket, 'Prefix': prefix}
        if delimiter:
            params['Delimiter'] = delimiter
        while True:
            page = await self.client.list_objects_v2(**params)
            logger.debug("Listed %d keys under '%s'", page.get('KeyCount', 0), prefix)
            yield page
            token = page.get('NextContinuationToken')
            if not page.get('IsTruncated') or not token:
                return
            params['ContinuationToken'] = token
