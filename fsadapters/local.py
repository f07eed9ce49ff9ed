import logging
import os
import stat
from collections.abc import AsyncGenerator, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Any, Literal, Optional, Union

import aiofiles
import aiofiles.os
import aioshutil
import yaml

from fsadapters.adapter import AsyncAdapter
from fsadapters.exceptions import StorageConfigurationError, StorageError, StoragePermissionError
from fsadapters.utils.emulate import emulate_directories
from fsadapters.utils.entry import Entry, Visibility, make_entry
from fsadapters.utils.mime import guess_mimetype
from fsadapters.utils.normalize import FieldMap, Normalizer
from fsadapters.utils.stream import AsyncFileReader, iter_chunks

logger = logging.getLogger(__name__)

chmod = aiofiles.os.wrap(os.chmod)

LOCAL_FIELD_MAP = FieldMap(
    key_fields=('location',),
    timestamp_fields=('mtime',),
    size_fields=('size',),
    body_fields=('contents',),
)

DEFAULT_PERMISSIONS: dict[str, dict[str, int]] = {
    'file': {
        'public': 0o644,
        'private': 0o600,
    },
    'dir': {
        'public': 0o755,
        'private': 0o700,
    },
}


class AsyncLocalAdapter(AsyncAdapter):
    """Async local file system adapter.

    Attributes
    ----------
    root : str
        Directory every path is resolved against; created on first write.
    permissions : dict[str, dict[str, int]], optional
        Mode bits per entry type and visibility, merged over the defaults.
    """

    def __init__(
        self,
        root: str,
        permissions: Optional[Mapping[str, Mapping[str, int]]] = None
    ) -> None:
        super().__init__(os.path.abspath(root).replace(os.sep, '/'), absolute=True)
        self.root = self.get_prefix()
        self.permissions = {kind: dict(modes) for kind, modes in DEFAULT_PERMISSIONS.items()}
        for kind, modes in (permissions or {}).items():
            self.permissions.setdefault(kind, {}).update(modes)
        self.normalizer = Normalizer(LOCAL_FIELD_MAP, self.prefixer)

    @classmethod
    @asynccontextmanager
    async def connect(cls, root: str, **kwargs: Any) -> AsyncGenerator['AsyncLocalAdapter', None]:
        """Connects to file system.

        Yields
        -------
        AsyncLocalAdapter
            Class instance
        """
        yield cls(root, **kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> AbstractAsyncContextManager['AsyncLocalAdapter']:
        """Creates connection context from configuration path.

        Parameters
        ----------
        path : str
            path to configuration file with ``root`` and optional
            ``permissions`` fields.

        Returns
        -------
        AbstractAsyncContextManager[AsyncLocalAdapter]
            Context yielding the connected instance.
        """
        with open(path) as f:
            config = yaml.safe_load(f) or {}
        if 'root' not in config:
            raise StorageConfigurationError("Configuration file must contain 'root' field", path)
        permissions = {
            kind: {visibility: _parse_mode(mode) for visibility, mode in modes.items()}
            for kind, modes in (config.get('permissions') or {}).items()
        }
        return cls.connect(config['root'], permissions=permissions)

    async def write(
        self,
        path: str,
        contents: Union[str, bytes],
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        location = self.apply_prefix(path)
        visibility = self.visibility_from_config(config)
        data = contents.encode('utf-8') if isinstance(contents, str) else contents
        await self._ensure_directory(os.path.dirname(location))
        try:
            async with aiofiles.open(location, 'wb') as f:
                await f.write(data)
            if visibility is not None:
                await chmod(location, self.permissions['file'][visibility])
            st = await aiofiles.os.stat(location)
        except PermissionError as ex:
            raise StoragePermissionError(f"Access to '{path}' denied", path) from ex
        except OSError as ex:
            raise StorageError(f"Unable to write '{path}': {ex}", path) from ex
        entry = await self.normalizer.normalize(
            {'contents': contents, 'size': len(data), 'mtime': st.st_mtime},
            path
        )
        if visibility is not None:
            entry = replace(entry, visibility=visibility)
        return entry

    async def read(self, path: str) -> Union[Entry, Literal[False]]:
        location = self.apply_prefix(path)
        if path.endswith('/') or not await aiofiles.os.path.isfile(location):
            return False
        try:
            async with aiofiles.open(location, 'rb') as f:
                contents = await f.read()
            st = await aiofiles.os.stat(location)
        except FileNotFoundError:
            return False
        except PermissionError as ex:
            raise StoragePermissionError(f"Access to '{path}' denied", path) from ex
        except OSError as ex:
            raise StorageError(f"Unable to read '{path}': {ex}", path) from ex
        return await self.normalizer.normalize(
            {'contents': contents, 'size': st.st_size, 'mtime': st.st_mtime},
            path
        )

    async def read_stream(self, path: str) -> Union[AsyncFileReader, Literal[False]]:
        location = self.apply_prefix(path)
        if path.endswith('/') or not await aiofiles.os.path.isfile(location):
            return False
        return AsyncFileReader(location)

    async def write_stream(
        self,
        path: str,
        resource: Any,
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        location = self.apply_prefix(path)
        visibility = self.visibility_from_config(config)
        await self._ensure_directory(os.path.dirname(location))
        size = 0
        try:
            async with aiofiles.open(location, 'wb') as f:
                async for chunk in iter_chunks(resource):
                    await f.write(chunk)
                    size += len(chunk)
            if visibility is not None:
                await chmod(location, self.permissions['file'][visibility])
            st = await aiofiles.os.stat(location)
        except PermissionError as ex:
            raise StoragePermissionError(f"Access to '{path}' denied", path) from ex
        except OSError as ex:
            raise StorageError(f"Unable to write '{path}': {ex}", path) from ex
        entry = await self.normalizer.normalize({'size': size, 'mtime': st.st_mtime}, path)
        if visibility is not None:
            entry = replace(entry, visibility=visibility)
        return entry

    async def delete(self, path: str) -> bool:
        location = self.apply_prefix(path)
        if path.endswith('/') or not await aiofiles.os.path.isfile(location):
            return False
        try:
            await aiofiles.os.remove(location)
        except OSError as ex:
            logger.warning("Unable to delete '%s': %s", path, ex)
            return False
        return True

    async def has(self, path: str) -> bool:
        return await aiofiles.os.path.exists(self.apply_prefix(path))

    async def copy(self, path: str, newpath: str) -> bool:
        location = self.apply_prefix(path)
        destination = self.apply_prefix(newpath)
        if not await aiofiles.os.path.isfile(location):
            return False
        if newpath.endswith('/') or await aiofiles.os.path.isdir(destination):
            logger.warning("Unable to copy '%s' to '%s': destination is a directory", path, newpath)
            return False
        try:
            await self._ensure_directory(os.path.dirname(destination))
            await aioshutil.copyfile(location, destination)
            await aioshutil.copymode(location, destination)
        except (OSError, StorageError) as ex:
            logger.warning("Unable to copy '%s' to '%s': %s", path, newpath, ex)
            return False
        return True

    async def rename(self, path: str, newpath: str) -> bool:
        location = self.apply_prefix(path)
        destination = self.apply_prefix(newpath)
        if not await aiofiles.os.path.isfile(location):
            return False
        try:
            await self._ensure_directory(os.path.dirname(destination))
            await aiofiles.os.rename(location, destination)
        except (OSError, StorageError) as ex:
            logger.warning("Unable to rename '%s' to '%s': %s", path, newpath, ex)
            return False
        return True

    async def list_contents(self, directory: str = '', recursive: bool = False) -> list[Entry]:
        location = self.apply_prefix(directory)
        if not await aiofiles.os.path.isdir(location):
            return []
        responses = await walk(location, recursive)
        entries = [await self.normalizer.normalize(response) for response in responses]
        return emulate_directories(entries, directory, recursive)

    async def get_metadata(self, path: str) -> Union[Entry, Literal[False]]:
        location = self.apply_prefix(path)
        try:
            st = await aiofiles.os.stat(location)
        except FileNotFoundError:
            return False
        except PermissionError as ex:
            raise StoragePermissionError(f"Access to '{path}' denied", path) from ex
        except OSError as ex:
            raise StorageError(f"Unable to stat '{path}': {ex}", path) from ex
        if stat.S_ISDIR(st.st_mode):
            return await self.normalizer.normalize({'mtime': st.st_mtime}, path.rstrip('/') + '/')
        if path.endswith('/'):
            return False
        return await self.normalizer.normalize({'size': st.st_size, 'mtime': st.st_mtime}, path)

    async def get_mimetype(self, path: str) -> Union[Entry, Literal[False]]:
        metadata = await self.get_metadata(path)
        if not metadata or metadata.is_dir:
            return False
        return replace(metadata, mimetype=guess_mimetype(metadata.path))

    async def get_visibility(self, path: str) -> Union[Entry, Literal[False]]:
        metadata = await self.get_metadata(path)
        if not metadata:
            return False
        st = await aiofiles.os.stat(self.apply_prefix(path))
        visibility: Visibility = 'public' if st.st_mode & 0o044 else 'private'
        return replace(metadata, visibility=visibility)

    async def set_visibility(self, path: str, visibility: Visibility) -> Union[Entry, Literal[False]]:
        self.check_visibility(visibility)
        metadata = await self.get_metadata(path)
        if not metadata:
            return False
        try:
            await chmod(self.apply_prefix(path), self.permissions[metadata.type][visibility])
        except OSError as ex:
            logger.warning("Unable to set visibility of '%s': %s", path, ex)
            return False
        return replace(metadata, visibility=visibility)

    async def create_dir(
        self,
        path: str,
        config: Optional[Mapping[str, Any]] = None
    ) -> Union[Entry, Literal[False]]:
        location = self.apply_prefix(path)
        visibility = self.visibility_from_config(config)
        mode = self.permissions['dir'][visibility or 'public']
        try:
            await aiofiles.os.makedirs(location, mode=mode, exist_ok=True)
            if visibility is not None:
                await chmod(location, mode)
        except OSError as ex:
            logger.warning("Unable to create directory '%s': %s", path, ex)
            return False
        return make_entry(path, 'dir', visibility=visibility)

    async def delete_dir(self, path: str) -> bool:
        location = self.apply_prefix(path)
        if not await aiofiles.os.path.exists(location):
            return True
        if not await aiofiles.os.path.isdir(location):
            return False
        try:
            await aioshutil.rmtree(location)
        except OSError as ex:
            logger.warning("Unable to delete directory '%s': %s", path, ex)
            return False
        return True

    async def _ensure_directory(self, location: str) -> None:
        if await aiofiles.os.path.isdir(location):
            return
        try:
            await aiofiles.os.makedirs(location, mode=self.permissions['dir']['public'], exist_ok=True)
        except OSError as ex:
            raise StorageError(f"Impossible to create the root directory '{location}'", location) from ex


def _walk(location: str, recursive: bool) -> list[dict[str, Any]]:
    result = []
    pending = [location]
    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as ex:
            logger.warning("Skipping unreadable directory '%s': %s", current, ex)
            continue
        for entry in entries:
            st = entry.stat()
            entry_location = entry.path.replace(os.sep, '/')
            if entry.is_dir():
                result.append({'location': entry_location + '/', 'mtime': st.st_mtime})
                if recursive:
                    pending.append(entry.path)
            elif entry.is_file():
                result.append({'location': entry_location, 'size': st.st_size, 'mtime': st.st_mtime})
    return result


walk = aiofiles.os.wrap(_walk)


def _parse_mode(mode: Any) -> int:
    # YAML reads unquoted 0644 as an octal integer already
    return mode if isinstance(mode, int) else int(str(mode), 8)
