from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Literal, Optional, Union

from fsadapters.utils.entry import Entry, Visibility
from fsadapters.utils.prefix import PathPrefixer

VISIBILITIES = ('public', 'private')


class AsyncAdapter(ABC):
    """Abstract class for async storage adapter.

    Every path argument is relative to the adapter namespace root and uses
    ``/`` as separator. Boolean operations report failure as ``False``;
    entry operations return ``False`` for a missing target and raise
    ``StorageError`` for any other fault.

    Attributes
    ----------
    prefixer : PathPrefixer
        Namespace root of the adapter.
    meta_options : tuple[str, ...]
        Config keys passed through to the medium on writes.
    """

    meta_options: tuple[str, ...] = ()

    def __init__(self, prefix: str = '', absolute: bool = False) -> None:
        self.prefixer = PathPrefixer(prefix, absolute=absolute)

    @asynccontextmanager
    async def connect(self) -> AsyncGenerator['AsyncAdapter', None]:
        """Connects to storage medium.

        Yields
        -------
        AsyncAdapter
            Class instance
        """
        yield self

    def set_prefix(self, prefix: str) -> None:
        self.prefixer.set_prefix(prefix)

    def get_prefix(self) -> str:
        return self.prefixer.get_prefix()

    def apply_prefix(self, path: str) -> str:
        return self.prefixer.apply_prefix(path)

    def remove_prefix(self, location: str) -> str:
        return self.prefixer.remove_prefix(location)

    def options_from_config(self, config: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        """Filter a write config down to the keys the medium accepts.

        Parameters
        ----------
        config : Mapping[str, Any], optional
            Caller config; unknown keys are ignored.

        Returns
        -------
        dict[str, Any]
            Allowed, non-empty options.
        """
        options: dict[str, Any] = {}
        if not config:
            return options
        for option in self.meta_options:
            if config.get(option):
                options[option] = config[option]
        return options

    @staticmethod
    def visibility_from_config(config: Optional[Mapping[str, Any]]) -> Optional[Visibility]:
        visibility = (config or {}).get('visibility')
        if visibility is None:
            return None
        return AsyncAdapter.check_visibility(visibility)

    @staticmethod
    def check_visibility(visibility: str) -> Visibility:
        if visibility not in VISIBILITIES:
            raise ValueError(f"invalid visibility: '{visibility}'")
        return visibility  # type: ignore[return-value]

    @abstractmethod
    async def write(
        self,
        path: str,
        contents: Union[str, bytes],
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        """Write file, creating or overwriting it.

        Parameters
        ----------
        path : str
            File path.
        contents : Union[str, bytes]
            File contents.
        config : Mapping[str, Any], optional
            ``visibility`` and medium specific options.

        Returns
        -------
        Entry
            Written file including contents.

        Raises
        ------
        StorageError
            If the file or its parent directory cannot be written.
        """
        pass

    async def update(
        self,
        path: str,
        contents: Union[str, bytes],
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        return await self.write(path, contents, config)

    @abstractmethod
    async def read(self, path: str) -> Union[Entry, Literal[False]]:
        """Read file.

        Parameters
        ----------
        path : str
            File path.

        Returns
        -------
        Union[Entry, Literal[False]]
            File with contents, ``False`` if there is no such file.
        """
        pass

    @abstractmethod
    async def read_stream(self, path: str) -> Union[AbstractAsyncContextManager[Any], Literal[False]]:
        """Open file for streaming read.

        The returned reader acquires the underlying handle on ``async with``
        and releases it on exit.

        Parameters
        ----------
        path : str
            File path.

        Returns
        -------
        Union[AbstractAsyncContextManager[Any], Literal[False]]
            Reader with ``read(size)`` and async iteration over chunks,
            ``False`` if there is no such file.
        """
        pass

    @abstractmethod
    async def write_stream(
        self,
        path: str,
        resource: Any,
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        """Write file from a byte stream.

        Parameters
        ----------
        path : str
            File path.
        resource : Any
            Bytes, async iterable of chunks or readable file-like object.
        config : Mapping[str, Any], optional
            ``visibility`` and medium specific options.

        Returns
        -------
        Entry
            Written file without contents.
        """
        pass

    async def update_stream(
        self,
        path: str,
        resource: Any,
        config: Optional[Mapping[str, Any]] = None
    ) -> Entry:
        return await self.write_stream(path, resource, config)

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete file.

        Parameters
        ----------
        path : str
            File path; a trailing separator is never deleted.

        Returns
        -------
        bool
            ``True`` if the file was removed.
        """
        pass

    @abstractmethod
    async def has(self, path: str) -> bool:
        """Check whether a file or directory exists.

        Parameters
        ----------
        path : str
            File or directory path.

        Returns
        -------
        bool
            ``True`` for a file or a real or emulated directory.
        """
        pass

    @abstractmethod
    async def copy(self, path: str, newpath: str) -> bool:
        """Copy file, keeping its visibility.

        Parameters
        ----------
        path : str
            Source path.
        newpath : str
            Destination path.

        Returns
        -------
        bool
            ``True`` on success.
        """
        pass

    async def rename(self, path: str, newpath: str) -> bool:
        """Move file.

        The file is copied then the source deleted; the source is left in
        place when the copy fails. Renaming a file onto itself leaves it
        untouched.

        Parameters
        ----------
        path : str
            Source path.
        newpath : str
            Destination path.

        Returns
        -------
        bool
            ``True`` if both steps succeeded.
        """
        if self.apply_prefix(path) == self.apply_prefix(newpath):
            metadata = await self.get_metadata(path)
            return bool(metadata) and metadata.is_file
        if not await self.copy(path, newpath):
            return False
        return await self.delete(path)

    @abstractmethod
    async def list_contents(self, directory: str = '', recursive: bool = False) -> list[Entry]:
        """List directory content.

        Parameters
        ----------
        directory : str, default=''
            Directory path.
        recursive : bool, default=False
            Recursive.

        Returns
        -------
        list[Entry]
            Directory contents without the directory itself.
        """
        pass

    @abstractmethod
    async def get_metadata(self, path: str) -> Union[Entry, Literal[False]]:
        """Get file or directory metadata.

        Parameters
        ----------
        path : str
            File or directory path.

        Returns
        -------
        Union[Entry, Literal[False]]
            Entry without contents, ``False`` if nothing exists at ``path``.
        """
        pass

    async def get_size(self, path: str) -> Union[Entry, Literal[False]]:
        return await self.get_metadata(path)

    async def get_timestamp(self, path: str) -> Union[Entry, Literal[False]]:
        return await self.get_metadata(path)

    @abstractmethod
    async def get_mimetype(self, path: str) -> Union[Entry, Literal[False]]:
        """Get file content type.

        Parameters
        ----------
        path : str
            File path.

        Returns
        -------
        Union[Entry, Literal[False]]
            Entry with ``mimetype`` set, ``False`` if there is no such file.
        """
        pass

    @abstractmethod
    async def get_visibility(self, path: str) -> Union[Entry, Literal[False]]:
        """Get file visibility.

        Parameters
        ----------
        path : str
            File or directory path.

        Returns
        -------
        Union[Entry, Literal[False]]
            Entry with ``visibility`` set, ``False`` if nothing exists at ``path``.
        """
        pass

    @abstractmethod
    async def set_visibility(self, path: str, visibility: Visibility) -> Union[Entry, Literal[False]]:
        """Set file visibility.

        Parameters
        ----------
        path : str
            File or directory path.
        visibility : Visibility
            ``'public'`` or ``'private'``.

        Returns
        -------
        Union[Entry, Literal[False]]
            Entry with the new ``visibility``, ``False`` on failure.
        """
        pass

    @abstractmethod
    async def create_dir(
        self,
        path: str,
        config: Optional[Mapping[str, Any]] = None
    ) -> Union[Entry, Literal[False]]:
        """Make directory and its missing parents.

        Parameters
        ----------
        path : str
            Directory path.
        config : Mapping[str, Any], optional
            ``visibility`` and medium specific options.

        Returns
        -------
        Union[Entry, Literal[False]]
            Directory entry, also when it already existed; ``False`` on failure.
        """
        pass

    @abstractmethod
    async def delete_dir(self, path: str) -> bool:
        """Delete directory with its content.

        Parameters
        ----------
        path : str
            Directory path.

        Returns
        -------
        bool
            ``True`` on success or if the directory does not exist.
        """
        pass
