import dataclasses
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

EntryType = Literal['file', 'dir']
Visibility = Literal['public', 'private']


@dataclass(frozen=True)
class Entry:
    path: str
    type: EntryType
    dirname: str = ''
    basename: str = ''
    filename: str = ''
    extension: str = ''
    size: Optional[int] = None
    timestamp: Optional[int] = None
    contents: Optional[Union[str, bytes]] = None
    visibility: Optional[Visibility] = None
    mimetype: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def __post_init__(self) -> None:
        if self.type not in ('file', 'dir'):
            raise ValueError(f"invalid entry type: '{self.type}'")
        if self.type == 'dir' and (self.size is not None or self.contents is not None):
            raise ValueError(f"directory entry '{self.path}' cannot carry size or contents")

    @property
    def is_file(self) -> bool:
        return self.type == 'file'

    @property
    def is_dir(self) -> bool:
        return self.type == 'dir'

    def as_dict(self) -> dict[str, Any]:
        """Populated fields only."""
        return {
            field.name: getattr(self, field.name)
            for field in dataclasses.fields(self)
            if getattr(self, field.name) is not None
        }


def pathinfo(path: str) -> dict[str, str]:
    """Split a path into its derived name fields.

    Parameters
    ----------
    path : str
        Slash-separated path without trailing separator.

    Returns
    -------
    dict[str, str]
        ``dirname``, ``basename``, ``filename`` and ``extension``.
    """
    dirname, _, basename = path.rpartition('/')
    filename, dot, extension = basename.rpartition('.')
    if not dot:
        filename, extension = basename, ''
    return {
        'dirname': dirname,
        'basename': basename,
        'filename': filename,
        'extension': extension,
    }


def make_entry(path: str, type: EntryType, **fields: Any) -> Entry:
    """Build an entry with name fields derived from ``path``."""
    path = path.rstrip('/')
    return Entry(path=path, type=type, **pathinfo(path), **fields)
