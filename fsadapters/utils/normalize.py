import dataclasses
import datetime
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from fsadapters.utils.entry import Entry, make_entry
from fsadapters.utils.prefix import PathPrefixer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldMap:
    """Backend response field names.

    Each tuple lists candidate names in lookup order; the first present,
    non-empty value wins.

    Attributes
    ----------
    key_fields : tuple[str, ...]
        Fields holding the prefixed path or key.
    timestamp_fields : tuple[str, ...]
        Fields holding the last modification time.
    size_fields : tuple[str, ...]
        Fields holding the byte length.
    body_fields : tuple[str, ...]
        Fields holding the file contents.
    result_map : dict[str, str]
        Extra backend fields copied to the named entry field.
    """

    key_fields: tuple[str, ...] = ()
    timestamp_fields: tuple[str, ...] = ()
    size_fields: tuple[str, ...] = ()
    body_fields: tuple[str, ...] = ()
    result_map: dict[str, str] = field(default_factory=dict)


ENTRY_FIELDS = frozenset(f.name for f in dataclasses.fields(Entry))


def _first(response: Mapping[str, Any], names: tuple[str, ...], allow_empty: bool = False) -> Any:
    for name in names:
        value = response.get(name)
        if value is not None and (allow_empty or value != ''):
            return value
    return None


def to_timestamp(value: Any) -> Optional[int]:
    """Epoch seconds of a backend modification time.

    Parameters
    ----------
    value : Any
        ``datetime``, ISO 8601 string or epoch seconds.

    Returns
    -------
    Optional[int]
        Whole seconds, ``None`` when the value cannot be read.
    """
    if isinstance(value, datetime.datetime):
        return int(value.timestamp())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        try:
            return int(datetime.datetime.fromisoformat(value.replace('Z', '+00:00')).timestamp())
        except ValueError:
            logger.debug('Unreadable timestamp %r', value)
    return None


def decode_contents(data: Union[str, bytes, bytearray]) -> Union[str, bytes]:
    if isinstance(data, str):
        return data
    data = bytes(data)
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return data


async def read_body(body: Any) -> Optional[Union[str, bytes]]:
    """Materialize a response body.

    Strings and bytes are returned decoded; objects exposing ``read`` are read
    to the end and closed, whether their methods are sync or async.
    """
    if isinstance(body, (str, bytes, bytearray)):
        return decode_contents(body)
    if not hasattr(body, 'read'):
        return None
    try:
        data = body.read()
        if inspect.isawaitable(data):
            data = await data
    finally:
        close = getattr(body, 'close', None)
        if close is not None:
            closed = close()
            if inspect.isawaitable(closed):
                await closed
    return decode_contents(data)


class Normalizer:
    """Converts raw backend responses into entries.

    Attributes
    ----------
    field_map : FieldMap
        Backend field names.
    prefixer : PathPrefixer
        Namespace of the adapter the responses come from.
    """

    def __init__(self, field_map: FieldMap, prefixer: PathPrefixer):
        self.field_map = field_map
        self.prefixer = prefixer

    async def normalize(self, response: Mapping[str, Any], path: Optional[str] = None) -> Entry:
        """Build an entry from a raw response.

        Parameters
        ----------
        response : Mapping[str, Any]
            Raw backend response.
        path : str, optional
            Relative path, when the caller already knows it.

        Returns
        -------
        Entry
            Canonical entry; trailing separator makes it a directory.
        """
        if not path:
            key = _first(response, self.field_map.key_fields)
            path = self.prefixer.remove_prefix(str(key)) if key is not None else ''
        fields: dict[str, Any] = {
            'timestamp': to_timestamp(_first(response, self.field_map.timestamp_fields)),
        }
        if path.endswith('/'):
            return make_entry(path, 'dir', **fields)

        body = _first(response, self.field_map.body_fields, allow_empty=True)
        if body is not None:
            fields['contents'] = await read_body(body)
        size = _first(response, self.field_map.size_fields)
        fields['size'] = int(size) if size is not None else 0
        for source, target in self.field_map.result_map.items():
            value = response.get(source)
            if value is not None and target in ENTRY_FIELDS and fields.get(target) is None:
                fields[target] = value
        return make_entry(path, 'file', **fields)
