from collections.abc import Iterable

from fsadapters.utils.entry import Entry, make_entry


def _segments(path: str) -> list[str]:
    return [segment for segment in path.split('/') if segment]


def emulate_directories(
    entries: Iterable[Entry],
    directory: str = '',
    recursive: bool = False
) -> list[Entry]:
    """Turn a flat prefix listing into a filesystem-like listing.

    Object stores only report keys that hold objects, so intermediate
    directories are synthesized from the paths of their descendants.

    Parameters
    ----------
    entries : Iterable[Entry]
        Normalized entries found under ``directory``.
    directory : str, default=''
        Queried directory, relative to the namespace root.
    recursive : bool, default=False
        Whether the listing descends below direct children.

    Returns
    -------
    list[Entry]
        Deduplicated entries without the queried directory itself. Recursive
        listings are ordered by path segments, so every directory precedes its
        descendants; shallow listings are ordered by path.
    """
    root = _segments(directory)
    depth = len(root)
    listing: dict[str, Entry] = {}
    synthesized: dict[str, Entry] = {}
    for entry in entries:
        segments = _segments(entry.path)
        if segments[:depth] != root:
            continue
        for level in range(depth + 1, len(segments)):
            ancestor = '/'.join(segments[:level])
            if ancestor not in synthesized:
                synthesized[ancestor] = make_entry(ancestor, 'dir')
        listing.setdefault('/'.join(segments), entry)
    for path, entry in synthesized.items():
        listing.setdefault(path, entry)

    root_path = '/'.join(root)
    result = [
        entry for path, entry in listing.items()
        if path != root_path and (recursive or len(_segments(path)) == depth + 1)
    ]
    if recursive:
        result.sort(key=lambda entry: _segments(entry.path))
    else:
        result.sort(key=lambda entry: entry.path)
    return result
