import mimetypes

DEFAULT_MIMETYPE = 'application/octet-stream'


def guess_mimetype(path: str) -> str:
    """Content type for the extension of ``path``.

    Parameters
    ----------
    path : str
        File path or key.

    Returns
    -------
    str
        Content type, ``application/octet-stream`` when unknown.
    """
    mimetype, _ = mimetypes.guess_type(path, strict=False)
    return mimetype or DEFAULT_MIMETYPE
