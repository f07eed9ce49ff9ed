import re

SEPARATOR = '/'

_DUPLICATE_SEPARATORS = re.compile('/{2,}')


class PathPrefixer:
    """Roots relative paths under a fixed namespace prefix.

    Attributes
    ----------
    prefix : str
        Namespace root, stored with a single trailing separator.
    absolute : bool, default=False
        Keep a leading separator of the root. Object stores need keys without
        one; local filesystem roots are absolute paths.
    """

    def __init__(self, prefix: str = '', absolute: bool = False):
        self.absolute = absolute
        self.prefix = ''
        self.set_prefix(prefix)

    def set_prefix(self, prefix: str) -> None:
        prefix = _DUPLICATE_SEPARATORS.sub(SEPARATOR, prefix or '')
        if not self.absolute:
            prefix = prefix.lstrip(SEPARATOR)
        if prefix == SEPARATOR:
            # filesystem root
            self.prefix = SEPARATOR
            return
        prefix = prefix.rstrip(SEPARATOR)
        self.prefix = prefix + SEPARATOR if prefix else ''

    def get_prefix(self) -> str:
        return self.prefix

    def apply_prefix(self, path: str) -> str:
        """Absolute location of a relative path.

        Parameters
        ----------
        path : str
            Path relative to the namespace root.

        Returns
        -------
        str
            Prefixed path with duplicate separators collapsed.
        """
        location = _DUPLICATE_SEPARATORS.sub(SEPARATOR, self.prefix + path.lstrip(SEPARATOR))
        if not self.absolute:
            location = location.lstrip(SEPARATOR)
        return location

    def remove_prefix(self, location: str) -> str:
        """Relative path of an absolute location.

        Parameters
        ----------
        location : str
            Path or key that starts with the namespace root.

        Returns
        -------
        str
            Remainder after the root; the input when the root is empty.
        """
        if not self.prefix:
            return location
        if location.startswith(self.prefix):
            return location[len(self.prefix):]
        if location == self.prefix.rstrip(SEPARATOR):
            return ''
        return location
