"""Seekable file object over any ReaderAt."""

import io


class RangeFile(io.RawIOBase):
    """Read-only, seekable stream view of a random-access reader.

    Lets standard-library consumers such as ``zipfile`` or ``tarfile`` read a
    remote resource through the block cache.
    """

    def __init__(self, reader) -> None:
        super().__init__()
        self._reader = reader
        self._position = 0

    @property
    def size(self) -> int:
        return self._reader.size

    def readable(self) -> bool:
        """Return True, this stream supports reading."""
        return True

    def seekable(self) -> bool:
        """Return True, this stream supports seeking."""
        return True

    def tell(self) -> int:
        """Return current absolute position."""
        return self._position

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the position; seeking past the end is allowed and reads return b""."""
        if whence == io.SEEK_SET:
            new_position = offset
        elif whence == io.SEEK_CUR:
            new_position = self._position + offset
        elif whence == io.SEEK_END:
            new_position = self._reader.size + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")

        if new_position < 0:
            raise ValueError("Seek position cannot be negative")

        self._position = new_position
        return self._position

    def readinto(self, buffer) -> int:
        n = self._reader.read_at(buffer, self._position)
        self._position += n
        return n
