"""
Exceptions raised while reading PAK archives and the documents stored within.

I/O failures from the underlying file are not wrapped; they surface as the usual `OSError`.
"""

from typing import Optional


class PakError(Exception):
    """Base class for all errors related to the content of a PAK archive."""


class PakFormatError(PakError):
    """
    The data does not match the structure of a PAK archive: bad magic, truncated structures, unknown enum values etc.
    """


class NotAPakFileError(PakFormatError):
    def __init__(self, file_name: Optional[str] = None):
        quoted_name = f" '{file_name}'" if file_name is not None else ''
        super().__init__(f"File{quoted_name} is not a PAK archive")


class PakFileEntryDecodeError(PakFormatError):
    """
    A single record in the file list could not be decoded. The other records may still be usable.
    """

    index: int

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Could not decode file list record #{index}")


class PakPartUnavailableError(PakError):
    def __init__(self, part: int):
        self.part = part
        super().__init__(f"Data is stored in archive part {part}, which cannot be opened")


class PakDecompressError(PakError):
    """
    A codec failed to decompress some data, or produced a different amount of data than declared.
    """


class LsfFormatError(PakFormatError):
    """
    The data does not start with a valid LSF document header.
    """
