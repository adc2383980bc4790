"""
This package provides a read-only interface for PAK archives (the ``LSPK`` container format), analogous to `ZipFile`
or `TarFile`.

A PAK archive holds many individually compressed files, described by a compressed file list that is usually stored
near the end of the archive. Large archives may be split over several physical files ("parts").

The main class of interest is `PakFile`. We can open an archive like so::

    pak_file = PakFile('path/to/archive.pak')

and obtain all the entries as `PakFileEntry` objects::

    for entry in pak_file:
        print(entry.name, entry.uncompressed_size)

to read an entry's content, we can use::

    data = pak_file.read(pak_file.find('Public/Game/meta.lsx'))

The lower-level structures (`PakHeader`, `PakFileListHeader`, `PakFileEntry`) can also be used on their own, on data
obtained by other means. The `lsf` module decodes the header of LSF documents commonly stored in such archives.

This package does not offer functionality for writing PAK archives.
"""

import logging
import os

from pathlib import Path
from typing import ContextManager, BinaryIO, AnyStr, Union, Optional, Tuple, Dict, Callable, Iterator
from os import PathLike, SEEK_SET
from io import IOBase

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader

from .compression import PakCompressionMethod
from .errors import PakError, PakFormatError, NotAPakFileError, PakFileEntryDecodeError, PakDecompressError, \
    PakPartUnavailableError, LsfFormatError
from .structs import PAK_MAGIC, KNOWN_PAK_VERSIONS, PakHeader, PakFileEntry, PakFileListHeader, \
    PakFileEntryIterator, read_file_list_region


__version__ = '0.1.0'


LOG = logging.getLogger(__name__)


PartOpener = Callable[[int], BinaryIO]


class PakFile(ContextManager['PakFile']):
    """
    This class provides access to a PAK archive stored in a file or file object.

    A `PakFile` reads the archive header and the file list as soon as it is constructed. Afterwards, the following
    attributes are available:

    - `header`: The `PakHeader` of the archive.
    - `file_list_header`: The `PakFileListHeader` preceding the compressed file list.
    - `entries`: A tuple of `PakFileEntry` objects, in the order they occur in the file list. Note that duplicate
      names are possible; they are all preserved.

    The content of an entry is obtained with `read`, or `read_raw` for the stored (compressed) payload.

    A `PakFile` can be either opened and closed manually, or used as a context manager::

        with PakFile("archive.pak") as pak:
            print(pak.entries)

    Payloads stored in parts other than the main file are read from sibling files named ``<stem>_<part><suffix>``,
    e.g. ``Textures_1.pak`` for ``Textures.pak``. This can be overridden by passing a `part_opener`.
    """

    _fileobj: BinaryIO
    _fileobj_owned: bool = False
    _closed: bool = False
    _path: Optional[Path] = None

    _part_opener: Optional[PartOpener] = None
    _part_fileobjs: Dict[int, BinaryIO]

    _header: PakHeader
    _file_list_header: PakFileListHeader
    _compressed_file_list: bytes
    _entries: Tuple[PakFileEntry, ...] = ()

    def __init__(
        self, path_or_fileobj: Union[PathLike, AnyStr, BinaryIO], part_opener: Optional[PartOpener] = None
    ):
        """
        Opens a PAK archive for reading.

        Args:
            path_or_fileobj: Either a filename, or an open, seekable, binary file object containing the archive.
            part_opener: A callable that receives a part number (1 or more) and returns an open, seekable, binary
                file object for that part of the archive. The `PakFile` will close the returned object when it is
                closed itself. If not specified, parts are looked for next to the main file (only possible if a
                filename was given).

        Raises:
            NotAPakFileError: If the data does not start with the PAK magic
            PakFormatError: If the file seemed to be a PAK archive, but its structure is truncated or malformed
            PakDecompressError: If the file list could not be decompressed
            OSError: If reading the file fails

        If a file object is passed, it should be kept open for the lifetime of the `PakFile`, and it will not be closed
        when the context ends.
        """

        self._part_fileobjs = dict()
        self._part_opener = part_opener

        if isinstance(path_or_fileobj, IOBase):
            if not path_or_fileobj.seekable():
                raise ValueError("File object must be seekable")

            self._fileobj = path_or_fileobj
        else:
            self._path = Path(os.fsdecode(path_or_fileobj))
            self._fileobj = open(self._path, 'rb')
            self._fileobj_owned = True

        try:
            self._read_archive()
        except BaseException:
            self._close_owned()
            raise

    @property
    def name(self) -> Optional[str]:
        name = getattr(self._fileobj, 'name', None)

        return None if ((name is None) or (name == '')) else str(name)

    @property
    def header(self) -> PakHeader:
        return self._header

    @property
    def file_list_header(self) -> PakFileListHeader:
        return self._file_list_header

    @property
    def entries(self) -> Tuple[PakFileEntry, ...]:
        """
        Metadata about the entries in the archive, in the order they appear in the file list.
        """
        return self._entries

    def __iter__(self) -> Iterator[PakFileEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def find(self, name: str) -> Optional[PakFileEntry]:
        """
        Returns the first entry with the given name, or None if there is no such entry.
        """
        return next((entry for entry in self._entries if entry.name == name), None)

    def iter_entries(self) -> PakFileEntryIterator:
        """
        Decodes the file list again, lazily. See `PakFileEntryIterator` for details.
        """
        return self._file_list_header.decompress_iter(self._compressed_file_list)

    def part_path(self, part: int) -> Path:
        """
        The path of the file holding a given part of the archive. Part 0 is the main file.
        """
        if self._path is None:
            raise PakPartUnavailableError(part)
        if part == 0:
            return self._path

        return self._path.with_name(f"{self._path.stem}_{part}{self._path.suffix}")

    def read_raw(self, entry: PakFileEntry) -> bytes:
        """
        Reads the stored payload for an entry, without decompressing it.

        Returns:
            The payload, exactly `entry.size_on_disk` bytes long.

        Raises:
            PakFormatError: If the payload extends past the end of its archive part.
            PakPartUnavailableError: If the archive part holding the payload cannot be opened.
        """

        fileobj = self._get_part_fileobj(entry.archive_part)

        reader = BinaryReader(fileobj, big_endian=False).seek(entry.offset_in_file, SEEK_SET)
        data = reader.read_at_most(entry.size_on_disk)

        if len(data) < entry.size_on_disk:
            raise PakFormatError(
                f"Payload for '{entry.name}' extends past the end of archive part {entry.archive_part} (expected "
                f"{entry.size_on_disk} bytes at offset {entry.offset_in_file}, found {len(data)})"
            )

        return data

    def read(self, entry: PakFileEntry) -> bytes:
        """
        Reads and decompresses the content of an entry.

        Raises:
            PakFormatError, PakPartUnavailableError: See `read_raw`.
            PakDecompressError: If the payload is corrupt or decompresses to an unexpected size.
        """
        return entry.decompress(self.read_raw(entry))

    def close(self):
        """
        Closes the main archive file and any part files opened for reading payloads.

        Entry metadata stays available afterwards, but reading content from any part raises `ValueError`, and part
        files are never reopened. Unlike leaving a `with` block, this also closes a main file object that was passed
        in by the caller. Objects returned by a `part_opener` are always closed here.
        """

        self._closed = True
        self._close_parts()

        if self._fileobj is not None:
            self._fileobj.close()

    def __enter__(self) -> 'PakFile':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._close_owned()

    def _close_owned(self):
        self._closed = True
        self._close_parts()

        if (not self._fileobj_owned) or (self._fileobj is None) or self._fileobj.closed:
            return

        self._fileobj.close()

    def _close_parts(self):
        part_fileobjs, self._part_fileobjs = self._part_fileobjs, dict()

        for fileobj in part_fileobjs.values():
            if not fileobj.closed:
                fileobj.close()

    def _read_archive(self):
        reader = BinaryReader(self._fileobj, big_endian=False).seek(0, SEEK_SET)

        try:
            self._header = PakHeader.read_from_binary(reader)
        except NotAPakFileError as e:
            raise NotAPakFileError(self.name) from e

        LOG.debug(
            f"Reading PAK archive {self.name or '(unnamed)'}: version {self._header.version}, "
            f"{self._header.num_parts} part(s), file list at {self._header.file_list_offset}"
        )

        reader.seek(self._header.file_list_offset, SEEK_SET)
        region = reader.read_at_most(self._header.file_list_size)

        if len(region) < self._header.file_list_size:
            raise PakFormatError(
                f"File list region extends past the end of the archive (expected {self._header.file_list_size} "
                f"bytes at offset {self._header.file_list_offset}, found {len(region)})"
            )

        self._file_list_header, self._compressed_file_list = read_file_list_region(region)
        self._entries = self._file_list_header.decompress(self._compressed_file_list)

        LOG.debug(f"Decoded {len(self._entries)} file list entries")

    def _get_part_fileobj(self, part: int) -> BinaryIO:
        if self._closed or self._fileobj.closed:
            raise ValueError("Cannot read entries because the archive has been closed")
        if part == 0:
            return self._fileobj

        fileobj = self._part_fileobjs.get(part)
        if fileobj is not None:
            return fileobj

        if self._part_opener is not None:
            fileobj = self._part_opener(part)
        elif self._path is not None:
            LOG.debug(f"Opening archive part {part}: {self.part_path(part)}")
            fileobj = open(self.part_path(part), 'rb')
        else:
            raise PakPartUnavailableError(part)

        self._part_fileobjs[part] = fileobj

        return fileobj

