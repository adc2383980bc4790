"""
Decompression routines for the codecs used in PAK archives.

All of them are "block" style: the caller knows the exact decompressed size in advance, and the result is checked
against it.
"""

import zlib

from enum import IntEnum
from typing import Union

import lz4.block

from .errors import PakDecompressError


BytesLike = Union[bytes, bytearray, memoryview]


class PakCompressionMethod(IntEnum):
    NONE = 0
    ZLIB = 1
    LZ4 = 2


def decompress_block(method: PakCompressionMethod, data: BytesLike, uncompressed_size: int) -> bytes:
    """
    Decompresses a block of data with a given method.

    Args:
        method: The compression method the data was stored with.
        data: The compressed data. For the NONE method, this may be longer than the result; only the first
            `uncompressed_size` bytes are returned.
        uncompressed_size: The exact size of the decompressed data.

    Returns:
        The decompressed data, exactly `uncompressed_size` bytes in length.

    Raises:
        PakDecompressError: If the data is corrupt, or it decompresses to a different size than expected.
    """
    if method == PakCompressionMethod.NONE:
        if len(data) < uncompressed_size:
            raise PakDecompressError(
                f"Stored data is {len(data)} bytes long, but {uncompressed_size} bytes were expected"
            )

        return bytes(data[:uncompressed_size])
    if method == PakCompressionMethod.ZLIB:
        return decompress_raw_deflate(data, uncompressed_size)
    if method == PakCompressionMethod.LZ4:
        return decompress_lz4_block(data, uncompressed_size)

    raise ValueError(f"Unsupported compression method: {method!r}")


def decompress_lz4_block(data: BytesLike, uncompressed_size: int) -> bytes:
    """
    Decompresses LZ4 data in block format (i.e. no frame header, no size prefix).
    """
    if uncompressed_size == 0:
        return b''

    try:
        result = lz4.block.decompress(bytes(data), uncompressed_size=uncompressed_size)
    except lz4.block.LZ4BlockError as e:
        raise PakDecompressError(f"LZ4 decompression failed: {e}") from e

    _check_size(result, uncompressed_size, 'LZ4')

    return result


def decompress_raw_deflate(data: BytesLike, uncompressed_size: int) -> bytes:
    """
    Decompresses a raw Deflate stream (i.e. without the zlib or gzip envelope).
    """
    decompressor = zlib.decompressobj(-zlib.MAX_WBITS)

    try:
        # A max_length of 0 would mean "unlimited"
        result = decompressor.decompress(bytes(data), max(uncompressed_size, 1))
        overflow = b'' if decompressor.eof else decompressor.decompress(decompressor.unconsumed_tail, 1)
    except zlib.error as e:
        raise PakDecompressError(f"Deflate decompression failed: {e}") from e

    if len(overflow) > 0:
        raise PakDecompressError(f"Deflate stream holds more than the expected {uncompressed_size} bytes")

    _check_size(result, uncompressed_size, 'Deflate')

    return result


def _check_size(result: bytes, expected_size: int, codec_name: str):
    if len(result) != expected_size:
        raise PakDecompressError(
            f"{codec_name} data decompressed to {len(result)} bytes, but {expected_size} bytes were expected"
        )
