import logging
import zlib
from typing import BinaryIO, Optional

from data_structures import ByteRangeDescriptor, ZoomBlockError

logger = logging.getLogger(__name__)


class BlockReadError(ZoomBlockError):
    def __init__(self, message: str, zoom_level: Optional[int] = None,
                 file_offset: Optional[int] = None, stored_size: Optional[int] = None):
        super().__init__(message, zoom_level)
        self.file_offset = file_offset
        self.stored_size = stored_size


def _block_label(zoom_level, descriptor: ByteRangeDescriptor) -> str:
    return (
        f"zoom level {zoom_level} block at offset {descriptor.file_offset} "
        f"({descriptor.stored_size} bytes, region {descriptor.bounding_interval})"
    )


def inflate_block(raw: bytes, uncompress_buf_size: int) -> bytes:
    """
    Inflate a zlib compressed block. uncompress_buf_size is the largest inflated
    block size declared for the file, so shorter output is valid.
    Returns: inflated bytes
    Raises: zlib.error for corrupt, incomplete or oversized streams
    """
    inflater = zlib.decompressobj()
    # One spare byte so a stream that fills the buffer exactly still reaches eof
    data = inflater.decompress(raw, uncompress_buf_size + 1)
    if len(data) > uncompress_buf_size:
        raise zlib.error(
            f"inflated data exceeds decompression buffer of {uncompress_buf_size} bytes"
        )
    if not inflater.eof:
        raise zlib.error("incomplete compressed stream")
    return data


def fetch_block(source: BinaryIO, descriptor: ByteRangeDescriptor,
                uncompress_buf_size: int, zoom_level: Optional[int] = None) -> bytes:
    """
    Read the stored bytes of one data block and decompress them when needed.
    uncompress_buf_size of 0 means the block is stored uncompressed.
    Returns: bytes buffer holding the packed records
    """
    # Closed handles and negative offsets raise ValueError rather than OSError
    try:
        source.seek(descriptor.file_offset)
        raw = source.read(descriptor.stored_size)
    except (OSError, ValueError) as ex:
        label = _block_label(zoom_level, descriptor)
        logger.error(f"Error reading {label}: {ex}")
        raise BlockReadError(
            f"Error reading {label}", zoom_level,
            descriptor.file_offset, descriptor.stored_size,
        ) from ex

    if raw is None or len(raw) != descriptor.stored_size:
        label = _block_label(zoom_level, descriptor)
        got = 0 if raw is None else len(raw)
        logger.error(f"Short read for {label}: got {got} bytes")
        raise BlockReadError(
            f"Short read for {label}: got {got} of {descriptor.stored_size} bytes",
            zoom_level, descriptor.file_offset, descriptor.stored_size,
        )

    if uncompress_buf_size <= 0:
        return bytes(raw)

    try:
        buffer = inflate_block(raw, uncompress_buf_size)
    except zlib.error as ex:
        label = _block_label(zoom_level, descriptor)
        logger.error(f"Error decompressing {label}: {ex}")
        raise BlockReadError(
            f"Error decompressing {label}: {ex}", zoom_level,
            descriptor.file_offset, descriptor.stored_size,
        ) from ex

    logger.debug(f"Inflated {len(raw):,} bytes to {len(buffer):,} bytes")
    return buffer
