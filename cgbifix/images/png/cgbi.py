'''
# iOS optimized PNG (CgBI)

Xcode runs the PNG resources of an application through a modified pngcrush
that produces files not readable by the usual decoders:

 - a CgBI chunk is inserted before IHDR
 - the image data is a raw deflate stream, without the zlib header and checksum
 - the pixels are stored as premultiplied BGRA

Here the image data is extracted and a new, standard, PNG is built around it
with only the IHDR, IDAT and IEND chunks; all the ancillary chunks are dropped.
'''
import logging
import zlib
from typing import NamedTuple, Optional, Tuple

from cgbifix.enum import Compliant
from cgbifix.exceptions import (
    DecompressionException,
    NotCgBIException,
    PackException,
    UnpackException,
    WriteException,
)
from cgbifix.streams import Stream
from . import (
    IHDRData,
    PNGChunk,
    PNGChunkKind,
    PNGGeometry,
    PNGHeader,
    iter_chunks,
    open_png,
)
from .utils import PixelCorrection, correct_pixel_data


logger = logging.getLogger(__name__)


class Geometry(NamedTuple):
    width: int
    height: int


def _inflate(data: bytes, wbits: int, max_size: Optional[int]) -> bytes:
    decompressor = zlib.decompressobj(wbits)

    try:
        pixels = decompressor.decompress(data, max_size + 1 if max_size else 0)
    except zlib.error as e:
        raise DecompressionException(str(e)) from e

    if max_size and len(pixels) > max_size:
        raise DecompressionException(f'image data exceeds the limit of {max_size} bytes')

    if not decompressor.eof:
        raise DecompressionException('deflate stream is truncated')

    if decompressor.unused_data:
        logger.debug('ignoring %d bytes after the end of the deflate stream', len(decompressor.unused_data))

    return pixels


def decompress_idat(data: bytes, max_size: Optional[int] = None) -> bytes:
    '''The concatenation of the contents of all the IDAT chunks makes up a zlib datastream
    for a standard PNG, but a CgBI file has a raw deflate stream instead: both are accepted.'''
    reasons = []
    for wbits, description in ((zlib.MAX_WBITS, 'zlib'), (-zlib.MAX_WBITS, 'raw deflate')):
        try:
            pixels = _inflate(data, wbits, max_size)
        except DecompressionException as e:
            reasons.append(f'{description}: {e.reason}')
            continue

        logger.info('decompressed %s image data: %d -> %d bytes', description, len(data), len(pixels))

        return pixels

    raise DecompressionException('; '.join(reasons))


def parse_cgbi(source, compliant=Compliant.MAGIC, max_size=None) -> Tuple[Geometry, bytes]:
    '''Read a CgBI file and return its geometry and the decompressed image data.'''
    if not isinstance(source, Stream):
        with Stream(source) as stream:
            return parse_cgbi(stream, compliant=compliant, max_size=max_size)

    stream = open_png(source, compliant=compliant)

    geometry = None
    is_cgbi = False
    payload = bytearray()

    for chunk in iter_chunks(stream, compliant=compliant):
        kind = chunk.kind

        if kind is PNGChunkKind.HEADER:
            try:
                header = PNGGeometry(chunk.Data.value)
            except UnpackException as e:
                e.chain.append('IHDR')
                raise
            geometry = Geometry(header.width.value, header.height.value)
            logger.debug('image is %s', header)
        elif kind is PNGChunkKind.MARKER:
            is_cgbi = True
            logger.info('found CgBI chunk, not adding it back')
        elif kind is PNGChunkKind.DATA:
            payload += chunk.Data.value
        elif kind is PNGChunkKind.END:
            break
        else:
            logger.debug('dropping chunk %r', chunk.type.value)

    if not is_cgbi:
        raise NotCgBIException('the file is not an iOS CgBI file')

    if geometry is None:
        raise UnpackException('IHDR chunk is missing')

    return geometry, decompress_idat(bytes(payload), max_size=max_size)


def build_png(geometry: Geometry, pixels: bytes, level=zlib.Z_DEFAULT_COMPRESSION) -> bytes:
    '''Build a PNG declared as 8-bit RGBA, with the pixels (filter bytes included)
    in a single IDAT chunk.'''
    stream = Stream(b'', flags='w')

    PNGHeader().pack(stream)

    ihdr = IHDRData()
    ihdr.width.value, ihdr.height.value = geometry
    PNGChunk.build(b'IHDR', ihdr.pack()).pack(stream)

    try:
        compressed = zlib.compress(pixels, level)
    except zlib.error as e:
        raise PackException(f'unable to compress image data: {e}') from e

    PNGChunk.build(b'IDAT', compressed).pack(stream)
    PNGChunk.build(b'IEND', b'').pack(stream)

    return stream.getvalue()


def repair(source, sink=None, compliant=Compliant.MAGIC, correction=PixelCorrection.NONE, max_size=None) -> bytes:
    '''Convert a CgBI file into a standard PNG.

    The output is built completely in memory: only then, if a sink (a path or a
    writable file object) is given, it's written into it.'''
    geometry, pixels = parse_cgbi(source, compliant=compliant, max_size=max_size)

    pixels = correct_pixel_data(pixels, geometry.width, geometry.height, correction=correction)

    data = build_png(geometry, pixels)

    if sink is not None:
        try:
            stream = Stream(sink, flags='w')
        except OSError as e:
            raise WriteException(f'unable to open {sink!r} for writing: {e}') from e

        with stream:
            stream.write(data)

    return data
