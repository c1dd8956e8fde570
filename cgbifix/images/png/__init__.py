'''
# Portable Network Graphics

Format created to replace patent-emcumbered GIF files.

The specification is at <http://www.libpng.org/pub/png/spec/1.2/PNG-Contents.html>.

A PNG file is the magic signature followed by a sequence of chunks, the last
one being IEND. This module describes both and implements the reading of the
chunks one at a time: what to do with each chunk is up to the caller.
'''
import logging
from enum import Enum
from typing import Iterator, Optional

from cgbifix.core import Chunk
from cgbifix import (
    fields,
)
from cgbifix.common import crc
from cgbifix.enum import Compliant
from cgbifix.exceptions import UnpackException
from cgbifix.meta import Endianess
from cgbifix.properties import Dependency
from cgbifix.streams import Stream


logger = logging.getLogger(__name__)

PNG_MAGIC = b'\x89\x50\x4e\x47\x0d\x0a\x1a\x0a'
PNG_MAX_CHUNK_LENGTH = 2 ** 31 - 1


class PNGColorType(Enum):
    '''The color type definition of the PNG is a little tricky and doesn't seem
    to follow a bit-mask. We are going to list all the valid cases.'''
    GRAYSCALE = 0x00
    RGB       = 0x02
    RGB_PALETTE = 0x03
    GS_ALPHA    = 0x04
    RGBA        = 0x06


class PNGCompressionType(Enum):
    '''There is only one method of compression'''
    DEFLATE = 0x00


class PNGFilterType(Enum):
    '''This indicates the preprocessing method applied to the image data before compression. At present, only filter method 0 is defined'''
    ADAPTIVE = 0x00


class PNGInterlaceType(Enum):
    NONE  = 0x00
    ADAM7 = 0x01


class PNGFilterAdaptiveType(Enum):
    NONE = 0x00
    SUB  = 0x01
    UP   = 0x02
    AVG  = 0x03
    PAETH = 0x04


class PNGChunkKind(Enum):
    '''The kinds of chunk we need to tell apart; everything else is OTHER.'''
    HEADER = b'IHDR'
    MARKER = b'CgBI'
    DATA   = b'IDAT'
    END    = b'IEND'
    OTHER  = None

    @classmethod
    def classify(cls, chunk_type: bytes) -> "PNGChunkKind":
        try:
            return cls(bytes(chunk_type))
        except ValueError:
            return cls.OTHER


class PNGGeometry(Chunk):
    '''Width and height give the image dimensions in pixels, they are the first
    two fields of the IHDR data and the only ones needed to rebuild it.'''
    width       = fields.StructField('I', endianess=Endianess.BIG_ENDIAN)
    height      = fields.StructField('I', endianess=Endianess.BIG_ENDIAN)

    def __str__(self):
        return '%dx%d' % (self.width.value, self.height.value)


class IHDRData(PNGGeometry):
    '''
    Bit depth is a single-byte integer giving the number of bits per sample or per palette index (not per pixel).
    Color type is a single-byte integer that describes the interpretation of the image data.

    The defaults describe a 8-bit RGBA not interlaced image.
    '''
    depth       = fields.StructField('B', default=8)
    color       = fields.StructField('B', enum=PNGColorType, default=PNGColorType.RGBA)
    compression = fields.StructField('B', enum=PNGCompressionType, default=PNGCompressionType.DEFLATE)
    filter      = fields.StructField('B', enum=PNGFilterType, default=PNGFilterType.ADAPTIVE)
    interlace   = fields.StructField('B', enum=PNGInterlaceType, default=PNGInterlaceType.NONE)

    def __str__(self):
        return '%dx%dx%d' % (
            self.width.value,
            self.height.value,
            self.depth.value,
        )


class PNGHeader(Chunk):
    magic = fields.StringField(8, default=PNG_MAGIC, is_magic=True)


class PNGChunk(Chunk):
    '''This is the main data structure of the format: the 4 fields represent
    a chunk into the file. Each field is intended big-endian.

    A chunk is defined as critical or ancillary depending on the case of the
    starting letter of the type field.

    The crc field is network-byte-order CRC-32 computed over the chunk type and chunk data, but not the length.

    # Critical chunks

     1. IHDR: contains image's width, height, bit depth, color type, compression method, filter method and interlace method
     2. PLTE: contains the palette data
     3. IDAT: contains the actual image data (compressed)
     4. IEND: is the terminator chunk

    Apple's tools add a CgBI chunk before IHDR to the images they optimize
    for iOS: such files are not readable by the usual decoders.
    '''
    length = fields.StructField('I', endianess=Endianess.BIG_ENDIAN)
    type   = fields.StringField(4)
    Data   = fields.StringField(Dependency('.length'), default=b'')
    crc    = crc.CRCField(['type', 'Data'], endianess=Endianess.BIG_ENDIAN)  # network byte order

    @classmethod
    def build(cls, chunk_type: bytes, data: bytes) -> "PNGChunk":
        '''Create a chunk with length and crc calculated from the data.'''
        chunk = cls()
        chunk.type.value = chunk_type
        chunk.Data.value = data
        chunk.pack()

        return chunk

    def validate_length(self, field):
        return field.value <= PNG_MAX_CHUNK_LENGTH

    def validate_type(self, field):
        '''Chunk types are restricted to consist of uppercase and lowercase ASCII letters'''
        return field.value.isalpha() and field.value.isascii()

    @property
    def kind(self) -> PNGChunkKind:
        return PNGChunkKind.classify(self.type.value)

    def isCritical(self):
        return chr(self.type.value[0]).isupper()


def open_png(source, compliant=Compliant.MAGIC) -> Stream:
    '''Return a stream positioned at the first chunk, after having checked
    the signature.'''
    stream = source if isinstance(source, Stream) else Stream(source)

    PNGHeader(stream, compliant=compliant)

    return stream


def next_chunk(stream: Stream, compliant=Compliant.INHERIT) -> Optional[PNGChunk]:
    '''Read the next chunk; None is returned only if the stream ends exactly
    at a chunk boundary, a partial chunk is an error.'''
    if stream.at_eof():
        return None

    chunk = PNGChunk(stream, compliant=compliant)

    logger.debug('read chunk %r of %d bytes', chunk.type.value, chunk.length.value)

    return chunk


def iter_chunks(stream: Stream, compliant=Compliant.INHERIT) -> Iterator[PNGChunk]:
    '''Iterate over the chunks, until IEND (included) or the end of the stream.'''
    idx = 0
    while True:
        try:
            chunk = next_chunk(stream, compliant=compliant)
        except UnpackException as e:
            e.chain.append(f'chunks[{idx}]')
            raise

        if chunk is None:
            logger.debug('stream ended without IEND after %d chunks', idx)
            return

        yield chunk

        if chunk.kind is PNGChunkKind.END:
            return

        idx += 1
