import struct
import zlib
import pytest


PNG_MAGIC = b'\x89PNG\r\n\x1a\n'
CGBI_DATA = b'\x50\x00\x20\x02'
RED = b'\xff\x00\x00\xff'


def encode_chunk(chunk_type, data=b'', crc=None):
    if crc is None:
        crc = zlib.crc32(chunk_type + data)
    return struct.pack('>I', len(data)) + chunk_type + data + struct.pack('>I', crc)


def encode_png(records):
    return PNG_MAGIC + b''.join(encode_chunk(*record) for record in records)


def scanlines(width, height, pixel=RED):
    return b''.join(b'\x00' + pixel * width for _ in range(height))


def deflate(data, raw=True):
    if not raw:
        return zlib.compress(data)

    compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def cgbi_records(width=4, height=2, pixels=None, marker=True, raw=True, ancillary=(), idat_parts=1):
    '''The (type, data) couples of an image laid out like Xcode does it.'''
    if pixels is None:
        pixels = scanlines(width, height)

    payload = deflate(pixels, raw=raw)

    records = []
    if marker:
        records.append((b'CgBI', CGBI_DATA))
    records.append((b'IHDR', struct.pack('>IIBBBBB', width, height, 8, 6, 0, 0, 0)))
    records.extend(ancillary)

    size = -(-len(payload) // idat_parts)
    for idx in range(0, len(payload), size):
        records.append((b'IDAT', payload[idx:idx + size]))

    records.append((b'IEND', b''))

    return records


def decode_chunks(data):
    '''Independent (and minimal) parser used to check the output.'''
    assert data[:8] == PNG_MAGIC
    offset = 8
    chunks = []
    while offset < len(data):
        length, = struct.unpack('>I', data[offset:offset + 4])
        chunk_type = data[offset + 4:offset + 8]
        chunk_data = data[offset + 8:offset + 8 + length]
        crc, = struct.unpack('>I', data[offset + 8 + length:offset + 12 + length])
        chunks.append((chunk_type, chunk_data, crc))
        offset += 12 + length

    return chunks


@pytest.fixture
def cgbi():
    '''Factory for CgBI files, accepts the same arguments as cgbi_records().'''
    def _cgbi(**kwargs):
        return encode_png(cgbi_records(**kwargs))

    return _cgbi


@pytest.fixture
def standard_png():
    return encode_png(cgbi_records(marker=False, raw=False))


@pytest.fixture
def make_chunk():
    return encode_chunk


@pytest.fixture
def make_png():
    return encode_png


@pytest.fixture
def make_records():
    return cgbi_records


@pytest.fixture
def make_scanlines():
    return scanlines


@pytest.fixture
def read_chunks():
    return decode_chunks
