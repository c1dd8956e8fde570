import io
import struct
import zlib

import pytest
from PIL import Image

from cgbifix.enum import Compliant
from cgbifix.exceptions import (
    CgbifixException,
    CRCException,
    DecompressionException,
    MagicException,
    NotCgBIException,
    PackException,
    UnpackException,
    WriteException,
)
from cgbifix.images.png.cgbi import (
    Geometry,
    build_png,
    decompress_idat,
    parse_cgbi,
    repair,
)
from cgbifix.images.png.utils import PixelCorrection


PNG_MAGIC = b'\x89PNG\r\n\x1a\n'


def test_repair_scenario(make_png, read_chunks):
    """Magic, an 8 bytes IHDR, an empty CgBI and a zlib compressed 4x2 image."""
    pixels = b'\xff\x00\x00\xff' * 8
    data = make_png([
        (b'IHDR', struct.pack('>II', 4, 2)),
        (b'CgBI', b''),
        (b'IDAT', zlib.compress(pixels)),
        (b'IEND', b''),
    ])

    output = repair(data)

    assert output[:8] == PNG_MAGIC

    header, idat, end = read_chunks(output)

    assert header[0] == b'IHDR'
    assert struct.unpack('>IIBBBBB', header[1]) == (4, 2, 8, 6, 0, 0, 0)
    assert idat[0] == b'IDAT'
    assert zlib.decompress(idat[1]) == pixels
    assert end[:2] == (b'IEND', b'')


def test_repair_output_structure(cgbi, read_chunks, make_scanlines):
    output = repair(cgbi(width=4, height=2))

    chunks = read_chunks(output)

    assert [_[0] for _ in chunks] == [b'IHDR', b'IDAT', b'IEND']
    assert struct.unpack('>IIBBBBB', chunks[0][1]) == (4, 2, 8, 6, 0, 0, 0)
    assert zlib.decompress(chunks[1][1]) == make_scanlines(4, 2)
    assert chunks[-1][1] == b''


def test_repair_checksums(cgbi, read_chunks):
    output = repair(cgbi())

    for chunk_type, chunk_data, crc in read_chunks(output):
        assert crc == zlib.crc32(chunk_type + chunk_data)

        if chunk_data:
            corrupted = bytes([chunk_data[0] ^ 0x01]) + chunk_data[1:]
            assert crc != zlib.crc32(chunk_type + corrupted)


def test_repair_round_trip(cgbi, make_scanlines):
    pixels = make_scanlines(7, 5, pixel=b'\x10\x20\x30\x40')

    geometry, payload = parse_cgbi(cgbi(width=7, height=5, pixels=pixels))

    assert geometry == Geometry(7, 5)
    assert payload == pixels

    image = Image.open(io.BytesIO(repair(cgbi(width=7, height=5, pixels=pixels))))

    assert image.size == (7, 5)
    assert image.mode == 'RGBA'
    assert image.tobytes() == b'\x10\x20\x30\x40' * 7 * 5


def test_repair_zlib_payload(cgbi, make_scanlines):
    _, payload = parse_cgbi(cgbi(raw=False))

    assert payload == make_scanlines(4, 2)


def test_repair_multiple_idat(cgbi, read_chunks, make_scanlines):
    output = repair(cgbi(width=16, height=16, idat_parts=3))

    chunks = read_chunks(output)

    assert [_[0] for _ in chunks].count(b'IDAT') == 1
    assert zlib.decompress(chunks[1][1]) == make_scanlines(16, 16)


def test_repair_drops_ancillary_chunks(cgbi, read_chunks):
    output = repair(cgbi(ancillary=[(b'iDOT', b'\x00' * 28), (b'tEXt', b'Title\x00kebab')]))

    assert [_[0] for _ in read_chunks(output)] == [b'IHDR', b'IDAT', b'IEND']


def test_repair_without_iend(make_records, make_png):
    records = make_records()[:-1]

    assert records[-1][0] == b'IDAT'

    geometry, _ = parse_cgbi(make_png(records))

    assert geometry == (4, 2)


def test_repair_correction(make_scanlines, cgbi):
    # premultiplied BGRA of a half transparent red
    pixels = make_scanlines(2, 2, pixel=b'\x00\x00\x80\x80')

    output = repair(cgbi(width=2, height=2, pixels=pixels), correction=PixelCorrection.ALL)

    image = Image.open(io.BytesIO(output))

    assert image.tobytes() == b'\xff\x00\x00\x80' * 4


def test_repair_not_png(cgbi):
    with pytest.raises(MagicException):
        repair(b'GIF89a' + cgbi()[6:])

    with pytest.raises(MagicException):
        repair(b'')


def test_repair_not_cgbi(standard_png, tmp_path):
    sink = tmp_path / 'out.png'

    with pytest.raises(NotCgBIException):
        repair(standard_png, sink=str(sink))

    assert not sink.exists()


def test_repair_missing_ihdr(make_png, make_records):
    records = [_ for _ in make_records() if _[0] != b'IHDR']

    with pytest.raises(UnpackException):
        repair(make_png(records))


def test_repair_short_ihdr(make_png):
    data = make_png([
        (b'CgBI', b''),
        (b'IHDR', b'\x00\x00\x00\x04'),
        (b'IEND', b''),
    ])

    with pytest.raises(UnpackException) as e:
        repair(data)

    assert 'IHDR' in e.value.chain


def test_repair_truncated_data(make_records, make_chunk):
    """Removing the last byte of the data of any chunk must not go unnoticed."""
    records = make_records()

    for idx, (chunk_type, data) in enumerate(records):
        if not data:
            continue

        chunks = [make_chunk(*_) for _ in records]
        chunks[idx] = (
            struct.pack('>I', len(data)) + chunk_type + data[:-1] + struct.pack('>I', zlib.crc32(chunk_type + data)))

        with pytest.raises(UnpackException):
            repair(PNG_MAGIC + b''.join(chunks))


def test_repair_truncated_file(cgbi):
    data = cgbi()

    with pytest.raises(UnpackException):
        repair(data[:-1])


def test_repair_crc(make_records, make_chunk):
    records = make_records()
    chunks = [make_chunk(*_) for _ in records]
    chunks[1] = make_chunk(*records[1], crc=0)
    data = PNG_MAGIC + b''.join(chunks)

    assert repair(data)

    with pytest.raises(CRCException):
        repair(data, compliant=Compliant.MAGIC | Compliant.CRC)


def test_repair_bad_payload(make_png):
    data = make_png([
        (b'CgBI', b''),
        (b'IHDR', struct.pack('>IIBBBBB', 1, 1, 8, 6, 0, 0, 0)),
        (b'IDAT', b'garbage'),
        (b'IEND', b''),
    ])

    with pytest.raises(DecompressionException) as e:
        repair(data)

    assert 'zlib' in e.value.reason
    assert 'raw deflate' in e.value.reason


def test_decompress_idat():
    data = bytes(range(0x100))

    assert decompress_idat(zlib.compress(data)) == data

    with pytest.raises(DecompressionException):
        decompress_idat(b'')

    with pytest.raises(DecompressionException):
        decompress_idat(zlib.compress(data)[:-8])


def test_decompress_idat_max_size():
    data = bytes(0x1000)

    assert decompress_idat(zlib.compress(data), max_size=0x1000) == data

    with pytest.raises(DecompressionException):
        decompress_idat(zlib.compress(data), max_size=0x100)


def test_build_png(read_chunks):
    output = build_png(Geometry(1, 1), b'\x00\x01\x02\x03\x04')

    chunks = read_chunks(output)

    assert chunks[0][1] == b'\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00'
    assert zlib.decompress(chunks[1][1]) == b'\x00\x01\x02\x03\x04'


def test_build_png_geometry_too_big():
    with pytest.raises(PackException):
        build_png(Geometry(2 ** 32, 1), b'')


def test_repair_sink(cgbi, tmp_path):
    data = cgbi()

    path = tmp_path / 'fixed.png'
    output = repair(data, sink=str(path))

    assert path.read_bytes() == output

    buffer = io.BytesIO()
    repair(data, sink=buffer)

    assert buffer.getvalue() == output


def test_repair_sink_failure(cgbi, tmp_path):
    class Broken:
        def write(self, data):
            raise OSError('no space left on device')

    with pytest.raises(WriteException):
        repair(cgbi(), sink=Broken())

    with pytest.raises(WriteException):
        repair(cgbi(), sink=str(tmp_path / 'missing' / 'fixed.png'))


def test_repair_from_path(cgbi, tmp_path):
    path = tmp_path / 'icon.png'
    path.write_bytes(cgbi())

    assert repair(path) == repair(str(path)) == repair(cgbi())


def test_exceptions_hierarchy():
    for exc in (MagicException, NotCgBIException, UnpackException, CRCException,
                DecompressionException, PackException, WriteException):
        assert issubclass(exc, CgbifixException)


class OneByteReader(io.RawIOBase):
    '''Raw source that never returns more than one byte per read.'''
    def __init__(self, data):
        self.data = io.BytesIO(data)

    def readable(self):
        return True

    def readinto(self, buffer):
        chunk = self.data.read(min(len(buffer), 1))
        buffer[:len(chunk)] = chunk
        return len(chunk)


def test_repair_from_raw_source(cgbi):
    assert repair(OneByteReader(cgbi())) == repair(cgbi())


def test_repair_from_raw_source_truncated(cgbi):
    with pytest.raises(UnpackException):
        repair(OneByteReader(cgbi()[:-20]))
