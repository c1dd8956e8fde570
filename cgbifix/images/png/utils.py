import logging
from enum import Flag
from typing import Iterator, Optional, Tuple

import numpy as np

from cgbifix.exceptions import UnpackException
from . import PNGFilterAdaptiveType


logger = logging.getLogger(__name__)

# CgBI images are always 8 bits per channel, four channels
BYTES_PER_PIXEL = 4


class PixelCorrection(Flag):
    '''Which fix-ups to apply to the pixels of a CgBI image; by default the
    data is passed through untouched.'''
    NONE          = 0
    SWAP_CHANNELS = 1 << 0  # BGRA -> RGBA
    UNPREMULTIPLY = 1 << 1
    ALL           = SWAP_CHANNELS | UNPREMULTIPLY


def iter_scanlines(idata: bytes, width: int, height: int, bpp=BYTES_PER_PIXEL) -> Iterator[Tuple[int, bytes]]:
    '''Each scanline starts with one byte for the filter type.'''
    n_byte_scanline = width * bpp + 1

    if len(idata) < n_byte_scanline * height:
        raise UnpackException(
            f'image data is {len(idata)} bytes, {n_byte_scanline * height} are needed for {width}x{height} pixels')

    logger.debug(f'iterating over scanlines for width {width}')
    for idx in range(0, n_byte_scanline * height, n_byte_scanline):
        yield idata[idx], idata[idx + 1:idx + n_byte_scanline]


def paeth(a, b, c):
    p = a + b - c
    pa = abs(p - a)
    pb = abs(p - b)
    pc = abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def unfilter_scanline(filter_type: int, scanline: bytes, previous: Optional[bytes], bpp=BYTES_PER_PIXEL) -> bytearray:
    '''Reverse the filter applied to the scanline, previous is the already
    reconstructed scanline above (None for the first one).'''
    try:
        filter_type = PNGFilterAdaptiveType(filter_type)
    except ValueError as e:
        raise UnpackException(f'filter type {filter_type} not existing') from e

    if filter_type is PNGFilterAdaptiveType.NONE:
        return bytearray(scanline)

    if previous is None:
        previous = bytes(len(scanline))

    out = bytearray(len(scanline))
    for i, x in enumerate(scanline):
        left = out[i - bpp] if i >= bpp else 0
        up = previous[i]

        if filter_type is PNGFilterAdaptiveType.SUB:
            predictor = left
        elif filter_type is PNGFilterAdaptiveType.UP:
            predictor = up
        elif filter_type is PNGFilterAdaptiveType.AVG:
            predictor = (left + up) // 2
        else:
            predictor = paeth(left, up, previous[i - bpp] if i >= bpp else 0)

        out[i] = (x + predictor) & 0xff

    return out


def correct_pixel_data(data: bytes, width: int, height: int, correction=PixelCorrection.NONE) -> bytes:
    '''Apply the requested correction to the decompressed image data; the result
    has all the scanlines with filter type NONE.'''
    if not correction:
        return data

    rows = []
    previous = None
    for filter_type, scanline in iter_scanlines(data, width, height):
        previous = unfilter_scanline(filter_type, scanline, previous)
        rows.append(bytes(previous))

    pixels = np.frombuffer(b''.join(rows), dtype=np.uint8).reshape(height, width, BYTES_PER_PIXEL).copy()

    if correction & PixelCorrection.SWAP_CHANNELS:
        pixels = pixels[..., [2, 1, 0, 3]]

    if correction & PixelCorrection.UNPREMULTIPLY:
        alpha = pixels[..., 3:].astype(np.uint16)
        color = pixels[..., :3].astype(np.uint16)
        unpremultiplied = np.minimum(color * 255 // np.maximum(alpha, 1), 255)
        pixels[..., :3] = np.where(alpha > 0, unpremultiplied, color).astype(np.uint8)

    logger.info('corrected %dx%d pixels (%s)', width, height, correction)

    filtered = np.zeros((height, width * BYTES_PER_PIXEL + 1), dtype=np.uint8)
    filtered[:, 1:] = pixels.reshape(height, width * BYTES_PER_PIXEL)

    return filtered.tobytes()
