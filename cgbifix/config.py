'''
Configuration of the batch processing, read from the environment.
'''
import os
from typing import Mapping, NamedTuple, Optional

from .enum import Compliant
from .images.png.utils import PixelCorrection


CORRECTIONS = {
    'none': PixelCorrection.NONE,
    'swap': PixelCorrection.SWAP_CHANNELS,
    'unpremultiply': PixelCorrection.UNPREMULTIPLY,
    'all': PixelCorrection.ALL,
}

TRUTHY = ('1', 'true', 'yes', 'on')


class Config(NamedTuple):
    debug: bool = False
    correction: PixelCorrection = PixelCorrection.NONE
    verify_crc: bool = False
    max_size: Optional[int] = None
    workers: int = 1

    @property
    def compliant(self):
        return Compliant.MAGIC | Compliant.CRC if self.verify_crc else Compliant.MAGIC


def _positive_int(environ, name):
    value = environ.get(name)
    if value is None or value == '':
        return None

    try:
        number = int(value)
    except ValueError:
        raise ValueError(f'{name} must be an integer, not {value!r}')

    if number <= 0:
        raise ValueError(f'{name} must be positive, not {number}')

    return number


def from_environ(environ: Mapping[str, str] = os.environ) -> Config:
    correction = environ.get('CGBIFIX_CORRECTION', 'none').lower()
    if correction not in CORRECTIONS:
        raise ValueError(f'CGBIFIX_CORRECTION must be one of {", ".join(CORRECTIONS)}, not {correction!r}')

    return Config(
        debug='DEBUG' in environ,
        correction=CORRECTIONS[correction],
        verify_crc=environ.get('CGBIFIX_VERIFY_CRC', '').lower() in TRUTHY,
        max_size=_positive_int(environ, 'CGBIFIX_MAX_SIZE'),
        workers=_positive_int(environ, 'CGBIFIX_WORKERS') or os.cpu_count() or 1,
    )
