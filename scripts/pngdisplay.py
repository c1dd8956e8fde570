#!/usr/bin/env python3
'''
Show an iOS optimized PNG file, after having repaired it with the pixels
converted to straight RGBA.
'''
import io
import logging
import sys
import os
from PIL import Image

from cgbifix.images.png import open_png, iter_chunks
from cgbifix.images.png.cgbi import repair
from cgbifix.images.png.utils import PixelCorrection


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
logger.setLevel(level=logging.INFO if 'DEBUG' not in os.environ else logging.DEBUG)


def usage(progname):
    print(f'usage: {progname} <png file path>')
    sys.exit(1)


if __name__ == '__main__':
    if len(sys.argv) < 2:
        usage(sys.argv[0])

    filepath = sys.argv[1]

    with open(filepath, 'rb') as f:
        for idx, chunk in enumerate(iter_chunks(open_png(f))):
            print(f'[{idx:02d}] {chunk!r}')

    data = repair(filepath, correction=PixelCorrection.ALL)

    image = Image.open(io.BytesIO(data))
    image.show()
