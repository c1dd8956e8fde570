#!/usr/bin/env python3
'''
Repair the iOS optimized PNG files found in the given paths: PNG files,
directories and .ipa archives.

The behaviour is configured from the environment

 CGBIFIX_CORRECTION   none, swap, unpremultiply or all (default none)
 CGBIFIX_VERIFY_CRC   set to 1 to refuse files with wrong checksums
 CGBIFIX_MAX_SIZE     maximum size in bytes of the decompressed image data
 CGBIFIX_WORKERS      number of worker processes (default the number of CPUs)
 DEBUG                verbose logging
'''
import logging
import os
import sys

from cgbifix import batch, config


logging.basicConfig(level=logging.DEBUG if 'DEBUG' in os.environ else logging.INFO)
logger = logging.getLogger(__name__)


def usage(progname):
    print(f'usage: {progname} <output directory> [paths...]')
    sys.exit(1)


if __name__ == '__main__':
    if len(sys.argv) < 3:
        usage(sys.argv[0])

    output = sys.argv[1]
    paths = sys.argv[2:]

    try:
        conf = config.from_environ()
    except ValueError as e:
        logger.error(e)
        sys.exit(1)

    repaired, skipped = batch.run(paths, output, conf)

    logger.info(f'{repaired} images repaired, {skipped} skipped')

    sys.exit(0 if repaired or not skipped else 2)
