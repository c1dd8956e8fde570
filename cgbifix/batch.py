'''
Repair of many CgBI files at once.

The inputs can be PNG files, directories (searched recursively) and iOS
applications (.ipa, that are zip archives): each image is repaired
independently and a failure is logged without stopping the others.
'''
import collections
import logging
import zipfile
import zlib
from concurrent.futures import Future, ProcessPoolExecutor
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from .config import Config
from .exceptions import CgbifixException
from .images.png.cgbi import repair


logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES = ('.ipa', '.zip')
IMAGE_SUFFIXES = ('.png',)
# jobs in flight for each worker process
JOBS_PER_WORKER = 4

Job = Tuple[str, bytes]
Result = Tuple[str, Optional[bytes], Optional[str]]


# what reading an entry of a damaged or unsupported archive can raise
ARCHIVE_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError, OSError)


def iter_archive(path: Path) -> Iterator[Job]:
    try:
        archive = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as e:
        logger.error('unable to open %s as an archive: %s', path, e)
        return

    with archive:
        for info in archive.infolist():
            if info.is_dir() or not info.filename.lower().endswith(IMAGE_SUFFIXES):
                continue
            if info.filename.startswith('/') or '..' in Path(info.filename).parts:
                logger.warning('ignoring entry with unsafe name %s in %s', info.filename, path)
                continue

            try:
                data = archive.read(info)
            except ARCHIVE_ENTRY_ERRORS as e:
                logger.error('unable to extract %s from %s: %s', info.filename, path, e)
                continue

            logger.debug('found %s in %s', info.filename, path)
            yield f'{path.stem}/{info.filename}', data


def _read_file(name: str, path: Path) -> Iterator[Job]:
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error('unable to read %s: %s', path, e)
        return

    yield name, data


def collect_jobs(paths: Iterable) -> Iterator[Job]:
    '''Yield a couple (name, data) for each image found; the name is the
    relative path the repaired image will be saved at.

    Files and archive entries that can't be read are logged and left out.'''
    for basepath in map(Path, paths):
        if basepath.is_dir():
            for path in sorted(basepath.glob('**/*')):
                if not path.is_file():
                    continue
                if path.suffix.lower() in ARCHIVE_SUFFIXES:
                    yield from iter_archive(path)
                elif path.suffix.lower() in IMAGE_SUFFIXES:
                    yield from _read_file(str(path.relative_to(basepath)), path)
        elif basepath.suffix.lower() in ARCHIVE_SUFFIXES:
            yield from iter_archive(basepath)
        else:
            yield from _read_file(basepath.name, basepath)


def repair_job(job: Job, config: Config) -> Result:
    name, data = job

    try:
        repaired = repair(
            data,
            compliant=config.compliant,
            correction=config.correction,
            max_size=config.max_size,
        )
    except CgbifixException as e:
        return name, None, f'{e.__class__.__name__}: {e}'

    return name, repaired, None


def job_result(name: str, future: Future) -> Result:
    '''A job that died in its worker (crashed process, data that can't be
    pickled, ...) is reported like any other failure.'''
    try:
        return future.result()
    except Exception as e:
        logger.error('worker failed on %s: %r', name, e)
        return name, None, f'{e.__class__.__name__}: {e}'


def _repair_all(jobs: Iterable[Job], config: Config) -> Iterator[Result]:
    if config.workers == 1:
        for job in jobs:
            yield repair_job(job, config)
        return

    # only a bounded number of images is submitted at any time
    window = config.workers * JOBS_PER_WORKER
    pending = collections.deque()

    with ProcessPoolExecutor(max_workers=config.workers) as executor:
        for job in jobs:
            pending.append((job[0], executor.submit(repair_job, job, config)))
            if len(pending) >= window:
                yield job_result(*pending.popleft())

        while pending:
            yield job_result(*pending.popleft())


def run(paths: Iterable, output, config: Config) -> Tuple[int, int]:
    '''Repair all the images found in paths and save them under output,
    returns the number of repaired and skipped images.'''
    output = Path(output)
    repaired, skipped = 0, 0

    for name, data, error in _repair_all(collect_jobs(paths), config):
        if error is not None:
            logger.warning('skipping %s: %s', name, error)
            skipped += 1
            continue

        destination = output / name
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as e:
            logger.error('unable to save %s: %s', destination, e)
            skipped += 1
            continue

        logger.info('repaired %s', destination)
        repaired += 1

    return repaired, skipped
