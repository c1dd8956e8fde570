import io
import logging

from .exceptions import UnpackException, WriteException


logger = logging.getLogger(__name__)


class Stream(object):
    '''This is a simple wrapper around bytes/path/file object to
    uniform its properties: we need exact reads, a position that works also
    for non seekable objects and a way to detect the end of the data
    without consuming it.'''
    def __init__(self, obj, flags='r'):
        '''Here we normalize the object in order to be accessed as a normal file object'''
        self._type = type(obj)
        self.flags = flags
        self.obj = obj
        self._owned = False
        self._position = 0
        self._pending = b''

        init_method_name = 'init_%s' % self.obj.__class__.__name__

        init_method = getattr(self, init_method_name, self.init_file)

        init_method()

    def __repr__(self):
        return f'<{self.__class__.__name__}({self._type.__name__}@{self._position})>'

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def init_str(self):
        '''We think this is a path'''
        logger.debug('opening path \'%s\'', self.obj)
        self.obj = open(self.obj, '%sb' % self.flags)
        self._owned = True

    init_PosixPath = init_WindowsPath = init_str

    def init_bytes(self):
        '''We think these are raw bytes'''
        self.obj = io.BytesIO(self.obj)

    init_bytearray = init_memoryview = init_bytes

    def init_file(self):
        '''Anything else must behave like a binary file object'''
        attribute = 'read' if self.flags == 'r' else 'write'
        if not hasattr(self.obj, attribute):
            raise ValueError('\'%s\' is not a valid object for a stream' % self._type.__name__)

    def close(self):
        if self._owned:
            self.obj.close()

    def tell(self):
        return self._position

    def read(self, size):
        data = self._pending[:size]
        self._pending = self._pending[size:]

        # raw and unbuffered objects can return less than asked before the end
        while len(data) < size:
            chunk = self.obj.read(size - len(data))
            if not chunk:
                break
            data += chunk

        self._position += len(data)

        return data

    def read_exact(self, size):
        data = self.read(size)

        if len(data) != size:
            raise UnpackException(
                f'short read at offset {self._position - len(data)}: wanted {size} bytes, got {len(data)}')

        return data

    def at_eof(self):
        '''Peek one byte to know if there is still something to read.'''
        if self._pending:
            return False

        self._pending = self.obj.read(1) or b''

        return self._pending == b''

    def write(self, data):
        try:
            count = self.obj.write(data)
        except (OSError, ValueError) as e:
            raise WriteException(f'unable to write {len(data)} bytes: {e}') from e

        self._position += len(data)

        return count

    def getvalue(self):
        return self.obj.getvalue()
