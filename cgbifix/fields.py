"""
A Field is "fundamental" datatype from the format point of view, something directly
packable/unpackable from a stream.
"""
import logging
import struct
from enum import Enum
from typing import Dict

from .enum import Compliant
from .meta import FieldBase, Endianess
from .properties import Dependency, PropertyDescriptor
from .exceptions import UnpackException, MagicException, PackException


class Field(FieldBase):
    """Base class to subclass from"""

    def __init__(self, *args, name=None, father=None, default=None, \
                 endianess=Endianess.LITTLE_ENDIAN, compliant=Compliant.INHERIT, is_magic=False):
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self.name = name
        self.father = father
        self.default = default
        self.offset = None
        self.endianess = endianess
        self.compliant = compliant
        self.is_magic = is_magic

        self.init()

    def init(self):
        self.value = self.value_from_default()

    def value_from_default(self):
        return self.default

    def __str__(self):
        return str(self.value)

    def get_dependencies(self) -> Dict[str, Dependency]:
        """Return the dictionary containing as key the attribute name"""
        instance_dict = self.__dict__
        return {_k: _v for _k, _v in instance_dict.items() if isinstance(_v, Dependency)}

    def is_compliant(self, level):
        '''Returns True if this field, or a father it inherits from, requires the given level'''
        instance = self
        while instance is not None:
            if instance.compliant & level:
                return True
            if not instance.compliant & Compliant.INHERIT:
                break

            instance = instance.father

        return False

    value = property(
        fget=lambda self: self._get_value(),
        fset=lambda self, value: self._set_value(value))

    def _get_value(self):
        return self._value

    def _set_value(self, value) -> None:
        self._value = value

    def _get_size(self):
        raise NotImplementedError(f"method {self.__class__.__name__}._get_size() not implemented")

    size = property(
        fget=lambda self: self._get_size(),
    )

    def _get_raw(self) -> bytes:
        raise NotImplementedError(f"method {self.__class__.__name__}._get_raw() not implemented")

    def _set_raw(self, value) -> None:
        raise NotImplementedError(f"method {self.__class__.__name__}._set_raw() not implemented")

    raw = property(
        fget=lambda self: self._get_raw(),
        fset=lambda self, value: self._set_raw(value),
    )

    def _update_value(self):
        '''This is used to update the binary value before packing'''
        pass

    def pack(self, stream=None):
        '''Derived values are refreshed before generating the raw data,
        if a stream is passed the data is also written into it.'''
        self._update_value()

        raw = self.raw

        if stream is not None:
            self.offset = stream.tell()
            stream.write(raw)

        return raw

    def unpack(self, stream):
        self.offset = stream.tell()
        self.raw = stream.read_exact(self.size)


class StructField(Field):
    """
    Simplest of the fields: mimic the behaviour of the struct module packing/unpacking
    integers to/from bytes.

    The main advantage is the possibility to indicate via the "enum" argument some subclass
    of enum.Enum so to have directly a representation of the integer value of the field itself.
    """

    def __init__(self, format, default=0, enum=None, **kw):
        self.format = format
        self.enum = enum
        super().__init__(default=default, **kw)

    def __repr__(self):
        if not self.enum:
            return '<%s(%s)>' % (self.__class__.__name__, hex(self.value))

        return f'<{self.__class__.__name__}({self.value!r})>'

    def value_from_default(self):
        if not self.enum:
            return super().value_from_default()

        return self.enum(self.default)

    def get_format(self):
        return '%s%s' % ('<' if self.endianess == Endianess.LITTLE_ENDIAN else '>', self.format)

    def _get_size(self):
        return struct.calcsize(self.get_format())

    def _get_raw(self) -> bytes:
        value = self.value.value if isinstance(self.value, Enum) else self.value
        try:
            return struct.pack(self.get_format(), value)
        except struct.error as e:
            raise PackException(f'value {value!r} doesn\'t fit format \'{self.get_format()}\': {e}',
                                chain=[self.name] if self.name else [])

    def _set_raw(self, raw: bytes) -> None:
        self.value = self._unpack(raw)

    def _unpack_struct(self, raw: bytes) -> int:
        try:
            unpacked_value = struct.unpack(self.get_format(), raw)[0]
        except struct.error as e:
            self.logger.error(e)
            exc = MagicException if self.is_magic and self.is_compliant(Compliant.MAGIC) else UnpackException
            raise exc(str(e))

        return unpacked_value

    def _unpack_enum(self, value: int):
        try:
            return self.enum(value)
        except ValueError:
            self.logger.warning(f'enum {self.enum!r} doesn\'t have element with value 0x{value:x} in it')

        return value

    def _unpack(self, raw):
        value = self._unpack_struct(raw)
        if self.enum:
            value = self._unpack_enum(value)

        if self.is_magic and value != self.value_from_default():
            self.logger.warning(f'the magic doesn\'t correspond')
            if self.is_compliant(Compliant.MAGIC):
                raise MagicException(f'expected magic {self.default!r}, found {value!r}')

        return value


class StringField(Field):
    """Represent a contiguous chunk of bytes.

    The length can be fixed or a Dependency from another field: in the latter case
    the length is read from that field when unpacking and written back into it
    when packing."""

    length = PropertyDescriptor('length', int)

    def __init__(self, n=None, **kw):
        if n is None and 'default' not in kw:
            raise ValueError(f"StringField must have 'n' or 'default' indicated!")

        self.length = n if n is not None else len(kw['default'])

        super().__init__(**kw)

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, repr(self.value))

    def __len__(self):
        return self.size

    def has_dependent_length(self):
        return 'length' in self.get_dependencies()

    def value_from_default(self):
        return b'\x00' * self.length if self.default is None else self.default

    def _get_size(self):
        return len(self._value) if self.has_dependent_length() else self.length

    def _set_value(self, value) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise ValueError(f'{self.__class__.__name__} accepts only bytes, not {value.__class__.__name__}')

        if not self.has_dependent_length() and len(value) != self.length:
            raise ValueError(f'you are trying to set a value with the wrong size (that is {self.length} bytes)')

        self._value = bytes(value)

    def _get_raw(self):
        return self.value

    def _set_raw(self, raw: bytes) -> None:
        self.value = raw

    def _update_value(self):
        if self.has_dependent_length():
            self.length = len(self._value)

    def unpack(self, stream):
        self.offset = stream.tell()
        length = self.length

        try:
            self._value = stream.read_exact(length)
        except UnpackException as e:
            if self.is_magic and self.is_compliant(Compliant.MAGIC):
                raise MagicException(f'data too short to contain the magic: {e}') from e
            raise

        if self.is_magic and self._value != self.default:
            self.logger.warning(f'the magic doesn\'t correspond')
            if self.is_compliant(Compliant.MAGIC):
                raise MagicException(f'expected magic {self.default!r}, found {self._value!r}')
