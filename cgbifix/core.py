"""
Core module for the abstraction of a binary format

"""
from typing import Tuple, List, Dict

from .fields import Field
from .meta import MetaChunk
from .streams import Stream
from .exceptions import UnpackException


class Chunk(Field, metaclass=MetaChunk):
    """
    Together with Field is the main class that defines a format: the fields are
    declared as class attributes, in the same order they appear in the stream.

        class Record(Chunk):
            length = fields.StructField('I')
            data   = fields.StringField(Dependency('.length'))

    Each instance gets its own copy of the fields, having the instance as father.

    If a source is passed to the constructor (bytes, a path, a file object or a
    Stream) the chunk is immediately unpacked from it.

    After a field is unpacked, a method named "validate_<field name>" is called,
    if defined, with the field as argument: returning False makes the unpacking fail.
    """

    def __init__(self, source=None, **kwargs):
        super().__init__(**kwargs)

        if source is not None:
            stream = source if isinstance(source, Stream) else Stream(source)
            self.logger.debug('unpacking \'%s\' from %s', self.__class__.__name__, stream)
            self.unpack(stream)

    def get_ordered_fields_name(self) -> List[str]:
        return self._meta.fields

    def get_fields(self) -> List[Tuple[str, Field]]:
        '''It returns a list of couples (name, instance) for each field.'''
        return [(_, getattr(self, _)) for _ in self.get_ordered_fields_name()]

    def __repr__(self):
        msg = []
        for field_name, field in self.get_fields():
            msg.append('%s=%s' % (field_name, repr(field)))
        return '<%s(%s)>' % (self.__class__.__name__, ','.join(msg))

    def __str__(self):
        msg = ''
        for field_name, field in self.get_fields():
            msg += '%s: %s\n' % (field_name, repr(field))
        return msg

    def init(self):
        for _, field in self.get_fields():
            field.init()

    def _get_value(self) -> Dict[str, object]:
        return {name: field.value for name, field in self.get_fields()}

    def _get_size(self):
        '''the size MUST be derived from the fields'''
        return sum(field.size for _, field in self.get_fields())

    def _get_raw(self):
        value = b''
        for field_name, field_instance in self.get_fields():
            field_raw = field_instance.raw
            self.logger.debug("field '%s' raw=%r", field_name, field_raw)
            value += field_raw

        return value

    def _set_raw(self, raw):
        self.unpack(Stream(raw))

    @property
    def layout(self) -> Dict[str, Tuple[int, int]]:
        result = {}
        offset = self.offset or 0
        for name, field in self.get_fields():
            result[name] = (offset, field.size)
            offset += field.size

        return result

    def _update_value(self):
        '''The fields are updated in order, so a field can depend on values
        updated by the ones preceding it.'''
        for field_name, field_instance in self.get_fields():
            self.logger.debug('updating %s.%s', self.__class__.__name__, field_name)
            field_instance._update_value()

    def unpack(self, stream):
        '''This is one of the main APIs to take care of: its aim is to take a binary
        data and transform in the representation given by the class this method
        is implemented.

        Any failure is decorated with the name of the field that caused it.
        '''
        self.offset = stream.tell()

        for field_name, field in self.get_fields():
            self.logger.debug('unpacking %s.%s at offset %d', self.__class__.__name__, field_name, stream.tell())

            try:
                field.unpack(stream)
            except UnpackException as e:
                e.chain.append(field_name)
                raise

            validator = getattr(self, f'validate_{field_name}', None)
            if validator is not None and not validator(field):
                raise UnpackException(f'invalid value {field.value!r}', chain=[field_name])
