import logging
from typing import List


def get_root_from_chunk(instance):
    return get_instance_from_chunk(instance, condition=lambda x: x.father is None)


def get_instance_from_chunk(instance, condition):
    while not condition(instance):
        instance = instance.father

    return instance


class Dependency:
    '''This makes the relation between fields possible.

    In practice this class allows to write something like

        class Simple(Chunk):
            length = fields.StructField('I')
            data = fields.StringField(n=Dependency('.length'))

    and have the (internal) length of the string contained in the field named 'data'
    strictly connected to the field named 'length'.

    The relation is defined in the unpacking direction and it's reversed
    during packing: the field named 'length' is rewritten with the actual
    size of 'data'.

    The expression is resolved like a python module path: a leading '.'
    means the first component is a sibling (i.e. it's looked up from the father),
    otherwise the lookup starts from the root chunk.
    '''
    def __init__(self, expression):
        self.expression = expression
        self.logger = logging.getLogger(__name__)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.expression})>'

    def resolve_field(self, instance):
        fields_path: List[str] = self.expression.split('.')
        # '.length'.split(".") -> ['', 'length']
        # 'length'.split(".") -> ['length']

        if fields_path[0] == '':
            field = instance.father
            fields_path = fields_path[1:]
        else:
            field = get_root_from_chunk(instance)

        self.logger.debug(' resolve \'%s\' from \'%s\'', self.expression, field.__class__.__name__)

        for component_name in fields_path:
            field = getattr(field, component_name)

        return field

    def resolve(self, instance):
        '''With this method we resolve the attribute with respect to the instance
        passed as argument.'''
        value = self.resolve_field(instance).value

        self.logger.debug(' resolved with value %s', value)

        return value

    def resolve_and_set(self, instance, value):
        real_field = self.resolve_field(instance)
        if not hasattr(real_field, 'value'):
            raise ValueError(f'something is wrong with the Dependency resolution!')
        real_field.value = value


class PropertyDescriptor(object):
    """This the glue for dependency management: the attribute can hold a plain
    value or a Dependency that is resolved at access time."""

    def __init__(self, name: str, _type: type):
        self.name = name
        self.type = _type

    @property
    def cache_name(self):
        return f'_{self.name}_cache'

    def __get__(self, instance, owner):
        if instance is None:
            return self

        data = instance.__dict__
        if self.name not in data:
            raise AttributeError(f"no '{self.name}' here!")

        value = data[self.name]

        if isinstance(value, Dependency):
            # without a father there is nothing to resolve against
            if instance.father is None:
                return data.get(self.cache_name, 0)

            return value.resolve(instance)

        return value

    def __set__(self, instance, value):
        if not isinstance(value, (self.type, Dependency)):
            raise ValueError(f"A property must be of type {self.type} or a Dependency")

        data = instance.__dict__
        attribute = data.get(self.name)

        if not isinstance(attribute, Dependency) or isinstance(value, Dependency):
            data[self.name] = value
            return

        if instance.father is None:
            data[self.cache_name] = value
            return

        attribute.resolve_and_set(instance, value)
