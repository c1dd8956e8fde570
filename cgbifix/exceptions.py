class CgbifixException(Exception):
    '''Base class to extend in order to throw exception in cgbifix.

    It takes a message and the chain of the layers that caused the exception:
    every layer the exception passes through appends its own name.
    '''

    def __init__(self, message=None, chain=None):
        self.message = message
        self.chain = chain if chain is not None else []
        super().__init__(message)

    def __str__(self):
        msg = self.message or self.__class__.__name__
        if self.chain:
            msg += ' (at %s)' % '.'.join(reversed(self.chain))
        return msg


class MagicException(CgbifixException):
    '''The data doesn't start with the expected signature.'''
    pass


class NotCgBIException(CgbifixException):
    '''A well formed PNG without the CgBI chunk: nothing to repair.'''
    pass


class UnpackException(CgbifixException):
    '''Short read, out of range value or anything else that makes the stream unreadable.'''
    pass


class CRCException(UnpackException):
    pass


class DecompressionException(CgbifixException):

    def __init__(self, reason, chain=None):
        self.reason = reason
        super().__init__(f'unable to decompress image data: {reason}', chain=chain)


class PackException(CgbifixException):
    '''Failure while encoding a value into its binary representation.'''
    pass


class WriteException(CgbifixException):
    pass
