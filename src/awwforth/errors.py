## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘


class ForthError(Exception):
    def __init__(self, message: str = "", *, token=None, word=None):
        """Base class for all errors raised by the interpreter."""
        super().__init__(message)
        self.token: str = token
        self.word: object = word


class StackUnderflow(ForthError, IndexError):
    def __init__(self, message: str = "", *, token=None, word=None, stack_name=None):
        super().__init__(message, token=token, word=word)
        self.stack_name = stack_name


## DICTIONARY
class DictionaryError(ForthError, LookupError):
    pass

class EmptyName(DictionaryError):
    pass

class CircularDefinition(DictionaryError):
    def __init__(self, message: str = "", *, token=None, word=None, chain=()):
        super().__init__(message, token=token, word=word)
        self.chain = tuple(chain)

class DuplicateRedefinition(DictionaryError):
    pass

class WordNotFound(DictionaryError):
    pass


## COMPILER & LEXER
class CompileError(ForthError, ValueError):
    pass

class UnbalancedControlStructure(CompileError):
    pass


class ForthParseError(ForthError, ValueError):
    def __init__(self, message, *, token=None, column=None):
        super().__init__(message, token=token)
        self.column = column

class UnterminatedString(ForthParseError):
    pass


## DEVICES
class DeviceError(ForthError, RuntimeError):
    def __init__(self, message: str = "", *, token=None, word=None, namespace=None, port=None):
        super().__init__(message, token=token, word=word)
        self.namespace = namespace
        self.port = port

class InvalidPort(DeviceError):
    pass

class ReadOnlyViolation(DeviceError):
    pass

class InvalidDevice(DeviceError):
    """Attaching a device that lacks a namespace or a port table."""
    pass


## RUNTIME
class ForthRuntimeError(ForthError, RuntimeError):
    pass

class UnknownControlCode(ForthRuntimeError):
    pass

class InvalidAction(ForthRuntimeError):
    pass

class InvalidAddress(ForthRuntimeError):
    pass

class EngineSuspended(ForthRuntimeError):
    """A line is waiting on an external event; no other line may start until it resumes."""
    pass

class ContinuationSpent(ForthRuntimeError):
    pass


class WordSignatureError(ForthError, TypeError):
    """Loading-time problems wrapping a Python function as a native word."""
    pass
