class TestClassError(Exception):
    __test__ = False


class FatalError(TestClassError):
    """Errors that abort a whole run instead of failing a single method."""


class RegistrationError(FatalError):
    pass


class DuplicateRegistrationError(RegistrationError):
    pass


class ProtocolViolation(FatalError):
    pass


class BailOut(FatalError):
    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason


class ConfigurationError(TestClassError):
    pass


class SkipMethod(Exception):
    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason
