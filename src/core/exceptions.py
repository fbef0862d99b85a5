"""Domain errors raised by models and services.

They carry no HTTP knowledge; ``api.exceptions`` maps them onto responses.
"""


class DomainError(ValueError):
    """A business rule was violated by the requested change."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field


class CircularReference(DomainError):
    pass


class InvalidParent(DomainError):
    pass


class DependentRecordsExist(DomainError):
    pass


class AlreadyInState(DomainError):
    pass


class DuplicateCode(DomainError):
    """Unique business code already taken.

    ``status_code`` lets a call site keep its historical 400 instead of 409.
    """

    def __init__(self, message, field="code", status_code=409):
        super().__init__(message, field=field)
        self.status_code = status_code


class RelatedNotFound(LookupError):
    """A referenced row (parent, branch, division...) does not exist."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field


class ParentNotFound(RelatedNotFound):
    pass
