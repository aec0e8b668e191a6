"""Error kinds raised by the advisory pipeline and its fact stores.

Input errors (bad submission) and store errors (backend trouble) have separate
roots so the HTTP layer can tell "bad input" apart from "backend down".
"""


class AdvisorError(Exception):
    """Base class for every error the advisor reports to a caller."""

    kind = "AdvisorError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(AdvisorError):
    kind = "InputError"


class UnknownDisease(InputError):
    kind = "UnknownDisease"

    def __init__(self, disease: str):
        super().__init__(f"Unknown disease: {disease}")
        self.disease = disease


class UnknownLocation(InputError):
    kind = "UnknownLocation"

    def __init__(self, location: str):
        super().__init__(f"Unknown location: {location}")
        self.location = location


class InvalidBudget(InputError):
    kind = "InvalidBudget"

    def __init__(self, budget):
        super().__init__(f"Budget must be a non-negative decimal, got {budget!r}")
        self.budget = budget


# =============================================================================
# STORE ERRORS
# =============================================================================

class StoreError(AdvisorError):
    kind = "StoreError"


class StoreUnavailable(StoreError):
    """Transport failure or timeout talking to the fact store."""
    kind = "StoreUnavailable"


class StoreRejected(StoreError):
    """The fact store answered, but refused or could not apply the statement."""
    kind = "StoreRejected"

    def __init__(self, message: str, status: str = ""):
        super().__init__(f"{status} {message}".strip() if status else message)
        self.status = status
