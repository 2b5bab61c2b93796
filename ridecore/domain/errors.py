"""Domain error taxonomy.

``Conflict`` (a lost acceptance race) is deliberately *not* here: it is an
expected outcome and is returned as a value by ``RideAcceptance.accept``.
"""


class RideCoreError(Exception):
    """Base class for errors raised by the dispatch / fare core."""


class NotFound(RideCoreError):
    """A ride, driver or stored record does not exist."""


class RideNotFound(NotFound):
    def __init__(self, ride_id: int):
        super().__init__(f"Ride {ride_id} not found")
        self.ride_id = ride_id


class DriverNotFound(NotFound):
    def __init__(self, driver_id: int):
        super().__init__(f"Driver {driver_id} not found")
        self.driver_id = driver_id


class CompletionNotFound(NotFound):
    def __init__(self, ride_id: int):
        super().__init__(f"No fare has been calculated for ride {ride_id}")
        self.ride_id = ride_id


class ConfigurationMissing(RideCoreError):
    """No active rate row exists for a booking / vehicle combination.

    Fatal for the calculation: an operator has to add or re-activate the
    configuration before the fare can be computed.
    """


class InvalidStateTransition(RideCoreError):
    """Raised when a ride status change violates the state machine."""


class InvalidOtp(RideCoreError):
    """The pickup code supplied by the driver does not match the ride."""
