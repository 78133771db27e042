"""
Error taxonomy for the trip simulation engine.

Every error carries a ``user_message`` that the presentation layer can show
as-is. Normalization failures never reach the user; they are absorbed by the
normalizers and logged.
"""
from typing import Optional


class SimulationError(Exception):
    """Base class for every condition the engine signals."""

    default_message = "Something went wrong with the simulation."

    def __init__(self, user_message: Optional[str] = None, *, slot: Optional[str] = None) -> None:
        self.user_message = user_message or self.default_message
        # "flights", "hotels", "tours", ... when the error belongs to one search
        self.slot = slot
        super().__init__(self.user_message)


class NoResultsFound(SimulationError):
    """Valid search, empty result. Not a failure for the UI, but not data either."""

    default_message = "No results were found for this search."


class ProviderUnavailable(SimulationError):
    default_message = "The provider is unavailable right now. Please try again later."


class AuthenticationFailure(SimulationError):
    default_message = "The provider rejected our credentials. Please contact support."


class RateLimited(SimulationError):
    default_message = "Too many requests. Please try again in a few minutes."


class InvalidSearchParameters(SimulationError):
    default_message = "The search parameters are missing or invalid."


class AirportNotFound(InvalidSearchParameters):
    default_message = "Airport not found."


class InvalidDateRange(SimulationError):
    default_message = "The end date must be after the start date."


class IncompleteSelection(SimulationError):
    default_message = "Please select a flight and a hotel."


class NormalizationFailure(SimulationError):
    default_message = "A provider item could not be read."


class PersistenceFailure(SimulationError):
    default_message = "The simulation could not be saved. Please try again."


class OwnershipViolation(PersistenceFailure):
    default_message = "This simulation belongs to another user."


class InvalidTransition(SimulationError):
    default_message = "This action is not available at this step."


class UnknownOption(SimulationError):
    default_message = "The selected option is no longer available."
