"""Exceptions raised by the analytics core."""


class PlantEnergyError(Exception):
    """Base exception for plantenergy errors."""
    pass


class NotFoundError(PlantEnergyError):
    """A referenced plant, area, device, supplier or simulation does not exist."""
    pass


class ValidationError(PlantEnergyError):
    """Input that the analytics core refuses to compute on."""
    pass
