"""basincli: command-line client for the Databasin data-integration API."""

__version__ = "0.3.0"
