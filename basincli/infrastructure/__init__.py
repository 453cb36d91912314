"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the Databasin HTTP API,
token files, configuration files, the terminal) by implementing the
interfaces defined in the domain layer.
"""
