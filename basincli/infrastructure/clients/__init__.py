"""Resource clients for the Databasin API.

Each client is a thin layer over ApiClient; all requests funnel through
the shared RequestExecutor.
"""

from basincli.infrastructure.clients.base import ApiClient
from basincli.infrastructure.clients.projects import ProjectsClient
from basincli.infrastructure.clients.connectors import ConnectorsClient
from basincli.infrastructure.clients.pipelines import PipelinesClient
from basincli.infrastructure.clients.automations import AutomationsClient
from basincli.infrastructure.clients.sql import SqlClient

__all__ = [
    "ApiClient",
    "ProjectsClient",
    "ConnectorsClient",
    "PipelinesClient",
    "AutomationsClient",
    "SqlClient",
]
