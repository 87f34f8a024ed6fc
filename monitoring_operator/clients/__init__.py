"""Clients for the cluster API and the managed search cluster."""
from .cluster import ClusterClient, TokenBucket
from .search import ClusterHealth, DashboardsClient, IsmClient, IsmPolicy, SearchClusterClient, SearchNode

__all__ = [
    "ClusterClient",
    "TokenBucket",
    "ClusterHealth",
    "DashboardsClient",
    "IsmClient",
    "IsmPolicy",
    "SearchClusterClient",
    "SearchNode",
]
