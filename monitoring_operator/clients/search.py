"""HTTP client for the managed search cluster."""
from typing import Any, Dict, List, Optional, Set

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..constants import DASHBOARDS_HEALTH_PATH

DEFAULT_TIMEOUT = 5.0


class ClusterHealth(BaseModel):
    """Subset of the `_cluster/health` response."""

    model_config = ConfigDict(extra="ignore")

    status: str
    cluster_name: Optional[str] = None
    number_of_nodes: Optional[int] = None
    number_of_data_nodes: Optional[int] = None


class SearchNode(BaseModel):
    """One row of `_cat/nodes`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = ""
    role: str = Field("", alias="node.role")
    version: str = ""


class SearchClusterClient:
    """Fetches health and node topology from an OpenSearch endpoint."""

    def __init__(self, base_url: str, username: Optional[str] = None, password: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT, transport: Optional[httpx.BaseTransport] = None):
        auth = (username, password) if username else None
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def __enter__(self) -> "SearchClusterClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def cluster_health(self) -> ClusterHealth:
        response = self._client.get("/_cluster/health")
        response.raise_for_status()
        return ClusterHealth.model_validate(response.json())

    def cat_nodes(self) -> List[SearchNode]:
        response = self._client.get("/_cat/nodes", params={"h": "name,node.role,version", "format": "json"})
        response.raise_for_status()
        return [SearchNode.model_validate(row) for row in response.json()]


class IsmPolicy(BaseModel):
    """A stored index state management policy with its concurrency tokens."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field("", alias="_id")
    seq_no: Optional[int] = Field(None, alias="_seq_no")
    primary_term: Optional[int] = Field(None, alias="_primary_term")
    policy: Dict[str, Any] = Field(default_factory=dict)

    @property
    def description(self) -> str:
        return self.policy.get("description") or ""

    def index_patterns(self) -> Dict[str, int]:
        """Index patterns claimed by the policy's ISM templates, with their priority."""
        claimed: Dict[str, int] = {}
        for template in self.policy.get("ism_template") or []:
            for pattern in template.get("index_patterns") or []:
                claimed[pattern] = template.get("priority", 0)
        return claimed


class IsmClient(SearchClusterClient):
    """Index state management API of the search cluster."""

    def get_policy(self, policy_id: str) -> Optional[IsmPolicy]:
        response = self._client.get(f"/_plugins/_ism/policies/{policy_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return IsmPolicy.model_validate(response.json())

    def list_policies(self) -> List[IsmPolicy]:
        response = self._client.get("/_plugins/_ism/policies")
        # No policy has been stored yet
        if response.status_code == httpx.codes.NOT_FOUND:
            return []
        response.raise_for_status()
        return [IsmPolicy.model_validate(item) for item in response.json().get("policies") or []]

    def put_policy(self, policy_id: str, document: Dict[str, Any],
                   existing: Optional[IsmPolicy] = None) -> IsmPolicy:
        """Create a policy, or update `existing` in place guarded by its sequence number."""
        params = {}
        if existing is not None and existing.seq_no is not None:
            params = {"if_seq_no": existing.seq_no, "if_primary_term": existing.primary_term}
        response = self._client.put(f"/_plugins/_ism/policies/{policy_id}", params=params, json=document)
        response.raise_for_status()
        return IsmPolicy.model_validate(response.json())

    def delete_policy(self, policy_id: str) -> None:
        response = self._client.delete(f"/_plugins/_ism/policies/{policy_id}")
        response.raise_for_status()

    def add_policy(self, index_pattern: str, policy_id: str) -> int:
        """Attach a policy to existing indices; returns how many were updated."""
        response = self._client.post(f"/_plugins/_ism/add/{index_pattern}", json={"policy_id": policy_id})
        response.raise_for_status()
        return response.json().get("updated_indices", 0)


class DashboardsClient:
    """Saved objects API of the search dashboards."""

    def __init__(self, base_url: str, username: Optional[str] = None, password: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT, transport: Optional[httpx.BaseTransport] = None):
        auth = (username, password) if username else None
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            headers={"Accept": "application/json", "osd-xsrf": "true"},
            transport=transport,
        )

    def __enter__(self) -> "DashboardsClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def is_available(self) -> bool:
        try:
            response = self._client.get(DASHBOARDS_HEALTH_PATH)
        except httpx.HTTPError:
            return False
        return response.status_code == httpx.codes.OK

    def index_pattern_titles(self, per_page: int = 50) -> Set[str]:
        """Titles of every stored index pattern, following pagination."""
        titles: Set[str] = set()
        seen = 0
        page = 1
        while True:
            response = self._client.get("/api/saved_objects/_find", params={
                "type": "index-pattern", "fields": "title", "per_page": per_page, "page": page,
            })
            response.raise_for_status()
            body = response.json()
            objects = body.get("saved_objects") or []
            titles.update((obj.get("attributes") or {}).get("title", "") for obj in objects)
            seen += len(objects)
            if not objects or seen >= body.get("total", 0):
                return titles
            page += 1

    def create_index_patterns(self, titles: List[str], time_field: str) -> None:
        payload = [
            {"type": "index-pattern", "attributes": {"title": title, "timeFieldName": time_field}}
            for title in titles
        ]
        response = self._client.post("/api/saved_objects/_bulk_create", json=payload)
        response.raise_for_status()
