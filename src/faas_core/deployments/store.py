"""Deployment records in KV storage, partitioned by caller key.

Layout:
    {prefix}:deployment:{partition}:{id}  -> JSON record
    {prefix}:deployments:{partition}      -> set of deployment ids
"""

import json
from dataclasses import replace
from typing import Any

from faas_core.deployments.models import Deployment
from faas_core.observability import get_logger
from faas_core.protocols import KVStore

logger = get_logger(__name__)


class DeploymentStore:
    """CRUD over deployment records; every operation is scoped by partition key."""

    def __init__(self, kv: KVStore, key_prefix: str = "faas") -> None:
        self.kv = kv
        self.key_prefix = key_prefix

    def _record_key(self, partition_key: str, deployment_id: str) -> str:
        return f"{self.key_prefix}:deployment:{partition_key}:{deployment_id}"

    def _index_key(self, partition_key: str) -> str:
        return f"{self.key_prefix}:deployments:{partition_key}"

    async def add(self, partition_key: str, deployment: Deployment) -> None:
        """Store a new deployment and index it under the partition."""
        await self.kv.set(
            self._record_key(partition_key, deployment.id),
            json.dumps(deployment.to_dict()).encode(),
        )
        await self.kv.sadd(self._index_key(partition_key), deployment.id)

    async def get(self, partition_key: str, deployment_id: str) -> Deployment | None:
        data = await self.kv.get(self._record_key(partition_key, deployment_id))
        if data is None:
            return None
        return Deployment.from_dict(json.loads(data))

    async def list(self, partition_key: str) -> list[Deployment]:
        """All deployments of a partition, newest first."""
        ids = sorted(await self.kv.smembers(self._index_key(partition_key)))
        if not ids:
            return []

        pipe = self.kv.pipeline()
        for deployment_id in ids:
            pipe.get(self._record_key(partition_key, deployment_id))
        results = await pipe.execute()

        deployments: list[Deployment] = []
        stale: list[str] = []
        for deployment_id, data in zip(ids, results):
            if data is None:
                stale.append(deployment_id)
                continue
            deployments.append(Deployment.from_dict(json.loads(data)))

        if stale:
            logger.debug("Pruning stale deployment index entries", context={"ids": stale})
            await self.kv.srem(self._index_key(partition_key), *stale)

        deployments.sort(key=lambda d: d.created_at, reverse=True)
        return deployments

    async def update(
        self,
        partition_key: str,
        deployment_id: str,
        **changes: Any,
    ) -> Deployment | None:
        """Merge field changes into a record (last writer wins).

        Returns:
            The updated deployment, or None if it does not exist
        """
        current = await self.get(partition_key, deployment_id)
        if current is None:
            return None

        updated = replace(current, **changes)
        await self.kv.set(
            self._record_key(partition_key, deployment_id),
            json.dumps(updated.to_dict()).encode(),
        )
        return updated

    async def delete(self, partition_key: str, deployment_id: str) -> bool:
        """Remove a record and its index entry. Returns False if it did not exist."""
        key = self._record_key(partition_key, deployment_id)
        if await self.kv.get(key) is None:
            return False

        await self.kv.delete(key)
        await self.kv.srem(self._index_key(partition_key), deployment_id)
        return True
