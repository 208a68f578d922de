"""
Asyncio facade over TableService.

Each call runs the blocking store and crypto work in a worker thread;
encryption itself has no suspension points.
"""

from __future__ import annotations

import asyncio

from .table_service import TableService


class AsyncTableService:
    def __init__(self, service: TableService | None = None):
        self.service = service or TableService()

    async def create_table(self, table_name, **kwargs):
        return await asyncio.to_thread(self.service.create_table, table_name, **kwargs)

    async def insert_entity(self, table_name, entity, **kwargs):
        return await asyncio.to_thread(self.service.insert_entity, table_name, entity, **kwargs)

    async def update_entity(self, table_name, entity, **kwargs):
        return await asyncio.to_thread(self.service.update_entity, table_name, entity, **kwargs)

    async def insert_or_replace_entity(self, table_name, entity, **kwargs):
        return await asyncio.to_thread(self.service.insert_or_replace_entity, table_name, entity, **kwargs)

    async def delete_entity(self, table_name, partition_key, row_key, **kwargs):
        return await asyncio.to_thread(self.service.delete_entity, table_name, partition_key, row_key, **kwargs)

    async def get_entity(self, table_name, partition_key, row_key, **kwargs):
        return await asyncio.to_thread(self.service.get_entity, table_name, partition_key, row_key, **kwargs)

    async def query_entities(self, table_name, **kwargs):
        return await asyncio.to_thread(self.service.query_entities, table_name, **kwargs)

    async def commit_batch(self, table_name, batch):
        return await asyncio.to_thread(self.service.commit_batch, table_name, batch)
