"""
Entity Storage
==============

``IDocumentStore`` over NerdGraph entity-scoped NerdStorage.

SLO documents live in one collection per entity; the entity GUID is the
storage scope and the document id the key inside the collection.
"""

from typing import Any, List, Optional, Sequence

from slo_r.core import NerdGraphException, ValidationException
from slo_r.shared.infrastructure.logging import get_logger
from slo_r.slo.application import ActionType, DocumentMutation, IDocumentStore
from slo_r.slo.infrastructure.nerdgraph import NerdGraphClient

logger = get_logger(__name__)

DOCUMENT_QUERY = """
query($guid: EntityGuid!, $collection: String!, $documentId: String!) {
  actor {
    entity(guid: $guid) {
      nerdStorage {
        document(collection: $collection, documentId: $documentId)
      }
    }
  }
}
"""

COLLECTION_QUERY = """
query($guid: EntityGuid!, $collection: String!) {
  actor {
    entity(guid: $guid) {
      nerdStorage {
        collection(collection: $collection) {
          id
          document
        }
      }
    }
  }
}
"""

DELETE_DOCUMENT_MUTATION = """
mutation($guid: ID!, $collection: String!, $documentId: String!) {
  nerdStorageDeleteDocument(
    scope: {name: ENTITY, id: $guid}
    collection: $collection
    documentId: $documentId
  ) {
    deleted
  }
}
"""

DELETE_TAGS_MUTATION = """
mutation($guid: EntityGuid!, $tagKeys: [String!]!) {
  taggingDeleteTagFromEntity(guid: $guid, tagKeys: $tagKeys) {
    errors {
      message
      type
    }
  }
}
"""


def _nerd_storage(data: dict) -> Optional[dict]:
    entity = (data.get("actor") or {}).get("entity")
    if entity is None:
        return None
    return entity.get("nerdStorage") or {}


class EntityStorageDocumentStore(IDocumentStore):
    """Entity storage client."""

    def __init__(self, client: NerdGraphClient):
        self._client = client

    async def mutate(self, mutation: DocumentMutation) -> Any:
        """
        Apply a mutation; returns the number of deleted documents.

        Zero means nothing was deleted and callers treat it as a failure.
        """
        if mutation.action_type != ActionType.DELETE_DOCUMENT:
            raise ValidationException(f"Unsupported storage action: {mutation.action_type}")

        data = await self._client.execute(
            DELETE_DOCUMENT_MUTATION,
            {
                "guid": mutation.entity_guid,
                "collection": mutation.collection,
                "documentId": mutation.document_id,
            }
        )
        result = data.get("nerdStorageDeleteDocument") or {}
        deleted = result.get("deleted") or 0

        logger.info(
            "Entity storage delete executed",
            extra={
                "collection": mutation.collection,
                "entity_guid": mutation.entity_guid,
                "document_id": mutation.document_id,
                "deleted": deleted
            }
        )
        return deleted

    async def get_document(
        self,
        collection: str,
        entity_guid: str,
        document_id: str
    ) -> Optional[dict]:
        data = await self._client.execute(
            DOCUMENT_QUERY,
            {"guid": entity_guid, "collection": collection, "documentId": document_id}
        )
        storage = _nerd_storage(data)
        if storage is None:
            return None
        return storage.get("document")

    async def list_documents(self, collection: str, entity_guid: str) -> List[dict]:
        data = await self._client.execute(
            COLLECTION_QUERY, {"guid": entity_guid, "collection": collection}
        )
        storage = _nerd_storage(data)
        if storage is None:
            return []

        documents = []
        for item in storage.get("collection") or []:
            document = dict(item.get("document") or {})
            document.setdefault("documentId", item.get("id"))
            documents.append(document)
        return documents

    async def remove_entity_tags(self, entity_guid: str, tag_keys: Sequence[str]) -> bool:
        data = await self._client.execute(
            DELETE_TAGS_MUTATION, {"guid": entity_guid, "tagKeys": list(tag_keys)}
        )
        errors = (data.get("taggingDeleteTagFromEntity") or {}).get("errors") or []
        if errors:
            raise NerdGraphException(
                "tag removal rejected: " + "; ".join(e.get("message", "") for e in errors),
                details={"entity_guid": entity_guid, "errors": errors}
            )
        return True
