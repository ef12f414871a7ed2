import copy
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import JSON, Column, Float, String, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.config.dbConfig import Base, build_engine, build_session_factory
from app.utils import logger
from app.utils.errors import (
    DocumentConflictError,
    DocumentNotFoundError,
    PreconditionFailedError,
    StorageError,
)

# Container name -> partition key path inside the document body
CONTAINERS = {
    "knowledgeBase": "type",
    "fieldBindings": "actionButtonType",
    "generatedCode": "projectId",
}

SYSTEM_PROPERTIES = ("_etag", "_ts")


class StoredDocument(Base):
    __tablename__ = "documents"
    container = Column(String(64), primary_key=True)
    id = Column(String(255), primary_key=True)
    partition_key = Column(String(255), nullable=False, index=True)
    body = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    etag = Column(String(64), nullable=False)
    ts = Column(Float, nullable=False)


def strip_system_properties(document: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in document.items() if k not in SYSTEM_PROPERTIES and not k.startswith("_")}


def _new_etag() -> str:
    return uuid.uuid4().hex


def _to_dict(row: StoredDocument) -> Dict[str, Any]:
    document = copy.deepcopy(row.body)
    document["_etag"] = row.etag
    document["_ts"] = int(row.ts)
    return document


def _sort_value(value: Any):
    # None sorts before everything else
    return (value is not None, value if value is not None else "")


class DocumentStore:
    """
    JSON document store on top of a single SQLAlchemy table.

    Documents live in named containers and are addressed by (id, partition key),
    where the partition key is read from the body using the container's
    partition key path. Every write assigns a new etag so callers can do
    compare-and-swap replaces.
    """

    def __init__(self, database_url: str = None, engine=None):
        if engine is None:
            engine = build_engine(database_url)
        self.engine = engine
        self.Session = build_session_factory(engine)

    def initialize(self):
        """Create the documents table if it does not exist."""
        Base.metadata.create_all(self.engine)
        logger.info("Document store initialized with containers: %s", ", ".join(CONTAINERS))

    def _partition_value(self, container: str, document: Dict[str, Any]) -> str:
        if container not in CONTAINERS:
            raise StorageError(f"Unknown container '{container}'")
        value = document.get(CONTAINERS[container])
        if value is None or value == "":
            raise StorageError(
                f"Document in '{container}' is missing partition key '{CONTAINERS[container]}'"
            )
        return str(value)

    def create(self, container: str, document: Dict[str, Any]) -> Dict[str, Any]:
        body = strip_system_properties(document)
        if not body.get("id"):
            raise StorageError("Document id is required")
        partition_key = self._partition_value(container, body)
        row = StoredDocument(
            container=container,
            id=body["id"],
            partition_key=partition_key,
            body=body,
            etag=_new_etag(),
            ts=time.time(),
        )
        session = self.Session()
        try:
            session.add(row)
            session.commit()
            return _to_dict(row)
        except IntegrityError:
            session.rollback()
            raise DocumentConflictError(container, body["id"])
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error creating document {body['id']} in {container}: {e}")
            raise StorageError(f"Failed to create document: {e}") from e
        finally:
            session.close()

    def read(self, container: str, item_id: str, partition_key: Optional[str]) -> Dict[str, Any]:
        """Point read. The partition key must match the stored one."""
        if partition_key is None:
            raise DocumentNotFoundError(container, item_id)
        session = self.Session()
        try:
            row = session.get(StoredDocument, (container, item_id))
        except SQLAlchemyError as e:
            logger.error(f"Error reading document {item_id} from {container}: {e}")
            raise StorageError(f"Failed to read document: {e}") from e
        finally:
            session.close()
        if row is None or row.partition_key != str(partition_key):
            raise DocumentNotFoundError(container, item_id)
        return _to_dict(row)

    def replace(
        self,
        container: str,
        item_id: str,
        partition_key: str,
        document: Dict[str, Any],
        if_match: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Overwrite an existing document. When if_match is given the write only
        happens if the stored etag still equals it.
        """
        body = strip_system_properties(document)
        body["id"] = item_id
        new_partition_key = self._partition_value(container, body)
        new_etag = _new_etag()
        now = time.time()

        stmt = (
            update(StoredDocument)
            .where(StoredDocument.container == container)
            .where(StoredDocument.id == item_id)
            .where(StoredDocument.partition_key == str(partition_key))
        )
        if if_match is not None:
            stmt = stmt.where(StoredDocument.etag == if_match)
        stmt = stmt.values(body=body, partition_key=new_partition_key, etag=new_etag, ts=now)

        session = self.Session()
        try:
            result = session.execute(stmt)
            if result.rowcount == 0:
                session.rollback()
                exists = session.get(StoredDocument, (container, item_id))
                if exists is None or exists.partition_key != str(partition_key):
                    raise DocumentNotFoundError(container, item_id)
                raise PreconditionFailedError(container, item_id)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error replacing document {item_id} in {container}: {e}")
            raise StorageError(f"Failed to replace document: {e}") from e
        finally:
            session.close()

        replaced = copy.deepcopy(body)
        replaced["_etag"] = new_etag
        replaced["_ts"] = int(now)
        return replaced

    def delete(self, container: str, item_id: str, partition_key: Optional[str]) -> None:
        if partition_key is None:
            raise DocumentNotFoundError(container, item_id)
        session = self.Session()
        try:
            row = session.get(StoredDocument, (container, item_id))
            if row is None or row.partition_key != str(partition_key):
                raise DocumentNotFoundError(container, item_id)
            session.delete(row)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error deleting document {item_id} from {container}: {e}")
            raise StorageError(f"Failed to delete document: {e}") from e
        finally:
            session.close()

    def query(
        self,
        container: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Equality filters over top-level body attributes, an optional extra
        predicate, then ordering and limit. Filtering on the partition key
        path is pushed down to SQL; the rest is evaluated on the loaded bodies.
        """
        filters = dict(filters or {})
        stmt = select(StoredDocument).where(StoredDocument.container == container)
        partition_path = CONTAINERS.get(container)
        if partition_path in filters and filters[partition_path] is not None:
            stmt = stmt.where(StoredDocument.partition_key == str(filters[partition_path]))

        session = self.Session()
        try:
            rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error querying container {container}: {e}")
            raise StorageError(f"Failed to query documents: {e}") from e
        finally:
            session.close()

        documents = []
        for row in rows:
            document = _to_dict(row)
            if any(document.get(key) != value for key, value in filters.items()):
                continue
            if predicate is not None and not predicate(document):
                continue
            documents.append(document)

        if order_by:
            documents.sort(key=lambda d: _sort_value(d.get(order_by)), reverse=descending)
        if limit is not None:
            documents = documents[:limit]
        return documents
