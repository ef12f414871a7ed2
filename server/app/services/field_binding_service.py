import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from app.models.field_binding import CLASSIFICATIONS, DATA_TYPES
from app.services.document_store import DocumentStore, strip_system_properties
from app.utils import logger
from app.utils.errors import BindingNotFoundError, DocumentNotFoundError, InvalidInputError, StorageError

CONTAINER = "fieldBindings"

ACTION_BUTTON_TEMPLATES = {
    "Mass Edit/Add": {
        "commonFields": [
            {"name": "VersionName", "dataType": "string", "classification": "dimension", "required": True},
            {"name": "SKU", "dataType": "array", "classification": "dimension", "required": True},
            {"name": "Store", "dataType": "array", "classification": "dimension", "required": True},
            {"name": "StartDate", "dataType": "date", "classification": "dimension", "required": True},
            {"name": "EndDate", "dataType": "date", "classification": "dimension", "required": True},
        ],
        "description": "Fields commonly used in mass edit/add operations",
    },
    "Mass Delete": {
        "commonFields": [
            {"name": "VersionName", "dataType": "string", "classification": "dimension", "required": True},
            {"name": "SKU", "dataType": "array", "classification": "dimension", "required": True},
            {"name": "Store", "dataType": "array", "classification": "dimension", "required": True},
            {"name": "ConfirmDelete", "dataType": "boolean", "classification": "parameter", "required": True},
        ],
        "description": "Fields commonly used in mass delete operations",
    },
    "Checkbox Edit/Add": {
        "commonFields": [
            {"name": "VersionName", "dataType": "string", "classification": "dimension", "required": True},
            {"name": "SelectedItems", "dataType": "array", "classification": "dimension", "required": True},
            {"name": "EnableFlag", "dataType": "boolean", "classification": "parameter", "required": True},
        ],
        "description": "Fields commonly used in checkbox-based edit/add operations",
    },
    "Checkbox Delete": {
        "commonFields": [
            {"name": "VersionName", "dataType": "string", "classification": "dimension", "required": True},
            {"name": "SelectedItems", "dataType": "array", "classification": "dimension", "required": True},
            {"name": "ConfirmDelete", "dataType": "boolean", "classification": "parameter", "required": True},
        ],
        "description": "Fields commonly used in checkbox-based delete operations",
    },
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_fields(fields: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Structural validation of a binding's field list.

    Reports missing or duplicate names, unknown data types and classifications,
    and requires at least one dimension and one measure.
    """
    errors = []
    seen_names = set()

    for index, field in enumerate(fields, start=1):
        name = field.get("name")
        if not name:
            errors.append(f"Field {index}: Missing name")
        elif name in seen_names:
            errors.append(f"Field {index}: Duplicate field name '{name}'")
        else:
            seen_names.add(name)

        data_type = field.get("dataType")
        if not data_type:
            errors.append(f"Field {index}: Missing dataType")
        elif data_type not in DATA_TYPES:
            errors.append(f"Field {index}: Invalid dataType '{data_type}'")

        classification = field.get("classification")
        if not classification:
            errors.append(f"Field {index}: Missing classification")
        elif classification not in CLASSIFICATIONS:
            errors.append(f"Field {index}: Invalid classification '{classification}'")

    dimensions = sum(1 for f in fields if f.get("classification") == "dimension")
    measures = sum(1 for f in fields if f.get("classification") == "measure")
    parameters = sum(1 for f in fields if f.get("classification") == "parameter")

    if dimensions == 0:
        errors.append("At least one dimension field is required")
    if measures == 0:
        errors.append("At least one measure field is required for data operations")

    return {
        "isValid": not errors,
        "errors": errors,
        "summary": {
            "totalFields": len(fields),
            "dimensions": dimensions,
            "measures": measures,
            "parameters": parameters,
        },
    }


def _check_field_structure(fields: List[Dict[str, Any]]):
    for field in fields:
        if not field.get("name") or not field.get("dataType") or not field.get("classification"):
            raise InvalidInputError("Each field must have name, dataType, and classification")


class FieldBindingService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create(
        self,
        name: Optional[str],
        action_button_type: Optional[str],
        description: Optional[str],
        fields: Optional[List[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        if not name or not action_button_type or fields is None:
            raise InvalidInputError("Missing required fields: name, actionButtonType, and fields array")
        _check_field_structure(fields)

        now = utc_now_iso()
        binding = {
            "id": str(uuid.uuid4()),
            "name": name,
            "actionButtonType": action_button_type,
            "description": description,
            "fields": fields,
            "createdAt": now,
            "updatedAt": now,
            "isActive": True,
        }
        created = self.store.create(CONTAINER, binding)
        logger.info(f"Created field binding {created['id']} ({action_button_type})")
        return created

    def list(self, action_button_type: Optional[str] = None, is_active: Optional[bool] = None) -> List[Dict[str, Any]]:
        filters = {}
        if action_button_type:
            filters["actionButtonType"] = action_button_type
        if is_active is not None:
            filters["isActive"] = is_active
        return self.store.query(CONTAINER, filters=filters, order_by="updatedAt")

    def _query_by_id(self, binding_id: str, action_button_type: Optional[str]) -> Optional[Dict[str, Any]]:
        matches = self.store.query(CONTAINER, filters={"id": binding_id})
        if not matches:
            return None
        # Prefer the type the caller asked for if ids ever collide across partitions
        for match in matches:
            if match.get("actionButtonType") == action_button_type:
                return match
        return matches[0]

    def _lookup_strategies(
        self, binding_id: str, action_button_type: Optional[str]
    ) -> Iterator[Tuple[str, Callable[[], Optional[Dict[str, Any]]]]]:
        yield "direct lookup", lambda: self.store.read(CONTAINER, binding_id, action_button_type)
        yield "query", lambda: self._query_by_id(binding_id, action_button_type)

    def resolve(self, binding_id: str, action_button_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Find a binding by id. Tries the keyed point read first, then a query on
        id alone so a caller with a wrong or missing type still gets a match.
        Errors from all but the last strategy only trigger the next one.
        """
        strategies = list(self._lookup_strategies(binding_id, action_button_type))
        for position, (label, strategy) in enumerate(strategies, start=1):
            try:
                binding = strategy()
            except DocumentNotFoundError:
                binding = None
            except StorageError as e:
                if position == len(strategies):
                    raise
                logger.warning(f"Field binding {label} failed for {binding_id}: {e}")
                continue
            if binding:
                logger.info(f"Found field binding {binding_id} via {label}")
                return binding
            logger.debug(f"Field binding {label} found nothing for {binding_id}")
        return None

    def get(self, binding_id: str, action_button_type: Optional[str] = None) -> Dict[str, Any]:
        binding = self.resolve(binding_id, action_button_type)
        if binding is None:
            raise BindingNotFoundError(binding_id)
        return binding

    def update(self, binding_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.get(binding_id, updates.get("actionButtonType"))
        if "fields" in updates:
            if updates["fields"] is None:
                raise InvalidInputError("fields must be an array")
            _check_field_structure(updates["fields"])

        merged = strip_system_properties(existing)
        for key, value in updates.items():
            if key in ("id", "createdAt"):
                continue
            merged[key] = value
        merged["updatedAt"] = utc_now_iso()

        updated = self.store.replace(CONTAINER, binding_id, existing["actionButtonType"], merged)
        logger.info(f"Updated field binding {binding_id}")
        return updated

    def disable(self, binding_id: str, action_button_type: Optional[str] = None) -> Dict[str, Any]:
        existing = self.get(binding_id, action_button_type)
        return self.update(binding_id, {"actionButtonType": existing["actionButtonType"], "isActive": False})

    def delete(self, binding_id: str, action_button_type: Optional[str]) -> None:
        if not action_button_type:
            raise InvalidInputError("actionButtonType query parameter is required")
        try:
            self.store.delete(CONTAINER, binding_id, action_button_type)
        except DocumentNotFoundError:
            raise BindingNotFoundError(binding_id)
        logger.info(f"Deleted field binding {binding_id}")

    def clone(self, binding_id: str, new_name: Optional[str], action_button_type: Optional[str] = None) -> Dict[str, Any]:
        if not new_name:
            raise InvalidInputError("newName is required for cloning")
        original = self.get(binding_id, action_button_type)

        now = utc_now_iso()
        cloned = strip_system_properties(original)
        cloned.update({
            "id": str(uuid.uuid4()),
            "name": new_name,
            "description": f"Cloned from {original.get('name')}",
            "createdAt": now,
            "updatedAt": now,
        })
        created = self.store.create(CONTAINER, cloned)
        logger.info(f"Cloned field binding {binding_id} into {created['id']}")
        return created
