import asyncio
import re
import uuid
from typing import Any, Dict, List, Optional

from app.config.openai_llm import AzureOpenAIClient
from app.services.document_store import DocumentStore, strip_system_properties
from app.services.field_binding_service import FieldBindingService, utc_now_iso
from app.services.knowledge_service import KnowledgeService
from app.services.prompt_service import DEFAULT_EXAMPLE_CHAR_LIMIT, build_messages, strip_non_alphanumeric
from app.utils import logger
from app.utils.errors import BindingNotFoundError, InvalidInputError

CONTAINER = "generatedCode"
INITIAL_VERSION = "1.0.0"
REQUIRED_GENERATE_FIELDS = ("projectName", "actionButtonType", "businessLogic", "fieldBindingId")


def derive_project_id(project_name: str) -> str:
    """'My Project! 2' -> 'myproject2'"""
    return re.sub(r"[^a-z0-9]", "", (project_name or "").lower())


def increment_version(version: Optional[str]) -> str:
    """Bump the integer patch component: '1.2.9' -> '1.2.10'."""
    parts = (version or INITIAL_VERSION).split(".")
    while len(parts) < 3:
        parts.append("0")
    try:
        patch = int(parts[2])
    except ValueError:
        patch = 0
    return f"{parts[0]}.{parts[1]}.{patch + 1}"


def download_filename(project_name: str) -> str:
    return f"{strip_non_alphanumeric(project_name) or 'generated'}.js"


class GenerationService:
    """
    Generate Action Button Code pipeline:
    validate -> resolve binding -> fetch examples -> assemble prompt -> complete -> persist.

    Store and blob calls are blocking and run in worker threads; the completion
    call is awaited directly. Nothing is written unless generation succeeded.
    """

    def __init__(
        self,
        store: DocumentStore,
        bindings: FieldBindingService,
        knowledge: KnowledgeService,
        llm: AzureOpenAIClient,
        max_completion_tokens: int = 4000,
        example_char_limit: int = DEFAULT_EXAMPLE_CHAR_LIMIT,
        max_examples: int = 3,
    ):
        self.store = store
        self.bindings = bindings
        self.knowledge = knowledge
        self.llm = llm
        self.max_completion_tokens = max_completion_tokens
        self.example_char_limit = example_char_limit
        self.max_examples = max_examples

    async def _generate_code(
        self,
        project_name: str,
        action_button_type: str,
        business_logic: str,
        field_binding: Dict[str, Any],
        examples: List[Dict[str, Any]],
        additional_requirements: Optional[str] = None,
    ) -> str:
        messages = build_messages(
            project_name,
            action_button_type,
            business_logic,
            field_binding,
            examples,
            additional_requirements,
            self.example_char_limit,
        )
        logger.info(f"Calling completion service for project {project_name} with {len(examples)} examples")
        with logger.timed(f"Completion for {project_name}"):
            code = await self.llm.generate_completion(messages, max_tokens=self.max_completion_tokens)
        logger.info(f"Received generated code for project {project_name} ({len(code)} chars)")
        return code

    async def generate(self, request: Dict[str, Any]) -> Dict[str, Any]:
        missing = [name for name in REQUIRED_GENERATE_FIELDS if not request.get(name)]
        if missing:
            raise InvalidInputError(
                "Missing required fields: projectName, actionButtonType, businessLogic, fieldBindingId"
            )
        project_name = request["projectName"]
        action_button_type = request["actionButtonType"]
        business_logic = request["businessLogic"]
        field_binding_id = request["fieldBindingId"]
        additional_requirements = request.get("additionalRequirements")
        if not derive_project_id(project_name):
            raise InvalidInputError("projectName must contain at least one letter or digit")

        field_binding = await asyncio.to_thread(self.bindings.resolve, field_binding_id, action_button_type)
        if field_binding is None:
            logger.warning(f"Field binding {field_binding_id} not found")
            raise BindingNotFoundError(field_binding_id)

        examples = await asyncio.to_thread(self.knowledge.fetch_examples, action_button_type, self.max_examples)

        generated_code = await self._generate_code(
            project_name,
            action_button_type,
            business_logic,
            field_binding,
            examples,
            additional_requirements,
        )

        record = {
            "id": str(uuid.uuid4()),
            "projectId": derive_project_id(project_name),
            "projectName": project_name,
            "actionButtonType": action_button_type,
            "businessLogic": business_logic,
            "fieldBindingId": field_binding_id,
            "fieldBinding": strip_system_properties(field_binding),
            "generatedCode": generated_code,
            "examples": [{"fileName": ex["fileName"], "description": ex.get("description")} for ex in examples],
            "generatedAt": utc_now_iso(),
            "version": INITIAL_VERSION,
            "status": "generated",
        }
        if additional_requirements:
            record["additionalRequirements"] = additional_requirements

        saved = await asyncio.to_thread(self.store.create, CONTAINER, record)
        logger.info(f"Saved generated code {saved['id']} for project {saved['projectId']}")
        return {
            "message": "JavaScript code generated successfully",
            "codeId": saved["id"],
            "projectName": project_name,
            "projectId": saved["projectId"],
            "generatedCode": generated_code,
            "usedExamples": len(examples),
        }

    def get(self, code_id: str, project_id: Optional[str]) -> Dict[str, Any]:
        if not project_id:
            raise InvalidInputError("projectId query parameter is required")
        return self.store.read(CONTAINER, code_id, project_id)

    def list_for_project(self, project_id: str) -> List[Dict[str, Any]]:
        return self.store.query(CONTAINER, filters={"projectId": project_id}, order_by="generatedAt")

    def history(self, limit: int = 50) -> List[Dict[str, Any]]:
        records = self.store.query(CONTAINER, order_by="generatedAt", limit=limit)
        keys = ("id", "projectName", "projectId", "actionButtonType", "generatedAt", "version", "status")
        return [{key: record.get(key) for key in keys} for record in records]

    async def regenerate(self, code_id: str, project_id: Optional[str], modifications: Optional[str]) -> Dict[str, Any]:
        """
        Re-run generation for an existing record with extra instructions.

        Uses the stored field-binding snapshot and no examples. The replace is
        conditional on the etag read here, so a concurrent regenerate of the
        same record fails with PreconditionFailedError instead of being lost.
        """
        if not project_id:
            raise InvalidInputError("projectId is required")
        if not modifications:
            raise InvalidInputError("modifications is required")

        existing = await asyncio.to_thread(self.store.read, CONTAINER, code_id, project_id)
        modified_business_logic = f"{existing['businessLogic']}\n\nADDITIONAL MODIFICATIONS:\n{modifications}"

        regenerated_code = await self._generate_code(
            existing["projectName"],
            existing["actionButtonType"],
            modified_business_logic,
            existing["fieldBinding"],
            [],
            existing.get("additionalRequirements"),
        )

        updated = dict(existing)
        updated.update({
            "generatedCode": regenerated_code,
            "businessLogic": modified_business_logic,
            "generatedAt": utc_now_iso(),
            "version": increment_version(existing.get("version")),
            "status": "regenerated",
        })
        saved = await asyncio.to_thread(
            self.store.replace, CONTAINER, code_id, project_id, updated, existing["_etag"]
        )
        logger.info(f"Regenerated code {code_id} to version {saved['version']}")
        return {
            "message": "JavaScript code regenerated successfully",
            "codeId": saved["id"],
            "generatedCode": regenerated_code,
            "version": saved["version"],
        }

    def download(self, code_id: str, project_id: Optional[str]) -> Dict[str, str]:
        record = self.get(code_id, project_id)
        return {
            "filename": download_filename(record.get("projectName", "")),
            "content": record.get("generatedCode") or "",
        }

