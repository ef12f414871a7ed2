import json
import re
from typing import Any, Dict, List, Optional

DEFAULT_EXAMPLE_CHAR_LIMIT = 6000
TRUNCATION_MARKER = "\n// ... [truncated]"

SYSTEM_PROMPT = """You are an expert o9 supply chain platform JavaScript developer. You specialize in generating Action Button JavaScript modules following EXACT syntax patterns.

CRITICAL REQUIREMENTS:
1. Follow the EXACT syntax structure from provided examples
2. Only change the module name and field binding references
3. Preserve ALL validation patterns, query structures, and error handling
4. Use field bindings data to construct proper scope statements
5. Maintain identical code structure to examples

FIELD BINDING CLASSIFICATIONS:
- Dimensions: Used for filtering and scope definition (SKU, Store, VersionName, dates)
- Measures: Target fields for data updates (values to be changed)
- Parameters: Control flags and options (boolean flags, settings)

STANDARD STRUCTURE:
```javascript
define('o9.ModuleName',['o9/data/query', 'o9/data/cellset'],function(){
    var ActionButtonCall = function(o9Params) {
        var parsedParams = JSON.parse(o9Params);

        // Logging for all field bindings
        // Validation logic
        // Update queries with proper scope

        return RuleOutputToUI;
    };

    var ConcatenateMultiselect = function(value){
        if (Array.isArray(value)) {
            return value.join('","');
        }
        return value;
    };

    return {
        ActionButtonCall:ActionButtonCall
    };
});
```

You must generate code that matches the examples exactly, changing only module names and field references."""


def strip_non_alphanumeric(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "", value or "")


def module_name_for(project_name: str) -> str:
    return f"o9.{strip_non_alphanumeric(project_name)}"


def truncate_example(content: str, limit: int = DEFAULT_EXAMPLE_CHAR_LIMIT) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + TRUNCATION_MARKER


def _format_example(example: Dict[str, Any], limit: int) -> str:
    heading = f"--- {example.get('fileName', 'example')} ---"
    if example.get("description"):
        heading += f"\n// {example['description']}"
    return f"{heading}\n{truncate_example(example.get('content', ''), limit)}"


def build_user_prompt(
    project_name: str,
    action_button_type: str,
    business_logic: str,
    field_binding: Dict[str, Any],
    examples: List[Dict[str, Any]],
    additional_requirements: Optional[str] = None,
    example_char_limit: int = DEFAULT_EXAMPLE_CHAR_LIMIT,
) -> str:
    sections = [
        "Generate an o9 Action Button JavaScript module with these specifications:",
        f"PROJECT NAME: {project_name}\n"
        f"ACTION BUTTON TYPE: {action_button_type}\n"
        f"BUSINESS LOGIC: {business_logic}",
        f"FIELD BINDINGS:\n{json.dumps(field_binding.get('fields', []), indent=2)}",
    ]
    if examples:
        rendered = "\n\n".join(_format_example(ex, example_char_limit) for ex in examples)
        sections.append(f"REFERENCE EXAMPLES:\n{rendered}")
    if additional_requirements:
        sections.append(f"ADDITIONAL REQUIREMENTS:\n{additional_requirements}")
    sections.append(
        "Generate the complete JavaScript module following the exact patterns from the examples. "
        f'The module name should be "{module_name_for(project_name)}"'
    )
    return "\n\n".join(sections)


def build_messages(
    project_name: str,
    action_button_type: str,
    business_logic: str,
    field_binding: Dict[str, Any],
    examples: List[Dict[str, Any]],
    additional_requirements: Optional[str] = None,
    example_char_limit: int = DEFAULT_EXAMPLE_CHAR_LIMIT,
) -> List[Dict[str, str]]:
    """Two-message chat prompt: fixed system instructions plus the request."""
    user_prompt = build_user_prompt(
        project_name,
        action_button_type,
        business_logic,
        field_binding,
        examples,
        additional_requirements,
        example_char_limit,
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
