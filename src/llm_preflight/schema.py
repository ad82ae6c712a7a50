"""
schema.py — Host configuration schema and input validation.

The host passes plain mutable dicts. We describe the one provider entry we
care about with pydantic and report problems as explicit error / warning
lists instead of probing attributes ad hoc. Missing cosmetic fields are
filled in place and reported as warnings; wrong types are errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from llm_preflight.config import settings

logger = logging.getLogger(__name__)


class ProviderOptions(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    base_url: Optional[str] = Field(None, alias="baseURL")


class ProviderConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    npm: str = settings.provider_npm
    name: str = settings.provider_name
    options: ProviderOptions = Field(default_factory=ProviderOptions)
    models: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


@dataclass
class ConfigValidation:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def warn(self, message: str) -> None:
        self.warnings.append(message)


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme in ("http", "https") and parsed.netloc)


def validate_config(config: Any, provider_id: Optional[str] = None) -> ConfigValidation:
    """Validate (and default in place) the plugin's provider entry."""
    provider_id = provider_id or settings.provider_id
    result = ConfigValidation()

    if not isinstance(config, dict):
        result.error("Config must be an object")
        return result

    providers = config.get("provider")
    if providers is None:
        return result
    if not isinstance(providers, dict):
        result.error("provider must be an object")
        return result

    entry = providers.get(provider_id)
    if entry is None:
        return result
    if not isinstance(entry, dict):
        result.error(f"{provider_id} provider must be an object")
        return result

    if not entry.get("npm"):
        entry["npm"] = settings.provider_npm
        result.warn(f"{provider_id} provider missing npm field, auto-set to {settings.provider_npm}")
    if not entry.get("name"):
        entry["name"] = settings.provider_name
        result.warn(f'{provider_id} provider missing name field, auto-set to "{settings.provider_name}"')

    options = entry.get("options")
    if options is None:
        entry["options"] = options = {}
        result.warn(f"{provider_id} provider missing options field, auto-created empty options")
    if not isinstance(options, dict):
        result.error(f"{provider_id} provider options must be an object")
    else:
        base_url = options.get("baseURL")
        if base_url is None:
            result.warn(f"{provider_id} provider missing baseURL, will use default")
        elif not isinstance(base_url, str):
            result.error(f"{provider_id} provider baseURL must be a string")
        elif not _is_valid_url(base_url):
            result.warn(f"{provider_id} provider baseURL may be invalid")

    models = entry.get("models")
    if models is not None and not isinstance(models, dict):
        result.error(f"{provider_id} provider models must be an object")

    if result.is_valid:
        try:
            ProviderConfig.model_validate(entry)
        except ValidationError as exc:
            for err in exc.errors():
                loc = ".".join(str(p) for p in err["loc"])
                result.error(f"{provider_id}.{loc}: {err['msg']}")
    return result


def validate_hook_input(hook_name: str, data: Any) -> ConfigValidation:
    result = ConfigValidation()
    if not isinstance(data, Mapping):
        result.error(f"{hook_name}: Input must be an object")
        return result

    if hook_name == "chat.params":
        if not isinstance(data.get("sessionID"), str) or not data.get("sessionID"):
            result.error("chat.params: sessionID is required and must be a string")
        model = data.get("model")
        if not isinstance(model, Mapping):
            result.error("chat.params: model is required and must be an object")
        elif not isinstance(model.get("id"), str) or not model.get("id"):
            result.error("chat.params: model.id is required and must be a string")
        provider = data.get("provider")
        if not isinstance(provider, Mapping):
            result.error("chat.params: provider is required and must be an object")
        elif not isinstance(provider.get("info"), Mapping) or not provider["info"].get("id"):
            result.warn("chat.params: provider.info.id is missing")
    elif hook_name == "event":
        event = data.get("event")
        if not isinstance(event, Mapping):
            result.error("event: event is required and must be an object")
        elif not event.get("type"):
            result.warn("event: event.type is missing")
    return result


def validate_models_response(data: Any) -> ConfigValidation:
    result = ConfigValidation()
    if not isinstance(data, Mapping):
        result.error("Model list response must be an object")
        return result

    items = data.get("data")
    if not isinstance(items, list):
        result.warn("Model list response missing data array or data is not an array")
        return result
    for index, item in enumerate(items):
        if not isinstance(item, Mapping) or not isinstance(item.get("id"), str) or not item.get("id"):
            result.error(f"Model at index {index} missing required id field")
            continue
        if not isinstance(item.get("object"), str):
            result.warn(f"Model at index {index} missing object field")
    return result
