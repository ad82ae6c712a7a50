import asyncio
import logging

import httpx
import pytest

from conftest import models_payload
from llm_preflight.cache import ModelStatusCache
from llm_preflight.client import ModelSourceClient
from llm_preflight.hooks import ConfigHook, merge_discovered_models
from llm_preflight.models import ModelInfo
from llm_preflight.notifier import Notifier
from llm_preflight.service import PreflightService
from llm_preflight.validation import ModelValidator

BASE = "http://127.0.0.1:1234"
LOADED = ["llama-3.2-3b-instruct", "text-embedding-nomic-embed-text-v1.5", "qwen/qwen3-30b-a3b"]


@pytest.fixture
def toasts():
    return []


def make_service(handler, clock, sleep, toasts, ports=(1234,)):
    cache = ModelStatusCache(clock=clock)
    client = ModelSourceClient(candidate_ports=ports, transport=httpx.MockTransport(handler))
    notifier = Notifier(toasts.append)
    validator = ModelValidator(cache, client, notifier, sleep=sleep)
    return PreflightService(cache=cache, client=client, notifier=notifier, validator=validator)


def serving(*ids):
    def handler(request):
        return httpx.Response(200, json=models_payload(*ids))

    return handler


def refusing(request):
    raise httpx.ConnectError("All connection attempts failed", request=request)


def lmstudio_config(**provider):
    entry = {"npm": "@ai-sdk/openai-compatible", "name": "LM Studio (local)", "options": {"baseURL": BASE + "/v1"}}
    entry.update(provider)
    return {"provider": {"lmstudio": entry}}


class TestMergeDiscoveredModels:
    def test_adds_entries_with_metadata(self):
        provider = {}
        counts = merge_discovered_models(provider, [ModelInfo(id=i) for i in LOADED])

        assert counts == {"chat": 2, "embedding": 1, "added": 3}
        models = provider["models"]
        assert set(models) == {
            "llama-3_2-3b-instruct",
            "text-embedding-nomic-embed-text-v1_5",
            "qwen_qwen3-30b-a3b",
        }
        qwen = models["qwen_qwen3-30b-a3b"]
        assert qwen["id"] == "qwen/qwen3-30b-a3b"
        assert qwen["name"] == "Qwen3 30B A3B"
        assert qwen["organizationOwner"] == "qwen"
        assert models["text-embedding-nomic-embed-text-v1_5"]["modalities"]["output"] == ["embedding"]

    def test_configured_models_are_kept(self):
        custom = {"id": "custom", "name": "Mine"}
        provider = {"models": {"custom-model": custom}}

        counts = merge_discovered_models(provider, [ModelInfo(id="custom-model"), ModelInfo(id="phi-3")])
        assert counts["added"] == 1
        assert provider["models"]["custom-model"] is custom
        assert "phi-3" in provider["models"]


class TestConfigHook:
    @pytest.mark.asyncio
    async def test_configured_provider_gets_models_and_warm_cache(self, clock, sleep, toasts):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=models_payload(*LOADED))

        service = make_service(handler, clock, sleep, toasts)
        config = lmstudio_config()

        await service.hooks()["config"](config)

        assert len(config["provider"]["lmstudio"]["models"]) == 3
        assert service.cache.is_valid(BASE)
        seen = len(requests)
        assert await service.get_loaded_models(BASE) == LOADED
        assert len(requests) == seen

    @pytest.mark.asyncio
    async def test_auto_detects_provider(self, clock, sleep, toasts):
        def handler(request):
            if request.url.port == 8080:
                return httpx.Response(200, json=models_payload("phi-3"))
            raise httpx.ConnectError("refused", request=request)

        service = make_service(handler, clock, sleep, toasts, ports=(1234, 8080))
        config = {}

        await service.config_hook(config)

        provider = config["provider"]["lmstudio"]
        assert provider["options"]["baseURL"] == "http://127.0.0.1:8080/v1"
        assert provider["npm"] == "@ai-sdk/openai-compatible"
        assert "phi-3" in provider["models"]

    @pytest.mark.asyncio
    async def test_nothing_detected_leaves_config_alone(self, clock, sleep, toasts):
        service = make_service(refusing, clock, sleep, toasts)
        config = {}

        await service.config_hook(config)
        assert config == {}

    @pytest.mark.asyncio
    async def test_offline_server_is_logged(self, clock, sleep, toasts, caplog):
        service = make_service(refusing, clock, sleep, toasts)
        config = lmstudio_config()

        with caplog.at_level(logging.WARNING, logger="llm_preflight.hooks"):
            await service.config_hook(config)

        assert "appears to be offline" in caplog.text
        assert "models" not in config["provider"]["lmstudio"]

    @pytest.mark.asyncio
    async def test_only_embedding_models_warns(self, clock, sleep, toasts, caplog):
        service = make_service(serving("nomic-embed-text"), clock, sleep, toasts)

        with caplog.at_level(logging.WARNING, logger="llm_preflight.hooks"):
            await service.config_hook(lmstudio_config())
        assert "Only embedding models found" in caplog.text

    @pytest.mark.asyncio
    async def test_invalid_config_notifies(self, clock, sleep, toasts):
        service = make_service(serving(), clock, sleep, toasts)

        await service.config_hook(lmstudio_config(options={"baseURL": 42}))

        assert toasts[-1]["variant"] == "error"
        assert toasts[-1]["message"] == "Plugin configuration is invalid"

    @pytest.mark.asyncio
    async def test_slow_discovery_continues_in_background(self, clock, sleep, toasts):
        release = asyncio.Event()

        async def handler(request):
            await release.wait()
            return httpx.Response(200, json=models_payload("phi-3"))

        service = make_service(handler, clock, sleep, toasts)
        hook = ConfigHook(service, timeout=0.01)
        config = lmstudio_config()

        await hook(config)
        assert "models" not in config["provider"]["lmstudio"]

        release.set()
        await hook.drain()
        assert "phi-3" in config["provider"]["lmstudio"]["models"]


class TestChatParamsHook:
    @staticmethod
    def params(model_id, provider_id="lmstudio"):
        return {
            "sessionID": "s1",
            "model": {"id": model_id},
            "provider": {"info": {"id": provider_id}, "options": {"baseURL": BASE + "/v1"}},
        }

    @pytest.mark.asyncio
    async def test_other_provider_is_skipped(self, clock, sleep, toasts):
        service = make_service(serving("gpt-4"), clock, sleep, toasts)
        output = {}

        assert await service.chat_params_hook(self.params("gpt-4", "openai"), output) is None
        assert output == {}

    @pytest.mark.asyncio
    async def test_loaded_model_passes(self, clock, sleep, toasts):
        service = make_service(serving(*LOADED), clock, sleep, toasts)
        output = {}

        outcome = await service.hooks()["chat.params"](self.params("llama-3.2-3b-instruct"), output)

        assert outcome.status == "success"
        report = output["options"]["lmstudioValidation"]
        assert report["status"] == "success"
        assert report["loadedModels"] == LOADED

    @pytest.mark.asyncio
    async def test_missing_model_reports_failure(self, clock, sleep, toasts):
        service = make_service(serving("llama-3.2-3b-instruct"), clock, sleep, toasts)
        output = {}

        outcome = await service.chat_params_hook(self.params("gpt-4"), output)

        assert outcome.status == "error"
        report = output["options"]["lmstudioValidation"]
        assert report["errorKind"] == "unknown"
        assert report["availableModels"] == ["llama-3.2-3b-instruct"]
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_malformed_input(self, clock, sleep, toasts):
        service = make_service(serving(), clock, sleep, toasts)
        output = {}

        assert await service.chat_params_hook("nonsense", output) is None
        assert await service.chat_params_hook({"model": {}}, output) is None
        assert output == {}

    @pytest.mark.asyncio
    async def test_non_mapping_provider_parts(self, clock, sleep, toasts):
        service = make_service(serving("a"), clock, sleep, toasts)
        output = {}

        data = {"sessionID": "s", "model": {"id": "a"}, "provider": {"info": "lmstudio"}}
        assert await service.chat_params_hook(data, output) is None
        assert output == {}

        data = {"sessionID": "s", "model": {"id": "a"}, "provider": {"info": {"id": "lmstudio"}, "options": "x"}}
        outcome = await service.chat_params_hook(data, output)
        assert outcome.status == "success"
        assert output["options"]["lmstudioValidation"]["status"] == "success"
