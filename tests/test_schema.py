from llm_preflight.schema import validate_config, validate_hook_input, validate_models_response


class TestValidateConfig:
    def test_non_dict_config(self):
        result = validate_config(["not", "a", "dict"])
        assert not result.is_valid
        assert result.errors == ["Config must be an object"]

    def test_config_without_provider_is_valid(self):
        result = validate_config({})
        assert result.is_valid
        assert result.warnings == []

    def test_missing_fields_are_defaulted_with_warnings(self):
        config = {"provider": {"lmstudio": {}}}
        result = validate_config(config)

        assert result.is_valid
        entry = config["provider"]["lmstudio"]
        assert entry["npm"] == "@ai-sdk/openai-compatible"
        assert entry["name"] == "LM Studio (local)"
        assert entry["options"] == {}
        assert len(result.warnings) == 4

    def test_non_string_base_url_is_error(self):
        config = {"provider": {"lmstudio": {"npm": "x", "name": "y", "options": {"baseURL": 1234}}}}
        result = validate_config(config)
        assert not result.is_valid
        assert result.errors == ["lmstudio provider baseURL must be a string"]

    def test_odd_base_url_is_warning(self):
        config = {"provider": {"lmstudio": {"npm": "x", "name": "y", "options": {"baseURL": "localhost"}}}}
        result = validate_config(config)
        assert result.is_valid
        assert result.warnings == ["lmstudio provider baseURL may be invalid"]

    def test_models_must_be_mapping(self):
        config = {
            "provider": {
                "lmstudio": {"npm": "x", "name": "y", "options": {"baseURL": "http://h:1/v1"}, "models": []}
            }
        }
        assert not validate_config(config).is_valid

    def test_other_providers_are_ignored(self):
        assert validate_config({"provider": {"openai": "whatever"}}).is_valid


class TestHookInput:
    def test_chat_params_complete(self):
        data = {
            "sessionID": "s1",
            "model": {"id": "m"},
            "provider": {"info": {"id": "lmstudio"}},
        }
        result = validate_hook_input("chat.params", data)
        assert result.is_valid and not result.warnings

    def test_chat_params_missing_parts(self):
        result = validate_hook_input("chat.params", {"model": {}})
        assert not result.is_valid
        assert len(result.errors) == 3

    def test_event_without_type_warns(self):
        result = validate_hook_input("event", {"event": {}})
        assert result.is_valid
        assert result.warnings == ["event: event.type is missing"]

    def test_non_mapping(self):
        assert not validate_hook_input("event", None).is_valid

    def test_non_mapping_provider_info_warns(self):
        data = {"sessionID": "s", "model": {"id": "m"}, "provider": {"info": "lmstudio"}}
        result = validate_hook_input("chat.params", data)
        assert result.is_valid
        assert result.warnings == ["chat.params: provider.info.id is missing"]


class TestModelsResponse:
    def test_well_formed(self):
        result = validate_models_response({"data": [{"id": "a", "object": "model"}]})
        assert result.is_valid and not result.warnings

    def test_missing_data_warns(self):
        result = validate_models_response({"object": "list"})
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_entry_without_id(self):
        result = validate_models_response({"data": [{"id": "a"}, {"object": "model"}]})
        assert result.errors == ["Model at index 1 missing required id field"]
        assert result.warnings == ["Model at index 0 missing object field"]
