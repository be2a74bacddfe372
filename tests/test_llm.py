"""Unit tests for LLM utilities."""

import os
import pytest

from gradedesk.libs.llm import create_agent


class TestCreateAgent:
    """Test the create_agent function."""

    def test_create_agent_with_defaults(self):
        """Test creating agent with default configuration."""

        config_map = {
            "openai": {
                "api_key": "test-key",
                "organization": "test-org",
                "model": "gpt-4",
                "pydantic_ai_settings": {}
            }
        }

        agent = create_agent(config_map)

        assert os.environ.get('OPENAI_API_KEY') == 'test-key'
        assert os.environ.get('OPENAI_ORG_ID') == 'test-org'
        assert agent is not None

    def test_create_agent_without_organization(self):
        """Test that the organization is optional."""
        agent = create_agent({"openai": {"api_key": "solo-key"}}, model="gpt-4o-mini")

        assert os.environ.get('OPENAI_API_KEY') == 'solo-key'
        assert agent is not None

    def test_create_agent_with_system_prompt(self):
        """Test creating agent with custom system prompt."""

        test_configs = {
            "openai": {
                "api_key": "test-key",
                "organization": "test-org"
            }
        }

        agent = create_agent(
            configs=test_configs,
            model="gpt-4",
            system_prompt="You are a helpful grading assistant."
        )

        assert agent is not None

    def test_create_agent_missing_api_key(self):
        """Test that missing API key raises KeyError."""
        with pytest.raises(KeyError, match="Key.*not found.*"):
            create_agent({})

    def test_create_agent_with_settings_dict(self):
        """Test creating agent with custom settings dictionary."""

        test_configs = {
            "openai": {
                "api_key": "test-key",
                "organization": "test-org",
                "pydantic_ai_settings": {"temperature": 0.2}
            }
        }

        agent = create_agent(
            configs=test_configs,
            model="gpt-4",
            settings_dict={"max_tokens": 1000}
        )

        assert agent is not None
