"""
Unit Tests for worker invocation selection
"""
import pytest

from sandboxforge.core.config import Settings
from sandboxforge.core.exceptions import FollowUpWithoutSandboxError, MissingCredentialError
from sandboxforge.modules.generation.invocation import InvocationBuilder, InvocationMode
from sandboxforge.modules.generation.session import AgentBackend, GenerationSession


class TestInvocationSelection:
    """Tests for mode script and argv selection"""

    @pytest.fixture
    def builder(self, test_settings):
        return InvocationBuilder(test_settings)

    def test_new_generation(self, builder, prompt):
        """Test a new session runs the generation script with the prompt only"""
        invocation = builder.for_session(GenerationSession(prompt=prompt))
        assert invocation.mode == InvocationMode.GENERATE
        assert invocation.script.name == "generate-in-daytona.ts"
        assert invocation.argv == ("npx", "tsx", str(invocation.script), prompt)
        assert invocation.sandbox_id is None

    def test_primary_follow_up_uses_continue_script(self, builder, prompt):
        """Test primary follow-ups run the continue script with the sandbox id"""
        session = GenerationSession(prompt=prompt, sandbox_id="abc-123", is_follow_up=True)
        invocation = builder.for_session(session)
        assert invocation.mode == InvocationMode.FOLLOW_UP
        assert invocation.script.name == "continue-in-daytona.ts"
        assert invocation.argv[-2:] == ("abc-123", prompt)

    def test_known_sandbox_without_follow_up(self, builder, prompt):
        """Test a known sandbox is passed to the generation script"""
        session = GenerationSession(prompt=prompt, sandbox_id="abc-123")
        invocation = builder.for_session(session)
        assert invocation.mode == InvocationMode.CONTINUE
        assert invocation.script.name == "generate-in-daytona.ts"
        assert invocation.argv[-2:] == ("abc-123", prompt)

    @pytest.mark.parametrize("backend,script", [
        (AgentBackend.SECONDARY, "generate-with-chatgpt.ts"),
        (AgentBackend.THIRD_PARTY, "generate-with-lovable.ts"),
    ])
    def test_other_backends_reuse_generation_script(self, builder, prompt, backend, script):
        """Test non-primary follow-ups keep their generation script"""
        session = GenerationSession(prompt=prompt, backend=backend, sandbox_id="s-1", is_follow_up=True)
        assert builder.for_session(session).script.name == script

    def test_follow_up_without_sandbox(self, builder, prompt):
        """Test follow-up without a sandbox fails before anything runs"""
        with pytest.raises(FollowUpWithoutSandboxError) as exc_info:
            builder.for_session(GenerationSession(prompt=prompt, is_follow_up=True))
        assert exc_info.value.message == "Sandbox ID is required for follow-up requests"

    def test_credentials_in_env(self, builder, prompt):
        """Test sandbox and backend credentials are passed to the worker"""
        invocation = builder.for_session(GenerationSession(prompt=prompt, backend=AgentBackend.SECONDARY))
        assert invocation.env["DAYTONA_API_KEY"] == "test-daytona-key"
        assert invocation.env["OPENAI_API_KEY"] == "test-openai-key"
        assert invocation.env["NO_UPDATE_NOTIFIER"] == "1"
        assert invocation.env["PREVIEW_PORT"] == "3000"

    def test_redacted_never_contains_secrets(self, builder, prompt):
        """Test the loggable form lists key names only"""
        invocation = builder.for_session(GenerationSession(prompt=prompt))
        redacted = invocation.redacted()
        assert "test-anthropic-key" not in str(redacted)
        assert prompt not in str(redacted)
        assert "ANTHROPIC_API_KEY" in redacted["env_keys"]
        assert "test-anthropic-key" not in repr(invocation)

    def test_removal(self, builder):
        """Test sandbox removal runs the remove script"""
        invocation = builder.for_removal("abc-123")
        assert invocation.mode == InvocationMode.REMOVE
        assert invocation.script.name == "remove-sandbox.ts"
        assert invocation.argv[-1] == "abc-123"

    def test_custom_launcher(self, prompt):
        """Test WORKER_COMMAND is split like a shell would"""
        config = Settings(
            DAYTONA_API_KEY="d", ANTHROPIC_API_KEY="a",
            WORKER_COMMAND="node --import tsx", LOG_FILE="",
        )
        invocation = InvocationBuilder(config).for_session(GenerationSession(prompt=prompt))
        assert invocation.argv[:3] == ("node", "--import", "tsx")


class TestCredentialChecks:
    """Tests for missing credential handling"""

    def test_missing_backend_credential(self, prompt):
        """Test the selected backend's key is required"""
        config = Settings(DAYTONA_API_KEY="d", ANTHROPIC_API_KEY="", LOG_FILE="")
        with pytest.raises(MissingCredentialError) as exc_info:
            InvocationBuilder(config).for_session(GenerationSession(prompt=prompt))
        assert exc_info.value.details["missing"] == ["ANTHROPIC_API_KEY"]
        assert exc_info.value.status_code == 500

    def test_missing_sandbox_credential(self, prompt):
        """Test the sandbox platform key is always required"""
        config = Settings(DAYTONA_API_KEY="", OPENAI_API_KEY="o", LOG_FILE="")
        session = GenerationSession(prompt=prompt, backend=AgentBackend.SECONDARY)
        with pytest.raises(MissingCredentialError) as exc_info:
            InvocationBuilder(config).for_session(session)
        assert exc_info.value.details["missing"] == ["DAYTONA_API_KEY"]

    def test_third_party_requires_its_key(self, prompt):
        """Test the third-party backend needs LOVABLE_API_KEY"""
        config = Settings(DAYTONA_API_KEY="d", LOVABLE_API_KEY="", LOG_FILE="")
        session = GenerationSession(prompt=prompt, backend=AgentBackend.THIRD_PARTY)
        with pytest.raises(MissingCredentialError):
            InvocationBuilder(config).for_session(session)

    def test_removal_needs_only_sandbox_key(self):
        """Test removal does not need an AI backend key"""
        config = Settings(DAYTONA_API_KEY="d", ANTHROPIC_API_KEY="", OPENAI_API_KEY="", LOG_FILE="")
        assert InvocationBuilder(config).for_removal("x").argv[-1] == "x"
