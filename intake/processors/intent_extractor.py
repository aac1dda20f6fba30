"""
LLM-based intent extraction.

Renders the versioned intent prompt, calls the model under the retry policy
and validates the output against the versioned intent schema.

Prompt text is stored under ``intake/prompts/intent/`` as
``{version}.prompt.txt`` and must contain one ``{question}`` placeholder.

Two entry points:
  - ``extract_intent``: strict, propagates ``RetryExhausted`` and
    ``SchemaValidationError``
  - ``extract_intent_safe``: never raises, reports failures as data
"""

import logging
from pathlib import Path

from intake.clients.llm_client import ModelInvocationConfig, ModelInvoker
from intake.core import config as cfg
from intake.core.exceptions import ValidationError
from intake.core.logging_utils import truncate_text
from intake.models.dto import FieldViolation, SafeExtractionResult, ValidatedIntent
from intake.processors.schema_validator import SchemaValidator
from intake.resilience.retry import RetryExecutor, RetryPolicy

logger = logging.getLogger(__name__)

PROMPT_PLACEHOLDER = "{question}"
SYSTEM_FIELD = "system"


def load_prompt(name: str, version: str, prompts_dir: Path | str | None = None) -> str:
    """Read ``<prompts_dir>/<name>/<version>.prompt.txt``."""
    if prompts_dir is None:
        from intake.core.settings import schema_settings

        prompts_dir = schema_settings.prompts_dir

    path = Path(prompts_dir) / name / f"{version}.prompt.txt"
    template = path.read_text(encoding="utf-8")
    if PROMPT_PLACEHOLDER not in template:
        raise ValueError(f"Prompt {path} has no {PROMPT_PLACEHOLDER} placeholder")
    return template


class IntentExtractionPipeline:
    """Question → model (with retry) → schema-validated intent."""

    def __init__(
        self,
        invoker: ModelInvoker,
        validator: SchemaValidator,
        model_config: ModelInvocationConfig,
        retry_policy: RetryPolicy,
        prompt_template: str,
        executor: RetryExecutor | None = None,
    ) -> None:
        self._invoker = invoker
        self._validator = validator
        self._model_config = model_config
        self._retry_policy = retry_policy
        self._prompt_template = prompt_template
        self._executor = executor or RetryExecutor()

    def build_prompt(self, question: str) -> str:
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question must be a non-empty string", field="question")
        return self._prompt_template.replace(PROMPT_PLACEHOLDER, question.strip(), 1)

    async def _invoke_with_retry(self, prompt: str) -> str:
        return await self._executor.execute(
            lambda: self._invoker.invoke(prompt, self._model_config),
            self._retry_policy,
        )

    async def extract_intent(self, question: str) -> ValidatedIntent:
        """Extract a validated intent or raise.

        Raises:
            ValidationError: Question is blank
            RetryExhausted: Model could not be reached within the policy
            SchemaValidationError: Model output does not match the schema
        """
        prompt = self.build_prompt(question)
        logger.info(f"Extracting intent for question: {truncate_text(question)}")

        raw = await self._invoke_with_retry(prompt)
        intent = self._validator.validate_or_throw(raw)

        logger.info(
            "Intent extracted",
            extra={"schema_version": self._validator.version},
        )
        return intent

    async def extract_intent_safe(self, question: str) -> SafeExtractionResult:
        """Extract an intent, reporting every failure as a structured result."""
        try:
            prompt = self.build_prompt(question)
            raw = await self._invoke_with_retry(prompt)
            result = self._validator.validate(raw)
        except Exception as e:
            logger.warning(
                f"Safe intent extraction failed: {type(e).__name__}: {e}",
                extra={"exception_type": type(e).__name__},
            )
            return SafeExtractionResult.failure(
                [FieldViolation(field=SYSTEM_FIELD, message=str(e))]
            )

        if not result.valid:
            logger.info(
                f"Intent rejected by schema with {len(result.errors)} violations",
                extra={
                    "schema_version": self._validator.version,
                    "violations": len(result.errors),
                },
            )
        return result

    async def converse(self, messages: list[dict[str, str]]) -> list[dict[str, str]]:
        """Send a chat history to the model and append its answer.

        Raises:
            ValidationError: ``messages`` is empty or malformed
            RetryExhausted: Model could not be reached within the policy
        """
        if not messages:
            raise ValidationError("Messages must not be empty", field="messages")
        for index, message in enumerate(messages):
            if not isinstance(message, dict) or not isinstance(message.get("content"), str):
                raise ValidationError(
                    "Each message needs a string 'content'",
                    field=f"messages.{index}",
                )

        history = [dict(m) for m in messages]
        answer = await self._executor.execute(
            lambda: self._invoker.chat(history, self._model_config),
            self._retry_policy,
        )
        return [*history, answer]


def create_default_pipeline() -> IntentExtractionPipeline:
    """Factory wiring the pipeline from centralized settings."""
    from intake.core.settings import schema_settings

    return IntentExtractionPipeline(
        invoker=ModelInvoker(),
        validator=SchemaValidator(
            cfg.INTENT_SCHEMA_NAME,
            schema_settings.INTENT_SCHEMA_VERSION,
            schemas_dir=schema_settings.schemas_dir,
        ),
        model_config=ModelInvocationConfig.from_settings(),
        retry_policy=RetryPolicy.from_settings(),
        prompt_template=load_prompt(
            cfg.INTENT_SCHEMA_NAME,
            schema_settings.INTENT_PROMPT_VERSION,
            prompts_dir=schema_settings.prompts_dir,
        ),
    )
