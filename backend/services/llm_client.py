"""LLM Client for Google Gemini API integration."""
import time
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
import logging

from config import GEMINI_API_KEY, GEMINI_MODEL, MAX_OUTPUT_TOKENS, GENERATION_TIMEOUT
from models.conversation import Role, Turn

logger = logging.getLogger(__name__)

# Gemini only knows "user" and "model"; every stored role must map to one of them.
GEMINI_ROLES: Dict[Role, str] = {
    Role.USER: "user",
    Role.ASSISTANT: "model",
}


@dataclass
class GenerationError:
    """Structured description of a failed generation call."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


class AdapterError(Exception):
    """Raised when the Gemini call fails for any reason (network, quota, bad response)."""

    def __init__(self, error: GenerationError):
        self.error = error
        super().__init__(error.message)


def to_gemini_content(turn: Turn) -> Dict[str, Any]:
    """
    Convert a stored turn to Gemini's content dict.

    Raises:
        ValueError: If the turn's role has no Gemini counterpart
    """
    try:
        gemini_role = GEMINI_ROLES[Role(turn.role)]
    except (KeyError, ValueError):
        raise ValueError(f"Unsupported role for generation: {turn.role!r}")
    return {"role": gemini_role, "parts": [{"text": turn.content}]}


def split_history(history: List[Turn]):
    """
    Split history into prior context and the new user input.

    Returns:
        Tuple of (Gemini-formatted context for all but the last turn, last turn text)

    Raises:
        ValueError: If history is empty or does not end with a user turn
    """
    if not history:
        raise ValueError("Cannot generate a reply for an empty history")
    latest = history[-1]
    if Role(latest.role) is not Role.USER:
        raise ValueError("History must end with a user turn")

    context = [to_gemini_content(turn) for turn in history[:-1]]
    return context, latest.content


class LLMClient:
    """Client for interfacing with the Gemini API for chat replies."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = GEMINI_MODEL,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        timeout: float = GENERATION_TIMEOUT
    ):
        """
        Initialize LLM client with Gemini API key.

        Args:
            api_key: Gemini API key (defaults to GEMINI_API_KEY from environment)
            model_name: Gemini model to use
            max_output_tokens: Upper bound on generated reply length
            timeout: Seconds to wait for the API before giving up
        """
        self.api_key = api_key or GEMINI_API_KEY
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY must be provided or set in environment")

        self.model_name = model_name
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(model_name)
        logger.info(f"LLMClient initialized successfully (model={model_name})")

    def generate(self, history: List[Turn]) -> str:
        """
        Generate the assistant reply to the last turn of ``history``.

        All turns but the last are sent as chat history; the last (user) turn is
        sent as the new message. Exactly one API call is made.

        Args:
            history: Chronological turns, ending with the user's new message

        Returns:
            Reply text

        Raises:
            ValueError: If the history cannot be mapped to Gemini's schema
            AdapterError: Structured error with code, message, and details
        """
        context, new_message = split_history(history)
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {self.model_name}, context_turns={len(context)}")

            chat_session = self.model.start_chat(history=context)
            response = chat_session.send_message(
                new_message,
                generation_config=genai.GenerationConfig(max_output_tokens=self.max_output_tokens),
                request_options={"timeout": self.timeout}
            )

            # .text raises ValueError when the response has no usable candidate
            text = response.text
            if not text:
                raise ValueError("Gemini returned an empty reply")

            latency_ms = int((time.time() - start_time) * 1000)
            usage = getattr(response, "usage_metadata", None)
            logger.info(
                f"Generated response: model={self.model_name}, "
                f"input_tokens={getattr(usage, 'prompt_token_count', None)}, "
                f"output_tokens={getattr(usage, 'candidates_token_count', None)}, "
                f"latency={latency_ms}ms"
            )
            return text

        except google_exceptions.ResourceExhausted as e:
            raise self._error("QUOTA_ERROR", "Gemini quota or rate limit exceeded.", start_time, e) from e
        except (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied) as e:
            raise self._error("AUTHENTICATION_ERROR", "Authentication failed. Please check your API key.", start_time, e) from e
        except google_exceptions.DeadlineExceeded as e:
            raise self._error("TIMEOUT_ERROR", "Request timed out.", start_time, e) from e
        except google_exceptions.GoogleAPIError as e:
            raise self._error("API_ERROR", f"Gemini API error: {str(e)}", start_time, e) from e
        except ValueError as e:
            raise self._error("MALFORMED_RESPONSE", f"Could not read Gemini response: {str(e)}", start_time, e) from e
        except Exception as e:
            raise self._error("UNKNOWN_ERROR", f"Unexpected error during generation: {str(e)}", start_time, e) from e

    def _error(self, code: str, message: str, start_time: float, exc: Exception) -> AdapterError:
        """Log a failed call and wrap it in an AdapterError."""
        latency_ms = int((time.time() - start_time) * 1000)
        error = GenerationError(
            code=code,
            message=message,
            details={
                "model": self.model_name,
                "latency_ms": latency_ms,
                "original_error": str(exc),
                "error_type": type(exc).__name__
            }
        )
        logger.error(
            f"Generation failed: code={code}, model={self.model_name}, latency={latency_ms}ms, error={exc}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return AdapterError(error)
