from typing import Any, Dict, Tuple

from planparser.models.results import TokenUsage
from planparser.services.llm.base import SYSTEM_PROMPT, HTTPProvider


class OllamaProvider(HTTPProvider):
    """Local model served by Ollama. Free, and scored without the token blend."""

    kind = "ollama"
    default_base_url = "http://localhost:11434"
    default_timeout = 120.0
    blend_confidence = False

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/generate"

    def build_payload(self, prompt: str, model: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "model": model,
            "system": SYSTEM_PROMPT,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

    def parse_response(self, data: Dict[str, Any], prompt: str) -> Tuple[str, TokenUsage]:
        content = data.get("response") or ""
        # Older servers omit eval counts; fall back to word counts
        input_tokens = data.get("prompt_eval_count") or len(prompt.split())
        output_tokens = data.get("eval_count") or len(content.split())
        return content, TokenUsage(input=input_tokens, output=output_tokens, total=input_tokens + output_tokens)
