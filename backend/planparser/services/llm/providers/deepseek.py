from planparser.services.llm.providers.openai import OpenAIProvider


class DeepSeekProvider(OpenAIProvider):
    """OpenAI-compatible chat completions API."""

    kind = "deepseek"
    default_base_url = "https://api.deepseek.com"
    default_timeout = 300.0
    input_cost_per_million = 0.0
    output_cost_per_million = 0.0
