"""
Central place to host long-lived studio-wide singletons (e.g., the kernel narrator).
"""
import logging

logger = logging.getLogger(__name__)

try:
    from openai import OpenAI  # type: ignore
    from ai.narrator import KernelNarrator, load_api_key, model_name

    _api_key = load_api_key()
    if _api_key:
        _client = OpenAI(api_key=_api_key)
        NARRATOR = KernelNarrator(_client, model=model_name())
    else:
        logger.warning("No API key found in env or apiKey file; free-form kernel turns disabled.")
        NARRATOR = None
except Exception as e:
    logger.error("Failed to initialize narrator: %s", e)
    # In test/offline contexts, the narrator stays disabled.
    NARRATOR = None
