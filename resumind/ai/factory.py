from resumind.ai.config import load_ai_config
from resumind.ai.providers.openai_provider import OpenAIInferenceClient
from resumind.ai.types import InferenceClient
from resumind.storage.blob_store import BlobStore


def get_inference_client(blob_store: BlobStore) -> InferenceClient:
    cfg = load_ai_config()

    if cfg.provider == "openai":
        return OpenAIInferenceClient(cfg, blob_store=blob_store)

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
