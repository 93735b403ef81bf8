"""
Jina AI rerank API client (``POST /rerank``).
"""

from .hosted import HostedReranker


class JinaReranker(HostedReranker):
    provider = "Jina"
    api_key_env = "JINA_API_KEY"
    default_api_base = "https://api.jina.ai/v1"
    default_model = "jina-reranker-v2-base-multilingual"
