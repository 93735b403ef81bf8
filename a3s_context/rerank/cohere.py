"""
Cohere rerank API client (``POST /rerank``).
"""

from .hosted import HostedReranker


class CohereReranker(HostedReranker):
    provider = "Cohere"
    api_key_env = "COHERE_API_KEY"
    default_api_base = "https://api.cohere.com/v1"
    default_model = "rerank-english-v3.0"
