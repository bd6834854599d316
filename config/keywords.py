"""
Keyword Lists for the Topic Digest

This module contains the default AI/ML keyword lists used to pick topic posts
out of the timeline. Extracted from settings.py to separate data from
configuration logic.
"""

# Matched as whole words (or whole phrases) when TOPIC_KEYWORD_WHOLE_WORD is on
TOPIC_KEYWORDS = [
    # Short tokens - only safe with word boundaries
    "ai", "ml", "llm", "llms", "gpt", "rag", "agi", "nlp",
    # Phrases
    "artificial intelligence",
    "machine learning",
    "deep learning",
    "neural network",
    "neural networks",
    "language model",
    "language models",
    "large language model",
    "reinforcement learning",
    "fine-tuning",
    "fine tuning",
    "transformer",
    "transformers",
    "diffusion model",
    "embeddings",
    "inference",
    "benchmark",
    "benchmarks",
    "chatbot",
    "prompt engineering",
    # Vendors and models
    "openai",
    "anthropic",
    "claude",
    "chatgpt",
    "gemini",
    "deepmind",
    "mistral",
    "llama",
    "hugging face",
    "huggingface",
    "copilot",
    "midjourney",
    "stable diffusion",
    "nvidia",
    # Generic terms
    "model",
    "models",
    "train",
    "training",
]

# Matched anywhere inside a word. Empty by default: bare substrings such as
# "model" or "train" also hit "remodel" and "trainee".
TOPIC_SUBSTRING_KEYWORDS = []
