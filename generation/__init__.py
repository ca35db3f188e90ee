"""Generative model adapters for the article producer."""

from .article_generator import LLMArticleGenerator, extract_json_object

__all__ = ["LLMArticleGenerator", "extract_json_object"]
