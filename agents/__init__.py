# Agents layer - LLM-backed enrichment, hypothesis and proposal review
