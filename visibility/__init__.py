"""
AI Answer Visibility Tracker

Measures how AI answer engines talk about a brand versus its competitors:
1. Asks each provider (ChatGPT, Gemini, Perplexity, Claude) the tracked questions
2. Extracts mentions, rank, share-of-voice, sentiment and links per brand
3. Stores per-question and per-keyword metrics
4. Mines stored runs for ranking and mention opportunities
"""

__version__ = "0.1.0"
