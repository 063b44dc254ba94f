"""
Turtle Soup (lateral-thinking quiz) package.

Components:
- game: round state and the question/guess/hint state machine
- llm_client: oracle client (direct OpenAI-compatible transport or the relay in proxy.py)
- response_parser: JSON extraction and shape validation for oracle replies
- prompting: difficulty tiers and prompt catalogs (ja/en)
- proxy: Flask chat-completion relay that keeps the credential server-side
"""
# Package exports are intentionally minimal; import modules directly as needed.
