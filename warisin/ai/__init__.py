"""
Warisin
AI module.

Submodules:
    - gateway: LLM Gateway (provider routing, retry, usage logging)
    - description_assistant: program description drafting with template fallback
"""
