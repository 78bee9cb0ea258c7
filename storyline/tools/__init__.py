"""
Optional text-generation collaborator.

- llm_service: TextGenerator protocol + pydantic-ai backed LLMService
- task_queue: TextGenerationQueue — pacing, hourly budget, cooldown
"""
