"""Species domain: models, prompts, generation and the view session."""
