"""
Pydantic Schemas
Request/response models for the API. JSON keys are camelCase.
"""
