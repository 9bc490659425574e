"""API-specific request/response models.

Request bodies and response schemas for the HTTP endpoints. JSON keys are
camelCase to match the storefront client; Python attributes stay snake_case.

Domain models (Fee, IssuedIntent, AccessDecision, ...) live in regpay.models.

Modules:
- common: camelCase base model, health response
- registration: fee intent, mark-paid and webhook models
- access: route gate response
"""

__all__: list[str] = []
