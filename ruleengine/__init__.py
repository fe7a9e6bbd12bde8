"""Rule Engine - business rule authoring and execution over data schemas.

Schemas are imported (OpenAPI, JSON Schema, example payloads) or built by
hand; rules are authored against them and executed over batches of facts.
"""

__version__ = "0.1.0"
