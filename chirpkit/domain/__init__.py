"""Domain Layer: value objects, entities, events and the error taxonomy.

Has no dependency on HTTP libraries or configuration sources.
"""
