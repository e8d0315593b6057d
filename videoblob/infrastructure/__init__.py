"""
Infrastructure layer - external service integrations.

- storage: Azure Blob Storage container gateway
"""
