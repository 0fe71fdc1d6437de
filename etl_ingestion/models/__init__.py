"""
etl_ingestion.models -- ORM model for the customer table.

Architecture: etl_ingestion/models. Imports from etl_kernel.db.base only.
"""

from etl_ingestion.models.customer import CustomerModel

__all__ = [
    "CustomerModel",
]
