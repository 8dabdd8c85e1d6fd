"""Read-only views of the host application's domain tables.

Jobs, candidates and customers are owned by the surrounding CRUD application;
the automation rules only read them. They live on their own MetaData so that
migrations for the scheduler tables never touch them.
"""

from sqlalchemy import Boolean, Column, DateTime, MetaData, String, Table

external_metadata = MetaData()

jobs_table = Table(
    "jobs",
    external_metadata,
    Column("id", String(255), primary_key=True),
    Column("title", String(500), nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("expiry_date", DateTime(timezone=True), nullable=True),
    Column("owner_id", String(255), nullable=True),
)

candidates_table = Table(
    "candidates",
    external_metadata,
    Column("id", String(255), primary_key=True),
    Column("name", String(500), nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("last_contact_date", DateTime(timezone=True), nullable=True),
    Column("owner_id", String(255), nullable=True),
)

customers_table = Table(
    "customers",
    external_metadata,
    Column("id", String(255), primary_key=True),
    Column("name", String(500), nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("is_prospect", Boolean, nullable=False, default=False),
    Column("last_contact_date", DateTime(timezone=True), nullable=True),
    Column("owner_id", String(255), nullable=True),
)
