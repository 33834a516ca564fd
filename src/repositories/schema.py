"""SQLAlchemy Core table definitions owned by the sync pipeline."""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

tickets = Table(
    "tickets",
    metadata,
    Column("ticket_number", String(64), primary_key=True),
    Column("ticket_id", String(64)),
    Column("subject", Text),
    Column("channel", String(64)),
    Column("category", String(128)),
    Column("reporter", String(256)),
    Column("assignee", String(256)),
    Column("department", String(256)),
    Column("priority", String(32)),
    Column("last_status", String(64)),
    Column("created_at", DateTime(timezone=True)),
    Column("last_update", DateTime(timezone=True)),
    Column("description", Text),
    Column("customer_name", String(256)),
    Column("customer_phone", String(64)),
    Column("customer_email", String(256)),
    Column("first_response_at", DateTime(timezone=True)),
    Column("resolved_at", DateTime(timezone=True)),
    Column("closed_at", DateTime(timezone=True)),
    Column("escalation_target", String(256)),
    Column("room_id", String(128)),
    Column("converse", String(64)),
    Column("amount_revenue", BigInteger),
    Column("msisdn_count", Integer),
    Column("sub_category", String(256)),
    Column("detail_category", String(256)),
    Column("company_name", String(256)),
    Column("remedy_ticket_id", String(256)),
    Column("escalation_reference", String(256)),
    Column("tags", Text),
    Column("roaming", String(64)),
    Column("project_id", String(128)),
    Column("reason_code", String(256)),
    Column("iot", String(64)),
    Column("validation_status", String(32)),
    Column("is_valid_for_reporting", Boolean),
    Column("product", String(64)),
    Column("account_tier", String(32)),
    Column("in_sla", Boolean),
    Column("is_fcr", Boolean),
    Column("escalation_type", String(32)),
    Column("is_vip", Boolean),
    Column("is_pareto", Boolean),
    Column("source", String(16)),
    Column("exported_at", DateTime(timezone=True)),
)

# Every column except the natural key is overwritten on a conditional update.
TICKET_COLUMNS = tuple(column.name for column in tickets.columns)
MUTABLE_TICKET_COLUMNS = tuple(name for name in TICKET_COLUMNS if name != "ticket_number")

sync_cursor = Table(
    "sync_cursor",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("last_sync_at", DateTime(timezone=True), nullable=False),
)

subcategory_products = Table(
    "subcategory_products",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("sub_category", String(256)),
    Column("product", String(64)),
)

corporate_accounts = Table(
    "corporate_accounts",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("corporate_name", String(256)),
    Column("account_tier", String(32)),
)
