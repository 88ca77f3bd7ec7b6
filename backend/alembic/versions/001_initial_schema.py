"""Initial schema: tariff catalog, import batches, history, risk records, audit

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def _rate(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(9, 4), nullable=True)


def _money(name: str, nullable: bool = True) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.Numeric(14, 2), nullable=True)
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, server_default="0")


def upgrade() -> None:
    # Tariff catalog (read-only reference data)
    op.create_table(
        "tariff_rates",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("hs_code", sa.String(10), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("description_en", sa.Text, nullable=True),
        sa.Column("origin_country", sa.String(100), nullable=True),
        sa.Column("origin_country_code", sa.String(20), nullable=True),
        sa.Column("geographical_area", sa.String(50), nullable=True),
        _rate("duty_rate"),
        _rate("vat_rate"),
        _rate("anti_dumping_rate"),
        _rate("countervailing_rate"),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_tariff_rates_hs_code", "tariff_rates", ["hs_code"])
    op.create_index("ix_tariff_rates_origin_country_code", "tariff_rates", ["origin_country_code"])

    # Import batches
    op.create_table(
        "import_batches",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column(
            "clearance_type",
            sa.Enum("standard", "deferred", name="clearance_type"),
            nullable=False,
            server_default="standard",
        ),
        sa.Column("incoterm", sa.String(10), nullable=True),
        _money("international_freight", nullable=False),
        _money("domestic_freight_export", nullable=False),
        _money("domestic_freight_import", nullable=False),
        _money("unloading_cost", nullable=False),
        _money("insurance_cost", nullable=False),
        sa.Column(
            "allocation_method",
            sa.Enum("by_value", "by_weight", name="allocation_method"),
            nullable=False,
            server_default="by_value",
        ),
        sa.Column("item_count", sa.Integer, nullable=False, server_default="0"),
        _money("total_value", nullable=False),
        _money("total_customs_value", nullable=False),
        _money("total_duty", nullable=False),
        _money("total_vat", nullable=False),
        _money("total_other_tax", nullable=False),
        _money("total_tax", nullable=False),
        sa.Column("tax_calculated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("risk_score", sa.Integer, nullable=True),
        sa.Column("risk_level", sa.String(20), nullable=True),
        sa.Column("risk_analyzed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # Cargo line items
    op.create_table(
        "cargo_items",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("batch_id", sa.Uuid, sa.ForeignKey("import_batches.id"), nullable=False),
        sa.Column("item_no", sa.Integer, nullable=False, server_default="0"),
        sa.Column("product_name", sa.String(500), nullable=False),
        sa.Column("product_name_en", sa.String(500), nullable=True),
        sa.Column("material", sa.String(200), nullable=True),
        sa.Column("origin_country", sa.String(20), nullable=True),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=True),
        sa.Column("unit_price", sa.Numeric(14, 4), nullable=True),
        _money("total_value"),
        sa.Column("gross_weight", sa.Numeric(14, 3), nullable=True),
        _money("customs_value"),
        sa.Column("customer_hs_code", sa.String(20), nullable=True),
        sa.Column("matched_hs_code", sa.String(10), nullable=True),
        sa.Column("match_confidence", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "match_source",
            sa.Enum("exact", "prefix_8", "prefix_6", "history", "fuzzy", "manual", name="match_source"),
            nullable=True,
        ),
        sa.Column(
            "match_status",
            sa.Enum(
                "pending", "auto_approved", "review", "no_match", "approved", "rejected",
                name="match_status",
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("reviewed_by", sa.String(200), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_note", sa.Text, nullable=True),
        _rate("duty_rate"),
        _rate("vat_rate"),
        _rate("anti_dumping_rate"),
        _rate("countervailing_rate"),
        _money("duty_amount"),
        _money("vat_amount"),
        _money("other_tax_amount"),
        _money("total_tax"),
        sa.Column("declaration_risk", sa.String(20), nullable=True),
        _money("min_safe_price"),
        sa.Column("price_warning", sa.Text, nullable=True),
        sa.Column("inspection_risk", sa.String(20), nullable=True),
        sa.Column("inspection_risk_score", sa.Integer, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_cargo_items_batch_id", "cargo_items", ["batch_id"])
    op.create_index("ix_cargo_items_matched_hs_code", "cargo_items", ["matched_hs_code"])
    op.create_index("ix_cargo_items_match_status", "cargo_items", ["match_status"])

    # Confirmed (product name, material) -> code pairs
    op.create_table(
        "match_history",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("product_name", sa.String(500), nullable=False),
        sa.Column("material", sa.String(200), nullable=False, server_default=""),
        sa.Column("hs_code", sa.String(10), nullable=False),
        sa.Column("usage_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("product_name", "material", name="uq_match_history_key"),
    )

    # Historical customs outcomes
    op.create_table(
        "declaration_value_records",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("hs_code", sa.String(10), nullable=False),
        sa.Column("origin_country", sa.String(20), nullable=True),
        sa.Column("product_name", sa.String(500), nullable=True),
        sa.Column("declared_unit_price", sa.Numeric(14, 4), nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("declaration_date", sa.Date, nullable=True),
        sa.Column(
            "result",
            sa.Enum("pending", "passed", "questioned", "rejected", name="declaration_result"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("customs_note", sa.Text, nullable=True),
        sa.Column("batch_id", sa.Uuid, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_declaration_value_records_hs_code", "declaration_value_records", ["hs_code"])
    op.create_index(
        "ix_declaration_value_records_origin_country", "declaration_value_records", ["origin_country"]
    )

    op.create_table(
        "inspection_records",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("hs_code", sa.String(10), nullable=False),
        sa.Column("origin_country", sa.String(20), nullable=True),
        sa.Column("product_name", sa.String(500), nullable=True),
        sa.Column(
            "inspection_type",
            sa.Enum("none", "document", "scan", "physical", "full", name="inspection_type"),
            nullable=False,
            server_default="none",
        ),
        sa.Column(
            "result",
            sa.Enum("pending", "passed", "failed", name="inspection_result"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("delay_days", sa.Integer, nullable=False, server_default="0"),
        _money("penalty_amount", nullable=False),
        sa.Column("inspection_date", sa.Date, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("batch_id", sa.Uuid, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_inspection_records_hs_code", "inspection_records", ["hs_code"])
    op.create_index("ix_inspection_records_origin_country", "inspection_records", ["origin_country"])

    # Display-only product name translations
    op.create_table(
        "product_name_translations",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(500), nullable=False, unique=True),
        sa.Column("name_en", sa.String(500), nullable=False),
        *_timestamps(),
    )

    # Immutable audit log
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=True),
        sa.Column("entity_id", sa.Uuid, nullable=True),
        sa.Column("batch_id", sa.Uuid, nullable=True),
        sa.Column("action", sa.String(100), nullable=True),
        sa.Column("actor", sa.String(200), nullable=True),
        sa.Column("actor_type", sa.String(50), nullable=True),
        sa.Column("event_data", sa.JSON, nullable=True),
        sa.Column("previous_state", sa.JSON, nullable=True),
        sa.Column("new_state", sa.JSON, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
    op.create_index("ix_audit_events_batch_created", "audit_events", ["batch_id", "created_at"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("product_name_translations")
    op.drop_table("inspection_records")
    op.drop_table("declaration_value_records")
    op.drop_table("match_history")
    op.drop_table("cargo_items")
    op.drop_table("import_batches")
    op.drop_table("tariff_rates")

    op.execute("DROP TYPE IF EXISTS inspection_result")
    op.execute("DROP TYPE IF EXISTS inspection_type")
    op.execute("DROP TYPE IF EXISTS declaration_result")
    op.execute("DROP TYPE IF EXISTS match_status")
    op.execute("DROP TYPE IF EXISTS match_source")
    op.execute("DROP TYPE IF EXISTS allocation_method")
    op.execute("DROP TYPE IF EXISTS clearance_type")
