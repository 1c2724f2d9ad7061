# alembic/versions/20261018_01_smart_alerts.py
"""
Baseline schema for smart alerts: users, watchlists, smart_alerts,
alert_evaluation_states and notifications.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision = "20261018_01_smart_alerts"
down_revision = None
branch_labels = None
depends_on = None

ALERT_KINDS = (
    "price_target", "portfolio_rebalance", "tax_optimization", "risk_threshold",
    "market_sentiment", "dca_reminder", "profit_taking",
)
DIRECTIONS = ("above", "below")
SENTIMENT_LABELS = ("extremely_bearish", "bearish", "neutral", "bullish", "extremely_bullish")


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "watchlists",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("symbol", sa.String(20), nullable=False),
        sa.Column("holdings_amount", sa.Numeric(30, 8), nullable=False, server_default="0"),
        sa.Column("initial_investment_usd", sa.Numeric(20, 2), nullable=False, server_default="0"),
        sa.Column("purchase_price", sa.Numeric(20, 8), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "symbol", name="uq_watchlists_user_symbol"),
    )
    op.create_index("ix_watchlists_user_id", "watchlists", ["user_id"])

    op.create_table(
        "smart_alerts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("alert_type", sa.Enum(*ALERT_KINDS, name="alert_kind_enum"), nullable=False),
        sa.Column("symbol", sa.String(20), nullable=True),
        sa.Column("target_value", sa.Numeric(20, 8), nullable=True),
        sa.Column("direction", sa.Enum(*DIRECTIONS, name="alert_direction_enum"), nullable=True),
        sa.Column("configuration", _json(), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trigger_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_smart_alerts_user_id", "smart_alerts", ["user_id"])
    op.create_index("ix_smart_alerts_user_active", "smart_alerts", ["user_id", "is_active"])
    op.create_index("ix_smart_alerts_type_active", "smart_alerts", ["alert_type", "is_active"])
    op.create_index("ix_smart_alerts_symbol_active", "smart_alerts", ["symbol", "is_active"])

    op.create_table(
        "alert_evaluation_states",
        sa.Column(
            "alert_id", sa.Integer,
            sa.ForeignKey("smart_alerts.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("armed", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_value", sa.Numeric(30, 8), nullable=True),
        sa.Column("last_sentiment_label", sa.Enum(*SENTIMENT_LABELS, name="sentiment_label_enum"), nullable=True),
        sa.Column("last_sentiment_score", sa.Integer, nullable=True),
        sa.Column("last_evaluated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("alert_id", sa.Integer, sa.ForeignKey("smart_alerts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("data", _json(), nullable=True),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_alert_id", "notifications", ["alert_id"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade():
    op.drop_table("notifications")
    op.drop_table("alert_evaluation_states")
    op.drop_table("smart_alerts")
    op.drop_table("watchlists")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_name in ("sentiment_label_enum", "alert_direction_enum", "alert_kind_enum"):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
