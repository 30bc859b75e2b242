# -*- coding: utf-8 -*-
"""Initial schema: users, coin ledger, raffles and raffle tickets.

Tables are created from the Declarative Base so the migration and the
models cannot drift apart; checkfirst=True makes a re-run harmless.
"""

from __future__ import annotations

from alembic import op

from diehard.app.core.database_core import Base
from diehard.app.core.logging_core import get_logger
from diehard.app.models import MODEL_REGISTRY

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels = None
depends_on = None

logger = get_logger(__name__)
_ = MODEL_REGISTRY


def upgrade() -> None:
    bind = op.get_bind()
    logger.info("Creating tables", extra={"tables": sorted(Base.metadata.tables)})
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
