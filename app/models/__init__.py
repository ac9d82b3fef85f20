# CarCard: Database Models
# Import all models here for SQLAlchemy discovery

from app.models.tag import Tag                         # noqa
from app.models.tag_scan import TagScan                # noqa
from app.models.pending_change import PendingChange    # noqa
