"""Aggregate model imports for Alembic auto-detection."""

from croptrail.models.profile import Profile, UserRole  # noqa: F401
from croptrail.models.batch import Batch, BatchStatus  # noqa: F401
from croptrail.models.transport_log import TransportLog  # noqa: F401
from croptrail.models.vendor_receipt import VendorReceipt  # noqa: F401
from croptrail.models.environmental_data import EnvironmentalData, EnvironmentalStage  # noqa: F401
from croptrail.models.ai_analysis import AIAnalysis  # noqa: F401
