from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class DatasetKind(str, enum.Enum):
    """Source dataset types (one directory tree per kind)"""
    BLOCKS = "blocks"
    TRANSACTIONS = "transactions"
