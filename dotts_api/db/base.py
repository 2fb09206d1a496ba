from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Note: Models are imported in dotts_api.db.models so they register with Base.metadata
# All models must import Base from this module
