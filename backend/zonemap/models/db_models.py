from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from zonemap.core.database import Base


class VendorZoneConfigRecord(Base):
    __tablename__ = "vendor_zone_configs"
    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(String, unique=True, index=True, nullable=False)
    source = Column(String, default="wizard")  # upload/wizard
    zones = Column(JSON, nullable=False, default=list)
    price_matrix = Column(JSON, nullable=False, default=dict)
    oda_pincodes = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)
