"""
CareRequest model: the canonical pipeline record once a lead is accepted.

intake_payload is a denormalized snapshot of the patient's contact fields
(name / patient_name, email, phone, lead_id, ...).
"""
from sqlalchemy import Column, Text, DateTime, JSON
from sqlalchemy.sql import func

from clinicflow.database import Base
from clinicflow.models import new_id, iso


class CareRequest(Base):
    __tablename__ = 'care_requests'

    id = Column(Text, primary_key=True, default=new_id)
    status = Column(Text, nullable=False, default='SUBMITTED')
    source = Column(Text, default='WEBSITE')
    intake_payload = Column(JSON, default=dict)
    primary_complaint = Column(Text, nullable=True)
    assigned_clinician_id = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    episode_id = Column(Text, nullable=True)   # set once, on conversion
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'status': self.status,
            'source': self.source,
            'intake_payload': dict(self.intake_payload or {}),
            'primary_complaint': self.primary_complaint,
            'assigned_clinician_id': self.assigned_clinician_id,
            'approved_at': iso(self.approved_at),
            'episode_id': self.episode_id,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
