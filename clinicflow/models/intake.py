"""
Intake model: structured intake questionnaire, linked to a lead when known.
"""
from sqlalchemy import Column, Text, DateTime, JSON
from sqlalchemy.sql import func

from clinicflow.database import Base
from clinicflow.models import new_id, iso


class Intake(Base):
    __tablename__ = 'intakes'

    id = Column(Text, primary_key=True, default=new_id)
    lead_id = Column(Text, nullable=True)
    patient_name = Column(Text, default='')
    email = Column(Text, nullable=True)
    responses = Column(JSON, default=dict)
    status = Column(Text, default='draft')         # draft/submitted/completed/approved
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    converted_to_episode_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'patient_name': self.patient_name,
            'email': self.email,
            'responses': dict(self.responses or {}),
            'status': self.status,
            'submitted_at': iso(self.submitted_at),
            'converted_to_episode_id': self.converted_to_episode_id,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
