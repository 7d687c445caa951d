"""
IntakeForm model: legacy patient questionnaire (public intake form / front-desk QR).
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON
from sqlalchemy.sql import func

from clinicflow.database import Base
from clinicflow.models import new_id, iso


class IntakeForm(Base):
    __tablename__ = 'intake_forms'

    id = Column(Text, primary_key=True, default=new_id)
    access_code = Column(Text, nullable=True)
    patient_name = Column(Text, default='')
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    date_of_birth = Column(Text, nullable=True)
    chief_complaint = Column(Text, nullable=True)
    pain_level = Column(Integer, nullable=True)
    details = Column(JSON, default=dict)           # optional history/consent fields
    status = Column(Text, default='pending')       # draft/pending/submitted/completed/approved
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    converted_to_episode_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'access_code': self.access_code,
            'patient_name': self.patient_name,
            'email': self.email,
            'phone': self.phone,
            'date_of_birth': self.date_of_birth,
            'chief_complaint': self.chief_complaint,
            'pain_level': self.pain_level,
            'details': dict(self.details or {}),
            'status': self.status,
            'submitted_at': iso(self.submitted_at),
            'converted_to_episode_id': self.converted_to_episode_id,
            'created_at': iso(self.created_at),
        }
