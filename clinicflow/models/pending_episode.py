"""
PendingEpisode model: scheduling-stage record for a booked NP visit.
"""
from sqlalchemy import Column, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from clinicflow.database import Base
from clinicflow.models import new_id, iso


class PendingEpisode(Base):
    __tablename__ = 'pending_episodes'

    id = Column(Text, primary_key=True, default=new_id)
    care_request_id = Column(Text, ForeignKey('care_requests.id'), nullable=True)
    patient_name = Column(Text, default='')
    visit_type = Column(Text, nullable=True)     # np_neuro / np_msk / np_pediatric
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(Text, default='pending')     # pending/scheduled/ready_for_conversion/converted/cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'care_request_id': self.care_request_id,
            'patient_name': self.patient_name,
            'visit_type': self.visit_type,
            'scheduled_date': iso(self.scheduled_date),
            'status': self.status,
            'created_at': iso(self.created_at),
        }
