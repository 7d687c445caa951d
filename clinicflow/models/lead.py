"""
Lead model: one row per prospective-patient submission from a public CTA.
"""
from sqlalchemy import Column, Text, DateTime
from sqlalchemy.sql import func

from clinicflow.database import Base
from clinicflow.models import new_id, iso


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True, default=new_id)
    name = Column(Text, default='')
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    origin_cta = Column(Text, nullable=True)
    origin_page = Column(Text, nullable=True)
    pillar_origin = Column(Text, nullable=True)
    utm_source = Column(Text, nullable=True)
    utm_medium = Column(Text, nullable=True)
    utm_campaign = Column(Text, nullable=True)
    utm_content = Column(Text, nullable=True)
    funnel_stage = Column(Text, default='new')   # new/nurture/qualified/converted/closed_lost
    primary_concern = Column(Text, nullable=True)
    symptom_summary = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'origin_cta': self.origin_cta,
            'origin_page': self.origin_page,
            'pillar_origin': self.pillar_origin,
            'utm_source': self.utm_source,
            'utm_medium': self.utm_medium,
            'utm_campaign': self.utm_campaign,
            'utm_content': self.utm_content,
            'funnel_stage': self.funnel_stage,
            'primary_concern': self.primary_concern,
            'symptom_summary': self.symptom_summary,
            'notes': self.notes,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
