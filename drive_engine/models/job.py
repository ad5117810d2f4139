"""Job posting as seen by the drive engine."""
from drive_engine import db
from drive_engine.models.base import BaseModel

class Job(BaseModel):
    """Minimal job record; postings are managed by the wider portal."""
    
    __tablename__ = 'jobs'
    
    title = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=True)
    
    rounds = db.relationship('Round', backref='job', lazy='dynamic')
    
    def __repr__(self):
        return f'<Job {self.title}>'
