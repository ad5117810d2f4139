"""Recruitment round within a job's drive."""
from drive_engine import db
from drive_engine.models.base import BaseModel

class Round(BaseModel):
    """One ordered stage of a drive (aptitude, technical, HR...).

    Rounds are soft-deleted only; attendance rows keep pointing at them.
    """
    
    __tablename__ = 'rounds'
    __table_args__ = (
        db.Index(
            'uq_rounds_job_order_visible', 'job_id', 'order',
            unique=True,
            sqlite_where=db.text('is_removed = 0'),
            postgresql_where=db.text('is_removed = false')
        ),
    )
    
    job_id = db.Column(db.Integer, db.ForeignKey('jobs.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    order = db.Column('order', db.Integer, nullable=False)
    is_removed = db.Column(db.Boolean, default=False, nullable=False)
    
    sessions = db.relationship('DriveSession', backref='round', lazy='dynamic')
    attendances = db.relationship('RoundAttendance', backref='round', lazy='dynamic')
    
    def __repr__(self):
        return f'<Round {self.job_id}#{self.order} {self.name}>'
